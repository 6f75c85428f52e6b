"""
Logging setup.

Modules log through ``logging.getLogger(__name__)``; this installs a single
console handler on the ``movienight`` logger tree at application start-up.
"""
import logging.config

from movienight.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Install the console handler. Safe to call more than once."""
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": LOG_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "loggers": {
                "movienight": {
                    "handlers": ["console"],
                    "level": (level or settings.LOG_LEVEL).upper(),
                    "propagate": False,
                },
            },
        }
    )
