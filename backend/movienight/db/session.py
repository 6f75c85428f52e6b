"""
SQLAlchemy engine + session factory.
Import *get_db* as a FastAPI dependency in route handlers.
"""
from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from movienight.core.config import settings


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # Sync handlers run in FastAPI's threadpool.
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
    }


engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.is_dev and settings.LOG_LEVEL.upper() == "DEBUG",
    **_engine_options(settings.DATABASE_URL),
)

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,  # Avoid lazy-load errors after commit
)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a request-scoped DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
