"""
Dependencies for the event hub and the metadata provider.

The hub is owned by the app (``app.state.event_hub``, set in main.py);
routes receive it through ``get_event_hub`` so tests can swap it out.
"""
from fastapi import HTTPException, status
from starlette.requests import HTTPConnection

from movienight.realtime.hub import BroadcastChannel
from movienight.services.tmdb_sync import MetadataProvider, TMDBConfigError, TMDBService


def get_event_hub(connection: HTTPConnection) -> BroadcastChannel:
    return connection.app.state.event_hub


def get_metadata_provider() -> MetadataProvider:
    try:
        return TMDBService()
    except TMDBConfigError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": {"code": "INTERNAL", "message": "Movie metadata lookup is not configured"}},
        ) from exc
