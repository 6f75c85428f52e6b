"""
Events API — /events
─────────────────────
Server-Sent Events streams fed by the in-process event hub.

Endpoints:
  GET /events/movies/added            — Newly submitted movies
  GET /events/movies/voted?movie_id=  — Movies whose votes (or ban) changed
  GET /events/movie-nights            — Movie night updates

Each connection holds one hub listener until the client disconnects. Nothing
is replayed on reconnect: a client that saw an ``error`` frame or lost the
connection should refetch the voting list from page one.
"""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from movienight.deps.realtime import get_event_hub
from movienight.realtime.gateway import SubscriptionChannel, event_stream, movie_filter
from movienight.realtime.hub import BroadcastChannel, EventKind

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


def _sse(channel: SubscriptionChannel) -> StreamingResponse:
    return StreamingResponse(
        event_stream(channel),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/movies/added")
async def on_movie_added(hub: BroadcastChannel = Depends(get_event_hub)) -> StreamingResponse:
    return _sse(SubscriptionChannel(hub, EventKind.MOVIE_ADDED))


@router.get("/movies/voted")
async def on_movie_voted(
    movie_id: int | None = Query(None, description="Only stream this movie"),
    hub: BroadcastChannel = Depends(get_event_hub),
) -> StreamingResponse:
    return _sse(SubscriptionChannel(hub, EventKind.MOVIE_VOTED, movie_filter(movie_id)))


@router.get("/movie-nights")
async def on_movie_night_update(hub: BroadcastChannel = Depends(get_event_hub)) -> StreamingResponse:
    return _sse(SubscriptionChannel(hub, EventKind.MOVIE_NIGHT_UPDATED))
