"""
Movie Night API — FastAPI application entry point.

Routers are registered here. Each service lives in movienight/api/.
This module is also the composition root: it owns the process-wide
event hub that mutation handlers publish to and /events streams read from.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from movienight.api import auth, events, movie_nights, movies
from movienight.core.config import settings
from movienight.core.logging import configure_logging
from movienight.realtime.hub import EventHub

configure_logging()

app = FastAPI(
    title="Movie Night API",
    description="Submit movies, vote on them, and schedule movie nights.",
    version="0.1.0",
    docs_url="/docs" if settings.ENABLE_DOCS else None,
    redoc_url="/redoc" if settings.ENABLE_DOCS else None,
)

# Single-process only; see movienight.realtime.hub.
app.state.event_hub = EventHub()

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(auth.router,         prefix="/auth",         tags=["auth"])
app.include_router(movies.router,       prefix="/movies",       tags=["movies"])
app.include_router(movie_nights.router, prefix="/movie-nights", tags=["movie-nights"])
app.include_router(events.router,       prefix="/events",       tags=["events"])


# ── Health check ──────────────────────────────────────────────────────────────
@app.get("/health", tags=["system"])
def health_check() -> dict:
    """Liveness probe. Returns 200 when the server is up."""
    return {"status": "ok", "version": app.version, "env": settings.APP_ENV}
