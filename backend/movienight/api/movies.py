"""
Movies API — /movies
─────────────────────
Endpoints:
  POST /movies                — Submit a movie by TMDB id (casts your vote)
  GET  /movies                — Voting list page, most votes first
  GET  /movies/search         — TMDB typeahead for the submission form
  GET  /movies/current        — Your most recent submission (or null)
  GET  /movies/{movie_id}     — Single movie with votes (or null)
  POST /movies/{movie_id}/vote — Toggle your vote
  PUT  /movies/{movie_id}/ban  — Ban / unban (admin)
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from movienight.api.errors import error_body, http_error
from movienight.core.config import settings
from movienight.db.models import User
from movienight.db.session import get_db
from movienight.deps.auth import get_current_admin, get_current_user
from movienight.deps.realtime import get_event_hub, get_metadata_provider
from movienight.realtime.hub import BroadcastChannel
from movienight.schemas.movies import (
    AddMovieRequest,
    MovieMetadataResponse,
    MoviePage,
    MovieResponse,
    MovieSummaryResponse,
    SetBannedRequest,
)
from movienight.services.errors import ServiceError
from movienight.services.movie_service import (
    InvalidCursorError,
    add_movie,
    current_submission_of,
    find_movie,
    list_movies_page,
    map_movie_response,
    map_movie_summary,
    search_movies,
    set_movie_banned,
    toggle_vote,
)
from movienight.services.tmdb_sync import MetadataProvider

router = APIRouter()


@router.post("", response_model=MovieResponse, status_code=status.HTTP_201_CREATED)
async def submit_movie(
    payload: AddMovieRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    hub: BroadcastChannel = Depends(get_event_hub),
    provider: MetadataProvider = Depends(get_metadata_provider),
) -> MovieResponse:
    try:
        movie = await add_movie(db, hub, provider, current_user.id, payload.id)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return map_movie_response(movie)


@router.get("", response_model=MoviePage)
def list_movies(
    cursor: str | None = Query(None, description="prev_cursor from the previous page"),
    take: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
) -> MoviePage:
    try:
        return list_movies_page(db, cursor=cursor, take=take)
    except InvalidCursorError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_body("INVALID_CURSOR", str(exc)),
        ) from exc


@router.get("/search", response_model=list[MovieMetadataResponse])
async def search(
    q: str = Query(..., min_length=1, description="Title query"),
    provider: MetadataProvider = Depends(get_metadata_provider),
) -> list[dict]:
    try:
        return await search_movies(provider, q)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.get("/current", response_model=MovieSummaryResponse | None)
def my_current_submission(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MovieSummaryResponse | None:
    movie = current_submission_of(db, current_user.id)
    return map_movie_summary(movie) if movie is not None else None


@router.get("/{movie_id}", response_model=MovieResponse | None)
def get_movie(movie_id: int, db: Session = Depends(get_db)) -> MovieResponse | None:
    movie = find_movie(db, movie_id)
    return map_movie_response(movie) if movie is not None else None


@router.post("/{movie_id}/vote", status_code=status.HTTP_204_NO_CONTENT)
def vote(
    movie_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    hub: BroadcastChannel = Depends(get_event_hub),
) -> Response:
    try:
        toggle_vote(db, hub, current_user.id, movie_id)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{movie_id}/ban", response_model=MovieResponse)
def ban(
    movie_id: int,
    payload: SetBannedRequest,
    _admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
    hub: BroadcastChannel = Depends(get_event_hub),
) -> MovieResponse:
    try:
        movie = set_movie_banned(db, hub, movie_id, payload.banned)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return map_movie_response(movie)
