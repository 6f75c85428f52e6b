"""
Movie Nights API — /movie-nights
─────────────────────────────────
Endpoints:
  GET    /movie-nights/next                          — Current movie night (or null)
  GET    /movie-nights                               — All nights, latest first (admin)
  POST   /movie-nights                               — Schedule a night (admin)
  PATCH  /movie-nights/{id}                          — Edit title / time / completed (admin)
  POST   /movie-nights/{id}/complete                 — Complete, marking movies watched (admin)
  POST   /movie-nights/current/movies/{movie_id}     — Add a movie to the current night (admin)
  DELETE /movie-nights/movies/{movie_id}             — Take a movie off its night (admin)
  POST   /movie-nights/clear-votes                   — Delete all non-banned movies (admin)
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from movienight.api.errors import http_error
from movienight.db.models import User
from movienight.db.session import get_db
from movienight.deps.auth import get_current_admin
from movienight.deps.realtime import get_event_hub
from movienight.realtime.hub import BroadcastChannel
from movienight.schemas.movie_nights import (
    CreateMovieNightRequest,
    MovieNightResponse,
    UpdateMovieNightRequest,
)
from movienight.schemas.movies import MovieSummaryResponse
from movienight.services.errors import ServiceError
from movienight.services.movie_night_service import (
    assign_movie_to_current_night,
    clear_all_votes,
    complete_movie_night,
    create_movie_night,
    get_next_movie_night,
    list_movie_nights,
    map_movie_night_response,
    unassign_movie,
    update_movie_night,
)
from movienight.services.movie_service import map_movie_summary

router = APIRouter()


@router.get("/next", response_model=MovieNightResponse | None)
def next_movie_night(db: Session = Depends(get_db)) -> MovieNightResponse | None:
    night = get_next_movie_night(db)
    return map_movie_night_response(night) if night is not None else None


@router.get("", response_model=list[MovieNightResponse])
def all_movie_nights(
    _admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
) -> list[MovieNightResponse]:
    return [map_movie_night_response(night) for night in list_movie_nights(db)]


@router.post("", response_model=MovieNightResponse, status_code=status.HTTP_201_CREATED)
def schedule_movie_night(
    payload: CreateMovieNightRequest,
    _admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
    hub: BroadcastChannel = Depends(get_event_hub),
) -> MovieNightResponse:
    try:
        night = create_movie_night(db, hub, payload.starting_at, payload.title)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return map_movie_night_response(night)


@router.post("/clear-votes")
def clear_votes(
    _admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
) -> bool:
    return clear_all_votes(db)


@router.post("/current/movies/{movie_id}", response_model=MovieSummaryResponse)
def add_to_current_night(
    movie_id: int,
    _admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
    hub: BroadcastChannel = Depends(get_event_hub),
) -> MovieSummaryResponse:
    try:
        movie = assign_movie_to_current_night(db, hub, movie_id)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return map_movie_summary(movie)


@router.delete("/movies/{movie_id}", response_model=MovieSummaryResponse)
def remove_from_night(
    movie_id: int,
    _admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
) -> MovieSummaryResponse:
    try:
        movie = unassign_movie(db, movie_id)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return map_movie_summary(movie)


@router.patch("/{movie_night_id}", response_model=MovieNightResponse)
def edit_movie_night(
    movie_night_id: int,
    payload: UpdateMovieNightRequest,
    _admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
    hub: BroadcastChannel = Depends(get_event_hub),
) -> MovieNightResponse:
    try:
        night = update_movie_night(
            db, hub, movie_night_id, payload.model_dump(exclude_unset=True)
        )
    except ServiceError as exc:
        raise http_error(exc) from exc
    return map_movie_night_response(night)


@router.post("/{movie_night_id}/complete", response_model=MovieNightResponse)
def mark_completed(
    movie_night_id: int,
    _admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
    hub: BroadcastChannel = Depends(get_event_hub),
) -> MovieNightResponse:
    try:
        night = complete_movie_night(db, hub, movie_night_id)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return map_movie_night_response(night)
