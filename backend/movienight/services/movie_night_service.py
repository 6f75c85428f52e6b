"""
Movie night business logic: scheduling, assignment and completion.

Mutations that change a night publish the whole night (with its movies) on
``EventKind.MOVIE_NIGHT_UPDATED``. Two operations publish
nothing: ``unassign_movie`` and ``clear_all_votes``; callers refetch.
"""
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from movienight.db.models import Movie, MovieNight, Vote
from movienight.realtime.hub import BroadcastChannel, EventKind
from movienight.schemas.movie_nights import MovieNightResponse
from movienight.services.errors import (
    MovieNightConflictError,
    MovieNightNotFoundError,
    MovieNotFoundError,
    NoCurrentMovieNightError,
)
from movienight.services.movie_service import map_movie_summary

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "starting_at", "completed")


def map_movie_night_response(night: MovieNight) -> MovieNightResponse:
    return MovieNightResponse(
        id=night.id,
        title=night.title,
        starting_at=night.starting_at,
        completed=bool(night.completed),
        created_at=night.created_at,
        movies=[map_movie_summary(movie) for movie in night.movies],
    )


def _movie_nights(db: Session):
    return db.query(MovieNight).options(selectinload(MovieNight.movies))


def _get_movie_night_or_raise(db: Session, movie_night_id: int) -> MovieNight:
    night = _movie_nights(db).filter(MovieNight.id == movie_night_id).first()
    if night is None:
        raise MovieNightNotFoundError(movie_night_id)
    return night


def _publish(hub: BroadcastChannel, night: MovieNight) -> None:
    hub.publish(EventKind.MOVIE_NIGHT_UPDATED, map_movie_night_response(night))


def _commit_schedule(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Movie night schedule conflict: %s", exc.orig)
        raise MovieNightConflictError() from exc


# ── Queries ───────────────────────────────────────────────────────────────────

def get_next_movie_night(db: Session, now: datetime | None = None) -> MovieNight | None:
    """
    The current movie night: earliest by start time among nights that are
    still upcoming or not yet completed.
    """
    now = now or datetime.now(timezone.utc)
    return (
        _movie_nights(db)
        .filter(or_(MovieNight.starting_at >= now, MovieNight.completed.is_(False)))
        .order_by(MovieNight.starting_at.asc())
        .first()
    )


def list_movie_nights(db: Session) -> list[MovieNight]:
    return _movie_nights(db).order_by(MovieNight.starting_at.desc()).all()


# ── Mutations ─────────────────────────────────────────────────────────────────

def create_movie_night(
    db: Session,
    hub: BroadcastChannel,
    starting_at: datetime,
    title: str | None = None,
) -> MovieNight:
    """Schedule a night; untitled nights are numbered "Movie Night N"."""
    if title is None:
        existing = db.execute(select(func.count(MovieNight.id))).scalar_one()
        title = f"Movie Night {existing + 1}"

    night = MovieNight(title=title, starting_at=starting_at)
    db.add(night)
    _commit_schedule(db)

    night = _get_movie_night_or_raise(db, night.id)
    logger.info("Scheduled %r at %s", night.title, night.starting_at)
    _publish(hub, night)
    return night


def update_movie_night(
    db: Session,
    hub: BroadcastChannel,
    movie_night_id: int,
    changes: dict[str, Any],
) -> MovieNight:
    """Apply a partial patch of title / starting_at / completed."""
    night = _get_movie_night_or_raise(db, movie_night_id)
    for field in UPDATABLE_FIELDS:
        if field in changes and changes[field] is not None:
            setattr(night, field, changes[field])
    _commit_schedule(db)

    _publish(hub, night)
    return night


def assign_movie_to_current_night(
    db: Session,
    hub: BroadcastChannel,
    movie_id: int,
) -> Movie:
    """
    Point a movie at the current night and publish the night.

    No movie-level event is published; clients learn about the assignment
    from the night update, or from the movie_night_id on later movie events.
    """
    night = get_next_movie_night(db)
    if night is None:
        raise NoCurrentMovieNightError()

    movie = db.get(Movie, movie_id)
    if movie is None:
        raise MovieNotFoundError(movie_id)

    movie.movie_night_id = night.id
    db.commit()
    db.expire(night, ["movies"])

    logger.info("Movie %s assigned to movie night %s", movie_id, night.id)
    _publish(hub, night)
    return movie


def unassign_movie(db: Session, movie_id: int) -> Movie:
    """Clear a movie's night pointer. Publishes nothing; views must refetch."""
    movie = db.get(Movie, movie_id)
    if movie is None:
        raise MovieNotFoundError(movie_id)
    movie.movie_night_id = None
    db.commit()
    return movie


def complete_movie_night(
    db: Session,
    hub: BroadcastChannel,
    movie_night_id: int,
) -> MovieNight:
    """Mark a night completed and every still-unwatched movie in it watched."""
    night = _get_movie_night_or_raise(db, movie_night_id)
    night.completed = True
    for movie in night.movies:
        if not movie.watched:
            movie.watched = True
    db.commit()

    logger.info("Movie night %s completed with %d movie(s)", night.id, len(night.movies))
    _publish(hub, night)
    return night


def clear_all_votes(db: Session) -> bool:
    """
    Delete every movie that is not banned, along with its votes.

    Returns False if the store rejects the wipe. Publishes nothing; clients
    are expected to refetch from page one.
    """
    doomed = select(Movie.id).where(Movie.banned.is_(False))
    try:
        db.execute(delete(Vote).where(Vote.movie_id.in_(doomed)))
        result = db.execute(delete(Movie).where(Movie.banned.is_(False)))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Clearing movies failed")
        return False

    logger.info("Cleared %d movie(s)", result.rowcount)
    return True
