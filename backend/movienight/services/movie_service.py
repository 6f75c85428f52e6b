"""
Movie business logic: submissions, the voting list and vote toggles.

Every successful mutation publishes the whole, freshly loaded movie on the
event hub so clients can overwrite their copy without merging deltas.
"""
import base64
import binascii
import json
import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, delete, func, insert, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from movienight.db.models import Movie, User, Vote
from movienight.realtime.hub import BroadcastChannel, EventKind
from movienight.schemas.movies import (
    MoviePage,
    MovieResponse,
    MovieSummaryResponse,
    SubmitterResponse,
    VoteResponse,
)
from movienight.services.errors import (
    DuplicateMovieError,
    MetadataProviderError,
    MovieMetadataNotFoundError,
    MovieNotFoundError,
    VoteConflictError,
)
from movienight.services.tmdb_sync import MetadataProvider, TMDBUpstreamError

logger = logging.getLogger(__name__)


class InvalidCursorError(ValueError):
    """Raised when a pagination cursor was not produced by list_movies_page."""


# ── Serialization ─────────────────────────────────────────────────────────────

def _display_name(user: User | None) -> str | None:
    if user is None:
        return None
    return user.display_name or user.username


def map_movie_summary(movie: Movie) -> MovieSummaryResponse:
    return MovieSummaryResponse(
        id=movie.id,
        title=movie.title,
        description=movie.description,
        image=movie.image,
        release_date=movie.release_date,
        banned=bool(movie.banned),
        watched=bool(movie.watched),
        movie_night_id=movie.movie_night_id,
        submitter_id=movie.submitter_id,
        created_at=movie.created_at,
    )


def map_movie_response(movie: Movie) -> MovieResponse:
    """Hydrate a movie with its votes and submitter display fields."""
    submitter = movie.submitter
    return MovieResponse(
        **map_movie_summary(movie).model_dump(),
        votes=[
            VoteResponse(user_id=vote.user_id, name=_display_name(vote.user))
            for vote in movie.votes
        ],
        submitted_by=SubmitterResponse(
            name=_display_name(submitter),
            image=submitter.avatar_url if submitter else None,
        ),
    )


# ── Cursor helpers ────────────────────────────────────────────────────────────

def encode_cursor(vote_count: int, created_at: datetime, movie_id: int) -> str:
    """Opaque keyset cursor: position of the last movie on a page."""
    raw = json.dumps([vote_count, created_at.isoformat(), movie_id]).encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def decode_cursor(cursor: str) -> tuple[int, datetime, int]:
    padded = cursor + "=" * (-len(cursor) % 4)
    try:
        vote_count, created_at, movie_id = json.loads(base64.urlsafe_b64decode(padded))
        return int(vote_count), datetime.fromisoformat(created_at), int(movie_id)
    except (binascii.Error, UnicodeDecodeError, TypeError, ValueError) as exc:
        raise InvalidCursorError("Malformed pagination cursor") from exc


# ── Queries ───────────────────────────────────────────────────────────────────

def _vote_count_expr():
    return (
        select(func.count(Vote.user_id))
        .where(Vote.movie_id == Movie.id)
        .correlate(Movie)
        .scalar_subquery()
    )


def _hydrated_movies(db: Session):
    return db.query(Movie).options(
        selectinload(Movie.votes).joinedload(Vote.user),
        joinedload(Movie.submitter),
    )


def _get_movie_or_raise(db: Session, movie_id: int) -> Movie:
    movie = _hydrated_movies(db).filter(Movie.id == movie_id).first()
    if movie is None:
        raise MovieNotFoundError(movie_id)
    return movie


def _find_vote(db: Session, movie_id: int, user_id: UUID) -> Vote | None:
    return (
        db.query(Vote)
        .filter(Vote.movie_id == movie_id, Vote.user_id == user_id)
        .first()
    )


def list_movies_page(
    db: Session,
    cursor: str | None = None,
    take: int = 15,
) -> MoviePage:
    """
    One page of the voting list: most votes first, newer first on ties,
    then higher id.

    ``prev_cursor`` resumes strictly after the last movie of this page and
    is None once the list is exhausted. Pages are a keyset over live vote
    counts, so a vote cast between two page fetches can make a movie show up
    twice or be skipped. Banned and watched movies are included; the client
    decides what to show.
    """
    vote_count = _vote_count_expr()
    query = db.query(Movie, vote_count.label("vote_count")).options(
        selectinload(Movie.votes).joinedload(Vote.user),
        joinedload(Movie.submitter),
    )

    if cursor:
        after_votes, after_created, after_id = decode_cursor(cursor)
        query = query.filter(
            or_(
                vote_count < after_votes,
                and_(vote_count == after_votes, Movie.created_at < after_created),
                and_(
                    vote_count == after_votes,
                    Movie.created_at == after_created,
                    Movie.id < after_id,
                ),
            )
        )

    rows = (
        query.order_by(vote_count.desc(), Movie.created_at.desc(), Movie.id.desc())
        .limit(take + 1)
        .all()
    )

    prev_cursor = None
    if len(rows) > take:
        rows = rows[:take]
        last_movie, last_count = rows[-1]
        prev_cursor = encode_cursor(last_count, last_movie.created_at, last_movie.id)

    return MoviePage(
        items=[map_movie_response(movie) for movie, _ in rows],
        prev_cursor=prev_cursor,
    )


def find_movie(db: Session, movie_id: int) -> Movie | None:
    return _hydrated_movies(db).filter(Movie.id == movie_id).first()


def current_submission_of(db: Session, user_id: UUID) -> Movie | None:
    """
    The user's most recent submission, or None.

    Store failures are logged and reported as "no submission".
    """
    try:
        return (
            db.query(Movie)
            .filter(Movie.submitter_id == user_id)
            .order_by(Movie.created_at.desc())
            .first()
        )
    except SQLAlchemyError:
        logger.exception("Couldn't find movie for user %s", user_id)
        db.rollback()
        return None


async def search_movies(provider: MetadataProvider, query: str) -> list[dict]:
    try:
        return await provider.search_movies(query)
    except TMDBUpstreamError as exc:
        raise MetadataProviderError("Movie search failed") from exc


# ── Mutations ─────────────────────────────────────────────────────────────────

async def add_movie(
    db: Session,
    hub: BroadcastChannel,
    provider: MetadataProvider,
    user_id: UUID,
    movie_id: int,
) -> Movie:
    """
    Submit a movie by TMDB id, with the submitter's vote already cast.

    Raises MovieMetadataNotFoundError if TMDB does not know the id and
    DuplicateMovieError if the movie was already submitted.
    """
    try:
        metadata = await provider.get_movie(movie_id)
    except TMDBUpstreamError as exc:
        raise MetadataProviderError("Movie metadata lookup failed") from exc
    if metadata is None:
        raise MovieMetadataNotFoundError(movie_id)

    if db.get(Movie, metadata["id"]) is not None:
        raise DuplicateMovieError(movie_id)

    movie = Movie(
        id=metadata["id"],
        title=metadata["title"],
        description=metadata.get("overview"),
        image=metadata.get("poster_path"),
        release_date=metadata.get("release_date"),
        submitter_id=user_id,
    )
    movie.votes.append(Vote(user_id=user_id))
    db.add(movie)

    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race with another submission of the same movie.
        db.rollback()
        raise DuplicateMovieError(movie_id) from exc

    movie = _get_movie_or_raise(db, movie.id)
    logger.info("User %s submitted movie %s (%s)", user_id, movie.id, movie.title)
    hub.publish(EventKind.MOVIE_ADDED, map_movie_response(movie))
    return movie


def toggle_vote(
    db: Session,
    hub: BroadcastChannel,
    user_id: UUID,
    movie_id: int,
) -> None:
    """
    Cast the user's vote for a movie, or retract it if already cast.

    Read-then-write: two concurrent toggles by the same user can both see
    no vote. The (movie_id, user_id) primary key rejects the second insert,
    which surfaces as VoteConflictError.
    """
    movie = _get_movie_or_raise(db, movie_id)

    if _find_vote(db, movie_id, user_id) is not None:
        db.execute(
            delete(Vote).where(Vote.movie_id == movie_id, Vote.user_id == user_id)
        )
        db.commit()
    else:
        try:
            db.execute(insert(Vote).values(movie_id=movie_id, user_id=user_id))
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise VoteConflictError("Your vote for this movie was already recorded") from exc

    db.expire(movie, ["votes"])
    hub.publish(EventKind.MOVIE_VOTED, map_movie_response(movie))


def set_movie_banned(
    db: Session,
    hub: BroadcastChannel,
    movie_id: int,
    banned: bool,
) -> Movie:
    """Ban or unban a movie. Published on the voted stream, which clients upsert."""
    movie = _get_movie_or_raise(db, movie_id)
    movie.banned = banned
    db.commit()
    logger.info("Movie %s banned=%s", movie_id, banned)
    hub.publish(EventKind.MOVIE_VOTED, map_movie_response(movie))
    return movie
