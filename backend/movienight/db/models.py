"""
SQLAlchemy ORM models.

Column names and constraints mirror alembic/versions/0001_initial_schema.py.
The composite primary key on votes is what arbitrates concurrent vote
toggles; handlers rely on it instead of in-process locking.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, relationship


# ── Base ──────────────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    pass


# ── Timestamp helper ──────────────────────────────────────────────────────────

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Models ────────────────────────────────────────────────────────────────────

class User(Base):
    """
    Application user.

    ``display_name`` and ``avatar_url`` are the submitter display fields
    carried by every movie payload.
    """
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(32), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    display_name = Column(String(60), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    password_hash = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    submissions = relationship("Movie", back_populates="submitter")
    votes = relationship("Vote", back_populates="user", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r}>"


class MovieNight(Base):
    """
    A scheduled movie night.

    Movies are assigned through ``Movie.movie_night_id``; there is no join
    table. ``starting_at`` is unique so two nights cannot share a slot.
    """
    __tablename__ = "movie_nights"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    starting_at = Column(DateTime(timezone=True), unique=True, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    movies = relationship(
        "Movie",
        back_populates="movie_night",
        order_by="Movie.created_at",
    )

    def __repr__(self) -> str:
        return f"<MovieNight id={self.id} title={self.title!r} starting_at={self.starting_at}>"


class Movie(Base):
    """
    A submitted movie suggestion.

    The primary key is the TMDB id of the movie, so submitting the same
    movie twice fails on the key rather than creating a second row.
    """
    __tablename__ = "movies"

    id = Column(Integer, primary_key=True, autoincrement=False)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    image = Column(String(500), nullable=True)
    release_date = Column(String(32), nullable=True)
    banned = Column(Boolean, default=False, nullable=False)
    watched = Column(Boolean, default=False, nullable=False)
    submitter_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    movie_night_id = Column(
        Integer,
        ForeignKey("movie_nights.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)

    submitter = relationship("User", back_populates="submissions")
    movie_night = relationship("MovieNight", back_populates="movies")
    votes = relationship(
        "Vote",
        back_populates="movie",
        cascade="all, delete-orphan",
        order_by="Vote.created_at",
    )

    def __repr__(self) -> str:
        return f"<Movie id={self.id} title={self.title!r} votes={len(self.votes)}>"


class Vote(Base):
    """One user's endorsement of one movie. Toggled, never edited."""
    __tablename__ = "votes"

    movie_id = Column(
        Integer,
        ForeignKey("movies.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    movie = relationship("Movie", back_populates="votes")
    user = relationship("User", back_populates="votes")
