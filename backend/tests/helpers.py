"""Shared fixtures: in-memory database, row builders, fake metadata provider."""
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from movienight.db.models import Base, Movie, MovieNight, User, Vote
from movienight.realtime.hub import EventHub, EventKind
from movienight.schemas.movies import MovieResponse, VoteResponse

BASE_TIME = datetime(2024, 5, 1, 20, 0, 0)


def make_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def add_user(db, username: str = "alex", is_admin: bool = False) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        display_name=username.title(),
        password_hash="not-a-real-hash",
        is_admin=is_admin,
    )
    db.add(user)
    db.commit()
    return user


def add_users(db, count: int, prefix: str = "voter") -> list[User]:
    return [add_user(db, f"{prefix}{i}") for i in range(count)]


def add_movie(
    db,
    movie_id: int,
    submitter: User,
    voters=(),
    minutes: int = 0,
    **fields,
) -> Movie:
    movie = Movie(
        id=movie_id,
        title=fields.pop("title", f"Movie {movie_id}"),
        submitter_id=submitter.id,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        **fields,
    )
    for voter in voters:
        movie.votes.append(Vote(user_id=voter.id))
    db.add(movie)
    db.commit()
    return movie


def add_movie_night(db, starting_at: datetime, title: str = "Friday", completed: bool = False) -> MovieNight:
    night = MovieNight(title=title, starting_at=starting_at, completed=completed)
    db.add(night)
    db.commit()
    return night


def record(hub: EventHub, kind: EventKind) -> list:
    """Subscribe a list to *kind* and return it; it fills up as events arrive."""
    events: list = []
    hub.subscribe(kind, events.append)
    return events


def movie_snapshot(
    movie_id: int,
    votes: int = 0,
    minutes: int = 0,
    **fields,
) -> MovieResponse:
    """Client-side movie as it arrives from a page or a stream."""
    return MovieResponse(
        id=movie_id,
        title=fields.pop("title", f"Movie {movie_id}"),
        submitter_id=fields.pop("submitter_id", uuid4()),
        created_at=datetime(2024, 5, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes),
        votes=[VoteResponse(user_id=uuid4()) for _ in range(votes)],
        **fields,
    )


class FakeMetadataProvider:
    def __init__(self, *movies: dict, error: Exception | None = None) -> None:
        self.movies = {movie["id"]: movie for movie in movies}
        self.error = error
        self.lookups: list[int] = []

    async def get_movie(self, tmdb_id: int) -> dict | None:
        self.lookups.append(tmdb_id)
        if self.error is not None:
            raise self.error
        return self.movies.get(tmdb_id)

    async def search_movies(self, query: str, page: int = 1) -> list[dict]:
        if self.error is not None:
            raise self.error
        return [m for m in self.movies.values() if query.lower() in m["title"].lower()]


def tmdb_movie(movie_id: int, title: str = "Dune: Part Two") -> dict:
    return {
        "id": movie_id,
        "title": title,
        "overview": "Paul Atreides unites with the Fremen.",
        "poster_path": "/poster.jpg",
        "release_date": "2024-02-27",
    }
