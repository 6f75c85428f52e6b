"""
Movie request/response schemas.

``MovieResponse`` is the fully-hydrated movie every movie event carries:
the whole current entity, never a delta.
"""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class AddMovieRequest(BaseModel):
    """Payload for POST /movies: the TMDB id of the movie."""

    id: int = Field(ge=1)


class SetBannedRequest(BaseModel):
    banned: bool


class SubmitterResponse(BaseModel):
    name: str | None = None
    image: str | None = None


class VoteResponse(BaseModel):
    user_id: UUID
    name: str | None = None


class MovieSummaryResponse(BaseModel):
    """Movie without votes, as nested inside a movie night."""

    id: int
    title: str
    description: str | None = None
    image: str | None = None
    release_date: str | None = None
    banned: bool = False
    watched: bool = False
    movie_night_id: int | None = None
    submitter_id: UUID
    created_at: datetime


class MovieResponse(MovieSummaryResponse):
    votes: list[VoteResponse] = Field(default_factory=list)
    submitted_by: SubmitterResponse = Field(default_factory=SubmitterResponse)

    @property
    def vote_count(self) -> int:
        return len(self.votes)


class MoviePage(BaseModel):
    """One page of GET /movies, most-voted first."""

    items: list[MovieResponse]
    prev_cursor: str | None = None


class MovieMetadataResponse(BaseModel):
    """A TMDB search hit for the submission typeahead."""

    id: int
    title: str
    overview: str | None = None
    poster_path: str | None = None
    release_date: str | None = None
