"""
Movie night request/response schemas.
"""
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from movienight.schemas.movies import MovieSummaryResponse


class CreateMovieNightRequest(BaseModel):
    """Payload for POST /movie-nights. Title defaults to "Movie Night N"."""

    title: str | None = Field(default=None, max_length=200)
    starting_at: datetime

    @field_validator("title")
    @classmethod
    def blank_title_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class UpdateMovieNightRequest(BaseModel):
    """Partial patch; only fields present in the body are applied."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    starting_at: datetime | None = None
    completed: bool | None = None


class MovieNightResponse(BaseModel):
    id: int
    title: str
    starting_at: datetime
    completed: bool
    created_at: datetime
    movies: list[MovieSummaryResponse] = Field(default_factory=list)
