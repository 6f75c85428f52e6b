"""
Async client for the Movie Night API.

Wraps the calls the voting UI needs: list pages, single lookups, the two
vote/submit mutations, and the /events SSE streams. Streams raise
``StreamError`` on any interruption; callers treat that as "local state may
be stale" and refetch.
"""
import json
from collections.abc import AsyncIterator
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from movienight.realtime.hub import EventKind
from movienight.schemas.movie_nights import MovieNightResponse
from movienight.schemas.movies import MoviePage, MovieResponse

STREAM_PATHS: dict[EventKind, str] = {
    EventKind.MOVIE_ADDED: "/events/movies/added",
    EventKind.MOVIE_VOTED: "/events/movies/voted",
    EventKind.MOVIE_NIGHT_UPDATED: "/events/movie-nights",
}

DEFAULT_TIMEOUT_SECONDS = 10.0


class ApiError(Exception):
    """A request failed; ``message`` is what the UI shows in its toast."""

    def __init__(self, status_code: int, code: str, message: str) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"{status_code} {code}: {message}")


class StreamError(Exception):
    """An event stream broke, ended, or reported an error frame."""


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    code, message = "HTTP_ERROR", response.reason_phrase
    try:
        detail = response.json().get("detail")
    except ValueError:
        detail = None
    if isinstance(detail, dict) and isinstance(detail.get("error"), dict):
        code = detail["error"].get("code", code)
        message = detail["error"].get("message", message)
    elif isinstance(detail, str):
        message = detail
    raise ApiError(response.status_code, code, message)


async def iter_sse(lines: AsyncIterator[str]) -> AsyncIterator[tuple[str, Any]]:
    """
    Parse SSE lines into (event, decoded JSON data) pairs.

    A frame whose data is not valid JSON raises StreamError.
    """
    event, data = "message", []
    async for line in lines:
        if not line:
            if data:
                try:
                    decoded = json.loads("\n".join(data))
                except ValueError as exc:
                    raise StreamError(f"Malformed {event} frame") from exc
                yield event, decoded
            event, data = "message", []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if field == "event":
            event = value
        elif field == "data":
            data.append(value)


class MovieNightClient:
    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._http = http or httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=DEFAULT_TIMEOUT_SECONDS,
        )

    async def __aenter__(self) -> "MovieNightClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ── Movies ────────────────────────────────────────────────────────────────

    async def list_movies_page(self, cursor: str | None = None, take: int = 15) -> MoviePage:
        params: dict[str, Any] = {"take": take}
        if cursor:
            params["cursor"] = cursor
        response = await self._http.get("/movies", params=params)
        _raise_for_status(response)
        return MoviePage.model_validate(response.json())

    async def find_movie(self, movie_id: int) -> MovieResponse | None:
        response = await self._http.get(f"/movies/{movie_id}")
        _raise_for_status(response)
        body = response.json()
        return MovieResponse.model_validate(body) if body is not None else None

    async def add_movie(self, movie_id: int) -> MovieResponse:
        response = await self._http.post("/movies", json={"id": movie_id})
        _raise_for_status(response)
        return MovieResponse.model_validate(response.json())

    async def toggle_vote(self, movie_id: int) -> None:
        response = await self._http.post(f"/movies/{movie_id}/vote")
        _raise_for_status(response)

    # ── Movie nights ──────────────────────────────────────────────────────────

    async def get_next_movie_night(self) -> MovieNightResponse | None:
        response = await self._http.get("/movie-nights/next")
        _raise_for_status(response)
        body = response.json()
        return MovieNightResponse.model_validate(body) if body is not None else None

    # ── Streams ───────────────────────────────────────────────────────────────

    async def stream(
        self,
        kind: EventKind,
        movie_id: int | None = None,
    ) -> AsyncIterator[BaseModel]:
        """
        Yield pushed entities for one event kind until the stream breaks.

        Always ends by raising StreamError: the server never closes a healthy
        stream, so an end of stream means events may have been missed.
        """
        kind = EventKind(kind)
        model = MovieNightResponse if kind is EventKind.MOVIE_NIGHT_UPDATED else MovieResponse
        params = {"movie_id": movie_id} if movie_id is not None else {}

        try:
            async with self._http.stream(
                "GET", STREAM_PATHS[kind], params=params, timeout=None
            ) as response:
                if response.status_code != 200:
                    raise StreamError(f"{kind.value} stream refused with status {response.status_code}")
                async for event, data in iter_sse(response.aiter_lines()):
                    if event == "error":
                        message = data.get("message") if isinstance(data, dict) else None
                        raise StreamError(message or "stream error")
                    try:
                        item = model.model_validate(data)
                    except ValidationError as exc:
                        raise StreamError(f"Unexpected {kind.value} payload") from exc
                    yield item
        except httpx.HTTPError as exc:
            raise StreamError(f"{kind.value} stream interrupted") from exc

        raise StreamError(f"{kind.value} stream closed by server")
