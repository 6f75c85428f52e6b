"""
TMDB metadata provider
──────────────────────
Wraps the two TMDB v3 calls the app needs:

  * ``get_movie``     — resolve a submitted id into title/overview/poster.
  * ``search_movies`` — typeahead for the submission form.

Submissions store TMDB's own id as the movie's primary key, so nothing here
generates ids locally.
"""
from typing import Protocol

import httpx

from movienight.core.config import settings

TMDB_BASE_URL = "https://api.themoviedb.org/3"
TMDB_TIMEOUT_SECONDS = 10.0


class TMDBConfigError(Exception):
    """Raised when TMDB client is used without an API key."""


class TMDBUpstreamError(Exception):
    """Raised for non-recoverable TMDB request/response errors."""


class MetadataProvider(Protocol):
    async def get_movie(self, tmdb_id: int) -> dict | None:
        ...

    async def search_movies(self, query: str, page: int = 1) -> list[dict]:
        ...


class TMDBService:
    """
    Thin async wrapper around TMDB v3 API.
    Uses httpx so lookups do not block the event loop.
    """

    def __init__(self, api_key: str | None = None) -> None:
        self.api_key = api_key or settings.TMDB_API_KEY
        if not self.api_key:
            raise TMDBConfigError(
                "TMDB_API_KEY is not set. "
                "Add it to your .env file or pass it explicitly."
            )

    async def _get(self, path: str, params: dict) -> httpx.Response:
        query = {"api_key": self.api_key, "language": "en-US", **params}
        try:
            async with httpx.AsyncClient(timeout=TMDB_TIMEOUT_SECONDS) as client:
                return await client.get(f"{TMDB_BASE_URL}{path}", params=query)
        except httpx.RequestError as exc:
            raise TMDBUpstreamError(f"TMDB request to {path} failed") from exc

    async def get_movie(self, tmdb_id: int) -> dict | None:
        """
        Fetch one movie by TMDB id.

        Returns None if TMDB does not know the id.
        """
        response = await self._get(f"/movie/{tmdb_id}", {})
        if response.status_code == 404:
            return None
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TMDBUpstreamError(
                f"TMDB details failed with status {exc.response.status_code}"
            ) from exc
        return self._map_movie(response.json())

    async def search_movies(self, query: str, page: int = 1) -> list[dict]:
        """Search TMDB for movies whose title matches *query*."""
        cleaned_query = query.strip()
        if not cleaned_query:
            return []

        response = await self._get(
            "/search/movie",
            {"query": cleaned_query, "page": page, "include_adult": "false"},
        )
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TMDBUpstreamError(
                f"TMDB search failed with status {exc.response.status_code}"
            ) from exc

        mapped: list[dict] = []
        for raw in response.json().get("results", []):
            movie = self._map_movie(raw)
            if movie is not None:
                mapped.append(movie)
        return mapped

    def _map_movie(self, raw: dict) -> dict | None:
        """Normalize a TMDB movie payload (details or search row)."""
        tmdb_id = raw.get("id")
        if not tmdb_id:
            return None
        return {
            "id": int(tmdb_id),
            "title": raw.get("title") or raw.get("original_title") or "Unknown Movie",
            "overview": raw.get("overview"),
            "poster_path": raw.get("poster_path"),
            "release_date": raw.get("release_date") or None,
        }
