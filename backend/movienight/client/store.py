"""
Client-side reconciliation of the voting list.

``MovieListStore`` keeps one map of movies fed by two independent sources:
pages fetched on demand (most-voted first, then older pages via the
cursor) and the live add/vote streams. Both go through ``merge``, which
overwrites by id with whatever arrived last and re-sorts everything, so a
movie can never appear twice.

What is stored is not what is shown: ``visible`` hides watched movies from
everyone and banned movies from non-admins.
"""
import logging
from collections.abc import AsyncIterable, Awaitable, Callable, Iterable

import httpx

from movienight.client.api import ApiError, StreamError
from movienight.schemas.movie_nights import MovieNightResponse
from movienight.schemas.movies import MoviePage, MovieResponse

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 15

FetchPage = Callable[[str | None, int], Awaitable[MoviePage]]
FetchNextNight = Callable[[], Awaitable[MovieNightResponse | None]]


def sort_key(movie: MovieResponse) -> tuple:
    """Most votes first; ties go to the newer submission, then the higher id."""
    return (movie.vote_count, movie.created_at, movie.id)


class MovieListStore:
    def __init__(self, fetch_page: FetchPage, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self._fetch_page = fetch_page
        self.page_size = page_size
        self._by_id: dict[int, MovieResponse] = {}
        self._sorted: list[MovieResponse] = []
        self._cursor: str | None = None
        self._has_more = False
        self._loaded = False
        self._loading = False
        # Bumped on invalidate so a page requested before it is discarded.
        self._generation = 0

    # ── Reading ───────────────────────────────────────────────────────────────

    @property
    def movies(self) -> list[MovieResponse]:
        """Every stored movie, sorted, including ones ``visible`` hides."""
        return list(self._sorted)

    def visible(self, viewer_is_admin: bool = False) -> list[MovieResponse]:
        return [
            movie
            for movie in self._sorted
            if not movie.watched and (viewer_is_admin or not movie.banned)
        ]

    def get(self, movie_id: int) -> MovieResponse | None:
        return self._by_id.get(movie_id)

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def can_load_more(self) -> bool:
        return self._loaded and self._has_more and not self._loading

    # ── Writing ───────────────────────────────────────────────────────────────

    def merge(self, incoming: Iterable[MovieResponse]) -> None:
        """Overwrite each incoming movie by id, then re-sort the whole view."""
        for movie in incoming:
            self._by_id[movie.id] = movie
        self._sorted = sorted(self._by_id.values(), key=sort_key, reverse=True)

    async def load_first_page(self) -> None:
        await self._load(None)

    async def load_more(self) -> bool:
        """Fetch the next page. Returns False if busy or nothing is left."""
        if not self.can_load_more:
            return False
        await self._load(self._cursor)
        return True

    async def invalidate(self) -> None:
        """Drop everything and fetch page one again."""
        self._generation += 1
        self._by_id.clear()
        self._sorted = []
        self._cursor = None
        self._has_more = False
        self._loaded = False
        await self.load_first_page()

    async def follow(self, stream: AsyncIterable[MovieResponse]) -> None:
        """
        Merge every movie the stream pushes.

        When the stream fails the store may have missed events, so it
        invalidates and refetches instead of raising. A refetch that fails
        is logged and leaves the store empty until the next load. Callers
        reconnect by calling ``follow`` again with a new stream.
        """
        try:
            async for movie in stream:
                self.merge([movie])
        except (StreamError, httpx.HTTPError) as exc:
            logger.warning("Movie stream failed, refetching: %s", exc)
            try:
                await self.invalidate()
            except (ApiError, httpx.HTTPError):
                logger.exception("Refetching movies failed")

    async def _load(self, cursor: str | None) -> None:
        generation = self._generation
        self._loading = True
        try:
            page = await self._fetch_page(cursor, self.page_size)
        finally:
            if generation == self._generation:
                self._loading = False

        if generation != self._generation:
            return
        self.merge(page.items)
        self._cursor = page.prev_cursor
        self._has_more = page.prev_cursor is not None
        self._loaded = True


class NextMovieNightStore:
    """The upcoming movie night, kept current from the movie night stream."""

    def __init__(self, fetch_next: FetchNextNight) -> None:
        self._fetch_next = fetch_next
        self.current: MovieNightResponse | None = None

    async def refresh(self) -> None:
        self.current = await self._fetch_next()

    def apply_update(self, night: MovieNightResponse) -> bool:
        """Replace the current night with *night* if it is the same night."""
        if self.current is None or night.id != self.current.id:
            return False
        self.current = night
        return True

    async def follow(self, stream: AsyncIterable[MovieNightResponse]) -> None:
        try:
            async for night in stream:
                self.apply_update(night)
        except (StreamError, httpx.HTTPError) as exc:
            logger.warning("Movie night stream failed, refetching: %s", exc)
            try:
                await self.refresh()
            except (ApiError, httpx.HTTPError):
                logger.exception("Refetching the next movie night failed")
