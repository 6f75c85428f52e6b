"""
Subscription gateway
────────────────────
Binds one long-lived client connection to the event hub.

``SubscriptionChannel`` registers a hub listener on enter and releases it on
exit, whatever the exit path (client disconnect, error, task cancellation).
Events published while nobody is connected are not buffered; a client that
reconnects re-fetches instead of replaying.

``event_stream`` turns a channel into Server-Sent Events frames for a
``StreamingResponse``.
"""
import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from pydantic import BaseModel

from movienight.realtime.hub import BroadcastChannel, EventKind, Subscription

logger = logging.getLogger(__name__)

Predicate = Callable[[Any], bool]

_CLOSED = object()


class SubscriptionClosedError(Exception):
    """Raised when a closed channel is entered again."""


class SubscriptionChannel:
    """
    Async context manager + async iterator over one event kind.

        async with SubscriptionChannel(hub, EventKind.MOVIE_VOTED) as channel:
            async for movie in channel:
                ...

    The hub may publish from any thread; payloads are handed to the owning
    event loop with ``call_soon_threadsafe``.
    """

    def __init__(
        self,
        hub: BroadcastChannel,
        kind: EventKind,
        predicate: Predicate | None = None,
    ) -> None:
        self.hub = hub
        self.kind = EventKind(kind)
        self.predicate = predicate
        self._queue: asyncio.Queue = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._subscription: Subscription | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> "SubscriptionChannel":
        self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def open(self) -> None:
        if self._closed:
            raise SubscriptionClosedError(f"{self.kind.value} channel already closed")
        if self._subscription is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._subscription = self.hub.subscribe(self.kind, self._on_event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self._subscription.unsubscribe()
        self._queue.put_nowait(_CLOSED)

    def _on_event(self, payload: Any) -> None:
        if self._closed:
            return
        if self.predicate is not None and not self.predicate(payload):
            return
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, payload)
        except RuntimeError:
            # Loop already shut down; the channel is on its way out.
            logger.debug("Dropped %s event for a stopped loop", self.kind.value)

    def __aiter__(self) -> "SubscriptionChannel":
        return self

    async def __anext__(self) -> Any:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


def movie_filter(movie_id: int | None) -> Predicate | None:
    """Predicate keeping only events for *movie_id*; None means no filtering."""
    if movie_id is None:
        return None

    def _matches(payload: Any) -> bool:
        return getattr(payload, "id", None) == movie_id

    return _matches


def _jsonable(payload: Any) -> Any:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    return payload


def format_sse(event: str, data: Any) -> str:
    """Encode one Server-Sent Events frame."""
    body = json.dumps(_jsonable(data), separators=(",", ":"))
    return f"event: {event}\ndata: {body}\n\n"


async def event_stream(channel: SubscriptionChannel) -> AsyncIterator[str]:
    """
    Yield SSE frames for every event the channel receives.

    The listener is released when the generator finishes, is closed, or is
    cancelled by the server on client disconnect. A payload that cannot be
    encoded ends the stream with one ``error`` frame so the client knows to
    re-fetch.
    """
    async with channel:
        # Comment frame so headers flush before the first event.
        yield ": connected\n\n"
        async for payload in channel:
            try:
                frame = format_sse(channel.kind.value, payload)
            except (TypeError, ValueError) as exc:
                logger.exception("Could not encode %s event", channel.kind.value)
                yield format_sse("error", {"code": "INTERNAL", "message": str(exc)})
                return
            yield frame
