"""
In-process event hub
────────────────────
Fans out mutations to every listener currently registered for an event kind.

Delivery is synchronous, in registration order, at-most-once, and limited to
the current process: an event published by one server worker is invisible to
subscribers connected to another. Anything that needs cross-process fan-out
should implement ``BroadcastChannel`` on top of a real broker and be handed
to the app in place of ``EventHub``.

Sync route handlers run in FastAPI's threadpool while subscriptions live on
the event loop, so the listener registry is guarded by a lock. Listeners are
invoked outside the lock on a snapshot of the registry.
"""
import logging
import threading
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class EventKind(str, Enum):
    MOVIE_ADDED = "movie_added"
    MOVIE_VOTED = "movie_voted"
    MOVIE_NIGHT_UPDATED = "movie_night_updated"


class Subscription:
    """
    Handle returned by ``EventHub.subscribe``.

    ``unsubscribe()`` may be called any number of times; only the first call
    touches the registry. Usable as a context manager for scoped listening.
    """

    def __init__(self, hub: "EventHub", kind: EventKind, listener: Listener) -> None:
        self.hub = hub
        self.kind = kind
        self.listener = listener
        self._active = True
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
        self.hub._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()


class BroadcastChannel(Protocol):
    """What mutation handlers and the subscription gateway need from a hub."""

    def publish(self, kind: EventKind, payload: Any) -> int:
        ...

    def subscribe(self, kind: EventKind, listener: Listener) -> Subscription:
        ...


class EventHub:
    """Single-process implementation of ``BroadcastChannel``."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: dict[EventKind, list[Subscription]] = {kind: [] for kind in EventKind}

    def subscribe(self, kind: EventKind, listener: Listener) -> Subscription:
        kind = EventKind(kind)
        subscription = Subscription(self, kind, listener)
        with self._lock:
            # Copy-on-write so in-flight publishes keep iterating their snapshot.
            self._subscriptions[kind] = [*self._subscriptions[kind], subscription]
            count = len(self._subscriptions[kind])
        logger.debug("Listener added for %s (%d active)", kind.value, count)
        return subscription

    def publish(self, kind: EventKind, payload: Any) -> int:
        """
        Invoke every listener registered for *kind* with *payload*.

        Returns the number of listeners invoked. A listener that raises is
        logged and skipped; the remaining listeners still receive the event.
        """
        kind = EventKind(kind)
        with self._lock:
            snapshot = self._subscriptions[kind]

        delivered = 0
        for subscription in snapshot:
            if not subscription.active:
                continue
            try:
                subscription.listener(payload)
            except Exception:
                logger.exception("Listener for %s failed", kind.value)
                continue
            delivered += 1

        logger.debug("Published %s to %d listener(s)", kind.value, delivered)
        return delivered

    def listener_count(self, kind: EventKind) -> int:
        with self._lock:
            return len(self._subscriptions[EventKind(kind)])

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            current = self._subscriptions[subscription.kind]
            self._subscriptions[subscription.kind] = [s for s in current if s is not subscription]
            count = len(self._subscriptions[subscription.kind])
        logger.debug("Listener removed for %s (%d active)", subscription.kind.value, count)
