import threading
import unittest

from movienight.realtime.hub import EventHub, EventKind


class TestEventHub(unittest.TestCase):
    def setUp(self) -> None:
        self.hub = EventHub()

    def test_publish_reaches_listeners_in_registration_order(self) -> None:
        calls: list[tuple[str, object]] = []
        self.hub.subscribe(EventKind.MOVIE_VOTED, lambda p: calls.append(("first", p)))
        self.hub.subscribe(EventKind.MOVIE_VOTED, lambda p: calls.append(("second", p)))

        delivered = self.hub.publish(EventKind.MOVIE_VOTED, {"id": 7})

        self.assertEqual(delivered, 2)
        self.assertEqual(calls, [("first", {"id": 7}), ("second", {"id": 7})])

    def test_publish_without_listeners_is_a_noop(self) -> None:
        self.assertEqual(self.hub.publish(EventKind.MOVIE_ADDED, {"id": 1}), 0)

    def test_kinds_are_isolated(self) -> None:
        added: list = []
        self.hub.subscribe(EventKind.MOVIE_ADDED, added.append)

        self.hub.publish(EventKind.MOVIE_VOTED, {"id": 1})
        self.hub.publish(EventKind.MOVIE_NIGHT_UPDATED, {"id": 2})

        self.assertEqual(added, [])

    def test_accepts_kind_values(self) -> None:
        received: list = []
        self.hub.subscribe("movie_added", received.append)
        self.hub.publish(EventKind.MOVIE_ADDED, "payload")
        self.assertEqual(received, ["payload"])

    def test_unsubscribe_is_idempotent(self) -> None:
        keep = self.hub.subscribe(EventKind.MOVIE_VOTED, lambda p: None)
        drop = self.hub.subscribe(EventKind.MOVIE_VOTED, lambda p: None)
        self.assertEqual(self.hub.listener_count(EventKind.MOVIE_VOTED), 2)

        drop.unsubscribe()
        drop.unsubscribe()

        self.assertEqual(self.hub.listener_count(EventKind.MOVIE_VOTED), 1)
        self.assertFalse(drop.active)
        self.assertTrue(keep.active)

    def test_unsubscribed_listener_receives_nothing(self) -> None:
        received: list = []
        subscription = self.hub.subscribe(EventKind.MOVIE_ADDED, received.append)
        subscription.unsubscribe()

        self.hub.publish(EventKind.MOVIE_ADDED, "late")

        self.assertEqual(received, [])

    def test_subscription_as_context_manager(self) -> None:
        with self.hub.subscribe(EventKind.MOVIE_NIGHT_UPDATED, lambda p: None):
            self.assertEqual(self.hub.listener_count(EventKind.MOVIE_NIGHT_UPDATED), 1)
        self.assertEqual(self.hub.listener_count(EventKind.MOVIE_NIGHT_UPDATED), 0)

    def test_failing_listener_does_not_block_the_rest(self) -> None:
        received: list = []

        def broken(payload: object) -> None:
            raise RuntimeError("socket gone")

        self.hub.subscribe(EventKind.MOVIE_VOTED, broken)
        self.hub.subscribe(EventKind.MOVIE_VOTED, received.append)

        with self.assertLogs("movienight.realtime.hub", level="ERROR"):
            delivered = self.hub.publish(EventKind.MOVIE_VOTED, "vote")

        self.assertEqual(received, ["vote"])
        self.assertEqual(delivered, 1)

    def test_listener_may_unsubscribe_during_publish(self) -> None:
        received: list = []
        holder: dict = {}

        def once(payload: object) -> None:
            received.append(("once", payload))
            holder["subscription"].unsubscribe()

        holder["subscription"] = self.hub.subscribe(EventKind.MOVIE_ADDED, once)
        self.hub.subscribe(EventKind.MOVIE_ADDED, lambda p: received.append(("always", p)))

        self.hub.publish(EventKind.MOVIE_ADDED, 1)
        self.hub.publish(EventKind.MOVIE_ADDED, 2)

        self.assertEqual(received, [("once", 1), ("always", 1), ("always", 2)])
        self.assertEqual(self.hub.listener_count(EventKind.MOVIE_ADDED), 1)

    def test_concurrent_subscribe_and_unsubscribe_leaves_no_listeners(self) -> None:
        def churn() -> None:
            for _ in range(200):
                subscription = self.hub.subscribe(EventKind.MOVIE_VOTED, lambda p: None)
                self.hub.publish(EventKind.MOVIE_VOTED, None)
                subscription.unsubscribe()

        threads = [threading.Thread(target=churn) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(self.hub.listener_count(EventKind.MOVIE_VOTED), 0)


if __name__ == "__main__":
    unittest.main()
