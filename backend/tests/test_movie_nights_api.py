import unittest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import patch
from uuid import uuid4

from fastapi.testclient import TestClient

from movienight.db.models import Movie
from movienight.db.session import get_db
from movienight.deps.auth import get_current_user
from movienight.deps.realtime import get_event_hub
from movienight.main import app
from movienight.realtime.hub import EventHub, EventKind
from movienight.services.errors import (
    MovieNightConflictError,
    MovieNightNotFoundError,
    NoCurrentMovieNightError,
)

from helpers import add_movie, add_movie_night, add_user, make_session_factory, record


class TestMovieNightsApi(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(app)
        app.dependency_overrides[get_db] = lambda: iter([object()])

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def _login(self, is_admin: bool) -> None:
        app.dependency_overrides[get_current_user] = lambda: SimpleNamespace(id=uuid4(), is_admin=is_admin)

    def test_schedule_requires_auth(self) -> None:
        response = self.client.post("/movie-nights", json={"starting_at": "2024-06-07T20:00:00Z"})
        self.assertEqual(response.status_code, 401)

    def test_schedule_requires_admin(self) -> None:
        self._login(is_admin=False)
        response = self.client.post("/movie-nights", json={"starting_at": "2024-06-07T20:00:00Z"})
        self.assertEqual(response.status_code, 403)

    def test_clear_votes_requires_admin(self) -> None:
        self._login(is_admin=False)
        response = self.client.post("/movie-nights/clear-votes")
        self.assertEqual(response.status_code, 403)

    def test_schedule_maps_conflict(self) -> None:
        self._login(is_admin=True)
        with patch(
            "movienight.api.movie_nights.create_movie_night",
            side_effect=MovieNightConflictError(),
        ):
            response = self.client.post("/movie-nights", json={"starting_at": "2024-06-07T20:00:00Z"})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["detail"]["error"]["code"], "CONFLICT")

    def test_assign_without_current_night_is_404(self) -> None:
        self._login(is_admin=True)
        with patch(
            "movienight.api.movie_nights.assign_movie_to_current_night",
            side_effect=NoCurrentMovieNightError(),
        ):
            response = self.client.post("/movie-nights/current/movies/3")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"]["error"]["message"], "No movie night found")

    def test_complete_missing_night_is_404(self) -> None:
        self._login(is_admin=True)
        with patch(
            "movienight.api.movie_nights.complete_movie_night",
            side_effect=MovieNightNotFoundError(8),
        ):
            response = self.client.post("/movie-nights/8/complete")
        self.assertEqual(response.status_code, 404)

    def test_clear_votes_reports_failure_as_false(self) -> None:
        self._login(is_admin=True)
        with patch("movienight.api.movie_nights.clear_all_votes", return_value=False):
            response = self.client.post("/movie-nights/clear-votes")

        self.assertEqual(response.status_code, 200)
        self.assertIs(response.json(), False)

    def test_patch_passes_only_sent_fields(self) -> None:
        self._login(is_admin=True)
        with patch("movienight.api.movie_nights.update_movie_night") as update, patch(
            "movienight.api.movie_nights.map_movie_night_response",
            return_value={
                "id": 4,
                "title": "Renamed",
                "starting_at": "2024-06-07T20:00:00Z",
                "completed": False,
                "created_at": "2024-06-01T10:00:00Z",
                "movies": [],
            },
        ):
            response = self.client.patch("/movie-nights/4", json={"title": "Renamed"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(update.call_args.args[2], 4)
        self.assertEqual(update.call_args.args[3], {"title": "Renamed"})


class TestMovieNightsApiWithDatabase(unittest.TestCase):
    def setUp(self) -> None:
        factory = make_session_factory()
        self.db = factory()
        self.hub = EventHub()

        def _db():
            db = factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _db
        app.dependency_overrides[get_event_hub] = lambda: self.hub
        self.admin = add_user(self.db, "admin", is_admin=True)
        app.dependency_overrides[get_current_user] = lambda: SimpleNamespace(id=self.admin.id, is_admin=True)
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.db.close()

    def test_next_is_null_when_nothing_scheduled(self) -> None:
        response = self.client.get("/movie-nights/next")
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json())

    def test_schedule_then_fetch_next(self) -> None:
        events = record(self.hub, EventKind.MOVIE_NIGHT_UPDATED)
        starting_at = (datetime.now(timezone.utc) + timedelta(days=3)).replace(microsecond=0)

        created = self.client.post("/movie-nights", json={"starting_at": starting_at.isoformat(), "title": "  "})
        upcoming = self.client.get("/movie-nights/next")

        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["title"], "Movie Night 1")
        self.assertEqual(upcoming.json()["id"], created.json()["id"])
        self.assertEqual(len(events), 1)

    def test_same_slot_twice_is_409(self) -> None:
        body = {"starting_at": "2031-01-02T20:00:00+00:00"}
        self.assertEqual(self.client.post("/movie-nights", json=body).status_code, 201)

        response = self.client.post("/movie-nights", json=body)

        self.assertEqual(response.status_code, 409)

    def test_assign_and_unassign(self) -> None:
        night = add_movie_night(self.db, datetime(2031, 1, 2, 20), title="Current")
        add_movie(self.db, 11, self.admin)
        night_events = record(self.hub, EventKind.MOVIE_NIGHT_UPDATED)

        assigned = self.client.post("/movie-nights/current/movies/11")
        removed = self.client.delete("/movie-nights/movies/11")

        self.assertEqual(assigned.status_code, 200)
        self.assertEqual(assigned.json()["movie_night_id"], night.id)
        self.assertEqual(removed.status_code, 200)
        self.assertIsNone(removed.json()["movie_night_id"])
        self.assertEqual(len(night_events), 1)

    def test_complete_marks_movies_watched(self) -> None:
        night = add_movie_night(self.db, datetime(2024, 1, 5, 20))
        add_movie(self.db, 21, self.admin, movie_night_id=night.id)

        response = self.client.post(f"/movie-nights/{night.id}/complete")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["completed"])
        self.assertTrue(response.json()["movies"][0]["watched"])

    def test_clear_votes_keeps_banned(self) -> None:
        add_movie(self.db, 1, self.admin, [self.admin])
        add_movie(self.db, 2, self.admin, minutes=1, banned=True)

        response = self.client.post("/movie-nights/clear-votes")

        self.assertIs(response.json(), True)
        self.db.expire_all()
        self.assertEqual([m.id for m in self.db.query(Movie).all()], [2])

    def test_list_all_nights(self) -> None:
        add_movie_night(self.db, datetime(2024, 1, 5, 20), title="old")
        add_movie_night(self.db, datetime(2024, 2, 5, 20), title="new")

        response = self.client.get("/movie-nights")

        self.assertEqual([n["title"] for n in response.json()], ["new", "old"])


if __name__ == "__main__":
    unittest.main()
