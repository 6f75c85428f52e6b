import unittest
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import patch
from uuid import uuid4

from fastapi import HTTPException
from fastapi.testclient import TestClient
from jose import jwt
from pydantic import ValidationError

from movienight.core.config import settings
from movienight.core.security import create_access_token, decode_access_token
from movienight.db.session import get_db
from movienight.deps.auth import get_current_admin
from movienight.main import app
from movienight.schemas.auth import SignupRequest
from movienight.services.auth_service import DuplicateUserError, create_user

from helpers import make_session_factory

SIGNUP = {
    "username": "cinephile",
    "email": "cinephile@example.com",
    "password": "popcorn-123",
    "display_name": "Cine",
}


class TestAuthApi(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(app)
        app.dependency_overrides[get_db] = lambda: iter([object()])

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_me_requires_auth(self) -> None:
        response = self.client.get("/auth/me")
        self.assertEqual(response.status_code, 401)

    def test_signup_maps_duplicate_error(self) -> None:
        with patch("movienight.api.auth.create_user", side_effect=DuplicateUserError("username")):
            response = self.client.post("/auth/signup", json=SIGNUP)

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["detail"]["error"]["code"], "CONFLICT")

    def test_signup_validates_username(self) -> None:
        response = self.client.post("/auth/signup", json={**SIGNUP, "username": "a b"})
        self.assertEqual(response.status_code, 422)

    def test_login_failure_is_401(self) -> None:
        with patch("movienight.api.auth.authenticate_user", return_value=None):
            response = self.client.post("/auth/login", data={"username": "x", "password": "y"})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["detail"]["error"]["code"], "INVALID_CREDENTIALS")

    def test_login_success_returns_token(self) -> None:
        user = SimpleNamespace(id=uuid4())
        with patch("movienight.api.auth.authenticate_user", return_value=user):
            response = self.client.post("/auth/login", data={"username": "x", "password": "y"})

        self.assertEqual(response.status_code, 200)
        token = response.json()["access_token"]
        self.assertEqual(decode_access_token(token), user.id)


class TestSignupFlow(unittest.TestCase):
    def setUp(self) -> None:
        factory = make_session_factory()

        def _db():
            db = factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _db
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_signup_login_me(self) -> None:
        with patch.object(settings, "ADMIN_USERNAMES", ["cinephile"]):
            created = self.client.post("/auth/signup", json=SIGNUP)
        self.assertEqual(created.status_code, 201)
        self.assertTrue(created.json()["is_admin"])

        login = self.client.post(
            "/auth/login",
            data={"username": "Cinephile", "password": SIGNUP["password"]},
        )
        token = login.json()["access_token"]
        me = self.client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["display_name"], "Cine")

    def test_duplicate_username(self) -> None:
        self.assertEqual(self.client.post("/auth/signup", json=SIGNUP).status_code, 201)

        response = self.client.post("/auth/signup", json={**SIGNUP, "email": "other@example.com"})

        self.assertEqual(response.status_code, 409)

    def test_token_for_unknown_user_is_rejected(self) -> None:
        token = create_access_token(uuid4())
        response = self.client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 401)


class TestCreateUser(unittest.TestCase):
    def test_non_admin_by_default(self) -> None:
        db = make_session_factory()()
        try:
            with patch.object(settings, "ADMIN_USERNAMES", []):
                user = create_user(db, "Viewer", "Viewer@Example.com", "long-password")
        finally:
            db.close()

        self.assertEqual(user.username, "viewer")
        self.assertEqual(user.email, "viewer@example.com")
        self.assertEqual(user.display_name, "Viewer")
        self.assertFalse(user.is_admin)


class TestAccessTokens(unittest.TestCase):
    def test_expired_token_has_no_user(self) -> None:
        token = create_access_token(uuid4(), expires_delta=timedelta(minutes=-1))
        self.assertIsNone(decode_access_token(token))

    def test_subject_that_is_not_a_uuid_has_no_user(self) -> None:
        token = jwt.encode({"sub": "cinephile"}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
        self.assertIsNone(decode_access_token(token))

    def test_token_signed_with_another_key_is_rejected(self) -> None:
        token = jwt.encode({"sub": str(uuid4())}, "not-the-secret", algorithm=settings.ALGORITHM)
        self.assertIsNone(decode_access_token(token))


class TestCurrentAdmin(unittest.TestCase):
    def test_non_admin_gets_forbidden_envelope(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            get_current_admin(SimpleNamespace(is_admin=False))

        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(ctx.exception.detail["error"]["code"], "FORBIDDEN")

    def test_admin_passes_through(self) -> None:
        admin = SimpleNamespace(is_admin=True)
        self.assertIs(get_current_admin(admin), admin)


class TestSignupRequest(unittest.TestCase):
    def test_blank_display_name_becomes_none(self) -> None:
        request = SignupRequest(**{**SIGNUP, "display_name": "   "})
        self.assertIsNone(request.display_name)

    def test_display_name_is_trimmed_and_bounded(self) -> None:
        self.assertEqual(SignupRequest(**{**SIGNUP, "display_name": " Cine "}).display_name, "Cine")
        with self.assertRaises(ValidationError):
            SignupRequest(**{**SIGNUP, "display_name": "x" * 61})

    def test_username_length_bounds(self) -> None:
        with self.assertRaises(ValidationError):
            SignupRequest(**{**SIGNUP, "username": "ab"})
        self.assertEqual(SignupRequest(**{**SIGNUP, "username": " movie_fan "}).username, "movie_fan")


if __name__ == "__main__":
    unittest.main()
