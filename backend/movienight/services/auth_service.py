"""
Auth business logic — signup, login, token issuance.

All DB writes go through this layer (not directly in routes).
"""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from movienight.core.config import settings
from movienight.core.security import create_access_token, hash_password, verify_password
from movienight.db.models import User
from movienight.services.errors import ConflictError


class DuplicateUserError(ConflictError):
    """Raised when signup conflicts with an existing username or email."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"A user with that {field} already exists")


def create_user(
    db: Session,
    username: str,
    email: str,
    password: str,
    display_name: str | None = None,
) -> User:
    """
    Register a new user.

    Usernames listed in ADMIN_USERNAMES get the admin role.
    """
    normalised_username = username.strip().lower()
    normalised_email = email.strip().lower()

    user = User(
        username=normalised_username,
        email=normalised_email,
        display_name=(display_name or "").strip() or username.strip(),
        password_hash=hash_password(password),
        is_admin=settings.is_admin_username(normalised_username),
    )
    db.add(user)

    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        error_str = str(exc.orig).lower()
        if "username" in error_str:
            raise DuplicateUserError("username") from exc
        if "email" in error_str:
            raise DuplicateUserError("email") from exc
        raise DuplicateUserError("username or email") from exc

    db.commit()
    db.refresh(user)
    return user


def authenticate_user(db: Session, username: str, password: str) -> User | None:
    """Verify credentials and return the User, or None on failure."""
    user = (
        db.query(User)
        .filter(User.username == username.strip().lower())
        .first()
    )
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def issue_access_token(user: User) -> str:
    return create_access_token(user.id)
