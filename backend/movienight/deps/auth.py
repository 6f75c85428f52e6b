"""
Auth dependencies for protected endpoints.

Usage in any route:
    from movienight.deps.auth import get_current_admin, get_current_user

    @router.post("/movies/{movie_id}/ban")
    def ban(movie_id: int, admin: User = Depends(get_current_admin)):
        ...
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from movienight.api.errors import http_error
from movienight.core.security import decode_access_token
from movienight.db.models import User
from movienight.db.session import get_db
from movienight.services.errors import ForbiddenError

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Decode the bearer JWT and return the corresponding active User.

    Raises 401 on any failure (missing/invalid token, unknown user, inactive).
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user_id = decode_access_token(token)
    if user_id is None:
        raise credentials_exception

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise credentials_exception

    return user


def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    """Like get_current_user, but 403 FORBIDDEN unless the user is an admin."""
    if not current_user.is_admin:
        raise http_error(ForbiddenError("Admin access required"))
    return current_user
