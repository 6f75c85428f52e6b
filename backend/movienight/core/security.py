"""
Password hashing and the bearer tokens that identify voters.
No DB models here; callers resolve the returned user id themselves.
"""
from datetime import datetime, timedelta, timezone
from uuid import UUID

from jose import JWTError, jwt
from passlib.context import CryptContext

from movienight.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_access_token(user_id: UUID, expires_delta: timedelta | None = None) -> str:
    """Sign a token whose *sub* is *user_id*, valid for ACCESS_TOKEN_EXPIRE_MINUTES by default."""
    issued = datetime.now(timezone.utc)
    expire = issued + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {"sub": str(user_id), "iat": issued, "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> UUID | None:
    """
    Return the voter's user id, or None for any token that cannot identify one.

    Expired, tampered and malformed tokens are all None, as is a *sub* that
    is missing or not a UUID.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    sub = payload.get("sub")
    if not isinstance(sub, str):
        return None
    try:
        return UUID(sub)
    except ValueError:
        return None
