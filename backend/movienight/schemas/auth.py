"""
Voter account schemas: signup, the issued bearer token and the profile the
voting UI shows next to each ballot.
"""
import re
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]{3,32}$")
DISPLAY_NAME_MAX_LENGTH = 60
PASSWORD_MIN_LENGTH = 8


class SignupRequest(BaseModel):
    """Payload for POST /auth/signup."""

    username: str
    email: EmailStr
    password: str
    display_name: str | None = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        v = v.strip()
        if not USERNAME_PATTERN.match(v):
            raise ValueError("Username must be 3-32 letters, digits or underscores")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < PASSWORD_MIN_LENGTH:
            raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
        return v

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v: str | None) -> str | None:
        # Blank falls back to the username when the account is created.
        v = (v or "").strip()
        if len(v) > DISPLAY_NAME_MAX_LENGTH:
            raise ValueError(f"Display name must be at most {DISPLAY_NAME_MAX_LENGTH} characters")
        return v or None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    """The signed-in voter; ``is_admin`` unlocks ban/unban in the UI."""

    id: UUID
    username: str
    email: str
    display_name: str | None = None
    avatar_url: str | None = None
    is_admin: bool = False

    model_config = ConfigDict(from_attributes=True)
