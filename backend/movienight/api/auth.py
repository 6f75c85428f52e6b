"""
Auth API — /auth
─────────────────
Endpoints:
  POST /auth/signup   — Create account, return user profile (201)
  POST /auth/login    — Authenticate, return JWT
  GET  /auth/me       — Return current user profile (requires bearer token)
"""
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from movienight.api.errors import error_body, http_error
from movienight.db.models import User
from movienight.db.session import get_db
from movienight.deps.auth import get_current_user
from movienight.schemas.auth import SignupRequest, TokenResponse, UserResponse
from movienight.services.auth_service import (
    DuplicateUserError,
    authenticate_user,
    create_user,
    issue_access_token,
)

router = APIRouter()


@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def signup(payload: SignupRequest, db: Session = Depends(get_db)) -> UserResponse:
    """Create a new user account. 409 if the username or email is taken."""
    try:
        user = create_user(
            db,
            username=payload.username,
            email=payload.email,
            password=payload.password,
            display_name=payload.display_name,
        )
    except DuplicateUserError as exc:
        raise http_error(exc) from exc

    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse)
def login(
    form: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
) -> TokenResponse:
    user = authenticate_user(db, username=form.username, password=form.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_body("INVALID_CREDENTIALS", "Incorrect username or password"),
            headers={"WWW-Authenticate": "Bearer"},
        )
    return TokenResponse(access_token=issue_access_token(user))


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(current_user)
