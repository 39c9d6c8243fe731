import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from .. import errors
from ..database import get_db
from ..errors import envelope
from ..models import User
from ..schemas.user import PasswordChange, ProfileUpdate, UserLogin, UserRegister
from ..security import (
    ExpiredToken,
    PasswordHasher,
    TokenError,
    TokenService,
    get_password_hasher,
    get_token_service,
)
from ..services import users as user_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_token_from_request(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> User:
    """Authentication gate for every protected route.

    Resolves the bearer token to a live, active user which is then handed to
    the route explicitly.
    """
    token = _get_token_from_request(request)
    if not token:
        raise errors.Unauthenticated("Access denied. No token provided.")

    try:
        user_id = tokens.verify(token)
    except ExpiredToken:
        logger.warning("Rejected expired token")
        raise errors.Unauthenticated("Token expired")
    except TokenError as e:
        logger.warning(f"Rejected token: {e}")
        raise errors.Unauthenticated("Invalid token")

    user = user_service.get_user(db, user_id)
    if user is None:
        raise errors.NotFound("User not found")
    if not user.is_active:
        raise errors.Forbidden("User account is deactivated")
    return user


def _auth_payload(user: User, tokens: TokenService) -> dict:
    token = tokens.issue(user.id)
    return {
        "user": user_service.build_user_payload(user),
        "token": token,
        "expiresAt": tokens.expires_at(token).isoformat(),
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: UserRegister,
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    tokens: TokenService = Depends(get_token_service),
):
    """Create a new user account and log it in."""
    user = user_service.register_user(db, payload, hasher)
    return envelope(_auth_payload(user, tokens), message="User registered successfully")


@router.post("/login")
def login(
    payload: UserLogin,
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    tokens: TokenService = Depends(get_token_service),
):
    """Sign in and get a token."""
    user = user_service.authenticate_user(db, payload.email, payload.password, hasher)
    return envelope(_auth_payload(user, tokens), message="Login successful")


@router.get("/profile")
def read_profile(current_user: User = Depends(get_current_user)):
    """Get current user information."""
    return envelope({"user": user_service.build_user_payload(current_user)})


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = user_service.update_profile(db, current_user, payload)
    return envelope({"user": user_service.build_user_payload(user)}, message="Profile updated successfully")


@router.put("/change-password")
def change_password(
    payload: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
):
    user_service.change_password(db, current_user, payload, hasher)
    return envelope(message="Password changed successfully")
