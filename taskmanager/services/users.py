"""Credential store operations: registration, login and profile changes."""
from typing import Optional
import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import errors
from ..models import User
from ..schemas.user import PasswordChange, ProfileUpdate, UserRegister
from ..security import PasswordHasher
from ..utils.datetime_helper import isoformat_utc, utcnow

logger = logging.getLogger(__name__)

DUPLICATE_USER_MESSAGE = "User with this email or username already exists"


def build_user_payload(user: User) -> dict:
    """Public representation of a user; the password hash is never included."""
    return {
        "id": str(user.id),
        "username": user.username,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "fullName": user.full_name,
        "avatar": user.avatar,
        "isActive": user.is_active,
        "lastLogin": isoformat_utc(user.last_login),
        "createdAt": isoformat_utc(user.created_at),
        "updatedAt": isoformat_utc(user.updated_at),
    }


def build_user_summary(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {
        "id": str(user.id),
        "username": user.username,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
    }


def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def _find_existing(db: Session, email: str, username: str) -> Optional[User]:
    return db.query(User).filter(or_(User.email == email, User.username == username)).first()


def register_user(db: Session, payload: UserRegister, hasher: PasswordHasher) -> User:
    """Create a user, rejecting duplicate emails and usernames.

    The lookup and the insert are not atomic; the unique indexes on
    ``email`` and ``username`` catch the race and it is reported the same way.
    """
    if _find_existing(db, payload.email, payload.username):
        raise errors.Conflict(DUPLICATE_USER_MESSAGE)

    user = User(
        username=payload.username,
        email=payload.email,
        hashed_password=hasher.hash(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Registration for {payload.email} lost a uniqueness race")
        raise errors.Conflict(DUPLICATE_USER_MESSAGE) from e
    db.refresh(user)

    logger.info(f"Registered user {user.id} ({user.username})")
    return user


def authenticate_user(db: Session, email: str, password: str, hasher: PasswordHasher) -> User:
    """Check credentials and stamp the login time.

    Unknown emails and wrong passwords fail identically.
    """
    user = db.query(User).filter(User.email == email.lower()).first()
    if user is None or not hasher.verify(password, user.hashed_password):
        logger.info("Rejected login attempt")
        raise errors.InvalidCredential()

    if not user.is_active:
        raise errors.Forbidden("Account is deactivated")

    user.last_login = utcnow()
    db.commit()
    db.refresh(user)

    logger.info(f"User {user.id} logged in")
    return user


def update_profile(db: Session, user: User, payload: ProfileUpdate) -> User:
    changes = payload.model_dump(exclude_unset=True)
    for field in ("first_name", "last_name"):
        if changes.get(field) is not None:
            setattr(user, field, changes[field])
    if "avatar" in changes:
        user.avatar = changes["avatar"]

    user.updated_at = utcnow()
    db.commit()
    db.refresh(user)
    return user


def change_password(db: Session, user: User, payload: PasswordChange, hasher: PasswordHasher) -> None:
    if not hasher.verify(payload.current_password, user.hashed_password):
        raise errors.ValidationError("Current password is incorrect")

    user.hashed_password = hasher.hash(payload.new_password)
    user.updated_at = utcnow()
    db.commit()
    logger.info(f"User {user.id} changed password")


def deactivate_user(db: Session, user: User) -> None:
    user.is_active = False
    user.updated_at = utcnow()
    db.commit()
    logger.info(f"User {user.id} deactivated")
