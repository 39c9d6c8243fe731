"""Password hashing and session tokens."""
from datetime import datetime, timedelta, timezone
import logging

import bcrypt
from fastapi import Depends
from jose import ExpiredSignatureError, JWTError, jwt

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
BCRYPT_MAX_BYTES = 72


class TokenError(Exception):
    """Raised when a session token cannot be trusted."""


class ExpiredToken(TokenError):
    pass


class MalformedToken(TokenError):
    pass


def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Salted bcrypt digests with a configurable work factor."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")

    def verify(self, password: str, hashed_password: str) -> bool:
        hashed_bytes = hashed_password.encode("utf-8") if isinstance(hashed_password, str) else hashed_password
        try:
            return bcrypt.checkpw(_password_bytes(password), hashed_bytes)
        except ValueError:
            logger.warning("Stored password hash is malformed")
            return False


class TokenService:
    """Issues and verifies stateless HS256 tokens carrying a ``userId`` claim."""

    def __init__(self, secret: str, expires_in: timedelta = timedelta(days=7), algorithm: str = ALGORITHM):
        if not secret:
            raise ValueError("Token signing secret is not configured")
        self.secret = secret
        self.expires_in = expires_in
        self.algorithm = algorithm

    def issue(self, user_id: str) -> str:
        issued_at = datetime.now(timezone.utc)
        claims = {
            "userId": user_id,
            "iat": issued_at,
            "exp": issued_at + self.expires_in,
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> str:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise ExpiredToken("Token has expired") from e
        except JWTError as e:
            raise MalformedToken(f"Invalid token: {e}") from e

        user_id = payload.get("userId")
        if not user_id or not isinstance(user_id, str):
            raise MalformedToken("Token is missing the userId claim")
        return user_id

    def expires_at(self, token: str) -> datetime:
        """Expiry of an already verified token."""
        claims = jwt.get_unverified_claims(token)
        return datetime.fromtimestamp(claims["exp"], tz=timezone.utc)


def get_password_hasher(settings: Settings = Depends(get_settings)) -> PasswordHasher:
    return PasswordHasher(rounds=settings.bcrypt_rounds)


def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    return TokenService(settings.jwt_secret, expires_in=settings.jwt_expires_in)
