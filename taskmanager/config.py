from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
import os
import re

from dotenv import load_dotenv

# Load environment variables from repo root and package .env (if present).
REPO_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(REPO_ROOT / ".env")
load_dotenv(Path(__file__).resolve().parent / ".env")

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": "seconds", "s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_duration(value: str) -> timedelta:
    """Parse durations such as ``"7d"``, ``"12h"``, ``"30m"`` or ``"3600"``."""
    match = _DURATION_RE.match(value)
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./taskmanager.db"
    jwt_secret: str = ""
    jwt_expires_in: timedelta = timedelta(days=7)
    bcrypt_rounds: int = 12
    cors_origins: tuple = ("http://localhost:3000",)
    log_level: str = "INFO"


def load_settings() -> Settings:
    _cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./taskmanager.db"),
        jwt_secret=os.getenv("JWT_SECRET", ""),
        jwt_expires_in=parse_duration(os.getenv("JWT_EXPIRES_IN", "7d")),
        bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "12")),
        cors_origins=tuple(origin.strip() for origin in _cors_origins.split(",") if origin.strip()),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read once and never mutated."""
    return load_settings()
