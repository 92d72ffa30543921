"""
Centralized settings for the SmartCity complaint backend.

Provides a lightweight wrapper around environment variables (with `.env`
support for local development). `get_settings()` is called once at process
start and the resulting object is handed to `create_app()`; request handlers
read it from `app.state` rather than importing it as a global.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional
import os

from dotenv import dotenv_values


@dataclass(frozen=True)
class Settings:
    """Immutable view of application configuration."""

    # General
    environment: str
    log_level: str

    # Database
    database_url: str

    # Authentication
    jwt_secret: str
    jwt_algorithm: str
    jwt_access_minutes: int

    # Uploads
    upload_dir: Path
    max_upload_bytes: int

    # HTTP
    allowed_hosts: tuple[str, ...]
    cors_origins: tuple[str, ...]

    # Rewards
    report_points: int
    resolution_points: int

    # Observability
    sentry_dsn: Optional[str]


def _as_list(value: Optional[str], default: str = "*") -> tuple[str, ...]:
    raw = value if value is not None else default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _env_lookup(key: str, env: dict[str, str], default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key) or env.get(key) or default


def normalize_database_url(url: str) -> str:
    # Ensure we use the async drivers
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql+psycopg2://"):
        return url.replace("postgresql+psycopg2://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


def load_settings(env_path: Optional[Path] = None) -> Settings:
    """Build a Settings object from the process environment and `.env`."""
    env_path = env_path or Path(__file__).resolve().parents[1] / ".env"
    env_file = dotenv_values(str(env_path)) if env_path.exists() else {}

    secret = _env_lookup("JWT_SECRET", env_file)
    if not secret:
        # No default secret; refuse to start without one.
        raise ValueError("JWT_SECRET not found in environment or .env file.")

    return Settings(
        environment=_env_lookup("APP_ENV", env_file, "development"),
        log_level=_env_lookup("LOG_LEVEL", env_file, "INFO").upper(),
        database_url=normalize_database_url(
            _env_lookup("DATABASE_URL", env_file, "sqlite+aiosqlite:///./smartcity.db")
        ),
        jwt_secret=secret,
        jwt_algorithm=_env_lookup("JWT_ALGORITHM", env_file, "HS256"),
        jwt_access_minutes=int(_env_lookup("JWT_ACCESS_MINUTES", env_file, str(7 * 24 * 60))),
        upload_dir=Path(_env_lookup("UPLOAD_DIR", env_file, "./uploads")),
        max_upload_bytes=int(_env_lookup("MAX_UPLOAD_BYTES", env_file, str(10 * 1024 * 1024))),
        allowed_hosts=_as_list(_env_lookup("ALLOWED_HOSTS", env_file)),
        cors_origins=_as_list(_env_lookup("CORS_ORIGINS", env_file)),
        report_points=int(_env_lookup("REPORT_POINTS", env_file, "10")),
        resolution_points=int(_env_lookup("RESOLUTION_POINTS", env_file, "15")),
        sentry_dsn=_env_lookup("SENTRY_DSN", env_file),
    )


@lru_cache()
def get_settings() -> Settings:
    """Load settings once per process."""
    return load_settings()


__all__ = ["Settings", "get_settings", "load_settings", "normalize_database_url"]
