# backend/possync/config.py
from __future__ import annotations
import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/possync.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///possync.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Unknown usernames are registered on first login
    SYNC_AUTO_REGISTER = _env_bool("SYNC_AUTO_REGISTER", True)

    # Sync clients poll every few seconds, so tokens live much longer than
    # interactive sessions
    SYNC_TOKEN_ABSOLUTE_TIMEOUT_HOURS = int(os.environ.get("SYNC_TOKEN_ABSOLUTE_TIMEOUT_HOURS", str(24 * 30)))
    SYNC_TOKEN_IDLE_TIMEOUT_HOURS = int(os.environ.get("SYNC_TOKEN_IDLE_TIMEOUT_HOURS", str(24 * 7)))

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    ]


@dataclass
class SyncClientConfig:
    """Client-side sync settings with environment variable overrides."""
    base_url: str = field(default_factory=lambda: os.environ.get("POSSYNC_BASE_URL", "http://127.0.0.1:5000"))

    # Seconds between background cycles
    pull_interval: float = field(default_factory=lambda: float(os.environ.get("POSSYNC_PULL_INTERVAL", "60")))
    push_interval: float = field(default_factory=lambda: float(os.environ.get("POSSYNC_PUSH_INTERVAL", "30")))

    # Upper bound on one HTTP round trip; also bounds how long an in-flight flag stays set
    request_timeout: float = field(default_factory=lambda: float(os.environ.get("POSSYNC_REQUEST_TIMEOUT", "15")))

    # Local Store JSON file (None keeps the store in memory only)
    store_path: str | None = field(default_factory=lambda: os.environ.get("POSSYNC_STORE_PATH") or None)
