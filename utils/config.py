"""Application settings read from the environment.

`.env` files are honoured through python-dotenv; see `AppConfig.from_env`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

CLASSIFIER_BACKENDS = ("stub", "openai")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name}={raw!r} is not a number") from exc
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {raw!r}")
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name}={raw!r} is not an integer") from exc
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {raw!r}")
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AppConfig:
    """Runtime configuration for the API.

    Attributes:
        database_dir: Directory holding `app.db`.
        upload_dir: Directory where uploaded images are written.
        reset_database: Wipe the database file on startup.
        openai_api_key: Provider credential; None disables the chat provider
            and the OpenAI classifier backend.
        chat_model: Model used for chatbot completions.
        chat_timeout: Seconds before a chat completion counts as failed.
        chat_history_limit: Trailing messages sent to the chat provider.
        classifier_backend: `stub` (random assessment) or `openai` (vision model).
        classifier_model: Model used by the `openai` backend.
        classifier_timeout: Seconds before a classification counts as failed.
        max_upload_bytes: Largest accepted image upload.
        jwt_secret: HMAC secret used to verify bearer tokens.
        jwt_algorithm: JWT signing algorithm.
        log_level: Root logging level name.
        cors_origins: Allowed CORS origins.
    """

    database_dir: Path
    upload_dir: Path
    reset_database: bool = False
    openai_api_key: Optional[str] = None
    chat_model: str = "gpt-4o-mini"
    chat_timeout: float = 20.0
    chat_history_limit: int = 10
    classifier_backend: str = "stub"
    classifier_model: str = "gpt-4o-mini"
    classifier_timeout: float = 30.0
    max_upload_bytes: int = 10 * 1024 * 1024
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build the configuration from environment variables.

        Raises:
            RuntimeError: If DATABASE_DIR is missing or a value is malformed.
        """
        load_dotenv()

        env_dir = os.getenv("DATABASE_DIR")
        if env_dir is None or not env_dir.strip():
            raise RuntimeError(
                "DATABASE_DIR environment variable must be set to a writable "
                "directory path where the SQLite database file will be stored."
            )
        database_dir = Path(env_dir).expanduser()
        upload_env = os.getenv("UPLOAD_DIR")
        upload_dir = Path(upload_env).expanduser() if upload_env else database_dir / "uploads"

        backend = (os.getenv("CLASSIFIER_BACKEND") or "stub").strip().lower()
        if backend not in CLASSIFIER_BACKENDS:
            raise RuntimeError(
                f"CLASSIFIER_BACKEND={backend!r} is not supported. Supported: {', '.join(CLASSIFIER_BACKENDS)}"
            )

        origins = [o.strip() for o in (os.getenv("CORS_ORIGINS") or "*").split(",") if o.strip()]

        return cls(
            database_dir=database_dir,
            upload_dir=upload_dir,
            reset_database=_env_bool("DATABASE_RESET"),
            openai_api_key=(os.getenv("OPENAI_API_KEY") or "").strip() or None,
            chat_model=os.getenv("CHAT_MODEL", "gpt-4o-mini"),
            chat_timeout=_env_float("CHAT_TIMEOUT_SECONDS", 20.0),
            chat_history_limit=_env_int("CHAT_HISTORY_LIMIT", 10),
            classifier_backend=backend,
            classifier_model=os.getenv("CLASSIFIER_MODEL", "gpt-4o-mini"),
            classifier_timeout=_env_float("CLASSIFIER_TIMEOUT_SECONDS", 30.0),
            max_upload_bytes=_env_int("MAX_UPLOAD_BYTES", 10 * 1024 * 1024),
            jwt_secret=os.getenv("JWT_SECRET", "change-me"),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=origins or ["*"],
        )
