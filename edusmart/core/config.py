from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_DEFAULT_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
_DEFAULT_OPENROUTER_MODEL = "openai/gpt-3.5-turbo"


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getint(name: str, default: int, *, minimum: int = 0) -> int:
    raw = _getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    # How far in the future a client-supplied completed_at may be before
    # ingestion rejects it.
    clock_skew_seconds: int = 300
    tutor_session_ttl_seconds: int = 1800
    openrouter_api_key: str | None = None
    openrouter_model: str = _DEFAULT_OPENROUTER_MODEL
    openrouter_base_url: str = _DEFAULT_OPENROUTER_BASE_URL

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"

    @property
    def tutor_enabled(self) -> bool:
        return self.openrouter_api_key is not None


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    port = _getint("PORT", 8000)
    clock_skew_seconds = _getint("CLOCK_SKEW_SECONDS", 300)
    tutor_session_ttl_seconds = _getint("TUTOR_SESSION_TTL_SECONDS", 1800, minimum=1)

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        clock_skew_seconds=clock_skew_seconds,
        tutor_session_ttl_seconds=tutor_session_ttl_seconds,
        openrouter_api_key=_getenv("OPENROUTER_API_KEY", "") or None,
        openrouter_model=_getenv("OPENROUTER_MODEL", _DEFAULT_OPENROUTER_MODEL),
        openrouter_base_url=_getenv(
            "OPENROUTER_BASE_URL", _DEFAULT_OPENROUTER_BASE_URL
        ).rstrip("/"),
    )


SETTINGS = load_settings()
