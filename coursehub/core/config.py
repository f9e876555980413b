"""Process-wide settings, read once from the environment at import.

Every variable is optional; with none set the service runs in dev mode on
in-memory repositories, an in-process receipt cache and no recommender.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_APP_ENVS = ("dev", "test", "prod")
_LOG_LEVELS = ("debug", "info", "warning", "error")
_TRUTHY = ("1", "true", "yes", "on")


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getint(name: str, default: int, *, minimum: int | None = None) -> int:
    raw = _getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if minimum is not None and value < minimum:
        qualifier = "positive" if minimum == 1 else f">= {minimum}"
        raise ValueError(f"{name} must be {qualifier} (got {value})")
    return value


def _optional_url(name: str) -> str | None:
    return _getenv(name, "") or None


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    jwt_public_key_pem: str | None = None
    db_pool_size: int = 5
    db_max_overflow: int = 10
    recommender_url: str | None = None
    recommender_timeout_seconds: int = 5
    receipt_ttl_seconds: int = 900
    default_currency: str = "USD"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env = _getenv("APP_ENV", "dev").lower()
    if app_env not in _APP_ENVS:
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env!r})")

    log_level = _getenv("LOG_LEVEL", "info").lower()
    if log_level not in _LOG_LEVELS:
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level!r})"
        )

    currency = _getenv("DEFAULT_CURRENCY", "USD").upper()
    if len(currency) != 3 or not currency.isalpha():
        raise ValueError(f"DEFAULT_CURRENCY must be a 3-letter code (got {currency!r})")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env,
        log_level=log_level,
        log_json=_getenv("LOG_JSON", "false").lower() in _TRUTHY,
        port=_getint("PORT", 8000),
        database_url=_optional_url("DATABASE_URL"),
        redis_url=_optional_url("REDIS_URL"),
        # Single-line env values carry the PEM with literal \n separators.
        jwt_public_key_pem=(
            _getenv("JWT_PUBLIC_KEY_PEM", "").replace("\\n", "\n") or None
        ),
        db_pool_size=_getint("DB_POOL_SIZE", 5, minimum=1),
        db_max_overflow=_getint("DB_MAX_OVERFLOW", 10, minimum=0),
        recommender_url=_optional_url("RECOMMENDER_URL"),
        recommender_timeout_seconds=_getint(
            "RECOMMENDER_TIMEOUT_SECONDS", 5, minimum=1
        ),
        receipt_ttl_seconds=_getint("RECEIPT_TTL_SECONDS", 900, minimum=1),
        default_currency=currency,
    )


SETTINGS = load_settings()
