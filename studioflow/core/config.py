"""Configuration module for the StudioFlow lifecycle service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlparse

from dotenv import load_dotenv

from studioflow.core.exceptions import ConfigurationError

load_dotenv()


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    """Runtime configuration with validation."""

    APP_NAME: str
    APP_VERSION: str
    ENV: str
    DEBUG: bool
    DATABASE_URL: str
    DB_CONNECTIVITY_REQUIRED: bool
    JWT_SECRET: str
    JWT_ACCESS_TTL_MINUTES: int
    API_HOST: str
    API_PORT: int
    API_PREFIX: str
    LOG_LEVEL: str
    LOG_FILE: str
    DEFAULT_PAYMENT_TERM_DAYS: int
    INVOICE_NORMALIZED_HOUR: int
    REQUIRE_CANCEL_CONFIRMATION: bool
    EVENT_BUS_BACKEND: str
    REDIS_URL: str
    CELERY_BROKER_URL: str
    CELERY_RESULT_BACKEND: str
    SYSTEM_USER_ID: int
    OVERDUE_CHECK_HOUR: int

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


def _build_config(env: str | None = None) -> Config:
    resolved_env = (env or os.getenv("ENV", "development")).strip().lower()
    debug = _as_bool(os.getenv("DEBUG"), default=(resolved_env != "production"))
    redis_url = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    config = Config(
        APP_NAME="StudioFlow",
        APP_VERSION=os.getenv("APP_VERSION", "1.0.0"),
        ENV=resolved_env,
        DEBUG=debug if resolved_env != "production" else False,
        DATABASE_URL=os.getenv("DATABASE_URL", "sqlite:///./studioflow.db"),
        DB_CONNECTIVITY_REQUIRED=_as_bool(
            os.getenv("DB_CONNECTIVITY_REQUIRED"), default=(resolved_env == "production")
        ),
        JWT_SECRET=os.getenv("JWT_SECRET", "change_me_jwt_secret"),
        JWT_ACCESS_TTL_MINUTES=int(os.getenv("JWT_ACCESS_TTL_MINUTES", "60")),
        API_HOST=os.getenv("API_HOST", "0.0.0.0"),
        API_PORT=int(os.getenv("API_PORT", "8000")),
        API_PREFIX=os.getenv("API_PREFIX", "/api/v1"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
        LOG_FILE=os.getenv("LOG_FILE", ""),
        DEFAULT_PAYMENT_TERM_DAYS=int(os.getenv("DEFAULT_PAYMENT_TERM_DAYS", "30")),
        INVOICE_NORMALIZED_HOUR=int(os.getenv("INVOICE_NORMALIZED_HOUR", "12")),
        REQUIRE_CANCEL_CONFIRMATION=_as_bool(os.getenv("REQUIRE_CANCEL_CONFIRMATION"), default=True),
        EVENT_BUS_BACKEND=os.getenv("EVENT_BUS_BACKEND", "memory").strip().lower(),
        REDIS_URL=redis_url,
        CELERY_BROKER_URL=os.getenv("CELERY_BROKER_URL", redis_url),
        CELERY_RESULT_BACKEND=os.getenv("CELERY_RESULT_BACKEND", redis_url),
        SYSTEM_USER_ID=int(os.getenv("SYSTEM_USER_ID", "1")),
        OVERDUE_CHECK_HOUR=int(os.getenv("OVERDUE_CHECK_HOUR", "0")),
    )
    _validate_config(config)
    return config


def _validate_database_url(database_url: str) -> None:
    parsed = urlparse(database_url)
    if parsed.scheme not in {"sqlite", "postgresql", "postgresql+psycopg2"}:
        raise ConfigurationError(
            "DATABASE_URL must use sqlite:// or postgresql:// style URL."
        )
    if parsed.scheme.startswith("postgresql") and not parsed.hostname:
        raise ConfigurationError("PostgreSQL DATABASE_URL is missing hostname.")


def _validate_config(config: Config) -> None:
    _validate_database_url(config.DATABASE_URL)

    if config.JWT_ACCESS_TTL_MINUTES < 1:
        raise ConfigurationError("JWT_ACCESS_TTL_MINUTES must be >= 1.")
    if config.DEFAULT_PAYMENT_TERM_DAYS < 0:
        raise ConfigurationError("DEFAULT_PAYMENT_TERM_DAYS must be >= 0.")
    if not 0 <= config.INVOICE_NORMALIZED_HOUR <= 23:
        raise ConfigurationError("INVOICE_NORMALIZED_HOUR must be between 0 and 23.")
    if not 0 <= config.OVERDUE_CHECK_HOUR <= 23:
        raise ConfigurationError("OVERDUE_CHECK_HOUR must be between 0 and 23.")
    if config.EVENT_BUS_BACKEND not in {"memory", "redis"}:
        raise ConfigurationError("EVENT_BUS_BACKEND must be 'memory' or 'redis'.")
    if config.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigurationError("LOG_LEVEL must be one of DEBUG/INFO/WARNING/ERROR/CRITICAL.")
    if config.is_production and "change_me" in config.JWT_SECRET:
        raise ConfigurationError("Production JWT_SECRET uses the placeholder value.")


@lru_cache(maxsize=8)
def get_config(env: str | None = None) -> Config:
    """Get validated configuration for the requested environment."""
    return _build_config(env)
