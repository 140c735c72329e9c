"""Startup validation and bootstrap helpers."""

from __future__ import annotations

import logging

from studioflow.core.config import get_config
from studioflow.core.logging_config import configure_logging
from studioflow.database.db import get_active_database_url, init_db, verify_database_connection
from studioflow.events.bus import get_event_bus

logger = logging.getLogger(__name__)


def validate_startup_config() -> None:
    """Fail-fast config and connectivity checks."""
    config = get_config()
    database_ok = verify_database_connection()
    active_database_url = get_active_database_url()
    if not database_ok and config.DB_CONNECTIVITY_REQUIRED:
        raise RuntimeError("Database connectivity check failed.")
    if not database_ok:
        logger.warning(
            "startup.database.connectivity_optional_failed",
            extra={"event": "startup.database.connectivity_optional_failed"},
        )

    if config.is_production and active_database_url.startswith("sqlite"):
        logger.warning(
            "startup.production.sqlite_detected",
            extra={"event": "startup.production.sqlite_detected"},
        )

    logger.info(
        "startup.config.validated",
        extra={
            "event": "startup.config.validated",
            "env": config.ENV,
            "database_url_scheme": active_database_url.split("://", 1)[0],
            "db_connectivity_required": config.DB_CONNECTIVITY_REQUIRED,
            "event_bus_backend": config.EVENT_BUS_BACKEND,
        },
    )


def bootstrap(create_schema: bool = True) -> None:
    """Initialize logging, then validate configuration before creating the schema and event bus."""
    configure_logging()
    validate_startup_config()
    if create_schema:
        init_db()
    get_event_bus()
