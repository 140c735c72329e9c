"""Dependency providers for API handlers and background workers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from studioflow.auth.jwt import decode_access_token
from studioflow.core.config import Config, get_config
from studioflow.core.exceptions import AuthenticationError
from studioflow.events.bus import get_event_bus
from studioflow.lifecycle.coordinator import TransitionCoordinator
from studioflow.models.enums import UserRole


@dataclass(frozen=True)
class CurrentUser:
    user_id: int
    role: str
    claims: dict[str, Any]


def get_settings() -> Config:
    """Return validated application configuration."""
    return get_config()


def get_current_user(token: str, settings: Config | None = None) -> CurrentUser:
    """Resolve the acting user from a bearer token."""
    cfg = settings or get_settings()
    claims = decode_access_token(token=token, secret=cfg.JWT_SECRET)
    try:
        role = UserRole(str(claims["role"]).lower())
        return CurrentUser(user_id=int(claims["sub"]), role=role.value, claims=claims)
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthenticationError("Invalid auth claims.") from exc


def build_coordinator(db: Session, settings: Config | None = None) -> TransitionCoordinator:
    """Create a coordinator bound to a request or task session."""
    return TransitionCoordinator(db=db, bus=get_event_bus(), config=settings or get_settings())
