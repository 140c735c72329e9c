"""Role-based authorization helpers."""

from __future__ import annotations

from studioflow.core.exceptions import AuthorizationError

PROJECTS_READ = "projects.read"
PROJECTS_STAGE_UPDATE = "projects.stage.update"
PROJECTS_SPECIAL_STATUS_UPDATE = "projects.special_status.update"
FINANCIAL_READ = "financial.read"
FINANCIAL_PAY = "financial.pay"
FINANCIAL_SYNC = "financial.sync"

# Scope strings are kept explicit for endpoint-level declarations.
ROLE_SCOPES: dict[str, set[str]] = {
    "admin": {
        "*",
    },
    "manager": {
        PROJECTS_READ,
        PROJECTS_STAGE_UPDATE,
        PROJECTS_SPECIAL_STATUS_UPDATE,
        FINANCIAL_READ,
        FINANCIAL_PAY,
        FINANCIAL_SYNC,
    },
    "editor": {
        PROJECTS_READ,
        PROJECTS_STAGE_UPDATE,
        PROJECTS_SPECIAL_STATUS_UPDATE,
        FINANCIAL_READ,
    },
    "viewer": {
        PROJECTS_READ,
        FINANCIAL_READ,
    },
}


def get_scopes_for_role(role: str) -> set[str]:
    """Return scopes granted to a role."""
    return ROLE_SCOPES.get(role.lower(), set())


def has_scopes(role: str, required_scopes: list[str] | set[str] | tuple[str, ...]) -> bool:
    """Check if role includes every required scope."""
    granted = get_scopes_for_role(role)
    if "*" in granted:
        return True
    return set(required_scopes).issubset(granted)


def require_scopes(role: str, required_scopes: list[str] | set[str] | tuple[str, ...]) -> None:
    """Raise when a role lacks required scopes."""
    if has_scopes(role=role, required_scopes=required_scopes):
        return
    missing = sorted(set(required_scopes) - get_scopes_for_role(role))
    raise AuthorizationError(f"Missing required scopes: {', '.join(missing)}")
