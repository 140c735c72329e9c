"""Canonical enum values for the lifecycle schema."""

from __future__ import annotations

import enum


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    EDITOR = "editor"
    VIEWER = "viewer"


class StageStatus(str, enum.Enum):
    """Production pipeline stages, declared in pipeline order."""

    PROPOSAL = "proposal"
    ACCEPTED = "accepted"
    PRE_PRODUCTION = "pre_production"
    PRODUCTION = "production"
    POST_REVIEW = "post_review"
    DELIVERED = "delivered"
    COMPLETED = "completed"


class SpecialStatus(str, enum.Enum):
    """Overlay flag attached to a project independently of its stage."""

    NONE = "none"
    DELAYED = "delayed"
    PAUSED = "paused"
    CANCELED = "canceled"


class StatusKind(str, enum.Enum):
    STAGE = "stage"
    SPECIAL = "special"


class FinancialDocumentType(str, enum.Enum):
    INVOICE = "invoice"
    EXPENSE = "expense"


class FinancialDocumentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELED = "canceled"


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persist enum values (not member names) in SQL columns."""
    return [member.value for member in enum_cls]
