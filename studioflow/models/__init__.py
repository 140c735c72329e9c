"""SQLAlchemy model package for the project lifecycle schema."""

from studioflow.models.base import Base
from studioflow.models.client import Client
from studioflow.models.enums import (
    FinancialDocumentStatus,
    FinancialDocumentType,
    SpecialStatus,
    StageStatus,
    StatusKind,
    UserRole,
)
from studioflow.models.financial_document import FinancialDocument
from studioflow.models.project import Project
from studioflow.models.status_history import StatusHistoryRecord
from studioflow.models.user import User

__all__ = [
    "Base",
    "Client",
    "FinancialDocument",
    "FinancialDocumentStatus",
    "FinancialDocumentType",
    "Project",
    "SpecialStatus",
    "StageStatus",
    "StatusHistoryRecord",
    "StatusKind",
    "User",
    "UserRole",
]
