"""Pydantic schema package for API contracts."""

from studioflow.schemas.common import APIEnvelope, ErrorEnvelope
from studioflow.schemas.projects import (
    FinancialDateSyncResponse,
    FinancialDocumentResponse,
    PaymentGateResponse,
    ProjectSnapshot,
    SpecialStatusUpdateRequest,
    StageStatusUpdateRequest,
    StatusHistoryItem,
    TransitionResponse,
)

__all__ = [
    "APIEnvelope",
    "ErrorEnvelope",
    "FinancialDateSyncResponse",
    "FinancialDocumentResponse",
    "PaymentGateResponse",
    "ProjectSnapshot",
    "SpecialStatusUpdateRequest",
    "StageStatusUpdateRequest",
    "StatusHistoryItem",
    "TransitionResponse",
]
