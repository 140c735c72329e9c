"""Project lifecycle request/response schemas for API contracts."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from studioflow.models.enums import (
    FinancialDocumentStatus,
    FinancialDocumentType,
    SpecialStatus,
    StageStatus,
    StatusKind,
)


class StageStatusUpdateRequest(BaseModel):
    target_stage: StageStatus
    reason: str | None = Field(default=None, max_length=2000)
    confirmed: bool = False


class SpecialStatusUpdateRequest(BaseModel):
    special_status: SpecialStatus
    reason: str | None = Field(default=None, max_length=2000)
    confirmed: bool = False


class ProjectSnapshot(BaseModel):
    id: int
    client_id: int
    name: str
    budget: Decimal | None = None
    payment_term_days: int | None = None
    stage_status: StageStatus
    stage_label: str
    special_status: SpecialStatus
    special_status_label: str
    issue_date: datetime | None = None
    end_date: datetime | None = None
    allowed_targets: list[StageStatus] = Field(default_factory=list)
    updated_at: datetime | None = None


class FinancialDocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    client_id: int | None = None
    document_type: FinancialDocumentType
    amount: Decimal
    due_date: datetime | None = None
    paid: bool
    payment_date: datetime | None = None
    status: FinancialDocumentStatus
    description: str | None = None


class TransitionResponse(BaseModel):
    project: ProjectSnapshot
    changed: bool
    previous_status: str
    new_status: str
    reason_code: str | None = None
    message: str | None = None
    created_invoice: FinancialDocumentResponse | None = None
    deleted_document_ids: list[int] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class StatusHistoryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    status_kind: StatusKind
    previous_status: str
    new_status: str
    reason: str | None = None
    changed_by: int
    created_at: datetime


class PaymentGateResponse(BaseModel):
    project_id: int
    ok: bool
    reason: str | None = None
    unpaid: list[FinancialDocumentResponse] = Field(default_factory=list)


class FinancialDateSyncResponse(BaseModel):
    project_id: int
    success: bool
    message: str
    updated_document_ids: list[int] = Field(default_factory=list)
    due_date: datetime | None = None
