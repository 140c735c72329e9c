"""Project lifecycle endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Header, HTTPException, Query

from studioflow.api.v1._authz import authorize, map_auth_error, to_http_error
from studioflow.auth.rbac import (
    FINANCIAL_READ,
    FINANCIAL_SYNC,
    PROJECTS_READ,
    PROJECTS_SPECIAL_STATUS_UPDATE,
    PROJECTS_STAGE_UPDATE,
)
from studioflow.core.dependencies import build_coordinator
from studioflow.core.exceptions import StudioFlowException
from studioflow.database.db import get_db_session
from studioflow.lifecycle.coordinator import TransitionResult, project_snapshot
from studioflow.lifecycle.history import StatusHistoryRecorder
from studioflow.lifecycle.payment_gate import PaymentGate
from studioflow.services.financial_document_service import FinancialDocumentService
from studioflow.services.project_service import ProjectService
from studioflow.schemas import (
    FinancialDateSyncResponse,
    FinancialDocumentResponse,
    PaymentGateResponse,
    ProjectSnapshot,
    SpecialStatusUpdateRequest,
    StageStatusUpdateRequest,
    StatusHistoryItem,
    TransitionResponse,
)

router = APIRouter(tags=["projects"])


def _authorize(authorization: str | None, scopes: list[str]):
    try:
        return authorize(authorization=authorization, scopes=scopes)
    except Exception as exc:
        code, detail = map_auth_error(exc)
        raise HTTPException(status_code=code, detail=detail) from exc


def _transition_response(result: TransitionResult) -> TransitionResponse:
    created = result.side_effects.created_invoice
    return TransitionResponse(
        project=ProjectSnapshot(**result.snapshot),
        changed=result.changed,
        previous_status=result.previous_status,
        new_status=result.new_status,
        reason_code=result.outcome.reason_code.value if result.outcome else None,
        message=result.outcome.message if result.outcome else None,
        created_invoice=FinancialDocumentResponse.model_validate(created) if created is not None else None,
        deleted_document_ids=result.side_effects.deleted_document_ids,
        warnings=result.warnings,
    )


@router.get("/projects/{project_id}", response_model=ProjectSnapshot)
def get_project(
    project_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> ProjectSnapshot:
    _authorize(authorization, [PROJECTS_READ])
    with get_db_session() as db:
        try:
            project = ProjectService(db=db).require_project(project_id)
        except StudioFlowException as exc:
            raise to_http_error(exc) from exc
        return ProjectSnapshot(**project_snapshot(project))


@router.patch("/projects/{project_id}/stage-status", response_model=TransitionResponse)
def update_stage_status(
    project_id: int,
    payload: StageStatusUpdateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> TransitionResponse:
    user = _authorize(authorization, [PROJECTS_STAGE_UPDATE])
    with get_db_session() as db:
        try:
            result = build_coordinator(db).update_stage_status(
                project_id=project_id,
                target_stage=payload.target_stage,
                acting_user_id=user.user_id,
                reason=payload.reason,
                confirmed=payload.confirmed,
            )
        except StudioFlowException as exc:
            raise to_http_error(exc) from exc
        return _transition_response(result)


@router.patch("/projects/{project_id}/special-status", response_model=TransitionResponse)
def update_special_status(
    project_id: int,
    payload: SpecialStatusUpdateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> TransitionResponse:
    user = _authorize(authorization, [PROJECTS_SPECIAL_STATUS_UPDATE])
    with get_db_session() as db:
        try:
            result = build_coordinator(db).update_special_status(
                project_id=project_id,
                target_special_status=payload.special_status,
                acting_user_id=user.user_id,
                reason=payload.reason,
                confirmed=payload.confirmed,
            )
        except StudioFlowException as exc:
            raise to_http_error(exc) from exc
        return _transition_response(result)


@router.get("/projects/{project_id}/status-history")
def list_status_history(
    project_id: int,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict:
    _authorize(authorization, [PROJECTS_READ])
    with get_db_session() as db:
        try:
            ProjectService(db=db).require_project(project_id)
        except StudioFlowException as exc:
            raise to_http_error(exc) from exc
        records = StatusHistoryRecorder(db=db).list_for_project(project_id)
        page = records[offset : offset + limit]
        return {
            "items": [StatusHistoryItem.model_validate(record).model_dump(mode="json") for record in page],
            "total": len(records),
            "limit": limit,
            "offset": offset,
        }


@router.get("/projects/{project_id}/payment-gate", response_model=PaymentGateResponse)
def check_payment_gate(
    project_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> PaymentGateResponse:
    _authorize(authorization, [FINANCIAL_READ])
    with get_db_session() as db:
        try:
            ProjectService(db=db).require_project(project_id)
        except StudioFlowException as exc:
            raise to_http_error(exc) from exc
        gate = PaymentGate(db=db).can_complete(project_id)
        return PaymentGateResponse(
            project_id=project_id,
            ok=gate.ok,
            reason=gate.reason,
            unpaid=[FinancialDocumentResponse.model_validate(document) for document in gate.unpaid],
        )


@router.get("/projects/{project_id}/financial-documents")
def list_financial_documents(
    project_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict:
    _authorize(authorization, [FINANCIAL_READ])
    with get_db_session() as db:
        try:
            ProjectService(db=db).require_project(project_id)
        except StudioFlowException as exc:
            raise to_http_error(exc) from exc
        documents = FinancialDocumentService(db=db).list_for_project(project_id)
        return {
            "items": [FinancialDocumentResponse.model_validate(doc).model_dump(mode="json") for doc in documents],
            "total": len(documents),
        }


@router.post("/projects/{project_id}/sync-financial-dates", response_model=FinancialDateSyncResponse)
def sync_financial_dates(
    project_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> FinancialDateSyncResponse:
    _authorize(authorization, [FINANCIAL_SYNC])
    with get_db_session() as db:
        try:
            result = build_coordinator(db).sync_financial_dates(project_id)
        except StudioFlowException as exc:
            raise to_http_error(exc) from exc
        return FinancialDateSyncResponse(
            project_id=result.project_id,
            success=result.success,
            message=result.message,
            updated_document_ids=result.updated_document_ids,
            due_date=result.due_date,
        )
