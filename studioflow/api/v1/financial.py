"""Financial document endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Header, HTTPException

from studioflow.api.v1._authz import authorize, map_auth_error, to_http_error
from studioflow.auth.rbac import FINANCIAL_PAY
from studioflow.core.dependencies import build_coordinator
from studioflow.core.exceptions import StudioFlowException
from studioflow.database.db import get_db_session
from studioflow.schemas import FinancialDocumentResponse

router = APIRouter(tags=["financial"])


@router.post("/financial-documents/{document_id}/pay", response_model=FinancialDocumentResponse)
def pay_financial_document(
    document_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> FinancialDocumentResponse:
    try:
        user = authorize(authorization=authorization, scopes=[FINANCIAL_PAY])
    except Exception as exc:
        code, detail = map_auth_error(exc)
        raise HTTPException(status_code=code, detail=detail) from exc

    with get_db_session() as db:
        try:
            document = build_coordinator(db).mark_document_paid(document_id, acting_user_id=user.user_id)
        except StudioFlowException as exc:
            raise to_http_error(exc) from exc
        return FinancialDocumentResponse.model_validate(document)
