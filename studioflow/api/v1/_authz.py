"""Shared authorization and error mapping helpers for API v1 route modules."""

from __future__ import annotations

from fastapi import HTTPException, status

from studioflow.auth.rbac import require_scopes
from studioflow.core.config import get_config
from studioflow.core.dependencies import CurrentUser, get_current_user
from studioflow.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfirmationRequired,
    NotFoundError,
    PaymentPending,
    StudioFlowException,
    TransitionRejected,
    ValidationError,
)
from studioflow.schemas import ErrorEnvelope, FinancialDocumentResponse


def _extract_bearer_token(authorization: str | None) -> str:
    if authorization is None or not authorization.strip():
        raise AuthenticationError("Authorization header is required.")
    parts = authorization.strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError("Authorization header must use Bearer token.")
    return parts[1].strip()


def authorize(authorization: str | None, scopes: list[str]) -> CurrentUser:
    token = _extract_bearer_token(authorization)
    user = get_current_user(token=token, settings=get_config())
    require_scopes(user.role, scopes)
    return user


def map_auth_error(exc: Exception) -> tuple[int, str]:
    if isinstance(exc, AuthenticationError):
        return 401, str(exc)
    if isinstance(exc, AuthorizationError):
        return 403, str(exc)
    return 401, "Unauthorized."


def _status_for(exc: StudioFlowException) -> int:
    if isinstance(exc, ConfirmationRequired):
        return status.HTTP_428_PRECONDITION_REQUIRED
    if isinstance(exc, TransitionRejected):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ValidationError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def to_http_error(exc: StudioFlowException) -> HTTPException:
    """Translate a lifecycle error into an HTTPException carrying an ErrorEnvelope."""
    envelope = ErrorEnvelope(
        error_code=exc.error_code,
        detail=str(exc),
        reason_code=getattr(exc, "reason_code", None),
        unpaid=[
            FinancialDocumentResponse.model_validate(document).model_dump(mode="json")
            for document in exc.unpaid
        ]
        if isinstance(exc, PaymentPending)
        else None,
    )
    return HTTPException(status_code=_status_for(exc), detail=envelope.model_dump(exclude_none=True))
