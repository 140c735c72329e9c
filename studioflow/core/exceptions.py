"""Custom exceptions for the StudioFlow lifecycle service."""

from __future__ import annotations

from typing import Any


class StudioFlowException(Exception):
    """Base exception for StudioFlow."""

    error_code: str = "STUDIOFLOW_ERROR"


class ValidationError(StudioFlowException):
    """Raised when validation fails."""

    error_code = "VALIDATION_ERROR"


class NotFoundError(StudioFlowException):
    """Raised when a resource is not found."""

    error_code = "NOT_FOUND"


class DatabaseError(StudioFlowException):
    """Raised when a database operation fails."""

    error_code = "DATABASE_ERROR"


class ServiceError(StudioFlowException):
    """Raised when a service operation fails."""

    error_code = "SERVICE_ERROR"


class ConfigurationError(StudioFlowException):
    """Raised when configuration is invalid."""

    error_code = "CONFIGURATION_ERROR"


class AuthenticationError(StudioFlowException):
    """Raised when authentication fails."""

    error_code = "AUTHENTICATION_ERROR"


class AuthorizationError(StudioFlowException):
    """Raised when an authenticated user lacks permission."""

    error_code = "AUTHORIZATION_ERROR"


class TransitionRejected(StudioFlowException):
    """Base class for lifecycle requests refused before anything is written."""

    error_code = "TRANSITION_REJECTED"

    def __init__(self, message: str, reason_code: str) -> None:
        self.reason_code = reason_code
        super().__init__(message)


class InvalidTransition(TransitionRejected):
    """Target status unreachable from the project's current state."""

    error_code = "INVALID_TRANSITION"


class PaymentPending(TransitionRejected):
    """Terminal transition blocked by unpaid financial documents."""

    error_code = "PAYMENT_PENDING"

    def __init__(self, message: str, unpaid: list[Any]) -> None:
        self.unpaid = list(unpaid)
        super().__init__(message, reason_code="PAYMENT_PENDING")


class ConfirmationRequired(TransitionRejected):
    """Transition is legal but consequential and was not confirmed."""

    error_code = "CONFIRMATION_REQUIRED"


class SideEffectFailure(StudioFlowException):
    """Financial document creation or deletion failed."""

    error_code = "SIDE_EFFECT_FAILURE"


class HistoryWriteFailure(StudioFlowException):
    """Status history could not be appended; the transition is aborted."""

    error_code = "HISTORY_WRITE_FAILURE"


class ImmutableRecordError(StudioFlowException):
    """Attempted to modify or delete an append-only record."""

    error_code = "IMMUTABLE_RECORD"

    def __init__(self, entity_type: str, entity_id: Any, reason: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"{entity_type} {entity_id} is immutable: {reason}")
