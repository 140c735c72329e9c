"""Common schema module."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class APIEnvelope(BaseModel):
    status: str = "ok"
    message: str | None = None


class ErrorEnvelope(BaseModel):
    status: str = "error"
    error_code: str
    detail: str
    reason_code: str | None = None
    unpaid: list[dict[str, Any]] | None = None
