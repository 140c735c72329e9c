"""Status history recorder."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studioflow.core.exceptions import HistoryWriteFailure
from studioflow.models import StatusHistoryRecord
from studioflow.models.enums import StatusKind

logger = logging.getLogger(__name__)


def _status_value(status) -> str:
    return getattr(status, "value", status)


class StatusHistoryRecorder:
    """Append-only writer for stage and special-status changes."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def record(
        self,
        project_id: int,
        kind: StatusKind,
        previous,
        new,
        reason: str | None,
        user_id: int,
    ) -> StatusHistoryRecord:
        record = StatusHistoryRecord(
            project_id=project_id,
            status_kind=kind,
            previous_status=_status_value(previous),
            new_status=_status_value(new),
            reason=reason or "",
            changed_by=user_id,
        )
        try:
            self._persist(record)
        except SQLAlchemyError as exc:
            logger.error(
                "status_history.write_failed",
                extra={"event": "status_history.write_failed", "project_id": project_id, "error": str(exc)},
            )
            raise HistoryWriteFailure(f"Could not record status change for project {project_id}: {exc}") from exc
        return record

    def _persist(self, record: StatusHistoryRecord) -> None:
        self.db.add(record)
        self.db.flush()

    def list_for_project(self, project_id: int, kind: StatusKind | None = None) -> list[StatusHistoryRecord]:
        """Newest first."""
        stmt = select(StatusHistoryRecord).where(StatusHistoryRecord.project_id == project_id)
        if kind is not None:
            stmt = stmt.where(StatusHistoryRecord.status_kind == kind)
        stmt = stmt.order_by(StatusHistoryRecord.created_at.desc(), StatusHistoryRecord.id.desc())
        return list(self.db.scalars(stmt))
