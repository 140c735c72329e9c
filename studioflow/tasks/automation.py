"""Scheduled sweep that flags projects past their end date as delayed."""

from __future__ import annotations

import logging
import time
import uuid
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from studioflow.core.config import get_config
from studioflow.core.dependencies import build_coordinator
from studioflow.core.exceptions import StudioFlowException
from studioflow.database.db import get_db_session
from studioflow.lifecycle import stages
from studioflow.lifecycle.coordinator import TransitionCoordinator
from studioflow.models import Project
from studioflow.models.enums import SpecialStatus, StageStatus
from studioflow.tasks.celery_app import celery_app
from studioflow.tasks.hooks import after_task, before_task

logger = logging.getLogger(__name__)

OVERDUE_TASK_KEY = "projects.mark_overdue_delayed"

# Projects that reached delivery are no longer late, whatever their end date.
_DELAY_CUTOFF = StageStatus.DELIVERED


def find_overdue_projects(db: Session, today: date) -> list[Project]:
    """Projects past their end date, still in production work and without a special status."""
    stmt = (
        select(Project)
        .where(Project.end_date.is_not(None))
        .where(Project.special_status == SpecialStatus.NONE)
        .order_by(Project.id)
    )
    return [
        project
        for project in db.scalars(stmt)
        if project.end_date.date() < today and stages.rank(project.stage_status) < stages.rank(_DELAY_CUTOFF)
    ]


def mark_overdue_projects_delayed(
    db: Session,
    coordinator: TransitionCoordinator,
    today: date | None = None,
    system_user_id: int | None = None,
) -> dict[str, Any]:
    """Flag every overdue project as delayed through the regular special-status path.

    One failing project does not stop the sweep; its id is reported in ``failed``.
    """
    today = today or datetime.now(timezone.utc).date()
    user_id = system_user_id if system_user_id is not None else coordinator.config.SYSTEM_USER_ID
    marked: list[int] = []
    failed: list[int] = []

    overdue = find_overdue_projects(db, today)
    for project in overdue:
        project_id = project.id
        end_date = project.end_date.date().isoformat()
        try:
            coordinator.update_special_status(
                project_id=project_id,
                target_special_status=SpecialStatus.DELAYED,
                acting_user_id=user_id,
                reason=f"Automatically marked as delayed: end date {end_date} has passed.",
            )
        except StudioFlowException as exc:
            failed.append(project_id)
            logger.error(
                "automation.overdue.mark_failed",
                extra={"event": "automation.overdue.mark_failed", "project_id": project_id, "error": str(exc)},
            )
            continue
        marked.append(project_id)

    return {"checked": len(overdue), "marked": marked, "failed": failed, "date": today.isoformat()}


@celery_app.task(bind=True, name=OVERDUE_TASK_KEY)
def mark_overdue_delayed_task(self, today: str | None = None) -> dict[str, Any]:
    context = {
        "user_id": get_config().SYSTEM_USER_ID,
        "trace_id": getattr(self.request, "id", None) or uuid.uuid4().hex,
    }
    logger.info("task.start", extra=before_task(task_key=OVERDUE_TASK_KEY, context=context))
    started = time.time()
    with get_db_session() as db:
        try:
            summary = mark_overdue_projects_delayed(
                db=db,
                coordinator=build_coordinator(db),
                today=date.fromisoformat(today) if today else None,
            )
        except Exception:
            logger.exception(
                "task.failed",
                extra=after_task(task_key=OVERDUE_TASK_KEY, context=context, status="failed"),
            )
            raise

    duration_ms = int((time.time() - started) * 1000)
    logger.info(
        "task.finish",
        extra=after_task(
            task_key=OVERDUE_TASK_KEY,
            context=context,
            status="succeeded",
            duration_ms=duration_ms,
            marked=summary["marked"],
            failed=summary["failed"],
        ),
    )
    return {**summary, "duration_ms": duration_ms}
