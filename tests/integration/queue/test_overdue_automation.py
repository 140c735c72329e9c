from __future__ import annotations

from datetime import date, datetime, timezone

from studioflow.models import StatusHistoryRecord
from studioflow.models.enums import SpecialStatus, StageStatus, StatusKind
from studioflow.tasks import automation
from studioflow.tasks.automation import OVERDUE_TASK_KEY, mark_overdue_projects_delayed
from studioflow.tasks.celery_app import celery_app


def _ended(day: int) -> datetime:
    return datetime(2026, 10, day, 18, tzinfo=timezone.utc)


def test_overdue_projects_are_marked_delayed_by_the_system_user(db, bus, coordinator, seed):
    overdue = seed(stage_status=StageStatus.PRODUCTION, end_date=_ended(1), name="Overdue")
    due_today = seed(stage_status=StageStatus.PRODUCTION, end_date=_ended(18), name="Due today")
    delivered = seed(stage_status=StageStatus.DELIVERED, end_date=_ended(1), name="Delivered")
    paused = seed(stage_status=StageStatus.PRE_PRODUCTION, special_status=SpecialStatus.PAUSED, end_date=_ended(1))
    open_ended = seed(stage_status=StageStatus.PRODUCTION, end_date=None, name="Open ended")

    summary = mark_overdue_projects_delayed(db, coordinator, today=date(2026, 10, 18), system_user_id=1)

    assert summary["marked"] == [overdue.id]
    assert summary["failed"] == []
    history = db.query(StatusHistoryRecord).all()
    assert len(history) == 1
    assert history[0].project_id == overdue.id
    assert history[0].status_kind is StatusKind.SPECIAL
    assert history[0].new_status == "delayed"
    assert history[0].changed_by == 1
    assert "2026-10-01" in history[0].reason
    assert [payload["projectId"] for _, payload in bus.published] == [overdue.id]
    for untouched in (due_today, delivered, paused, open_ended):
        db.refresh(untouched)
        assert untouched.special_status is not SpecialStatus.DELAYED


def test_sweep_is_idempotent(db, coordinator, seed):
    seed(stage_status=StageStatus.PRODUCTION, end_date=_ended(1))

    first = mark_overdue_projects_delayed(db, coordinator, today=date(2026, 10, 18), system_user_id=1)
    second = mark_overdue_projects_delayed(db, coordinator, today=date(2026, 10, 18), system_user_id=1)

    assert len(first["marked"]) == 1
    assert second["checked"] == 0
    assert db.query(StatusHistoryRecord).count() == 1


def test_task_is_registered_with_a_daily_schedule():
    assert OVERDUE_TASK_KEY in celery_app.tasks
    schedule = celery_app.conf.beat_schedule["mark-overdue-projects-delayed"]
    assert schedule["task"] == OVERDUE_TASK_KEY
    assert automation.__doc__.startswith("Scheduled sweep")
