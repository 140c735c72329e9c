from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from studioflow.lifecycle.financial_sync import (
    Direction,
    FinancialSyncEngine,
    compute_due_date,
    normalize_to_hour,
)
from studioflow.models import FinancialDocument
from studioflow.models.enums import FinancialDocumentStatus, StageStatus


def _naive(value: datetime) -> datetime:
    return value.replace(tzinfo=None)


def test_normalize_keeps_calendar_day():
    late = datetime(2026, 3, 10, 23, 59)
    assert normalize_to_hour(late) == datetime(2026, 3, 10, 12, tzinfo=timezone.utc)
    assert normalize_to_hour(late, hour=9).hour == 9


def test_due_date_uses_issue_date_and_default_term(seed):
    project = seed()
    due = compute_due_date(project)
    assert _naive(due) == datetime(2026, 4, 9, 12, 0)


def test_due_date_falls_back_to_end_date_and_project_term(seed):
    project = seed(issue_date=None, end_date=datetime(2026, 6, 1, 18, tzinfo=timezone.utc), payment_term_days=45)
    assert _naive(compute_due_date(project)) == datetime(2026, 7, 16, 12, 0)


def test_due_date_falls_back_to_now(seed):
    project = seed(issue_date=None, end_date=None)
    now = datetime(2026, 1, 5, 7, tzinfo=timezone.utc)
    assert compute_due_date(project, default_term_days=10, now=now) == datetime(2026, 1, 15, 12, tzinfo=timezone.utc)


def test_entering_acceptance_creates_one_invoice(db, seed):
    project = seed(budget=Decimal("12500.00"))
    engine = FinancialSyncEngine(db=db)

    result = engine.on_transition_accepted(project, StageStatus.PROPOSAL, StageStatus.ACCEPTED)
    invoice = result.created_invoice
    assert invoice is not None
    assert invoice.amount == Decimal("12500.00")
    assert invoice.paid is False
    assert invoice.status is FinancialDocumentStatus.PENDING
    assert _naive(invoice.due_date) == datetime(2026, 4, 9, 12, 0)

    again = engine.on_transition_accepted(project, StageStatus.PROPOSAL, StageStatus.ACCEPTED)
    assert again.created_invoice is None
    assert db.query(FinancialDocument).filter(FinancialDocument.project_id == project.id).count() == 1


def test_missing_budget_bills_zero(db, seed):
    project = seed(budget=None)
    result = FinancialSyncEngine(db=db).on_transition_accepted(project, StageStatus.PROPOSAL, StageStatus.PRODUCTION)
    assert result.created_invoice.amount == Decimal("0")


def test_moves_above_acceptance_have_no_side_effects(db, seed):
    project = seed(stage_status=StageStatus.PRODUCTION)
    result = FinancialSyncEngine(db=db).on_transition_accepted(project, StageStatus.PRODUCTION, StageStatus.ACCEPTED)
    assert result.touched_documents is False


def test_revert_deletes_pending_unpaid_and_keeps_paid(db, seed, add_document):
    project = seed(stage_status=StageStatus.ACCEPTED)
    pending = add_document(project)
    paid = add_document(project, paid=True)
    overdue = add_document(project, status=FinancialDocumentStatus.OVERDUE)

    deleted, warnings = FinancialSyncEngine(db=db).revert_side_effects(project.id, Direction.BACKWARD)
    db.commit()

    assert deleted == [pending.id]
    assert warnings == []
    remaining = {doc.id for doc in db.query(FinancialDocument).filter(FinancialDocument.project_id == project.id)}
    assert remaining == {paid.id, overdue.id}


def test_revert_forward_direction_is_ignored(db, seed, add_document):
    project = seed(stage_status=StageStatus.ACCEPTED)
    add_document(project)
    assert FinancialSyncEngine(db=db).revert_side_effects(project.id, Direction.FORWARD) == ([], [])


def test_sync_due_dates_realigns_pending_invoices(db, seed, add_document):
    project = seed(stage_status=StageStatus.PRODUCTION, payment_term_days=15)
    pending = add_document(project)
    paid = add_document(project, paid=True)

    result = FinancialSyncEngine(db=db).sync_due_dates(project)
    db.commit()

    assert result.success is True
    assert result.updated_document_ids == [pending.id]
    assert _naive(pending.due_date) == datetime(2026, 3, 25, 12, 0)
    assert _naive(paid.due_date) == datetime(2026, 4, 9, 12, 0)
    assert "2026-03-25" in result.message
