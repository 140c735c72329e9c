"""Financial side effects of accepted stage transitions.

Two rules keep billing aligned with the pipeline:

* crossing into acceptance opens the production cycle's invoice, unless a
  pending unpaid invoice is already there;
* falling back below acceptance removes every pending unpaid document of the
  project through ``revert_side_effects``. Paid documents are revenue history
  and are never touched.

Invoice creation errors propagate as ``SideEffectFailure`` so the caller can
abort the stage change. Deletion errors are contained in a SAVEPOINT and
returned as warnings.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studioflow.core.exceptions import SideEffectFailure, StudioFlowException
from studioflow.lifecycle import stages
from studioflow.models import FinancialDocument, Project
from studioflow.models.enums import StageStatus
from studioflow.services.financial_document_service import FinancialDocumentService

logger = logging.getLogger(__name__)


class Direction(str, enum.Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


@dataclass
class SideEffectResult:
    created_invoice: FinancialDocument | None = None
    deleted_document_ids: list[int] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def touched_documents(self) -> bool:
        return self.created_invoice is not None or bool(self.deleted_document_ids)


@dataclass
class FinancialDateSyncResult:
    project_id: int
    updated_document_ids: list[int] = field(default_factory=list)
    due_date: datetime | None = None

    @property
    def success(self) -> bool:
        return bool(self.updated_document_ids)

    @property
    def message(self) -> str:
        if not self.updated_document_ids:
            return "No pending invoices to synchronize."
        return f"{len(self.updated_document_ids)} pending invoice(s) now due {self.due_date.date().isoformat()}."


def normalize_to_hour(value: datetime, hour: int = 12) -> datetime:
    """Pin a timestamp to a fixed hour of its calendar day, in UTC.

    The calendar day is taken as stored; only the clock time is replaced so a
    later timezone conversion cannot push the date onto a neighbouring day.
    """
    return datetime(value.year, value.month, value.day, hour, 0, 0, tzinfo=timezone.utc)


def compute_due_date(
    project: Project,
    default_term_days: int = 30,
    normalized_hour: int = 12,
    now: datetime | None = None,
) -> datetime:
    base = project.issue_date or project.end_date or now or datetime.now(timezone.utc)
    term = project.payment_term_days if project.payment_term_days is not None else default_term_days
    return normalize_to_hour(base, normalized_hour) + timedelta(days=term)


class FinancialSyncEngine:
    def __init__(
        self,
        db: Session,
        documents: FinancialDocumentService | None = None,
        default_term_days: int = 30,
        normalized_hour: int = 12,
    ) -> None:
        self.db = db
        self.documents = documents or FinancialDocumentService(db=db)
        self.default_term_days = default_term_days
        self.normalized_hour = normalized_hour

    def on_transition_accepted(
        self,
        project: Project,
        previous_stage: StageStatus | str,
        new_stage: StageStatus | str,
    ) -> SideEffectResult:
        result = SideEffectResult()
        if stages.crosses_into_acceptance(previous_stage, new_stage):
            result.created_invoice = self.ensure_acceptance_invoice(project)
        elif stages.falls_below_acceptance(previous_stage, new_stage):
            deleted, warnings = self.revert_side_effects(project.id, Direction.BACKWARD)
            result.deleted_document_ids.extend(deleted)
            result.warnings.extend(warnings)
        return result

    def ensure_acceptance_invoice(self, project: Project) -> FinancialDocument | None:
        """Create the cycle's invoice; returns None when one is already pending."""
        try:
            existing = self.documents.find_pending_invoice(project.id)
            if existing is not None:
                logger.info(
                    "financial_sync.invoice.exists",
                    extra={
                        "event": "financial_sync.invoice.exists",
                        "project_id": project.id,
                        "document_id": existing.id,
                    },
                )
                return None

            term = project.payment_term_days if project.payment_term_days is not None else self.default_term_days
            due_date = compute_due_date(project, self.default_term_days, self.normalized_hour)
            invoice = self.documents.create_document(
                project=project,
                amount=project.budget if project.budget is not None else Decimal("0"),
                due_date=due_date,
                description=f"Invoice for project: {project.name} (term: {term} days)",
            )
        except (SQLAlchemyError, StudioFlowException) as exc:
            logger.error(
                "financial_sync.invoice.create_failed",
                extra={"event": "financial_sync.invoice.create_failed", "project_id": project.id, "error": str(exc)},
            )
            raise SideEffectFailure(f"Could not create the acceptance invoice for project {project.id}: {exc}") from exc

        logger.info(
            "financial_sync.invoice.created",
            extra={
                "event": "financial_sync.invoice.created",
                "project_id": project.id,
                "document_id": invoice.id,
                "due_date": invoice.due_date.isoformat() if invoice.due_date else None,
            },
        )
        return invoice

    def revert_side_effects(self, project_id: int, direction: Direction) -> tuple[list[int], list[str]]:
        """Single enforcement point for "no pending invoice survives a revert".

        Runs inside a SAVEPOINT: on failure the deletions are undone, the
        outer transaction stays usable and the error comes back as a warning.
        """
        if direction is not Direction.BACKWARD:
            return [], []

        deleted: list[int] = []
        try:
            with self.db.begin_nested():
                for document in self.documents.list_pending_unpaid(project_id):
                    document_id = document.id
                    self.documents.delete_document(document)
                    deleted.append(document_id)
        except (SQLAlchemyError, StudioFlowException) as exc:
            warning = f"Pending financial documents of project {project_id} could not be removed: {exc}"
            logger.warning(
                "financial_sync.revert.delete_failed",
                extra={"event": "financial_sync.revert.delete_failed", "project_id": project_id, "error": str(exc)},
            )
            return [], [warning]

        if deleted:
            logger.info(
                "financial_sync.revert.deleted",
                extra={"event": "financial_sync.revert.deleted", "project_id": project_id, "document_ids": deleted},
            )
        return deleted, []

    def sync_due_dates(self, project: Project) -> FinancialDateSyncResult:
        """Recompute due dates of pending unpaid invoices from the project's dates."""
        due_date = compute_due_date(project, self.default_term_days, self.normalized_hour)
        result = FinancialDateSyncResult(project_id=project.id, due_date=due_date)
        for document in self.documents.list_pending_unpaid(project.id):
            document.due_date = due_date
            result.updated_document_ids.append(document.id)
        self.db.flush()
        return result
