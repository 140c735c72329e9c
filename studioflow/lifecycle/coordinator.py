"""Server-side application of lifecycle transitions.

``TransitionCoordinator`` is the only writer of ``stage_status`` and
``special_status``. Each request walks a fixed sequence of phases::

    requested -> validated -> side_effects_applied -> persisted -> broadcast -> done
    requested -> rejected
    requested -> done                         (idempotent no-op)

Financial side effects, the status write and the history row share one
database transaction, so a failed invoice creation or history append leaves
nothing behind. Deleting pending documents on a revert runs in a SAVEPOINT
inside that transaction and only downgrades to a warning when it fails.

Concurrent writers are not serialized: the status write is keyed on the
stage observed during validation and, when another request committed first,
the write is logged as an overwrite and reapplied (last writer wins).
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studioflow.core.config import Config, get_config
from studioflow.core.exceptions import (
    ConfirmationRequired,
    DatabaseError,
    HistoryWriteFailure,
    InvalidTransition,
    PaymentPending,
    SideEffectFailure,
    ValidationError,
)
from studioflow.core.logging import LogContext, build_log_event
from studioflow.events.bus import EventBus, project_topic
from studioflow.lifecycle import special, stages
from studioflow.lifecycle.financial_sync import FinancialDateSyncResult, FinancialSyncEngine, SideEffectResult
from studioflow.lifecycle.history import StatusHistoryRecorder
from studioflow.lifecycle.payment_gate import PaymentGate
from studioflow.lifecycle.validator import ReasonCode, TransitionOutcome, TransitionValidator
from studioflow.models import FinancialDocument, Project
from studioflow.models.enums import SpecialStatus, StageStatus, StatusKind
from studioflow.orchestration.state_machine import StateMachine
from studioflow.services.financial_document_service import FinancialDocumentService
from studioflow.services.project_service import ProjectService

logger = logging.getLogger(__name__)

PROJECT_UPDATED = "project_updated"
FINANCIAL_UPDATED = "financial_updated"
CONFIRM_CANCELLATION = "CONFIRM_CANCELLATION"


class TransitionPhase(str, enum.Enum):
    REQUESTED = "requested"
    VALIDATED = "validated"
    SIDE_EFFECTS_APPLIED = "side_effects_applied"
    PERSISTED = "persisted"
    BROADCAST = "broadcast"
    DONE = "done"
    REJECTED = "rejected"
    ABORTED = "aborted"


PHASE_TRANSITIONS: dict[TransitionPhase, set[TransitionPhase]] = {
    TransitionPhase.REQUESTED: {TransitionPhase.VALIDATED, TransitionPhase.REJECTED, TransitionPhase.DONE},
    TransitionPhase.VALIDATED: {TransitionPhase.SIDE_EFFECTS_APPLIED, TransitionPhase.ABORTED},
    TransitionPhase.SIDE_EFFECTS_APPLIED: {TransitionPhase.PERSISTED, TransitionPhase.ABORTED},
    TransitionPhase.PERSISTED: {TransitionPhase.BROADCAST, TransitionPhase.DONE},
    TransitionPhase.BROADCAST: {TransitionPhase.DONE},
    TransitionPhase.DONE: set(),
    TransitionPhase.REJECTED: set(),
    TransitionPhase.ABORTED: set(),
}


@dataclass
class TransitionResult:
    project_id: int
    kind: StatusKind
    previous_status: str
    new_status: str
    changed: bool
    snapshot: dict[str, Any]
    phase: TransitionPhase
    outcome: TransitionOutcome | None = None
    side_effects: SideEffectResult = field(default_factory=SideEffectResult)
    history_record_id: int | None = None
    broadcast_delivered: bool = False

    @property
    def warnings(self) -> list[str]:
        return list(self.side_effects.warnings)


def _value(status) -> str:
    return getattr(status, "value", status)


def project_snapshot(project: Project) -> dict[str, Any]:
    """Serializable view of a project as clients render it."""
    stage = stages.coerce_stage(project.stage_status)
    special_status = special.coerce_special(project.special_status)
    return {
        "id": project.id,
        "client_id": project.client_id,
        "name": project.name,
        "budget": project.budget,
        "payment_term_days": project.payment_term_days,
        "stage_status": stage.value,
        "stage_label": stages.label(stage),
        "special_status": special_status.value,
        "special_status_label": special.label(special_status),
        "issue_date": project.issue_date,
        "end_date": project.end_date,
        "allowed_targets": [] if special.blocks_stage_change(special_status) else [
            target.value for target in stages.allowed_targets(stage)
        ],
        "updated_at": project.updated_at,
    }


def project_updated_payload(project: Project) -> dict[str, Any]:
    return {
        "event": PROJECT_UPDATED,
        "projectId": project.id,
        "newStage": _value(project.stage_status),
        "newSpecialStatus": _value(project.special_status),
    }


class TransitionCoordinator:
    def __init__(self, db: Session, bus: EventBus, config: Config | None = None) -> None:
        self.db = db
        self.bus = bus
        self.config = config or get_config()
        self.projects = ProjectService(db=db)
        self.documents = FinancialDocumentService(db=db)
        self.payment_gate = PaymentGate(db=db, documents=self.documents)
        self.validator = TransitionValidator(self.payment_gate)
        self.financial = FinancialSyncEngine(
            db=db,
            documents=self.documents,
            default_term_days=self.config.DEFAULT_PAYMENT_TERM_DAYS,
            normalized_hour=self.config.INVOICE_NORMALIZED_HOUR,
        )
        self.history = StatusHistoryRecorder(db=db)

    def update_stage_status(
        self,
        project_id: int,
        target_stage: StageStatus | str,
        acting_user_id: int,
        reason: str | None = None,
        confirmed: bool = False,
    ) -> TransitionResult:
        phases = StateMachine(PHASE_TRANSITIONS, TransitionPhase.REQUESTED)
        target = self._coerce(stages.coerce_stage, target_stage, "stage")
        project = self.projects.require_project(project_id, refresh=True)
        observed = stages.coerce_stage(project.stage_status)
        context = LogContext(project_id=project_id, user_id=acting_user_id)

        outcome = self.validator.validate(project, target)
        if outcome.is_noop:
            phases.advance(TransitionPhase.DONE)
            logger.info(
                "project.stage.noop",
                extra=build_log_event("project.stage.noop", context, stage=observed.value),
            )
            return TransitionResult(
                project_id=project_id,
                kind=StatusKind.STAGE,
                previous_status=observed.value,
                new_status=observed.value,
                changed=False,
                snapshot=project_snapshot(project),
                phase=phases.state,
                outcome=outcome,
            )

        if not outcome.allowed:
            phases.advance(TransitionPhase.REJECTED)
            self._reject(context, "stage", observed.value, target.value, outcome.reason_code.value)
            if outcome.reason_code is ReasonCode.PAYMENT_PENDING:
                raise PaymentPending(outcome.message, outcome.unpaid)
            raise InvalidTransition(outcome.message, reason_code=outcome.reason_code.value)

        if outcome.requires_confirmation and not confirmed:
            phases.advance(TransitionPhase.REJECTED)
            self._reject(context, "stage", observed.value, target.value, outcome.reason_code.value)
            raise ConfirmationRequired(
                f"Moving to '{stages.label(target)}' must be confirmed: {outcome.message}",
                reason_code=outcome.reason_code.value,
            )

        phases.advance(TransitionPhase.VALIDATED)
        try:
            side_effects = self.financial.on_transition_accepted(project, observed, target)
            phases.advance(TransitionPhase.SIDE_EFFECTS_APPLIED)
            self._write_stage(project_id, observed, target, context)
            record = self.history.record(
                project_id=project_id,
                kind=StatusKind.STAGE,
                previous=observed,
                new=target,
                reason=reason or outcome.message,
                user_id=acting_user_id,
            )
            self.db.commit()
        except (SideEffectFailure, HistoryWriteFailure):
            self._abort(phases, context)
            raise
        except SQLAlchemyError as exc:
            self._abort(phases, context)
            raise DatabaseError(f"Could not persist stage change for project {project_id}: {exc}") from exc

        phases.advance(TransitionPhase.PERSISTED)
        self.db.refresh(project)
        logger.info(
            "project.stage.changed",
            extra=build_log_event(
                "project.stage.changed",
                context,
                previous=observed.value,
                new=target.value,
                reason_code=outcome.reason_code.value,
                created_invoice_id=side_effects.created_invoice.id if side_effects.created_invoice else None,
                deleted_document_ids=side_effects.deleted_document_ids,
                warnings=side_effects.warnings,
            ),
        )

        delivered = self._broadcast(project_topic(project_id), project_updated_payload(project), context)
        if delivered:
            phases.advance(TransitionPhase.BROADCAST)
        phases.advance(TransitionPhase.DONE)
        return TransitionResult(
            project_id=project_id,
            kind=StatusKind.STAGE,
            previous_status=observed.value,
            new_status=target.value,
            changed=True,
            snapshot=project_snapshot(project),
            phase=phases.state,
            outcome=outcome,
            side_effects=side_effects,
            history_record_id=record.id,
            broadcast_delivered=delivered,
        )

    def update_special_status(
        self,
        project_id: int,
        target_special_status: SpecialStatus | str,
        acting_user_id: int,
        reason: str | None = None,
        confirmed: bool = False,
    ) -> TransitionResult:
        phases = StateMachine(PHASE_TRANSITIONS, TransitionPhase.REQUESTED)
        target = self._coerce(special.coerce_special, target_special_status, "special status")
        project = self.projects.require_project(project_id, refresh=True)
        current = special.coerce_special(project.special_status)
        context = LogContext(project_id=project_id, user_id=acting_user_id)

        if target is current:
            phases.advance(TransitionPhase.DONE)
            logger.info(
                "project.special_status.noop",
                extra=build_log_event("project.special_status.noop", context, special_status=current.value),
            )
            return TransitionResult(
                project_id=project_id,
                kind=StatusKind.SPECIAL,
                previous_status=current.value,
                new_status=current.value,
                changed=False,
                snapshot=project_snapshot(project),
                phase=phases.state,
            )

        try:
            special.validate_special_transition(current, target)
        except InvalidTransition as exc:
            phases.advance(TransitionPhase.REJECTED)
            self._reject(context, "special_status", current.value, target.value, exc.reason_code)
            raise

        if special.requires_confirmation(target, self.config.REQUIRE_CANCEL_CONFIRMATION) and not confirmed:
            phases.advance(TransitionPhase.REJECTED)
            self._reject(context, "special_status", current.value, target.value, CONFIRM_CANCELLATION)
            raise ConfirmationRequired(
                "Canceling a project freezes its pipeline and must be confirmed.",
                reason_code=CONFIRM_CANCELLATION,
            )

        phases.advance(TransitionPhase.VALIDATED)
        # The overlay has no financial side effects.
        phases.advance(TransitionPhase.SIDE_EFFECTS_APPLIED)
        try:
            project.special_status = target
            self.db.flush()
            record = self.history.record(
                project_id=project_id,
                kind=StatusKind.SPECIAL,
                previous=current,
                new=target,
                reason=reason,
                user_id=acting_user_id,
            )
            self.db.commit()
        except HistoryWriteFailure:
            self._abort(phases, context)
            raise
        except SQLAlchemyError as exc:
            self._abort(phases, context)
            raise DatabaseError(f"Could not persist special status for project {project_id}: {exc}") from exc

        phases.advance(TransitionPhase.PERSISTED)
        self.db.refresh(project)
        logger.info(
            "project.special_status.changed",
            extra=build_log_event(
                "project.special_status.changed",
                context,
                previous=current.value,
                new=target.value,
            ),
        )

        delivered = self._broadcast(project_topic(project_id), project_updated_payload(project), context)
        if delivered:
            phases.advance(TransitionPhase.BROADCAST)
        phases.advance(TransitionPhase.DONE)
        return TransitionResult(
            project_id=project_id,
            kind=StatusKind.SPECIAL,
            previous_status=current.value,
            new_status=target.value,
            changed=True,
            snapshot=project_snapshot(project),
            phase=phases.state,
            history_record_id=record.id,
            broadcast_delivered=delivered,
        )

    def sync_financial_dates(self, project_id: int) -> FinancialDateSyncResult:
        """Realign pending invoice due dates with the project's dates and term."""
        project = self.projects.require_project(project_id, refresh=True)
        context = LogContext(project_id=project_id)
        try:
            result = self.financial.sync_due_dates(project)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise DatabaseError(f"Could not synchronize financial dates for project {project_id}: {exc}") from exc

        logger.info(
            "financial_sync.due_dates.synced",
            extra=build_log_event(
                "financial_sync.due_dates.synced",
                context,
                document_ids=result.updated_document_ids,
            ),
        )
        if result.success:
            self._broadcast(
                project_topic(project_id),
                {
                    "event": FINANCIAL_UPDATED,
                    "projectId": project_id,
                    "documentIds": result.updated_document_ids,
                    "dueDate": result.due_date.isoformat() if result.due_date else None,
                },
                context,
            )
        return result

    def mark_document_paid(self, document_id: int, acting_user_id: int | None = None) -> FinancialDocument:
        document = self.documents.mark_paid(document_id)
        self._broadcast(
            project_topic(document.project_id),
            {
                "event": FINANCIAL_UPDATED,
                "projectId": document.project_id,
                "documentIds": [document.id],
                "paid": True,
            },
            LogContext(project_id=document.project_id, user_id=acting_user_id),
        )
        return document

    @staticmethod
    def _coerce(coerce, value, what: str):
        try:
            return coerce(value)
        except ValueError as exc:
            raise ValidationError(f"Unknown {what}: {value!r}") from exc

    def _write_stage(
        self,
        project_id: int,
        observed: StageStatus,
        target: StageStatus,
        context: LogContext,
    ) -> None:
        guarded = (
            update(Project)
            .where(Project.id == project_id, Project.stage_status == observed)
            .values(stage_status=target)
            .execution_options(synchronize_session=False)
        )
        if self.db.execute(guarded).rowcount:
            return

        logger.warning(
            "project.concurrent_overwrite",
            extra=build_log_event(
                "project.concurrent_overwrite",
                context,
                observed=observed.value,
                new=target.value,
            ),
        )
        self.db.execute(
            update(Project)
            .where(Project.id == project_id)
            .values(stage_status=target)
            .execution_options(synchronize_session=False)
        )

    def _broadcast(self, topic: str, payload: dict[str, Any], context: LogContext) -> bool:
        try:
            self.bus.publish(topic, payload)
        except Exception as exc:
            logger.error(
                "project.broadcast_failed",
                extra=build_log_event("project.broadcast_failed", context, topic=topic, error=str(exc)),
            )
            return False
        return True

    def _abort(self, phases: StateMachine, context: LogContext) -> None:
        self.db.rollback()
        phases.advance(TransitionPhase.ABORTED)
        logger.error(
            "project.transition.aborted",
            extra=build_log_event("project.transition.aborted", context),
        )

    @staticmethod
    def _reject(context: LogContext, kind: str, current: str, target: str, reason_code: str) -> None:
        logger.info(
            "project.transition.rejected",
            extra=build_log_event(
                "project.transition.rejected",
                context,
                kind=kind,
                current=current,
                target=target,
                reason_code=reason_code,
            ),
        )
