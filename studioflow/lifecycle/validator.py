"""Stage transition validation.

``TransitionValidator.validate`` classifies a requested stage change without
writing anything. Rules are evaluated in a fixed order:

1. a canceled project cannot change stage at all;
2. asking for the current stage is an idempotent no-op;
3. moving to a lower-rank stage is a revert and must be confirmed;
4. reaching the terminal stage requires the payment gate to pass, and a jump
   that also crosses into acceptance is refused because the invoice it
   issues would be unpaid;
5. any other forward move is allowed, with confirmation required when
   entering ``delivered`` or ``completed``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from studioflow.lifecycle import special, stages
from studioflow.lifecycle.payment_gate import NO_DOCUMENTS, PaymentGate
from studioflow.models import FinancialDocument, Project
from studioflow.models.enums import StageStatus


class ReasonCode(str, enum.Enum):
    FORWARD = "FORWARD"
    REVERT = "REVERT"
    NO_CHANGE = "NO_CHANGE"
    BLOCKED_BY_CANCELLATION = special.BLOCKED_BY_CANCELLATION
    PAYMENT_PENDING = "PAYMENT_PENDING"


REVERT_MESSAGE = "reverting removes associated pending invoices"


@dataclass(frozen=True)
class TransitionOutcome:
    allowed: bool
    requires_confirmation: bool
    reason_code: ReasonCode
    message: str = ""
    unpaid: list[FinancialDocument] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return self.reason_code is ReasonCode.NO_CHANGE

    @property
    def is_revert(self) -> bool:
        return self.reason_code is ReasonCode.REVERT


class TransitionValidator:
    def __init__(self, payment_gate: PaymentGate) -> None:
        self.payment_gate = payment_gate

    def validate(self, project: Project, target_stage: StageStatus | str) -> TransitionOutcome:
        target = stages.coerce_stage(target_stage)
        current = stages.coerce_stage(project.stage_status)

        if special.blocks_stage_change(project.special_status):
            return TransitionOutcome(
                allowed=False,
                requires_confirmation=False,
                reason_code=ReasonCode.BLOCKED_BY_CANCELLATION,
                message="Canceled projects cannot change stage until the cancellation is cleared.",
            )

        if target is current:
            return TransitionOutcome(
                allowed=False,
                requires_confirmation=False,
                reason_code=ReasonCode.NO_CHANGE,
                message=f"Project is already in stage '{stages.label(current)}'.",
            )

        if stages.is_revert(current, target):
            return TransitionOutcome(
                allowed=True,
                requires_confirmation=True,
                reason_code=ReasonCode.REVERT,
                message=REVERT_MESSAGE,
            )

        if stages.blocks_completion(target):
            gate = self.payment_gate.can_complete(project.id)
            if not gate.ok:
                if gate.reason == NO_DOCUMENTS:
                    message = "Project has no financial documents; it cannot complete without being billed."
                else:
                    message = f"{len(gate.unpaid)} financial document(s) are still unpaid."
                return TransitionOutcome(
                    allowed=False,
                    requires_confirmation=False,
                    reason_code=ReasonCode.PAYMENT_PENDING,
                    message=message,
                    unpaid=gate.unpaid,
                )
            if stages.crosses_into_acceptance(current, target):
                return TransitionOutcome(
                    allowed=False,
                    requires_confirmation=False,
                    reason_code=ReasonCode.PAYMENT_PENDING,
                    message=(
                        f"Moving from '{stages.label(current)}' to '{stages.label(target)}' issues "
                        "a new acceptance invoice, which would leave the project completed but unpaid."
                    ),
                )

        return TransitionOutcome(
            allowed=True,
            requires_confirmation=stages.requires_confirmation(target),
            reason_code=ReasonCode.FORWARD,
            message=f"{stages.label(current)} -> {stages.label(target)}",
        )
