"""Special-status overlay rules."""

from __future__ import annotations

from studioflow.core.exceptions import InvalidTransition
from studioflow.models.enums import SpecialStatus

_LABELS: dict[SpecialStatus, str] = {
    SpecialStatus.NONE: "No special status",
    SpecialStatus.DELAYED: "Delayed",
    SpecialStatus.PAUSED: "Paused",
    SpecialStatus.CANCELED: "Canceled",
}

if set(_LABELS) != set(SpecialStatus):
    raise RuntimeError("Special status label table must cover every SpecialStatus member.")

BLOCKED_BY_CANCELLATION = "BLOCKED_BY_CANCELLATION"
UNKNOWN_SPECIAL_STATUS = "UNKNOWN_SPECIAL_STATUS"


def coerce_special(value: SpecialStatus | str) -> SpecialStatus:
    if isinstance(value, SpecialStatus):
        return value
    return SpecialStatus(value)


def label(status: SpecialStatus | str) -> str:
    return _LABELS[coerce_special(status)]


def blocks_stage_change(status: SpecialStatus | str) -> bool:
    """Only cancellation freezes the pipeline; delayed and paused are advisory."""
    return coerce_special(status) is SpecialStatus.CANCELED


def requires_confirmation(target: SpecialStatus | str, cancel_requires_confirmation: bool = True) -> bool:
    return cancel_requires_confirmation and coerce_special(target) is SpecialStatus.CANCELED


def validate_special_transition(current: SpecialStatus | str, target: SpecialStatus | str) -> None:
    """Raise InvalidTransition when either side is not a special status.

    The flags are mutually exclusive and any of them replaces any other,
    including ``canceled``. Cancellation only freezes the stage pipeline.
    """
    for value in (current, target):
        try:
            coerce_special(value)
        except ValueError as exc:
            raise InvalidTransition(
                f"Unknown special status: {value!r}", reason_code=UNKNOWN_SPECIAL_STATUS
            ) from exc
