"""Ordered production pipeline and the per-stage rules built on its order."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TypeVar

from studioflow.models.enums import StageStatus

_T = TypeVar("_T")

PIPELINE: tuple[StageStatus, ...] = tuple(StageStatus)


def _total(table: Mapping[StageStatus, _T], concern: str) -> Mapping[StageStatus, _T]:
    missing = set(StageStatus) - set(table)
    if missing:
        names = ", ".join(sorted(stage.value for stage in missing))
        raise RuntimeError(f"Stage table '{concern}' is missing: {names}")
    return table


_RANK = _total({stage: index for index, stage in enumerate(PIPELINE)}, "rank")

_LABELS = _total(
    {
        StageStatus.PROPOSAL: "Proposal",
        StageStatus.ACCEPTED: "Proposal Accepted",
        StageStatus.PRE_PRODUCTION: "Pre-Production",
        StageStatus.PRODUCTION: "Production",
        StageStatus.POST_REVIEW: "Post-Review",
        StageStatus.DELIVERED: "Delivered",
        StageStatus.COMPLETED: "Completed",
    },
    "label",
)

# Entering these stages is consequential for the client, whatever the direction.
_CONFIRM_ON_ENTRY = _total(
    {
        StageStatus.PROPOSAL: False,
        StageStatus.ACCEPTED: False,
        StageStatus.PRE_PRODUCTION: False,
        StageStatus.PRODUCTION: False,
        StageStatus.POST_REVIEW: False,
        StageStatus.DELIVERED: True,
        StageStatus.COMPLETED: True,
    },
    "confirm_on_entry",
)

# Stages whose entry is gated on every financial document being paid.
_BLOCKS_COMPLETION = _total(
    {
        StageStatus.PROPOSAL: False,
        StageStatus.ACCEPTED: False,
        StageStatus.PRE_PRODUCTION: False,
        StageStatus.PRODUCTION: False,
        StageStatus.POST_REVIEW: False,
        StageStatus.DELIVERED: False,
        StageStatus.COMPLETED: True,
    },
    "payment_gated",
)

ACCEPTANCE = StageStatus.ACCEPTED
TERMINAL = PIPELINE[-1]


def coerce_stage(value: StageStatus | str) -> StageStatus:
    """Accept either an enum member or its persisted string value."""
    if isinstance(value, StageStatus):
        return value
    return StageStatus(value)


def rank(stage: StageStatus | str) -> int:
    return _RANK[coerce_stage(stage)]


def label(stage: StageStatus | str) -> str:
    return _LABELS[coerce_stage(stage)]


def is_forward(current: StageStatus | str, target: StageStatus | str) -> bool:
    return rank(target) > rank(current)


def is_revert(current: StageStatus | str, target: StageStatus | str) -> bool:
    return rank(target) < rank(current)


def requires_confirmation(stage: StageStatus | str) -> bool:
    return _CONFIRM_ON_ENTRY[coerce_stage(stage)]


def blocks_completion(stage: StageStatus | str) -> bool:
    """True when entering the stage requires every financial document to be paid."""
    return _BLOCKS_COMPLETION[coerce_stage(stage)]


def allowed_targets(current: StageStatus | str) -> list[StageStatus]:
    """Every stage except the current one; order only decides the transition class."""
    current_stage = coerce_stage(current)
    return [stage for stage in PIPELINE if stage is not current_stage]


def crosses_into_acceptance(previous: StageStatus | str, new: StageStatus | str) -> bool:
    """True when a transition moves from below acceptance to acceptance or beyond."""
    return rank(previous) < rank(ACCEPTANCE) <= rank(new)


def falls_below_acceptance(previous: StageStatus | str, new: StageStatus | str) -> bool:
    """True when a transition leaves acceptance (or beyond) for a pre-acceptance stage."""
    return rank(new) < rank(ACCEPTANCE) <= rank(previous)
