"""Canonical state transition helpers for request-scoped workflows."""

from __future__ import annotations

from collections.abc import Hashable, Mapping


class PhaseTransitionError(ValueError):
    """Raised when a disallowed state transition is attempted."""


class StateMachine:
    """Table-driven state machine tracking a single current state."""

    def __init__(self, transitions: Mapping[Hashable, set], initial: Hashable) -> None:
        self._transitions = transitions
        self.state = initial
        self.trail: list = [initial]

    def can_transition(self, current: Hashable, target: Hashable) -> bool:
        return target in self._transitions.get(current, set())

    def assert_transition(self, current: Hashable, target: Hashable) -> None:
        if not self.can_transition(current=current, target=target):
            raise PhaseTransitionError(f"Transition not allowed: {current} -> {target}")

    def advance(self, target: Hashable) -> None:
        self.assert_transition(self.state, target)
        self.state = target
        self.trail.append(target)

    @property
    def is_terminal(self) -> bool:
        return not self._transitions.get(self.state)
