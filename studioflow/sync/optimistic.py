"""Client-side optimistic view of projects.

A client that starts a transition shows the requested state right away as a
pending intent layered on the last confirmed state. The speculative layer is
never promoted by itself:

- ``confirm`` takes the server's response snapshot as the new confirmed state
- ``reject`` drops the intent, falling back to the confirmed state
- ``apply_broadcast`` overwrites the confirmed state with the authoritative
  ``project_updated`` payload and discards every pending intent of that project
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, replace
from typing import Any

from studioflow.events.bus import EventBus, Unsubscribe, project_topic

PROJECT_UPDATED = "project_updated"


@dataclass(frozen=True)
class ProjectView:
    project_id: int
    stage_status: str
    special_status: str
    pending: bool = False


@dataclass(frozen=True)
class PendingIntent:
    intent_id: str
    project_id: int
    stage_status: str | None = None
    special_status: str | None = None


class ProjectViewCache:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._confirmed: dict[int, ProjectView] = {}
        self._pending: dict[int, list[PendingIntent]] = {}

    def load(self, snapshot: dict[str, Any]) -> ProjectView:
        """Seed the confirmed state from a server snapshot."""
        view = ProjectView(
            project_id=int(snapshot["id"]),
            stage_status=str(snapshot["stage_status"]),
            special_status=str(snapshot["special_status"]),
        )
        with self._lock:
            self._confirmed[view.project_id] = view
        return self.view(view.project_id)

    def view(self, project_id: int) -> ProjectView:
        with self._lock:
            return self._compose(project_id)

    def confirmed(self, project_id: int) -> ProjectView:
        with self._lock:
            return self._require(project_id)

    def pending_intents(self, project_id: int) -> list[PendingIntent]:
        with self._lock:
            return list(self._pending.get(project_id, ()))

    def apply_intent(
        self,
        project_id: int,
        stage_status: str | None = None,
        special_status: str | None = None,
    ) -> str:
        if stage_status is None and special_status is None:
            raise ValueError("An intent must change the stage or the special status.")
        intent = PendingIntent(
            intent_id=uuid.uuid4().hex,
            project_id=project_id,
            stage_status=getattr(stage_status, "value", stage_status),
            special_status=getattr(special_status, "value", special_status),
        )
        with self._lock:
            self._require(project_id)
            self._pending.setdefault(project_id, []).append(intent)
        return intent.intent_id

    def confirm(self, intent_id: str, snapshot: dict[str, Any]) -> ProjectView:
        project_id = int(snapshot["id"])
        with self._lock:
            self._discard(project_id, intent_id)
            self._confirmed[project_id] = ProjectView(
                project_id=project_id,
                stage_status=str(snapshot["stage_status"]),
                special_status=str(snapshot["special_status"]),
            )
            return self._compose(project_id)

    def reject(self, intent_id: str) -> ProjectView | None:
        with self._lock:
            for project_id, intents in self._pending.items():
                if any(intent.intent_id == intent_id for intent in intents):
                    self._discard(project_id, intent_id)
                    return self._compose(project_id)
        return None

    def apply_broadcast(self, payload: dict[str, Any]) -> ProjectView | None:
        if payload.get("event") != PROJECT_UPDATED:
            return None
        project_id = int(payload["projectId"])
        with self._lock:
            self._pending.pop(project_id, None)
            self._confirmed[project_id] = ProjectView(
                project_id=project_id,
                stage_status=str(payload["newStage"]),
                special_status=str(payload["newSpecialStatus"]),
            )
            return self._compose(project_id)

    def attach(self, bus: EventBus, project_id: int) -> Unsubscribe:
        """Follow broadcasts for one project."""
        return bus.subscribe(project_topic(project_id), lambda _topic, payload: self.apply_broadcast(payload))

    def _require(self, project_id: int) -> ProjectView:
        try:
            return self._confirmed[project_id]
        except KeyError:
            raise KeyError(f"Project {project_id} is not loaded in the view cache.") from None

    def _discard(self, project_id: int, intent_id: str) -> None:
        intents = [intent for intent in self._pending.get(project_id, ()) if intent.intent_id != intent_id]
        if intents:
            self._pending[project_id] = intents
        else:
            self._pending.pop(project_id, None)

    def _compose(self, project_id: int) -> ProjectView:
        view = self._require(project_id)
        intents = self._pending.get(project_id, ())
        for intent in intents:
            view = replace(
                view,
                stage_status=intent.stage_status or view.stage_status,
                special_status=intent.special_status or view.special_status,
            )
        return replace(view, pending=bool(intents))
