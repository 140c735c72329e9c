"""Append-only status change ledger.

History rows are the evidence that a transition happened. They are written
once by the lifecycle engine and never touched again; the ORM listeners below
reject any UPDATE or DELETE issued through a session. Rows disappear only
through the storage-level cascade when their project is deleted.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studioflow.core.exceptions import ImmutableRecordError
from studioflow.models.base import Base, utcnow
from studioflow.models.enums import StatusKind, enum_values


class StatusHistoryRecord(Base):
    __tablename__ = "project_status_history"
    __table_args__ = (Index("idx_status_history_project_created", "project_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    status_kind: Mapped[StatusKind] = mapped_column(
        Enum(StatusKind, values_callable=enum_values, native_enum=False, length=16),
        nullable=False,
    )
    previous_status: Mapped[str] = mapped_column(String(32), nullable=False)
    new_status: Mapped[str] = mapped_column(String(32), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    changed_by: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    project = relationship("Project", back_populates="status_history")
    user = relationship("User")


@event.listens_for(StatusHistoryRecord, "before_update")
def _reject_history_update(mapper, connection, target: StatusHistoryRecord) -> None:
    raise ImmutableRecordError("StatusHistoryRecord", target.id, "history rows cannot be modified")


@event.listens_for(StatusHistoryRecord, "before_delete")
def _reject_history_delete(mapper, connection, target: StatusHistoryRecord) -> None:
    raise ImmutableRecordError("StatusHistoryRecord", target.id, "history rows cannot be deleted")
