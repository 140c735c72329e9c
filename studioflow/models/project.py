"""Project aggregate root."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studioflow.models.base import AuditMixin, Base
from studioflow.models.enums import SpecialStatus, StageStatus, enum_values


class Project(Base, AuditMixin):
    __tablename__ = "projects"
    __table_args__ = (
        Index("idx_projects_stage_status", "stage_status"),
        Index("idx_projects_special_status", "special_status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    budget: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    payment_term_days: Mapped[int | None] = mapped_column(Integer)
    stage_status: Mapped[StageStatus] = mapped_column(
        Enum(StageStatus, values_callable=enum_values, native_enum=False, length=32),
        default=StageStatus.PROPOSAL,
        nullable=False,
    )
    special_status: Mapped[SpecialStatus] = mapped_column(
        Enum(SpecialStatus, values_callable=enum_values, native_enum=False, length=32),
        default=SpecialStatus.NONE,
        nullable=False,
    )
    issue_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    client = relationship("Client", back_populates="projects")
    financial_documents = relationship(
        "FinancialDocument",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    status_history = relationship(
        "StatusHistoryRecord",
        back_populates="project",
        passive_deletes=True,
    )
