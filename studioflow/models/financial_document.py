"""Financial document model module."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studioflow.models.base import AuditMixin, Base
from studioflow.models.enums import FinancialDocumentStatus, FinancialDocumentType, enum_values


class FinancialDocument(Base, AuditMixin):
    __tablename__ = "financial_documents"
    __table_args__ = (
        Index("idx_financial_documents_project_status", "project_id", "status"),
        Index("idx_financial_documents_project_paid", "project_id", "paid"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False)
    document_type: Mapped[FinancialDocumentType] = mapped_column(
        Enum(FinancialDocumentType, values_callable=enum_values, native_enum=False, length=32),
        default=FinancialDocumentType.INVOICE,
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    payment_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    status: Mapped[FinancialDocumentStatus] = mapped_column(
        Enum(FinancialDocumentStatus, values_callable=enum_values, native_enum=False, length=32),
        default=FinancialDocumentStatus.PENDING,
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(Text)
    reference: Mapped[str | None] = mapped_column(String(64))

    project = relationship("Project", back_populates="financial_documents")
