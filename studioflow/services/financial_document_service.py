"""Financial document persistence and payment registration."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select

from studioflow.core.exceptions import ValidationError
from studioflow.models import FinancialDocument, Project
from studioflow.models.enums import FinancialDocumentStatus, FinancialDocumentType, StageStatus
from studioflow.services.base_service import BaseService

logger = logging.getLogger(__name__)


class FinancialDocumentService(BaseService):
    """Row-level operations on financial documents.

    Methods flush but never commit unless their name says so; the lifecycle
    coordinator owns the transaction boundary around side effects.
    """

    def get_document(self, document_id: int) -> FinancialDocument | None:
        return self.db.get(FinancialDocument, document_id)

    def list_for_project(self, project_id: int) -> list[FinancialDocument]:
        stmt = (
            select(FinancialDocument)
            .where(FinancialDocument.project_id == project_id)
            .order_by(FinancialDocument.id)
        )
        return list(self.db.scalars(stmt))

    def list_unpaid(self, project_id: int) -> list[FinancialDocument]:
        return [doc for doc in self.list_for_project(project_id) if not doc.paid]

    def find_pending_invoice(self, project_id: int) -> FinancialDocument | None:
        stmt = (
            select(FinancialDocument)
            .where(FinancialDocument.project_id == project_id)
            .where(FinancialDocument.document_type == FinancialDocumentType.INVOICE)
            .where(FinancialDocument.status == FinancialDocumentStatus.PENDING)
            .where(FinancialDocument.paid.is_(False))
            .order_by(FinancialDocument.id)
        )
        return self.db.scalars(stmt).first()

    def list_pending_unpaid(self, project_id: int) -> list[FinancialDocument]:
        stmt = (
            select(FinancialDocument)
            .where(FinancialDocument.project_id == project_id)
            .where(FinancialDocument.status == FinancialDocumentStatus.PENDING)
            .where(FinancialDocument.paid.is_(False))
            .order_by(FinancialDocument.id)
        )
        return list(self.db.scalars(stmt))

    def create_document(
        self,
        project: Project,
        amount: Decimal | int | float,
        due_date: datetime | None,
        document_type: FinancialDocumentType = FinancialDocumentType.INVOICE,
        description: str | None = None,
        paid: bool = False,
    ) -> FinancialDocument:
        if project.stage_status is StageStatus.COMPLETED and not paid:
            raise ValidationError(f"Project {project.id} is completed; unpaid documents cannot be added.")
        document = FinancialDocument(
            project_id=project.id,
            client_id=project.client_id,
            document_type=document_type,
            amount=Decimal(str(amount)),
            due_date=due_date,
            paid=paid,
            payment_date=datetime.now(timezone.utc) if paid else None,
            status=FinancialDocumentStatus.PAID if paid else FinancialDocumentStatus.PENDING,
            description=description,
        )
        self.db.add(document)
        self.db.flush()
        return document

    def delete_document(self, document: FinancialDocument) -> None:
        if document.paid:
            raise ValidationError(f"Financial document {document.id} is paid and cannot be deleted.")
        self.db.delete(document)
        self.db.flush()

    def mark_paid(self, document_id: int) -> FinancialDocument:
        """Register payment and commit."""
        document = self._require(FinancialDocument, document_id, "Financial document")
        if document.paid:
            return document
        document.paid = True
        document.status = FinancialDocumentStatus.PAID
        document.payment_date = datetime.now(timezone.utc)
        self.commit()
        self.db.refresh(document)
        logger.info(
            "financial_document.paid",
            extra={
                "event": "financial_document.paid",
                "document_id": document.id,
                "project_id": document.project_id,
            },
        )
        return document
