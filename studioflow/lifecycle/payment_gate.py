"""Payment gate consulted before a project may reach its terminal stage."""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from studioflow.models import FinancialDocument
from studioflow.services.financial_document_service import FinancialDocumentService

NO_DOCUMENTS = "no_documents"
UNPAID = "unpaid"


@dataclass(frozen=True)
class PaymentGateResult:
    ok: bool
    unpaid: list[FinancialDocument] = field(default_factory=list)
    reason: str | None = None


class PaymentGate:
    """Read-only check that every financial document of a project is paid.

    A project that was never billed cannot complete either. The gate never
    writes, so callers may run it speculatively (for example to grey out a
    "complete" button) as often as they like.
    """

    def __init__(self, db: Session, documents: FinancialDocumentService | None = None) -> None:
        self.db = db
        self.documents = documents or FinancialDocumentService(db=db)

    def can_complete(self, project_id: int) -> PaymentGateResult:
        documents = self.documents.list_for_project(project_id)
        if not documents:
            return PaymentGateResult(ok=False, reason=NO_DOCUMENTS)
        unpaid = [doc for doc in documents if not doc.paid]
        if unpaid:
            return PaymentGateResult(ok=False, unpaid=unpaid, reason=UNPAID)
        return PaymentGateResult(ok=True)
