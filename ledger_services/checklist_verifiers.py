"""
ledger_services.checklist_verifiers -- Ledger-backed checklist predicates.

Responsibility:
    Predicates for the checklist items the ledger itself can answer.
    Items that depend on other subsystems (bank matching, tax returns,
    asset depreciation) have no default predicate; callers may supply
    their own through the same ChecklistVerifier signature.

    invoices_posted            no draft FA/PFA entry in the fiscal year
    cash_documents_posted      no draft PPD/VPD entry in the fiscal year
    internal_documents_posted  no draft ID entry in the fiscal year
    trial_balance_checked      fiscal-year trial balance is balanced
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_config.schema import ClosingPolicy
from ledger_kernel.domain.dtos import DocumentType, EntryStatus
from ledger_kernel.models.fiscal_year import FiscalYear
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.checklist_service import ChecklistVerifier


class LedgerChecklistVerifiers:
    """Predicates bound to one session."""

    def __init__(
        self,
        session: Session,
        ledger: LedgerSelector | None = None,
        policy: ClosingPolicy | None = None,
    ):
        self._session = session
        policy = policy or ClosingPolicy()
        self._ledger = ledger or LedgerSelector(session, policy.trial_balance_tolerance)

    def as_mapping(self) -> dict[str, ChecklistVerifier]:
        return {
            "invoices_posted": self.invoices_posted,
            "cash_documents_posted": self.cash_documents_posted,
            "internal_documents_posted": self.internal_documents_posted,
            "trial_balance_checked": self.trial_balance_checked,
        }

    def invoices_posted(self, company_id: UUID, fiscal_year: FiscalYear) -> bool:
        return not self._has_drafts(
            company_id, fiscal_year,
            (DocumentType.INVOICE_ISSUED, DocumentType.INVOICE_RECEIVED),
        )

    def cash_documents_posted(self, company_id: UUID, fiscal_year: FiscalYear) -> bool:
        return not self._has_drafts(
            company_id, fiscal_year,
            (DocumentType.CASH_RECEIPT, DocumentType.CASH_PAYMENT),
        )

    def internal_documents_posted(self, company_id: UUID, fiscal_year: FiscalYear) -> bool:
        return not self._has_drafts(company_id, fiscal_year, (DocumentType.INTERNAL,))

    def trial_balance_checked(self, company_id: UUID, fiscal_year: FiscalYear) -> bool:
        report = self._ledger.trial_balance(company_id, fiscal_year.start_date, fiscal_year.end_date)
        return report.is_balanced

    def _has_drafts(
        self,
        company_id: UUID,
        fiscal_year: FiscalYear,
        document_types: tuple[DocumentType, ...],
    ) -> bool:
        count = self._session.execute(
            select(func.count(JournalEntry.id)).where(
                JournalEntry.company_id == company_id,
                JournalEntry.status == EntryStatus.DRAFT,
                JournalEntry.deleted_at.is_(None),
                JournalEntry.document_type.in_(document_types),
                JournalEntry.entry_date >= fiscal_year.start_date,
                JournalEntry.entry_date <= fiscal_year.end_date,
            )
        ).scalar_one()
        return count > 0


def default_verifiers(
    session: Session, policy: ClosingPolicy | None = None
) -> dict[str, ChecklistVerifier]:
    """Item id -> predicate for every item the ledger can verify."""
    return LedgerChecklistVerifiers(session, policy=policy).as_mapping()
