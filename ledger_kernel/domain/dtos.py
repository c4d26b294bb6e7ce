"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Closed enumerations (sides, statuses, document types, closing types)
    and the immutable input/output structures that cross the service
    boundary.  Services accept ``EntryHeaderInput``/``EntryLineInput`` and
    return ``JournalEntryInfo``; ORM instances never leave the kernel.

Architecture position:
    Kernel > Domain -- zero I/O.  ``from_model()`` class methods are
    boundary converters invoked only from services and selectors.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from ledger_kernel.domain.constants import DEFAULT_CURRENCY, SEQUENCE_TYPE_PREFIX

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalEntry as JournalEntryModel
    from ledger_kernel.models.journal import JournalEntryLine as JournalEntryLineModel


class LineSide(str, Enum):
    """Side of a journal line: MD (Ma dat, debit) or D (Dal, credit)."""

    MD = "MD"
    D = "D"

    def opposite(self) -> LineSide:
        return LineSide.D if self is LineSide.MD else LineSide.MD


class EntryStatus(str, Enum):
    """Journal entry lifecycle. POSTED is terminal."""

    DRAFT = "draft"
    POSTED = "posted"


class DocumentType(str, Enum):
    """Source document kind of a journal entry."""

    INVOICE_ISSUED = "FA"
    INVOICE_RECEIVED = "PFA"
    INTERNAL = "ID"
    BANK_STATEMENT = "BV"
    CASH_RECEIPT = "PPD"
    CASH_PAYMENT = "VPD"

    @property
    def sequence_type(self) -> str:
        """Numbering sequence shared by every entry of this type."""
        return f"{SEQUENCE_TYPE_PREFIX}{self.value}"


class ClosingOperationType(str, Enum):
    """The four one-shot year-end closing operations."""

    REVENUE_CLOSE = "revenue_close"
    EXPENSE_CLOSE = "expense_close"
    PROFIT_LOSS_CLOSE = "profit_loss_close"
    BALANCE_CLOSE = "balance_close"


# Operations that must already exist before a type may run
CLOSING_PREREQUISITES: dict[ClosingOperationType, tuple[ClosingOperationType, ...]] = {
    ClosingOperationType.REVENUE_CLOSE: (),
    ClosingOperationType.EXPENSE_CLOSE: (),
    ClosingOperationType.PROFIT_LOSS_CLOSE: (
        ClosingOperationType.REVENUE_CLOSE,
        ClosingOperationType.EXPENSE_CLOSE,
    ),
    ClosingOperationType.BALANCE_CLOSE: (ClosingOperationType.PROFIT_LOSS_CLOSE,),
}


@dataclass(frozen=True)
class EntryLineInput:
    """
    One line of a journal entry as supplied by the caller.

    ``amount`` is never negative; the side carries the direction.  Position
    is assigned from list order when the entry is stored.
    """

    account_id: UUID
    side: LineSide
    amount: Decimal
    description: str | None = None
    currency: str = DEFAULT_CURRENCY
    amount_currency: Decimal | None = None
    exchange_rate: Decimal | None = None
    cost_center_id: UUID | None = None
    project_id: UUID | None = None


@dataclass(frozen=True)
class EntryHeaderInput:
    """Header fields of a journal entry as supplied by the caller."""

    entry_date: date
    document_type: DocumentType = DocumentType.INTERNAL
    description: str | None = None
    source_invoice_id: UUID | None = None


@dataclass(frozen=True)
class JournalLineInfo:
    """A stored journal line with the account display fields denormalized."""

    id: UUID
    position: int
    account_id: UUID
    side: LineSide
    amount: Decimal
    currency: str
    description: str | None
    amount_currency: Decimal | None
    exchange_rate: Decimal | None
    cost_center_id: UUID | None
    project_id: UUID | None
    synthetic_code: str | None = None
    analytic_code: str | None = None
    account_name: str | None = None

    @classmethod
    def from_model(cls, line: JournalEntryLineModel) -> JournalLineInfo:
        account = line.account
        return cls(
            id=line.id,
            position=line.position,
            account_id=line.account_id,
            side=line.side,
            amount=line.amount,
            currency=line.currency,
            description=line.description,
            amount_currency=line.amount_currency,
            exchange_rate=line.exchange_rate,
            cost_center_id=line.cost_center_id,
            project_id=line.project_id,
            synthetic_code=account.synthetic_code if account else None,
            analytic_code=account.analytic_code if account else None,
            account_name=account.name if account else None,
        )


@dataclass(frozen=True)
class JournalEntryInfo:
    """Read-side view of a journal entry and its ordered lines."""

    id: UUID
    company_id: UUID
    number: str
    document_type: DocumentType
    entry_date: date
    description: str | None
    status: EntryStatus
    total_debit: Decimal
    total_credit: Decimal
    source_invoice_id: UUID | None
    source_document_id: UUID | None
    posted_at: datetime | None
    posted_by_id: UUID | None
    created_by_id: UUID
    lines: tuple[JournalLineInfo, ...] = ()

    @property
    def is_posted(self) -> bool:
        return self.status == EntryStatus.POSTED

    @classmethod
    def from_model(cls, entry: JournalEntryModel) -> JournalEntryInfo:
        return cls(
            id=entry.id,
            company_id=entry.company_id,
            number=entry.number,
            document_type=entry.document_type,
            entry_date=entry.entry_date,
            description=entry.description,
            status=entry.status,
            total_debit=entry.total_debit,
            total_credit=entry.total_credit,
            source_invoice_id=entry.source_invoice_id,
            source_document_id=entry.source_document_id,
            posted_at=entry.posted_at,
            posted_by_id=entry.posted_by_id,
            created_by_id=entry.created_by_id,
            lines=tuple(
                JournalLineInfo.from_model(line)
                for line in sorted(entry.lines, key=lambda ln: ln.position)
            ),
        )
