"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and their lines -- the
    authoritative financial record.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - total_debit == total_credit within the service tolerance (checked by
      JournalEntryService before every flush and again on post through
      is_balanced_within).
    - Posted entries and their lines are immutable (ORM listeners in
      db/immutability.py).  Corrections go through ReversalService.

Failure modes:
    - ImmutabilityViolationError on UPDATE/DELETE of a posted entry or line.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import EnumString
from ledger_kernel.domain.constants import BALANCE_TOLERANCE, DEFAULT_CURRENCY
from ledger_kernel.domain.dtos import DocumentType, EntryStatus, LineSide

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class JournalEntry(TrackedBase):
    """
    Journal entry header.

    Contract:
        Created as DRAFT, transitions once to POSTED, never mutated after.
        Soft-deleted (deleted_at) only while DRAFT.

    Non-goals:
        - The model does not enforce balance on write; JournalEntryService
          does.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        Index("idx_journal_company_date", "company_id", "entry_date"),
        Index("idx_journal_company_number", "company_id", "number"),
        Index("idx_journal_status", "status"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # Document number from the numbering collaborator
    number: Mapped[str] = mapped_column(String(50), nullable=False)

    document_type: Mapped[DocumentType] = mapped_column(
        EnumString(DocumentType, 10),
        nullable=False,
        default=DocumentType.INTERNAL,
    )

    # Accounting date
    entry_date: Mapped[date] = mapped_column(nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    status: Mapped[EntryStatus] = mapped_column(
        EnumString(EntryStatus, 10),
        default=EntryStatus.DRAFT,
        nullable=False,
    )

    total_debit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    total_credit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    source_invoice_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Storno entries point at the entry they reverse
    source_document_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    posted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    posted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    lines: Mapped[list["JournalEntryLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalEntryLine.position",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.number} status={self.status}>"

    @property
    def is_posted(self) -> bool:
        return self.status == EntryStatus.POSTED

    @property
    def is_draft(self) -> bool:
        return self.status == EntryStatus.DRAFT

    @property
    def lines_debit(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.side == LineSide.MD),
            Decimal("0"),
        )

    @property
    def lines_credit(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.side == LineSide.D),
            Decimal("0"),
        )

    def is_balanced_within(self, tolerance: Decimal = BALANCE_TOLERANCE) -> bool:
        """Re-derive the balance invariant from the stored lines."""
        return abs(self.lines_debit - self.lines_credit) <= tolerance


class JournalEntryLine(TrackedBase):
    """
    One MD or D posting of a journal entry.

    Lines belong to exactly one entry and are replaced wholesale on update;
    the amount is never negative, the side carries the direction.
    """

    __tablename__ = "journal_entry_lines"

    __table_args__ = (
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("chart_of_accounts.id"),
        nullable=False,
    )

    side: Mapped[LineSide] = mapped_column(EnumString(LineSide, 2), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    # Original-currency amount; FX conversion is not performed here
    amount_currency: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=DEFAULT_CURRENCY)

    exchange_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 18), nullable=True)

    cost_center_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    project_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    entry: Mapped[JournalEntry] = relationship(back_populates="lines")

    account: Mapped["Account"] = relationship(lazy="joined", innerjoin=True)

    def __repr__(self) -> str:
        return f"<JournalEntryLine {self.position} {self.side} {self.amount}>"

    @property
    def debit(self) -> Decimal:
        return self.amount if self.side == LineSide.MD else Decimal("0")

    @property
    def credit(self) -> Decimal:
        return self.amount if self.side == LineSide.D else Decimal("0")
