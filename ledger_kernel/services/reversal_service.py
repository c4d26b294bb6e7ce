"""
ReversalService -- storno of posted journal entries.

Responsibility:
    Validates reversal preconditions and creates the mirror entry: same
    accounts and amounts with MD and D swapped, posted directly, dated
    today, linked to the original through source_document_id.

Architecture position:
    Kernel > Services.  Delegates persistence (numbering, balance check,
    period lock guard) to JournalEntryService.create_posted().

Invariants enforced:
    - The original entry is never mutated.
    - Only POSTED entries with at least one line can be reversed, and only
      once.

Failure modes:
    - EntryNotFoundError: unknown or soft-deleted id.
    - EntryNotPostedError: original is still a draft.
    - EmptyEntryError: original has no lines.
    - EntryAlreadyReversedError: a storno referencing it already exists.
    - PeriodLockedError: today falls in a locked period.
    - SQLAlchemyError propagates unwrapped, as in JournalEntryService.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.constants import STORNO_PREFIX
from ledger_kernel.domain.dtos import (
    EntryHeaderInput,
    EntryLineInput,
    EntryStatus,
    JournalEntryInfo,
)
from ledger_kernel.exceptions import (
    EmptyEntryError,
    EntryAlreadyReversedError,
    EntryNotFoundError,
    EntryNotPostedError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.services.journal_service import JournalEntryService

logger = get_logger("services.reversal")


@dataclass(frozen=True)
class ReversalResult:
    """Immutable result of a successful reversal."""

    original_entry_id: UUID
    original_number: str
    reversal_entry_id: UUID
    reversal_number: str
    entry_date: date
    total_debit: Decimal
    total_credit: Decimal
    entry: JournalEntryInfo


class ReversalService:
    """
    Creates storno entries.

    Guarantees:
        - New totals: MD total = original D total and vice versa.
        - Header description is ``STORNO: <desc> (povodny doklad: <number>)``;
          each line description is ``STORNO: <desc>`` or ``STORNO``.

    Non-goals:
        - Partial (line-level) reversals.
    """

    def __init__(
        self,
        session: Session,
        journal: JournalEntryService | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._journal = journal or JournalEntryService(session, self._clock)

    def reverse(self, entry_id: UUID, actor_id: UUID) -> ReversalResult:
        original = self._load_and_validate(entry_id)
        reversal_date = self._clock.today()

        header = EntryHeaderInput(
            entry_date=reversal_date,
            document_type=original.document_type,
            description=self._header_description(original),
            source_invoice_id=original.source_invoice_id,
        )
        lines = [
            EntryLineInput(
                account_id=line.account_id,
                side=line.side.opposite(),
                amount=line.amount,
                description=self._line_description(line.description),
                currency=line.currency,
                amount_currency=line.amount_currency,
                exchange_rate=line.exchange_rate,
                cost_center_id=line.cost_center_id,
                project_id=line.project_id,
            )
            for line in original.lines
        ]

        reversal = self._journal.create_posted(
            original.company_id,
            header,
            lines,
            actor_id,
            source_document_id=original.id,
        )

        logger.info(
            "journal_entry_reversed",
            extra={
                "entry_id": str(original.id),
                "original_number": original.number,
                "reversal_entry_id": str(reversal.id),
                "reversal_number": reversal.number,
                "entry_date": reversal_date.isoformat(),
            },
        )

        return ReversalResult(
            original_entry_id=original.id,
            original_number=original.number,
            reversal_entry_id=reversal.id,
            reversal_number=reversal.number,
            entry_date=reversal_date,
            total_debit=reversal.total_debit,
            total_credit=reversal.total_credit,
            entry=reversal,
        )

    def _load_and_validate(self, entry_id: UUID) -> JournalEntry:
        original = self._session.execute(
            select(JournalEntry)
            .where(JournalEntry.id == entry_id, JournalEntry.deleted_at.is_(None))
            .with_for_update()
        ).scalar_one_or_none()
        if original is None:
            raise EntryNotFoundError(str(entry_id))

        if original.status != EntryStatus.POSTED:
            raise EntryNotPostedError(str(original.id), original.status.value)

        if not original.lines:
            raise EmptyEntryError(str(original.id))

        existing = self._session.execute(
            select(JournalEntry).where(
                JournalEntry.source_document_id == original.id,
                JournalEntry.deleted_at.is_(None),
            )
        ).scalars().first()
        if existing is not None:
            raise EntryAlreadyReversedError(str(original.id), str(existing.id), existing.number)

        return original

    @staticmethod
    def _header_description(original: JournalEntry) -> str:
        return (
            f"{STORNO_PREFIX}: {original.description or ''} "
            f"(povodny doklad: {original.number})"
        )

    @staticmethod
    def _line_description(description: str | None) -> str:
        if description:
            return f"{STORNO_PREFIX}: {description}"
        return STORNO_PREFIX
