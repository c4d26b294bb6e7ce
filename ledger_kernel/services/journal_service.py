"""
JournalEntryService -- the journal entry store (write side).

Responsibility:
    Create, update, soft-delete and post journal entries.  Every mutation
    validates the balance invariant and consults the period lock guard
    before anything is written.  System-generated entries (storno and
    closing entries) are created already posted via ``create_posted``.

Architecture position:
    Kernel > Services.  Uses SequenceService (numbering collaborator),
    PeriodLockService (guard) and the injected Clock.  Reads go through
    ``JournalSelector``.

Invariants enforced:
    - Balance: |sum(MD) - sum(D)| <= balance_tolerance (default 0.005)
      on create, update and post.
    - At least one line; no negative amounts; ISO 4217 currencies; lines
      reference active accounts of the same company.
    - Only DRAFT entries can be updated, deleted or posted.  POSTED is
      terminal (and guarded again by db/immutability.py).
    - No mutation dated inside a locked period.

Failure modes:
    - EmptyEntryError, NegativeAmountError, InvalidCurrencyError,
      InvalidAccountError, UnbalancedEntryError (validation).
    - EntryNotFoundError for a missing or soft-deleted entry.
    - EntryNotDraftError, PeriodLockedError (state conflict).
    - SQLAlchemyError propagates unwrapped; the caller owns the
      transaction.  ClosingOrchestrator wraps it in StorageError.

Header and lines are flushed in the caller's transaction; nothing is
visible to other sessions until the caller commits.
"""

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.db.types import ZERO, validate_currency
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.constants import BALANCE_TOLERANCE
from ledger_kernel.domain.dtos import (
    EntryHeaderInput,
    EntryLineInput,
    EntryStatus,
    JournalEntryInfo,
    LineSide,
)
from ledger_kernel.exceptions import (
    EmptyEntryError,
    EntryNotDraftError,
    EntryNotFoundError,
    InvalidAccountError,
    NegativeAmountError,
    UnbalancedEntryError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import JournalEntry, JournalEntryLine
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.period_lock_service import PeriodLockService
from ledger_kernel.services.sequence_service import (
    DocumentNumberGenerator,
    SequenceService,
)

logger = get_logger("services.journal")


class JournalEntryService(BaseService):
    """
    Journal entry lifecycle: draft -> posted.

    Contract:
        All methods take the acting user's id; it is written to
        created_by_id / updated_by_id / posted_by_id.

    Guarantees:
        - A rejected call leaves the session without partial writes: all
          validation and guard checks run before the first add/flush.

    Non-goals:
        - No mutation path for posted entries; see ReversalService.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        number_generator: DocumentNumberGenerator | None = None,
        period_locks: PeriodLockService | None = None,
        balance_tolerance: Decimal = BALANCE_TOLERANCE,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._numbers = number_generator or SequenceService(session)
        self._period_locks = period_locks or PeriodLockService(session, self._clock)
        self._tolerance = balance_tolerance

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create(
        self,
        company_id: UUID,
        header: EntryHeaderInput,
        lines: Sequence[EntryLineInput],
        actor_id: UUID,
    ) -> JournalEntryInfo:
        """Validate and store a new DRAFT entry."""
        entry = self._insert(company_id, header, lines, actor_id, EntryStatus.DRAFT)
        logger.info(
            "journal_entry_created",
            extra={
                "entry_id": str(entry.id),
                "number": entry.number,
                "document_type": entry.document_type.value,
                "entry_date": entry.entry_date.isoformat(),
                "line_count": len(entry.lines),
                "total_debit": str(entry.total_debit),
            },
        )
        return JournalEntryInfo.from_model(entry)

    def create_posted(
        self,
        company_id: UUID,
        header: EntryHeaderInput,
        lines: Sequence[EntryLineInput],
        actor_id: UUID,
        source_document_id: UUID | None = None,
    ) -> JournalEntryInfo:
        """
        Store a system-generated entry directly as POSTED.

        Used for storno and closing entries, which have no draft stage.
        The same validation and period lock checks apply.
        """
        entry = self._insert(
            company_id, header, lines, actor_id, EntryStatus.POSTED,
            source_document_id=source_document_id,
        )
        logger.info(
            "journal_entry_posted",
            extra={
                "entry_id": str(entry.id),
                "number": entry.number,
                "document_type": entry.document_type.value,
                "entry_date": entry.entry_date.isoformat(),
                "source_document_id": str(source_document_id) if source_document_id else None,
                "total_debit": str(entry.total_debit),
            },
        )
        return JournalEntryInfo.from_model(entry)

    def update(
        self,
        entry_id: UUID,
        header: EntryHeaderInput,
        lines: Sequence[EntryLineInput],
        actor_id: UUID,
    ) -> JournalEntryInfo:
        """
        Replace header fields and all lines of a DRAFT entry.

        The period lock is checked for both the current and the new date,
        so an entry can neither leave nor enter a locked period.
        """
        entry = self._load_for_update(entry_id)
        with LogContext.bind(entry_id=str(entry.id), actor_id=str(actor_id)):
            self._require_draft(entry, "update")
            self._period_locks.assert_unlocked(entry.company_id, entry.entry_date)
            if header.entry_date != entry.entry_date:
                self._period_locks.assert_unlocked(entry.company_id, header.entry_date)
            accounts = self._validate_lines(entry.company_id, lines)
            total_debit, total_credit = self._validate_balance(lines)

            entry.entry_date = header.entry_date
            entry.document_type = header.document_type
            entry.description = header.description
            entry.source_invoice_id = header.source_invoice_id
            entry.total_debit = total_debit
            entry.total_credit = total_credit
            entry.updated_by_id = actor_id

            entry.lines.clear()
            self.session.flush()
            entry.lines.extend(self._build_lines(lines, accounts, actor_id))
            self.session.flush()

            logger.info(
                "journal_entry_updated",
                extra={
                    "number": entry.number,
                    "line_count": len(entry.lines),
                    "total_debit": str(total_debit),
                },
            )
        return JournalEntryInfo.from_model(entry)

    def delete(self, entry_id: UUID, actor_id: UUID) -> None:
        """Soft-delete a DRAFT entry."""
        entry = self._load_for_update(entry_id)
        self._require_draft(entry, "delete")
        self._period_locks.assert_unlocked(entry.company_id, entry.entry_date)

        entry.deleted_at = self._clock.now()
        entry.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "journal_entry_deleted",
            extra={"entry_id": str(entry.id), "number": entry.number},
        )

    def post(self, entry_id: UUID, actor_id: UUID) -> JournalEntryInfo:
        """
        Transition a DRAFT entry to POSTED.

        Lines and balance are re-checked from the stored rows; the period
        lock is re-checked because it may have been set after the draft
        was written.
        """
        entry = self._load_for_update(entry_id)
        self._require_draft(entry, "post")
        self._period_locks.assert_unlocked(entry.company_id, entry.entry_date)

        if not entry.lines:
            raise EmptyEntryError(str(entry.id))
        if not entry.is_balanced_within(self._tolerance):
            raise UnbalancedEntryError(
                str(entry.lines_debit), str(entry.lines_credit), str(self._tolerance)
            )

        entry.status = EntryStatus.POSTED
        entry.posted_at = self._clock.now()
        entry.posted_by_id = actor_id
        entry.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "journal_entry_posted",
            extra={
                "entry_id": str(entry.id),
                "number": entry.number,
                "entry_date": entry.entry_date.isoformat(),
                "total_debit": str(entry.total_debit),
            },
        )
        return JournalEntryInfo.from_model(entry)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _insert(
        self,
        company_id: UUID,
        header: EntryHeaderInput,
        lines: Sequence[EntryLineInput],
        actor_id: UUID,
        status: EntryStatus,
        source_document_id: UUID | None = None,
    ) -> JournalEntry:
        accounts = self._validate_lines(company_id, lines)
        total_debit, total_credit = self._validate_balance(lines)
        self._period_locks.assert_unlocked(company_id, header.entry_date)

        number = self._numbers.next_number(company_id, header.document_type.sequence_type)

        entry = JournalEntry(
            company_id=company_id,
            number=number,
            document_type=header.document_type,
            entry_date=header.entry_date,
            description=header.description,
            status=status,
            total_debit=total_debit,
            total_credit=total_credit,
            source_invoice_id=header.source_invoice_id,
            source_document_id=source_document_id,
            created_by_id=actor_id,
        )
        if status == EntryStatus.POSTED:
            entry.posted_at = self._clock.now()
            entry.posted_by_id = actor_id
        entry.lines = self._build_lines(lines, accounts, actor_id)

        self.session.add(entry)
        self.session.flush()
        return entry

    def _load_for_update(self, entry_id: UUID) -> JournalEntry:
        entry = self.session.execute(
            select(JournalEntry)
            .where(JournalEntry.id == entry_id, JournalEntry.deleted_at.is_(None))
            .with_for_update()
        ).scalar_one_or_none()
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    @staticmethod
    def _require_draft(entry: JournalEntry, operation: str) -> None:
        if entry.status != EntryStatus.DRAFT:
            logger.warning(
                "journal_entry_not_draft",
                extra={
                    "entry_id": str(entry.id),
                    "status": entry.status.value,
                    "operation": operation,
                },
            )
            raise EntryNotDraftError(str(entry.id), entry.status.value, operation)

    def _validate_lines(
        self,
        company_id: UUID,
        lines: Sequence[EntryLineInput],
    ) -> dict[UUID, Account]:
        """Shape checks on every line; returns the referenced accounts by id."""
        if not lines:
            raise EmptyEntryError()

        for position, line in enumerate(lines, start=1):
            if line.amount < ZERO:
                raise NegativeAmountError(position, str(line.amount))
            validate_currency(line.currency)

        account_ids = {line.account_id for line in lines}
        accounts = {
            account.id: account
            for account in self.session.execute(
                select(Account).where(Account.id.in_(account_ids))
            ).scalars()
        }
        for account_id in account_ids:
            account = accounts.get(account_id)
            if account is None or account.is_deleted:
                raise InvalidAccountError(str(account_id), "account does not exist")
            if account.company_id != company_id:
                raise InvalidAccountError(str(account_id), "account belongs to another company")
            if not account.is_active:
                raise InvalidAccountError(str(account_id), "account is inactive")
        return accounts

    def _validate_balance(self, lines: Sequence[EntryLineInput]) -> tuple[Decimal, Decimal]:
        total_debit = sum((ln.amount for ln in lines if ln.side == LineSide.MD), ZERO)
        total_credit = sum((ln.amount for ln in lines if ln.side == LineSide.D), ZERO)
        if abs(total_debit - total_credit) > self._tolerance:
            logger.warning(
                "journal_entry_unbalanced",
                extra={
                    "total_debit": str(total_debit),
                    "total_credit": str(total_credit),
                },
            )
            raise UnbalancedEntryError(
                str(total_debit), str(total_credit), str(self._tolerance)
            )
        return total_debit, total_credit

    @staticmethod
    def _build_lines(
        lines: Sequence[EntryLineInput],
        accounts: dict[UUID, Account],
        actor_id: UUID,
    ) -> list[JournalEntryLine]:
        return [
            JournalEntryLine(
                position=position,
                account_id=line.account_id,
                account=accounts[line.account_id],
                side=LineSide(line.side),
                amount=line.amount,
                amount_currency=line.amount_currency,
                currency=validate_currency(line.currency),
                exchange_rate=line.exchange_rate,
                cost_center_id=line.cost_center_id,
                project_id=line.project_id,
                description=line.description,
                created_by_id=actor_id,
            )
            for position, line in enumerate(lines, start=1)
        ]
