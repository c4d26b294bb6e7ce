"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only query access to journal entries and their lines.
    Converts ORM models to frozen DTOs (JournalEntryInfo) so that ORM
    instances never leave the kernel.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ and selectors/base.py.

Invariants enforced:
    - Read-only: no mutations performed on any queried data.
    - Soft-deleted entries are invisible.
    - Lines are returned ordered by position.

Failure modes:
    - get() raises EntryNotFoundError for an unknown or soft-deleted id.
    - list_entries() returns an empty page rather than raising.
"""

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import DocumentType, EntryStatus, JournalEntryInfo
from ledger_kernel.exceptions import EntryNotFoundError
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 50


@dataclass(frozen=True)
class JournalEntryPage:
    """One page of journal entries plus the unpaginated total."""

    entries: tuple[JournalEntryInfo, ...]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit


class JournalSelector(BaseSelector):
    """Selector for journal entry queries."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get(self, entry_id: UUID) -> JournalEntryInfo:
        """Header, ordered lines and account display fields of one entry."""
        entry = self.session.execute(
            select(JournalEntry).where(
                JournalEntry.id == entry_id,
                JournalEntry.deleted_at.is_(None),
            )
        ).scalar_one_or_none()
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return JournalEntryInfo.from_model(entry)

    def find_by_number(self, company_id: UUID, number: str) -> JournalEntryInfo | None:
        entry = self.session.execute(
            select(JournalEntry).where(
                JournalEntry.company_id == company_id,
                JournalEntry.number == number,
                JournalEntry.deleted_at.is_(None),
            )
        ).scalars().first()
        return JournalEntryInfo.from_model(entry) if entry else None

    def list_entries(
        self,
        company_id: UUID,
        *,
        date_from: date | None = None,
        date_to: date | None = None,
        document_type: DocumentType | None = None,
        status: EntryStatus | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> JournalEntryPage:
        """
        Filtered, paginated entry listing.

        Ordered by entry_date descending, then created_at descending.
        ``search`` matches number or description case-insensitively.
        ``page`` is 1-based.
        """
        conditions = [
            JournalEntry.company_id == company_id,
            JournalEntry.deleted_at.is_(None),
        ]
        if date_from is not None:
            conditions.append(JournalEntry.entry_date >= date_from)
        if date_to is not None:
            conditions.append(JournalEntry.entry_date <= date_to)
        if document_type is not None:
            conditions.append(JournalEntry.document_type == DocumentType(document_type))
        if status is not None:
            conditions.append(JournalEntry.status == EntryStatus(status))
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    JournalEntry.number.ilike(pattern),
                    JournalEntry.description.ilike(pattern),
                )
            )

        total = self.session.execute(
            select(func.count(JournalEntry.id)).where(*conditions)
        ).scalar_one()

        page = max(page, 1)
        entries = self.session.execute(
            select(JournalEntry)
            .where(*conditions)
            .order_by(JournalEntry.entry_date.desc(), JournalEntry.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()

        return JournalEntryPage(
            entries=tuple(JournalEntryInfo.from_model(entry) for entry in entries),
            total=total,
            page=page,
            limit=limit,
        )

    def reversal_of(self, entry_id: UUID) -> JournalEntryInfo | None:
        """The storno entry pointing at ``entry_id``, if one exists."""
        entry = self.session.execute(
            select(JournalEntry).where(
                JournalEntry.source_document_id == entry_id,
                JournalEntry.deleted_at.is_(None),
            )
        ).scalars().first()
        return JournalEntryInfo.from_model(entry) if entry else None
