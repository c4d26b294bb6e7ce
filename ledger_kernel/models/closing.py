"""
Module: ledger_kernel.models.closing
Responsibility: ORM persistence for the year-end closing checklist and the
    record of executed closing operations.

Invariants enforced:
    - One checklist row per (company, fiscal year, item), upserted.
    - One ClosingOperation per (company, fiscal year, type), enforced by a
      UNIQUE constraint so a concurrent second insert fails atomically.
      Rows are append-only (db/immutability.py).
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import EnumString
from ledger_kernel.domain.dtos import ClosingOperationType


class ChecklistItemStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"
    SKIPPED = "skipped"
    NOT_APPLICABLE = "na"


class ClosingChecklistItem(TrackedBase):
    """Persisted verdict for one prerequisite check of a fiscal year."""

    __tablename__ = "closing_checklist"

    __table_args__ = (
        UniqueConstraint(
            "company_id", "fiscal_year_id", "item_id",
            name="uq_closing_checklist_item",
        ),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    fiscal_year_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_years.id"),
        nullable=False,
    )

    item_id: Mapped[str] = mapped_column(String(50), nullable=False)

    status: Mapped[ChecklistItemStatus] = mapped_column(
        EnumString(ChecklistItemStatus, 10),
        nullable=False,
        default=ChecklistItemStatus.PENDING,
    )

    note: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    completed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)


class ClosingOperation(TrackedBase):
    """Record of one executed year-end closing step."""

    __tablename__ = "closing_operations"

    __table_args__ = (
        UniqueConstraint(
            "company_id", "fiscal_year_id", "operation_type",
            name="uq_closing_operation_type",
        ),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    fiscal_year_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_years.id"),
        nullable=False,
    )

    operation_type: Mapped[ClosingOperationType] = mapped_column(
        EnumString(ClosingOperationType, 30),
        nullable=False,
    )

    # None when there was nothing to close
    journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    accounts_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<ClosingOperation {self.operation_type} fy={self.fiscal_year_id}>"
