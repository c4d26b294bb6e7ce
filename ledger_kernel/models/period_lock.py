"""
Module: ledger_kernel.models.period_lock
Responsibility: ORM persistence for administrative period locks.

While ``locked`` is true, no journal entry dated inside
[period_start, period_end] may be created, updated, deleted or posted.
One row per (company, period_start, period_end); locking and unlocking
flip the flag on that row.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Boolean, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class PeriodLock(TrackedBase):
    """A (possibly released) lock over a date range of one company."""

    __tablename__ = "period_locks"

    __table_args__ = (
        UniqueConstraint(
            "company_id", "period_start", "period_end",
            name="uq_period_lock_range",
        ),
        Index("idx_period_lock_company", "company_id", "locked"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    period_start: Mapped[date] = mapped_column(nullable=False)

    period_end: Mapped[date] = mapped_column(nullable=False)

    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    locked_at: Mapped[datetime | None] = mapped_column(nullable=True)

    locked_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        state = "locked" if self.locked else "open"
        return f"<PeriodLock {self.period_start}..{self.period_end} {state}>"

    def covers(self, on_date: date) -> bool:
        return self.period_start <= on_date <= self.period_end
