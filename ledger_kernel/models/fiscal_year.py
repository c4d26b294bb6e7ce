"""
Module: ledger_kernel.models.fiscal_year
Responsibility: ORM persistence for fiscal years.

Fiscal years of one company never overlap and are closed in calendar
order (FiscalYearService).  Checklist items and closing operations are
keyed by fiscal year.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import EnumString


class FiscalYearStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class FiscalYear(TrackedBase):
    """A company's accounting year, e.g. 2025-01-01..2025-12-31."""

    __tablename__ = "fiscal_years"

    __table_args__ = (
        Index("idx_fiscal_year_company_dates", "company_id", "start_date", "end_date"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    name: Mapped[str] = mapped_column(String(50), nullable=False)

    start_date: Mapped[date] = mapped_column(nullable=False)

    end_date: Mapped[date] = mapped_column(nullable=False)

    status: Mapped[FiscalYearStatus] = mapped_column(
        EnumString(FiscalYearStatus, 10),
        nullable=False,
        default=FiscalYearStatus.ACTIVE,
    )

    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<FiscalYear {self.name} {self.status}>"

    @property
    def is_closed(self) -> bool:
        return self.status == FiscalYearStatus.CLOSED

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date
