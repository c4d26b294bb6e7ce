"""
FiscalYearService -- fiscal year registry.

Responsibility:
    Creates fiscal years without overlap and closes them in calendar
    order.  The closing checklist and closing operations are keyed by the
    fiscal years managed here.

Invariants enforced:
    - start_date <= end_date.
    - Years of one company never overlap.
    - A year cannot be closed while an earlier year of the same company is
      still active.  Closing is one-way.

Failure modes:
    - InvalidDateRangeError, FiscalYearOverlapError on create.
    - FiscalYearNotFoundError, FiscalYearClosedError,
      FiscalYearCloseOrderError on close.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import (
    FiscalYearClosedError,
    FiscalYearCloseOrderError,
    FiscalYearNotFoundError,
    FiscalYearOverlapError,
    InvalidDateRangeError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.fiscal_year import FiscalYear, FiscalYearStatus
from ledger_kernel.services.base import BaseService

logger = get_logger("services.fiscal_year")


class FiscalYearService(BaseService):
    """Create, look up and close fiscal years."""

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def create_year(
        self,
        company_id: UUID,
        name: str,
        start_date: date,
        end_date: date,
        actor_id: UUID,
    ) -> FiscalYear:
        if start_date > end_date:
            raise InvalidDateRangeError(start_date.isoformat(), end_date.isoformat())

        overlapping = self.session.execute(
            select(FiscalYear).where(
                FiscalYear.company_id == company_id,
                FiscalYear.start_date <= end_date,
                FiscalYear.end_date >= start_date,
            ).limit(1)
        ).scalar_one_or_none()
        if overlapping is not None:
            raise FiscalYearOverlapError(name, overlapping.name)

        year = FiscalYear(
            company_id=company_id,
            name=name,
            start_date=start_date,
            end_date=end_date,
            status=FiscalYearStatus.ACTIVE,
            created_by_id=actor_id,
        )
        self.session.add(year)
        self.session.flush()

        logger.info(
            "fiscal_year_created",
            extra={
                "fiscal_year_id": str(year.id),
                "fiscal_year_name": name,
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
            },
        )
        return year

    def get(self, fiscal_year_id: UUID, company_id: UUID | None = None) -> FiscalYear:
        """Load a year; with ``company_id``, another company's year is not found."""
        year = self.session.get(FiscalYear, fiscal_year_id)
        if year is None or (company_id is not None and year.company_id != company_id):
            raise FiscalYearNotFoundError(str(fiscal_year_id))
        return year

    def list_years(self, company_id: UUID) -> list[FiscalYear]:
        return list(
            self.session.execute(
                select(FiscalYear)
                .where(FiscalYear.company_id == company_id)
                .order_by(FiscalYear.start_date.desc())
            ).scalars()
        )

    def find_year_for_date(self, company_id: UUID, on_date: date) -> FiscalYear | None:
        return self.session.execute(
            select(FiscalYear).where(
                FiscalYear.company_id == company_id,
                FiscalYear.start_date <= on_date,
                FiscalYear.end_date >= on_date,
            )
        ).scalar_one_or_none()

    def close_year(self, fiscal_year_id: UUID, actor_id: UUID) -> FiscalYear:
        year = self.session.execute(
            select(FiscalYear).where(FiscalYear.id == fiscal_year_id).with_for_update()
        ).scalar_one_or_none()
        if year is None:
            raise FiscalYearNotFoundError(str(fiscal_year_id))
        if year.is_closed:
            raise FiscalYearClosedError(str(year.id))

        earlier_open = self.session.execute(
            select(FiscalYear.name)
            .where(
                FiscalYear.company_id == year.company_id,
                FiscalYear.start_date < year.start_date,
                FiscalYear.status == FiscalYearStatus.ACTIVE,
            )
            .order_by(FiscalYear.start_date)
        ).scalars().all()
        if earlier_open:
            raise FiscalYearCloseOrderError(str(year.id), list(earlier_open))

        year.status = FiscalYearStatus.CLOSED
        year.closed_at = self._clock.now()
        year.closed_by_id = actor_id
        year.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "fiscal_year_closed",
            extra={"fiscal_year_id": str(year.id), "fiscal_year_name": year.name},
        )
        return year
