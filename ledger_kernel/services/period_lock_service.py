"""
PeriodLockService -- the period lock guard.

Responsibility:
    Answers whether postings dated on a given day are forbidden for a
    company, and maintains the lock rows (lock/unlock upsert).  Every
    JournalEntryService mutation calls ``assert_unlocked`` before writing.

Invariants enforced:
    - A date is locked iff a row exists with locked=true and
      period_start <= date <= period_end.
    - Releasing a lock requires an administrator, checked through the
      injected Authorizer before any row is touched.

Failure modes:
    - PeriodLockedError naming the date and the lock range.
    - InvalidDateRangeError when period_start > period_end.
    - AdminRequiredError when a non-admin releases a lock.
    - PeriodLockNotFoundError on unlock of an unknown id.

Lock checks are advisory reads: a lock flipped while a mutation is in
flight is not prevented.
"""

from datetime import date
from typing import Protocol
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import (
    AdminRequiredError,
    InvalidDateRangeError,
    PeriodLockedError,
    PeriodLockNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.period_lock import PeriodLock
from ledger_kernel.services.base import BaseService

logger = get_logger("services.period_lock")


class Authorizer(Protocol):
    """Authorization collaborator; roles live outside the kernel."""

    def is_admin(self, actor_id: UUID, company_id: UUID) -> bool: ...


class PeriodLockService(BaseService):
    """
    Period lock guard and lock maintenance.

    Contract:
        Without an Authorizer every unlock is refused.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        authorizer: Authorizer | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._authorizer = authorizer

    # ------------------------------------------------------------------
    # Guard
    # ------------------------------------------------------------------

    def find_lock(self, company_id: UUID, on_date: date) -> PeriodLock | None:
        """The active lock covering ``on_date``, if any."""
        return self.session.execute(
            select(PeriodLock)
            .where(
                PeriodLock.company_id == company_id,
                PeriodLock.locked == True,  # noqa: E712
                PeriodLock.deleted_at.is_(None),
                PeriodLock.period_start <= on_date,
                PeriodLock.period_end >= on_date,
            )
            .order_by(PeriodLock.period_start)
            .limit(1)
        ).scalar_one_or_none()

    def is_locked(self, company_id: UUID, on_date: date) -> bool:
        return self.find_lock(company_id, on_date) is not None

    def assert_unlocked(self, company_id: UUID, on_date: date) -> None:
        lock = self.find_lock(company_id, on_date)
        if lock is not None:
            logger.warning(
                "period_locked_rejection",
                extra={
                    "on_date": on_date.isoformat(),
                    "period_start": lock.period_start.isoformat(),
                    "period_end": lock.period_end.isoformat(),
                },
            )
            raise PeriodLockedError(
                on_date.isoformat(),
                lock.period_start.isoformat(),
                lock.period_end.isoformat(),
            )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def list_locks(self, company_id: UUID, year: int | None = None) -> list[PeriodLock]:
        """Locks of a company, optionally only those touching ``year``."""
        stmt = select(PeriodLock).where(
            PeriodLock.company_id == company_id,
            PeriodLock.deleted_at.is_(None),
        )
        if year is not None:
            stmt = stmt.where(
                PeriodLock.period_start <= date(year, 12, 31),
                PeriodLock.period_end >= date(year, 1, 1),
            )
        stmt = stmt.order_by(PeriodLock.period_start.desc())
        return list(self.session.execute(stmt).scalars())

    def set_lock(
        self,
        company_id: UUID,
        period_start: date,
        period_end: date,
        locked: bool,
        actor_id: UUID,
    ) -> PeriodLock:
        """
        Upsert the lock row for exactly this range.

        Locking stamps locked_at/locked_by_id; unlocking clears them and
        requires an administrator.
        """
        if period_start > period_end:
            raise InvalidDateRangeError(period_start.isoformat(), period_end.isoformat())

        lock = self.session.execute(
            select(PeriodLock)
            .where(
                PeriodLock.company_id == company_id,
                PeriodLock.period_start == period_start,
                PeriodLock.period_end == period_end,
            )
            .with_for_update()
        ).scalar_one_or_none()

        if not locked and lock is not None and lock.locked:
            self._require_admin(actor_id, company_id, "unlock a period")

        if lock is None:
            lock = PeriodLock(
                company_id=company_id,
                period_start=period_start,
                period_end=period_end,
                created_by_id=actor_id,
            )
            self.session.add(lock)
        else:
            lock.updated_by_id = actor_id
            lock.deleted_at = None

        self._apply_state(lock, locked, actor_id)
        self.session.flush()

        logger.info(
            "period_lock_set",
            extra={
                "lock_id": str(lock.id),
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
                "locked": locked,
            },
        )
        return lock

    def unlock(self, lock_id: UUID, actor_id: UUID) -> PeriodLock:
        """Release a lock. Administrator only."""
        lock = self.session.get(PeriodLock, lock_id)
        if lock is None or lock.deleted_at is not None:
            raise PeriodLockNotFoundError(str(lock_id))

        self._require_admin(actor_id, lock.company_id, "unlock a period")

        self._apply_state(lock, False, actor_id)
        lock.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "period_unlocked",
            extra={
                "lock_id": str(lock.id),
                "period_start": lock.period_start.isoformat(),
                "period_end": lock.period_end.isoformat(),
            },
        )
        return lock

    def _apply_state(self, lock: PeriodLock, locked: bool, actor_id: UUID) -> None:
        lock.locked = locked
        if locked:
            lock.locked_at = self._clock.now()
            lock.locked_by_id = actor_id
        else:
            lock.locked_at = None
            lock.locked_by_id = None

    def _require_admin(self, actor_id: UUID, company_id: UUID, action: str) -> None:
        if self._authorizer is None or not self._authorizer.is_admin(actor_id, company_id):
            logger.warning(
                "admin_required_rejection",
                extra={"actor_id": str(actor_id), "action": action},
            )
            raise AdminRequiredError(str(actor_id), action)
