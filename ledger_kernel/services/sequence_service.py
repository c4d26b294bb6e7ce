"""
SequenceService -- monotonic document numbering via locked counter rows.

Responsibility:
    Hands out strictly increasing integers per (company, sequence type)
    and formats them as document numbers for journal entries.  The
    counter row is read with ``SELECT ... FOR UPDATE`` so concurrent
    allocations serialize on PostgreSQL.

Invariants enforced:
    - Monotonicity: the locked counter row is the sole source of truth;
      MAX(number)+1 is never used.
    - Transactional: an increment is only visible once the caller's
      transaction commits; a rollback returns the value.

Failure modes:
    - IntegrityError on a concurrent first use of a sequence is absorbed
      by a savepoint rollback and a retry that locks the winner's row.
"""

from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.constants import SEQUENCE_TYPE_PREFIX
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class DocumentNumberGenerator(Protocol):
    """Numbering collaborator: monotonic per company and sequence type."""

    def next_number(self, company_id: UUID, sequence_type: str) -> str: ...


class SequenceService:
    """
    Transactional sequence allocation.

    Guarantees:
        - ``next_value`` returns an integer > 0, strictly greater than any
          value previously returned for the same (company, type).
        - ``next_number`` renders it as ``<TYPE><000001>``, where TYPE is the
          sequence type without its ``uctovny_zapis_`` prefix.
    """

    NUMBER_WIDTH = 6

    def __init__(self, session: Session):
        self._session = session

    def next_value(self, company_id: UUID, sequence_type: str) -> int:
        """Lock (or create) the counter row, increment, return the new value."""
        counter = self._lock_counter(company_id, sequence_type)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(
                    company_id=company_id,
                    sequence_type=sequence_type,
                    current_value=1,
                )
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_type": sequence_type, "value": 1},
                )
                return 1
            except IntegrityError:
                savepoint.rollback()
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_type": sequence_type},
                )
                counter = self._lock_counter(company_id, sequence_type)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_type": sequence_type, "value": counter.current_value},
        )
        return counter.current_value

    def next_number(self, company_id: UUID, sequence_type: str) -> str:
        value = self.next_value(company_id, sequence_type)
        prefix = sequence_type.removeprefix(SEQUENCE_TYPE_PREFIX)
        return f"{prefix}{value:0{self.NUMBER_WIDTH}d}"

    def current_value(self, company_id: UUID, sequence_type: str) -> int:
        """Last issued value without incrementing (0 if never used)."""
        value = self._session.execute(
            select(SequenceCounter.current_value).where(
                SequenceCounter.company_id == company_id,
                SequenceCounter.sequence_type == sequence_type,
            )
        ).scalar_one_or_none()
        return value or 0

    def _lock_counter(self, company_id: UUID, sequence_type: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(
                SequenceCounter.company_id == company_id,
                SequenceCounter.sequence_type == sequence_type,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
