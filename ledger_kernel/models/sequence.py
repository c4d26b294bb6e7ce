"""
Module: ledger_kernel.models.sequence
Responsibility: Counter rows backing document numbering.

One row per (company, sequence type).  SequenceService increments the
value under a row lock, so numbers are monotonic and never reused.
"""

from uuid import UUID

from sqlalchemy import BigInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class SequenceCounter(Base):
    """Last issued value of a numbering sequence."""

    __tablename__ = "sequence_counters"

    __table_args__ = (
        UniqueConstraint("company_id", "sequence_type", name="uq_sequence_counter"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    sequence_type: Mapped[str] = mapped_column(String(100), nullable=False)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.sequence_type}={self.current_value}>"
