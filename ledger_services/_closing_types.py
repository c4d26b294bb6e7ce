"""
ledger_services._closing_types -- DTOs and protocols for year-end closing.

Responsibility:
    Frozen result types exchanged between the orchestrator and the closing
    functions, and the ``ClosingFunction`` protocol every closing
    computation satisfies.

Architecture position:
    Services.  These types live here because the orchestrator that
    produces and consumes them lives here; the kernel has no dependency
    on them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from ledger_kernel.domain.dtos import ClosingOperationType

if TYPE_CHECKING:
    from ledger_kernel.models.closing import ClosingOperation


@dataclass(frozen=True)
class ClosingResult:
    """Outcome of one closing computation."""

    success: bool
    journal_entry_id: UUID | None = None
    total_amount: Decimal = Decimal("0")
    accounts_count: int = 0
    error: str | None = None

    @classmethod
    def nothing_to_close(cls) -> ClosingResult:
        return cls(success=True)

    @classmethod
    def failed(cls, error: str) -> ClosingResult:
        return cls(success=False, error=error)


class ClosingFunction(Protocol):
    """Computes and posts the closing entry of one operation type."""

    def __call__(
        self,
        company_id: UUID,
        fiscal_year_id: UUID,
        period_start: date,
        period_end: date,
        actor_id: UUID,
    ) -> ClosingResult: ...


@dataclass(frozen=True)
class ClosingOperationInfo:
    """Read-side view of a recorded closing operation."""

    id: UUID
    company_id: UUID
    fiscal_year_id: UUID
    operation_type: ClosingOperationType
    journal_entry_id: UUID | None
    total_amount: Decimal
    accounts_count: int
    created_at: datetime | None
    created_by_id: UUID

    @classmethod
    def from_model(cls, operation: ClosingOperation) -> ClosingOperationInfo:
        return cls(
            id=operation.id,
            company_id=operation.company_id,
            fiscal_year_id=operation.fiscal_year_id,
            operation_type=operation.operation_type,
            journal_entry_id=operation.journal_entry_id,
            total_amount=operation.total_amount,
            accounts_count=operation.accounts_count,
            created_at=operation.created_at,
            created_by_id=operation.created_by_id,
        )


@dataclass(frozen=True)
class ClosingStatus:
    """Which operations ran for a fiscal year and which may run now."""

    fiscal_year_id: UUID
    executed: tuple[ClosingOperationType, ...]
    allowed: tuple[ClosingOperationType, ...]
    gate_open: bool
    checklist_percentage: int

    @property
    def is_finished(self) -> bool:
        return len(self.executed) == len(ClosingOperationType)
