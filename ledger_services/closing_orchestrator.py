"""
ledger_services.closing_orchestrator -- Year-end closing operation sequencing.

Responsibility:
    Executes the four one-shot closing operations of a fiscal year with
    checklist gating, ordering and idempotency enforcement.  The account
    arithmetic itself is delegated to injected ClosingFunctions (by default
    ``ClosingArithmetic``); the orchestrator adds sequencing, guard
    evaluation and the ClosingOperation record.

Architecture position:
    Services -- orchestration over the kernel.  Composes
    ClosingChecklistService, FiscalYearService and the closing functions.

Invariants enforced:
    - Gate: checklist percentage >= policy.gate_percentage, or no item
      pending.
    - Idempotency: at most one ClosingOperation per (company, fiscal year,
      type).  The UNIQUE constraint uq_closing_operation_type is the final
      arbiter; a losing concurrent insert surfaces as
      ClosingAlreadyExecutedError, not as a second row.
    - Ordering: profit_loss_close needs revenue_close and expense_close;
      balance_close needs profit_loss_close.
    - Atomicity: the closing entry and the operation row are written in one
      savepoint.  Any failure rolls both back.

Failure modes:
    - InvalidDateRangeError if period_start > period_end.
    - PeriodOutsideFiscalYearError if the period leaves the fiscal year.
    - FiscalYearNotFoundError (also for another company's year) /
      FiscalYearClosedError.
    - ClosingGateError (carries the ChecklistProgress).
    - ClosingAlreadyExecutedError (carries the existing ClosingOperationInfo).
    - ClosingOrderError (names the missing prerequisites).
    - ClosingComputationError when the closing function reports failure.
    - StorageError wrapping any other SQLAlchemyError.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_config.schema import ClosingPolicy
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import CLOSING_PREREQUISITES, ClosingOperationType
from ledger_kernel.exceptions import (
    ClosingAlreadyExecutedError,
    ClosingComputationError,
    ClosingGateError,
    ClosingOrderError,
    FiscalYearClosedError,
    InvalidDateRangeError,
    PeriodOutsideFiscalYearError,
    StorageError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.closing import ClosingOperation
from ledger_kernel.services.checklist_service import ChecklistProgress, ClosingChecklistService
from ledger_kernel.services.fiscal_year_service import FiscalYearService
from ledger_services._closing_types import (
    ClosingFunction,
    ClosingOperationInfo,
    ClosingResult,
    ClosingStatus,
)
from ledger_services.closing_arithmetic import ClosingArithmetic

logger = get_logger("services.closing")


class ClosingOrchestrator:
    """
    Runs closing operations in order, once each.

    Contract:
        Receives the session and, optionally, the closing functions,
        checklist service, policy and clock via constructor injection.
        Every step runs in the caller's transaction; nothing commits.

    Non-goals:
        - No administrative override of gate, order or idempotency.
        - Does not close the fiscal year itself; see
          FiscalYearService.close_year().
    """

    def __init__(
        self,
        session: Session,
        functions: Mapping[ClosingOperationType, ClosingFunction] | None = None,
        checklist: ClosingChecklistService | None = None,
        policy: ClosingPolicy | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._policy = policy or ClosingPolicy()
        self._checklist = checklist or ClosingChecklistService(session, self._clock)
        self._fiscal_years = FiscalYearService(session, self._clock)
        if functions is None:
            functions = ClosingArithmetic(session, self._clock, self._policy).functions()
        self._functions = dict(functions)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(
        self,
        company_id: UUID,
        fiscal_year_id: UUID,
        operation_type: ClosingOperationType,
        period_start: date,
        period_end: date,
        actor_id: UUID,
    ) -> ClosingOperationInfo:
        """Gate, idempotency, ordering, delegate, record -- in that order."""
        operation_type = ClosingOperationType(operation_type)
        with LogContext.bind(
            company_id=str(company_id),
            fiscal_year_id=str(fiscal_year_id),
            actor_id=str(actor_id),
        ):
            if period_start > period_end:
                raise InvalidDateRangeError(period_start.isoformat(), period_end.isoformat())

            fiscal_year = self._fiscal_years.get(fiscal_year_id, company_id)
            if fiscal_year.is_closed:
                raise FiscalYearClosedError(str(fiscal_year_id))
            if period_start < fiscal_year.start_date or period_end > fiscal_year.end_date:
                raise PeriodOutsideFiscalYearError(
                    period_start.isoformat(), period_end.isoformat(),
                    fiscal_year.start_date.isoformat(), fiscal_year.end_date.isoformat(),
                )

            logger.info(
                "closing_operation_started",
                extra={
                    "operation_type": operation_type.value,
                    "period_start": period_start.isoformat(),
                    "period_end": period_end.isoformat(),
                },
            )

            self._check_gate(company_id, fiscal_year_id)

            executed = self._executed(company_id, fiscal_year_id)
            if operation_type in executed:
                existing = ClosingOperationInfo.from_model(executed[operation_type])
                logger.warning(
                    "closing_operation_already_executed",
                    extra={
                        "operation_type": operation_type.value,
                        "existing_id": str(existing.id),
                    },
                )
                raise ClosingAlreadyExecutedError(
                    operation_type.value, str(fiscal_year_id), existing=existing
                )

            missing = [
                prerequisite.value
                for prerequisite in CLOSING_PREREQUISITES[operation_type]
                if prerequisite not in executed
            ]
            if missing:
                logger.warning(
                    "closing_operation_out_of_order",
                    extra={"operation_type": operation_type.value, "missing": missing},
                )
                raise ClosingOrderError(operation_type.value, missing)

            savepoint = self._session.begin_nested()
            try:
                result = self._delegate(
                    operation_type, company_id, fiscal_year_id, period_start, period_end, actor_id
                )
                operation = self._record(operation_type, company_id, fiscal_year_id, result, actor_id)
                savepoint.commit()
            except SQLAlchemyError as exc:
                savepoint.rollback()
                logger.error(
                    "closing_operation_storage_failed",
                    extra={"operation_type": operation_type.value},
                    exc_info=True,
                )
                raise StorageError(f"closing {operation_type.value}", str(exc)) from exc
            except Exception:
                savepoint.rollback()
                raise

            info = ClosingOperationInfo.from_model(operation)
            logger.info(
                "closing_operation_recorded",
                extra={
                    "operation_type": operation_type.value,
                    "operation_id": str(info.id),
                    "journal_entry_id": str(info.journal_entry_id) if info.journal_entry_id else None,
                    "total_amount": str(info.total_amount),
                    "accounts_count": info.accounts_count,
                },
            )
            return info

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_operations(self, company_id: UUID, fiscal_year_id: UUID) -> list[ClosingOperationInfo]:
        operations = self._session.execute(
            select(ClosingOperation)
            .where(
                ClosingOperation.company_id == company_id,
                ClosingOperation.fiscal_year_id == fiscal_year_id,
            )
            .order_by(ClosingOperation.created_at)
        ).scalars()
        return [ClosingOperationInfo.from_model(operation) for operation in operations]

    def status(self, company_id: UUID, fiscal_year_id: UUID) -> ClosingStatus:
        """Executed types, and the types whose gate and prerequisites pass now."""
        progress = self._checklist.progress(company_id, fiscal_year_id)
        gate_open = self._gate_open(progress)
        executed = self._executed(company_id, fiscal_year_id)

        allowed: tuple[ClosingOperationType, ...] = ()
        if gate_open:
            allowed = tuple(
                operation_type
                for operation_type in ClosingOperationType
                if operation_type not in executed
                and all(p in executed for p in CLOSING_PREREQUISITES[operation_type])
            )
        return ClosingStatus(
            fiscal_year_id=fiscal_year_id,
            executed=tuple(t for t in ClosingOperationType if t in executed),
            allowed=allowed,
            gate_open=gate_open,
            checklist_percentage=progress.percentage,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _gate_open(self, progress: ChecklistProgress) -> bool:
        return progress.percentage >= self._policy.gate_percentage or progress.is_complete

    def _check_gate(self, company_id: UUID, fiscal_year_id: UUID) -> None:
        progress = self._checklist.progress(company_id, fiscal_year_id)
        if not self._gate_open(progress):
            logger.warning(
                "closing_gate_rejected",
                extra={
                    "percentage": progress.percentage,
                    "pending": progress.pending,
                    "required_percentage": self._policy.gate_percentage,
                },
            )
            raise ClosingGateError(str(fiscal_year_id), progress, self._policy.gate_percentage)

    def _executed(
        self, company_id: UUID, fiscal_year_id: UUID
    ) -> dict[ClosingOperationType, ClosingOperation]:
        operations = self._session.execute(
            select(ClosingOperation).where(
                ClosingOperation.company_id == company_id,
                ClosingOperation.fiscal_year_id == fiscal_year_id,
            )
        ).scalars()
        return {operation.operation_type: operation for operation in operations}

    def _delegate(
        self,
        operation_type: ClosingOperationType,
        company_id: UUID,
        fiscal_year_id: UUID,
        period_start: date,
        period_end: date,
        actor_id: UUID,
    ) -> ClosingResult:
        function = self._functions.get(operation_type)
        if function is None:
            raise ClosingComputationError(operation_type.value, "no closing function configured")
        result = function(company_id, fiscal_year_id, period_start, period_end, actor_id)
        if not result.success:
            logger.warning(
                "closing_function_failed",
                extra={"operation_type": operation_type.value, "error": result.error},
            )
            raise ClosingComputationError(operation_type.value, result.error or "unknown error")
        return result

    def _record(
        self,
        operation_type: ClosingOperationType,
        company_id: UUID,
        fiscal_year_id: UUID,
        result: ClosingResult,
        actor_id: UUID,
    ) -> ClosingOperation:
        """Insert the operation row; a unique violation means another caller won."""
        operation = ClosingOperation(
            company_id=company_id,
            fiscal_year_id=fiscal_year_id,
            operation_type=operation_type,
            journal_entry_id=result.journal_entry_id,
            total_amount=result.total_amount,
            accounts_count=result.accounts_count,
            created_by_id=actor_id,
        )
        savepoint = self._session.begin_nested()
        try:
            self._session.add(operation)
            self._session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            logger.warning(
                "closing_operation_race_lost",
                extra={"operation_type": operation_type.value},
            )
            winner = self._executed(company_id, fiscal_year_id).get(operation_type)
            raise ClosingAlreadyExecutedError(
                operation_type.value,
                str(fiscal_year_id),
                existing=ClosingOperationInfo.from_model(winner) if winner else None,
            ) from exc
        return operation
