"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers must be able to react to a failure without parsing its message:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (current status, required
     precondition, the conflicting record) so the caller can explain the
     failure to an end user without re-querying.

Example:
    try:
        journal.update(entry_id, header, lines, actor_id)
    except EntryNotDraftError as e:
        api_response(409, code=e.code, status=e.status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerKernelError:

    LedgerKernelError (base)
    |
    +-- ValidationError
    |   +-- UnbalancedEntryError
    |   +-- EmptyEntryError
    |   +-- NegativeAmountError
    |   +-- InvalidAccountError
    |   +-- InvalidAccountCodeError
    |   +-- InvalidCurrencyError
    |   +-- InvalidDateRangeError
    |   |   +-- PeriodOutsideFiscalYearError
    |   +-- InvalidChecklistItemError
    |
    +-- NotFoundError
    |   +-- EntryNotFoundError
    |   +-- AccountNotFoundError
    |   +-- FiscalYearNotFoundError
    |   +-- PeriodLockNotFoundError
    |
    +-- StateConflictError
    |   +-- EntryNotDraftError
    |   +-- EntryNotPostedError
    |   +-- EntryAlreadyReversedError
    |   +-- PeriodLockedError
    |   +-- DuplicateAccountError
    |   +-- FiscalYearOverlapError
    |   +-- FiscalYearClosedError
    |   +-- FiscalYearCloseOrderError
    |   +-- ClosingGateError
    |   +-- ClosingOrderError
    |   +-- ClosingAlreadyExecutedError
    |   +-- ImmutabilityViolationError
    |
    +-- AuthorizationError
    |   +-- AdminRequiredError
    |
    +-- StorageError
    |
    +-- ClosingComputationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | UNBALANCED_ENTRY            | sum(MD) != sum(D) beyond 0.005
                | EMPTY_ENTRY                 | Entry has no lines
                | NEGATIVE_AMOUNT             | Line amount below zero
                | INVALID_ACCOUNT             | Line account unusable for posting
                | INVALID_ACCOUNT_CODE        | Malformed synthetic/analytic code
                | INVALID_CURRENCY            | Not an ISO 4217 code
                | INVALID_DATE_RANGE          | start > end
                | PERIOD_OUTSIDE_FISCAL_YEAR  | Closing period not within the year
                | INVALID_CHECKLIST_ITEM      | Unknown checklist item id
----------------|-----------------------------|-----------------------------------------
Not found       | ENTRY_NOT_FOUND             | Missing or soft-deleted entry
                | ACCOUNT_NOT_FOUND           | Missing or soft-deleted account
                | FISCAL_YEAR_NOT_FOUND       | Missing fiscal year
                | PERIOD_LOCK_NOT_FOUND       | Missing period lock
----------------|-----------------------------|-----------------------------------------
Conflict        | ENTRY_NOT_DRAFT             | Update/delete/post of a posted entry
                | ENTRY_NOT_POSTED            | Reversal of a draft entry
                | ENTRY_ALREADY_REVERSED      | Second storno of the same entry
                | PERIOD_LOCKED               | Mutation dated inside a locked period
                | DUPLICATE_ACCOUNT           | Same synthetic+analytic code exists
                | FISCAL_YEAR_OVERLAP         | New year overlaps an existing one
                | FISCAL_YEAR_CLOSED          | Year already closed
                | FISCAL_YEAR_CLOSE_ORDER     | Earlier year still active
                | CLOSING_GATE_NOT_MET        | Checklist progress below threshold
                | CLOSING_ORDER_VIOLATION     | Prerequisite closing missing
                | CLOSING_ALREADY_EXECUTED    | Closing type already ran this year
                | IMMUTABILITY_VIOLATION      | ORM edit of a posted row
----------------|-----------------------------|-----------------------------------------
Authorization   | ADMIN_REQUIRED              | Unlock attempted by a non-admin
Storage         | STORAGE_ERROR               | Persistence failure
Closing         | CLOSING_COMPUTATION_FAILED  | Closing function reported failure
"""

from typing import Any


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Validation errors


class ValidationError(LedgerKernelError):
    """Input rejected before any write. Never retried automatically."""

    code: str = "VALIDATION_ERROR"


class UnbalancedEntryError(ValidationError):
    """Journal entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, total_debit: str, total_credit: str, tolerance: str):
        self.total_debit = total_debit
        self.total_credit = total_credit
        self.tolerance = tolerance
        super().__init__(
            f"Entry is unbalanced: MD {total_debit} != D {total_credit} "
            f"(tolerance {tolerance})"
        )


class EmptyEntryError(ValidationError):
    """Journal entry has no lines."""

    code: str = "EMPTY_ENTRY"

    def __init__(self, entry_id: str | None = None):
        self.entry_id = entry_id
        target = f"Entry {entry_id}" if entry_id else "Entry"
        super().__init__(f"{target} must have at least one line")


class NegativeAmountError(ValidationError):
    """Line amount below zero; the side carries the sign."""

    code: str = "NEGATIVE_AMOUNT"

    def __init__(self, position: int, amount: str):
        self.position = position
        self.amount = amount
        super().__init__(f"Line {position} has negative amount {amount}")


class InvalidAccountError(ValidationError):
    """Line references an account that cannot be posted to."""

    code: str = "INVALID_ACCOUNT"

    def __init__(self, account_id: str, reason: str):
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"Invalid account {account_id}: {reason}")


class InvalidAccountCodeError(ValidationError):
    """Synthetic or analytic account code is malformed."""

    code: str = "INVALID_ACCOUNT_CODE"

    def __init__(self, account_code: str, reason: str):
        self.account_code = account_code
        self.reason = reason
        super().__init__(f"Invalid account code '{account_code}': {reason}")


class InvalidCurrencyError(ValidationError):
    """Currency is not a recognized ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


class InvalidDateRangeError(ValidationError):
    """Range start lies after range end."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start: str, end: str):
        self.start = start
        self.end = end
        super().__init__(f"Invalid date range: {start} is after {end}")


class PeriodOutsideFiscalYearError(InvalidDateRangeError):
    """Closing period does not lie within the fiscal year being closed."""

    code: str = "PERIOD_OUTSIDE_FISCAL_YEAR"

    def __init__(self, start: str, end: str, year_start: str, year_end: str):
        self.start = start
        self.end = end
        self.year_start = year_start
        self.year_end = year_end
        ValidationError.__init__(
            self,
            f"Period {start}..{end} lies outside fiscal year {year_start}..{year_end}",
        )


class InvalidChecklistItemError(ValidationError):
    """Checklist item id outside the fixed item set."""

    code: str = "INVALID_CHECKLIST_ITEM"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Unknown closing checklist item: {item_id}")


# Not-found errors


class NotFoundError(LedgerKernelError):
    """Requested record does not exist (or is soft-deleted)."""

    code: str = "NOT_FOUND"


class EntryNotFoundError(NotFoundError):
    """Journal entry not found."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


class AccountNotFoundError(NotFoundError):
    """Account not found in the chart of accounts."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class FiscalYearNotFoundError(NotFoundError):
    """Fiscal year not found."""

    code: str = "FISCAL_YEAR_NOT_FOUND"

    def __init__(self, fiscal_year_id: str):
        self.fiscal_year_id = fiscal_year_id
        super().__init__(f"Fiscal year not found: {fiscal_year_id}")


class PeriodLockNotFoundError(NotFoundError):
    """Period lock not found."""

    code: str = "PERIOD_LOCK_NOT_FOUND"

    def __init__(self, lock_id: str):
        self.lock_id = lock_id
        super().__init__(f"Period lock not found: {lock_id}")


# State conflicts


class StateConflictError(LedgerKernelError):
    """Requested transition is not allowed in the current state."""

    code: str = "STATE_CONFLICT"


class EntryNotDraftError(StateConflictError):
    """Mutation attempted on an entry that is no longer a draft."""

    code: str = "ENTRY_NOT_DRAFT"

    def __init__(self, entry_id: str, status: str, operation: str):
        self.entry_id = entry_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} journal entry {entry_id}: status is "
            f"'{status}', only draft entries can be changed"
        )


class EntryNotPostedError(StateConflictError):
    """Reversal attempted on an entry that is not posted."""

    code: str = "ENTRY_NOT_POSTED"

    def __init__(self, entry_id: str, status: str):
        self.entry_id = entry_id
        self.status = status
        super().__init__(
            f"Journal entry {entry_id} is '{status}', only posted entries "
            f"can be reversed"
        )


class EntryAlreadyReversedError(StateConflictError):
    """A storno entry for this entry already exists."""

    code: str = "ENTRY_ALREADY_REVERSED"

    def __init__(self, entry_id: str, reversal_entry_id: str, reversal_number: str):
        self.entry_id = entry_id
        self.reversal_entry_id = reversal_entry_id
        self.reversal_number = reversal_number
        super().__init__(
            f"Journal entry {entry_id} was already reversed by {reversal_number}"
        )


class PeriodLockedError(StateConflictError):
    """Mutation dated inside a locked period."""

    code: str = "PERIOD_LOCKED"

    def __init__(self, on_date: str, period_start: str, period_end: str):
        self.on_date = on_date
        self.period_start = period_start
        self.period_end = period_end
        super().__init__(
            f"Period containing {on_date} is locked "
            f"({period_start} - {period_end})"
        )


class DuplicateAccountError(StateConflictError):
    """An active account with the same code already exists."""

    code: str = "DUPLICATE_ACCOUNT"

    def __init__(self, account_code: str, existing_account_id: str):
        self.account_code = account_code
        self.existing_account_id = existing_account_id
        super().__init__(
            f"Account {account_code} already exists ({existing_account_id})"
        )


class FiscalYearOverlapError(StateConflictError):
    """New fiscal year overlaps an existing one."""

    code: str = "FISCAL_YEAR_OVERLAP"

    def __init__(self, name: str, existing_name: str):
        self.name = name
        self.existing_name = existing_name
        super().__init__(
            f"Fiscal year {name} overlaps existing fiscal year {existing_name}"
        )


class FiscalYearClosedError(StateConflictError):
    """Fiscal year already closed."""

    code: str = "FISCAL_YEAR_CLOSED"

    def __init__(self, fiscal_year_id: str):
        self.fiscal_year_id = fiscal_year_id
        super().__init__(f"Fiscal year {fiscal_year_id} is already closed")


class FiscalYearCloseOrderError(StateConflictError):
    """An earlier fiscal year of the same company is still active."""

    code: str = "FISCAL_YEAR_CLOSE_ORDER"

    def __init__(self, fiscal_year_id: str, open_earlier_years: list[str]):
        self.fiscal_year_id = fiscal_year_id
        self.open_earlier_years = open_earlier_years
        super().__init__(
            f"Cannot close fiscal year {fiscal_year_id}: earlier years still "
            f"active: {', '.join(open_earlier_years)}"
        )


class ClosingGateError(StateConflictError):
    """Closing checklist has not progressed far enough."""

    code: str = "CLOSING_GATE_NOT_MET"

    def __init__(self, fiscal_year_id: str, progress: Any, required_percentage: int):
        self.fiscal_year_id = fiscal_year_id
        self.progress = progress
        self.required_percentage = required_percentage
        super().__init__(
            f"Closing checklist for fiscal year {fiscal_year_id} is "
            f"{progress.percentage}% complete; at least "
            f"{required_percentage}% or a complete checklist is required"
        )


class ClosingOrderError(StateConflictError):
    """A prerequisite closing operation has not been executed."""

    code: str = "CLOSING_ORDER_VIOLATION"

    def __init__(self, operation_type: str, missing: list[str]):
        self.operation_type = operation_type
        self.missing = missing
        super().__init__(
            f"Cannot execute {operation_type}: prerequisite operations "
            f"missing: {', '.join(missing)}"
        )


class ClosingAlreadyExecutedError(StateConflictError):
    """Closing operation type already executed for the fiscal year."""

    code: str = "CLOSING_ALREADY_EXECUTED"

    def __init__(self, operation_type: str, fiscal_year_id: str, existing: Any = None):
        self.operation_type = operation_type
        self.fiscal_year_id = fiscal_year_id
        self.existing = existing
        super().__init__(
            f"Closing operation {operation_type} was already executed for "
            f"fiscal year {fiscal_year_id}"
        )


class ImmutabilityViolationError(StateConflictError):
    """Attempted to modify or delete a posted record through the ORM."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Authorization


class AuthorizationError(LedgerKernelError):
    """Actor lacks the role required for the action."""

    code: str = "AUTHORIZATION_ERROR"


class AdminRequiredError(AuthorizationError):
    """Administrator role required."""

    code: str = "ADMIN_REQUIRED"

    def __init__(self, actor_id: str, action: str):
        self.actor_id = actor_id
        self.action = action
        super().__init__(f"Actor {actor_id} must be an administrator to {action}")


# Storage


class StorageError(LedgerKernelError):
    """Underlying persistence failure."""

    code: str = "STORAGE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage failure during {operation}: {detail}")


class ClosingComputationError(LedgerKernelError):
    """Closing function reported a failure."""

    code: str = "CLOSING_COMPUTATION_FAILED"

    def __init__(self, operation_type: str, error: str):
        self.operation_type = operation_type
        self.error = error
        super().__init__(f"Closing operation {operation_type} failed: {error}")
