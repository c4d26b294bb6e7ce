"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.closing import (
    ChecklistItemStatus,
    ClosingChecklistItem,
    ClosingOperation,
)
from ledger_kernel.models.fiscal_year import FiscalYear, FiscalYearStatus
from ledger_kernel.models.journal import JournalEntry, JournalEntryLine
from ledger_kernel.models.period_lock import PeriodLock
from ledger_kernel.models.sequence import SequenceCounter

__all__ = [
    "Account",
    "AccountType",
    "ChecklistItemStatus",
    "ClosingChecklistItem",
    "ClosingOperation",
    "FiscalYear",
    "FiscalYearStatus",
    "JournalEntry",
    "JournalEntryLine",
    "PeriodLock",
    "SequenceCounter",
]
