"""Selectors for the ledger kernel (read side)."""

from ledger_kernel.selectors.journal_selector import JournalEntryPage, JournalSelector
from ledger_kernel.selectors.ledger_selector import (
    AccountBalance,
    AccountDetail,
    AccountMovement,
    GeneralLedgerReport,
    GeneralLedgerRow,
    LedgerSelector,
    LedgerTotals,
    TrialBalanceReport,
    TrialBalanceRow,
)

__all__ = [
    "AccountBalance",
    "AccountDetail",
    "AccountMovement",
    "GeneralLedgerReport",
    "GeneralLedgerRow",
    "JournalEntryPage",
    "JournalSelector",
    "LedgerSelector",
    "LedgerTotals",
    "TrialBalanceReport",
    "TrialBalanceRow",
]
