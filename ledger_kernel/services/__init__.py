"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.checklist_service import (
    CHECKLIST_ITEMS,
    AutoVerifyResult,
    ChecklistItemDefinition,
    ChecklistItemView,
    ChecklistProgress,
    ChecklistVerifier,
    ClosingChecklistService,
)
from ledger_kernel.services.fiscal_year_service import FiscalYearService
from ledger_kernel.services.journal_service import JournalEntryService
from ledger_kernel.services.period_lock_service import Authorizer, PeriodLockService
from ledger_kernel.services.reversal_service import ReversalResult, ReversalService
from ledger_kernel.services.sequence_service import DocumentNumberGenerator, SequenceService

__all__ = [
    "AccountService",
    "Authorizer",
    "AutoVerifyResult",
    "CHECKLIST_ITEMS",
    "ChecklistItemDefinition",
    "ChecklistItemView",
    "ChecklistProgress",
    "ChecklistVerifier",
    "ClosingChecklistService",
    "DocumentNumberGenerator",
    "FiscalYearService",
    "JournalEntryService",
    "PeriodLockService",
    "ReversalResult",
    "ReversalService",
    "SequenceService",
]
