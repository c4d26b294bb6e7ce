"""
ledger_services -- year-end closing over the ledger kernel.

Composes kernel services and selectors into the closing workflow:
checklist predicates, the default closing arithmetic and the closing
operation orchestrator.
"""

from ledger_services._closing_types import (
    ClosingFunction,
    ClosingOperationInfo,
    ClosingResult,
    ClosingStatus,
)
from ledger_services.checklist_verifiers import LedgerChecklistVerifiers, default_verifiers
from ledger_services.closing_arithmetic import ClosingArithmetic
from ledger_services.closing_orchestrator import ClosingOrchestrator

__all__ = [
    "ClosingArithmetic",
    "ClosingFunction",
    "ClosingOperationInfo",
    "ClosingOrchestrator",
    "ClosingResult",
    "ClosingStatus",
    "LedgerChecklistVerifiers",
    "default_verifiers",
]
