"""
Closing policy schema.

The human-authored YAML (``closing_policy.yaml``) is parsed by the loader
into these frozen types.  Defaults mirror the kernel constants so that a
policy file only has to name what it changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ledger_kernel.domain.constants import (
    BALANCE_TOLERANCE,
    CLOSING_GATE_PERCENTAGE,
    DEFAULT_CURRENCY,
    TRIAL_BALANCE_TOLERANCE,
    ZERO_BALANCE_THRESHOLD,
)


@dataclass(frozen=True)
class ClearingAccount:
    """A class-7 account used as the counterpart of closing entries."""

    synthetic_code: str
    name: str


# ---------------------------------------------------------------------------
# Clearing accounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClearingAccounts:
    profit_and_loss: ClearingAccount = ClearingAccount("710", "Ucet ziskov a strat")
    closing_balance: ClearingAccount = ClearingAccount("702", "Konecny ucet suvahovy")
    opening_balance: ClearingAccount = ClearingAccount("701", "Zaciatocny ucet suvahovy")


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClosingPolicy:
    """Tunable numbers of the year-end closing."""

    gate_percentage: int = CLOSING_GATE_PERCENTAGE
    balance_tolerance: Decimal = BALANCE_TOLERANCE
    trial_balance_tolerance: Decimal = TRIAL_BALANCE_TOLERANCE
    zero_balance_threshold: Decimal = ZERO_BALANCE_THRESHOLD
    default_currency: str = DEFAULT_CURRENCY
    clearing_accounts: ClearingAccounts = field(default_factory=ClearingAccounts)
