"""
ledger_config -- closing policy configuration.

Responsibility:
    Loads the YAML closing policy (gate percentage, tolerances, clearing
    accounts) into a frozen ``ClosingPolicy``.

Architecture position:
    Sits above ``ledger_kernel`` and below ``ledger_services``.  The kernel
    never imports from this package; it carries the same defaults as
    module constants.
"""

from ledger_config.loader import (
    DEFAULT_POLICY_PATH,
    POLICY_ENV_VAR,
    load_closing_policy,
    parse_policy,
)
from ledger_config.schema import ClearingAccount, ClearingAccounts, ClosingPolicy

__all__ = [
    "ClearingAccount",
    "ClearingAccounts",
    "ClosingPolicy",
    "DEFAULT_POLICY_PATH",
    "POLICY_ENV_VAR",
    "load_closing_policy",
    "parse_policy",
]
