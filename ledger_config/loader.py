"""
Closing policy loader (``ledger_config.loader``).

Responsibility
--------------
Loads ``closing_policy.yaml`` and parses it into a frozen
``ClosingPolicy``.  Keys missing from the file keep their defaults.

Resolution order for the file
-----------------------------
1. The ``path`` argument.
2. The ``LEDGER_CLOSING_POLICY`` environment variable.
3. ``closing_policy.yaml`` shipped next to this module.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range or malformed values  -> ``ValueError``.
"""

from __future__ import annotations

import logging
import os
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import ClearingAccount, ClearingAccounts, ClosingPolicy
from ledger_kernel.db.types import ISO_4217_CURRENCIES

_logger = logging.getLogger("ledger_kernel.config")

POLICY_ENV_VAR = "LEDGER_CLOSING_POLICY"

DEFAULT_POLICY_PATH = Path(__file__).parent / "closing_policy.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, key: str) -> Decimal:
    """Parse a non-negative Decimal; YAML floats go through str()."""
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{key}: cannot parse decimal from {value!r}") from None
    if not result.is_finite() or result < 0:
        raise ValueError(f"{key}: must be a non-negative number, got {value!r}")
    return result


def parse_clearing_account(data: dict[str, Any], default: ClearingAccount, key: str) -> ClearingAccount:
    code = str(data.get("synthetic_code", default.synthetic_code))
    if not code.isdigit():
        raise ValueError(f"{key}.synthetic_code must be digits, got {code!r}")
    return ClearingAccount(synthetic_code=code, name=str(data.get("name", default.name)))


def parse_policy(data: dict[str, Any]) -> ClosingPolicy:
    """Build a ClosingPolicy from a parsed YAML mapping."""
    defaults = ClosingPolicy()

    gate = data.get("gate_percentage", defaults.gate_percentage)
    if isinstance(gate, bool) or not isinstance(gate, int) or not 0 <= gate <= 100:
        raise ValueError(f"gate_percentage must be an integer in 0..100, got {gate!r}")

    currency = str(data.get("default_currency", defaults.default_currency)).upper()
    if currency not in ISO_4217_CURRENCIES:
        raise ValueError(f"default_currency is not an ISO 4217 code: {currency!r}")

    clearing = data.get("clearing_accounts") or {}
    default_clearing = defaults.clearing_accounts
    clearing_accounts = ClearingAccounts(
        profit_and_loss=parse_clearing_account(
            clearing.get("profit_and_loss") or {},
            default_clearing.profit_and_loss,
            "clearing_accounts.profit_and_loss",
        ),
        closing_balance=parse_clearing_account(
            clearing.get("closing_balance") or {},
            default_clearing.closing_balance,
            "clearing_accounts.closing_balance",
        ),
        opening_balance=parse_clearing_account(
            clearing.get("opening_balance") or {},
            default_clearing.opening_balance,
            "clearing_accounts.opening_balance",
        ),
    )

    return ClosingPolicy(
        gate_percentage=gate,
        balance_tolerance=parse_decimal(
            data.get("balance_tolerance", defaults.balance_tolerance), "balance_tolerance"
        ),
        trial_balance_tolerance=parse_decimal(
            data.get("trial_balance_tolerance", defaults.trial_balance_tolerance),
            "trial_balance_tolerance",
        ),
        zero_balance_threshold=parse_decimal(
            data.get("zero_balance_threshold", defaults.zero_balance_threshold),
            "zero_balance_threshold",
        ),
        default_currency=currency,
        clearing_accounts=clearing_accounts,
    )


def resolve_policy_path(path: Path | str | None = None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.environ.get(POLICY_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_POLICY_PATH


def load_closing_policy(path: Path | str | None = None) -> ClosingPolicy:
    """Load and validate the closing policy."""
    policy_path = resolve_policy_path(path)
    policy = parse_policy(load_yaml_file(policy_path))
    _logger.info(
        "closing_policy_loaded",
        extra={
            "path": str(policy_path),
            "gate_percentage": policy.gate_percentage,
            "profit_and_loss_account": policy.clearing_accounts.profit_and_loss.synthetic_code,
        },
    )
    return policy
