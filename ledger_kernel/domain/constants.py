"""
Named ledger policy constants.

These are the kernel defaults.  ``ledger_config`` can load a tuned
``ClosingPolicy`` from YAML and hand the values to the services; the kernel
itself never imports configuration.
"""

from decimal import Decimal

# |sum(MD) - sum(D)| allowed on a single journal entry
BALANCE_TOLERANCE = Decimal("0.005")

# Trial balance totals are "balanced" below this difference
TRIAL_BALANCE_TOLERANCE = Decimal("0.01")

# Balances below this are treated as zero by closing operations
ZERO_BALANCE_THRESHOLD = Decimal("0.01")

# Closing operations are allowed once the checklist reaches this percentage
# (or has no pending item left)
CLOSING_GATE_PERCENTAGE = 70

DEFAULT_CURRENCY = "EUR"

SEQUENCE_TYPE_PREFIX = "uctovny_zapis_"

STORNO_PREFIX = "STORNO"
