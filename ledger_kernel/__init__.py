"""
Ledger Kernel

A double-entry bookkeeping ledger with year-end closing support:
- Balanced journal entries (MD = D) with a draft -> posted lifecycle
- Immutable posted history, corrected only through storno reversals
- Period locks against retroactive edits
- General ledger and trial balance aggregation
- Closing checklist and one-shot closing operations per fiscal year
"""

__version__ = "0.1.0"
