"""
Module: ledger_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.

Selectors accept a Session from the caller and MUST NOT add, delete, flush
or commit.  They return frozen dataclasses, never ORM instances, and derive
every balance from journal lines (there are no stored balances), so they
are safe to call repeatedly and from concurrent readers.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """Abstract base class for all selectors."""

    def __init__(self, session: Session):
        self.session = session
