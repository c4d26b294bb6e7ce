"""
BaseService -- abstract base for all kernel services.

Services receive a SQLAlchemy ``Session`` from the caller and persist with
``session.flush()`` -- never ``session.commit()``.  The caller (usually
``session_scope()``) owns commit/rollback, so a header and its lines, or a
closing entry and its operation record, land atomically or not at all.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for write-side kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Read-only queries belong in ``ledger_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
