"""Database layer: declarative base, column types, engine and ORM guards."""

from ledger_kernel.db.base import Base, TrackedBase, UUIDString
from ledger_kernel.db.engine import (
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "session_scope",
]
