"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Posted journal entries are the audit trail.  They cannot be modified, only
reversed with a storno entry that leaves a visible paper trail.  The
services already refuse to touch posted rows; these listeners catch any
other code path that goes through the ORM.

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
    [before_delete] --> _check_*_delete() ---------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When Immutable                       | Allowed changes
--------------------|--------------------------------------|-------------------------
JournalEntry        | After status = posted                | updated_at/updated_by_id
JournalEntryLine    | When parent entry is posted          | none
ClosingOperation    | ALWAYS (append-only)                 | none
Account             | Codes/type once a posted line exists | name, is_active, deleted_at

===============================================================================
DESIGN DECISIONS
===============================================================================

1. The posting itself must be allowed: we check whether the entry WAS
   posted before this flush (attribute history), not whether it IS posted.

2. Line checks read the parent status through the connection, because a
   line removed from ``entry.lines`` (delete-orphan) no longer has its
   ``entry`` reference.

3. Inline model imports avoid the models -> db -> models import cycle.

Usage:

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup
"""

from sqlalchemy import event, func, inspect, select
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

ACCOUNT_STRUCTURAL_FIELDS = frozenset({"synthetic_code", "analytic_code", "account_type", "account_class"})


def _blocked(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_journal_entry_immutability(mapper, connection, target):
    """
    Prevent updates to posted JournalEntry rows.

    1. status changing FROM posted: block
    2. status unchanged and posted: block any non-audit field change
    3. status changing TO posted (the posting itself): allow
    """
    from ledger_kernel.domain.dtos import EntryStatus

    status_history = get_history(target, "status")

    was_posted_before = False
    if status_history.deleted:
        was_posted_before = status_history.deleted[0] == EntryStatus.POSTED
    elif not status_history.added:
        was_posted_before = target.status == EntryStatus.POSTED

    if not was_posted_before:
        return

    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            raise _blocked(
                "JournalEntry", target.id, "UPDATE",
                f"Cannot modify field '{attr.key}' on posted journal entry",
                field=attr.key,
            )


def _check_journal_entry_delete(mapper, connection, target):
    """Prevent deletion of posted JournalEntry rows."""
    from ledger_kernel.domain.dtos import EntryStatus

    if target.status == EntryStatus.POSTED:
        raise _blocked(
            "JournalEntry", target.id, "DELETE",
            "Posted journal entries cannot be deleted",
        )


def _parent_is_posted(connection, journal_entry_id) -> bool:
    from ledger_kernel.domain.dtos import EntryStatus
    from ledger_kernel.models.journal import JournalEntry

    status = connection.execute(
        select(JournalEntry.status).where(JournalEntry.id == journal_entry_id)
    ).scalar_one_or_none()
    return status == EntryStatus.POSTED


def _check_journal_line_immutability(mapper, connection, target):
    """Prevent updates to lines of a posted entry."""
    if _parent_is_posted(connection, target.journal_entry_id):
        raise _blocked(
            "JournalEntryLine", target.id, "UPDATE",
            "Journal lines cannot be modified after parent entry is posted",
        )


def _check_journal_line_delete(mapper, connection, target):
    """Prevent deletion of lines of a posted entry."""
    if _parent_is_posted(connection, target.journal_entry_id):
        raise _blocked(
            "JournalEntryLine", target.id, "DELETE",
            "Journal lines cannot be deleted after parent entry is posted",
        )


def _check_closing_operation_immutability(mapper, connection, target):
    """Closing operations are append-only."""
    raise _blocked(
        "ClosingOperation", target.id, "UPDATE",
        "Closing operations are append-only",
    )


def _check_closing_operation_delete(mapper, connection, target):
    raise _blocked(
        "ClosingOperation", target.id, "DELETE",
        "Closing operations are append-only",
    )


def _account_has_posted_references(connection, account_id) -> bool:
    from ledger_kernel.domain.dtos import EntryStatus
    from ledger_kernel.models.journal import JournalEntry, JournalEntryLine

    count = connection.execute(
        select(func.count(JournalEntryLine.id))
        .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
        .where(
            JournalEntryLine.account_id == account_id,
            JournalEntry.status == EntryStatus.POSTED,
        )
    ).scalar_one()
    return count > 0


def _check_account_structural_immutability(mapper, connection, target):
    """Codes and type are frozen once a posted line references the account."""
    changed = [
        key for key in ACCOUNT_STRUCTURAL_FIELDS
        if get_history(target, key).has_changes()
    ]
    if not changed:
        return
    if _account_has_posted_references(connection, target.id):
        raise _blocked(
            "Account", target.id, "UPDATE",
            f"Cannot modify {', '.join(sorted(changed))} on an account "
            f"referenced by posted journal lines",
            field=changed[0],
        )


def _check_account_delete(mapper, connection, target):
    """Accounts are deactivated, never hard deleted."""
    raise _blocked(
        "Account", target.id, "DELETE",
        "Accounts cannot be deleted; deactivate them instead",
    )


_LISTENERS = (
    ("JournalEntry", "before_update", _check_journal_entry_immutability),
    ("JournalEntry", "before_delete", _check_journal_entry_delete),
    ("JournalEntryLine", "before_update", _check_journal_line_immutability),
    ("JournalEntryLine", "before_delete", _check_journal_line_delete),
    ("ClosingOperation", "before_update", _check_closing_operation_immutability),
    ("ClosingOperation", "before_delete", _check_closing_operation_delete),
    ("Account", "before_update", _check_account_structural_immutability),
    ("Account", "before_delete", _check_account_delete),
)


def _models() -> dict:
    from ledger_kernel import models

    return {name: getattr(models, name) for name, _, _ in _LISTENERS}


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners.

    Call once after models are imported and before any database work.
    Registering twice is harmless.
    """
    targets = _models()
    for name, event_name, listener_fn in _LISTENERS:
        if not event.contains(targets[name], event_name, listener_fn):
            event.listen(targets[name], event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove the listeners.

    WARNING: Only for tests that must violate immutability on purpose.
    """
    targets = _models()
    for name, event_name, listener_fn in _LISTENERS:
        if event.contains(targets[name], event_name, listener_fn):
            event.remove(targets[name], event_name, listener_fn)
