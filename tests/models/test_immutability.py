"""
ORM-level immutability listeners.

These bypass the services and write through the session directly, the
way a careless script or a future code path would.
"""

from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import ClosingOperationType, EntryStatus, LineSide
from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.models.closing import ClosingOperation
from ledger_kernel.models.journal import JournalEntry

MD, D = LineSide.MD, LineSide.D
LINES = [("311", MD, "100.00"), ("601", D, "100.00")]


@pytest.fixture
def posted_model(session, post_entry):
    info = post_entry(LINES, description="Faktura")
    return session.get(JournalEntry, info.id)


@pytest.fixture
def draft_model(session, create_draft):
    info = create_draft(LINES, description="Koncept")
    return session.get(JournalEntry, info.id)


class TestJournalEntry:
    def test_posted_header_is_frozen(self, session, posted_model):
        posted_model.description = "prepisane"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "JournalEntry"

    def test_status_cannot_leave_posted(self, session, posted_model):
        posted_model.status = EntryStatus.DRAFT

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_posted_entry_cannot_be_deleted(self, session, posted_model):
        session.delete(posted_model)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_audit_fields_may_change(self, session, posted_model, admin_actor_id):
        posted_model.updated_by_id = admin_actor_id
        session.flush()
        assert posted_model.updated_by_id == admin_actor_id

    def test_draft_is_mutable(self, session, draft_model):
        draft_model.description = "upravene"
        session.flush()
        assert draft_model.description == "upravene"

    def test_posting_transition_allowed(self, session, draft_model, test_actor_id):
        draft_model.status = EntryStatus.POSTED
        draft_model.posted_by_id = test_actor_id
        session.flush()
        assert draft_model.status == EntryStatus.POSTED


class TestJournalEntryLine:
    def test_line_of_posted_entry_is_frozen(self, session, posted_model):
        posted_model.lines[0].amount = Decimal("99.00")

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "JournalEntryLine"

    def test_line_of_posted_entry_cannot_be_deleted(self, session, posted_model):
        session.delete(posted_model.lines[0])

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_line_of_draft_is_mutable(self, session, draft_model):
        draft_model.lines[0].description = "poznamka"
        session.flush()


class TestClosingOperation:
    @pytest.fixture
    def operation(self, session, fiscal_year, company_id, test_actor_id):
        operation = ClosingOperation(
            company_id=company_id,
            fiscal_year_id=fiscal_year.id,
            operation_type=ClosingOperationType.REVENUE_CLOSE,
            total_amount=Decimal("10.00"),
            accounts_count=1,
            created_by_id=test_actor_id,
        )
        session.add(operation)
        session.flush()
        return operation

    def test_update_blocked(self, session, operation):
        operation.total_amount = Decimal("20.00")

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_blocked(self, session, operation):
        session.delete(operation)

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.reason == "Closing operations are append-only"


class TestAccount:
    def test_code_frozen_once_posted_lines_exist(self, session, chart, post_entry):
        post_entry(LINES)
        chart["311"].synthetic_code = "315"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_draft_lines_do_not_freeze_codes(self, session, chart, create_draft):
        create_draft(LINES)
        chart["311"].analytic_code = "001"
        session.flush()

    def test_rename_allowed_after_posting(self, session, chart, post_entry):
        post_entry(LINES)
        chart["311"].name = "Odberatelia - tuzemsko"
        session.flush()

    def test_hard_delete_blocked(self, session, chart):
        session.delete(chart["518"])

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_violation_logged(self, session, chart, captured_logs):
        session.delete(chart["518"])
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

        records = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert records[0]["entity_type"] == "Account"
        assert records[0]["operation"] == "DELETE"
