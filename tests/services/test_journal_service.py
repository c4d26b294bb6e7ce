"""
JournalEntryService tests.

Tests cover:
- Creation: numbering, totals, line positions, draft status
- Validation: balance tolerance, empty, negative, currency, account checks
- Lifecycle: update/delete/post only while draft
- Period lock guard on create, update, delete and post
- Rejected calls leave no partial writes
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from ledger_kernel.domain.dtos import (
    DocumentType,
    EntryHeaderInput,
    EntryLineInput,
    EntryStatus,
    LineSide,
)
from ledger_kernel.exceptions import (
    EmptyEntryError,
    EntryNotDraftError,
    EntryNotFoundError,
    InvalidAccountError,
    InvalidCurrencyError,
    NegativeAmountError,
    PeriodLockedError,
    UnbalancedEntryError,
)
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.services.sequence_service import SequenceService

MD, D = LineSide.MD, LineSide.D

INVOICE = [("311", MD, "121.00"), ("601", D, "100.00"), ("343", D, "21.00")]


def _entry_count(session, company_id) -> int:
    return session.execute(
        select(func.count(JournalEntry.id)).where(JournalEntry.company_id == company_id)
    ).scalar_one()


class TestCreate:
    """Tests for draft creation."""

    def test_create_returns_draft_with_number_and_totals(self, create_draft):
        entry = create_draft(INVOICE, document_type=DocumentType.INVOICE_ISSUED)

        assert entry.status == EntryStatus.DRAFT
        assert entry.number == "FA000001"
        assert entry.document_type == DocumentType.INVOICE_ISSUED
        assert entry.total_debit == Decimal("121.00")
        assert entry.total_credit == Decimal("121.00")
        assert entry.posted_at is None

    def test_lines_keep_caller_order(self, create_draft):
        entry = create_draft(INVOICE)

        assert [line.position for line in entry.lines] == [1, 2, 3]
        assert [line.synthetic_code for line in entry.lines] == ["311", "601", "343"]
        assert [line.side for line in entry.lines] == [MD, D, D]

    def test_numbers_are_monotonic_per_document_type(self, create_draft):
        first = create_draft(INVOICE, document_type=DocumentType.INVOICE_ISSUED)
        second = create_draft(INVOICE, document_type=DocumentType.INVOICE_ISSUED)
        internal = create_draft(INVOICE, document_type=DocumentType.INTERNAL)

        assert first.number == "FA000001"
        assert second.number == "FA000002"
        assert internal.number == "ID000001"

    def test_created_by_is_actor(self, create_draft, test_actor_id):
        entry = create_draft(INVOICE)
        assert entry.created_by_id == test_actor_id

    def test_create_logs_event(self, create_draft, captured_logs):
        entry = create_draft(INVOICE)

        records = [r for r in captured_logs() if r["message"] == "journal_entry_created"]
        assert len(records) == 1
        assert records[0]["number"] == entry.number
        assert records[0]["line_count"] == 3


class TestBalanceValidation:
    """The balance invariant: |MD - D| <= 0.005."""

    def test_difference_within_tolerance_accepted(self, create_draft):
        entry = create_draft([("311", MD, "100.000"), ("601", D, "100.004")])
        assert entry.total_credit - entry.total_debit == Decimal("0.004")

    def test_difference_at_tolerance_accepted(self, create_draft):
        create_draft([("311", MD, "100.000"), ("601", D, "100.005")])

    def test_difference_above_tolerance_rejected(self, create_draft):
        with pytest.raises(UnbalancedEntryError) as exc_info:
            create_draft([("311", MD, "100.00"), ("601", D, "100.01")])

        assert exc_info.value.code == "UNBALANCED_ENTRY"
        assert exc_info.value.total_debit == "100.00"
        assert exc_info.value.total_credit == "100.01"

    def test_one_sided_entry_rejected(self, create_draft):
        with pytest.raises(UnbalancedEntryError):
            create_draft([("311", MD, "50.00")])

    def test_custom_tolerance(self, session, deterministic_clock, make_lines, company_id, test_actor_id):
        from ledger_kernel.services.journal_service import JournalEntryService

        strict = JournalEntryService(session, deterministic_clock, balance_tolerance=Decimal("0"))
        with pytest.raises(UnbalancedEntryError):
            strict.create(
                company_id,
                EntryHeaderInput(entry_date=date(2025, 3, 1)),
                make_lines([("311", MD, "100.000"), ("601", D, "100.001")]),
                test_actor_id,
            )

    def test_post_uses_the_same_tolerance_as_create(
        self, session, deterministic_clock, make_lines, company_id, test_actor_id,
    ):
        from ledger_kernel.services.journal_service import JournalEntryService

        lenient = JournalEntryService(session, deterministic_clock, balance_tolerance=Decimal("0.02"))
        draft = lenient.create(
            company_id,
            EntryHeaderInput(entry_date=date(2025, 3, 1)),
            make_lines([("311", MD, "100.00"), ("601", D, "100.01")]),
            test_actor_id,
        )

        assert lenient.post(draft.id, test_actor_id).status == EntryStatus.POSTED


class TestLineValidation:
    """Shape checks on lines."""

    def test_empty_entry_rejected(self, journal, company_id, test_actor_id):
        with pytest.raises(EmptyEntryError):
            journal.create(company_id, EntryHeaderInput(entry_date=date(2025, 3, 1)), [], test_actor_id)

    def test_negative_amount_rejected_with_position(self, create_draft):
        with pytest.raises(NegativeAmountError) as exc_info:
            create_draft([("311", MD, "10.00"), ("601", D, "-10.00")])

        assert exc_info.value.position == 2
        assert exc_info.value.amount == "-10.00"

    def test_invalid_currency_rejected(self, journal, chart, company_id, test_actor_id):
        lines = [
            EntryLineInput(account_id=chart["311"].id, side=MD, amount=Decimal("10"), currency="ABC"),
            EntryLineInput(account_id=chart["601"].id, side=D, amount=Decimal("10"), currency="ABC"),
        ]
        with pytest.raises(InvalidCurrencyError):
            journal.create(company_id, EntryHeaderInput(entry_date=date(2025, 3, 1)), lines, test_actor_id)

    def test_currency_is_normalized(self, journal, chart, company_id, test_actor_id):
        lines = [
            EntryLineInput(account_id=chart["311"].id, side=MD, amount=Decimal("10"), currency="czk"),
            EntryLineInput(account_id=chart["601"].id, side=D, amount=Decimal("10"), currency="czk"),
        ]
        entry = journal.create(company_id, EntryHeaderInput(entry_date=date(2025, 3, 1)), lines, test_actor_id)
        assert {line.currency for line in entry.lines} == {"CZK"}

    def test_unknown_account_rejected(self, journal, chart, company_id, test_actor_id):
        lines = [
            EntryLineInput(account_id=uuid4(), side=MD, amount=Decimal("10")),
            EntryLineInput(account_id=chart["601"].id, side=D, amount=Decimal("10")),
        ]
        with pytest.raises(InvalidAccountError):
            journal.create(company_id, EntryHeaderInput(entry_date=date(2025, 3, 1)), lines, test_actor_id)

    def test_account_of_other_company_rejected(self, journal, accounts, chart, company_id, test_actor_id):
        foreign = accounts.create_account(uuid4(), "311", "Odberatelia", test_actor_id)
        lines = [
            EntryLineInput(account_id=foreign.id, side=MD, amount=Decimal("10")),
            EntryLineInput(account_id=chart["601"].id, side=D, amount=Decimal("10")),
        ]
        with pytest.raises(InvalidAccountError) as exc_info:
            journal.create(company_id, EntryHeaderInput(entry_date=date(2025, 3, 1)), lines, test_actor_id)
        assert "another company" in exc_info.value.reason

    def test_deactivated_account_rejected(self, accounts, chart, create_draft, test_actor_id):
        accounts.deactivate(chart["601"].id, test_actor_id)
        with pytest.raises(InvalidAccountError):
            create_draft([("311", MD, "10.00"), ("601", D, "10.00")])

    def test_rejected_create_writes_nothing(self, session, create_draft, company_id):
        with pytest.raises(UnbalancedEntryError):
            create_draft([("311", MD, "10.00"), ("601", D, "20.00")])

        assert _entry_count(session, company_id) == 0
        assert SequenceService(session).current_value(
            company_id, DocumentType.INTERNAL.sequence_type
        ) == 0


class TestUpdate:
    """Tests for replacing a draft's header and lines."""

    def test_update_replaces_lines_and_keeps_number(self, journal, create_draft, make_lines, test_actor_id):
        draft = create_draft(INVOICE, document_type=DocumentType.INVOICE_ISSUED)
        header = EntryHeaderInput(
            entry_date=date(2025, 3, 2),
            document_type=DocumentType.INVOICE_ISSUED,
            description="Opravena faktura",
        )

        updated = journal.update(
            draft.id, header, make_lines([("311", MD, "60.00"), ("602", D, "60.00")]), test_actor_id
        )

        assert updated.number == draft.number
        assert updated.entry_date == date(2025, 3, 2)
        assert updated.description == "Opravena faktura"
        assert updated.total_debit == Decimal("60.00")
        assert [line.synthetic_code for line in updated.lines] == ["311", "602"]

    def test_update_validates_balance(self, journal, create_draft, make_lines, test_actor_id):
        draft = create_draft(INVOICE)
        with pytest.raises(UnbalancedEntryError):
            journal.update(
                draft.id,
                EntryHeaderInput(entry_date=date(2025, 3, 1)),
                make_lines([("311", MD, "60.00"), ("602", D, "61.00")]),
                test_actor_id,
            )

    def test_update_unknown_entry(self, journal, make_lines, test_actor_id):
        with pytest.raises(EntryNotFoundError):
            journal.update(
                uuid4(),
                EntryHeaderInput(entry_date=date(2025, 3, 1)),
                make_lines(INVOICE),
                test_actor_id,
            )


class TestDelete:
    def test_delete_hides_draft(self, journal, journal_selector, create_draft, test_actor_id):
        draft = create_draft(INVOICE)
        journal.delete(draft.id, test_actor_id)

        with pytest.raises(EntryNotFoundError):
            journal_selector.get(draft.id)

    def test_delete_twice_is_not_found(self, journal, create_draft, test_actor_id):
        draft = create_draft(INVOICE)
        journal.delete(draft.id, test_actor_id)

        with pytest.raises(EntryNotFoundError):
            journal.delete(draft.id, test_actor_id)


class TestPost:
    def test_post_sets_status_and_stamps(self, journal, create_draft, test_actor_id, deterministic_clock):
        draft = create_draft(INVOICE)
        posted = journal.post(draft.id, test_actor_id)

        assert posted.status == EntryStatus.POSTED
        assert posted.is_posted
        assert posted.posted_by_id == test_actor_id
        assert posted.posted_at is not None
        assert posted.number == draft.number

    def test_create_posted_skips_draft_stage(self, journal, make_lines, company_id, test_actor_id):
        entry = journal.create_posted(
            company_id,
            EntryHeaderInput(entry_date=date(2025, 3, 1)),
            make_lines(INVOICE),
            test_actor_id,
        )
        assert entry.status == EntryStatus.POSTED


class TestPostedIsTerminal:
    """Update, delete and post of a posted entry fail; the entry is unchanged."""

    @pytest.fixture
    def posted(self, post_entry):
        return post_entry(INVOICE, document_type=DocumentType.INVOICE_ISSUED, description="Faktura 1")

    def test_update_posted_rejected(self, journal, journal_selector, posted, make_lines, test_actor_id):
        with pytest.raises(EntryNotDraftError) as exc_info:
            journal.update(
                posted.id,
                EntryHeaderInput(entry_date=date(2025, 3, 1), description="changed"),
                make_lines([("311", MD, "1.00"), ("601", D, "1.00")]),
                test_actor_id,
            )

        assert exc_info.value.status == "posted"
        assert exc_info.value.operation == "update"
        assert journal_selector.get(posted.id) == posted

    def test_delete_posted_rejected(self, journal, journal_selector, posted, test_actor_id):
        with pytest.raises(EntryNotDraftError):
            journal.delete(posted.id, test_actor_id)
        assert journal_selector.get(posted.id) == posted

    def test_post_twice_rejected(self, journal, posted, test_actor_id):
        with pytest.raises(EntryNotDraftError) as exc_info:
            journal.post(posted.id, test_actor_id)
        assert exc_info.value.operation == "post"


class TestPeriodLockGuard:
    """No mutation dated inside a locked period."""

    @pytest.fixture
    def january_2024_locked(self, period_locks, company_id, test_actor_id):
        return period_locks.set_lock(
            company_id, date(2024, 1, 1), date(2024, 1, 31), True, test_actor_id
        )

    def test_create_inside_lock_rejected(self, create_draft, january_2024_locked):
        with pytest.raises(PeriodLockedError) as exc_info:
            create_draft(INVOICE, entry_date=date(2024, 1, 15))

        assert exc_info.value.code == "PERIOD_LOCKED"
        assert exc_info.value.on_date == "2024-01-15"
        assert exc_info.value.period_start == "2024-01-01"
        assert exc_info.value.period_end == "2024-01-31"

    def test_create_after_lock_accepted(self, create_draft, january_2024_locked):
        entry = create_draft(INVOICE, entry_date=date(2024, 2, 1))
        assert entry.entry_date == date(2024, 2, 1)

    def test_lock_bounds_are_inclusive(self, create_draft, january_2024_locked):
        with pytest.raises(PeriodLockedError):
            create_draft(INVOICE, entry_date=date(2024, 1, 1))
        with pytest.raises(PeriodLockedError):
            create_draft(INVOICE, entry_date=date(2024, 1, 31))

    def test_update_into_locked_period_rejected(
        self, journal, create_draft, make_lines, january_2024_locked, test_actor_id,
    ):
        draft = create_draft(INVOICE, entry_date=date(2024, 2, 1))
        with pytest.raises(PeriodLockedError):
            journal.update(
                draft.id,
                EntryHeaderInput(entry_date=date(2024, 1, 20)),
                make_lines(INVOICE),
                test_actor_id,
            )

    def test_post_after_lock_set_rejected(self, journal, period_locks, create_draft, company_id, test_actor_id):
        draft = create_draft(INVOICE, entry_date=date(2024, 1, 15))
        period_locks.set_lock(company_id, date(2024, 1, 1), date(2024, 1, 31), True, test_actor_id)

        with pytest.raises(PeriodLockedError):
            journal.post(draft.id, test_actor_id)

    def test_delete_inside_lock_rejected(self, journal, period_locks, create_draft, company_id, test_actor_id):
        draft = create_draft(INVOICE, entry_date=date(2024, 1, 15))
        period_locks.set_lock(company_id, date(2024, 1, 1), date(2024, 1, 31), True, test_actor_id)

        with pytest.raises(PeriodLockedError):
            journal.delete(draft.id, test_actor_id)

    def test_rejection_is_logged(self, create_draft, january_2024_locked, captured_logs):
        with pytest.raises(PeriodLockedError):
            create_draft(INVOICE, entry_date=date(2024, 1, 15))

        records = [r for r in captured_logs() if r["message"] == "period_locked_rejection"]
        assert records and records[0]["on_date"] == "2024-01-15"
