"""
ReversalService tests.

Tests cover:
- Mirror entry: sides swapped, amounts and dimensions kept, posted directly
- Linkage: source_document_id and the povodny doklad reference
- The original entry is untouched
- Error paths: draft, unknown, already reversed, locked period
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import (
    DocumentType,
    EntryHeaderInput,
    EntryLineInput,
    EntryStatus,
    LineSide,
)
from ledger_kernel.exceptions import (
    EntryAlreadyReversedError,
    EntryNotFoundError,
    EntryNotPostedError,
    PeriodLockedError,
)
from ledger_kernel.services.reversal_service import ReversalResult

MD, D = LineSide.MD, LineSide.D


@pytest.fixture
def posted(post_entry):
    return post_entry(
        [("311", MD, "100.00"), ("601", D, "100.00")],
        document_type=DocumentType.INVOICE_ISSUED,
        description="Faktura 1",
    )


class TestReversalHappyPath:
    def test_reversal_swaps_sides(self, reversals, posted, test_actor_id):
        result = reversals.reverse(posted.id, test_actor_id)

        assert isinstance(result, ReversalResult)
        lines = [(line.synthetic_code, line.side, line.amount) for line in result.entry.lines]
        assert lines == [("311", D, Decimal("100.00")), ("601", MD, Decimal("100.00"))]

    def test_reversal_is_posted_today(self, reversals, posted, test_actor_id, deterministic_clock):
        result = reversals.reverse(posted.id, test_actor_id)

        assert result.entry.status == EntryStatus.POSTED
        assert result.entry_date == deterministic_clock.today()
        assert result.entry.entry_date == date(2025, 6, 15)

    def test_reversal_references_original(self, reversals, posted, test_actor_id):
        result = reversals.reverse(posted.id, test_actor_id)

        assert result.original_entry_id == posted.id
        assert result.original_number == "FA000001"
        assert result.entry.source_document_id == posted.id
        assert result.entry.description == "STORNO: Faktura 1 (povodny doklad: FA000001)"

    def test_reversal_uses_original_numbering_sequence(self, reversals, posted, test_actor_id):
        result = reversals.reverse(posted.id, test_actor_id)

        assert result.entry.document_type == DocumentType.INVOICE_ISSUED
        assert result.reversal_number == "FA000002"

    def test_totals_are_swapped(self, reversals, posted, test_actor_id):
        result = reversals.reverse(posted.id, test_actor_id)

        assert result.total_debit == posted.total_credit
        assert result.total_credit == posted.total_debit

    def test_line_descriptions_prefixed(
        self, reversals, journal, chart, company_id, test_actor_id,
    ):
        lines = [
            EntryLineInput(account_id=chart["311"].id, side=MD, amount=Decimal("5"), description="Odberatel"),
            EntryLineInput(account_id=chart["601"].id, side=D, amount=Decimal("5")),
        ]
        draft = journal.create(company_id, EntryHeaderInput(entry_date=date(2025, 3, 1)), lines, test_actor_id)
        journal.post(draft.id, test_actor_id)

        result = reversals.reverse(draft.id, test_actor_id)

        assert [line.description for line in result.entry.lines] == ["STORNO: Odberatel", "STORNO"]

    def test_dimensions_and_currency_preserved(
        self, reversals, journal, chart, company_id, test_actor_id,
    ):
        cost_center, project = uuid4(), uuid4()
        lines = [
            EntryLineInput(
                account_id=chart["518"].id, side=MD, amount=Decimal("40"),
                currency="CZK", amount_currency=Decimal("1000"), exchange_rate=Decimal("25"),
                cost_center_id=cost_center, project_id=project,
            ),
            EntryLineInput(account_id=chart["321"].id, side=D, amount=Decimal("40"), currency="CZK"),
        ]
        draft = journal.create(company_id, EntryHeaderInput(entry_date=date(2025, 3, 1)), lines, test_actor_id)
        journal.post(draft.id, test_actor_id)

        mirror = reversals.reverse(draft.id, test_actor_id).entry.lines[0]

        assert mirror.currency == "CZK"
        assert mirror.amount_currency == Decimal("1000")
        assert mirror.exchange_rate == Decimal("25")
        assert mirror.cost_center_id == cost_center
        assert mirror.project_id == project

    def test_original_unchanged(self, reversals, journal_selector, posted, test_actor_id):
        before = journal_selector.get(posted.id)
        reversals.reverse(posted.id, test_actor_id)
        after = journal_selector.get(posted.id)

        assert before == after
        assert after.status == EntryStatus.POSTED

    def test_net_effect_is_zero(self, reversals, ledger, posted, company_id, test_actor_id):
        reversals.reverse(posted.id, test_actor_id)

        report = ledger.general_ledger(company_id, date(2025, 1, 1), date(2025, 12, 31))
        assert all(row.closing_balance == 0 for row in report.rows)

    def test_reversal_found_by_selector(self, reversals, journal_selector, posted, test_actor_id):
        result = reversals.reverse(posted.id, test_actor_id)
        assert journal_selector.reversal_of(posted.id).id == result.reversal_entry_id

    def test_reversal_logged(self, reversals, posted, test_actor_id, captured_logs):
        result = reversals.reverse(posted.id, test_actor_id)

        records = [r for r in captured_logs() if r["message"] == "journal_entry_reversed"]
        assert len(records) == 1
        assert records[0]["reversal_number"] == result.reversal_number


class TestReversalErrors:
    def test_draft_cannot_be_reversed(self, reversals, create_draft, test_actor_id):
        draft = create_draft([("311", MD, "10.00"), ("601", D, "10.00")])

        with pytest.raises(EntryNotPostedError) as exc_info:
            reversals.reverse(draft.id, test_actor_id)
        assert exc_info.value.status == "draft"

    def test_unknown_entry(self, reversals, test_actor_id):
        with pytest.raises(EntryNotFoundError):
            reversals.reverse(uuid4(), test_actor_id)

    def test_second_reversal_rejected(self, reversals, posted, test_actor_id):
        first = reversals.reverse(posted.id, test_actor_id)

        with pytest.raises(EntryAlreadyReversedError) as exc_info:
            reversals.reverse(posted.id, test_actor_id)

        assert exc_info.value.reversal_entry_id == str(first.reversal_entry_id)
        assert exc_info.value.reversal_number == first.reversal_number

    def test_locked_reversal_date_rejected(
        self, reversals, period_locks, posted, company_id, test_actor_id, journal_selector,
    ):
        period_locks.set_lock(company_id, date(2025, 6, 1), date(2025, 6, 30), True, test_actor_id)

        with pytest.raises(PeriodLockedError):
            reversals.reverse(posted.id, test_actor_id)
        assert journal_selector.reversal_of(posted.id) is None
