"""
End-to-end year-end close.

Book a year, correct a mistake with a storno, work through the checklist,
run the four closing operations through the orchestrator, lock the year
and check that the next year opens with the carried balances.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import ClosingOperationType, DocumentType, LineSide
from ledger_kernel.exceptions import (
    ClosingAlreadyExecutedError,
    ClosingGateError,
    PeriodLockedError,
)
from ledger_kernel.models.closing import ChecklistItemStatus
from ledger_services.checklist_verifiers import default_verifiers

MD, D = LineSide.MD, LineSide.D

START = date(2025, 1, 1)
END = date(2025, 12, 31)

CLOSING_SEQUENCE = (
    ClosingOperationType.REVENUE_CLOSE,
    ClosingOperationType.EXPENSE_CLOSE,
    ClosingOperationType.PROFIT_LOSS_CLOSE,
    ClosingOperationType.BALANCE_CLOSE,
)


@pytest.fixture
def booked_year(post_entry, create_draft, reversals, fiscal_year, test_actor_id):
    """The 2025 books: one storno and an open invoice draft still to be posted."""
    post_entry([("221", MD, "2000.00"), ("411", D, "2000.00")], entry_date=date(2025, 1, 2))
    post_entry([("311", MD, "1210.00"), ("601", D, "1000.00"), ("343", D, "210.00")],
               entry_date=date(2025, 2, 10), document_type=DocumentType.INVOICE_ISSUED)
    post_entry([("221", MD, "500.00"), ("602", D, "500.00")], entry_date=date(2025, 3, 5))
    post_entry([("501", MD, "300.00"), ("321", D, "300.00")],
               entry_date=date(2025, 4, 20), document_type=DocumentType.INVOICE_RECEIVED)

    # booked twice by mistake, then reversed
    duplicate = post_entry([("518", MD, "200.00"), ("211", D, "200.00")],
                           entry_date=date(2025, 5, 2), document_type=DocumentType.CASH_PAYMENT)
    post_entry([("518", MD, "200.00"), ("211", D, "200.00")],
               entry_date=date(2025, 5, 2), document_type=DocumentType.CASH_PAYMENT)
    reversals.reverse(duplicate.id, test_actor_id)

    draft = create_draft([("311", MD, "50.00"), ("602", D, "50.00")],
                         entry_date=date(2025, 11, 30), document_type=DocumentType.INVOICE_ISSUED)
    return fiscal_year, draft


def _resolve_remaining_items(checklist, company_id, year, actor_id):
    """The accountant confirms the rest; no EU supplies were made."""
    for view in checklist.get_checklist(company_id, year.id):
        if view.status != ChecklistItemStatus.PENDING:
            continue
        status = ChecklistItemStatus.DONE
        if view.item_id == "summary_declaration_filed":
            status = ChecklistItemStatus.NOT_APPLICABLE
        checklist.update_item(company_id, year.id, view.item_id, status, actor_id)


class TestYearEndClose:
    def test_full_close(
        self, session, booked_year, journal, checklist, orchestrator, ledger, period_locks,
        fiscal_years, company_id, test_actor_id,
    ):
        year, draft = booked_year

        # The open invoice draft keeps invoices_posted pending
        verified = checklist.auto_verify(company_id, year.id, default_verifiers(session), test_actor_id)
        assert "invoices_posted" in verified.failed

        with pytest.raises(ClosingGateError):
            orchestrator.execute(company_id, year.id, CLOSING_SEQUENCE[0], START, END, test_actor_id)

        journal.post(draft.id, test_actor_id)
        checklist.auto_verify(company_id, year.id, default_verifiers(session), test_actor_id)
        _resolve_remaining_items(checklist, company_id, year, test_actor_id)
        progress = checklist.progress(company_id, year.id)
        assert progress.is_complete
        assert progress.percentage == 93

        results = {
            op: orchestrator.execute(company_id, year.id, op, START, END, test_actor_id)
            for op in CLOSING_SEQUENCE
        }

        # revenue 1000 + 500 + 50, expenses 300 + 200 (the duplicate was reversed)
        assert results[ClosingOperationType.REVENUE_CLOSE].total_amount == Decimal("1550.00")
        assert results[ClosingOperationType.EXPENSE_CLOSE].total_amount == Decimal("500.00")
        assert results[ClosingOperationType.PROFIT_LOSS_CLOSE].total_amount == Decimal("1050.00")
        assert orchestrator.status(company_id, year.id).is_finished

        assert ledger.account_balances(company_id, ("5", "6", "710"), START, END) == []
        [closing_balance] = ledger.account_balances(company_id, "702", START, END)
        assert closing_balance.balance == Decimal("-1050.00")

        with pytest.raises(ClosingAlreadyExecutedError):
            orchestrator.execute(company_id, year.id, ClosingOperationType.REVENUE_CLOSE, START, END, test_actor_id)

        period_locks.set_lock(company_id, START, END, True, test_actor_id)
        fiscal_years.close_year(year.id, test_actor_id)

        opening = ledger.trial_balance(company_id, date(2026, 1, 1), date(2026, 12, 31))
        assert opening.is_balanced
        assert opening.row_for("221").obraty_md == Decimal("2500.00")
        assert opening.row_for("311").obraty_md == Decimal("1260.00")
        assert opening.row_for("411").obraty_d == Decimal("2000.00")
        assert opening.row_for("211").obraty_d == Decimal("200.00")

        # 501 carries its 2025 expense and the closing credit, netting to zero
        expense_row = opening.row_for("501")
        assert expense_row.pociatocny_zostatok_md == expense_row.pociatocny_zostatok_d == Decimal("300.00")
        assert expense_row.obraty_md == expense_row.obraty_d == 0
        assert expense_row.konecny_zostatok_md == expense_row.konecny_zostatok_d
        assert ledger.account_balances(company_id, "5", date(2026, 1, 1), date(2026, 12, 31)) == []

    def test_locked_year_rejects_corrections(
        self, booked_year, journal_selector, reversals, period_locks, create_draft,
        company_id, test_actor_id,
    ):
        period_locks.set_lock(company_id, START, END, True, test_actor_id)
        invoice = journal_selector.find_by_number(company_id, "FA000001")

        # storno would be dated today, inside the locked year
        with pytest.raises(PeriodLockedError):
            reversals.reverse(invoice.id, test_actor_id)
        with pytest.raises(PeriodLockedError):
            create_draft([("311", MD, "1.00"), ("602", D, "1.00")], entry_date=date(2025, 12, 31))
