"""FiscalYearService tests: non-overlap, lookup and in-order closing."""

from datetime import date
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import (
    FiscalYearClosedError,
    FiscalYearCloseOrderError,
    FiscalYearNotFoundError,
    FiscalYearOverlapError,
    InvalidDateRangeError,
)
from ledger_kernel.models.fiscal_year import FiscalYearStatus


@pytest.fixture
def year_2024(fiscal_years, company_id, test_actor_id):
    return fiscal_years.create_year(company_id, "2024", date(2024, 1, 1), date(2024, 12, 31), test_actor_id)


class TestCreateYear:
    def test_new_year_is_active(self, fiscal_year):
        assert fiscal_year.status == FiscalYearStatus.ACTIVE
        assert not fiscal_year.is_closed

    def test_overlap_rejected(self, fiscal_years, fiscal_year, company_id, test_actor_id):
        with pytest.raises(FiscalYearOverlapError) as exc_info:
            fiscal_years.create_year(
                company_id, "2025B", date(2025, 7, 1), date(2026, 6, 30), test_actor_id
            )
        assert exc_info.value.existing_name == "2025"

    def test_adjacent_year_allowed(self, fiscal_years, fiscal_year, company_id, test_actor_id):
        nxt = fiscal_years.create_year(company_id, "2026", date(2026, 1, 1), date(2026, 12, 31), test_actor_id)
        assert nxt.start_date == date(2026, 1, 1)

    def test_overlap_is_company_scoped(self, fiscal_years, fiscal_year, test_actor_id):
        other = fiscal_years.create_year(uuid4(), "2025", date(2025, 1, 1), date(2025, 12, 31), test_actor_id)
        assert other.id != fiscal_year.id

    def test_inverted_range_rejected(self, fiscal_years, company_id, test_actor_id):
        with pytest.raises(InvalidDateRangeError):
            fiscal_years.create_year(company_id, "bad", date(2025, 12, 31), date(2025, 1, 1), test_actor_id)


class TestLookup:
    def test_get_unknown(self, fiscal_years):
        with pytest.raises(FiscalYearNotFoundError):
            fiscal_years.get(uuid4())

    def test_get_scoped_to_company(self, fiscal_years, fiscal_year, company_id):
        assert fiscal_years.get(fiscal_year.id, company_id).id == fiscal_year.id
        with pytest.raises(FiscalYearNotFoundError):
            fiscal_years.get(fiscal_year.id, uuid4())

    def test_find_year_for_date(self, fiscal_years, fiscal_year, year_2024, company_id):
        assert fiscal_years.find_year_for_date(company_id, date(2025, 3, 1)).id == fiscal_year.id
        assert fiscal_years.find_year_for_date(company_id, date(2024, 12, 31)).id == year_2024.id
        assert fiscal_years.find_year_for_date(company_id, date(2023, 6, 1)) is None

    def test_list_years_newest_first(self, fiscal_years, fiscal_year, year_2024, company_id):
        assert [y.name for y in fiscal_years.list_years(company_id)] == ["2025", "2024"]


class TestCloseYear:
    def test_close_sets_status_and_stamps(self, fiscal_years, year_2024, test_actor_id, deterministic_clock):
        closed = fiscal_years.close_year(year_2024.id, test_actor_id)

        assert closed.is_closed
        assert closed.closed_by_id == test_actor_id
        assert closed.closed_at == deterministic_clock.now()

    def test_earlier_open_year_blocks_close(self, fiscal_years, fiscal_year, year_2024, test_actor_id):
        with pytest.raises(FiscalYearCloseOrderError) as exc_info:
            fiscal_years.close_year(fiscal_year.id, test_actor_id)
        assert exc_info.value.open_earlier_years == ["2024"]

    def test_close_in_order(self, fiscal_years, fiscal_year, year_2024, test_actor_id):
        fiscal_years.close_year(year_2024.id, test_actor_id)
        assert fiscal_years.close_year(fiscal_year.id, test_actor_id).is_closed

    def test_close_twice_rejected(self, fiscal_years, year_2024, test_actor_id):
        fiscal_years.close_year(year_2024.id, test_actor_id)
        with pytest.raises(FiscalYearClosedError):
            fiscal_years.close_year(year_2024.id, test_actor_id)

    def test_close_unknown(self, fiscal_years, test_actor_id):
        with pytest.raises(FiscalYearNotFoundError):
            fiscal_years.close_year(uuid4(), test_actor_id)


class TestLogging:
    def test_create_and_close_are_logged(self, captured_logs, fiscal_years, company_id, test_actor_id):
        year = fiscal_years.create_year(company_id, "2024", date(2024, 1, 1), date(2024, 12, 31), test_actor_id)
        fiscal_years.close_year(year.id, test_actor_id)

        records = {r["message"]: r for r in captured_logs()}
        assert records["fiscal_year_created"]["fiscal_year_name"] == "2024"
        assert records["fiscal_year_created"]["start_date"] == "2024-01-01"
        assert records["fiscal_year_closed"]["fiscal_year_id"] == str(year.id)
