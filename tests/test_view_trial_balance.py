"""scripts/view_trial_balance.py rendering and argument handling."""

import importlib.util
import sys
from datetime import date
from pathlib import Path

import pytest

from ledger_kernel.domain.dtos import LineSide

SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "view_trial_balance.py"


@pytest.fixture(scope="module")
def script():
    spec = importlib.util.spec_from_file_location("view_trial_balance", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def booked(post_entry):
    post_entry([("311", LineSide.MD, "1210.00"), ("601", LineSide.D, "1000.00"), ("343", LineSide.D, "210.00")])


def test_trial_balance_output(script, ledger, booked, company_id, capsys):
    script.print_trial_balance(ledger.trial_balance(company_id, date(2025, 1, 1), date(2025, 3, 31)))

    out = capsys.readouterr().out
    assert "OBRATOVA PREDVAHA" in out
    assert "Odberatelia" in out
    assert "1,210.00" in out
    assert "Balanced: YES" in out


def test_general_ledger_output(script, ledger, booked, company_id, capsys):
    script.print_general_ledger(ledger.general_ledger(company_id, date(2025, 1, 1), date(2025, 3, 31)))

    out = capsys.readouterr().out
    assert "HLAVNA KNIHA" in out
    assert "-1,000.00" in out


def test_invalid_company_id(script, monkeypatch, capsys):
    monkeypatch.setattr(
        sys, "argv",
        ["view_trial_balance.py", "--company-id", "not-a-uuid", "--from", "2025-01-01", "--to", "2025-03-31"],
    )

    assert script.main() == 1
    assert "ERROR" in capsys.readouterr().err
