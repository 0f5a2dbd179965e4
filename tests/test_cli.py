"""CLI smoke tests against a throwaway data directory."""

from __future__ import annotations

import json
import logging

import pytest
from click.testing import CliRunner

from billflow.cli import main


@pytest.fixture
def run(tmp_path):
    runner = CliRunner()
    env = {"BILLFLOW_DATA_DIR": str(tmp_path), "BILLFLOW_DEV_MODE": "false"}

    def _invoke(*args):
        return runner.invoke(main, list(args), env=env, catch_exceptions=False)

    yield _invoke

    logger = logging.getLogger("billflow")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()


def test_init_db_creates_database(run, tmp_path):
    result = run("init-db")

    assert result.exit_code == 0
    assert (tmp_path / "billflow.db").exists()
    assert (tmp_path / "logs" / "billflow.log").exists()


def test_add_list_and_settle_expense(run):
    added = run("add", "--amount", "5000", "--date", "2024-03-10", "--type", "expense",
                "--description", "Groceries")
    assert added.exit_code == 0
    assert "Groceries" in added.output
    assert "PENDING" in added.output

    listed = run("list", "--start", "2024-03-01", "--end", "2024-03-31")
    assert "Groceries" in listed.output

    paid = run("status", "1", "paid")
    assert paid.exit_code == 0
    assert "PAID" in paid.output


def test_installment_plan_listing(run):
    created = run("add", "--amount", "1000", "--date", "2024-01-10", "--type", "installment",
                  "--installments", "3", "--description", "Laptop")
    assert created.exit_code == 0
    assert "3,000.00" in created.output

    shown = run("plan", "1")
    assert shown.exit_code == 0
    for number in (1, 2, 3):
        assert f"Laptop - Installment {number}/3" in shown.output


def test_summary_prints_json(run):
    run("add", "--amount", "5000", "--date", "2024-03-10", "--type", "expense")
    run("add", "--amount", "20000", "--date", "2024-03-01", "--type", "income")

    result = run("summary", "--start", "2024-03-01", "--end", "2024-03-31")

    data = json.loads(result.output)
    assert data["total_income"] == 20000
    assert data["total_expenses"] == 5000
    assert data["balance"] == 15000
    assert data["by_type"]["EXPENSE"] == {"count": 1, "amount": 5000}


def test_invalid_input_exits_with_error(run):
    result = run("add", "--amount", "0", "--date", "2024-03-10", "--type", "expense")
    assert result.exit_code == 1
    assert "Error" in result.output

    missing = run("status", "42", "paid")
    assert missing.exit_code == 1
    assert "not found" in missing.output


def test_plan_rejects_plain_transaction(run):
    run("add", "--amount", "5000", "--date", "2024-03-10", "--type", "expense")
    result = run("plan", "1")
    assert result.exit_code == 1


def test_list_rejects_unknown_type_filter(run):
    result = run("list", "--type", "EXPENSE,LOAN")
    assert result.exit_code == 1
    assert "type:" in result.output
