"""Installment expander tests (no database)."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta

import pytest

from billflow.models.transaction import TransactionStatus, TransactionType
from billflow.services.installments import build_plan, expand_installments


def _saved_plan(**overrides):
    defaults = dict(
        user_id=1,
        per_installment=1000,
        count=3,
        start=date(2024, 1, 1),
        description="Laptop",
    )
    defaults.update(overrides)
    return replace(build_plan(**defaults), id=42)


def test_plan_holds_total_amount():
    plan = build_plan(user_id=1, per_installment=1000, count=3, start=date(2024, 1, 1), description="Laptop")

    assert plan.amount_in_cents == 3000
    assert plan.total_installments == 3
    assert plan.type == TransactionType.INSTALLMENT
    assert plan.status == TransactionStatus.PENDING
    assert plan.id is None


def test_children_share_amount_and_reference_parent():
    plan = _saved_plan(count=4)
    children = expand_installments(plan, per_installment=1000, description="Laptop")

    assert len(children) == 4
    assert {c.amount_in_cents for c in children} == {1000}
    assert [c.installment_number for c in children] == [1, 2, 3, 4]
    assert {c.parent_id for c in children} == {42}
    assert sum(c.amount_in_cents for c in children) == plan.amount_in_cents


def test_children_dates_advance_by_calendar_month():
    plan = _saved_plan(start=date(2024, 1, 31), count=3)
    children = expand_installments(plan, per_installment=1000, description="Laptop")

    assert [c.date for c in children] == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)]
    # Without a due date each child is due on its own date.
    assert [c.due_date for c in children] == [c.date for c in children]


def test_due_dates_step_thirty_days_from_supplied_due_date():
    plan = _saved_plan(due_date=date(2024, 1, 10))
    children = expand_installments(plan, per_installment=1000, description="Laptop")

    assert [c.due_date for c in children] == [
        date(2024, 1, 10),
        date(2024, 1, 10) + timedelta(days=30),
        date(2024, 1, 10) + timedelta(days=60),
    ]


def test_child_descriptions_are_numbered():
    children = expand_installments(_saved_plan(), per_installment=1000, description="Laptop")
    assert [c.description for c in children] == [
        "Laptop - Installment 1/3",
        "Laptop - Installment 2/3",
        "Laptop - Installment 3/3",
    ]


def test_unsaved_plan_cannot_be_expanded():
    plan = build_plan(user_id=1, per_installment=1000, count=2, start=date(2024, 1, 1), description="x")
    with pytest.raises(ValueError):
        expand_installments(plan, per_installment=1000, description="x")
