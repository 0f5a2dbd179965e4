"""Type policy tests: status tables, defaults and creation rules."""

from __future__ import annotations

import pytest

from billflow.errors import ValidationError
from billflow.models.transaction import RecurrencePattern, TransactionStatus, TransactionType
from billflow.services import type_policy

S = TransactionStatus
T = TransactionType


@pytest.mark.parametrize(
    "txn_type, expected",
    [
        (T.INCOME, (S.PENDING, S.RECEIVED, S.CANCELLED)),
        (T.EXPENSE, (S.PENDING, S.PAID, S.CANCELLED)),
        (T.INSTALLMENT, (S.PENDING, S.PAID, S.CANCELLED)),
        (T.RECURRING, (S.PENDING, S.COMPLETED, S.CANCELLED)),
        (T.TRANSFER, (S.PENDING, S.COMPLETED, S.CANCELLED)),
    ],
)
def test_valid_statuses_table(txn_type, expected):
    assert type_policy.valid_statuses(txn_type) == expected


def test_unknown_type_only_allows_pending_and_cancelled():
    assert type_policy.valid_statuses("LOAN") == (S.PENDING, S.CANCELLED)


def test_default_status_transfer_is_completed():
    assert type_policy.default_status(T.TRANSFER) == S.COMPLETED
    for other in (T.INCOME, T.EXPENSE, T.RECURRING, T.INSTALLMENT):
        assert type_policy.default_status(other) == S.PENDING


def test_finalizing_statuses():
    assert {s for s in S if type_policy.is_finalizing(s)} == {S.PAID, S.RECEIVED, S.COMPLETED}


def test_validate_status_lists_allowed_values():
    with pytest.raises(ValidationError) as excinfo:
        type_policy.validate_status(T.INCOME, S.PAID)
    assert excinfo.value.field == "status"
    assert "PENDING, RECEIVED, CANCELLED" in str(excinfo.value)


def test_income_rejects_installments():
    with pytest.raises(ValidationError) as excinfo:
        type_policy.validate_create(T.INCOME, amount_in_cents=100, total_installments=3)
    assert excinfo.value.field == "total_installments"


@pytest.mark.parametrize("count", [None, 0, 1])
def test_installment_requires_two_or_more(count):
    with pytest.raises(ValidationError):
        type_policy.validate_create(T.INSTALLMENT, amount_in_cents=100, total_installments=count)


@pytest.mark.parametrize("amount", [0, -5])
def test_amount_must_be_positive(amount):
    with pytest.raises(ValidationError) as excinfo:
        type_policy.validate_create(T.INSTALLMENT, amount_in_cents=amount, total_installments=3)
    assert excinfo.value.field == "amount_in_cents"


def test_recurring_requires_known_pattern():
    with pytest.raises(ValidationError):
        type_policy.validate_create(T.RECURRING, amount_in_cents=100)
    with pytest.raises(ValidationError):
        type_policy.validate_create(T.RECURRING, amount_in_cents=100, recurrence_pattern="daily")
    type_policy.validate_create(T.RECURRING, amount_in_cents=100, recurrence_pattern="monthly")


def test_pattern_casing_is_normalized():
    assert type_policy.parse_pattern("MONTHLY") is RecurrencePattern.MONTHLY
    assert type_policy.parse_pattern(" Weekly ") is RecurrencePattern.WEEKLY


def test_expense_and_transfer_have_no_extra_rules():
    type_policy.validate_create(T.EXPENSE, amount_in_cents=1, total_installments=4)
    type_policy.validate_create(T.TRANSFER, amount_in_cents=1)
