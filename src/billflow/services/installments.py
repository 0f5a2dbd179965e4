"""Installment plan expansion: one request, one parent, N children."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from ..domain.entries import Installment, InstallmentPlan
from ..models.transaction import TransactionStatus
from .recurrence import add_months

DUE_DATE_STEP_DAYS = 30


def installment_description(description: str, number: int, total: int) -> str:
    return f"{description} - Installment {number}/{total}"


def build_plan(
    *,
    user_id: int,
    per_installment: int,
    count: int,
    start: dt.date,
    description: str,
    due_date: Optional[dt.date] = None,
) -> InstallmentPlan:
    """Return the unsaved parent row holding the financed total."""

    return InstallmentPlan(
        user_id=user_id,
        amount_in_cents=per_installment * count,
        date=start,
        due_date=due_date,
        description=description,
        status=TransactionStatus.PENDING,
        total_installments=count,
    )


def expand_installments(
    plan: InstallmentPlan,
    *,
    per_installment: int,
    description: str,
) -> list[Installment]:
    """Build the children of a saved plan.

    The i-th child (1-based) is dated ``i - 1`` calendar months after the plan
    date. Its due date is the plan due date plus ``30 * (i - 1)`` days, or the
    child's own date when the plan has no due date. Every child carries the
    same per-installment amount.
    """

    if plan.id is None:
        raise ValueError("Installment plan must be saved before expanding children")

    count = plan.total_installments
    children: list[Installment] = []
    for number in range(1, count + 1):
        child_date = add_months(plan.date, number - 1)
        if plan.due_date is not None:
            child_due = plan.due_date + dt.timedelta(days=DUE_DATE_STEP_DAYS * (number - 1))
        else:
            child_due = child_date
        children.append(
            Installment(
                user_id=plan.user_id,
                amount_in_cents=per_installment,
                date=child_date,
                due_date=child_due,
                description=installment_description(description, number, count),
                status=TransactionStatus.PENDING,
                parent_id=plan.id,
                installment_number=number,
                total_installments=count,
            )
        )
    return children


__all__ = [
    "DUE_DATE_STEP_DAYS",
    "build_plan",
    "expand_installments",
    "installment_description",
]
