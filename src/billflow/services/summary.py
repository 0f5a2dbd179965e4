"""Per-type and per-status roll-ups of a transaction listing."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Iterable

from ..domain.entries import LedgerEntry
from ..models.transaction import TransactionStatus, TransactionType

EXPENSE_TYPES = frozenset({TransactionType.EXPENSE, TransactionType.INSTALLMENT})


@dataclass(slots=True)
class Bucket:
    count: int = 0
    amount: int = 0

    def add(self, amount_in_cents: int) -> None:
        self.count += 1
        self.amount += amount_in_cents


@dataclass(slots=True)
class TransactionSummary:
    """Totals in cents. ``balance`` is income minus expenses."""

    total_income: int = 0
    total_expenses: int = 0
    pending_income: int = 0
    pending_expenses: int = 0
    balance: int = 0
    by_type: dict[TransactionType, Bucket] = field(
        default_factory=lambda: {t: Bucket() for t in TransactionType}
    )
    by_status: dict[TransactionStatus, Bucket] = field(
        default_factory=lambda: {s: Bucket() for s in TransactionStatus}
    )

    def as_dict(self) -> dict[str, object]:
        """Plain JSON-friendly mapping keyed by enum values."""
        data = asdict(self)
        data["by_type"] = {t.value: asdict(b) for t, b in self.by_type.items()}
        data["by_status"] = {s.value: asdict(b) for s, b in self.by_status.items()}
        return data


def compute_summary(transactions: Iterable[LedgerEntry]) -> TransactionSummary:
    """Fold transactions into count/amount buckets and income/expense totals."""

    summary = TransactionSummary()
    for txn in transactions:
        amount = txn.amount_in_cents
        summary.by_type[txn.type].add(amount)
        summary.by_status[txn.status].add(amount)

        if txn.type == TransactionType.INCOME:
            summary.total_income += amount
            if txn.status == TransactionStatus.PENDING:
                summary.pending_income += amount
        elif txn.type in EXPENSE_TYPES:
            summary.total_expenses += amount
            if txn.status == TransactionStatus.PENDING:
                summary.pending_expenses += amount

    summary.balance = summary.total_income - summary.total_expenses
    return summary


__all__ = ["Bucket", "TransactionSummary", "compute_summary"]
