"""SQLModel table exports."""

from .transaction import RecurrencePattern, Transaction, TransactionStatus, TransactionType

__all__ = [
    "RecurrencePattern",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
]
