"""Domain entries and repository contracts."""

from .entries import (
    CreateTransactionRequest,
    Installment,
    InstallmentPlan,
    LedgerEntry,
    PlainEntry,
    RecurringEntry,
    StatusUpdate,
    StoredEntry,
    TransactionFilters,
    TransactionUpdate,
    VirtualOccurrence,
)

__all__ = [
    "CreateTransactionRequest",
    "Installment",
    "InstallmentPlan",
    "LedgerEntry",
    "PlainEntry",
    "RecurringEntry",
    "StatusUpdate",
    "StoredEntry",
    "TransactionFilters",
    "TransactionUpdate",
    "VirtualOccurrence",
]
