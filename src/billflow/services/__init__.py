"""Service module exports."""

from . import installments, recurrence, summary, transaction_engine, type_policy
from .transaction_engine import TransactionEngine

__all__ = [
    "TransactionEngine",
    "installments",
    "recurrence",
    "summary",
    "transaction_engine",
    "type_policy",
]
