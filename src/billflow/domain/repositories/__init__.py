"""Repository protocol definitions for domain layer."""

from .transaction import TransactionQuery, TransactionRepository

__all__ = ["TransactionQuery", "TransactionRepository"]
