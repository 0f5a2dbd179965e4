"""Exception types raised by the transaction services."""

from __future__ import annotations

from typing import Optional


class BillflowError(Exception):
    """Base class for all errors raised by billflow."""


class ValidationError(BillflowError, ValueError):
    """A create/update request is malformed or inconsistent with its type."""

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def __str__(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class NotFoundError(BillflowError, LookupError):
    """The transaction does not exist or belongs to another user."""

    def __init__(self, transaction_id: object, *, kind: str = "Transaction"):
        super().__init__(f"{kind} {transaction_id} not found")
        self.transaction_id = transaction_id


class RepositoryError(BillflowError, RuntimeError):
    """Underlying storage failure; never retried."""


__all__ = ["BillflowError", "NotFoundError", "RepositoryError", "ValidationError"]
