"""SQLModel definitions for stored transactions."""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def as_utc(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


class TransactionType(str, Enum):
    """Closed set of transaction kinds."""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"
    RECURRING = "RECURRING"
    INSTALLMENT = "INSTALLMENT"

    @classmethod
    def parse(cls, raw: "str | TransactionType") -> "TransactionType":
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown transaction type: {raw!r}") from None


class TransactionStatus(str, Enum):
    """Lifecycle states; which ones apply depends on the type."""

    PENDING = "PENDING"
    PAID = "PAID"
    RECEIVED = "RECEIVED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @classmethod
    def parse(cls, raw: "str | TransactionStatus") -> "TransactionStatus":
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown transaction status: {raw!r}") from None


class RecurrencePattern(str, Enum):
    """Cadence of a recurring transaction. Lowercase is canonical."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @classmethod
    def parse(cls, raw: "str | RecurrencePattern") -> "RecurrencePattern":
        """Accept any casing ("MONTHLY", "Monthly", "monthly")."""
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown recurrence pattern: {raw!r}") from None


class Transaction(SQLModel, table=True):
    """Flat stored row shared by every transaction type.

    Installment and recurrence columns are only populated for the matching
    type; the domain layer works with typed entries instead of this row.
    """

    __tablename__: ClassVar[str] = "transaction"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(nullable=False, index=True)
    amount_in_cents: int = Field(nullable=False, description="Integer minor units (cents)")
    date: dt.date = Field(nullable=False, index=True)
    due_date: Optional[dt.date] = Field(default=None, index=True)
    description: str = Field(default="", max_length=255)
    type: TransactionType = Field(nullable=False, index=True)
    status: TransactionStatus = Field(default=TransactionStatus.PENDING, nullable=False, index=True)
    date_occurred: Optional[dt.datetime] = Field(default=None)

    # Installment rows only
    installment_number: Optional[int] = Field(default=None)
    total_installments: Optional[int] = Field(default=None)
    parent_transaction_id: Optional[int] = Field(
        default=None, foreign_key="transaction.id", index=True
    )

    # Recurring rows only
    recurrence_pattern: Optional[RecurrencePattern] = Field(default=None)
    next_occurrence: Optional[dt.date] = Field(default=None)

    created_at: dt.datetime = Field(
        default_factory=utc_now,
        nullable=False,
    )
    updated_at: Optional[dt.datetime] = Field(default=None)
