"""Typed transaction entries and request shapes used by the services.

The stored ``Transaction`` row carries every optional column for every type.
Services work with one dataclass per legal shape instead, so a plain expense
can never carry an installment number and a child installment always has a
parent id. Conversion to and from the stored row happens in the repository.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from ..errors import ValidationError
from ..models.transaction import RecurrencePattern, TransactionStatus, TransactionType


@dataclass(slots=True, kw_only=True)
class _EntryBase:
    """Fields shared by every transaction shape."""

    id: Optional[int] = None
    user_id: int
    amount_in_cents: int
    date: dt.date
    description: str = ""
    status: TransactionStatus = TransactionStatus.PENDING
    due_date: Optional[dt.date] = None
    date_occurred: Optional[dt.datetime] = None

    @property
    def is_virtual(self) -> bool:
        return False


@dataclass(slots=True, kw_only=True)
class PlainEntry(_EntryBase):
    """INCOME, EXPENSE or TRANSFER."""

    type: TransactionType = TransactionType.EXPENSE

    def __post_init__(self) -> None:
        if self.type in (TransactionType.INSTALLMENT, TransactionType.RECURRING):
            raise ValueError(f"PlainEntry cannot hold type {self.type.value}")


@dataclass(slots=True, kw_only=True)
class InstallmentPlan(_EntryBase):
    """Parent of an installment plan; holds the financed total."""

    total_installments: int

    @property
    def type(self) -> TransactionType:
        return TransactionType.INSTALLMENT


@dataclass(slots=True, kw_only=True)
class Installment(_EntryBase):
    """One payable parcel of an installment plan."""

    parent_id: int
    installment_number: int
    total_installments: int

    @property
    def type(self) -> TransactionType:
        return TransactionType.INSTALLMENT


@dataclass(slots=True, kw_only=True)
class RecurringEntry(_EntryBase):
    """A persisted recurring transaction and its cadence."""

    recurrence_pattern: RecurrencePattern
    next_occurrence: Optional[dt.date] = None

    @property
    def type(self) -> TransactionType:
        return TransactionType.RECURRING


@dataclass(slots=True, kw_only=True)
class VirtualOccurrence:
    """Projected future occurrence of a recurring entry. Never persisted."""

    id: str
    source_id: int
    user_id: int
    amount_in_cents: int
    date: dt.date
    description: str
    recurrence_pattern: RecurrencePattern
    status: TransactionStatus = TransactionStatus.PENDING
    due_date: Optional[dt.date] = None
    date_occurred: Optional[dt.datetime] = None

    @property
    def type(self) -> TransactionType:
        return TransactionType.RECURRING

    @property
    def is_virtual(self) -> bool:
        return True


StoredEntry = Union[PlainEntry, InstallmentPlan, Installment, RecurringEntry]
LedgerEntry = Union[StoredEntry, VirtualOccurrence]


# ---------------------------------------------------------------------------
# Request shapes
# ---------------------------------------------------------------------------


def _parse_enum(enum_cls, raw, field_name: str):
    try:
        return enum_cls.parse(raw)
    except ValueError as exc:
        raise ValidationError(str(exc), field=field_name) from None


def _parse_types(
    raw: "TransactionType | str | Iterable[TransactionType | str] | None",
) -> Optional[frozenset[TransactionType]]:
    """Normalize a type filter: a single value, a comma list or an iterable."""

    if raw is None:
        return None
    if isinstance(raw, TransactionType):
        return frozenset({raw})
    if isinstance(raw, str):
        parts = [part for part in (p.strip() for p in raw.split(",")) if part]
        return frozenset(_parse_enum(TransactionType, part, "type") for part in parts) or None
    return frozenset(_parse_enum(TransactionType, item, "type") for item in raw) or None


@dataclass(slots=True)
class CreateTransactionRequest:
    """Single user-facing creation request.

    For INSTALLMENT, ``amount_in_cents`` is the per-installment amount.
    """

    amount_in_cents: int
    date: dt.date
    description: str
    type: TransactionType
    due_date: Optional[dt.date] = None
    total_installments: Optional[int] = None
    recurrence_pattern: Optional[str] = None

    def __post_init__(self) -> None:
        self.type = _parse_enum(TransactionType, self.type, "type")


@dataclass(slots=True)
class StatusUpdate:
    status: TransactionStatus
    date_occurred: Optional[dt.datetime] = None

    def __post_init__(self) -> None:
        self.status = _parse_enum(TransactionStatus, self.status, "status")


@dataclass(slots=True)
class TransactionUpdate:
    """Partial update; ``None`` means "leave unchanged"."""

    amount_in_cents: Optional[int] = None
    date: Optional[dt.date] = None
    due_date: Optional[dt.date] = None
    description: Optional[str] = None
    type: Optional[TransactionType] = None
    status: Optional[TransactionStatus] = None
    total_installments: Optional[int] = None
    recurrence_pattern: Optional[str] = None

    def __post_init__(self) -> None:
        if self.type is not None:
            self.type = _parse_enum(TransactionType, self.type, "type")
        if self.status is not None:
            self.status = _parse_enum(TransactionStatus, self.status, "status")

    def supplied(self) -> dict[str, object]:
        """Return only the fields the caller actually set."""
        names = (
            "amount_in_cents", "date", "due_date", "description", "type",
            "status", "total_installments", "recurrence_pattern",
        )
        return {name: getattr(self, name) for name in names if getattr(self, name) is not None}


@dataclass(slots=True)
class TransactionFilters:
    """Filters applied to transaction listings."""

    type: "TransactionType | str | Iterable[TransactionType | str] | None" = None
    status: Optional[TransactionStatus] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    start_due_date: Optional[dt.date] = None
    end_due_date: Optional[dt.date] = None
    types: Optional[frozenset[TransactionType]] = field(init=False, default=None)

    def __post_init__(self) -> None:
        self.types = _parse_types(self.type)
        if self.status is not None:
            self.status = _parse_enum(TransactionStatus, self.status, "status")

    @property
    def has_date_range(self) -> bool:
        return self.start_date is not None or self.end_date is not None


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
