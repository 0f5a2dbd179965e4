"""Per-type validation rules and status tables. Pure, no I/O."""

from __future__ import annotations

from typing import Optional

from ..errors import ValidationError
from ..models.transaction import RecurrencePattern, TransactionStatus, TransactionType

_S = TransactionStatus

_VALID_STATUSES: dict[TransactionType, tuple[TransactionStatus, ...]] = {
    TransactionType.INCOME: (_S.PENDING, _S.RECEIVED, _S.CANCELLED),
    TransactionType.EXPENSE: (_S.PENDING, _S.PAID, _S.CANCELLED),
    TransactionType.INSTALLMENT: (_S.PENDING, _S.PAID, _S.CANCELLED),
    TransactionType.RECURRING: (_S.PENDING, _S.COMPLETED, _S.CANCELLED),
    TransactionType.TRANSFER: (_S.PENDING, _S.COMPLETED, _S.CANCELLED),
}
_FALLBACK_STATUSES = (_S.PENDING, _S.CANCELLED)
_FINALIZING = frozenset({_S.PAID, _S.RECEIVED, _S.COMPLETED})

MIN_INSTALLMENTS = 2


def valid_statuses(txn_type: TransactionType | str) -> tuple[TransactionStatus, ...]:
    """Return the statuses a transaction of this type may hold, in display order."""

    try:
        parsed = TransactionType.parse(txn_type)
    except ValueError:
        return _FALLBACK_STATUSES
    return _VALID_STATUSES.get(parsed, _FALLBACK_STATUSES)


def default_status(txn_type: TransactionType) -> TransactionStatus:
    """Transfers are instantaneous; everything else starts pending."""

    if txn_type == TransactionType.TRANSFER:
        return _S.COMPLETED
    return _S.PENDING


def is_finalizing(status: TransactionStatus) -> bool:
    return status in _FINALIZING


def validate_status(txn_type: TransactionType, status: TransactionStatus) -> None:
    """Raise ValidationError unless ``status`` is legal for ``txn_type``."""

    allowed = valid_statuses(txn_type)
    if status not in allowed:
        names = ", ".join(s.value for s in allowed)
        raise ValidationError(
            f"Status '{status.value}' is not valid for transaction type "
            f"'{txn_type.value}'. Valid statuses: {names}",
            field="status",
        )


def parse_pattern(raw: Optional[str | RecurrencePattern]) -> RecurrencePattern:
    """Return the canonical pattern or raise ValidationError."""

    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise ValidationError(
            "Recurring transactions must have a recurrence pattern",
            field="recurrence_pattern",
        )
    try:
        return RecurrencePattern.parse(raw)
    except ValueError:
        allowed = ", ".join(p.value for p in RecurrencePattern)
        raise ValidationError(
            f"Invalid recurrence pattern {raw!r}; expected one of: {allowed}",
            field="recurrence_pattern",
        ) from None


def validate_create(
    txn_type: TransactionType,
    *,
    amount_in_cents: int,
    total_installments: Optional[int] = None,
    recurrence_pattern: Optional[str | RecurrencePattern] = None,
) -> None:
    """Check a creation request (or a synthesized record) against its type's rules."""

    if isinstance(amount_in_cents, bool) or not isinstance(amount_in_cents, int):
        raise ValidationError("Amount must be an integer number of cents", field="amount_in_cents")
    if amount_in_cents <= 0:
        raise ValidationError("Amount must be greater than 0", field="amount_in_cents")

    if txn_type == TransactionType.INCOME:
        if total_installments:
            raise ValidationError(
                "Income transactions cannot have installments", field="total_installments"
            )
    elif txn_type == TransactionType.INSTALLMENT:
        if not total_installments or total_installments < MIN_INSTALLMENTS:
            raise ValidationError(
                f"Installment transactions must have at least {MIN_INSTALLMENTS} installments",
                field="total_installments",
            )
    elif txn_type == TransactionType.RECURRING:
        parse_pattern(recurrence_pattern)
    # EXPENSE and TRANSFER carry no extra constraint.


__all__ = [
    "MIN_INSTALLMENTS",
    "default_status",
    "is_finalizing",
    "parse_pattern",
    "valid_statuses",
    "validate_create",
    "validate_status",
]
