"""Recurrence date arithmetic and read-time projection of recurring entries."""

from __future__ import annotations

import datetime as dt
from calendar import monthrange
from typing import Iterable, Optional

from ..domain.entries import RecurringEntry, VirtualOccurrence
from ..logging_config import get_logger
from ..models.transaction import RecurrencePattern, TransactionStatus

logger = get_logger("services.recurrence")

# Per-source, per-call limit on generated dates; a weekly entry over one year needs 53.
MAX_OCCURRENCES_PER_SOURCE = 5000


def add_months(value: dt.date, months: int) -> dt.date:
    """Add ``months`` calendar months, clamping the day to the target month's end.

    ``add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)``
    """

    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def add_years(value: dt.date, years: int) -> dt.date:
    """Add whole years; Feb 29 lands on Feb 28 in non-leap years."""

    return add_months(value, 12 * years)


def _coerce_pattern(pattern: RecurrencePattern | str) -> Optional[RecurrencePattern]:
    try:
        return RecurrencePattern.parse(pattern)
    except ValueError:
        return None


def nth_occurrence(anchor: dt.date, pattern: RecurrencePattern | str, n: int) -> dt.date:
    """Return the ``n``-th occurrence after ``anchor`` (``n == 0`` is the anchor).

    Counted from the anchor so month-end dates do not drift: a monthly entry on
    Jan 31 falls on Feb 29, Mar 31, Apr 30 rather than settling on the 29th.
    Unknown patterns return the anchor unchanged.
    """

    parsed = _coerce_pattern(pattern)
    if parsed is None:
        logger.warning("Unknown recurrence pattern; date left unchanged", extra={"pattern": pattern})
        return anchor
    if parsed == RecurrencePattern.WEEKLY:
        return anchor + dt.timedelta(days=7 * n)
    if parsed == RecurrencePattern.MONTHLY:
        return add_months(anchor, n)
    return add_years(anchor, n)


def next_occurrence(value: dt.date, pattern: RecurrencePattern | str) -> dt.date:
    """Weekly adds 7 days, monthly one calendar month, yearly one year."""

    return nth_occurrence(value, pattern, 1)


def _index_lower_bound(anchor: dt.date, pattern: RecurrencePattern, target: dt.date) -> int:
    """Smallest safe index for a scan towards ``target``.

    Every occurrence with an index below the result (and at least 1) is
    earlier than ``target``.
    """

    if target <= anchor:
        return 1
    if pattern == RecurrencePattern.WEEKLY:
        n = (target - anchor).days // 7
    elif pattern == RecurrencePattern.MONTHLY:
        n = (target.year - anchor.year) * 12 + target.month - anchor.month - 1
    else:
        n = target.year - anchor.year - 1
    return max(1, n)


def occurrence_after(
    anchor: dt.date, pattern: RecurrencePattern | str, after: dt.date
) -> dt.date:
    """Return the first occurrence of the ``anchor`` series strictly after ``after``.

    ``occurrence_after(date(2024, 1, 31), "monthly", date(2024, 2, 29))``
    is ``date(2024, 3, 31)``.
    """

    parsed = _coerce_pattern(pattern)
    if parsed is None:
        return nth_occurrence(anchor, pattern, 1)
    n = _index_lower_bound(anchor, parsed, after)
    occurrence = nth_occurrence(anchor, parsed, n)
    while occurrence <= after:
        n += 1
        occurrence = nth_occurrence(anchor, parsed, n)
    return occurrence


def occurrence_epoch_millis(value: dt.date) -> int:
    """Milliseconds since the epoch at UTC midnight of ``value``."""

    midnight = dt.datetime(value.year, value.month, value.day, tzinfo=dt.timezone.utc)
    return int(midnight.timestamp() * 1000)


def virtual_id(source_id: int, occurrence: dt.date) -> str:
    return f"{source_id}_{occurrence_epoch_millis(occurrence)}"


def project_occurrences(
    sources: Iterable[RecurringEntry],
    *,
    existing: Iterable[RecurringEntry],
    start: dt.date,
    end: Optional[dt.date],
    today: dt.date,
) -> list[VirtualOccurrence]:
    """Fill the ``[start, end]`` window with virtual occurrences of each source.

    Cancelled sources are skipped. An occurrence is suppressed when a persisted
    recurring entry of the same user already has the same date, description
    and amount. Without ``end`` the window closes one year after ``today``.
    """

    horizon = end if end is not None else add_years(today, 1)
    materialized = {
        (entry.user_id, entry.date, entry.description, entry.amount_in_cents)
        for entry in existing
    }

    projected: list[VirtualOccurrence] = []
    for source in sources:
        if source.id is None or source.status == TransactionStatus.CANCELLED:
            continue
        pattern = _coerce_pattern(source.recurrence_pattern)
        if pattern is None:
            continue

        n = _index_lower_bound(source.date, pattern, start)
        for _step in range(MAX_OCCURRENCES_PER_SOURCE):
            occurrence = nth_occurrence(source.date, pattern, n)
            n += 1
            if occurrence > horizon:
                break
            if occurrence < start:
                continue
            key = (source.user_id, occurrence, source.description, source.amount_in_cents)
            if key in materialized:
                continue
            projected.append(
                VirtualOccurrence(
                    id=virtual_id(source.id, occurrence),
                    source_id=source.id,
                    user_id=source.user_id,
                    amount_in_cents=source.amount_in_cents,
                    date=occurrence,
                    description=source.description,
                    recurrence_pattern=pattern,
                )
            )
        else:
            logger.warning(
                "Projection stopped at the occurrence cap",
                extra={"source_id": source.id, "cap": MAX_OCCURRENCES_PER_SOURCE},
            )

    logger.debug(
        "Projected recurring occurrences",
        extra={"count": len(projected), "start": start, "end": horizon},
    )
    return projected


__all__ = [
    "add_months",
    "add_years",
    "next_occurrence",
    "nth_occurrence",
    "occurrence_after",
    "occurrence_epoch_millis",
    "project_occurrences",
    "virtual_id",
]
