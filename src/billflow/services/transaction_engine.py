"""Transaction lifecycle: creation, status transitions, listings and summaries."""

from __future__ import annotations

import datetime as dt
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Callable, Iterable, Iterator, Optional

from ..domain.entries import (
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
)
from ..domain.repositories.transaction import TransactionQuery, TransactionRepository
from ..errors import NotFoundError, ValidationError
from ..logging_config import get_logger
from ..models.transaction import TransactionStatus, TransactionType, as_utc, utc_now
from . import type_policy
from .installments import build_plan, expand_installments
from .recurrence import next_occurrence, occurrence_after, project_occurrences
from .summary import TransactionSummary, compute_summary

logger = get_logger("services.transaction_engine")

DUE_TYPES = frozenset({TransactionType.EXPENSE, TransactionType.INSTALLMENT})
PLAN_LOCK_STRIPES = 64


# ---------------------------------------------------------------------------
# Installment visibility
# ---------------------------------------------------------------------------


def hide_installment_plans(entries: Iterable[LedgerEntry]) -> list[LedgerEntry]:
    """Drop plan parents; only the payable children are line items."""

    return [entry for entry in entries if not isinstance(entry, InstallmentPlan)]


def visible_in_range(
    entries: Iterable[LedgerEntry],
    start: Optional[dt.date],
    end: Optional[dt.date],
) -> list[LedgerEntry]:
    """Hide plans and keep children whose own date lies in ``[start, end]``."""

    visible: list[LedgerEntry] = []
    for entry in hide_installment_plans(entries):
        if isinstance(entry, Installment):
            if start is not None and entry.date < start:
                continue
            if end is not None and entry.date > end:
                continue
        visible.append(entry)
    return visible


def visible_in_month(entries: Iterable[LedgerEntry], today: dt.date) -> list[LedgerEntry]:
    """Hide plans and keep only children dated in the month of ``today``."""

    return [
        entry
        for entry in hide_installment_plans(entries)
        if not isinstance(entry, Installment)
        or (entry.date.year, entry.date.month) == (today.year, today.month)
    ]


class TransactionEngine:
    """Orchestrates the type policy, installment expansion and recurrence.

    The repository is the only state; the engine caches nothing between calls.
    ``clock`` returns the current datetime and exists so callers can pin
    "today". Naive values from the clock are taken as UTC.
    """

    def __init__(
        self,
        repository: TransactionRepository,
        *,
        clock: Callable[[], dt.datetime] = utc_now,
    ):
        self.repository = repository
        self._clock = clock
        self._plan_locks = tuple(threading.Lock() for _ in range(PLAN_LOCK_STRIPES))

    # -- helpers -----------------------------------------------------------

    def _now(self) -> dt.datetime:
        return as_utc(self._clock())

    def _today(self) -> dt.date:
        return self._now().date()

    def _load(self, transaction_id: int, user_id: int) -> StoredEntry:
        entry = self.repository.get_by_id(transaction_id, user_id=user_id)
        if entry is None:
            raise NotFoundError(transaction_id)
        return entry

    @contextmanager
    def _plan_lock(self, plan_id: int) -> Iterator[None]:
        """Serialize read-modify-write on one installment plan.

        Plan ids map onto a fixed tuple of striped locks.
        """
        with self._plan_locks[plan_id % PLAN_LOCK_STRIPES]:
            yield

    # -- create ------------------------------------------------------------

    def create(self, request: CreateTransactionRequest, *, user_id: int) -> StoredEntry:
        """Create one plain row, one recurring row or an installment plan.

        For installments the returned entry is the plan parent.
        """

        type_policy.validate_create(
            request.type,
            amount_in_cents=request.amount_in_cents,
            total_installments=request.total_installments,
            recurrence_pattern=request.recurrence_pattern,
        )

        if request.type == TransactionType.INSTALLMENT:
            return self._create_installment_plan(request, user_id)
        if request.type == TransactionType.RECURRING:
            return self._create_recurring(request, user_id)

        status = type_policy.default_status(request.type)
        entry = PlainEntry(
            user_id=user_id,
            amount_in_cents=request.amount_in_cents,
            date=request.date,
            due_date=request.due_date,
            description=request.description,
            type=request.type,
            status=status,
            date_occurred=self._now() if type_policy.is_finalizing(status) else None,
        )
        created = self.repository.create(entry)
        logger.info(
            "Transaction created",
            extra={"transaction_id": created.id, "type": created.type.value, "user_id": user_id},
        )
        return created

    def _create_installment_plan(
        self, request: CreateTransactionRequest, user_id: int
    ) -> InstallmentPlan:
        count = request.total_installments
        plan = build_plan(
            user_id=user_id,
            per_installment=request.amount_in_cents,
            count=count,
            start=request.date,
            description=request.description,
            due_date=request.due_date,
        )
        saved = self.repository.create_plan(
            plan,
            lambda parent: expand_installments(
                parent,
                per_installment=request.amount_in_cents,
                description=request.description,
            ),
        )
        logger.info(
            "Installment plan created",
            extra={
                "transaction_id": saved.id,
                "installments": count,
                "total_in_cents": saved.amount_in_cents,
                "user_id": user_id,
            },
        )
        return saved

    def _create_recurring(self, request: CreateTransactionRequest, user_id: int) -> RecurringEntry:
        pattern = type_policy.parse_pattern(request.recurrence_pattern)
        entry = RecurringEntry(
            user_id=user_id,
            amount_in_cents=request.amount_in_cents,
            date=request.date,
            due_date=request.due_date,
            description=request.description,
            status=TransactionStatus.PENDING,
            recurrence_pattern=pattern,
            next_occurrence=next_occurrence(request.date, pattern),
        )
        created = self.repository.create(entry)
        logger.info(
            "Recurring transaction created",
            extra={"transaction_id": created.id, "pattern": pattern.value, "user_id": user_id},
        )
        return created

    # -- read --------------------------------------------------------------

    def get(self, transaction_id: int, *, user_id: int) -> StoredEntry:
        """Return one transaction owned by ``user_id``."""

        return self._load(transaction_id, user_id)

    def get_installment_plan(self, plan_id: int, *, user_id: int) -> InstallmentPlan:
        """Return a plan parent; children are rejected."""

        entry = self.repository.get_by_id(plan_id, user_id=user_id)
        if entry is None or entry.type != TransactionType.INSTALLMENT:
            raise NotFoundError(plan_id, kind="Installment plan")
        if not isinstance(entry, InstallmentPlan):
            raise ValidationError(
                "This is a single installment, not an installment plan", field="id"
            )
        return entry

    def list_installments(self, plan_id: int, *, user_id: int) -> list[Installment]:
        """Return the children of a plan ordered by installment number."""

        plan = self.get_installment_plan(plan_id, user_id=user_id)
        return self.repository.find_many(
            TransactionQuery(user_id=user_id, parent_id=plan.id, order_by="installment_number")
        )

    def list_transactions(
        self, *, user_id: int, filters: Optional[TransactionFilters] = None
    ) -> list[LedgerEntry]:
        """List a user's transactions, newest first.

        Plan parents are never listed. With a date range, children are kept
        when their own date is inside it; without one, only children dated in
        the current month are kept. When the type filter names RECURRING and a
        start date is given, virtual occurrences fill the window.
        """

        filters = filters or TransactionFilters()
        query = TransactionQuery(
            user_id=user_id,
            types=filters.types,
            statuses=frozenset({filters.status}) if filters.status else None,
            start_date=filters.start_date,
            end_date=filters.end_date,
            start_due_date=filters.start_due_date,
            end_due_date=filters.end_due_date,
        )
        rows = self.repository.find_many(query)

        if filters.has_date_range:
            entries = visible_in_range(rows, filters.start_date, filters.end_date)
        else:
            entries = visible_in_month(rows, self._today())

        if self._wants_projection(filters):
            entries.extend(self._project_recurring(user_id, filters))
            entries.sort(key=lambda entry: entry.date, reverse=True)
        return entries

    @staticmethod
    def _wants_projection(filters: TransactionFilters) -> bool:
        if filters.types is None or TransactionType.RECURRING not in filters.types:
            return False
        if filters.start_date is None:
            return False
        # Virtual rows have no due date and are always pending.
        if filters.start_due_date is not None or filters.end_due_date is not None:
            return False
        return filters.status in (None, TransactionStatus.PENDING)

    def _project_recurring(self, user_id: int, filters: TransactionFilters) -> list[LedgerEntry]:
        recurring = self.repository.find_many(
            TransactionQuery(user_id=user_id, types=frozenset({TransactionType.RECURRING}))
        )
        return project_occurrences(
            recurring,
            existing=recurring,
            start=filters.start_date,
            end=filters.end_date,
            today=self._today(),
        )

    def overdue(self, *, user_id: int) -> list[LedgerEntry]:
        """Pending expenses and installments whose due date has passed."""

        rows = self.repository.find_many(
            TransactionQuery(
                user_id=user_id,
                types=DUE_TYPES,
                statuses=frozenset({TransactionStatus.PENDING}),
                before_due_date=self._today(),
                order_by="due_date_asc",
            )
        )
        return hide_installment_plans(rows)

    def upcoming_due(self, *, user_id: int, days_ahead: int = 7) -> list[LedgerEntry]:
        """Pending expenses and installments due within ``days_ahead`` days."""

        if days_ahead < 0:
            raise ValidationError("days_ahead must not be negative", field="days_ahead")
        today = self._today()
        rows = self.repository.find_many(
            TransactionQuery(
                user_id=user_id,
                types=DUE_TYPES,
                statuses=frozenset({TransactionStatus.PENDING}),
                start_due_date=today,
                end_due_date=today + dt.timedelta(days=days_ahead),
                order_by="due_date_asc",
            )
        )
        return hide_installment_plans(rows)

    def summary(
        self,
        *,
        user_id: int,
        start_date: Optional[dt.date] = None,
        end_date: Optional[dt.date] = None,
    ) -> TransactionSummary:
        """Roll up the same rows ``list_transactions`` shows for the period."""

        entries = self.list_transactions(
            user_id=user_id,
            filters=TransactionFilters(start_date=start_date, end_date=end_date),
        )
        return compute_summary(entries)

    # -- status ------------------------------------------------------------

    def update_status(
        self, transaction_id: int, *, user_id: int, update: StatusUpdate
    ) -> StoredEntry:
        """Move a transaction to a new status legal for its type."""

        entry = self._load(transaction_id, user_id)
        type_policy.validate_status(entry.type, update.status)
        changed = self._transition(entry, update.status, update.date_occurred)
        return self._persist(changed)

    def _transition(
        self,
        entry: StoredEntry,
        status: TransactionStatus,
        date_occurred: Optional[dt.datetime] = None,
    ) -> StoredEntry:
        """Apply a status change and its per-type side effects (unsaved)."""

        if type_policy.is_finalizing(status):
            occurred = as_utc(date_occurred) or self._now()
        else:
            occurred = None
        changed = replace(entry, status=status, date_occurred=occurred)
        if isinstance(changed, RecurringEntry) and status == TransactionStatus.COMPLETED:
            # Counted from the original date so month-end entries do not drift.
            upcoming = occurrence_after(
                changed.date,
                changed.recurrence_pattern,
                changed.next_occurrence or changed.date,
            )
            changed = replace(changed, next_occurrence=upcoming)
        return changed

    def _persist(self, entry: StoredEntry) -> StoredEntry:
        if not isinstance(entry, Installment):
            saved = self.repository.update(entry)
            logger.info(
                "Transaction updated",
                extra={"transaction_id": saved.id, "status": saved.status.value},
            )
            return saved

        with self._plan_lock(entry.parent_id):
            saved = self.repository.update(entry)
            logger.info(
                "Installment updated",
                extra={"transaction_id": saved.id, "status": saved.status.value},
            )
            if saved.status == TransactionStatus.PAID:
                self._settle_installment_plan(saved)
        return saved

    def _settle_installment_plan(self, child: Installment) -> bool:
        """Mark the plan PAID once every child is PAID. Caller holds the plan lock."""

        siblings = self.repository.find_many(
            TransactionQuery(
                user_id=child.user_id,
                parent_id=child.parent_id,
                order_by="installment_number",
            )
        )
        if not siblings or any(s.status != TransactionStatus.PAID for s in siblings):
            return False

        plan = self.repository.get_by_id(child.parent_id, user_id=child.user_id)
        if plan is None:
            logger.warning("Installment has no plan", extra={"transaction_id": child.id})
            return False
        if plan.status == TransactionStatus.PAID:
            return False

        self.repository.update(replace(plan, status=TransactionStatus.PAID, date_occurred=self._now()))
        logger.info(
            "Installment plan settled",
            extra={"transaction_id": plan.id, "installments": len(siblings)},
        )
        return True

    # -- update ------------------------------------------------------------

    def update(
        self, transaction_id: int, *, user_id: int, changes: TransactionUpdate
    ) -> StoredEntry:
        """Apply a partial update, re-validating against the resulting type."""

        entry = self._load(transaction_id, user_id)
        fields = changes.supplied()
        if not fields:
            return entry

        new_type: TransactionType = fields.get("type", entry.type)
        is_installment = isinstance(entry, (InstallmentPlan, Installment))

        if is_installment:
            for name in ("amount_in_cents", "total_installments", "type"):
                if name in fields and fields[name] != getattr(entry, name):
                    raise ValidationError(
                        "Installment transactions cannot change their amount, "
                        "installment count or type",
                        field=name,
                    )
        elif new_type == TransactionType.INSTALLMENT:
            raise ValidationError(
                "Create an installment plan instead of converting a transaction",
                field="type",
            )
        elif "total_installments" in fields:
            raise ValidationError(
                "Only installment plans carry an installment count",
                field="total_installments",
            )

        if "recurrence_pattern" in fields and new_type != TransactionType.RECURRING:
            raise ValidationError(
                "Only recurring transactions have a recurrence pattern",
                field="recurrence_pattern",
            )

        pattern = fields.get("recurrence_pattern")
        if pattern is None and isinstance(entry, RecurringEntry):
            pattern = entry.recurrence_pattern
        type_policy.validate_create(
            new_type,
            amount_in_cents=fields.get("amount_in_cents", entry.amount_in_cents),
            total_installments=fields.get(
                "total_installments", getattr(entry, "total_installments", None)
            ),
            recurrence_pattern=pattern,
        )

        status: TransactionStatus = fields.get("status", entry.status)
        type_policy.validate_status(new_type, status)

        changed = self._rebuild(entry, new_type, fields)
        if status != entry.status:
            changed = self._transition(changed, status)
        return self._persist(changed)

    def _rebuild(
        self, entry: StoredEntry, new_type: TransactionType, fields: dict[str, object]
    ) -> StoredEntry:
        """Return ``entry`` with the supplied common fields, reshaped for ``new_type``."""

        common = {
            name: fields[name]
            for name in ("amount_in_cents", "date", "due_date", "description")
            if name in fields
        }
        if isinstance(entry, (InstallmentPlan, Installment)):
            return replace(entry, **common)

        base = dict(
            id=entry.id,
            user_id=entry.user_id,
            amount_in_cents=entry.amount_in_cents,
            date=entry.date,
            description=entry.description,
            status=entry.status,
            due_date=entry.due_date,
            date_occurred=entry.date_occurred,
        )
        base.update(common)

        if new_type != TransactionType.RECURRING:
            return PlainEntry(type=new_type, **base)

        previous = entry if isinstance(entry, RecurringEntry) else None
        pattern = type_policy.parse_pattern(
            fields.get("recurrence_pattern") or (previous.recurrence_pattern if previous else None)
        )
        reschedule = (
            previous is None
            or pattern != previous.recurrence_pattern
            or "date" in fields
        )
        upcoming = next_occurrence(base["date"], pattern) if reschedule else previous.next_occurrence
        return RecurringEntry(recurrence_pattern=pattern, next_occurrence=upcoming, **base)


__all__ = [
    "TransactionEngine",
    "hide_installment_plans",
    "visible_in_month",
    "visible_in_range",
]
