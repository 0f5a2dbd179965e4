"""SQLModel implementation of the transaction repository."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from typing import Callable, Iterable, Iterator, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from ...domain.entries import (
    Installment,
    InstallmentPlan,
    PlainEntry,
    RecurringEntry,
    StoredEntry,
)
from ...domain.repositories.transaction import TransactionQuery
from ...errors import NotFoundError, RepositoryError
from ...logging_config import get_logger
from ...models.transaction import Transaction, TransactionType, as_utc, utc_now

logger = get_logger("infra.repositories.transaction")


def to_entry(row: Transaction) -> StoredEntry:
    """Convert a stored row into the matching typed entry."""

    common = dict(
        id=row.id,
        user_id=row.user_id,
        amount_in_cents=row.amount_in_cents,
        date=row.date,
        description=row.description,
        status=row.status,
        due_date=row.due_date,
        date_occurred=as_utc(row.date_occurred),
    )
    if row.type == TransactionType.INSTALLMENT:
        if row.parent_transaction_id is None:
            return InstallmentPlan(total_installments=row.total_installments or 0, **common)
        return Installment(
            parent_id=row.parent_transaction_id,
            installment_number=row.installment_number or 0,
            total_installments=row.total_installments or 0,
            **common,
        )
    if row.type == TransactionType.RECURRING:
        return RecurringEntry(
            recurrence_pattern=row.recurrence_pattern,
            next_occurrence=row.next_occurrence,
            **common,
        )
    return PlainEntry(type=row.type, **common)


def _apply(row: Transaction, entry: StoredEntry) -> Transaction:
    """Copy every entry field onto ``row``, clearing columns the shape lacks."""

    row.user_id = entry.user_id
    row.amount_in_cents = entry.amount_in_cents
    row.date = entry.date
    row.due_date = entry.due_date
    row.description = entry.description
    row.type = entry.type
    row.status = entry.status
    row.date_occurred = as_utc(entry.date_occurred)
    row.installment_number = None
    row.total_installments = None
    row.parent_transaction_id = None
    row.recurrence_pattern = None
    row.next_occurrence = None

    if isinstance(entry, InstallmentPlan):
        row.total_installments = entry.total_installments
    elif isinstance(entry, Installment):
        row.installment_number = entry.installment_number
        row.total_installments = entry.total_installments
        row.parent_transaction_id = entry.parent_id
    elif isinstance(entry, RecurringEntry):
        row.recurrence_pattern = entry.recurrence_pattern
        row.next_occurrence = entry.next_occurrence
    return row


def to_row(entry: StoredEntry) -> Transaction:
    """Convert a typed entry into a new stored row."""

    row = Transaction(
        user_id=entry.user_id,
        amount_in_cents=entry.amount_in_cents,
        date=entry.date,
        type=entry.type,
    )
    return _apply(row, entry)


class SQLModelTransactionRepository:
    """SQLModel-based transaction repository implementation."""

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        """Open a session, re-raising storage failures as RepositoryError."""
        try:
            with self.session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Repository %s failed", operation, exc_info=True)
            raise RepositoryError(f"Transaction repository {operation} failed: {exc}") from exc

    def create(self, entry: StoredEntry) -> StoredEntry:
        """Persist a new entry and return it with its id assigned."""
        with self._session("create") as session:
            row = to_row(entry)
            session.add(row)
            session.commit()
            session.refresh(row)
            return to_entry(row)

    def create_many(self, entries: Iterable[StoredEntry]) -> None:
        """Persist several entries in one batch."""
        with self._session("create_many") as session:
            session.add_all([to_row(entry) for entry in entries])
            session.commit()

    def create_plan(
        self,
        plan: InstallmentPlan,
        build_children: Callable[[InstallmentPlan], list[Installment]],
    ) -> InstallmentPlan:
        """Persist a plan and its children in one database transaction."""
        with self._session("create_plan") as session:
            parent_row = to_row(plan)
            session.add(parent_row)
            # Flush assigns the parent id without committing.
            session.flush()
            saved_plan = replace(plan, id=parent_row.id)
            children = build_children(saved_plan)
            session.add_all([to_row(child) for child in children])
            session.commit()
            logger.debug(
                "Installment plan persisted",
                extra={"plan_id": saved_plan.id, "children": len(children)},
            )
            return saved_plan

    def get_by_id(self, transaction_id: int, *, user_id: int) -> Optional[StoredEntry]:
        """Retrieve an entry owned by ``user_id``."""
        with self._session("get_by_id") as session:
            row = session.exec(
                select(Transaction)
                .where(Transaction.id == transaction_id)
                .where(Transaction.user_id == user_id)
            ).first()
            return to_entry(row) if row else None

    def find_many(self, query: TransactionQuery) -> list[StoredEntry]:
        """Return all entries matching the query."""
        with self._session("find_many") as session:
            statement = self._filtered(select(Transaction), query)
            statement = self._ordered(statement, query.order_by)
            return [to_entry(row) for row in session.exec(statement).all()]

    def update(self, entry: StoredEntry) -> StoredEntry:
        """Write back every field of an existing entry."""
        if entry.id is None:
            raise ValueError("Cannot update an entry that has not been saved")
        with self._session("update") as session:
            row = session.exec(
                select(Transaction)
                .where(Transaction.id == entry.id)
                .where(Transaction.user_id == entry.user_id)
            ).first()
            if row is None:
                raise NotFoundError(entry.id)
            _apply(row, entry)
            row.updated_at = utc_now()
            session.add(row)
            session.commit()
            session.refresh(row)
            return to_entry(row)

    def count(self, query: TransactionQuery) -> int:
        """Count entries matching the query."""
        with self._session("count") as session:
            statement = self._filtered(select(func.count()).select_from(Transaction), query)
            return int(session.exec(statement).one())

    @staticmethod
    def _filtered(statement, query: TransactionQuery):
        statement = statement.where(Transaction.user_id == query.user_id)
        if query.types:
            statement = statement.where(col(Transaction.type).in_(sorted(query.types)))
        if query.statuses:
            statement = statement.where(col(Transaction.status).in_(sorted(query.statuses)))
        if query.start_date:
            statement = statement.where(Transaction.date >= query.start_date)
        if query.end_date:
            statement = statement.where(Transaction.date <= query.end_date)
        if query.start_due_date:
            statement = statement.where(Transaction.due_date >= query.start_due_date)
        if query.end_due_date:
            statement = statement.where(Transaction.due_date <= query.end_due_date)
        if query.before_due_date:
            statement = statement.where(Transaction.due_date < query.before_due_date)
        if query.parent_id is not None:
            statement = statement.where(Transaction.parent_transaction_id == query.parent_id)
        return statement

    @staticmethod
    def _ordered(statement, order_by: str):
        if order_by == "due_date_asc":
            return statement.order_by(col(Transaction.due_date).asc(), col(Transaction.id).asc())
        if order_by == "installment_number":
            return statement.order_by(col(Transaction.installment_number).asc())
        if order_by == "date_desc":
            return statement.order_by(col(Transaction.date).desc(), col(Transaction.id).desc())
        raise ValueError(f"Unsupported ordering: {order_by}")
