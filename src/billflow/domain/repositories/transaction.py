"""Transaction repository protocol."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Protocol

from ...models.transaction import TransactionStatus, TransactionType
from ..entries import Installment, InstallmentPlan, StoredEntry


@dataclass(slots=True)
class TransactionQuery:
    """Predicate understood by ``find_many`` and ``count``.

    Date bounds are inclusive. ``order_by`` is one of ``date_desc``,
    ``due_date_asc`` or ``installment_number``.
    """

    user_id: int
    types: Optional[frozenset[TransactionType]] = None
    statuses: Optional[frozenset[TransactionStatus]] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    start_due_date: Optional[dt.date] = None
    end_due_date: Optional[dt.date] = None
    before_due_date: Optional[dt.date] = None
    parent_id: Optional[int] = None
    order_by: str = "date_desc"


class TransactionRepository(Protocol):
    """Repository for managing transaction entries."""

    def create(self, entry: StoredEntry) -> StoredEntry:
        """Persist a new entry and return it with its id assigned."""
        ...

    def create_many(self, entries: Iterable[StoredEntry]) -> None:
        """Persist several entries in one batch."""
        ...

    def create_plan(
        self,
        plan: InstallmentPlan,
        build_children: Callable[[InstallmentPlan], list[Installment]],
    ) -> InstallmentPlan:
        """Persist a plan and its children atomically.

        The parent is written first so ``build_children`` receives it with an id.
        """
        ...

    def get_by_id(self, transaction_id: int, *, user_id: int) -> Optional[StoredEntry]:
        """Retrieve an entry owned by ``user_id``."""
        ...

    def find_many(self, query: TransactionQuery) -> list[StoredEntry]:
        """Return all entries matching the query."""
        ...

    def update(self, entry: StoredEntry) -> StoredEntry:
        """Write back every field of an existing entry."""
        ...

    def count(self, query: TransactionQuery) -> int:
        """Count entries matching the query."""
        ...
