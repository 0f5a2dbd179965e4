"""Pytest configuration and shared fixtures for billflow tests.

Provides an isolated SQLite database per test, a session factory matching the
repository contract, and an engine pinned to a fixed clock so month-relative
behaviour (current-month installments, overdue checks) is deterministic.
"""

from __future__ import annotations

import tempfile
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path

import pytest
from sqlmodel import Session, SQLModel, create_engine

from billflow.domain.entries import CreateTransactionRequest
from billflow.infra.repositories import SQLModelTransactionRepository
from billflow.models import Transaction  # noqa: F401  # register table metadata
from billflow.models.transaction import TransactionType
from billflow.services.transaction_engine import TransactionEngine

FIXED_NOW = datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc)
USER_ID = 1
OTHER_USER_ID = 2


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated SQLite database file for each test.

    Yields:
        Engine: SQLModel engine connected to test database
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    engine = create_engine(f"sqlite:///{db_path}", echo=False)
    SQLModel.metadata.create_all(engine)

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory returning commit/rollback context managers."""

    @contextmanager
    def session_context():
        session = Session(db_engine, expire_on_commit=False)
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return session_context


@pytest.fixture
def repository(session_factory) -> SQLModelTransactionRepository:
    return SQLModelTransactionRepository(session_factory)


@pytest.fixture
def engine(repository) -> TransactionEngine:
    """Transaction engine whose clock is pinned to FIXED_NOW."""
    return TransactionEngine(repository, clock=lambda: FIXED_NOW)


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def create_txn(engine):
    """Factory creating transactions through the engine with sensible defaults."""

    def _create(
        txn_type: TransactionType | str = TransactionType.EXPENSE,
        amount_in_cents: int = 5000,
        txn_date: date = date(2024, 3, 10),
        description: str = "Test transaction",
        due_date: date | None = None,
        total_installments: int | None = None,
        recurrence_pattern: str | None = None,
        user_id: int = USER_ID,
    ):
        request = CreateTransactionRequest(
            amount_in_cents=amount_in_cents,
            date=txn_date,
            description=description,
            type=txn_type,
            due_date=due_date,
            total_installments=total_installments,
            recurrence_pattern=recurrence_pattern,
        )
        return engine.create(request, user_id=user_id)

    return _create
