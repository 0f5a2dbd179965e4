"""Engine creation, schema bootstrap and transactional sessions."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, ContextManager, Iterator, Optional, Tuple

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from ..config import BaseConfig
from ..logging_config import get_logger

logger = get_logger("infra.database")

SessionFactory = Callable[[], ContextManager[Session]]


def create_db_engine(config: BaseConfig) -> Engine:
    """Build the engine for ``config.DATABASE_URL`` with its engine options."""
    return create_engine(config.DATABASE_URL, **config.sqlalchemy_engine_options())


def init_database(engine: Engine) -> None:
    """Create the ``transaction`` table if it does not exist."""
    # Registers Transaction on SQLModel.metadata.
    from .. import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def create_session_factory(engine: Engine) -> SessionFactory:
    """Return a factory of sessions scoped to one unit of work."""

    @contextmanager
    def unit_of_work() -> Iterator[Session]:
        session = Session(engine, expire_on_commit=False)
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return unit_of_work


def bootstrap_database(config: Optional[BaseConfig] = None) -> Tuple[Engine, SessionFactory]:
    """Create the engine, ensure the schema and return ``(engine, session_factory)``."""

    cfg = config or BaseConfig()
    engine = create_db_engine(cfg)
    init_database(engine)
    logger.debug("Database ready", extra={"url": engine.url.render_as_string(hide_password=True)})
    return engine, create_session_factory(engine)
