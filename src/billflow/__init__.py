"""billflow: installment plans, recurring transactions and their lifecycle."""

from __future__ import annotations

from .config import BaseConfig, DevConfig, TestConfig
from .errors import BillflowError, NotFoundError, RepositoryError, ValidationError

__all__ = [
    "BaseConfig",
    "BillflowError",
    "DevConfig",
    "NotFoundError",
    "RepositoryError",
    "TestConfig",
    "ValidationError",
]

__version__ = "0.1.0"
