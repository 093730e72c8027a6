"""Mini README: Core package initializer for the grant ledger.

This module exposes convenience imports so callers can reach the ledger
store, the budget calculator and the spreadsheet importers without knowing
the exact module structure. The FastAPI interface lives in
``grantledger.interface`` and is not imported here.
"""

from .exceptions import (
    BudgetMismatchError,
    GrantLedgerError,
    ImportSourceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from .finance import BudgetCategory, BudgetType, Expense, Grant, GrantStatus, LedgerStore, compute
from .logging_utils import get_logger

__all__ = [
    "BudgetCategory",
    "BudgetMismatchError",
    "BudgetType",
    "Expense",
    "Grant",
    "GrantLedgerError",
    "GrantStatus",
    "ImportSourceError",
    "LedgerStore",
    "NotFoundError",
    "PersistenceError",
    "ValidationError",
    "compute",
    "get_logger",
]
