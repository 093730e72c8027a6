"""Mini README: Grant budgeting core.

This package holds the ledger records (grants, budget categories,
expenses), the calculator that derives salary, tuition and travel amounts
from their parameters, the JSON document store with cascade deletes, and
the reporting queries the dashboard and expense views rely on.
"""

from .calculator import PARAMETERS_BY_TYPE, BudgetType, compute
from .ledger import LedgerStore
from .models import (
    DEFAULT_CATEGORY_LABELS,
    INDIRECT_COSTS_LABEL,
    BudgetCategory,
    Expense,
    Grant,
    GrantStatus,
)
from .reporting import (
    BudgetBalance,
    CategorySpend,
    budget_timeline,
    category_breakdown,
    check_budget_balance,
    expenses_by_category,
    filter_by_category,
    grant_totals,
    portfolio_summary,
    remaining_budget,
)

__all__ = [
    "BudgetBalance",
    "BudgetCategory",
    "BudgetType",
    "CategorySpend",
    "DEFAULT_CATEGORY_LABELS",
    "Expense",
    "Grant",
    "GrantStatus",
    "INDIRECT_COSTS_LABEL",
    "LedgerStore",
    "PARAMETERS_BY_TYPE",
    "budget_timeline",
    "category_breakdown",
    "check_budget_balance",
    "compute",
    "expenses_by_category",
    "filter_by_category",
    "grant_totals",
    "portfolio_summary",
    "remaining_budget",
]
