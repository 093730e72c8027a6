"""Mini README: Reporting queries over the ledger document.

Structure:
    * expenses_in_range - date-ranged, grant-filtered expense query with grant snapshots.
    * BudgetBalance / check_budget_balance - total versus allocated comparison.
    * CategorySpend / category_breakdown - budgeted, spent and remaining per category.
    * grant_totals, portfolio_summary, expenses_by_category, remaining_budget -
      aggregate figures for dashboards.
    * budget_timeline - weekly remaining-budget series for one grant.

Every helper is a pure function over already loaded records; the store
decides when to read the document.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from .models import INDIRECT_COSTS_LABEL, Expense, Grant, GrantStatus, parse_date


def expenses_in_range(
    grants: Iterable[Grant],
    expenses: Iterable[Expense],
    start: date | str,
    end: date | str,
    grant_ids: Optional[Sequence[str]] = None,
) -> List[Expense]:
    """Return expenses dated within ``[start, end]`` sorted by date.

    Each result carries ``grant``: a snapshot of its parent without the
    expense join, or ``None`` when the parent no longer exists.
    """

    start_date = parse_date(start)
    end_date = parse_date(end)
    allowed = set(grant_ids) if grant_ids is not None else None
    by_id = {grant.grant_id: grant for grant in grants}

    matches: List[Expense] = []
    for expense in expenses:
        if not start_date <= expense.date <= end_date:
            continue
        if allowed is not None and expense.grant_id not in allowed:
            continue
        parent = by_id.get(expense.grant_id)
        expense.grant = parent.snapshot() if parent is not None else None
        matches.append(expense)
    return sorted(matches, key=lambda expense: (expense.date, expense.created_at))


def filter_by_category(expenses: Iterable[Expense], category: Optional[str]) -> List[Expense]:
    """Keep expenses charged to ``category``; no filter when it is empty."""

    if not category:
        return list(expenses)
    return [expense for expense in expenses if expense.category == category]


@dataclass(slots=True)
class BudgetBalance:
    """Comparison between a grant's total and its allocated categories."""

    total: float
    allocated: float
    difference: float
    balanced: bool


def check_budget_balance(grant: Grant, tolerance: float = 0.01) -> BudgetBalance:
    """Compare the grant total with the sum of its budget categories."""

    allocated = grant.allocated_amount
    difference = grant.total_amount - allocated
    return BudgetBalance(
        total=grant.total_amount,
        allocated=allocated,
        difference=difference,
        balanced=abs(difference) <= tolerance,
    )


@dataclass(slots=True)
class CategorySpend:
    """Budgeted versus spent amounts for one budget category."""

    category: str
    budget_type: str
    budgeted: float
    spent: float

    @property
    def remaining(self) -> float:
        return self.budgeted - self.spent

    def as_dict(self) -> Dict[str, object]:
        return {
            "category": self.category,
            "type": self.budget_type,
            "budgeted": self.budgeted,
            "spent": self.spent,
            "remaining": self.remaining,
        }


def _spent_by_category(expenses: Iterable[Expense], *, up_to: Optional[date] = None) -> Dict[str, float]:
    totals: Dict[str, float] = defaultdict(float)
    for expense in expenses:
        if up_to is None or expense.date <= up_to:
            totals[expense.category] += expense.amount
    return totals


def category_breakdown(grant: Grant) -> List[CategorySpend]:
    """Budgeted, spent and remaining amounts per category of ``grant``."""

    spent = _spent_by_category(grant.expenses)
    return [
        CategorySpend(
            category=category.category,
            budget_type=category.budget_type.value,
            budgeted=category.amount,
            spent=spent.get(category.category, 0.0),
        )
        for category in grant.budget_categories
    ]


def grant_totals(grant: Grant) -> Dict[str, float]:
    """Headline totals shown on a grant's detail view."""

    spent = sum(expense.amount for expense in grant.expenses)
    return {
        "total_budget": grant.total_amount,
        "total_spent": spent,
        "remaining": grant.total_amount - spent,
    }


def expenses_by_category(expenses: Iterable[Expense]) -> Dict[str, float]:
    """Total spend per expense category label."""

    return dict(_spent_by_category(expenses))


def remaining_budget(grants: Iterable[Grant]) -> float:
    """Unspent allocation across grants, ignoring indirect costs and overspends."""

    remaining = 0.0
    for grant in grants:
        spent = _spent_by_category(grant.expenses)
        for category in grant.budget_categories:
            if category.category == INDIRECT_COSTS_LABEL:
                continue
            remaining += max(0.0, category.amount - spent.get(category.category, 0.0))
    return remaining


def portfolio_summary(grants: Sequence[Grant]) -> Dict[str, float]:
    """Aggregate figures across every grant for the dashboard."""

    return {
        "total_grants": len(grants),
        "active_grants": sum(1 for grant in grants if grant.status is GrantStatus.ACTIVE),
        "total_budget": sum(grant.total_amount for grant in grants),
        "total_spent": sum(expense.amount for grant in grants for expense in grant.expenses),
        "remaining_budget": remaining_budget(grants),
    }


def budget_timeline(grant: Grant, today: Optional[date] = None) -> List[Dict[str, object]]:
    """Weekly remaining budget per category from the grant start date.

    The series ends at ``today`` or the grant end date, whichever comes
    first. Grants that have already ended get one extra point a week after
    the end date where every category drops to zero.
    """

    if not grant.start_date or not grant.end_date:
        return []
    categories = [c for c in grant.budget_categories if c.category != INDIRECT_COSTS_LABEL]
    if not categories:
        return []

    today = today or date.today()
    start = parse_date(grant.start_date)
    end = parse_date(grant.end_date)
    last = min(today, end)

    points: List[date] = []
    cursor = start
    while cursor <= last:
        points.append(cursor)
        cursor += timedelta(days=7)
    if not points:
        points.append(start)
    if today > end:
        points.append(end + timedelta(days=7))

    series: List[Dict[str, object]] = []
    for point in points:
        entry: Dict[str, object] = {"date": point.isoformat()}
        spent = _spent_by_category(grant.expenses, up_to=point)
        for category in categories:
            if point > end:
                entry[category.category] = 0.0
            else:
                entry[category.category] = max(0.0, category.amount - spent.get(category.category, 0.0))
        series.append(entry)
    return series
