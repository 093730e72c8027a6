"""Mini README: JSON-document ledger of grants and their expenses.

Structure:
    * LedgerDocument - the grants and expenses loaded from one file.
    * LedgerStore - CRUD, budget replacement and edits, reporting entry points.

Every public operation reads the whole document, applies its change, and
writes the whole document back before returning. Nothing is cached between
calls, so a read issued after a completed write always observes it. There
is no locking: two processes writing the same file race and the last
writer wins.

Deleting a grant removes its expenses in the same write. Expenses must
reference an existing grant; a category label that does not match one of
the grant's spendable budget categories (indirect costs excluded) is
only logged. Budget totals that diverge from the grant amount are handled
according to ``BudgetPolicy``.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set

from ..configuration import BudgetPolicy, GrantLedgerSettings, get_settings
from ..exceptions import BudgetMismatchError, NotFoundError, PersistenceError, ValidationError
from ..logging_utils import get_logger
from .models import BudgetCategory, Expense, Grant, categories_from_payloads, utc_timestamp
from .reporting import check_budget_balance, expenses_in_range

LOGGER = get_logger(__name__)

_TIMESTAMP_KEYS = {"createdAt", "created_at", "updatedAt", "updated_at"}
# Store-assigned keys stripped from caller payloads; an expense keeps its grantId.
_GRANT_PROTECTED_KEYS = {"id", "grant_id"} | _TIMESTAMP_KEYS
_EXPENSE_PROTECTED_KEYS = {"id", "expense_id"} | _TIMESTAMP_KEYS


def _without_protected(payload: Mapping[str, Any], protected: Set[str]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if key not in protected}


@dataclass(slots=True)
class LedgerDocument:
    """In-memory view of the persisted document for one operation."""

    grants: List[Grant] = field(default_factory=list)
    expenses: List[Expense] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def grant_index(self, grant_id: str) -> int:
        for index, grant in enumerate(self.grants):
            if grant.grant_id == grant_id:
                return index
        raise NotFoundError("grant", grant_id)

    def expense_index(self, expense_id: str) -> int:
        for index, expense in enumerate(self.expenses):
            if expense.expense_id == expense_id:
                return index
        raise NotFoundError("expense", expense_id)

    def joined_grants(self) -> List[Grant]:
        """Grants with their ``expenses`` populated from the expense list."""

        by_grant: Dict[str, List[Expense]] = {grant.grant_id: [] for grant in self.grants}
        for expense in self.expenses:
            if expense.grant_id in by_grant:
                by_grant[expense.grant_id].append(expense)
        for grant in self.grants:
            grant.expenses = by_grant[grant.grant_id]
        return self.grants

    def as_dict(self) -> Dict[str, Any]:
        payload = dict(self.extra)
        payload["grants"] = [grant.as_dict() for grant in self.grants]
        payload["expenses"] = [expense.as_dict() for expense in self.expenses]
        return payload


class LedgerStore:
    """Persist grants and expenses in a single JSON document."""

    def __init__(
        self,
        path: Path | str,
        *,
        budget_policy: BudgetPolicy | str = BudgetPolicy.WARN,
        budget_tolerance: float = 0.01,
    ) -> None:
        self._path = Path(path)
        self.budget_policy = BudgetPolicy(budget_policy)
        self.budget_tolerance = budget_tolerance
        self._ensure_document()
        LOGGER.debug("Ledger store bound to %s (budget policy %s)", self._path, self.budget_policy.value)

    @classmethod
    def from_settings(cls, settings: Optional[GrantLedgerSettings] = None) -> "LedgerStore":
        """Create a store using the configured ledger path and budget policy."""

        settings = settings or get_settings()
        return cls(
            settings.ledger_path,
            budget_policy=settings.budget_policy,
            budget_tolerance=settings.budget_tolerance,
        )

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_document(self) -> None:
        if self._path.exists():
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise PersistenceError(f"Cannot create ledger directory {self._path.parent}: {error}") from error
        self._save(LedgerDocument())
        LOGGER.info("Initialised empty ledger document at %s", self._path)

    def _load(self) -> LedgerDocument:
        if not self._path.exists():
            return LedgerDocument()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as error:
            raise PersistenceError(f"Cannot read ledger document {self._path}: {error}") from error
        if not isinstance(raw, dict):
            raise PersistenceError(f"Ledger document {self._path} must contain a JSON object")

        extra = {key: value for key, value in raw.items() if key not in {"grants", "expenses"}}
        try:
            grants = [Grant.from_dict(item) for item in raw.get("grants") or []]
            expenses = [Expense.from_dict(item) for item in raw.get("expenses") or []]
        except (ValidationError, TypeError, AttributeError) as error:
            raise PersistenceError(f"Ledger document {self._path} contains an invalid record: {error}") from error
        return LedgerDocument(grants=grants, expenses=expenses, extra=extra)

    def _save(self, document: LedgerDocument) -> None:
        temporary = self._path.with_name(self._path.name + ".tmp")
        try:
            temporary.write_text(json.dumps(document.as_dict(), indent=2), encoding="utf-8")
            os.replace(temporary, self._path)
        except OSError as error:
            raise PersistenceError(f"Cannot write ledger document {self._path}: {error}") from error

    def enforce_budget_policy(self, grant: Grant) -> None:
        """Apply the configured reaction to an unbalanced budget."""

        if self.budget_policy is BudgetPolicy.IGNORE or not grant.budget_categories:
            return
        balance = check_budget_balance(grant, self.budget_tolerance)
        if balance.balanced:
            return
        if self.budget_policy is BudgetPolicy.STRICT:
            raise BudgetMismatchError(grant.grant_id, balance.total, balance.allocated)
        LOGGER.warning(
            "Grant %s budget categories total %.2f but grant amount is %.2f (difference %.2f)",
            grant.grant_id,
            balance.allocated,
            balance.total,
            balance.difference,
        )

    def get_all(self) -> List[Grant]:
        """Return every grant with its expenses joined in."""

        document = self._load()
        LOGGER.debug("Loaded %s grants and %s expenses", len(document.grants), len(document.expenses))
        return document.joined_grants()

    def get_grant(self, grant_id: str) -> Grant:
        """Return one grant with its expenses joined in."""

        document = self._load()
        grants = document.joined_grants()
        return grants[document.grant_index(grant_id)]

    def create_grant(self, data: Mapping[str, Any]) -> Grant:
        """Persist a new grant with a fresh id and timestamps."""

        document = self._load()
        grant = Grant.from_dict(_without_protected(data, _GRANT_PROTECTED_KEYS))
        self.enforce_budget_policy(grant)
        document.grants.append(grant)
        self._save(document)
        LOGGER.info("Created grant %s (%s)", grant.grant_id, grant.title)
        return grant

    def update_grant(self, grant_id: str, partial: Mapping[str, Any]) -> Grant:
        """Shallow-merge ``partial`` onto an existing grant."""

        document = self._load()
        index = document.grant_index(grant_id)
        merged = document.grants[index].as_dict()
        merged.update(_without_protected(partial, _GRANT_PROTECTED_KEYS))
        merged["updatedAt"] = utc_timestamp()
        grant = Grant.from_dict(merged)
        self.enforce_budget_policy(grant)
        document.grants[index] = grant
        self._save(document)
        LOGGER.info("Updated grant %s fields=%s", grant_id, sorted(partial))
        return grant

    def delete_grant(self, grant_id: str) -> Grant:
        """Remove a grant and every expense charged to it in one write."""

        document = self._load()
        grant = document.grants.pop(document.grant_index(grant_id))
        remaining = [expense for expense in document.expenses if expense.grant_id != grant_id]
        removed = len(document.expenses) - len(remaining)
        document.expenses = remaining
        self._save(document)
        LOGGER.info("Deleted grant %s and %s associated expenses", grant_id, removed)
        return grant

    def add_grants(self, grants: Sequence[Grant]) -> List[Grant]:
        """Append already normalised grants in a single write."""

        document = self._load()
        document.grants.extend(grants)
        self._save(document)
        LOGGER.info("Stored %s grants in one batch", len(grants))
        return list(grants)

    def get_budget(self, grant_id: str) -> List[BudgetCategory]:
        """Return the grant's budget categories in order."""

        document = self._load()
        return document.grants[document.grant_index(grant_id)].budget_categories

    def import_budget(
        self, grant_id: str, categories: Iterable[Mapping[str, Any] | BudgetCategory]
    ) -> List[BudgetCategory]:
        """Replace the grant's categories, assigning fresh ids to every entry."""

        return self._replace_budget(grant_id, categories_from_payloads(categories, assign_ids=True))

    def update_budget(
        self, grant_id: str, categories: Iterable[Mapping[str, Any] | BudgetCategory]
    ) -> List[BudgetCategory]:
        """Replace the grant's categories, keeping caller supplied ids."""

        return self._replace_budget(grant_id, categories_from_payloads(categories, assign_ids=False))

    def update_category(self, grant_id: str, category_id: str, partial: Mapping[str, Any]) -> BudgetCategory:
        """Edit one budget category in place, recomputing its derived amount."""

        document = self._load()
        grant = document.grants[document.grant_index(grant_id)]
        for index, category in enumerate(grant.budget_categories):
            if category.category_id == category_id:
                break
        else:
            raise NotFoundError("budget category", category_id)

        updated = category.edit(partial)
        grant.budget_categories[index] = updated
        grant.updated_at = utc_timestamp()
        self.enforce_budget_policy(grant)
        self._save(document)
        LOGGER.info("Updated budget category %s of grant %s fields=%s", category_id, grant_id, sorted(partial))
        return updated

    def _replace_budget(self, grant_id: str, categories: List[BudgetCategory]) -> List[BudgetCategory]:
        seen: Set[str] = set()
        for category in categories:
            if category.category_id in seen:
                raise ValidationError(f"Budget category id {category.category_id} appears more than once")
            seen.add(category.category_id)

        document = self._load()
        index = document.grant_index(grant_id)
        grant = document.grants[index]
        grant.budget_categories = categories
        grant.updated_at = utc_timestamp()
        self.enforce_budget_policy(grant)
        self._save(document)
        LOGGER.info("Replaced budget of grant %s with %s categories", grant_id, len(categories))
        return categories

    def _check_parent(self, document: LedgerDocument, expense: Expense) -> None:
        grant = document.grants[document.grant_index(expense.grant_id)]
        if grant.budget_categories and expense.category not in grant.category_labels():
            LOGGER.warning(
                "Expense %s category '%s' is not a budget category of grant %s",
                expense.expense_id,
                expense.category,
                grant.grant_id,
            )

    def create_expense(self, data: Mapping[str, Any]) -> Expense:
        """Persist a new expense against an existing grant."""

        document = self._load()
        expense = Expense.from_dict(_without_protected(data, _EXPENSE_PROTECTED_KEYS))
        self._check_parent(document, expense)
        document.expenses.append(expense)
        self._save(document)
        LOGGER.info("Created expense %s for grant %s", expense.expense_id, expense.grant_id)
        return expense

    def update_expense(self, expense_id: str, partial: Mapping[str, Any]) -> Expense:
        """Shallow-merge ``partial`` onto an existing expense."""

        document = self._load()
        index = document.expense_index(expense_id)
        merged = document.expenses[index].as_dict()
        merged.update(_without_protected(partial, _EXPENSE_PROTECTED_KEYS))
        merged["updatedAt"] = utc_timestamp()
        expense = Expense.from_dict(merged)
        self._check_parent(document, expense)
        document.expenses[index] = expense
        self._save(document)
        LOGGER.info("Updated expense %s fields=%s", expense_id, sorted(partial))
        return expense

    def delete_expense(self, expense_id: str) -> Expense:
        """Remove a single expense."""

        document = self._load()
        expense = document.expenses.pop(document.expense_index(expense_id))
        self._save(document)
        LOGGER.info("Deleted expense %s", expense_id)
        return expense

    def get_by_date_range(
        self,
        start: date | str,
        end: date | str,
        grant_ids: Optional[Sequence[str]] = None,
    ) -> List[Expense]:
        """Expenses dated within ``[start, end]``, optionally limited to ``grant_ids``."""

        document = self._load()
        results = expenses_in_range(document.grants, document.expenses, start, end, grant_ids)
        LOGGER.debug("Date range %s..%s matched %s expenses", start, end, len(results))
        return results
