"""Mini README: Ledger records for grants, budget categories and expenses.

Structure:
    * GrantStatus - lifecycle states a grant can be in.
    * BudgetCategory - tagged variant keyed by ``BudgetType`` with its parameters;
      ``with_updates`` and ``edit`` re-run the calculator on every change.
    * Grant - funded award with its ordered budget categories.
    * Expense - dated expenditure charged to a grant.

Records are built from the camelCase documents the presentation layer and
the JSON store exchange (snake_case keys are accepted too). All coercion and
validation happens in the ``from_dict`` constructors so the rest of the
ledger only ever handles typed values. Keys the current model does not know
are kept in ``extra`` and written back unchanged, which lets older builds
read documents written by newer ones.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..exceptions import ValidationError
from .calculator import ALL_PARAMETERS, PARAMETERS_BY_TYPE, BudgetType, coerce_non_negative, compute

INDIRECT_COSTS_LABEL = "Indirect Costs"

DEFAULT_CATEGORY_LABELS: Dict[BudgetType, str] = {
    BudgetType.PI_SALARY: "PI Summer Salary",
    BudgetType.STUDENT_SALARY: "Student Summer Salary",
    BudgetType.TRAVEL: "Travel",
    BudgetType.MATERIALS: "Materials and Supplies",
    BudgetType.PUBLICATION: "Publication Costs",
    BudgetType.TUITION: "Tuition",
    BudgetType.INDIRECT: INDIRECT_COSTS_LABEL,
    BudgetType.OTHER: "Other",
}


def new_id() -> str:
    """Return a fresh record identifier."""

    return uuid.uuid4().hex


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""

    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_date(value: object) -> date:
    """Parse ISO formatted strings or date objects safely."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as error:
            raise ValidationError(f"Invalid calendar date: {value!r}") from error
    raise ValidationError("Dates must be provided as ISO strings or date/datetime instances.")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _normalise_keys(payload: Mapping[str, Any], aliases: Mapping[str, str]) -> Dict[str, Any]:
    """Translate camelCase/snake_case keys to attribute names; unknown keys pass through."""

    return {aliases.get(key, key): value for key, value in payload.items()}


def _aliases(attributes: Mapping[str, str]) -> Dict[str, str]:
    aliases = dict(attributes)
    aliases.update({attribute: attribute for attribute in attributes.values()})
    return aliases


def _required_text(name: str, value: object) -> str:
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValidationError(f"{name} is required")
    return text


def _optional_text(value: object) -> Optional[str]:
    if value is None:
        return None
    return str(value)


class GrantStatus(str, Enum):
    """Enumerate the grant lifecycle states."""

    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @classmethod
    def from_str(cls, value: object) -> "GrantStatus":
        """Coerce arbitrary casing into a valid status."""

        if isinstance(value, cls):
            return value
        normalised = str(value or "").strip().lower()
        for status in cls:
            if status.value.lower() == normalised:
                return status
        raise ValidationError(f"Unsupported grant status: {value}")


# persisted key -> attribute name
_CATEGORY_KEYS = {
    "id": "category_id",
    "category": "category",
    "type": "budget_type",
    "amount": "amount",
    "description": "description",
    "notes": "notes",
    "fiscalYear": "fiscal_year",
    "createdAt": "created_at",
}
_CATEGORY_KEYS.update({_camel(name): name for name in ALL_PARAMETERS})
_CATEGORY_ALIASES = _aliases(_CATEGORY_KEYS)


@dataclass(slots=True)
class BudgetCategory:
    """Named allocation within a grant, flat or derived from its parameters."""

    category_id: str
    category: str
    budget_type: BudgetType
    amount: float
    parameters: Dict[str, float] = field(default_factory=dict)
    description: Optional[str] = None
    notes: Optional[str] = None
    fiscal_year: Optional[str] = None
    created_at: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], *, assign_id: bool = False) -> "BudgetCategory":
        """Build a category, dropping foreign parameters and recomputing derived amounts.

        ``assign_id`` forces a fresh identifier and creation timestamp; otherwise
        they are only generated when missing.
        """

        data = _normalise_keys(payload, _CATEGORY_ALIASES)
        budget_type = BudgetType.from_str(data.pop("budget_type", BudgetType.OTHER.value) or "other")
        raw_parameters = {name: data.pop(name, None) for name in ALL_PARAMETERS}
        parameters = {
            name: coerce_non_negative(name, raw_parameters[name])
            for name in PARAMETERS_BY_TYPE[budget_type]
            if raw_parameters[name] is not None
        }
        supplied_amount = data.pop("amount", None)
        category_id = data.pop("category_id", None)
        created_at = data.pop("created_at", None)
        label = data.pop("category", None)
        description = _optional_text(data.pop("description", None))
        notes = _optional_text(data.pop("notes", None))
        fiscal_year = _optional_text(data.pop("fiscal_year", None))
        return cls(
            category_id=new_id() if assign_id or not category_id else str(category_id),
            category=str(label).strip() if label else DEFAULT_CATEGORY_LABELS[budget_type],
            budget_type=budget_type,
            amount=compute(budget_type, parameters, supplied_amount),
            parameters=parameters,
            description=description,
            notes=notes,
            fiscal_year=fiscal_year,
            created_at=utc_timestamp() if assign_id or not created_at else str(created_at),
            extra=data,
        )

    def with_updates(self, **changes: Any) -> "BudgetCategory":
        """Return a copy with ``changes`` applied and the amount recomputed."""

        parameters = dict(self.parameters)
        for name in ALL_PARAMETERS:
            if name in changes:
                parameters[name] = changes.pop(name)
        if "budget_type" in changes:
            changes["budget_type"] = BudgetType.from_str(changes["budget_type"])
        updated = replace(self, **changes)
        updated.parameters = {
            name: coerce_non_negative(name, parameters[name])
            for name in PARAMETERS_BY_TYPE[updated.budget_type]
            if parameters.get(name) is not None
        }
        updated.amount = compute(updated.budget_type, updated.parameters, updated.amount)
        return updated

    def edit(self, partial: Mapping[str, Any]) -> "BudgetCategory":
        """Apply a camelCase edit document via ``with_updates``.

        Unknown keys are merged into ``extra``; identity fields cannot change.
        """

        data = _normalise_keys(partial, _CATEGORY_ALIASES)
        for key in ("category_id", "created_at", "parameters", "extra"):
            data.pop(key, None)
        for key in ("description", "notes", "fiscal_year"):
            if key in data:
                data[key] = _optional_text(data[key])
        if "category" in data:
            data["category"] = _required_text("category", data["category"])
        known = set(_CATEGORY_KEYS.values())
        extra = {key: data.pop(key) for key in list(data) if key not in known}
        if extra:
            data["extra"] = {**self.extra, **extra}
        return self.with_updates(**data)

    def as_dict(self) -> Dict[str, Any]:
        """Export the category in its persisted camelCase form."""

        payload: Dict[str, Any] = dict(self.extra)
        payload.update(
            {
                "id": self.category_id,
                "category": self.category,
                "type": self.budget_type.value,
                "amount": self.amount,
                "createdAt": self.created_at,
            }
        )
        for name, value in self.parameters.items():
            payload[_camel(name)] = value
        for key, value in (
            ("description", self.description),
            ("notes", self.notes),
            ("fiscalYear", self.fiscal_year),
        ):
            if value is not None:
                payload[key] = value
        return payload


_GRANT_KEYS = {
    "id": "grant_id",
    "title": "title",
    "agency": "agency",
    "number": "number",
    "totalAmount": "total_amount",
    "startDate": "start_date",
    "endDate": "end_date",
    "status": "status",
    "description": "description",
    "budgetCategories": "budget_categories",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}
_GRANT_ALIASES = _aliases(_GRANT_KEYS)


@dataclass(slots=True)
class Grant:
    """Funded research award with its budget allocation."""

    grant_id: str
    title: str
    agency: str
    number: str
    total_amount: float
    start_date: str
    end_date: str
    status: GrantStatus = GrantStatus.ACTIVE
    description: Optional[str] = None
    budget_categories: List[BudgetCategory] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)
    # Computed join, never persisted.
    expenses: List["Expense"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Grant":
        """Build a grant from a persisted or caller supplied document."""

        data = _normalise_keys(payload, _GRANT_ALIASES)
        data.pop("expenses", None)
        now = utc_timestamp()
        grant_id = data.pop("grant_id", None)
        created_at = data.pop("created_at", None)
        updated_at = data.pop("updated_at", None)
        categories = data.pop("budget_categories", None) or []
        return cls(
            grant_id=str(grant_id) if grant_id else new_id(),
            title=_required_text("title", data.pop("title", None)),
            agency=_required_text("agency", data.pop("agency", None)),
            number=_required_text("number", data.pop("number", None)),
            total_amount=coerce_non_negative("totalAmount", data.pop("total_amount", None)),
            start_date=str(data.pop("start_date", None) or ""),
            end_date=str(data.pop("end_date", None) or ""),
            status=GrantStatus.from_str(data.pop("status", None) or GrantStatus.ACTIVE),
            description=_optional_text(data.pop("description", None)),
            budget_categories=[
                category if isinstance(category, BudgetCategory) else BudgetCategory.from_dict(category)
                for category in categories
            ],
            created_at=str(created_at) if created_at else now,
            updated_at=str(updated_at) if updated_at else now,
            extra=data,
        )

    @property
    def allocated_amount(self) -> float:
        """Sum of the budget category amounts."""

        return sum(category.amount for category in self.budget_categories)

    def category_labels(self, *, include_indirect: bool = False) -> List[str]:
        """Labels expenses may be charged to, in budget order."""

        return [
            category.category
            for category in self.budget_categories
            if include_indirect or category.category != INDIRECT_COSTS_LABEL
        ]

    def snapshot(self) -> "Grant":
        """Shallow copy without the expense join."""

        return replace(self, expenses=[])

    def as_dict(self, *, include_expenses: bool = False) -> Dict[str, Any]:
        """Export the grant in its persisted camelCase form."""

        payload: Dict[str, Any] = dict(self.extra)
        payload.update(
            {
                "id": self.grant_id,
                "title": self.title,
                "agency": self.agency,
                "number": self.number,
                "totalAmount": self.total_amount,
                "startDate": self.start_date,
                "endDate": self.end_date,
                "status": self.status.value,
                "budgetCategories": [category.as_dict() for category in self.budget_categories],
                "createdAt": self.created_at,
                "updatedAt": self.updated_at,
            }
        )
        if self.description is not None:
            payload["description"] = self.description
        if include_expenses:
            payload["expenses"] = [expense.as_dict() for expense in self.expenses]
        return payload


_EXPENSE_KEYS = {
    "id": "expense_id",
    "grantId": "grant_id",
    "description": "description",
    "amount": "amount",
    "category": "category",
    "date": "date",
    "notes": "notes",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}
_EXPENSE_ALIASES = _aliases(_EXPENSE_KEYS)


@dataclass(slots=True)
class Expense:
    """Dated expenditure charged against a grant's budget category."""

    expense_id: str
    grant_id: str
    description: str
    amount: float
    category: str
    date: date
    notes: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)
    # Parent grant snapshot attached by date range queries, never persisted.
    grant: Optional[Grant] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Expense":
        """Build an expense, rejecting blank descriptions and non-positive amounts."""

        data = _normalise_keys(payload, _EXPENSE_ALIASES)
        data.pop("grant", None)
        now = utc_timestamp()
        expense_id = data.pop("expense_id", None)
        created_at = data.pop("created_at", None)
        updated_at = data.pop("updated_at", None)
        amount = coerce_non_negative("amount", data.pop("amount", None))
        if amount <= 0:
            raise ValidationError("Expense amount must be greater than zero")
        return cls(
            expense_id=str(expense_id) if expense_id else new_id(),
            grant_id=_required_text("grantId", data.pop("grant_id", None)),
            description=_required_text("description", data.pop("description", None)),
            amount=amount,
            category=_required_text("category", data.pop("category", None)),
            date=parse_date(data.pop("date", None)),
            notes=_optional_text(data.pop("notes", None)),
            created_at=str(created_at) if created_at else now,
            updated_at=str(updated_at) if updated_at else now,
            extra=data,
        )

    def as_dict(self, *, include_grant: bool = False) -> Dict[str, Any]:
        """Export the expense in its persisted camelCase form."""

        payload: Dict[str, Any] = dict(self.extra)
        payload.update(
            {
                "id": self.expense_id,
                "grantId": self.grant_id,
                "description": self.description,
                "amount": self.amount,
                "category": self.category,
                "date": self.date.isoformat(),
                "createdAt": self.created_at,
                "updatedAt": self.updated_at,
            }
        )
        if self.notes is not None:
            payload["notes"] = self.notes
        if include_grant:
            payload["grant"] = self.grant.as_dict() if self.grant is not None else None
        return payload


def categories_from_payloads(
    payloads: Iterable[Mapping[str, Any] | BudgetCategory], *, assign_ids: bool
) -> List[BudgetCategory]:
    """Normalise a replacement category set."""

    categories: List[BudgetCategory] = []
    for payload in payloads:
        if isinstance(payload, BudgetCategory):
            payload = payload.as_dict()
        categories.append(BudgetCategory.from_dict(payload, assign_id=assign_ids))
    return categories
