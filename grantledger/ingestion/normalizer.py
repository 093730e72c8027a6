"""Mini README: Turn spreadsheet rows into validated ledger records.

Structure:
    * ColumnMapping - which spreadsheet column feeds description, amount and category.
    * normalize_category_rows - flat budget import for a single grant.
    * import_budget_file - read, normalize and replace a grant's budget in one call.
    * normalize_grant_row - one structured row to a ``Grant`` with its categories.
    * import_grants_from_excel - structured multi-grant import with per-row isolation.
    * ImportResult - success flag plus exact created/skipped counts.

Flat imports are a two step mapping: the caller first picks columns, then
maps every distinct raw category value to one of ``TARGET_CATEGORIES``.
Structured imports recognise a fixed vocabulary of header names; a row
missing its title, agency or number is skipped, and a row with invalid
numbers is skipped with a warning, neither stops the batch. Grants that
survive are written to the ledger in one batch at the end, so an import
that fails before that point leaves the ledger untouched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from openpyxl.utils.datetime import from_excel

from ..exceptions import ImportSourceError, ValidationError
from ..finance.calculator import BudgetType
from ..finance.ledger import LedgerStore
from ..finance.models import BudgetCategory, Grant, GrantStatus
from ..logging_utils import get_logger
from .spreadsheet import read_rows

LOGGER = get_logger(__name__)

TARGET_CATEGORIES: Tuple[str, ...] = ("Personnel", "Equipment", "Travel", "Supplies", "Other")
DEFAULT_TARGET_CATEGORY = "Other"
PREVIEW_ROWS = 5
GENERIC_CATEGORY_SLOTS = 10

_NUMERIC_PREFIX = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")
_STRIP_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_CURRENCY_NOISE = re.compile(r"[\s$,]")
_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d", "%B %d, %Y", "%b %d, %Y", "%d %B %Y", "%d-%b-%Y")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _first(row: Mapping[str, Any], names: Sequence[str]) -> Any:
    for name in names:
        value = row.get(name)
        if not _is_blank(value):
            return value
    return None


def _text(value: Any) -> str:
    return "" if _is_blank(value) else str(value).strip()


@dataclass(slots=True)
class ColumnMapping:
    """Spreadsheet columns feeding each logical field of a budget line."""

    amount: str
    description: Optional[str] = None
    category: Optional[str] = None

    @classmethod
    def from_dict(cls, mapping: Mapping[str, Optional[str]]) -> "ColumnMapping":
        """Build a mapping, treating blank selections as unmapped."""

        amount = mapping.get("amount")
        if _is_blank(amount):
            raise ValidationError("An amount column must be selected")
        return cls(
            amount=str(amount),
            description=None if _is_blank(mapping.get("description")) else str(mapping["description"]),
            category=None if _is_blank(mapping.get("category")) else str(mapping["category"]),
        )


def parse_amount(value: Any) -> float:
    """Read a currency-formatted cell, yielding 0.0 for blanks and garbage."""

    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if value == value else 0.0
    match = _NUMERIC_PREFIX.match(_STRIP_NON_NUMERIC.sub("", str(value)))
    return float(match.group()) if match else 0.0


def distinct_category_values(rows: Sequence[Mapping[str, Any]], column: Optional[str]) -> List[str]:
    """Raw category values that need a target mapping, in first-seen order."""

    if not column:
        return []
    values: List[str] = []
    for row in rows:
        value = _text(row.get(column))
        if value and value not in values:
            values.append(value)
    return values


def _validated_category_mapping(category_mapping: Optional[Mapping[str, str]]) -> Dict[str, str]:
    mapping = dict(category_mapping or {})
    invalid = sorted({target for target in mapping.values() if target not in TARGET_CATEGORIES})
    if invalid:
        raise ValidationError(
            f"Unknown target categories {invalid}; expected one of {', '.join(TARGET_CATEGORIES)}"
        )
    return mapping


def _flat_line(row: Mapping[str, Any], columns: ColumnMapping, mapping: Mapping[str, str]) -> Dict[str, Any]:
    category = DEFAULT_TARGET_CATEGORY
    if columns.category:
        raw_category = _text(row.get(columns.category))
        if raw_category:
            category = mapping.get(raw_category, DEFAULT_TARGET_CATEGORY)
    description = _text(row.get(columns.description)) if columns.description else ""
    return {
        "category": category,
        "amount": parse_amount(row.get(columns.amount)),
        "description": description,
    }


def preview_category_rows(
    rows: Sequence[Mapping[str, Any]],
    column_mapping: ColumnMapping | Mapping[str, Optional[str]],
    category_mapping: Optional[Mapping[str, str]] = None,
    limit: int = PREVIEW_ROWS,
) -> List[Dict[str, Any]]:
    """First ``limit`` rows as they would be imported, before amount filtering."""

    columns = column_mapping if isinstance(column_mapping, ColumnMapping) else ColumnMapping.from_dict(column_mapping)
    mapping = _validated_category_mapping(category_mapping)
    return [_flat_line(row, columns, mapping) for row in rows[:limit]]


def normalize_category_rows(
    rows: Sequence[Mapping[str, Any]],
    column_mapping: ColumnMapping | Mapping[str, Optional[str]],
    category_mapping: Optional[Mapping[str, str]] = None,
) -> List[BudgetCategory]:
    """Map flat budget rows to ``other`` categories, dropping non-positive amounts."""

    columns = column_mapping if isinstance(column_mapping, ColumnMapping) else ColumnMapping.from_dict(column_mapping)
    mapping = _validated_category_mapping(category_mapping)

    categories: List[BudgetCategory] = []
    for line in (_flat_line(row, columns, mapping) for row in rows):
        if line["amount"] <= 0:
            continue
        categories.append(BudgetCategory.from_dict({**line, "type": BudgetType.OTHER.value}, assign_id=True))
    LOGGER.info("Normalised %s of %s budget rows", len(categories), len(rows))
    return categories


def import_budget_file(
    store: LedgerStore,
    grant_id: str,
    path: Path | str,
    column_mapping: ColumnMapping | Mapping[str, Optional[str]],
    category_mapping: Optional[Mapping[str, str]] = None,
) -> List[BudgetCategory]:
    """Replace a grant's budget with the categories found in a spreadsheet."""

    categories = normalize_category_rows(read_rows(path), column_mapping, category_mapping)
    return store.import_budget(grant_id, categories)


TITLE_COLUMNS = ("Grant Title", "Title", "title")
AGENCY_COLUMNS = ("Agency", "agency")
NUMBER_COLUMNS = ("Grant Number", "Number", "number")
TOTAL_COLUMNS = ("Total Amount", "Amount", "totalAmount")
START_COLUMNS = ("Start Date", "startDate")
END_COLUMNS = ("End Date", "endDate")
DESCRIPTION_COLUMNS = ("Description", "description")
STATUS_COLUMNS = ("Status", "status")


@dataclass(frozen=True)
class SemanticBudgetColumn:
    """A named amount column and the parameter columns that derive it.

    ``parameters`` holds ``(parameter, column, default)`` triples. The one
    parameter without a default is the rate; when the sheet leaves it blank
    it is back-derived from the amount column.
    """

    key: str
    budget_type: BudgetType
    parameters: Tuple[Tuple[str, str, Optional[float]], ...] = ()


SEMANTIC_BUDGET_COLUMNS: Tuple[SemanticBudgetColumn, ...] = (
    SemanticBudgetColumn(
        "PI Summer Salary",
        BudgetType.PI_SALARY,
        (("monthly_rate", "PI Monthly Rate", None), ("number_of_months", "PI Months", 3.0)),
    ),
    SemanticBudgetColumn(
        "Student Summer Salary",
        BudgetType.STUDENT_SALARY,
        (
            ("monthly_rate", "Student Monthly Rate", None),
            ("number_of_months", "Student Months", 3.0),
            ("number_of_students", "Number of Students", 1.0),
        ),
    ),
    SemanticBudgetColumn(
        "Travel",
        BudgetType.TRAVEL,
        (("number_of_trips", "Number of Trips", 1.0), ("cost_per_trip", "Cost Per Trip", None)),
    ),
    SemanticBudgetColumn("Materials", BudgetType.MATERIALS),
    SemanticBudgetColumn("Publication", BudgetType.PUBLICATION),
    SemanticBudgetColumn(
        "Tuition",
        BudgetType.TUITION,
        (
            ("yearly_rate", "Tuition Per Year", None),
            ("number_of_years", "Tuition Years", 1.0),
            ("number_of_students", "Tuition Students", 1.0),
        ),
    ),
)


@dataclass(slots=True)
class ImportResult:
    """Outcome of a structured import."""

    success: bool
    grants_count: int = 0
    categories_count: int = 0
    skipped_count: int = 0
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error}
        return {
            "success": True,
            "grantsCount": self.grants_count,
            "categoriesCount": self.categories_count,
            "skippedCount": self.skipped_count,
        }


def parse_number(name: str, value: Any, default: Optional[float] = None) -> Optional[float]:
    """Parse a numeric cell strictly; blanks give ``default``."""

    if _is_blank(value):
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(_CURRENCY_NOISE.sub("", str(value)))
    except ValueError as error:
        raise ValidationError(f"{name} must be a number, got {value!r}") from error


def normalize_date(value: Any) -> str:
    """Render spreadsheet serials, date cells and date strings as ``YYYY-MM-DD``.

    Values that cannot be interpreted are returned as their raw text.
    """

    if _is_blank(value):
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    # Five digit strings are serials exported through CSV; shorter ones are years.
    if isinstance(value, str) and value.strip().isdigit() and len(value.strip()) >= 5:
        value = int(value.strip())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            converted = from_excel(value)
        except (ValueError, OverflowError, TypeError):
            return str(value)
        return converted.date().isoformat() if isinstance(converted, datetime) else str(value)

    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        pass
    for date_format in _DATE_FORMATS:
        try:
            return datetime.strptime(text, date_format).date().isoformat()
        except ValueError:
            continue
    return text


def _semantic_category(row: Mapping[str, Any], column: SemanticBudgetColumn) -> Optional[Dict[str, Any]]:
    amount = parse_number(column.key, _first(row, (column.key, column.key.lower())), 0.0)
    if not amount or amount <= 0:
        return None

    parameters: Dict[str, float] = {}
    rate_name: Optional[str] = None
    for parameter, header, default in column.parameters:
        value = parse_number(header, row.get(header), default)
        if value is None:
            rate_name = parameter
            continue
        parameters[parameter] = value

    if rate_name is not None:
        quantity = 1.0
        for value in parameters.values():
            quantity *= value
        parameters[rate_name] = amount / quantity if quantity else 0.0
        if not quantity:
            LOGGER.warning("%s quantities multiply to zero; derived amount will be 0", column.key)

    payload: Dict[str, Any] = {
        "category": column.key,
        "type": column.budget_type.value,
        "amount": amount,
        "description": _text(row.get(f"{column.key} Description")),
        "notes": _text(row.get(f"{column.key} Notes")),
    }
    payload.update(parameters)
    return payload


def _generic_categories(row: Mapping[str, Any]) -> List[Dict[str, Any]]:
    categories: List[Dict[str, Any]] = []
    for slot in range(1, GENERIC_CATEGORY_SLOTS + 1):
        label = _first(row, (f"Category {slot}", f"category{slot}"))
        raw_amount = _first(row, (f"Amount {slot}", f"amount{slot}"))
        if label is None or raw_amount is None:
            continue
        amount = parse_number(f"Amount {slot}", raw_amount, 0.0)
        if not amount or amount <= 0:
            continue
        categories.append(
            {
                "category": _text(label),
                "type": BudgetType.OTHER.value,
                "amount": amount,
                "description": _text(_first(row, (f"Description {slot}", f"description{slot}"))),
            }
        )
    return categories


def normalize_grant_row(row: Mapping[str, Any]) -> Optional[Grant]:
    """Build a grant with its budget from one structured row.

    Returns ``None`` when title, agency or number is missing. Invalid
    numbers or statuses raise ``ValidationError``.
    """

    title = _text(_first(row, TITLE_COLUMNS))
    agency = _text(_first(row, AGENCY_COLUMNS))
    number = _text(_first(row, NUMBER_COLUMNS))
    if not (title and agency and number):
        return None

    payloads = [
        category
        for category in (_semantic_category(row, column) for column in SEMANTIC_BUDGET_COLUMNS)
        if category is not None
    ]
    payloads.extend(_generic_categories(row))

    return Grant.from_dict(
        {
            "title": title,
            "agency": agency,
            "number": number,
            "totalAmount": parse_number("Total Amount", _first(row, TOTAL_COLUMNS), 0.0),
            "startDate": normalize_date(_first(row, START_COLUMNS)),
            "endDate": normalize_date(_first(row, END_COLUMNS)),
            "description": _text(_first(row, DESCRIPTION_COLUMNS)),
            "status": GrantStatus.from_str(_first(row, STATUS_COLUMNS) or GrantStatus.ACTIVE),
            "budgetCategories": [BudgetCategory.from_dict(payload, assign_id=True) for payload in payloads],
        }
    )


@dataclass(slots=True)
class _ImportTally:
    created: List[Grant] = field(default_factory=list)
    skipped: List[Tuple[int, str]] = field(default_factory=list)


def import_grants_from_excel(store: LedgerStore, path: Path | str) -> ImportResult:
    """Create one grant per spreadsheet row and report what was created.

    Sheet row numbers in log messages count the header as row 1.
    """

    try:
        rows = read_rows(path)
    except ImportSourceError as error:
        LOGGER.error("Grant import from %s failed: %s", path, error)
        return ImportResult(success=False, error=str(error))
    if not rows:
        return ImportResult(success=False, error="No data found in spreadsheet")

    tally = _ImportTally()
    for row_number, row in enumerate(rows, start=2):
        try:
            grant = normalize_grant_row(row)
            if grant is None:
                tally.skipped.append((row_number, "missing title, agency or number"))
                LOGGER.warning("Skipping row %s: missing title, agency or number", row_number)
                continue
            store.enforce_budget_policy(grant)
        except ValidationError as error:
            tally.skipped.append((row_number, str(error)))
            LOGGER.warning("Skipping row %s: %s", row_number, error)
            continue
        tally.created.append(grant)

    if tally.created:
        store.add_grants(tally.created)
    categories_count = sum(len(grant.budget_categories) for grant in tally.created)
    LOGGER.info(
        "Grant import from %s completed - %s grants, %s categories, %s rows skipped",
        path,
        len(tally.created),
        categories_count,
        len(tally.skipped),
    )
    return ImportResult(
        success=True,
        grants_count=len(tally.created),
        categories_count=categories_count,
        skipped_count=len(tally.skipped),
    )
