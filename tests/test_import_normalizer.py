"""Mini README: Tests for spreadsheet ingestion.

Structure:
    * flat budget import: amount cleaning, column and category mapping.
    * structured grant import from real ``.xlsx`` and ``.csv`` files with
      skipped rows, derived categories and top-level failures.
    * date normalisation for serials, date cells and strings.
"""

from __future__ import annotations

import csv
from datetime import date, datetime
from pathlib import Path
from typing import Any, List, Sequence

import openpyxl
import pytest

from grantledger.configuration import BudgetPolicy
from grantledger.exceptions import ImportSourceError, ValidationError
from grantledger.finance import BudgetType, LedgerStore
from grantledger.ingestion import (
    ColumnMapping,
    available_columns,
    distinct_category_values,
    import_budget_file,
    import_grants_from_excel,
    normalize_category_rows,
    normalize_date,
    parse_amount,
    preview_category_rows,
    read_rows,
)


def _write_workbook(path: Path, header: Sequence[str], rows: Sequence[Sequence[Any]]) -> Path:
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.append(list(header))
    for row in rows:
        sheet.append(list(row))
    workbook.save(path)
    return path


def _write_csv(path: Path, header: Sequence[str], rows: Sequence[Sequence[Any]]) -> Path:
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(header)
        writer.writerows(rows)
    return path


@pytest.fixture()
def store(tmp_path: Path) -> LedgerStore:
    return LedgerStore(tmp_path / "grants-data.json")


BUDGET_ROWS: List[dict] = [
    {"Item": "Postdoc", "Cost": "$45,000.00", "Kind": "Salaries"},
    {"Item": "Microscope", "Cost": "12000", "Kind": "Capital"},
    {"Item": "Refund", "Cost": "-300", "Kind": "Capital"},
    {"Item": "Blank", "Cost": "", "Kind": "Misc"},
    {"Item": "Conference", "Cost": "USD 1,500.5", "Kind": "Trips"},
]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("$1,234.50", 1234.5), ("", 0.0), ("n/a", 0.0), (None, 0.0), (250, 250.0), ("12.5.3", 12.5)],
)
def test_parse_amount_strips_currency_noise(raw: Any, expected: float) -> None:
    assert parse_amount(raw) == pytest.approx(expected)


def test_flat_import_maps_columns_and_categories() -> None:
    categories = normalize_category_rows(
        BUDGET_ROWS,
        {"description": "Item", "amount": "Cost", "category": "Kind"},
        {"Salaries": "Personnel", "Capital": "Equipment"},
    )

    assert [(c.description, c.amount, c.category) for c in categories] == [
        ("Postdoc", 45000.0, "Personnel"),
        ("Microscope", 12000.0, "Equipment"),
        ("Conference", 1500.5, "Other"),
    ]
    assert all(category.budget_type is BudgetType.OTHER for category in categories)


def test_flat_import_defaults_without_category_or_description_columns() -> None:
    categories = normalize_category_rows(BUDGET_ROWS, ColumnMapping(amount="Cost"))

    assert {category.category for category in categories} == {"Other"}
    assert {category.description for category in categories} == {""}
    assert len(categories) == 3


def test_flat_import_requires_amount_and_valid_targets() -> None:
    with pytest.raises(ValidationError):
        normalize_category_rows(BUDGET_ROWS, {"description": "Item", "amount": ""})
    with pytest.raises(ValidationError):
        normalize_category_rows(BUDGET_ROWS, {"amount": "Cost", "category": "Kind"}, {"Salaries": "Payroll"})


def test_mapping_helpers_list_columns_values_and_preview() -> None:
    assert available_columns(BUDGET_ROWS) == ["Item", "Cost", "Kind"]
    assert distinct_category_values(BUDGET_ROWS, "Kind") == ["Salaries", "Capital", "Misc", "Trips"]
    preview = preview_category_rows(BUDGET_ROWS, {"amount": "Cost", "category": "Kind"}, {"Trips": "Travel"})
    assert len(preview) == 5
    assert preview[2]["amount"] == pytest.approx(-300)
    assert preview[4]["category"] == "Travel"


def test_import_budget_file_replaces_grant_budget(store: LedgerStore, tmp_path: Path) -> None:
    grant = store.create_grant(
        {
            "title": "Soil carbon",
            "agency": "USDA",
            "number": "2025-1",
            "totalAmount": 57000,
            "budgetCategories": [{"category": "Old", "type": "other", "amount": 57000}],
        }
    )
    source = _write_workbook(
        tmp_path / "budget.xlsx",
        ["Item", "Cost", "Kind"],
        [["Postdoc", 45000, "Salaries"], ["Microscope", "$12,000", "Capital"], [None, None, None]],
    )

    imported = import_budget_file(
        store,
        grant.grant_id,
        source,
        {"description": "Item", "amount": "Cost", "category": "Kind"},
        {"Salaries": "Personnel", "Capital": "Equipment"},
    )

    assert [category.category for category in store.get_budget(grant.grant_id)] == ["Personnel", "Equipment"]
    assert sum(category.amount for category in imported) == pytest.approx(57000)


GRANT_HEADER = [
    "Grant Title",
    "Agency",
    "Grant Number",
    "Total Amount",
    "Start Date",
    "End Date",
    "Status",
    "PI Summer Salary",
    "PI Monthly Rate",
    "PI Months",
    "Travel",
    "Number of Trips",
    "Materials",
    "Category 1",
    "Amount 1",
]


def test_structured_import_creates_grants_and_skips_bad_rows(store: LedgerStore, tmp_path: Path) -> None:
    source = _write_workbook(
        tmp_path / "grants.xlsx",
        GRANT_HEADER,
        [
            ["Reef resilience", "NSF", "OCE-1", 37000, date(2025, 1, 1), 45838, "Active",
             30000, 10000, 3, 2000, 2, None, "Equipment", 5000],
            [None, "NIH", "R01-2", 1000, None, None, None, None, None, None, None, None, None, None, None],
            ["Broken numbers", "DOE", "DE-3", 100, None, None, None, None, None, None, None, None, "lots", None, None],
            ["Seed grant", "Internal", "SG-4", 0, "03/15/2025", "not a date", "completed",
             None, None, None, None, None, None, None, None],
        ],
    )

    result = import_grants_from_excel(store, source)

    assert result.success
    assert (result.grants_count, result.categories_count, result.skipped_count) == (2, 3, 2)
    assert result.as_dict() == {"success": True, "grantsCount": 2, "categoriesCount": 3, "skippedCount": 2}

    reef, seed = store.get_all()
    assert reef.start_date == "2025-01-01"
    assert reef.end_date == "2025-06-30"
    categories = {category.category: category for category in reef.budget_categories}
    assert categories["PI Summer Salary"].budget_type is BudgetType.PI_SALARY
    assert categories["PI Summer Salary"].amount == pytest.approx(30000)
    assert categories["Travel"].parameters == {"number_of_trips": 2.0, "cost_per_trip": 1000.0}
    assert categories["Travel"].amount == pytest.approx(2000)
    assert categories["Equipment"].budget_type is BudgetType.OTHER
    assert seed.start_date == "2025-03-15"
    assert seed.end_date == "not a date"
    assert seed.status.value == "Completed"
    assert seed.budget_categories == []


def test_structured_import_derives_rate_when_missing(store: LedgerStore, tmp_path: Path) -> None:
    source = _write_csv(
        tmp_path / "grants.csv",
        ["Title", "Agency", "Number", "Amount", "Student Summer Salary", "Number of Students", "Tuition",
         "Tuition Per Year", "Tuition Years"],
        [["Ocean robotics", "ONR", "N000", "54000", "18000", "2", "36000", "18000", "2"]],
    )

    result = import_grants_from_excel(store, source)

    assert result.grants_count == 1
    [grant] = store.get_all()
    student, tuition = grant.budget_categories
    assert student.parameters == {"monthly_rate": 3000.0, "number_of_months": 3.0, "number_of_students": 2.0}
    assert student.amount == pytest.approx(18000)
    assert tuition.amount == pytest.approx(36000)
    assert grant.allocated_amount == pytest.approx(grant.total_amount)


def test_structured_import_applies_strict_policy_per_row(tmp_path: Path) -> None:
    store = LedgerStore(tmp_path / "grants-data.json", budget_policy=BudgetPolicy.STRICT)
    source = _write_workbook(
        tmp_path / "grants.xlsx",
        ["Title", "Agency", "Number", "Total Amount", "Materials"],
        [["Balanced", "NSF", "1", 500, 500], ["Unbalanced", "NSF", "2", 900, 500]],
    )

    result = import_grants_from_excel(store, source)

    assert (result.grants_count, result.skipped_count) == (1, 1)
    assert [grant.title for grant in store.get_all()] == ["Balanced"]


def test_structured_import_reports_unreadable_source_without_commit(store: LedgerStore, tmp_path: Path) -> None:
    corrupt = tmp_path / "corrupt.xlsx"
    corrupt.write_bytes(b"definitely not a zip archive")

    missing = import_grants_from_excel(store, tmp_path / "missing.xlsx")
    broken = import_grants_from_excel(store, corrupt)
    empty = import_grants_from_excel(store, _write_workbook(tmp_path / "empty.xlsx", GRANT_HEADER, []))

    for result in (missing, broken, empty):
        assert not result.success
        assert result.error
        assert result.as_dict()["success"] is False
    assert store.get_all() == []


def test_read_rows_rejects_unsupported_formats(tmp_path: Path) -> None:
    source = tmp_path / "grants.ods"
    source.write_text("irrelevant", encoding="utf-8")

    with pytest.raises(ImportSourceError):
        read_rows(source)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (45658, "2025-01-01"),
        ("45658", "2025-01-01"),
        (datetime(2025, 2, 3, 14, 30), "2025-02-03"),
        (date(2025, 2, 3), "2025-02-03"),
        ("2025-02-03T10:00:00Z", "2025-02-03"),
        ("2/3/2025", "2025-02-03"),
        ("March 4, 2025", "2025-03-04"),
        ("someday", "someday"),
        (None, ""),
    ],
)
def test_normalize_date(raw: Any, expected: str) -> None:
    assert normalize_date(raw) == expected
