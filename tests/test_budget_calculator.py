"""Mini README: Tests for budget category amount derivation.

Structure:
    * compute scenarios for each derived type and the flat passthrough.
    * validation of negative and non-numeric inputs.
    * BudgetCategory construction and updates always recomputing amounts.
"""

from __future__ import annotations

import pytest

from grantledger.exceptions import ValidationError
from grantledger.finance import BudgetCategory, BudgetType, compute


def test_pi_salary_multiplies_rate_by_months() -> None:
    assert compute("pi_salary", {"monthly_rate": 10000, "number_of_months": 3}) == pytest.approx(30000)


def test_student_salary_includes_student_count() -> None:
    params = {"monthly_rate": 3000, "number_of_months": 3, "number_of_students": 4}
    assert compute(BudgetType.STUDENT_SALARY, params) == pytest.approx(36000)


def test_tuition_and_travel_formulas() -> None:
    tuition = {"yearly_rate": 12000, "number_of_years": 2, "number_of_students": 3}
    travel = {"cost_per_trip": 1500, "number_of_trips": 4}

    assert compute("tuition", tuition) == pytest.approx(72000)
    assert compute("travel", travel) == pytest.approx(6000)


def test_missing_parameters_default_to_zero() -> None:
    assert compute("student_salary", {"monthly_rate": 3000, "number_of_months": 3}) == 0
    assert compute("pi_salary") == 0


@pytest.mark.parametrize("budget_type", ["materials", "publication", "indirect", "other"])
def test_flat_types_pass_amount_through(budget_type: str) -> None:
    assert compute(budget_type, {"monthly_rate": 999}, amount=1250.5) == pytest.approx(1250.5)
    assert compute(budget_type) == 0


def test_compute_is_deterministic() -> None:
    params = {"monthly_rate": 4321.5, "number_of_months": 2.5}
    assert compute("pi_salary", params) == compute("pi_salary", dict(params))


def test_negative_inputs_are_rejected() -> None:
    with pytest.raises(ValidationError):
        compute("travel", {"cost_per_trip": -10, "number_of_trips": 2})
    with pytest.raises(ValidationError):
        compute("other", amount=-5)


def test_non_numeric_inputs_are_rejected() -> None:
    with pytest.raises(ValidationError):
        compute("pi_salary", {"monthly_rate": "lots", "number_of_months": 3})


def test_unknown_type_is_rejected() -> None:
    with pytest.raises(ValidationError):
        compute("equipment")


def test_category_ignores_supplied_amount_for_derived_types() -> None:
    category = BudgetCategory.from_dict(
        {"type": "pi_salary", "amount": 1, "monthlyRate": 10000, "numberOfMonths": 3}
    )

    assert category.amount == pytest.approx(30000)
    assert category.category == "PI Summer Salary"
    assert category.as_dict()["monthlyRate"] == 10000


def test_category_drops_parameters_foreign_to_its_type() -> None:
    category = BudgetCategory.from_dict(
        {"type": "travel", "costPerTrip": 500, "numberOfTrips": 2, "yearlyRate": 40000}
    )

    assert set(category.parameters) == {"cost_per_trip", "number_of_trips"}
    assert "yearlyRate" not in category.as_dict()


def test_with_updates_recomputes_after_parameter_change() -> None:
    category = BudgetCategory.from_dict(
        {
            "type": "student_salary",
            "monthlyRate": 3000,
            "numberOfMonths": 3,
            "numberOfStudents": 4,
        }
    )

    updated = category.with_updates(number_of_students=2, amount=1)

    assert updated.amount == pytest.approx(18000)
    assert updated.category_id == category.category_id
    assert category.amount == pytest.approx(36000)


def test_with_updates_rejects_negative_parameters() -> None:
    category = BudgetCategory.from_dict({"type": "travel", "costPerTrip": 100, "numberOfTrips": 1})

    with pytest.raises(ValidationError):
        category.with_updates(number_of_trips=-1)
