"""Mini README: Budget category amount derivation.

Structure:
    * BudgetType - enumerates the supported budget category variants.
    * PARAMETERS_BY_TYPE - the rate/quantity parameters each variant accepts.
    * compute - pure function returning the amount for a type and parameters.

Salary, tuition and travel categories are derived from their parameters and
never trust a caller supplied amount. Flat categories (materials,
publication, indirect, other) pass their amount straight through. Missing
inputs count as zero; negative or non-numeric inputs raise
``ValidationError``.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

from ..exceptions import ValidationError


class BudgetType(str, Enum):
    """Enumerate the budget category variants."""

    PI_SALARY = "pi_salary"
    STUDENT_SALARY = "student_salary"
    TRAVEL = "travel"
    MATERIALS = "materials"
    PUBLICATION = "publication"
    TUITION = "tuition"
    INDIRECT = "indirect"
    OTHER = "other"

    @classmethod
    def from_str(cls, value: object) -> "BudgetType":
        """Coerce arbitrary casing into a valid budget type."""

        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as error:
            raise ValidationError(f"Unsupported budget category type: {value}") from error

    @property
    def is_derived(self) -> bool:
        """Whether the amount is calculated from parameters."""

        return bool(PARAMETERS_BY_TYPE[self])


PARAMETERS_BY_TYPE: Dict[BudgetType, Tuple[str, ...]] = {
    BudgetType.PI_SALARY: ("monthly_rate", "number_of_months"),
    BudgetType.STUDENT_SALARY: ("monthly_rate", "number_of_months", "number_of_students"),
    BudgetType.TUITION: ("yearly_rate", "number_of_years", "number_of_students"),
    BudgetType.TRAVEL: ("cost_per_trip", "number_of_trips"),
    BudgetType.MATERIALS: (),
    BudgetType.PUBLICATION: (),
    BudgetType.INDIRECT: (),
    BudgetType.OTHER: (),
}

ALL_PARAMETERS: Tuple[str, ...] = (
    "monthly_rate",
    "number_of_months",
    "number_of_students",
    "yearly_rate",
    "number_of_years",
    "number_of_trips",
    "cost_per_trip",
)


def coerce_non_negative(name: str, value: object) -> float:
    """Return ``value`` as a float, treating blanks as zero and rejecting negatives."""

    if value is None or (isinstance(value, str) and not value.strip()):
        return 0.0
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as error:
        raise ValidationError(f"{name} must be a number, got {value!r}") from error
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{name} must be a finite number, got {value!r}")
    if number < 0:
        raise ValidationError(f"{name} cannot be negative, got {number}")
    return number


def compute(
    budget_type: BudgetType | str,
    params: Optional[Mapping[str, object]] = None,
    amount: object = None,
) -> float:
    """Return the amount for ``budget_type`` given its parameters.

    ``amount`` is only consulted for flat types. Parameters not used by the
    type are ignored, but still validated so a negative rate never slips
    through on a category that later changes type.
    """

    kind = BudgetType.from_str(budget_type)
    params = params or {}
    values = {name: coerce_non_negative(name, params.get(name)) for name in ALL_PARAMETERS}

    if kind is BudgetType.PI_SALARY:
        return values["monthly_rate"] * values["number_of_months"]
    if kind is BudgetType.STUDENT_SALARY:
        return values["monthly_rate"] * values["number_of_months"] * values["number_of_students"]
    if kind is BudgetType.TUITION:
        return values["yearly_rate"] * values["number_of_years"] * values["number_of_students"]
    if kind is BudgetType.TRAVEL:
        return values["cost_per_trip"] * values["number_of_trips"]
    return coerce_non_negative("amount", amount)
