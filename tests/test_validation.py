from datetime import date
from decimal import Decimal

import pytest

from errors import DuplicateName, ValidationFailed
from models import Category
from validation import (
    expense_field_errors,
    find_duplicate_category,
    validate_category_name,
    validate_expense,
)


def _categories() -> list[Category]:
    return [
        Category(id="c1", user_id="u1", name="Travel", icon="✈️"),
        Category(id="c2", user_id="u1", name="Food & Dining", icon="🍔"),
    ]


def test_category_name_differing_only_in_case_is_duplicate() -> None:
    with pytest.raises(DuplicateName):
        validate_category_name("travel", _categories())


def test_category_name_with_surrounding_whitespace_is_duplicate() -> None:
    with pytest.raises(DuplicateName):
        validate_category_name("  FOOD & DINING ", _categories())


def test_editing_category_may_change_own_casing() -> None:
    validate_category_name("TRAVEL", _categories(), excluding_id="c1")


def test_editing_category_into_another_name_is_duplicate() -> None:
    with pytest.raises(DuplicateName):
        validate_category_name("travel", _categories(), excluding_id="c2")


def test_new_category_name_is_accepted() -> None:
    validate_category_name("Housing", _categories())
    assert find_duplicate_category("Housing", _categories()) is None


def test_valid_expense_has_no_field_errors() -> None:
    assert expense_field_errors(50000, None, "Food & Dining", "2024-03-01") == []

    expense = validate_expense("12.50", "Lunch", "Food & Dining", date(2024, 3, 1))
    assert expense.amount == Decimal("12.50")
    assert expense.date == date(2024, 3, 1)


@pytest.mark.parametrize("amount", [0, -5, None, "abc"])
def test_expense_amount_must_be_positive_number(amount) -> None:
    errors = expense_field_errors(amount, None, "Food & Dining", "2024-03-01")
    assert [err.field for err in errors] == ["amount"]


@pytest.mark.parametrize("amount", [Decimal("0.005"), Decimal("1e15"), "1234567890123456.789"])
def test_any_positive_expense_amount_is_accepted(amount) -> None:
    assert expense_field_errors(amount, None, "Other", date(2024, 1, 1)) == []
    assert validate_expense(amount, None, "Other", date(2024, 1, 1)).amount == Decimal(amount)


@pytest.mark.parametrize("value", ["", "2024-02-30", None, "yesterday"])
def test_expense_date_must_be_calendar_date(value) -> None:
    errors = expense_field_errors(100, None, "Food & Dining", value)
    assert [err.field for err in errors] == ["date"]


def test_expense_category_must_not_be_blank() -> None:
    errors = expense_field_errors(100, None, "   ", "2024-03-01")
    assert [err.field for err in errors] == ["category"]


def test_validate_expense_collects_all_field_errors() -> None:
    with pytest.raises(ValidationFailed) as excinfo:
        validate_expense(-1, None, "", "")

    fields = {err.field for err in excinfo.value.field_errors}
    assert fields == {"amount", "category", "date"}
