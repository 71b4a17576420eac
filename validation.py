from __future__ import annotations

from typing import Any, Iterable, Optional

from pydantic import ValidationError

from errors import DuplicateName, FieldError, ValidationFailed
from models import Category
from schemas import ExpenseIn

_FIELD_MESSAGES = {
    "amount": "Amount must be a positive number",
    "category": "Category is required",
    "date": "Date must be a valid calendar date",
    "description": "Description is too long",
}


def _normalize_name(name: str) -> str:
    return name.strip().casefold()


def find_duplicate_category(
    candidate_name: str,
    existing: Iterable[Category],
    excluding_id: Optional[str] = None,
) -> Optional[Category]:
    needle = _normalize_name(candidate_name)
    for category in existing:
        if excluding_id is not None and category.id == excluding_id:
            continue
        if _normalize_name(category.name) == needle:
            return category
    return None


def validate_category_name(
    candidate_name: str,
    existing: Iterable[Category],
    excluding_id: Optional[str] = None,
) -> None:
    """Reject a name that already exists for the owner, ignoring case.

    ``excluding_id`` is the category being edited, so renaming a category to a
    different casing of its own name is allowed.
    """
    duplicate = find_duplicate_category(candidate_name, existing, excluding_id)
    if duplicate is not None:
        raise DuplicateName(
            "A category with this name already exists. Please choose a different name."
        )


def expense_field_errors(
    amount: Any, description: Any, category: Any, date: Any
) -> list[FieldError]:
    try:
        ExpenseIn(amount=amount, description=description, category=category, date=date)
    except ValidationError as exc:
        return _field_errors(exc)
    return []


def validate_expense(amount: Any, description: Any, category: Any, date: Any) -> ExpenseIn:
    try:
        return ExpenseIn(
            amount=amount, description=description, category=category, date=date
        )
    except ValidationError as exc:
        raise ValidationFailed(
            "Invalid expense", field_errors=_field_errors(exc)
        ) from exc


def _field_errors(exc: ValidationError) -> list[FieldError]:
    errors: list[FieldError] = []
    seen: set[str] = set()
    for err in exc.errors():
        field = str(err["loc"][0]) if err.get("loc") else "__root__"
        if field in seen:
            continue
        seen.add(field)
        errors.append(FieldError(field, _FIELD_MESSAGES.get(field, err["msg"])))
    return errors
