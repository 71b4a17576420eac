"""Derived views over in-memory expense and category collections.

Everything here is pure: callers pass in the collections they already hold
and get new lists back. Currency sums use ``Decimal`` throughout.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence, Union

from models import DEFAULT_CATEGORY_ICON, Category, Expense
from periods import DateRange, month_bounds, resolve_date_range

UNKNOWN_CATEGORY_LABEL = "Unknown category"
_CENT = Decimal("0.01")


@dataclass
class ExpenseFilters:
    search_term: Optional[str] = None
    category: Optional[str] = None
    date_range: Union[DateRange, str, None] = DateRange.all


@dataclass(frozen=True)
class CategoryTotal:
    name: str
    icon: str
    total: Decimal


@dataclass(frozen=True)
class DayTotal:
    day: date
    total: Decimal


@dataclass(frozen=True)
class ExpenseSummary:
    total: Decimal
    count: int
    average: Decimal


@dataclass(frozen=True)
class LabelledExpense:
    expense: Expense
    category_icon: str
    category_known: bool

    @property
    def category_label(self) -> str:
        return self.expense.category if self.category_known else UNKNOWN_CATEGORY_LABEL


@dataclass(frozen=True)
class MonthOverview:
    year: int
    month: int
    summary: ExpenseSummary
    by_category: list[CategoryTotal]
    by_day: list[DayTotal]
    active_categories: int


def _amount(expense: Expense) -> Decimal:
    value = expense.amount
    return value if isinstance(value, Decimal) else Decimal(str(value))


def filter_by_month(expenses: Iterable[Expense], year: int, month: int) -> list[Expense]:
    return [e for e in expenses if e.date.year == year and e.date.month == month]


def filter_expenses(
    expenses: Iterable[Expense],
    filters: ExpenseFilters,
    *,
    today: Optional[date] = None,
) -> list[Expense]:
    needle = (filters.search_term or "").strip().lower()
    category = filters.category if filters.category not in (None, "", "all") else None
    period = resolve_date_range(filters.date_range, today=today)

    def matches(expense: Expense) -> bool:
        if needle:
            description = (expense.description or "").lower()
            if needle not in description and needle not in expense.category.lower():
                return False
        if category is not None and expense.category != category:
            return False
        if period is not None and not period.contains(expense.date):
            return False
        return True

    return [e for e in expenses if matches(e)]


def aggregate_by_category(
    expenses: Iterable[Expense], categories: Sequence[Category]
) -> list[CategoryTotal]:
    totals: dict[str, Decimal] = {}
    for expense in expenses:
        current = totals.get(expense.category, Decimal("0"))
        totals[expense.category] = current + _amount(expense)

    result: list[CategoryTotal] = []
    for category in categories:
        total = totals.get(category.name, Decimal("0"))
        if total == 0:
            continue
        icon = category.icon or DEFAULT_CATEGORY_ICON
        result.append(CategoryTotal(category.name, icon, total))
    return result


def aggregate_by_day(
    expenses: Iterable[Expense], start: date, end: date
) -> list[DayTotal]:
    totals: dict[date, Decimal] = {}
    for expense in expenses:
        if start <= expense.date <= end:
            current = totals.get(expense.date, Decimal("0"))
            totals[expense.date] = current + _amount(expense)

    result: list[DayTotal] = []
    day = start
    while day <= end:
        total = totals.get(day, Decimal("0"))
        if total != 0:
            result.append(DayTotal(day, total))
        day += timedelta(days=1)
    return result


def summarize(expenses: Iterable[Expense]) -> ExpenseSummary:
    total = Decimal("0")
    count = 0
    for expense in expenses:
        total += _amount(expense)
        count += 1
    if count == 0:
        return ExpenseSummary(Decimal("0"), 0, Decimal("0"))
    average = (total / count).quantize(_CENT, rounding=ROUND_HALF_UP)
    return ExpenseSummary(total, count, average)


def label_expenses(
    expenses: Iterable[Expense], categories: Iterable[Category]
) -> list[LabelledExpense]:
    icons = {c.name: c.icon or DEFAULT_CATEGORY_ICON for c in categories}
    return [
        LabelledExpense(
            expense,
            icons.get(expense.category, DEFAULT_CATEGORY_ICON),
            expense.category in icons,
        )
        for expense in expenses
    ]


def month_overview(
    expenses: Iterable[Expense], categories: Sequence[Category], year: int, month: int
) -> MonthOverview:
    monthly = filter_by_month(expenses, year, month)
    start, end = month_bounds(year, month)
    by_category = aggregate_by_category(monthly, categories)
    return MonthOverview(
        year=year,
        month=month,
        summary=summarize(monthly),
        by_category=by_category,
        by_day=aggregate_by_day(monthly, start, end),
        active_categories=len(by_category),
    )
