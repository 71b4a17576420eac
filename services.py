from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from aggregations import (
    ExpenseFilters,
    LabelledExpense,
    MonthOverview,
    filter_expenses,
    label_expenses,
    month_overview,
)
from auth import SessionState
from cache import CATEGORIES, EXPENSES, CollectionCache
from errors import ExpenseTrackerError
from models import Category, Expense
from schemas import CategoryIn, ExpenseIn
from seeding import CategorySeeder, SeedResult
from store import CategoryStore, ExpenseStore, require_owner
from validation import validate_category_name

logger = logging.getLogger(__name__)


class CategoryService:
    def __init__(
        self,
        store: CategoryStore,
        owner: Optional[str],
        cache: Optional[CollectionCache] = None,
    ) -> None:
        self.store = store
        self.owner = owner
        self.cache = cache or CollectionCache()

    def list_all(self) -> list[Category]:
        owner = require_owner(self.owner)
        return self.cache.get_or_fetch(CATEGORIES, owner, lambda: self.store.list(owner))

    def create(self, data: CategoryIn) -> Category:
        validate_category_name(data.name, self.list_all())
        category = self._mutate("create", lambda: self.store.create(self.owner, data))
        logger.info("category_created: user_id=%s id=%s", self.owner, category.id)
        return category

    def update(self, category_id: str, data: CategoryIn) -> Category:
        validate_category_name(data.name, self.list_all(), excluding_id=category_id)
        category = self._mutate(
            "update", lambda: self.store.update(category_id, self.owner, data)
        )
        logger.info("category_updated: user_id=%s id=%s", self.owner, category_id)
        return category

    def delete(self, category_id: str) -> None:
        # Expenses keep their category name; they show up as unknown afterwards.
        self._mutate("delete", lambda: self.store.delete(category_id, self.owner))
        logger.info("category_deleted: user_id=%s id=%s", self.owner, category_id)

    def seed_defaults(self) -> SeedResult:
        seeder = CategorySeeder(self.store, SessionState(self.owner))
        result = seeder.seed_categories_for_current_user()
        # A failed batch may still have inserted some rows.
        if self.owner and (result.added or not result.success):
            self.cache.invalidate(CATEGORIES, self.owner)
        return result

    def _mutate(self, action: str, call):
        owner = require_owner(self.owner)
        try:
            result = call()
        except ExpenseTrackerError as exc:
            logger.warning(
                "category_%s_failed: user_id=%s kind=%s", action, owner, exc.kind.value
            )
            raise
        self.cache.invalidate(CATEGORIES, owner)
        return result


class ExpenseService:
    def __init__(
        self,
        store: ExpenseStore,
        owner: Optional[str],
        cache: Optional[CollectionCache] = None,
    ) -> None:
        self.store = store
        self.owner = owner
        self.cache = cache or CollectionCache()

    def list_all(self) -> list[Expense]:
        owner = require_owner(self.owner)
        return self.cache.get_or_fetch(EXPENSES, owner, lambda: self.store.list(owner))

    def list(
        self, filters: Optional[ExpenseFilters] = None, *, today: Optional[date] = None
    ) -> list[Expense]:
        expenses = self.list_all()
        if filters is None:
            return expenses
        return filter_expenses(expenses, filters, today=today)

    def create(self, data: ExpenseIn) -> Expense:
        expense = self._mutate("create", lambda: self.store.create(self.owner, data))
        logger.info("expense_created: user_id=%s id=%s", self.owner, expense.id)
        return expense

    def update(self, expense_id: str, data: ExpenseIn) -> Expense:
        expense = self._mutate(
            "update", lambda: self.store.update(expense_id, self.owner, data)
        )
        logger.info("expense_updated: user_id=%s id=%s", self.owner, expense_id)
        return expense

    def delete(self, expense_id: str) -> None:
        self._mutate("delete", lambda: self.store.delete(expense_id, self.owner))
        logger.info("expense_deleted: user_id=%s id=%s", self.owner, expense_id)

    def _mutate(self, action: str, call):
        owner = require_owner(self.owner)
        try:
            result = call()
        except ExpenseTrackerError as exc:
            logger.warning(
                "expense_%s_failed: user_id=%s kind=%s", action, owner, exc.kind.value
            )
            raise
        self.cache.invalidate(EXPENSES, owner)
        return result


class DashboardService:
    def __init__(self, categories: CategoryService, expenses: ExpenseService) -> None:
        self.categories = categories
        self.expenses = expenses

    def month_overview(self, year: int, month: int) -> MonthOverview:
        return month_overview(
            self.expenses.list_all(), self.categories.list_all(), year, month
        )

    def labelled_expenses(
        self, filters: Optional[ExpenseFilters] = None, *, today: Optional[date] = None
    ) -> list[LabelledExpense]:
        return label_expenses(
            self.expenses.list(filters, today=today), self.categories.list_all()
        )
