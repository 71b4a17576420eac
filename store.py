"""Data access port and its SQLAlchemy adapter.

Every call is scoped to an owner and is a single, independently committed
operation. Database errors are translated into the error taxonomy here.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Protocol, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from errors import NotFound, Unauthenticated, backend_error_from_db, error_from_backend
from models import Category, Expense
from schemas import CategoryIn, ExpenseIn

logger = logging.getLogger(__name__)


class CategoryStore(Protocol):
    def list(self, owner: Optional[str]) -> list[Category]:
        """All categories of ``owner``, ordered by name."""
        ...

    def create(self, owner: Optional[str], fields: CategoryIn) -> Category:
        ...

    def create_many(
        self, owner: Optional[str], fields: Sequence[CategoryIn]
    ) -> list[Category]:
        """Insert several categories in one call."""
        ...

    def update(
        self, category_id: str, owner: Optional[str], fields: CategoryIn
    ) -> Category:
        ...

    def delete(self, category_id: str, owner: Optional[str]) -> None:
        ...


class ExpenseStore(Protocol):
    def list(self, owner: Optional[str]) -> list[Expense]:
        """All expenses of ``owner``, newest date first."""
        ...

    def create(self, owner: Optional[str], fields: ExpenseIn) -> Expense:
        ...

    def update(self, expense_id: str, owner: Optional[str], fields: ExpenseIn) -> Expense:
        ...

    def delete(self, expense_id: str, owner: Optional[str]) -> None:
        ...


def require_owner(owner: Optional[str]) -> str:
    if not owner:
        raise Unauthenticated("User not authenticated")
    return owner


class _SQLStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    @contextmanager
    def _translated(self) -> Iterator[None]:
        """Roll back and re-raise database errors as taxonomy errors."""
        try:
            yield
        except DBAPIError as exc:
            self.session.rollback()
            error = error_from_backend(backend_error_from_db(exc))
            logger.warning(
                "store_error: kind=%s message=%s", error.kind.value, exc.orig
            )
            raise error from exc


class SQLCategoryStore(_SQLStore):
    def list(self, owner: Optional[str]) -> list[Category]:
        owner = require_owner(owner)
        stmt = (
            select(Category)
            .where(Category.user_id == owner)
            .order_by(Category.name, Category.id)
        )
        with self._translated():
            return list(self.session.scalars(stmt).all())

    def create(self, owner: Optional[str], fields: CategoryIn) -> Category:
        owner = require_owner(owner)
        category = Category(user_id=owner, name=fields.name, icon=fields.icon)
        with self._translated():
            self.session.add(category)
            self.session.commit()
            self.session.refresh(category)
        return category

    def create_many(
        self, owner: Optional[str], fields: Sequence[CategoryIn]
    ) -> list[Category]:
        owner = require_owner(owner)
        categories = [
            Category(user_id=owner, name=item.name, icon=item.icon) for item in fields
        ]
        with self._translated():
            self.session.add_all(categories)
            self.session.commit()
        return categories

    def update(
        self, category_id: str, owner: Optional[str], fields: CategoryIn
    ) -> Category:
        owner = require_owner(owner)
        with self._translated():
            category = self.session.scalar(
                select(Category).where(
                    Category.id == category_id, Category.user_id == owner
                )
            )
            if category is None:
                raise NotFound("Category not found")
            category.name = fields.name
            category.icon = fields.icon
            self.session.commit()
            self.session.refresh(category)
        return category

    def delete(self, category_id: str, owner: Optional[str]) -> None:
        owner = require_owner(owner)
        with self._translated():
            self.session.execute(
                delete(Category).where(
                    Category.id == category_id, Category.user_id == owner
                )
            )
            self.session.commit()


class SQLExpenseStore(_SQLStore):
    def list(self, owner: Optional[str]) -> list[Expense]:
        owner = require_owner(owner)
        stmt = (
            select(Expense)
            .where(Expense.user_id == owner)
            .order_by(Expense.date.desc(), Expense.created_at.desc(), Expense.id)
        )
        with self._translated():
            return list(self.session.scalars(stmt).all())

    def create(self, owner: Optional[str], fields: ExpenseIn) -> Expense:
        owner = require_owner(owner)
        expense = Expense(
            user_id=owner,
            amount=fields.amount,
            description=fields.description or None,
            category=fields.category,
            date=fields.date,
        )
        with self._translated():
            self.session.add(expense)
            self.session.commit()
            self.session.refresh(expense)
        return expense

    def update(self, expense_id: str, owner: Optional[str], fields: ExpenseIn) -> Expense:
        owner = require_owner(owner)
        with self._translated():
            expense = self.session.scalar(
                select(Expense).where(Expense.id == expense_id, Expense.user_id == owner)
            )
            if expense is None:
                raise NotFound("Expense not found")
            expense.amount = fields.amount
            expense.description = fields.description or None
            expense.category = fields.category
            expense.date = fields.date
            self.session.commit()
            self.session.refresh(expense)
        return expense

    def delete(self, expense_id: str, owner: Optional[str]) -> None:
        owner = require_owner(owner)
        with self._translated():
            self.session.execute(
                delete(Expense).where(Expense.id == expense_id, Expense.user_id == owner)
            )
            self.session.commit()
