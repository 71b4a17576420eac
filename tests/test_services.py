from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from cache import CATEGORIES, EXPENSES, CollectionCache
from database import Base, build_engine
from errors import (
    DuplicateName,
    NotFound,
    ReferentialIntegrityViolation,
    Unauthenticated,
    UnknownBackendError,
    UniqueConstraintViolation,
    ValidationFailed,
)
from models import Category, Expense, User
from schemas import CategoryIn, ExpenseIn
from services import CategoryService, DashboardService, ExpenseService
from store import SQLCategoryStore, SQLExpenseStore


def _session() -> Session:
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def _user(session: Session, email: str) -> str:
    user = User(email=email)
    session.add(user)
    session.commit()
    return user.id


class RecordingCategoryStore:
    """In-memory port that records every call made against it."""

    def __init__(self, categories=None) -> None:
        self.categories = list(categories or [])
        self.calls: list[str] = []

    def list(self, owner):
        self.calls.append("list")
        return [c for c in self.categories if c.user_id == owner]

    def create(self, owner, fields):
        self.calls.append("create")
        category = Category(
            id=f"c{len(self.categories) + 1}", user_id=owner, name=fields.name
        )
        self.categories.append(category)
        return category

    def create_many(self, owner, fields):
        return [self.create(owner, item) for item in fields]

    def update(self, category_id, owner, fields):
        self.calls.append("update")
        raise AssertionError("update should not be reached")

    def delete(self, category_id, owner):
        self.calls.append("delete")


def _expense_in(amount, category="Food & Dining", day=date(2024, 3, 1)) -> ExpenseIn:
    return ExpenseIn(amount=Decimal(str(amount)), category=category, date=day)


def test_duplicate_category_rejected_before_store_write() -> None:
    store = RecordingCategoryStore([Category(id="c1", user_id="u1", name="Travel")])
    service = CategoryService(store, "u1")

    with pytest.raises(DuplicateName):
        service.create(CategoryIn(name="travel"))

    assert store.calls == ["list"]


def test_rename_to_other_categorys_name_rejected_before_store_write() -> None:
    store = RecordingCategoryStore(
        [
            Category(id="c1", user_id="u1", name="Travel"),
            Category(id="c2", user_id="u1", name="Housing"),
        ]
    )
    service = CategoryService(store, "u1")

    with pytest.raises(DuplicateName):
        service.update("c2", CategoryIn(name="TRAVEL"))

    assert "update" not in store.calls


def test_category_names_of_other_owners_do_not_collide() -> None:
    store = RecordingCategoryStore([Category(id="c1", user_id="u2", name="Travel")])

    created = CategoryService(store, "u1").create(CategoryIn(name="Travel"))

    assert created.user_id == "u1"


def test_category_list_is_cached_until_a_mutation() -> None:
    store = RecordingCategoryStore()
    cache = CollectionCache()
    service = CategoryService(store, "u1", cache)

    service.list_all()
    service.list_all()
    assert store.calls == ["list"]

    service.create(CategoryIn(name="Housing"))
    assert cache.get(CATEGORIES, "u1") is None

    assert [c.name for c in service.list_all()] == ["Housing"]
    assert store.calls == ["list", "create", "list"]


def test_failed_mutation_keeps_cache_entry() -> None:
    store = RecordingCategoryStore([Category(id="c1", user_id="u1", name="Travel")])
    cache = CollectionCache()
    service = CategoryService(store, "u1", cache)
    service.list_all()
    version = cache.get(CATEGORIES, "u1").version

    with pytest.raises(DuplicateName):
        service.create(CategoryIn(name="TRAVEL"))

    assert cache.get(CATEGORIES, "u1").version == version


def test_cache_entries_expire_after_ttl() -> None:
    now = [100.0]
    cache = CollectionCache(ttl_secs=10, clock=lambda: now[0])
    cache.put(EXPENSES, "u1", [1, 2])

    assert cache.get(EXPENSES, "u1").items == (1, 2)
    now[0] = 111.0
    assert cache.get(EXPENSES, "u1") is None
    assert cache.put(EXPENSES, "u1", []).version == 2


def test_fetch_overtaken_by_invalidation_is_not_cached() -> None:
    cache = CollectionCache()

    def fetch_racing_a_mutation():
        cache.invalidate(EXPENSES, "u1")
        return ["stale"]

    assert cache.get_or_fetch(EXPENSES, "u1", fetch_racing_a_mutation) == ["stale"]
    assert cache.get(EXPENSES, "u1") is None
    assert cache.get_or_fetch(EXPENSES, "u1", lambda: ["fresh"]) == ["fresh"]
    assert cache.get(EXPENSES, "u1").items == ("fresh",)


def test_fetch_overtaken_by_clear_is_not_cached() -> None:
    cache = CollectionCache()

    def fetch_racing_a_clear():
        cache.clear()
        return ["stale"]

    cache.get_or_fetch(CATEGORIES, "u1", fetch_racing_a_clear)
    assert cache.get(CATEGORIES, "u1") is None


def test_services_require_an_owner() -> None:
    with _session() as session:
        with pytest.raises(Unauthenticated):
            CategoryService(SQLCategoryStore(session), None).list_all()
        with pytest.raises(Unauthenticated):
            ExpenseService(SQLExpenseStore(session), None).create(_expense_in(10))


def test_categories_are_listed_by_name_and_scoped_to_owner() -> None:
    with _session() as session:
        alice = _user(session, "alice@example.com")
        bob = _user(session, "bob@example.com")
        store = SQLCategoryStore(session)
        store.create(alice, CategoryIn(name="Travel"))
        store.create(alice, CategoryIn(name="Housing", icon="🏠"))
        store.create(bob, CategoryIn(name="Business"))

        assert [c.name for c in store.list(alice)] == ["Housing", "Travel"]
        assert [c.name for c in store.list(bob)] == ["Business"]


def test_store_unique_constraint_is_classified() -> None:
    with _session() as session:
        owner = _user(session, "alice@example.com")
        store = SQLCategoryStore(session)
        store.create(owner, CategoryIn(name="Travel"))

        with pytest.raises(UniqueConstraintViolation):
            store.create(owner, CategoryIn(name="Travel"))

        assert len(store.list(owner)) == 1


def test_write_for_unknown_owner_is_referential_violation() -> None:
    with _session() as session:
        store = SQLExpenseStore(session)

        with pytest.raises(ReferentialIntegrityViolation) as excinfo:
            store.create("ghost", _expense_in(10))

        assert excinfo.value.requires_reauthentication


def test_update_of_other_owners_row_is_not_found() -> None:
    with _session() as session:
        alice = _user(session, "alice@example.com")
        bob = _user(session, "bob@example.com")
        store = SQLExpenseStore(session)
        expense = store.create(alice, _expense_in(10))

        with pytest.raises(NotFound):
            store.update(expense.id, bob, _expense_in(20))
        with pytest.raises(NotFound):
            SQLCategoryStore(session).update("missing", alice, CategoryIn(name="X"))

        assert store.list(alice)[0].amount == Decimal("10")


def test_delete_of_missing_or_foreign_row_is_silent() -> None:
    with _session() as session:
        alice = _user(session, "alice@example.com")
        bob = _user(session, "bob@example.com")
        store = SQLExpenseStore(session)
        expense = store.create(alice, _expense_in(10))

        store.delete("missing", alice)
        store.delete(expense.id, bob)

        assert [e.id for e in store.list(alice)] == [expense.id]


def test_non_positive_amount_rejected_by_store_check() -> None:
    with _session() as session:
        owner = _user(session, "alice@example.com")
        session.add(
            Expense(user_id=owner, amount=Decimal("5"), category="Other", date=date(2024, 1, 1))
        )
        session.commit()
        store = SQLExpenseStore(session)
        expense = store.list(owner)[0]

        bad = ExpenseIn.model_construct(
            amount=Decimal("-1"), description=None, category="Other", date=date(2024, 1, 1)
        )
        with pytest.raises(ValidationFailed):
            store.update(expense.id, owner, bad)


@pytest.mark.parametrize("amount", ["0.005", "1e15"])
def test_store_keeps_amounts_outside_cent_scale(amount) -> None:
    with _session() as session:
        owner = _user(session, "alice@example.com")
        store = SQLExpenseStore(session)
        store.create(owner, _expense_in(amount))

        assert store.list(owner)[0].amount == Decimal(amount)


def test_store_read_and_delete_failures_are_classified() -> None:
    with _session() as session:
        owner = _user(session, "alice@example.com")
        Expense.__table__.drop(session.get_bind())
        store = SQLExpenseStore(session)

        with pytest.raises(UnknownBackendError) as excinfo:
            store.list(owner)
        assert "no such table" in excinfo.value.message
        with pytest.raises(UnknownBackendError):
            store.update("missing", owner, _expense_in(1))
        with pytest.raises(UnknownBackendError):
            store.delete("missing", owner)


def test_expenses_listed_newest_first() -> None:
    with _session() as session:
        owner = _user(session, "alice@example.com")
        store = SQLExpenseStore(session)
        store.create(owner, _expense_in(1, day=date(2024, 3, 1)))
        store.create(owner, _expense_in(2, day=date(2024, 3, 5)))
        store.create(owner, _expense_in(3, day=date(2024, 2, 20)))

        assert [e.date.day for e in store.list(owner)] == [5, 1, 20]


def test_dashboard_is_recomputed_after_mutation() -> None:
    with _session() as session:
        owner = _user(session, "alice@example.com")
        cache = CollectionCache()
        categories = CategoryService(SQLCategoryStore(session), owner, cache)
        expenses = ExpenseService(SQLExpenseStore(session), owner, cache)
        dashboard = DashboardService(categories, expenses)
        categories.create(CategoryIn(name="Food & Dining", icon="🍔"))
        expenses.create(_expense_in(50000, day=date(2024, 3, 1)))

        before = dashboard.month_overview(2024, 3)
        expenses.create(_expense_in(30000, day=date(2024, 3, 2)))
        after = dashboard.month_overview(2024, 3)

        assert before.summary.total == 50000
        assert after.summary.total == 80000
        assert after.summary.average == 40000
        assert [(c.name, c.total) for c in after.by_category] == [
            ("Food & Dining", Decimal("80000"))
        ]


def test_deleting_category_leaves_expenses_as_unknown() -> None:
    with _session() as session:
        owner = _user(session, "alice@example.com")
        cache = CollectionCache()
        categories = CategoryService(SQLCategoryStore(session), owner, cache)
        expenses = ExpenseService(SQLExpenseStore(session), owner, cache)
        dashboard = DashboardService(categories, expenses)
        travel = categories.create(CategoryIn(name="Travel", icon="✈️"))
        expenses.create(_expense_in(700, category="Travel"))

        categories.delete(travel.id)

        [item] = dashboard.labelled_expenses()
        assert item.expense.category == "Travel"
        assert not item.category_known
        assert dashboard.month_overview(2024, 3).by_category == []


def test_seed_defaults_refreshes_category_cache() -> None:
    with _session() as session:
        owner = _user(session, "alice@example.com")
        service = CategoryService(SQLCategoryStore(session), owner)
        assert service.list_all() == []

        result = service.seed_defaults()

        assert result.added == 16
        assert len(service.list_all()) == 16
        assert service.seed_defaults().added == 0
