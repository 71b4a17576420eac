from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from auth import SessionState
from errors import ExpenseTrackerError
from schemas import CategoryIn
from store import CategoryStore

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES: tuple[tuple[str, str], ...] = (
    ("Food & Dining", "🍔"),
    ("Transportation", "🚗"),
    ("Shopping", "🛍️"),
    ("Entertainment", "🎬"),
    ("Bills & Utilities", "💡"),
    ("Healthcare", "💊"),
    ("Education", "📚"),
    ("Travel", "✈️"),
    ("Groceries", "🛒"),
    ("Housing", "🏠"),
    ("Insurance", "🛡️"),
    ("Personal Care", "💅"),
    ("Subscriptions", "📱"),
    ("Gifts & Donations", "🎁"),
    ("Business", "💼"),
    ("Other", "📊"),
)


@dataclass(frozen=True)
class SeedResult:
    success: bool
    added: int = 0
    error: Optional[str] = None
    names: tuple[str, ...] = ()


class CategorySeeder:
    def __init__(
        self,
        store: CategoryStore,
        session_state: Optional[SessionState] = None,
        defaults: tuple[tuple[str, str], ...] = DEFAULT_CATEGORIES,
    ) -> None:
        self.store = store
        self.session_state = session_state or SessionState()
        self.defaults = defaults

    def missing_defaults(self, existing_names: set[str]) -> list[CategoryIn]:
        # Case-insensitive, same as validation.validate_category_name.
        taken = {name.strip().casefold() for name in existing_names}
        return [
            CategoryIn(name=name, icon=icon)
            for name, icon in self.defaults
            if name.casefold() not in taken
        ]

    def seed(self, owner: Optional[str]) -> SeedResult:
        logger.info("seed_categories: user_id=%s", owner)
        try:
            existing = {category.name for category in self.store.list(owner)}
            to_insert = self.missing_defaults(existing)
            if not to_insert:
                logger.info("seed_categories: all default categories already exist")
                return SeedResult(success=True, added=0)

            self.store.create_many(owner, to_insert)
        except ExpenseTrackerError as exc:
            logger.error("seed_categories_failed: user_id=%s error=%s", owner, exc)
            return SeedResult(success=False, error=exc.message)

        names = tuple(item.name for item in to_insert)
        logger.info("seed_categories: user_id=%s added=%d", owner, len(names))
        return SeedResult(success=True, added=len(names), names=names)

    def seed_categories_for_current_user(self) -> SeedResult:
        owner = self.session_state.current_owner()
        if not owner:
            logger.error("seed_categories: no authenticated user found")
            return SeedResult(success=False, error="No authenticated user")
        return self.seed(owner)
