"""Seed the default expense categories for one user.

Usage:
  python seed_categories.py <user_id>
"""

from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from config import get_settings
from database import session_scope
from seeding import CategorySeeder
from store import SQLCategoryStore


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Seed default expense categories")
    p.add_argument("user_id", help="Id of the user to seed categories for")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=get_settings().log_level)

    print(f"Seeding categories for user: {args.user_id}")
    with session_scope() as session:
        seeder = CategorySeeder(SQLCategoryStore(session))
        result = seeder.seed(args.user_id)

    if not result.success:
        print(f"Error seeding categories: {result.error}")
        return 1
    if result.added == 0:
        print("All default categories already exist")
        return 0

    icons = dict(seeder.defaults)
    print(f"Successfully added {result.added} categories:")
    for name in result.names:
        print(f"  - {name} {icons.get(name, '')}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
