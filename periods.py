from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Optional, Union


class DateRange(str, Enum):
    all = "all"
    today = "today"
    week = "week"
    month = "month"


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def month_bounds(year: int, month: int) -> tuple[date, date]:
    first = date(year, month, 1)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return first, next_month - date.resolution


def resolve_date_range(
    date_range: Union[DateRange, str, None], *, today: Optional[date] = None
) -> Optional[Period]:
    """Turn a list filter into concrete bounds; ``None`` means unbounded."""
    today = today or date.today()
    slug = DateRange(date_range) if date_range else DateRange.all
    if slug is DateRange.all:
        return None
    if slug is DateRange.today:
        return Period("today", today, today)
    if slug is DateRange.week:
        return Period("week", today - timedelta(days=6), today)

    # this month
    start, end = month_bounds(today.year, today.month)
    return Period("month", start, end)
