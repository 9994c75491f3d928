from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def month_key(day: date) -> str:
    return day.strftime("%Y-%m")


def today_local() -> date:
    return datetime.now(ZoneInfo(get_settings().timezone)).date()


def current_month(today: Optional[date] = None) -> str:
    return month_key(today or today_local())


def month_label(key: str) -> str:
    """Human label for a ``YYYY-MM`` key, e.g. ``"May 2024"``."""
    return datetime.strptime(key, "%Y-%m").strftime("%b %Y")


def resolve_period(
    period: Optional[str],
    start: Optional[str],
    end: Optional[str],
    *,
    today: Optional[date] = None,
) -> Period:
    today = today or today_local()
    if not period or period == "all":
        return Period("all", date(1970, 1, 1), today)
    if period == "last_month":
        first_this = today.replace(day=1)
        last_month_end = first_this - date.resolution
        last_month_start = last_month_end.replace(day=1)
        return Period("last_month", last_month_start, last_month_end)
    if period == "custom":
        if not start or not end:
            raise ValueError("Custom period requires start and end dates")
        start_date = date.fromisoformat(start)
        end_date = date.fromisoformat(end)
        if start_date > end_date:
            raise ValueError("Start date must be before end date")
        return Period("custom", start_date, end_date)
    if period != "this_month":
        raise ValueError(f"Unknown period: {period}")

    first = today.replace(day=1)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    end_this = next_month - date.resolution
    return Period("this_month", first, end_this)
