import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings

_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def month_period(year: int, month: int) -> Period:
    if not 1 <= month <= 12:
        raise ValueError("Month must be between 1 and 12")
    first = date(year, month, 1)
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return Period(f"{year:04d}-{month:02d}", first, next_month - date.resolution)


def resolve_period(
    period: Optional[str],
    start: Optional[str],
    end: Optional[str],
    *,
    today: Optional[date] = None,
) -> Period:
    today = today or local_today()
    if not period or period == "all":
        return Period("all", date(1970, 1, 1), today)
    if period == "last_month":
        first_this = today.replace(day=1)
        last_month_end = first_this - date.resolution
        return Period(
            "last_month", last_month_end.replace(day=1), last_month_end
        )
    if period == "custom":
        if not start or not end:
            raise ValueError("Custom period requires start and end dates")
        if not (_ISO_DATE.fullmatch(start) and _ISO_DATE.fullmatch(end)):
            raise ValueError("Dates must use the YYYY-MM-DD format")
        try:
            start_date = date.fromisoformat(start)
            end_date = date.fromisoformat(end)
        except ValueError as exc:
            raise ValueError("Dates must use the YYYY-MM-DD format") from exc
        if start_date > end_date:
            raise ValueError("Start date must be before end date")
        return Period("custom", start_date, end_date)

    # this month
    this_month = month_period(today.year, today.month)
    return Period("this_month", this_month.start, this_month.end)
