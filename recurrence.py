import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator, Optional

from models import MonthDayPolicy, RecurrenceUnit

# Index matches date.weekday().
WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_REGULAR_PATTERN = re.compile(
    r"every (?P<interval>\d+) (?P<unit>day|week|month|year)s?(?: on (?P<weekday>\w+))?",
    re.ASCII,
)
_MONTH_DAY_PATTERN = re.compile(
    r"every (?P<day>\d+)(?:st|nd|rd|th) of the month", re.ASCII
)
_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)

_FIXED_STEP_UNITS = (RecurrenceUnit.day, RecurrenceUnit.week)


class RecurrenceError(ValueError):
    pass


class InvalidPatternError(RecurrenceError):
    pass


class InvalidUntilDateError(RecurrenceError):
    pass


class AmbiguousMonthDayError(RecurrenceError):
    pass


@dataclass(frozen=True)
class RecurrenceRule:
    unit: RecurrenceUnit
    interval: int = 1
    day_of_week: Optional[str] = None
    day_of_month: Optional[int] = None

    def __post_init__(self) -> None:
        if self.interval < 1:
            raise InvalidPatternError("Interval must be a positive integer")
        if self.day_of_week is not None:
            if self.unit != RecurrenceUnit.week:
                raise InvalidPatternError("Weekday is only valid for weekly rules")
            if self.day_of_week not in WEEKDAYS:
                raise InvalidPatternError(f"Unknown weekday: {self.day_of_week}")
        if self.unit == RecurrenceUnit.monthday:
            if self.day_of_month is None or not 1 <= self.day_of_month <= 31:
                raise InvalidPatternError("Day of month must be between 1 and 31")
            if self.interval != 1:
                raise InvalidPatternError("Day-of-month rules always repeat monthly")
        elif self.day_of_month is not None:
            raise InvalidPatternError("Day of month is only valid for monthday rules")

    @property
    def pattern(self) -> str:
        """Canonical wire form; parse_pattern(rule.pattern) == rule."""
        if self.unit == RecurrenceUnit.monthday:
            return f"every {self.day_of_month}{ordinal_suffix(self.day_of_month)} of the month"
        text = f"every {self.interval} {self.unit.value}"
        if self.interval != 1:
            text += "s"
        if self.day_of_week:
            text += f" on {self.day_of_week}"
        return text

    @property
    def weekday_index(self) -> Optional[int]:
        if self.day_of_week is None:
            return None
        return WEEKDAYS.index(self.day_of_week)


def ordinal_suffix(number: int) -> str:
    if 10 <= number % 100 <= 20:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


def parse_pattern(pattern: str) -> RecurrenceRule:
    """Parse a recurrence pattern string.

    Accepts exactly two productions:

        every {N} day|week|month|year[s] [on {weekday}]
        every {N}{st|nd|rd|th} of the month

    The whole string has to match one of them; anything else raises
    InvalidPatternError.
    """
    if not isinstance(pattern, str):
        raise InvalidPatternError("Recurrence pattern must be a string")

    match = _REGULAR_PATTERN.fullmatch(pattern)
    if match:
        interval = int(match.group("interval"))
        if interval < 1:
            raise InvalidPatternError(f"Invalid recurrence interval in {pattern!r}")
        unit = RecurrenceUnit(match.group("unit"))
        weekday = match.group("weekday")
        if weekday is not None:
            if unit != RecurrenceUnit.week:
                raise InvalidPatternError(
                    f"Weekday clause requires a weekly pattern: {pattern!r}"
                )
            if weekday not in WEEKDAYS:
                raise InvalidPatternError(f"Unknown weekday {weekday!r} in {pattern!r}")
        return RecurrenceRule(unit=unit, interval=interval, day_of_week=weekday)

    match = _MONTH_DAY_PATTERN.fullmatch(pattern)
    if match:
        day = int(match.group("day"))
        if not 1 <= day <= 31:
            raise InvalidPatternError(f"Day of month out of range in {pattern!r}")
        return RecurrenceRule(unit=RecurrenceUnit.monthday, day_of_month=day)

    raise InvalidPatternError(f"Invalid recurring pattern: {pattern!r}")


def parse_until(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, date):
        return value
    value = value.strip()
    if not value:
        return None
    if not _ISO_DATE.fullmatch(value):
        raise InvalidUntilDateError(f"Invalid until date: {value!r}")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidUntilDateError(f"Invalid until date: {value!r}") from exc


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def _month_date(
    year: int, month: int, desired_day: int, policy: MonthDayPolicy
) -> Optional[date]:
    dim = days_in_month(year, month)
    if desired_day <= dim:
        return date(year, month, desired_day)
    if policy == MonthDayPolicy.snap_to_end:
        return date(year, month, dim)
    if policy == MonthDayPolicy.skip:
        return None
    raise AmbiguousMonthDayError(
        f"Day {desired_day} does not exist in {year:04d}-{month:02d}"
    )


def _shift_month(base: date, months: int) -> tuple[int, int]:
    total_months = base.month - 1 + months
    return base.year + total_months // 12, total_months % 12 + 1


def add_months(
    base: date,
    months: int,
    *,
    desired_day: int,
    policy: MonthDayPolicy = MonthDayPolicy.snap_to_end,
) -> Optional[date]:
    """Move ``base`` by ``months`` calendar months, landing on ``desired_day``.

    Returns None when the target month lacks the day and the policy is skip.
    """
    year, month = _shift_month(base, months)
    return _month_date(year, month, desired_day, policy)


def _months_per_step(rule: RecurrenceRule) -> int:
    if rule.unit == RecurrenceUnit.year:
        return 12 * rule.interval
    if rule.unit == RecurrenceUnit.month:
        return rule.interval
    return 1


def _desired_day(rule: RecurrenceRule, anchor: date) -> int:
    if rule.unit == RecurrenceUnit.monthday:
        return rule.day_of_month
    return anchor.day


def check_month_day(rule: RecurrenceRule, anchor: date, policy: MonthDayPolicy) -> None:
    """Reject rules whose day may be missing from some month under strict policy."""
    if policy != MonthDayPolicy.strict:
        return
    if rule.unit == RecurrenceUnit.monthday and rule.day_of_month > 28:
        raise AmbiguousMonthDayError(
            f"Day {rule.day_of_month} does not exist in every month"
        )
    if rule.unit not in (RecurrenceUnit.month, RecurrenceUnit.year):
        return
    if _months_per_step(rule) % 12 == 0:
        # Same calendar month every time; only Feb 29 can go missing.
        ambiguous = (anchor.month, anchor.day) == (2, 29)
    else:
        ambiguous = anchor.day > 28
    if ambiguous:
        raise AmbiguousMonthDayError(
            f"Anchor day {anchor.day} does not exist in every target month"
        )


def resolve_anchor(
    proposed: date,
    rule: RecurrenceRule,
    policy: MonthDayPolicy = MonthDayPolicy.snap_to_end,
) -> date:
    check_month_day(rule, proposed, policy)

    if rule.unit == RecurrenceUnit.week and rule.day_of_week:
        return proposed + timedelta(days=(rule.weekday_index - proposed.weekday()) % 7)

    if rule.unit == RecurrenceUnit.monthday:
        # Every day 1..31 exists at least once in any 12 consecutive months.
        for offset in range(13):
            candidate = add_months(
                proposed, offset, desired_day=rule.day_of_month, policy=policy
            )
            if candidate is not None and candidate >= proposed:
                return candidate
        raise AmbiguousMonthDayError(
            f"No month after {proposed.isoformat()} has day {rule.day_of_month}"
        )

    return proposed


def _fixed_step_dates(
    anchor: date, rule: RecurrenceRule, range_start: date
) -> Iterator[date]:
    # Ordinals keep huge intervals clear of timedelta/date overflow.
    step_days = rule.interval * (7 if rule.unit == RecurrenceUnit.week else 1)
    last = date.max.toordinal()
    current = anchor.toordinal()
    if rule.weekday_index is not None:
        current += (rule.weekday_index - anchor.weekday()) % 7
    if current < range_start.toordinal():
        # Phase is counted from the anchor, not the window start, so
        # overlapping windows yield the same dates.
        strides = -(-(range_start.toordinal() - current) // step_days)
        current += step_days * strides
    while current <= last:
        yield date.fromordinal(current)
        current += step_days


def _calendar_step_dates(
    anchor: date,
    rule: RecurrenceRule,
    range_start: date,
    upper: date,
    policy: MonthDayPolicy,
) -> Iterator[date]:
    per_step = _months_per_step(rule)
    desired_day = _desired_day(rule, anchor)
    step_index = 0
    if anchor < range_start:
        elapsed = (range_start.year - anchor.year) * 12 + range_start.month - anchor.month
        step_index = max(0, elapsed // per_step - 1)
    while True:
        year, month = _shift_month(anchor, step_index * per_step)
        if year > date.max.year or date(year, month, 1) > upper:
            return
        candidate = _month_date(year, month, desired_day, policy)
        step_index += 1
        if candidate is None or candidate < anchor:
            continue
        yield candidate


def occurrence_dates(
    anchor: date,
    rule: RecurrenceRule,
    range_start: date,
    range_end: date,
    *,
    until: Optional[date] = None,
    policy: MonthDayPolicy = MonthDayPolicy.snap_to_end,
) -> Iterator[date]:
    """Yield the occurrences of ``rule`` from ``anchor`` inside the window.

    The window is inclusive on both ends and ``until`` further caps it.
    Output is strictly increasing and free of duplicates.
    """
    upper = range_end if until is None else min(until, range_end)
    if upper < anchor or range_end < range_start:
        return

    if rule.unit in _FIXED_STEP_UNITS:
        candidates = _fixed_step_dates(anchor, rule, range_start)
    else:
        candidates = _calendar_step_dates(anchor, rule, range_start, upper, policy)

    seen: set[date] = set()
    for current in candidates:
        if current > upper:
            break
        if current < range_start or current in seen:
            continue
        seen.add(current)
        yield current
