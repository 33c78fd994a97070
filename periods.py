from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from config import get_settings
from models import TimeRange


class InvalidRange(ValueError):
    pass


@dataclass(frozen=True)
class Period:
    """Half-open date interval: ``start`` is included, ``end`` is not.

    ``end=None`` leaves the interval open to the future (all time).
    """

    slug: str
    start: date
    end: Optional[date]

    @property
    def is_open_ended(self) -> bool:
        return self.end is None

    @property
    def days(self) -> int:
        if self.end is None:
            raise ValueError("An open-ended period has no length")
        return (self.end - self.start).days

    @property
    def is_empty(self) -> bool:
        return self.end is not None and self.end <= self.start

    def contains(self, d: date) -> bool:
        if d < self.start:
            return False
        return self.end is None or d < self.end

    def is_before(self, d: date) -> bool:
        return d < self.start


@dataclass(frozen=True)
class PeriodSelector:
    time_range: TimeRange = TimeRange.month
    offset: int = 0
    custom_from: Optional[date] = None
    custom_to: Optional[date] = None

    @classmethod
    def custom(cls, start: date, end: date) -> "PeriodSelector":
        return cls(TimeRange.custom, 0, start, end)

    @classmethod
    def all_time(cls) -> "PeriodSelector":
        return cls(TimeRange.all)

    @property
    def is_navigable(self) -> bool:
        return self.time_range not in (TimeRange.all, TimeRange.custom)

    def shifted(self, step: int) -> "PeriodSelector":
        if not self.is_navigable:
            return self
        return replace(self, offset=self.offset + step)


def current_date() -> date:
    return datetime.now(ZoneInfo(get_settings().timezone)).date()


def _add_months(d: date, count: int) -> date:
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, 1)


def _resolve_day(selector: PeriodSelector, today: date, week_starts_on: int) -> Period:
    start = today + timedelta(days=selector.offset)
    return Period("day", start, start + timedelta(days=1))


def _resolve_week(selector: PeriodSelector, today: date, week_starts_on: int) -> Period:
    anchor = today + timedelta(weeks=selector.offset)
    start = anchor - timedelta(days=(anchor.weekday() - week_starts_on) % 7)
    return Period("week", start, start + timedelta(days=7))


def _resolve_month(selector: PeriodSelector, today: date, week_starts_on: int) -> Period:
    start = _add_months(today, selector.offset)
    return Period("month", start, _add_months(start, 1))


def _resolve_year(selector: PeriodSelector, today: date, week_starts_on: int) -> Period:
    year = today.year + selector.offset
    return Period("year", date(year, 1, 1), date(year + 1, 1, 1))


def _resolve_all(selector: PeriodSelector, today: date, week_starts_on: int) -> Period:
    return Period("all", date.min, None)


def _resolve_custom(selector: PeriodSelector, today: date, week_starts_on: int) -> Period:
    if selector.custom_from is None or selector.custom_to is None:
        raise ValueError("Custom period requires start and end dates")
    if selector.custom_to < selector.custom_from:
        raise InvalidRange(
            f"Custom period ends ({selector.custom_to.isoformat()}) "
            f"before it starts ({selector.custom_from.isoformat()})"
        )
    return Period(
        "custom", selector.custom_from, selector.custom_to + timedelta(days=1)
    )


_RESOLVERS: dict[TimeRange, Callable[[PeriodSelector, date, int], Period]] = {
    TimeRange.day: _resolve_day,
    TimeRange.week: _resolve_week,
    TimeRange.month: _resolve_month,
    TimeRange.year: _resolve_year,
    TimeRange.all: _resolve_all,
    TimeRange.custom: _resolve_custom,
}

_missing = set(TimeRange) - set(_RESOLVERS)
if _missing:
    raise RuntimeError(f"No period resolver for {sorted(r.value for r in _missing)}")


def resolve(
    selector: PeriodSelector,
    *,
    today: Optional[date] = None,
    week_starts_on: Optional[int] = None,
) -> Period:
    today = today or current_date()
    if week_starts_on is None:
        week_starts_on = get_settings().week_starts_on
    return _RESOLVERS[TimeRange(selector.time_range)](selector, today, week_starts_on)


def prior_period(
    selector: PeriodSelector,
    *,
    today: Optional[date] = None,
    week_starts_on: Optional[int] = None,
) -> Period:
    """Interval of equal length ending where the resolved period starts.

    All-time and custom selections have no predecessor; they get an empty
    interval anchored at their start.
    """
    period = resolve(selector, today=today, week_starts_on=week_starts_on)
    if not selector.is_navigable:
        return Period("prior", period.start, period.start)
    duration = period.end - period.start
    return Period(f"prior_{period.slug}", period.start - duration, period.start)


# Weeks always show their boundaries.
_RELATIVE_LABELS: dict[TimeRange, tuple[str, str]] = {
    TimeRange.day: ("Today", "Yesterday"),
    TimeRange.month: ("This Month", "Last Month"),
    TimeRange.year: ("This Year", "Last Year"),
}


def _short(d: date) -> str:
    return f"{d:%b} {d.day}, {d.year}"


def label(
    selector: PeriodSelector,
    *,
    today: Optional[date] = None,
    week_starts_on: Optional[int] = None,
) -> str:
    time_range = TimeRange(selector.time_range)
    if time_range == TimeRange.all:
        return "All Time"
    period = resolve(selector, today=today, week_starts_on=week_starts_on)
    if time_range == TimeRange.custom:
        return f"{_short(period.start)} - {_short(period.end - timedelta(days=1))}"

    relative = _RELATIVE_LABELS.get(time_range)
    if relative and selector.offset in (0, -1):
        return relative[-selector.offset]

    if time_range == TimeRange.day:
        return _short(period.start)
    if time_range == TimeRange.week:
        last = period.end - timedelta(days=1)
        return f"Week of {period.start:%b} {period.start.day} - {_short(last)}"
    if time_range == TimeRange.month:
        return f"{period.start:%B} {period.start.year}"
    return str(period.start.year)


def selector_from_params(
    time_range: Optional[str],
    offset: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> PeriodSelector:
    try:
        parsed_range = TimeRange(time_range) if time_range else TimeRange.month
    except ValueError:
        parsed_range = TimeRange.month

    if parsed_range == TimeRange.custom:
        if not start or not end:
            raise ValueError("Custom period requires start and end dates")
        return PeriodSelector.custom(
            date.fromisoformat(start[:10]), date.fromisoformat(end[:10])
        )
    if parsed_range == TimeRange.all:
        return PeriodSelector.all_time()
    return PeriodSelector(parsed_range, int(offset) if offset else 0)
