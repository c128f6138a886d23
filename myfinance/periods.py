"""Period selection over dated records.

Every function here takes the reference instant explicitly, so results never
depend on the wall clock. Dates are compared at day granularity.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional, Sequence, TypeVar

from dateutil.relativedelta import relativedelta

from myfinance.models import Transaction


R = TypeVar("R")

ROLLING_KINDS = ("current-month", "last-month", "last-3-months", "last-6-months", "last-year")

# Months reaching back from the reference month for the "through now" windows
_LOOKBACK_MONTHS = {
    "last-3-months": 2,
    "last-6-months": 5,
    "last-year": 11,
}


@dataclass(frozen=True)
class AllPeriods:
    pass


@dataclass(frozen=True)
class ExactMonth:
    month: int
    year: int


@dataclass(frozen=True)
class ExactYear:
    year: int


@dataclass(frozen=True)
class RollingWindow:
    kind: str


def as_day(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _record_date(record) -> date:
    return as_day(record.t_date)


def resolve_window(kind: str, now: date | datetime) -> Optional[tuple[date, date]]:
    """Inclusive ``(start, end)`` for a rolling window, or None if ``kind`` is unknown."""
    today = as_day(now)
    month_start = today.replace(day=1)

    if kind == "current-month":
        return month_start, month_start + relativedelta(months=1) - timedelta(days=1)
    if kind == "last-month":
        return month_start - relativedelta(months=1), month_start - timedelta(days=1)
    if kind in _LOOKBACK_MONTHS:
        return month_start - relativedelta(months=_LOOKBACK_MONTHS[kind]), today
    return None


def filter_by_period(
        records: Iterable[R],
        selector,
        now: date | datetime,
        date_of: Callable[[R], date] = _record_date,
) -> list[R]:
    records = list(records)

    if isinstance(selector, ExactMonth):
        return [r for r in records
                if date_of(r).month == selector.month and date_of(r).year == selector.year]
    if isinstance(selector, ExactYear):
        return [r for r in records if date_of(r).year == selector.year]
    if isinstance(selector, RollingWindow):
        window = resolve_window(selector.kind, now)
        if window is not None:
            start, end = window
            return [r for r in records if start <= as_day(date_of(r)) <= end]

    # AllPeriods and anything unrecognized
    return records


def parse_period(text: Optional[str]):
    """Turn ``all``, a rolling kind, ``YYYY-MM`` or ``YYYY`` into a selector."""
    if text is None:
        return AllPeriods()
    text = text.strip()
    if text in ("", "all"):
        return AllPeriods()
    if text in ROLLING_KINDS:
        return RollingWindow(text)

    parts = text.split("-")
    if len(parts) == 2 and all(p.isdigit() for p in parts):
        year, month = int(parts[0]), int(parts[1])
        if 1 <= month <= 12:
            return ExactMonth(month, year)
    elif len(parts) == 1 and text.isdigit():
        return ExactYear(int(text))

    # Unknown kinds keep the unfiltered fallback
    return RollingWindow(text)


def includes_card_spend(selector) -> bool:
    """Card balances are a present-moment snapshot, so only current views include them."""
    if isinstance(selector, AllPeriods):
        return True
    return isinstance(selector, RollingWindow) and selector.kind == "current-month"


def describe_period(selector) -> str:
    if isinstance(selector, ExactMonth):
        return f"{selector.year:04d}-{selector.month:02d}"
    if isinstance(selector, ExactYear):
        return str(selector.year)
    if isinstance(selector, RollingWindow) and selector.kind in ROLLING_KINDS:
        return selector.kind
    return "all"


def filter_transactions(
        transactions: Sequence[Transaction],
        search: Optional[str] = None,
        t_type: Optional[str] = None,
        category: Optional[str] = None,
) -> list[Transaction]:
    filtered = list(transactions)

    if search and search.strip():
        term = search.strip().lower()
        filtered = [t for t in filtered if term in t.name.lower()]
    if t_type and t_type != "all":
        filtered = [t for t in filtered if t.t_type == t_type]
    if category and category != "all":
        filtered = [t for t in filtered if t.category == category]

    return filtered


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def available_months(transactions: Iterable[Transaction], now: date | datetime) -> list[str]:
    months = {month_key(as_day(now))}
    months.update(month_key(t.t_date) for t in transactions)
    return sorted(months, reverse=True)
