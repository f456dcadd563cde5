"""
Query interface the analytics core consumes.

A source returns transactions for an account within a time window, and
per-category totals for a symbolic time range. Windows may be an explicit
TimeWindow or a relative label such as "6 months"; the source interprets it.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Protocol, Union

from dateutil.relativedelta import relativedelta

from app.models.transaction import Transaction

TIME_RANGE_MONTHS: Dict[str, int] = {
    "1 month": 1,
    "3 months": 3,
    "6 months": 6,
    "1 year": 12,
}


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime


Window = Union[TimeWindow, str]


class TransactionSource(Protocol):
    def get_transactions(self, account_id: str, window: Window) -> List[Transaction]:
        ...

    def get_category_totals(self, account_id: str, time_range: str) -> Dict[str, float]:
        ...


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching the stored timestamps."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are taken as UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def months_in(time_range: str) -> int:
    """Month count for a time-range label; unrecognized labels count as one month."""
    return TIME_RANGE_MONTHS.get(time_range, 1)


def resolve_window(window: Window, now: datetime) -> TimeWindow:
    if isinstance(window, TimeWindow):
        return window
    return TimeWindow(start=now - relativedelta(months=months_in(window)), end=now)
