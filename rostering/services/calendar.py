"""Period resolution: days of a month with their holidays and leave coverage."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import pandas as pd

from rostering.domain.repositories import month_bounds
from rostering.domain.snapshot import HolidayRecord, LeaveRecord
from rostering.errors import InvalidConfig


@dataclass(frozen=True)
class DayInfo:
    date: date
    weekday_name: str
    holidays: Tuple[HolidayRecord, ...] = ()

    @property
    def is_weekend(self) -> bool:
        return self.weekday_name in ("Saturday", "Sunday")


def weekday_name(day: date) -> str:
    return pd.Timestamp(day).day_name()


class MonthPeriod:
    """
    Ordered days of one month plus holiday and approved-leave lookups.

    Lookups also answer for days outside the month (the trailing window used by
    rest and streak rules at the month boundary).
    """

    def __init__(
        self,
        year: int,
        month: int,
        holidays: Sequence[HolidayRecord] = (),
        leaves: Sequence[LeaveRecord] = (),
        holiday_types: Iterable[str] = ("public", "company"),
    ):
        self.year = year
        self.month = month
        self.first, self.last = month_bounds(year, month)
        self._holidays = tuple(holidays)
        self._holiday_types = frozenset(t.lower() for t in holiday_types)
        self._leaves: Dict[int, List[LeaveRecord]] = defaultdict(list)
        for leave in leaves:
            if leave.status == "approved":
                self._leaves[leave.employee_id].append(leave)
        self.days: Tuple[DayInfo, ...] = tuple(
            self._describe(ts.date(), ts.day_name())
            for ts in pd.date_range(self.first, self.last, freq="D")
        )
        self._by_date = {d.date: d for d in self.days}

    def _describe(self, day: date, name: Optional[str] = None) -> DayInfo:
        matches = tuple(h for h in self._holidays if h.falls_on(day))
        return DayInfo(date=day, weekday_name=name or weekday_name(day), holidays=matches)

    def __iter__(self) -> Iterator[DayInfo]:
        return iter(self.days)

    def __len__(self) -> int:
        return len(self.days)

    def __contains__(self, day: date) -> bool:
        return day in self._by_date

    @property
    def dates(self) -> List[date]:
        return [d.date for d in self.days]

    def day(self, day: date) -> DayInfo:
        info = self._by_date.get(day)
        return info if info is not None else self._describe(day)

    def holiday_on(self, day: date) -> Optional[HolidayRecord]:
        """First holiday of a recognized type on ``day``."""
        for holiday in self.day(day).holidays:
            if holiday.holiday_type.lower() in self._holiday_types:
                return holiday
        return None

    def leave_on(self, employee_id: int, day: date) -> Optional[LeaveRecord]:
        for leave in self._leaves.get(employee_id, ()):
            if leave.covers(day):
                return leave
        return None

    def trailing_dates(self, days: int) -> List[date]:
        """The ``days`` dates immediately before the month, oldest first."""
        return [self.first - timedelta(days=n) for n in range(days, 0, -1)]


def resolve_period(
    year: int,
    month: int,
    holidays: Sequence[HolidayRecord] = (),
    leaves: Sequence[LeaveRecord] = (),
    holiday_types: Iterable[str] = ("public", "company"),
) -> MonthPeriod:
    """Build the day list for ``year``/``month`` (month is 1-based)."""
    if isinstance(month, bool) or not isinstance(month, int) or not 1 <= month <= 12:
        raise InvalidConfig(f"Month must be in 1..12, got {month!r}")
    if isinstance(year, bool) or not isinstance(year, int) or not 1900 <= year <= 9999:
        raise InvalidConfig(f"Year must be in 1900..9999, got {year!r}")
    return MonthPeriod(year, month, holidays, leaves, holiday_types)
