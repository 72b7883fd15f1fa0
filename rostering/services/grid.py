"""Working roster state: shift code per (employee, date)."""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import date
from typing import Dict, List, Mapping, Optional, Tuple

from rostering.constants import is_work_shift


class RosterGrid:
    """
    Shift codes placed so far, including history days before the month.

    Only cells that have been decided (or inherited) are present; a missing
    cell means "not known yet" and never counts as a working day.
    """

    def __init__(self, cells: Optional[Mapping[Tuple[int, date], str]] = None):
        self._by_day: Dict[date, Dict[int, str]] = defaultdict(dict)
        for (emp_id, day), code in (cells or {}).items():
            self.set(emp_id, day, code)

    def get(self, emp_id: int, day: date) -> Optional[str]:
        return self._by_day.get(day, {}).get(emp_id)

    def set(self, emp_id: int, day: date, code: Optional[str]) -> None:
        if code is None:
            self._by_day.get(day, {}).pop(emp_id, None)
        else:
            self._by_day[day][emp_id] = code

    def is_working(self, emp_id: int, day: date) -> bool:
        return is_work_shift(self.get(emp_id, day))

    def assigned(self, day: date, code: str) -> List[int]:
        """Employees holding ``code`` on ``day``, ascending id."""
        return sorted(e for e, c in self._by_day.get(day, {}).items() if c == code)

    def counts(self, day: date) -> Counter:
        return Counter(c for c in self._by_day.get(day, {}).values() if is_work_shift(c))
