"""Services for roster generation logic."""

from .calendar import DayInfo, MonthPeriod, resolve_period, weekday_name
from .constraints import Candidate, ConstraintEvaluator, CoverageShortfall, Violation, blocking, surfaced
from .grid import RosterGrid
from .scoring import candidate_order, surplus, workload_spread

__all__ = [
    "DayInfo",
    "MonthPeriod",
    "resolve_period",
    "weekday_name",
    "Candidate",
    "ConstraintEvaluator",
    "CoverageShortfall",
    "Violation",
    "blocking",
    "surfaced",
    "RosterGrid",
    "candidate_order",
    "surplus",
    "workload_spread",
]
