"""Domain models and data access layer."""

from .models import Base, Employee, Holiday, Leave, Roster, RosterEntry, Rule, ShiftDefinition
from .repositories import (
    EmployeeRepository,
    HolidayRepository,
    LeaveRepository,
    RosterRepository,
    RuleRepository,
    ShiftRepository,
)

__all__ = [
    "Base",
    "Employee",
    "Holiday",
    "Leave",
    "Roster",
    "RosterEntry",
    "Rule",
    "ShiftDefinition",
    "EmployeeRepository",
    "HolidayRepository",
    "LeaveRepository",
    "RosterRepository",
    "RuleRepository",
    "ShiftRepository",
]
