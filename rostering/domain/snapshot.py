"""
Immutable copies of the reference data a generation run reads.

Everything the engine consults is read once from the stores and frozen here,
so edits made to employees, rules, holidays or leaves while a run is in
flight are never observed by it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from rostering.constants import EMPLOYEE_STATUSES, PSEUDO_SHIFTS, normalize_weekday
from rostering.errors import InvalidConfig

from .models import Employee, Holiday, Leave, Rule, ShiftDefinition
from .repositories import (
    EmployeeRepository,
    HolidayRepository,
    LeaveRepository,
    RuleRepository,
    ShiftRepository,
    month_bounds,
)


def parse_hm(value: str) -> time:
    """Parse an ``HH:MM`` string."""
    try:
        hours, minutes = [int(x) for x in str(value).split(":")]
        return time(hours, minutes)
    except (TypeError, ValueError) as e:
        raise InvalidConfig(f"Bad time of day {value!r}, expected HH:MM") from e


@dataclass(frozen=True)
class ShiftSpec:
    code: str
    start: time
    end: time
    name: str = ""
    required_skill: Optional[str] = None
    sort_order: int = 0

    @property
    def overnight(self) -> bool:
        return self.end <= self.start

    def start_on(self, day: date) -> datetime:
        return datetime.combine(day, self.start)

    def end_on(self, day: date) -> datetime:
        """End of this shift when it starts on ``day``."""
        end = datetime.combine(day, self.end)
        return end + timedelta(days=1) if self.overnight else end

    @classmethod
    def from_model(cls, row: ShiftDefinition) -> "ShiftSpec":
        return cls(
            code=row.code,
            start=parse_hm(row.start_time),
            end=parse_hm(row.end_time),
            name=row.name or "",
            required_skill=row.required_skill or None,
            sort_order=row.sort_order or 0,
        )


@dataclass(frozen=True)
class EmployeeRecord:
    employee_id: int
    name: str
    fixed_shift: str
    week_offs: frozenset = frozenset()
    skills: Tuple[str, ...] = ()
    skill_levels: Tuple[Tuple[str, str], ...] = ()
    department: Optional[str] = None
    active: bool = True

    def skill_level(self, skill: str) -> Optional[str]:
        """Level recorded for ``skill``; ``None`` when the employee lacks it."""
        if skill not in self.skills:
            return None
        return dict(self.skill_levels).get(skill, "beginner")

    @classmethod
    def from_model(cls, row: Employee) -> "EmployeeRecord":
        try:
            week_offs = frozenset(normalize_weekday(d) for d in (row.week_offs or []))
        except ValueError as e:
            raise InvalidConfig(f"Employee {row.employee_id}: {e}") from e
        if row.status not in EMPLOYEE_STATUSES:
            raise InvalidConfig(f"Employee {row.employee_id}: unknown status {row.status!r}")
        return cls(
            employee_id=int(row.employee_id),
            name=row.name,
            fixed_shift=row.fixed_shift,
            week_offs=week_offs,
            skills=tuple(row.skills or ()),
            skill_levels=tuple(sorted((row.skill_levels or {}).items())),
            department=row.department,
            active=row.status == "active",
        )


@dataclass(frozen=True)
class HolidayRecord:
    date: date
    name: str
    holiday_type: str = "public"
    recurring: bool = False

    def falls_on(self, day: date) -> bool:
        if self.recurring:
            return (self.date.month, self.date.day) == (day.month, day.day)
        return self.date == day

    @classmethod
    def from_model(cls, row: Holiday) -> "HolidayRecord":
        return cls(date=row.date, name=row.name, holiday_type=row.holiday_type, recurring=bool(row.recurring))


@dataclass(frozen=True)
class LeaveRecord:
    employee_id: int
    start_date: date
    end_date: date
    status: str = "approved"
    leave_type: str = "vacation"
    reason: Optional[str] = None

    def __post_init__(self):
        if self.start_date > self.end_date:
            raise InvalidConfig(f"Leave for employee {self.employee_id} starts after it ends")

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    @classmethod
    def from_model(cls, row: Leave) -> "LeaveRecord":
        return cls(
            employee_id=int(row.emp_id),
            start_date=row.start_date,
            end_date=row.end_date,
            status=row.status,
            leave_type=row.leave_type,
            reason=row.reason,
        )


@dataclass(frozen=True)
class RuleRecord:
    """Raw rule row; parsing into a typed rule happens in the rule registry."""

    rule_id: Any
    name: str
    rule_type: str
    conditions: Mapping[str, Any] = field(default_factory=dict)
    violation_action: str = "warn"
    allow_override: bool = True
    enabled: bool = True
    priority: int = 5
    description: str = ""

    @classmethod
    def from_model(cls, row: Rule) -> "RuleRecord":
        return cls(
            rule_id=row.id,
            name=row.name,
            rule_type=row.rule_type,
            conditions=dict(row.conditions or {}),
            violation_action=row.violation_action,
            allow_override=bool(row.allow_override),
            enabled=bool(row.enabled),
            priority=int(row.priority),
            description=row.description or "",
        )


@dataclass(frozen=True)
class ReferenceSnapshot:
    employees: Tuple[EmployeeRecord, ...]
    shifts: Tuple[ShiftSpec, ...]
    rules: Tuple[RuleRecord, ...] = ()
    holidays: Tuple[HolidayRecord, ...] = ()
    leaves: Tuple[LeaveRecord, ...] = ()

    def __post_init__(self):
        codes = {s.code for s in self.shifts}
        clash = codes & PSEUDO_SHIFTS
        if clash:
            raise InvalidConfig(f"Catalog uses reserved shift codes: {sorted(clash)}")
        for emp in self.employees:
            if emp.fixed_shift not in codes:
                raise InvalidConfig(
                    f"Employee {emp.employee_id} has fixed shift {emp.fixed_shift!r} missing from the catalog"
                )

    @property
    def shift_catalog(self) -> Dict[str, ShiftSpec]:
        return {s.code: s for s in self.shifts}

    @property
    def active_employees(self) -> Tuple[EmployeeRecord, ...]:
        return tuple(sorted((e for e in self.employees if e.active), key=lambda e: e.employee_id))

    def employee(self, employee_id: int) -> Optional[EmployeeRecord]:
        for emp in self.employees:
            if emp.employee_id == employee_id:
                return emp
        return None


def load_reference_snapshot(
    session: Session,
    year: int,
    month: int,
    trailing_window_days: int = 7,
) -> ReferenceSnapshot:
    """Read employees, catalog, rules, holidays and approved leaves once."""
    first, last = month_bounds(year, month)
    window_start = first - timedelta(days=trailing_window_days)
    return ReferenceSnapshot(
        employees=tuple(EmployeeRecord.from_model(e) for e in EmployeeRepository.get_all(session)),
        shifts=tuple(ShiftSpec.from_model(s) for s in ShiftRepository.get_all(session)),
        rules=tuple(RuleRecord.from_model(r) for r in RuleRepository.get_all(session)),
        holidays=tuple(HolidayRecord.from_model(h) for h in HolidayRepository.get_between(session, window_start, last)),
        leaves=tuple(LeaveRecord.from_model(l) for l in LeaveRepository.get_approved_between(session, window_start, last)),
    )
