"""Constraint evaluation for candidate assignments and roster-wide coverage."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set

from rostering.config import GenerationConfig
from rostering.constants import SKILL_LEVELS, is_work_shift
from rostering.domain.snapshot import EmployeeRecord, ShiftSpec
from rostering.errors import RuleConfigError
from rostering.rules.base import RuleSpec, RuleType, ViolationAction
from rostering.rules.registry import RuleRegistry

from .calendar import MonthPeriod, weekday_name
from .grid import RosterGrid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    employee_id: int
    date: date
    shift_code: str


@dataclass(frozen=True)
class Violation:
    rule_id: object
    rule_name: str
    rule_type: str
    severity: ViolationAction
    message: str
    overridden: bool = False

    @property
    def is_blocking(self) -> bool:
        return self.severity == ViolationAction.BLOCK and not self.overridden

    def to_dict(self) -> dict:
        data = {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "rule_type": self.rule_type,
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.overridden:
            data["overridden"] = True
        return data

    @classmethod
    def from_dict(cls, data: Mapping) -> "Violation":
        return cls(
            rule_id=data.get("rule_id"),
            rule_name=data.get("rule_name", ""),
            rule_type=data.get("rule_type", ""),
            severity=ViolationAction(data.get("severity", "warn")),
            message=data.get("message", ""),
            overridden=bool(data.get("overridden", False)),
        )


@dataclass(frozen=True)
class CoverageShortfall:
    date: date
    shift_code: str
    required: int
    assigned: int
    rule_id: object
    rule_name: str
    severity: ViolationAction

    @property
    def message(self) -> str:
        return (
            f"Insufficient coverage for {self.shift_code} on {self.date}: "
            f"{self.assigned} assigned, minimum {self.required}"
        )

    def as_violation(self) -> Violation:
        return Violation(self.rule_id, self.rule_name, RuleType.COVERAGE.value, self.severity, self.message)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "shift_code": self.shift_code,
            "required": self.required,
            "assigned": self.assigned,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "severity": self.severity.value,
        }


def blocking(violations: Iterable[Violation]) -> List[Violation]:
    return [v for v in violations if v.is_blocking]


def surfaced(violations: Iterable[Violation]) -> List[Violation]:
    """Violations that are reported on entries (``ignore`` ones are dropped)."""
    return [v for v in violations if v.severity != ViolationAction.IGNORE]


# Per-employee checks. Each returns a message when the rule is violated.
Checker = Callable[["ConstraintEvaluator", RuleSpec, Candidate, EmployeeRecord, RosterGrid, bool], Optional[str]]


class ConstraintEvaluator:
    """
    Evaluates enabled rules against a candidate (employee, day, shift).

    A rule whose check raises is invalidated for the rest of the run and
    reported through ``rule_errors``; the other rules keep running.
    """

    def __init__(
        self,
        registry: RuleRegistry,
        shifts: Mapping[str, ShiftSpec],
        period: Optional[MonthPeriod] = None,
        config: Optional[GenerationConfig] = None,
    ):
        self.registry = registry
        self.shifts = dict(shifts)
        self.period = period
        self.config = config
        self.rule_errors: List[RuleConfigError] = []
        self._invalid: Set[object] = set()

    # ------------------------------------------------------------------ policy

    def effective_action(self, rule: RuleSpec) -> ViolationAction:
        """Rule action after the run's toggles are applied."""
        cfg = self.config
        if cfg is not None:
            if rule.rule_type == RuleType.SKILL and not cfg.enforce_skill_matching:
                return ViolationAction.IGNORE
            if rule.rule_type == RuleType.REST and not cfg.minimum_rest_period:
                return ViolationAction.IGNORE
        return rule.action

    def active_rules(self, rule_types: Optional[Iterable[RuleType]] = None) -> List[RuleSpec]:
        wanted = set(rule_types) if rule_types is not None else None
        return [
            r
            for r in self.registry.enabled()
            if r.rule_id not in self._invalid and (wanted is None or r.rule_type in wanted)
        ]

    def _invalidate(self, rule: RuleSpec, exc: Exception) -> None:
        error = RuleConfigError(rule.rule_id, rule.name, f"evaluation failed: {exc!r}")
        self._invalid.add(rule.rule_id)
        self.rule_errors.append(error)
        logger.error("Rule invalidated for this run: %s", error)

    # ------------------------------------------------------------- evaluation

    def evaluate(
        self,
        candidate: Candidate,
        employee: EmployeeRecord,
        grid: RosterGrid,
        rule_types: Optional[Iterable[RuleType]] = None,
        lookahead: bool = False,
    ) -> List[Violation]:
        """
        Violations (all severities, priority order) for placing ``candidate``.

        ``lookahead`` also checks against the following day when it is already
        filled in ``grid`` (locked cells during generation).
        """
        if not is_work_shift(candidate.shift_code):
            return []
        violations: List[Violation] = []
        for rule in self.active_rules(rule_types):
            checker = _CHECKERS.get(rule.rule_type)
            if checker is None:
                continue
            try:
                message = checker(self, rule, candidate, employee, grid, lookahead)
            except (ArithmeticError, AttributeError, KeyError, TypeError, ValueError) as e:
                self._invalidate(rule, e)
                continue
            if message:
                violations.append(
                    Violation(rule.rule_id, rule.name, rule.rule_type.value, self.effective_action(rule), message)
                )
        return violations

    def evaluate_coverage(self, day: date, grid: RosterGrid) -> List[CoverageShortfall]:
        """Roster-wide coverage shortfalls for ``day`` (all severities)."""
        shortfalls: List[CoverageShortfall] = []
        counts = grid.counts(day)
        for rule in self.active_rules([RuleType.COVERAGE]):
            try:
                for code, required in rule.condition.min_employees_per_shift:
                    got = counts.get(code, 0)
                    if got < required:
                        shortfalls.append(
                            CoverageShortfall(day, code, required, got, rule.rule_id, rule.name, self.effective_action(rule))
                        )
            except (AttributeError, TypeError, ValueError) as e:
                self._invalidate(rule, e)
        return shortfalls

    def coverage_deficits(self, day: date, grid: RosterGrid) -> Dict[str, int]:
        """Largest missing headcount per shift code over surfaced coverage rules."""
        deficits: Dict[str, int] = {}
        for gap in self.evaluate_coverage(day, grid):
            if gap.severity == ViolationAction.IGNORE:
                continue
            deficits[gap.shift_code] = max(deficits.get(gap.shift_code, 0), gap.required - gap.assigned)
        return deficits

    def coverage_minimum(self, day: date, code: str) -> int:
        """Highest surfaced minimum headcount configured for ``code``."""
        best = 0
        for rule in self.active_rules([RuleType.COVERAGE]):
            if self.effective_action(rule) != ViolationAction.IGNORE:
                best = max(best, rule.condition.minimum(code))
        return best

    def weekday(self, day: date) -> str:
        return self.period.day(day).weekday_name if self.period is not None else weekday_name(day)


def _check_rest(ev, rule, cand, emp, grid, lookahead) -> Optional[str]:
    cond = rule.condition
    if not cond.applies_to(cand.shift_code):
        return None
    shift = ev.shifts[cand.shift_code]
    limit = cond.min_rest_hours
    problems = []

    prev_day = cand.date - timedelta(days=1)
    prev_code = grid.get(cand.employee_id, prev_day)
    if is_work_shift(prev_code):
        gap = (shift.start_on(cand.date) - ev.shifts[prev_code].end_on(prev_day)).total_seconds() / 3600.0
        if gap < limit:
            problems.append(f"{gap:g}h after {prev_code} on {prev_day}")

    if lookahead:
        next_day = cand.date + timedelta(days=1)
        next_code = grid.get(cand.employee_id, next_day)
        if is_work_shift(next_code):
            gap = (ev.shifts[next_code].start_on(next_day) - shift.end_on(cand.date)).total_seconds() / 3600.0
            if gap < limit:
                problems.append(f"{gap:g}h before {next_code} on {next_day}")

    if problems:
        return f"Insufficient rest period for {cand.shift_code}: " + "; ".join(problems) + f" (minimum {limit:g}h)"
    return None


def _check_consecutive(ev, rule, cand, emp, grid, lookahead) -> Optional[str]:
    cond = rule.condition

    def counted(day: date) -> bool:
        return cond.include_weekends or ev.weekday(day) not in ("Saturday", "Sunday")

    if not counted(cand.date):
        return None

    streak = 1
    day = cand.date - timedelta(days=1)
    # bounded scan; a streak longer than the limit is already a violation
    for _ in range(cond.max_consecutive_days * 2 + 2):
        if not counted(day):
            day -= timedelta(days=1)
            continue
        if not grid.is_working(cand.employee_id, day):
            break
        streak += 1
        day -= timedelta(days=1)

    if lookahead:
        day = cand.date + timedelta(days=1)
        for _ in range(cond.max_consecutive_days * 2 + 2):
            if not counted(day):
                day += timedelta(days=1)
                continue
            if not grid.is_working(cand.employee_id, day):
                break
            streak += 1
            day += timedelta(days=1)

    if streak > cond.max_consecutive_days:
        return (
            f"Consecutive days limit exceeded: {streak} consecutive working days "
            f"(maximum {cond.max_consecutive_days})"
        )
    return None


def _check_skill(ev, rule, cand, emp, grid, lookahead) -> Optional[str]:
    required = ev.shifts[cand.shift_code].required_skill
    if not required:
        return None
    level = emp.skill_level(required)
    if level is None:
        return f"Missing required skill '{required}' for {cand.shift_code}"
    cond = rule.condition
    if cond.require_exact_match and SKILL_LEVELS.index(level) < cond.minimum_rank:
        return (
            f"Skill '{required}' at {level} is below required {cond.minimum_skill_level} "
            f"for {cand.shift_code}"
        )
    return None


def _check_custom(ev, rule, cand, emp, grid, lookahead) -> Optional[str]:
    cond = rule.condition
    if cand.shift_code not in cond.disallowed_shifts:
        return None
    weekday = ev.weekday(cand.date)
    if cond.weekdays and weekday not in cond.weekdays:
        return None
    if cond.employee_ids and emp.employee_id not in cond.employee_ids:
        return None
    if cond.departments and emp.department not in cond.departments:
        return None
    return f"Shift {cand.shift_code} not allowed on {weekday} ({rule.name})"


_CHECKERS: Dict[RuleType, Checker] = {
    RuleType.REST: _check_rest,
    RuleType.CONSECUTIVE_SHIFT: _check_consecutive,
    RuleType.SKILL: _check_skill,
    RuleType.CUSTOM: _check_custom,
}


def mark_overridden(violations: Iterable[Violation]) -> List[Violation]:
    return [replace(v, overridden=True) if v.severity == ViolationAction.BLOCK else v for v in violations]
