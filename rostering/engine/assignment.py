"""Month roster generation: one deterministic pass over dates x employees."""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from rostering.config import GenerationConfig
from rostering.constants import HOLIDAY, LEAVE, UNRESOLVED, WEEK_OFF
from rostering.domain.models import Roster, RosterEntry
from rostering.domain.snapshot import EmployeeRecord, ReferenceSnapshot
from rostering.errors import InvalidConfig, RuleConfigError
from rostering.rules.base import ViolationAction
from rostering.rules.registry import RuleRegistry
from rostering.services.calendar import DayInfo, MonthPeriod, resolve_period
from rostering.services.constraints import (
    Candidate,
    ConstraintEvaluator,
    CoverageShortfall,
    Violation,
    blocking,
    surfaced,
)
from rostering.services.grid import RosterGrid
from rostering.services.scoring import candidate_order, surplus

logger = logging.getLogger(__name__)


class SlotState(str, Enum):
    UNASSIGNED = "unassigned"
    CANDIDATE_PROPOSED = "candidate_proposed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    UNRESOLVED = "unresolved"


_TRANSITIONS = {
    SlotState.UNASSIGNED: {SlotState.CANDIDATE_PROPOSED, SlotState.ACCEPTED},
    SlotState.CANDIDATE_PROPOSED: {SlotState.ACCEPTED, SlotState.REJECTED},
    SlotState.REJECTED: {SlotState.CANDIDATE_PROPOSED, SlotState.UNRESOLVED},
    SlotState.ACCEPTED: set(),
    SlotState.UNRESOLVED: set(),
}


@dataclass
class Slot:
    """Decision state of one (employee, date) cell."""

    employee_id: int
    date: date
    state: SlotState = SlotState.UNASSIGNED
    shift_code: Optional[str] = None
    violations: List[Violation] = field(default_factory=list)
    attempts: List[Tuple[str, List[Violation]]] = field(default_factory=list)

    def _move(self, new: SlotState) -> None:
        if new not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Slot {self.employee_id}/{self.date}: cannot go from {self.state.value} to {new.value}")
        self.state = new

    def assign_fixed(self, code: str) -> None:
        """Week-off, holiday and leave cells skip evaluation."""
        self._move(SlotState.ACCEPTED)
        self.shift_code = code

    def propose(self, code: str) -> None:
        self._move(SlotState.CANDIDATE_PROPOSED)
        self.shift_code = code

    def accept(self, violations: List[Violation]) -> None:
        self._move(SlotState.ACCEPTED)
        self.violations = list(violations)

    def reject(self, violations: List[Violation]) -> None:
        self._move(SlotState.REJECTED)
        self.attempts.append((self.shift_code, list(violations)))
        self.shift_code = None

    def give_up(self) -> None:
        self._move(SlotState.UNRESOLVED)
        self.shift_code = UNRESOLVED
        # report why the preferred shift could not be used
        if self.attempts:
            self.violations = surfaced(self.attempts[0][1])

    def to_dict(self) -> dict:
        return {
            "employee_id": self.employee_id,
            "date": self.date.isoformat(),
            "state": self.state.value,
            "tried": [code for code, _ in self.attempts],
            "blocked_by": sorted({v.rule_name for _, vs in self.attempts for v in blocking(vs)}),
        }


class GenerationStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class GenerationResult:
    status: GenerationStatus
    roster: Optional[Roster] = None
    config: Optional[GenerationConfig] = None
    unresolved: List[Slot] = field(default_factory=list)
    shortfalls: List[CoverageShortfall] = field(default_factory=list)
    rule_errors: List[RuleConfigError] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str, config: Optional[GenerationConfig] = None) -> "GenerationResult":
        return cls(status=GenerationStatus.FAILED, config=config, error=error)

    @property
    def ok(self) -> bool:
        return self.status == GenerationStatus.COMPLETED

    @property
    def violation_count(self) -> int:
        if self.roster is None:
            return 0
        return sum(len(e.violations or []) for e in self.roster.entries)

    def summary(self) -> dict:
        return {
            "status": self.status.value,
            "roster_id": getattr(self.roster, "id", None),
            "entries": len(self.roster.entries) if self.roster is not None else 0,
            "violations": self.violation_count,
            "unresolved": [s.to_dict() for s in self.unresolved],
            "coverage_shortfalls": [s.to_dict() for s in self.shortfalls],
            "rule_errors": [e.to_dict() for e in self.rule_errors],
            "error": self.error,
        }


@dataclass
class _Cell:
    shift_code: str
    violations: List[Violation] = field(default_factory=list)


class AssignmentEngine:
    """
    Builds a full-month roster from a reference snapshot.

    Dates are processed in order and, within a date, active employees by id.
    Locked cells from a previous roster are copied unchanged and never
    revisited. The engine holds no state between runs and never persists.
    """

    def __init__(self, config: GenerationConfig, holiday_types: Iterable[str] = ("public", "company")):
        self.config = config
        self.holiday_types = tuple(holiday_types)

    def make_schedule(
        self,
        snapshot: ReferenceSnapshot,
        locked_entries: Iterable[RosterEntry] = (),
        history: Optional[Mapping[Tuple[int, date], str]] = None,
        name: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> GenerationResult:
        """
        Generate the month described by ``self.config``.

        Args:
            snapshot: Frozen employees, catalog, rules, holidays and leaves
            locked_entries: Locked cells of the roster being regenerated
            history: Shift codes of days before the month, for rest/streak rules
            name: Roster name (default "<Month> <Year> Roster")
            created_by: Recorded as creator and modifier

        Returns:
            GenerationResult with an unsaved Roster

        Raises:
            InvalidConfig: Bad month/year, no active employees or unusable reference data
        """
        cfg = self.config.validate()
        employees = snapshot.active_employees
        if not employees:
            raise InvalidConfig("No active employees to roster")
        if not snapshot.shifts:
            raise InvalidConfig("Shift catalog is empty")

        catalog = snapshot.shift_catalog
        codes = [s.code for s in sorted(snapshot.shifts, key=lambda s: (s.sort_order, s.code))]
        period = resolve_period(cfg.year, cfg.month, snapshot.holidays, snapshot.leaves, self.holiday_types)
        registry = RuleRegistry.from_records(snapshot.rules, shift_codes=codes)
        evaluator = ConstraintEvaluator(registry, catalog, period, cfg)
        logger.info(
            "Generating %04d-%02d: %d employees, %d days, %d rules (%d rejected)",
            cfg.year, cfg.month, len(employees), len(period), len(registry.enabled()), len(registry.errors),
        )

        grid = RosterGrid({k: v for k, v in (history or {}).items() if k[1] not in period})
        locked: Dict[Tuple[int, date], RosterEntry] = {}
        for entry in locked_entries:
            if entry.is_locked and entry.date in period:
                locked[(entry.emp_id, entry.date)] = entry
                grid.set(entry.emp_id, entry.date, entry.shift_code)

        cells: Dict[Tuple[int, date], _Cell] = {}
        unresolved: List[Slot] = []
        shortfalls: List[CoverageShortfall] = []

        for day in period:
            for emp in employees:
                key = (emp.employee_id, day.date)
                if key in locked:
                    continue
                slot = self._resolve_slot(emp, day, period, grid, evaluator, codes)
                grid.set(emp.employee_id, day.date, slot.shift_code)
                cells[key] = _Cell(slot.shift_code, slot.violations)
                if slot.state == SlotState.UNRESOLVED:
                    logger.warning("Unresolved slot: employee %s on %s", emp.employee_id, day.date)
                    unresolved.append(slot)

            if cfg.balance_workload:
                self._repair_coverage(day.date, employees, cells, grid, evaluator, codes)

            for gap in evaluator.evaluate_coverage(day.date, grid):
                if gap.severity == ViolationAction.IGNORE:
                    continue
                shortfalls.append(gap)
                for emp_id in grid.assigned(day.date, gap.shift_code):
                    cell = cells.get((emp_id, day.date))
                    if cell is not None:
                        cell.violations.append(gap.as_violation())

        roster = self._build_roster(cfg, period, employees, cells, locked, name, created_by)
        result = GenerationResult(
            status=GenerationStatus.COMPLETED,
            roster=roster,
            config=cfg,
            unresolved=unresolved,
            shortfalls=shortfalls,
            rule_errors=list(registry.errors) + evaluator.rule_errors,
        )
        logger.info(
            "Generated %d entries: %d violations, %d unresolved, %d coverage shortfalls",
            len(roster.entries), result.violation_count, len(unresolved), len(shortfalls),
        )
        return result

    def _resolve_slot(
        self,
        emp: EmployeeRecord,
        day: DayInfo,
        period: MonthPeriod,
        grid: RosterGrid,
        evaluator: ConstraintEvaluator,
        codes: List[str],
    ) -> Slot:
        cfg = self.config
        slot = Slot(emp.employee_id, day.date)

        if period.leave_on(emp.employee_id, day.date) is not None:
            slot.assign_fixed(LEAVE)
            return slot
        if cfg.include_holidays and period.holiday_on(day.date) is not None:
            slot.assign_fixed(HOLIDAY)
            return slot
        if cfg.respect_week_offs and day.weekday_name in emp.week_offs:
            slot.assign_fixed(WEEK_OFF)
            return slot

        deficits = evaluator.coverage_deficits(day.date, grid) if cfg.balance_workload else None
        for code in candidate_order(emp, codes, deficits):
            slot.propose(code)
            violations = evaluator.evaluate(
                Candidate(emp.employee_id, day.date, code), emp, grid, lookahead=True
            )
            if blocking(violations):
                logger.debug(
                    "Rejected %s for employee %s on %s: %s",
                    code, emp.employee_id, day.date, [v.rule_name for v in blocking(violations)],
                )
                slot.reject(violations)
                continue
            slot.accept(surfaced(violations))
            return slot

        slot.give_up()
        return slot

    def _repair_coverage(
        self,
        day: date,
        employees: Tuple[EmployeeRecord, ...],
        cells: Dict[Tuple[int, date], _Cell],
        grid: RosterGrid,
        evaluator: ConstraintEvaluator,
        codes: List[str],
    ) -> None:
        """
        Move employees from shifts above their minimum into under-covered ones.

        Each move closes one unit of deficit without opening another, so the
        loop ends. A move is made only when the new shift raises no block.
        """
        minimums = {code: evaluator.coverage_minimum(day, code) for code in codes}
        while True:
            deficits = evaluator.coverage_deficits(day, grid)
            if not deficits:
                return
            spare = surplus(grid.counts(day), minimums)
            moved = False
            for target in sorted(deficits, key=lambda c: (-deficits[c], codes.index(c) if c in codes else len(codes))):
                for emp in employees:
                    cell = cells.get((emp.employee_id, day))
                    if cell is None or cell.shift_code not in spare or cell.shift_code == target:
                        continue
                    violations = evaluator.evaluate(Candidate(emp.employee_id, day, target), emp, grid, lookahead=True)
                    if blocking(violations):
                        continue
                    logger.debug("Coverage move on %s: employee %s %s -> %s", day, emp.employee_id, cell.shift_code, target)
                    grid.set(emp.employee_id, day, target)
                    cell.shift_code = target
                    cell.violations = surfaced(violations)
                    moved = True
                    break
                if moved:
                    break
            if not moved:
                return

    def _build_roster(
        self,
        cfg: GenerationConfig,
        period: MonthPeriod,
        employees: Tuple[EmployeeRecord, ...],
        cells: Dict[Tuple[int, date], _Cell],
        locked: Dict[Tuple[int, date], RosterEntry],
        name: Optional[str],
        created_by: Optional[str],
    ) -> Roster:
        now = datetime.utcnow()
        entries: List[RosterEntry] = []
        emp_ids = sorted({e.employee_id for e in employees} | {k[0] for k in locked})
        for day in period.dates:
            for emp_id in emp_ids:
                key = (emp_id, day)
                if key in locked:
                    old = locked[key]
                    entries.append(
                        RosterEntry(
                            emp_id=emp_id,
                            date=day,
                            shift_code=old.shift_code,
                            violations=list(old.violations or []),
                            is_locked=True,
                            last_modified=old.last_modified,
                            modified_by=old.modified_by,
                            revision=old.revision or 0,
                        )
                    )
                elif key in cells:
                    cell = cells[key]
                    entries.append(
                        RosterEntry(
                            emp_id=emp_id,
                            date=day,
                            shift_code=cell.shift_code,
                            violations=[v.to_dict() for v in cell.violations],
                            is_locked=False,
                            last_modified=now,
                            modified_by=created_by or "system",
                            revision=0,
                        )
                    )
        return Roster(
            name=name or f"{calendar.month_name[cfg.month]} {cfg.year} Roster",
            month=cfg.month,
            year=cfg.year,
            status="draft",
            version=1,
            generation_config=cfg.to_dict(),
            created_at=now,
            created_by=created_by,
            updated_at=now,
            entries=entries,
        )
