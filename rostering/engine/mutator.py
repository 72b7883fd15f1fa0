"""Single-cell edits on a saved roster with neighborhood re-evaluation."""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from sqlalchemy.orm import Session

from rostering.config import GenerationConfig
from rostering.constants import PSEUDO_SHIFTS, UNRESOLVED, is_work_shift
from rostering.domain.models import Roster, RosterEntry
from rostering.domain.repositories import RosterRepository
from rostering.domain.snapshot import ReferenceSnapshot
from rostering.errors import AssignmentBlocked, CellLocked, InvalidTransition, UnknownShift, WriteConflict
from rostering.rules.base import RuleType, ViolationAction
from rostering.rules.registry import RuleRegistry
from rostering.services.calendar import resolve_period
from rostering.services.constraints import (
    Candidate,
    ConstraintEvaluator,
    Violation,
    blocking,
    mark_overridden,
    surfaced,
)
from rostering.services.grid import RosterGrid

logger = logging.getLogger(__name__)

_BOUNDARY_TYPES = (RuleType.REST, RuleType.CONSECUTIVE_SHIFT)
_BOUNDARY_VALUES = {t.value for t in _BOUNDARY_TYPES}


class RosterMutator:
    """
    Applies manual edits and lock changes to one roster.

    Edits change the entries in place and mark the roster dirty; the version
    goes up once per ``save``. Every write is serialized on an internal lock,
    and callers that pass ``expected_revision`` get a ``WriteConflict`` when
    the entry changed since they read it.
    """

    def __init__(
        self,
        roster: Roster,
        snapshot: ReferenceSnapshot,
        config: Optional[GenerationConfig] = None,
        history: Optional[Mapping[Tuple[int, date], str]] = None,
        holiday_types: Iterable[str] = ("public", "company"),
    ):
        self.roster = roster
        stored = dict(roster.generation_config or {})
        stored.update({"month": roster.month, "year": roster.year})
        self.config = config or GenerationConfig.from_dict(stored)
        self.snapshot = snapshot
        codes = [s.code for s in sorted(snapshot.shifts, key=lambda s: (s.sort_order, s.code))]
        period = resolve_period(roster.year, roster.month, snapshot.holidays, snapshot.leaves, holiday_types)
        self.registry = RuleRegistry.from_records(snapshot.rules, shift_codes=codes)
        self.evaluator = ConstraintEvaluator(self.registry, snapshot.shift_catalog, period, self.config)
        self._entries: Dict[Tuple[int, date], RosterEntry] = {(e.emp_id, e.date): e for e in roster.entries}
        self.grid = RosterGrid(history)
        for entry in roster.entries:
            self.grid.set(entry.emp_id, entry.date, entry.shift_code)
        self._lock = threading.RLock()
        self._dirty = False

    @property
    def has_unsaved_changes(self) -> bool:
        return self._dirty

    def entry(self, employee_id: int, day: date) -> RosterEntry:
        try:
            return self._entries[(employee_id, day)]
        except KeyError:
            raise KeyError(f"Roster {self.roster.id} has no entry for employee {employee_id} on {day}") from None

    def _check_writable(self) -> None:
        if self.roster.status == "archived":
            raise InvalidTransition(self.roster.id, self.roster.status, "edited")

    @staticmethod
    def _check_revision(entry: RosterEntry, expected_revision: Optional[int]) -> None:
        actual = entry.revision or 0
        if expected_revision is not None and expected_revision != actual:
            raise WriteConflict(entry.emp_id, entry.date, expected_revision, actual)

    def edit_cell(
        self,
        employee_id: int,
        day: date,
        new_shift: str,
        modified_by: Optional[str] = None,
        expected_revision: Optional[int] = None,
        force: bool = False,
    ) -> RosterEntry:
        """
        Replace the shift of one cell.

        Args:
            employee_id: Employee of the cell
            day: Date of the cell
            new_shift: Catalog code or WO / HOL / LEAVE
            modified_by: Recorded on the entry
            expected_revision: Revision the caller read; mismatch raises WriteConflict
            force: Apply despite blocking violations when overrides are allowed

        Returns:
            The updated entry

        Raises:
            CellLocked: The entry is locked (nothing changes)
            UnknownShift: ``new_shift`` is not a known code
            WriteConflict: The entry changed since it was read
            AssignmentBlocked: A block rule is violated and was not overridden
        """
        with self._lock:
            self._check_writable()
            entry = self.entry(employee_id, day)
            if entry.is_locked:
                raise CellLocked(employee_id, day)
            self._check_revision(entry, expected_revision)
            if new_shift not in self.evaluator.shifts and (new_shift not in PSEUDO_SHIFTS or new_shift == UNRESOLVED):
                raise UnknownShift(new_shift)
            employee = self.snapshot.employee(employee_id)
            if employee is None:
                raise KeyError(f"Employee {employee_id} is not in the reference data")

            previous = entry.shift_code
            forced: Set[object] = set()
            self.grid.set(employee_id, day, new_shift)
            # lookahead: the gap to the next day and streaks this edit joins
            violations = self.evaluator.evaluate(
                Candidate(employee_id, day, new_shift), employee, self.grid, lookahead=True
            )
            blockers = blocking(violations)
            if blockers:
                overridable = self._overridable(blockers)
                if not (force and overridable):
                    self.grid.set(employee_id, day, previous)
                    raise AssignmentBlocked(employee_id, day, blockers, overridable)
                logger.info(
                    "Override applied for employee %s on %s: %s",
                    employee_id, day, [v.rule_name for v in blockers],
                )
                violations = mark_overridden(violations)
                forced = {v.rule_id for v in blockers}

            entry.shift_code = new_shift
            entry.violations = [v.to_dict() for v in surfaced(violations)]
            self._touch(entry, modified_by)
            self._refresh_neighbours(employee, day, forced)
            self._refresh_coverage(day)
            logger.debug("Employee %s on %s: %s -> %s", employee_id, day, previous, new_shift)
            return entry

    def _overridable(self, blockers: List[Violation]) -> bool:
        if not self.config.allow_overrides:
            return False
        for v in blockers:
            rule = self.registry.get(v.rule_id)
            if rule is None or not rule.allow_override:
                return False
        return True

    def set_lock(
        self,
        employee_id: int,
        day: date,
        locked: bool,
        modified_by: Optional[str] = None,
        expected_revision: Optional[int] = None,
    ) -> RosterEntry:
        """Lock or unlock one cell. Locked cells survive regeneration unchanged."""
        with self._lock:
            self._check_writable()
            entry = self.entry(employee_id, day)
            self._check_revision(entry, expected_revision)
            if bool(entry.is_locked) != locked:
                entry.is_locked = locked
                self._touch(entry, modified_by)
            return entry

    def _touch(self, entry: RosterEntry, modified_by: Optional[str]) -> None:
        entry.last_modified = datetime.utcnow()
        entry.modified_by = modified_by
        entry.revision = (entry.revision or 0) + 1
        self._dirty = True

    def _refresh_neighbours(self, employee, day: date, forced: Set[object] = frozenset()) -> None:
        """
        Re-run rest and streak rules on the employee's adjacent days.

        Rules in ``forced`` were overridden by the edit itself and are recorded
        as overridden on the neighbours too.
        """
        for other in (day - timedelta(days=1), day + timedelta(days=1)):
            entry = self._entries.get((employee.employee_id, other))
            if entry is None or entry.is_locked:
                continue
            stored = [Violation.from_dict(v) for v in entry.violations or []]
            kept = [v for v in stored if v.rule_type not in _BOUNDARY_VALUES]
            overridden = {v.rule_id for v in stored if v.overridden} | set(forced)
            fresh: List[Violation] = []
            if is_work_shift(entry.shift_code):
                fresh = self.evaluator.evaluate(
                    Candidate(employee.employee_id, other, entry.shift_code),
                    employee,
                    self.grid,
                    rule_types=_BOUNDARY_TYPES,
                    lookahead=True,
                )
                fresh = [
                    mark_overridden([v])[0] if v.rule_id in overridden else v for v in surfaced(fresh)
                ]
            updated = [v.to_dict() for v in fresh + kept]
            if updated != list(entry.violations or []):
                entry.violations = updated
                self._dirty = True

    def _refresh_coverage(self, day: date) -> None:
        """Recompute coverage violations for every unlocked entry on ``day``."""
        by_shift: Dict[str, List[Violation]] = {}
        for gap in self.evaluator.evaluate_coverage(day, self.grid):
            if gap.severity != ViolationAction.IGNORE:
                by_shift.setdefault(gap.shift_code, []).append(gap.as_violation())
        for (emp_id, entry_day), entry in self._entries.items():
            if entry_day != day or entry.is_locked:
                continue
            others = [
                v for v in (entry.violations or []) if v.get("rule_type") != RuleType.COVERAGE.value
            ]
            updated = others + [v.to_dict() for v in by_shift.get(entry.shift_code, [])]
            if updated != list(entry.violations or []):
                entry.violations = updated
                self._dirty = True

    def save(self, session: Session) -> Roster:
        """Persist pending edits; the roster version goes up by one."""
        with self._lock:
            if not self._dirty:
                return self.roster
            self.roster.version = (self.roster.version or 0) + 1
            RosterRepository.save(session, self.roster)
            self._dirty = False
            logger.info("Saved roster %s at version %s", self.roster.id, self.roster.version)
            return self.roster
