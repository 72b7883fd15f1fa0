"""Exception types raised by the roster engine."""

from __future__ import annotations

from datetime import date
from typing import Optional


class RosterError(Exception):
    """Base class for all roster engine errors."""


class InvalidConfig(RosterError, ValueError):
    """Generation config or reference data is unusable; nothing was produced."""


class UnknownShift(RosterError, ValueError):
    """A shift code is neither in the catalog nor a reserved pseudo-shift."""

    def __init__(self, code: str):
        super().__init__(f"Unknown shift code: {code!r}")
        self.code = code


class RuleConfigError(RosterError):
    """A rule's condition payload is malformed or failed during evaluation."""

    def __init__(self, rule_id, rule_name: str, reason: str):
        super().__init__(f"Rule {rule_id} ({rule_name}): {reason}")
        self.rule_id = rule_id
        self.rule_name = rule_name
        self.reason = reason

    def to_dict(self) -> dict:
        return {"rule_id": self.rule_id, "rule_name": self.rule_name, "reason": self.reason}


class CellError(RosterError):
    """Base for errors tied to a single roster cell."""

    def __init__(self, message: str, employee_id: int, day: date):
        super().__init__(message)
        self.employee_id = employee_id
        self.day = day


class CellLocked(CellError):
    """The target entry is locked; the edit was not applied."""

    def __init__(self, employee_id: int, day: date):
        super().__init__(f"Entry for employee {employee_id} on {day} is locked", employee_id, day)


class WriteConflict(CellError):
    """The entry changed since the caller read it; re-fetch and retry."""

    def __init__(self, employee_id: int, day: date, expected: int, actual: int):
        super().__init__(
            f"Entry for employee {employee_id} on {day} changed since it was read "
            f"(expected revision {expected}, found {actual})",
            employee_id,
            day,
        )
        self.expected = expected
        self.actual = actual


class AssignmentBlocked(CellError):
    """A manual edit triggers blocking violations that were not overridden."""

    def __init__(self, employee_id: int, day: date, violations: list, overridable: bool):
        names = ", ".join(sorted({v.rule_name for v in violations}))
        hint = " (pass force=True to override)" if overridable else ""
        super().__init__(
            f"Shift for employee {employee_id} on {day} blocked by: {names}{hint}",
            employee_id,
            day,
        )
        self.violations = violations
        self.overridable = overridable


class GenerationInProgress(RosterError):
    """Another generation run for the same target roster is still running."""

    def __init__(self, target: tuple):
        super().__init__(f"Generation already in progress for {target}")
        self.target = target


class InvalidTransition(RosterError):
    """Roster lifecycle transition not allowed from the current status."""

    def __init__(self, roster_id: Optional[int], current: str, requested: str):
        super().__init__(f"Roster {roster_id} cannot move from {current} to {requested}")
        self.roster_id = roster_id
        self.current = current
        self.requested = requested
