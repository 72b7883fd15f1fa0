"""
Typed rule contracts.

A stored rule carries a free-form condition bag; here each rule type gets its
own frozen condition dataclass and the bag is parsed (and validated) into it.

- RuleSpec:  metadata, policy and the typed condition of one rule.
- parse_rule: bag -> RuleSpec, raising RuleConfigError on malformed input.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from numbers import Real
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from rostering.constants import SKILL_LEVELS, normalize_weekday
from rostering.errors import RuleConfigError

__all__ = [
    "RuleType",
    "ViolationAction",
    "RestCondition",
    "ConsecutiveShiftCondition",
    "SkillCondition",
    "CoverageCondition",
    "CustomCondition",
    "RuleSpec",
    "parse_rule",
]


class RuleType(str, Enum):
    REST = "rest"
    CONSECUTIVE_SHIFT = "consecutive-shift"
    SKILL = "skill"
    COVERAGE = "coverage"
    CUSTOM = "custom"


_TYPE_ALIASES = {"shift": RuleType.CONSECUTIVE_SHIFT, "consecutive": RuleType.CONSECUTIVE_SHIFT}


class ViolationAction(str, Enum):
    """What a triggered rule does to the candidate; doubles as violation severity."""

    BLOCK = "block"
    WARN = "warn"
    IGNORE = "ignore"


@dataclass(frozen=True)
class RestCondition:
    min_rest_hours: float = 12.0
    apply_to_all_shifts: bool = True
    shift_codes: Tuple[str, ...] = ()

    def applies_to(self, code: str) -> bool:
        return self.apply_to_all_shifts or code in self.shift_codes


@dataclass(frozen=True)
class ConsecutiveShiftCondition:
    max_consecutive_days: int = 6
    # when False, Saturdays and Sundays neither count nor break a streak
    include_weekends: bool = True


@dataclass(frozen=True)
class SkillCondition:
    require_exact_match: bool = False
    minimum_skill_level: str = "intermediate"

    @property
    def minimum_rank(self) -> int:
        return SKILL_LEVELS.index(self.minimum_skill_level)


@dataclass(frozen=True)
class CoverageCondition:
    min_employees_per_shift: Tuple[Tuple[str, int], ...] = ()

    def minimum(self, code: str) -> int:
        return dict(self.min_employees_per_shift).get(code, 0)

    @property
    def shift_codes(self) -> Tuple[str, ...]:
        return tuple(code for code, _ in self.min_employees_per_shift)


@dataclass(frozen=True)
class CustomCondition:
    """Forbid some shifts, optionally only on given weekdays / for given people."""

    disallowed_shifts: Tuple[str, ...] = ()
    weekdays: Tuple[str, ...] = ()
    employee_ids: Tuple[int, ...] = ()
    departments: Tuple[str, ...] = ()


RuleCondition = Union[RestCondition, ConsecutiveShiftCondition, SkillCondition, CoverageCondition, CustomCondition]


@dataclass(frozen=True)
class RuleSpec:
    """
    Declarative specification of a rule instance.

    Attributes
    ----------
    rule_id:        Stable identifier from the rule store.
    name:           Human-readable name reported with violations.
    rule_type:      Which checker evaluates the rule.
    condition:      Typed payload matching ``rule_type``.
    action:         block / warn / ignore.
    allow_override: A human may force an assignment this rule blocks.
    enabled:        Disabled rules are never evaluated.
    priority:       Lower numbers are enforced first.
    """

    rule_id: Any
    name: str
    rule_type: RuleType
    condition: RuleCondition
    action: ViolationAction = ViolationAction.WARN
    allow_override: bool = True
    enabled: bool = True
    priority: int = 5
    description: str = ""

    @property
    def sort_key(self) -> Tuple[int, str]:
        return (self.priority, str(self.rule_id))


class _Bag:
    """Typed accessors over a condition mapping that report the owning rule."""

    def __init__(self, rule_id, name: str, data: Mapping[str, Any]):
        if not isinstance(data, Mapping):
            raise RuleConfigError(rule_id, name, f"conditions must be a mapping, got {type(data).__name__}")
        self.rule_id = rule_id
        self.name = name
        self.data = data

    def fail(self, reason: str) -> RuleConfigError:
        return RuleConfigError(self.rule_id, self.name, reason)

    def boolean(self, key: str, default: bool) -> bool:
        value = self.data.get(key, default)
        if not isinstance(value, bool):
            raise self.fail(f"'{key}' must be a boolean, got {value!r}")
        return value

    def number(self, key: str, default: float, minimum: float = 0) -> float:
        value = self.data.get(key, default)
        if isinstance(value, bool) or not isinstance(value, Real) or value < minimum:
            raise self.fail(f"'{key}' must be a number >= {minimum}, got {value!r}")
        return float(value)

    def integer(self, key: str, default: int, minimum: int = 0) -> int:
        value = self.data.get(key, default)
        if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
            raise self.fail(f"'{key}' must be an integer >= {minimum}, got {value!r}")
        return value

    def strings(self, key: str) -> Tuple[str, ...]:
        value = self.data.get(key, [])
        if isinstance(value, str) or not isinstance(value, (list, tuple)):
            raise self.fail(f"'{key}' must be a list, got {value!r}")
        return tuple(str(v) for v in value)


def _parse_rest(bag: _Bag) -> RestCondition:
    return RestCondition(
        min_rest_hours=bag.number("minRestHours", 12),
        apply_to_all_shifts=bag.boolean("applyToAllShifts", True),
        shift_codes=bag.strings("shiftCodes"),
    )


def _parse_consecutive(bag: _Bag) -> ConsecutiveShiftCondition:
    return ConsecutiveShiftCondition(
        max_consecutive_days=bag.integer("maxConsecutiveDays", 6, minimum=1),
        include_weekends=bag.boolean("includeWeekends", True),
    )


def _parse_skill(bag: _Bag) -> SkillCondition:
    level = str(bag.data.get("minimumSkillLevel", "intermediate")).lower()
    if level not in SKILL_LEVELS:
        raise bag.fail(f"'minimumSkillLevel' must be one of {SKILL_LEVELS}, got {level!r}")
    return SkillCondition(require_exact_match=bag.boolean("requireExactMatch", False), minimum_skill_level=level)


def _parse_coverage(bag: _Bag) -> CoverageCondition:
    raw = bag.data.get("minEmployeesPerShift")
    if not isinstance(raw, Mapping) or not raw:
        raise bag.fail("'minEmployeesPerShift' must be a non-empty mapping of shift code to count")
    minimums = []
    for code, count in raw.items():
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise bag.fail(f"minimum for shift {code!r} must be a non-negative integer, got {count!r}")
        minimums.append((str(code), count))
    return CoverageCondition(min_employees_per_shift=tuple(sorted(minimums)))


def _parse_custom(bag: _Bag) -> CustomCondition:
    try:
        weekdays = tuple(normalize_weekday(d) for d in bag.strings("weekdays"))
    except ValueError as e:
        raise bag.fail(str(e)) from e
    raw_ids = bag.data.get("employeeIds", [])
    if not isinstance(raw_ids, (list, tuple)) or any(isinstance(i, bool) or not isinstance(i, int) for i in raw_ids):
        raise bag.fail(f"'employeeIds' must be a list of integers, got {raw_ids!r}")
    return CustomCondition(
        disallowed_shifts=bag.strings("disallowedShifts"),
        weekdays=weekdays,
        employee_ids=tuple(raw_ids),
        departments=bag.strings("departments"),
    )


_PARSERS: Dict[RuleType, Callable[[_Bag], RuleCondition]] = {
    RuleType.REST: _parse_rest,
    RuleType.CONSECUTIVE_SHIFT: _parse_consecutive,
    RuleType.SKILL: _parse_skill,
    RuleType.COVERAGE: _parse_coverage,
    RuleType.CUSTOM: _parse_custom,
}


def coerce_rule_type(rule_id, name: str, value: Union[str, RuleType]) -> RuleType:
    if isinstance(value, RuleType):
        return value
    key = str(value).strip().lower()
    if key in _TYPE_ALIASES:
        return _TYPE_ALIASES[key]
    try:
        return RuleType(key)
    except ValueError:
        raise RuleConfigError(rule_id, name, f"unknown rule type {value!r}") from None


def parse_rule(
    rule_id,
    name: str,
    rule_type: Union[str, RuleType],
    conditions: Optional[Mapping[str, Any]] = None,
    violation_action: Union[str, ViolationAction] = "warn",
    allow_override: bool = True,
    enabled: bool = True,
    priority: int = 5,
    description: str = "",
) -> RuleSpec:
    """Validate a stored rule and return its typed form."""
    kind = coerce_rule_type(rule_id, name, rule_type)
    try:
        action = ViolationAction(str(getattr(violation_action, "value", violation_action)).lower())
    except ValueError:
        raise RuleConfigError(rule_id, name, f"unknown violation action {violation_action!r}") from None
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise RuleConfigError(rule_id, name, f"priority must be an integer, got {priority!r}")
    condition = _PARSERS[kind](_Bag(rule_id, name, conditions or {}))
    return RuleSpec(
        rule_id=rule_id,
        name=name,
        rule_type=kind,
        condition=condition,
        action=action,
        allow_override=bool(allow_override),
        enabled=bool(enabled),
        priority=priority,
        description=description or "",
    )
