"""Read-only rule snapshot for one generation run."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from rostering.errors import RuleConfigError

from .base import CoverageCondition, CustomCondition, RestCondition, RuleSpec, RuleType, parse_rule

logger = logging.getLogger(__name__)


def _unknown_codes(spec: RuleSpec, known: set) -> List[str]:
    cond = spec.condition
    if isinstance(cond, CoverageCondition):
        codes = cond.shift_codes
    elif isinstance(cond, RestCondition):
        codes = cond.shift_codes
    elif isinstance(cond, CustomCondition):
        codes = cond.disallowed_shifts
    else:
        return []
    return sorted(c for c in codes if c not in known)


class RuleRegistry:
    """
    Immutable, priority-ordered view over the rule set.

    Rules that fail to parse are kept out of the registry and listed in
    ``errors`` so a run can report them while using the remaining rules.
    """

    def __init__(self, rules: Iterable[RuleSpec] = (), errors: Iterable[RuleConfigError] = ()):
        self._rules: Tuple[RuleSpec, ...] = tuple(sorted(rules, key=lambda r: r.sort_key))
        self._errors: Tuple[RuleConfigError, ...] = tuple(errors)

    @classmethod
    def from_records(cls, records: Iterable, shift_codes: Optional[Sequence[str]] = None) -> "RuleRegistry":
        """Parse raw rule records (``RuleRecord`` or ORM ``Rule``)."""
        known = set(shift_codes) if shift_codes is not None else None
        rules: List[RuleSpec] = []
        errors: List[RuleConfigError] = []
        for rec in records:
            rule_id = getattr(rec, "rule_id", None)
            if rule_id is None:
                rule_id = getattr(rec, "id", None)
            try:
                spec = parse_rule(
                    rule_id=rule_id,
                    name=rec.name,
                    rule_type=rec.rule_type,
                    conditions=rec.conditions,
                    violation_action=rec.violation_action,
                    allow_override=rec.allow_override,
                    enabled=rec.enabled,
                    priority=rec.priority,
                    description=getattr(rec, "description", "") or "",
                )
                if known is not None:
                    unknown = _unknown_codes(spec, known)
                    if unknown:
                        raise RuleConfigError(rule_id, rec.name, f"references unknown shift codes {unknown}")
            except RuleConfigError as e:
                logger.warning("Rule excluded from run: %s", e)
                errors.append(e)
                continue
            rules.append(spec)
        return cls(rules, errors)

    @property
    def errors(self) -> Tuple[RuleConfigError, ...]:
        return self._errors

    def all(self) -> Tuple[RuleSpec, ...]:
        return self._rules

    def enabled(self) -> Tuple[RuleSpec, ...]:
        """Enabled rules, ascending priority."""
        return tuple(r for r in self._rules if r.enabled)

    def by_type(self, rule_type: RuleType) -> Tuple[RuleSpec, ...]:
        return tuple(r for r in self.enabled() if r.rule_type == rule_type)

    def get(self, rule_id) -> Optional[RuleSpec]:
        for rule in self._rules:
            if rule.rule_id == rule_id:
                return rule
        return None

    def __len__(self) -> int:
        return len(self._rules)
