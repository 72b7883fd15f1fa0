"""Starter rules offered when creating a rule from a template."""

from __future__ import annotations

import copy
from typing import Any, Dict, List

from rostering.domain.models import Rule

RULE_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "min-rest": {
        "name": "Minimum Rest Period",
        "description": "Ensure employees have adequate rest between shifts",
        "rule_type": "rest",
        "conditions": {"minRestHours": 12, "applyToAllShifts": True},
        "violation_action": "block",
        "allow_override": False,
        "priority": 1,
    },
    "max-consecutive": {
        "name": "Maximum Consecutive Days",
        "description": "Limit consecutive working days",
        "rule_type": "consecutive-shift",
        "conditions": {"maxConsecutiveDays": 6, "includeWeekends": True},
        "violation_action": "warn",
        "allow_override": True,
        "priority": 2,
    },
    "skill-match": {
        "name": "Skill-Based Assignment",
        "description": "Match employee skills to shift requirements",
        "rule_type": "skill",
        "conditions": {"requireExactMatch": False, "minimumSkillLevel": "intermediate"},
        "violation_action": "block",
        "allow_override": True,
        "priority": 3,
    },
    "min-coverage": {
        "name": "Minimum Coverage",
        "description": "Ensure adequate staffing levels",
        "rule_type": "coverage",
        "conditions": {"minEmployeesPerShift": {"S1": 3, "S2": 2, "S3": 4, "S4": 2, "S5": 1}},
        "violation_action": "warn",
        "allow_override": True,
        "priority": 4,
    },
}


def rule_from_template(template_id: str, **overrides: Any) -> Rule:
    """Build an unsaved ``Rule`` from a template, with field overrides."""
    try:
        fields = copy.deepcopy(RULE_TEMPLATES[template_id])
    except KeyError:
        raise KeyError(f"Unknown rule template: {template_id!r}") from None
    fields.update(overrides)
    fields.setdefault("enabled", True)
    return Rule(**fields)


def default_rules() -> List[Rule]:
    """One rule per template, priorities as listed."""
    return [rule_from_template(tid) for tid in RULE_TEMPLATES]
