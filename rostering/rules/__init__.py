"""Rule types, parsing and the per-run rule registry."""

from .base import (
    ConsecutiveShiftCondition,
    CoverageCondition,
    CustomCondition,
    RestCondition,
    RuleSpec,
    RuleType,
    SkillCondition,
    ViolationAction,
    parse_rule,
)
from .registry import RuleRegistry

__all__ = [
    "ConsecutiveShiftCondition",
    "CoverageCondition",
    "CustomCondition",
    "RestCondition",
    "RuleSpec",
    "RuleType",
    "SkillCondition",
    "ViolationAction",
    "parse_rule",
    "RuleRegistry",
]
