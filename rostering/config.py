"""Configuration loading: YAML scheduler settings and per-run generation toggles."""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from yaml import safe_load

from .constants import HOLIDAY_TYPES
from .errors import InvalidConfig


class ConfigWarning(UserWarning):
    pass


@dataclass
class ShiftTemplate:
    """Catalog shift used to seed an empty database."""

    code: str
    name: str
    start: str
    end: str
    required_skill: Optional[str] = None


def _default_catalog() -> List[ShiftTemplate]:
    return [
        ShiftTemplate("S1", "Morning", "06:00", "14:00"),
        ShiftTemplate("S2", "Day", "09:00", "17:00"),
        ShiftTemplate("S3", "Afternoon", "14:00", "22:00"),
        ShiftTemplate("S4", "Evening", "18:00", "02:00"),
        ShiftTemplate("S5", "Night", "22:00", "06:00"),
    ]


# camelCase keys sent by the presentation layer
_CAMEL_KEYS = {
    "includeHolidays": "include_holidays",
    "respectWeekOffs": "respect_week_offs",
    "enforceSkillMatching": "enforce_skill_matching",
    "minimumRestPeriod": "minimum_rest_period",
    "balanceWorkload": "balance_workload",
    "allowOverrides": "allow_overrides",
}

TOGGLES = tuple(_CAMEL_KEYS.values())


@dataclass(frozen=True)
class GenerationConfig:
    """One generation request. Months are 1-based."""

    month: int
    year: int
    include_holidays: bool = True
    respect_week_offs: bool = True
    enforce_skill_matching: bool = True
    minimum_rest_period: bool = True
    balance_workload: bool = True
    allow_overrides: bool = False

    def validate(self) -> "GenerationConfig":
        if isinstance(self.month, bool) or not isinstance(self.month, int) or not 1 <= self.month <= 12:
            raise InvalidConfig(f"Month must be an integer in 1..12, got {self.month!r}")
        if isinstance(self.year, bool) or not isinstance(self.year, int) or not 1900 <= self.year <= 9999:
            raise InvalidConfig(f"Year must be an integer in 1900..9999, got {self.year!r}")
        for name in TOGGLES:
            if not isinstance(getattr(self, name), bool):
                raise InvalidConfig(f"Toggle {name} must be a boolean")
        return self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], defaults: Optional[Mapping[str, bool]] = None) -> "GenerationConfig":
        """Build from snake_case or camelCase keys, filling toggles from ``defaults``."""
        values: Dict[str, Any] = dict(defaults or {})
        for key, value in data.items():
            values[_CAMEL_KEYS.get(key, key)] = value
        known = {f.name for f in fields(cls)}
        missing = {"month", "year"} - values.keys()
        if missing:
            raise InvalidConfig(f"Generation config missing: {', '.join(sorted(missing))}")
        return cls(**{k: v for k, v in values.items() if k in known}).validate()

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class SchedulerConfig:
    db_url: str = "sqlite:///roster.db"
    # holiday types that turn a day into HOL
    holiday_types: List[str] = field(default_factory=lambda: ["public", "company"])
    # days of the prior month consulted for rest / streak rules
    trailing_window_days: int = 7
    generation_defaults: Dict[str, bool] = field(
        default_factory=lambda: {name: name != "allow_overrides" for name in TOGGLES}
    )
    shift_catalog: List[ShiftTemplate] = field(default_factory=_default_catalog)

    def generation_config(self, month: int, year: int, **overrides: bool) -> GenerationConfig:
        return GenerationConfig.from_dict({"month": month, "year": year, **overrides}, self.generation_defaults)


def _expect(value: Any, kind, key: str):
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise InvalidConfig(f"Config value for '{key}' must be {getattr(kind, '__name__', kind)}, got {type(value).__name__}")
    return value


def _parse(data: Mapping[str, Any]) -> SchedulerConfig:
    cfg = SchedulerConfig()
    known = {f.name for f in fields(SchedulerConfig)}
    for key in sorted(set(data) - known):
        warnings.warn(f"Ignoring unknown config key: '{key}'", ConfigWarning, stacklevel=3)

    if "db_url" in data:
        cfg.db_url = _expect(data["db_url"], str, "db_url")
    if "holiday_types" in data:
        types = [str(t).lower() for t in _expect(data["holiday_types"], list, "holiday_types")]
        bad = [t for t in types if t not in HOLIDAY_TYPES]
        if bad:
            raise InvalidConfig(f"Unknown holiday types: {bad}")
        cfg.holiday_types = types
    if "trailing_window_days" in data:
        cfg.trailing_window_days = _expect(data["trailing_window_days"], int, "trailing_window_days")
        if cfg.trailing_window_days < 1:
            raise InvalidConfig("trailing_window_days must be >= 1")
    if "generation_defaults" in data:
        raw = _expect(data["generation_defaults"], dict, "generation_defaults")
        for key, value in raw.items():
            name = _CAMEL_KEYS.get(key, key)
            if name not in TOGGLES:
                warnings.warn(f"Ignoring unknown generation toggle: '{key}'", ConfigWarning, stacklevel=3)
                continue
            cfg.generation_defaults[name] = _expect(value, bool, f"generation_defaults.{key}")
    if "shift_catalog" in data:
        catalog = []
        for item in _expect(data["shift_catalog"], list, "shift_catalog"):
            item = _expect(item, dict, "shift_catalog[]")
            try:
                catalog.append(ShiftTemplate(**item))
            except TypeError as e:
                raise InvalidConfig(f"Bad shift_catalog entry {item}: {e}") from e
        cfg.shift_catalog = catalog
    return cfg


def load_config(path: str | Path | None = None) -> SchedulerConfig:
    """Load scheduler settings from a YAML file; ``None`` gives the defaults."""
    if path is None:
        return SchedulerConfig()
    with open(path, "r", encoding="utf-8") as f:
        parsed = safe_load(f.read()) or {}
    if not isinstance(parsed, dict):
        raise InvalidConfig(f"Config file {path} must contain a mapping")
    return _parse(parsed)
