"""Shared codes and calendar names."""

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

WEEK_OFF = "WO"
HOLIDAY = "HOL"
LEAVE = "LEAVE"
UNRESOLVED = "UNRESOLVED"

# Never evaluated as work assignments
PSEUDO_SHIFTS = frozenset({WEEK_OFF, HOLIDAY, LEAVE, UNRESOLVED})

HOLIDAY_TYPES = ("public", "company", "optional")
LEAVE_TYPES = ("sick", "vacation", "personal", "emergency")
LEAVE_STATUSES = ("pending", "approved", "rejected")
ROSTER_STATUSES = ("draft", "published", "archived")
EMPLOYEE_STATUSES = ("active", "inactive")

SKILL_LEVELS = ("beginner", "intermediate", "advanced", "expert")


def normalize_weekday(name: str) -> str:
    """Map 'sat', 'SATURDAY' or 'Saturday' onto the canonical weekday name."""
    key = str(name).strip().lower()
    for day in WEEKDAYS:
        if key == day.lower() or key == day[:3].lower():
            return day
    raise ValueError(f"Unknown weekday: {name!r}")


def is_work_shift(code: str | None) -> bool:
    return code is not None and code not in PSEUDO_SHIFTS
