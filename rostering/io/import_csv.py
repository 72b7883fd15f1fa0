"""CSV import utilities to load reference data into the database."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List

import pandas as pd
from sqlalchemy.orm import Session

from rostering.constants import HOLIDAY_TYPES, LEAVE_STATUSES, LEAVE_TYPES, SKILL_LEVELS, normalize_weekday
from rostering.domain.models import Employee, Holiday, Leave, Rule, ShiftDefinition
from rostering.domain.repositories import LeaveRepository, RuleRepository

logger = logging.getLogger(__name__)

_TRUE = {"TRUE", "T", "1", "YES", "Y"}


def _read(csv_path: str | Path) -> pd.DataFrame:
    df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    # Normalize column names
    df.columns = df.columns.str.lower().str.strip()
    return df


def _text(row, key: str, default: str | None = None) -> str | None:
    value = str(row.get(key, "") or "").strip()
    return value if value else default


def _split(value) -> List[str]:
    """Split a ``;``-separated cell into trimmed, non-empty items."""
    return [part.strip() for part in str(value or "").split(";") if part.strip()]


def _flag(value, default: bool) -> bool:
    text = str(value or "").strip().upper()
    return default if not text else text in _TRUE


def _skill_levels(value) -> Dict[str, str]:
    """Parse ``"barista:expert;cashier:beginner"``."""
    levels = {}
    for item in _split(value):
        skill, _, level = item.partition(":")
        level = level.strip().lower() or "beginner"
        if level not in SKILL_LEVELS:
            raise ValueError(f"Unknown skill level {level!r} for skill {skill!r}")
        levels[skill.strip()] = level
    return levels


def import_employees_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import employees from CSV into database.

    Columns: employee_id, name, fixed_shift, department, week_offs, skills,
    skill_levels, status. List columns are ``;``-separated.

    Args:
        session: Database session
        csv_path: Path to employees CSV

    Returns:
        Number of employees imported
    """
    df = _read(csv_path)
    employees = []
    for _, row in df.iterrows():
        levels = _skill_levels(row.get("skill_levels"))
        skills = _split(row.get("skills")) or list(levels)
        employees.append(
            Employee(
                employee_id=int(row["employee_id"]),
                name=str(row["name"]).strip(),
                department=_text(row, "department"),
                fixed_shift=str(row["fixed_shift"]).strip(),
                week_offs=[normalize_weekday(d) for d in _split(row.get("week_offs"))],
                skills=skills,
                skill_levels=levels,
                status=_text(row, "status", "active").lower(),
            )
        )

    # Bulk insert
    session.add_all(employees)
    session.commit()

    logger.info("Imported %d employees from %s", len(employees), csv_path)
    return len(employees)


def import_shift_catalog_csv(session: Session, csv_path: str | Path) -> int:
    """Import catalog shifts (code, name, start_time, end_time, required_skill, sort_order)."""
    df = _read(csv_path)
    shifts = []
    for order, (_, row) in enumerate(df.iterrows()):
        shifts.append(
            ShiftDefinition(
                code=str(row["code"]).strip(),
                name=_text(row, "name", ""),
                start_time=str(row["start_time"]).strip(),
                end_time=str(row["end_time"]).strip(),
                required_skill=_text(row, "required_skill"),
                sort_order=int(_text(row, "sort_order", str(order))),
            )
        )
    session.add_all(shifts)
    session.commit()

    logger.info("Imported %d catalog shifts from %s", len(shifts), csv_path)
    return len(shifts)


def import_holidays_csv(session: Session, csv_path: str | Path) -> int:
    """Import holidays (date, name, holiday_type, recurring, description)."""
    df = _read(csv_path)
    df["date"] = pd.to_datetime(df["date"]).dt.date
    holidays = []
    for _, row in df.iterrows():
        holiday_type = _text(row, "holiday_type", "public").lower()
        if holiday_type not in HOLIDAY_TYPES:
            raise ValueError(f"Unknown holiday type {holiday_type!r} on {row['date']}")
        holidays.append(
            Holiday(
                date=row["date"],
                name=str(row["name"]).strip(),
                holiday_type=holiday_type,
                recurring=_flag(row.get("recurring"), False),
                description=_text(row, "description"),
            )
        )
    session.add_all(holidays)
    session.commit()

    logger.info("Imported %d holidays from %s", len(holidays), csv_path)
    return len(holidays)


def import_leaves_csv(session: Session, csv_path: str | Path) -> int:
    """Import leave requests (emp_id, start_date, end_date, leave_type, status, reason)."""
    df = _read(csv_path)
    df["start_date"] = pd.to_datetime(df["start_date"]).dt.date
    df["end_date"] = pd.to_datetime(df["end_date"]).dt.date
    leaves = []
    for _, row in df.iterrows():
        leave_type = _text(row, "leave_type", "vacation").lower()
        status = _text(row, "status", "approved").lower()
        if leave_type not in LEAVE_TYPES:
            raise ValueError(f"Unknown leave type {leave_type!r}")
        if status not in LEAVE_STATUSES:
            raise ValueError(f"Unknown leave status {status!r}")
        leaves.append(
            Leave(
                emp_id=int(row["emp_id"]),
                start_date=row["start_date"],
                end_date=row["end_date"],
                leave_type=leave_type,
                status=status,
                reason=_text(row, "reason"),
                approved_by=_text(row, "approved_by"),
            )
        )
    # validates date ranges
    LeaveRepository.bulk_create(session, leaves)

    logger.info("Imported %d leaves from %s", len(leaves), csv_path)
    return len(leaves)


def import_rules_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import rules. ``conditions`` is a JSON object; every rule is validated
    before anything is written.

    Raises:
        RuleConfigError: A rule's conditions do not match its type
    """
    df = _read(csv_path)
    rules = []
    for _, row in df.iterrows():
        raw = _text(row, "conditions", "{}")
        try:
            conditions = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Rule {row.get('name')!r}: conditions are not valid JSON: {e}") from e
        rules.append(
            Rule(
                name=str(row["name"]).strip(),
                description=_text(row, "description", ""),
                rule_type=str(row["rule_type"]).strip().lower(),
                enabled=_flag(row.get("enabled"), True),
                priority=int(_text(row, "priority", "5")),
                conditions=conditions,
                violation_action=_text(row, "violation_action", "warn").lower(),
                allow_override=_flag(row.get("allow_override"), True),
            )
        )
    RuleRepository.bulk_create(session, rules)

    logger.info("Imported %d rules from %s", len(rules), csv_path)
    return len(rules)
