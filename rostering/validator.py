"""Post-generation validation and reporting over roster entries."""

from __future__ import annotations

from typing import Dict, Iterable, Optional

import pandas as pd

from rostering.constants import HOLIDAY, LEAVE, PSEUDO_SHIFTS, UNRESOLVED, WEEK_OFF
from rostering.domain.models import Roster
from rostering.domain.snapshot import EmployeeRecord
from rostering.services.calendar import weekday_name
from rostering.services.scoring import workload_spread

FRAME_COLUMNS = ["emp_id", "date", "shift_code", "is_locked", "violations", "blocking", "revision", "modified_by"]


def roster_frame(roster: Roster) -> pd.DataFrame:
    """One row per roster entry, sorted by date then employee."""
    rows = [
        {
            "emp_id": int(e.emp_id),
            "date": e.date,
            "shift_code": e.shift_code,
            "is_locked": bool(e.is_locked),
            "violations": len(e.violations or []),
            "blocking": sum(
                1 for v in (e.violations or []) if v.get("severity") == "block" and not v.get("overridden")
            ),
            "revision": int(e.revision or 0),
            "modified_by": e.modified_by,
        }
        for e in roster.entries
    ]
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    if df.empty:
        return df
    return df.sort_values(["date", "emp_id"]).reset_index(drop=True)


def validate_roster(
    roster: Roster,
    employees: Optional[Iterable[EmployeeRecord]] = None,
    previous: Optional[Roster] = None,
) -> None:
    """
    Check the structural invariants of a roster.

    Args:
        roster: Roster to check
        employees: Reference employees; enables week-off checks
        previous: Earlier version of the same roster; its locked cells must be unchanged

    Raises:
        ValueError: On the first broken invariant
    """
    df = roster_frame(roster)
    if df.empty:
        raise ValueError(f"Roster {roster.id} has no entries")

    dupes = df[df.duplicated(["emp_id", "date"], keep=False)]
    if not dupes.empty:
        raise ValueError(f"Duplicate entries for (employee, date): {len(dupes)} rows")

    outside = df[df["date"].map(lambda d: (d.year, d.month) != (roster.year, roster.month))]
    if not outside.empty:
        raise ValueError(f"{len(outside)} entries fall outside {roster.year}-{roster.month:02d}")

    per_employee = df.groupby("emp_id")["date"].nunique()
    expected_days = df["date"].nunique()
    short = per_employee[per_employee != expected_days]
    if not short.empty:
        raise ValueError(f"Employees missing days: {sorted(int(x) for x in short.index)}")

    if employees is not None:
        respect = (roster.generation_config or {}).get("respect_week_offs", True)
        week_offs = {e.employee_id: e.week_offs for e in employees}
        # only engine-written cells; manual edits may place WO anywhere
        generated = df[(df["revision"] == 0) & ~df["is_locked"]].copy()
        generated["weekday"] = generated["date"].map(weekday_name)
        for row in generated.itertuples(index=False):
            is_off = row.weekday in week_offs.get(row.emp_id, frozenset())
            if row.shift_code == WEEK_OFF and not (respect and is_off):
                raise ValueError(f"WO for employee {row.emp_id} on {row.date} is not a week-off")
            if respect and is_off and row.shift_code not in (WEEK_OFF, HOLIDAY, LEAVE):
                raise ValueError(f"Employee {row.emp_id} works {row.shift_code} on week-off {row.date}")

    if previous is not None:
        current = {(e.emp_id, e.date): e.shift_code for e in roster.entries}
        for e in previous.entries:
            if e.is_locked and current.get((e.emp_id, e.date)) != e.shift_code:
                raise ValueError(f"Locked entry for employee {e.emp_id} on {e.date} changed")


def roster_stats(roster: Roster) -> Dict[str, float]:
    """Headline numbers shown with a roster."""
    df = roster_frame(roster)
    work = df[~df["shift_code"].isin(sorted(PSEUDO_SHIFTS))] if not df.empty else df
    schedulable = df[~df["shift_code"].isin([WEEK_OFF, HOLIDAY, LEAVE])] if not df.empty else df
    violations = int(df["violations"].sum()) if not df.empty else 0
    coverage = round(100.0 * len(work) / len(schedulable), 1) if len(schedulable) else 0.0
    return {
        "total_assignments": int(len(work)),
        "violations": violations,
        "blocking": int(df["blocking"].sum()) if not df.empty else 0,
        "unresolved": int((df["shift_code"] == UNRESOLVED).sum()) if not df.empty else 0,
        "locked": int(df["is_locked"].sum()) if not df.empty else 0,
        "coverage": coverage,
        "efficiency": max(0, 100 - 2 * violations),
    }


def summarize_roster(roster: Roster) -> str:
    df = roster_frame(roster)
    if df.empty:
        return "No entries."

    work = df[~df["shift_code"].isin(sorted(PSEUDO_SHIFTS))]
    coverage = work.groupby(["date", "shift_code"]).size().unstack(fill_value=0)
    per_employee = df.groupby(["emp_id", "shift_code"]).size().unstack(fill_value=0)
    spread = workload_spread(work.groupby("emp_id").size().to_dict())
    stats = roster_stats(roster)

    lines = [f"Roster {roster.id}: {roster.name} [{roster.status}, v{roster.version}]"]
    lines.append("")
    lines.append("Coverage per day per shift:")
    lines.append(coverage.to_string() if not coverage.empty else "(no work shifts)")
    lines.append("")
    lines.append("Shifts per employee:")
    lines.append(per_employee.to_string())
    lines.append("")
    lines.append(
        "Worked days per employee: mean {mean:.1f}, std {std:.2f}, min {min:.0f}, max {max:.0f}".format(**spread)
    )
    lines.append("")
    lines.append("Stats:")
    for key, value in stats.items():
        lines.append(f"  {key}: {value}")
    return "\n".join(lines)
