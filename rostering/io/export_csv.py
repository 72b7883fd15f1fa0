"""CSV export utilities for rosters."""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from rostering.domain.models import Roster

logger = logging.getLogger(__name__)


def roster_grid_frame(roster: Roster) -> pd.DataFrame:
    """One row per employee, one column per ISO date, cells hold shift codes."""
    rows = [{"emp_id": e.emp_id, "date": e.date.isoformat(), "shift_code": e.shift_code} for e in roster.entries]
    if not rows:
        return pd.DataFrame(columns=["emp_id"])
    df = pd.DataFrame(rows)
    grid = df.pivot(index="emp_id", columns="date", values="shift_code").sort_index()
    grid = grid.reindex(sorted(grid.columns), axis=1)
    grid.columns.name = None
    return grid.reset_index()


def export_roster_grid_csv(roster: Roster, csv_path: str | Path) -> int:
    """
    Export a roster as an employee x date grid.

    Returns:
        Number of employee rows written
    """
    grid = roster_grid_frame(roster)
    grid.to_csv(csv_path, index=False)
    logger.info("Exported roster %s grid (%d employees) to %s", roster.id, len(grid), csv_path)
    return len(grid)


def export_roster_entries_csv(roster: Roster, csv_path: str | Path) -> int:
    """
    Export one row per entry, violations flattened to ``rule: message`` items.

    Returns:
        Number of entries written
    """
    rows = []
    for e in sorted(roster.entries, key=lambda x: (x.date, x.emp_id)):
        violations = e.violations or []
        rows.append(
            {
                "roster_id": roster.id,
                "emp_id": e.emp_id,
                "date": e.date.isoformat(),
                "shift_code": e.shift_code,
                "is_locked": bool(e.is_locked),
                "violation_count": len(violations),
                "violations": "; ".join(f"{v.get('rule_name')}: {v.get('message')}" for v in violations),
                "last_modified": e.last_modified.isoformat() if e.last_modified else "",
                "modified_by": e.modified_by or "",
            }
        )
    columns = [
        "roster_id", "emp_id", "date", "shift_code", "is_locked",
        "violation_count", "violations", "last_modified", "modified_by",
    ]
    pd.DataFrame(rows, columns=columns).to_csv(csv_path, index=False)
    logger.info("Exported %d entries of roster %s to %s", len(rows), roster.id, csv_path)
    return len(rows)
