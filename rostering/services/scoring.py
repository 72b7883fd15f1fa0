"""Candidate ordering and workload balance measures."""

from __future__ import annotations

from typing import Dict, List, Mapping, Sequence

import pandas as pd

from rostering.domain.snapshot import EmployeeRecord


def candidate_order(
    employee: EmployeeRecord,
    catalog: Sequence[str],
    deficits: Mapping[str, int] | None = None,
) -> List[str]:
    """
    Shifts to try for one slot: the fixed shift, then the rest of the catalog.

    With ``deficits`` (balanced workload), fallbacks with the largest
    remaining coverage gap come first; ties keep catalog order.
    """
    others = [code for code in catalog if code != employee.fixed_shift]
    if deficits:
        # stable: equal deficits stay in catalog order
        others.sort(key=lambda code: -deficits.get(code, 0))
    head = [employee.fixed_shift] if employee.fixed_shift in catalog else []
    return head + others


def surplus(counts: Mapping[str, int], minimums: Mapping[str, int]) -> Dict[str, int]:
    """Headcount above the configured minimum for each shift in ``counts``."""
    return {code: n - minimums.get(code, 0) for code, n in counts.items() if n > minimums.get(code, 0)}


def workload_spread(work_days: Mapping[int, int]) -> Dict[str, float]:
    """Mean, standard deviation and range of worked days per employee."""
    series = pd.Series(work_days, dtype=float)
    if series.empty:
        return {"mean": 0.0, "std": 0.0, "min": 0.0, "max": 0.0}
    return {
        "mean": float(series.mean()),
        "std": float(series.std(ddof=0)),
        "min": float(series.min()),
        "max": float(series.max()),
    }
