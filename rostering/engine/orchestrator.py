"""Generation service - serializes runs per target roster and persists the result."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import date, timedelta
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from sqlalchemy.orm import Session

from rostering.config import GenerationConfig, SchedulerConfig
from rostering.domain.repositories import RosterRepository, month_bounds
from rostering.domain.snapshot import ReferenceSnapshot, load_reference_snapshot
from rostering.errors import GenerationInProgress, InvalidConfig
from rostering.rules.base import RuleType
from rostering.rules.registry import RuleRegistry

from .assignment import AssignmentEngine, GenerationResult
from .mutator import RosterMutator

logger = logging.getLogger(__name__)

# targets with a run in flight, shared by every service in the process
_in_flight: set = set()
_in_flight_guard = threading.Lock()


@contextmanager
def _claim(target: Tuple):
    with _in_flight_guard:
        if target in _in_flight:
            raise GenerationInProgress(target)
        _in_flight.add(target)
    try:
        yield
    finally:
        with _in_flight_guard:
            _in_flight.discard(target)


class GenerationService:
    """
    Runs the assignment engine against one snapshot of the reference data.

    At most one run per (year, month, roster) target is in flight; a second
    request for the same target raises ``GenerationInProgress`` instead of
    interleaving with the first.
    """

    def __init__(self, cfg: Optional[SchedulerConfig] = None):
        """
        Initialize the service.

        Args:
            cfg: Scheduler settings (default: built-in defaults)
        """
        self.cfg = cfg or SchedulerConfig()

    def _coerce(self, config: Union[GenerationConfig, Mapping[str, Any]]) -> GenerationConfig:
        if isinstance(config, GenerationConfig):
            return config.validate()
        return GenerationConfig.from_dict(config, self.cfg.generation_defaults)

    def history_window(self, snapshot: ReferenceSnapshot) -> int:
        """
        Days of the previous month needed by the boundary rules.

        The configured window, widened so an enabled streak limit can see a full
        over-long run (weekdays only when weekends do not count).
        """
        window = self.cfg.trailing_window_days
        registry = RuleRegistry.from_records(snapshot.rules)
        for rule in registry.by_type(RuleType.CONSECUTIVE_SHIFT):
            span = rule.condition.max_consecutive_days
            if not rule.condition.include_weekends:
                span += 2 * (span // 5 + 1)
            window = max(window, span)
        return window

    def history(
        self, session: Session, year: int, month: int, days: Optional[int] = None
    ) -> Dict[Tuple[int, date], str]:
        """Last ``days`` days (default: the configured window) of the previous month's roster."""
        prev_year, prev_month = (year - 1, 12) if month == 1 else (year, month - 1)
        if prev_year < 1900:
            return {}
        previous = RosterRepository.get_latest_for_month(session, prev_year, prev_month)
        if previous is None:
            return {}
        _, last = month_bounds(prev_year, prev_month)
        start = last - timedelta(days=(days or self.cfg.trailing_window_days) - 1)
        return {(e.emp_id, e.date): e.shift_code for e in previous.entries if e.date >= start}

    def generate(
        self,
        session: Session,
        config: Union[GenerationConfig, Mapping[str, Any]],
        roster_id: Optional[int] = None,
        name: Optional[str] = None,
        created_by: Optional[str] = None,
        persist: bool = True,
    ) -> GenerationResult:
        """
        Generate (or regenerate) a month roster.

        Args:
            session: Database session
            config: GenerationConfig or a mapping with month, year and toggles
            roster_id: Existing roster to regenerate; locked cells are kept
            name: Name for a new roster
            created_by: Recorded on the roster and its entries
            persist: If True, save the roster to the database

        Returns:
            GenerationResult; a failed result carries the error and no roster

        Raises:
            GenerationInProgress: A run for the same target is already in flight
        """
        try:
            gen = self._coerce(config)
        except InvalidConfig as e:
            logger.error("Generation rejected: %s", e)
            return GenerationResult.failed(str(e))

        target = (gen.year, gen.month, roster_id)
        with _claim(target):
            existing = None
            if roster_id is not None:
                existing = RosterRepository.get_by_id(session, roster_id)
                if existing is None:
                    return GenerationResult.failed(f"Roster {roster_id} not found", gen)
                if (existing.year, existing.month) != (gen.year, gen.month):
                    return GenerationResult.failed(
                        f"Roster {roster_id} is for {existing.year}-{existing.month:02d}, "
                        f"not {gen.year}-{gen.month:02d}",
                        gen,
                    )
                if existing.status == "archived":
                    return GenerationResult.failed(f"Roster {roster_id} is archived", gen)

            try:
                snapshot = load_reference_snapshot(session, gen.year, gen.month, self.cfg.trailing_window_days)
                engine = AssignmentEngine(gen, holiday_types=self.cfg.holiday_types)
                result = engine.make_schedule(
                    snapshot,
                    locked_entries=[e for e in existing.entries if e.is_locked] if existing else (),
                    history=self.history(session, gen.year, gen.month, self.history_window(snapshot)),
                    name=name,
                    created_by=created_by,
                )
            except InvalidConfig as e:
                logger.error("Generation failed for %04d-%02d: %s", gen.year, gen.month, e)
                return GenerationResult.failed(str(e), gen)

            if persist:
                if existing is not None:
                    entries = list(result.roster.entries)
                    result.roster.entries = []
                    existing.generation_config = gen.to_dict()
                    RosterRepository.replace_entries(session, existing, entries)
                    result.roster = existing
                    logger.info("Regenerated roster %s (version %s)", existing.id, existing.version)
                else:
                    RosterRepository.create(session, result.roster)
                    logger.info("Persisted roster %s with %d entries", result.roster.id, len(result.roster.entries))
            return result

    def mutator(self, session: Session, roster_id: int) -> RosterMutator:
        """Editor for a saved roster, bound to a fresh reference snapshot."""
        roster = RosterRepository.get_by_id(session, roster_id)
        if roster is None:
            raise KeyError(f"Roster {roster_id} not found")
        snapshot = load_reference_snapshot(session, roster.year, roster.month, self.cfg.trailing_window_days)
        return RosterMutator(
            roster,
            snapshot,
            history=self.history(session, roster.year, roster.month, self.history_window(snapshot)),
            holiday_types=self.cfg.holiday_types,
        )


def build_month_roster(
    session: Session,
    config: Union[GenerationConfig, Mapping[str, Any]],
    cfg: Optional[SchedulerConfig] = None,
    roster_id: Optional[int] = None,
    persist: bool = True,
    **kwargs,
) -> GenerationResult:
    """
    Convenience function to build a month roster.

    Args:
        session: Database session
        config: GenerationConfig or mapping with month, year and toggles
        cfg: SchedulerConfig
        roster_id: Existing roster to regenerate
        persist: If True, save the roster to the database

    Returns:
        GenerationResult
    """
    return GenerationService(cfg).generate(session, config, roster_id=roster_id, persist=persist, **kwargs)
