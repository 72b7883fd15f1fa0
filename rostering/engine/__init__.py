"""Roster generation and editing engine."""

from .assignment import AssignmentEngine, GenerationResult, GenerationStatus, Slot, SlotState
from .mutator import RosterMutator
from .orchestrator import GenerationService, build_month_roster

__all__ = [
    "AssignmentEngine",
    "GenerationResult",
    "GenerationStatus",
    "Slot",
    "SlotState",
    "RosterMutator",
    "GenerationService",
    "build_month_roster",
]
