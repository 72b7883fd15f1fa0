"""Roster generation and validation engine.

Modules:
- config: YAML scheduler settings and per-run generation toggles
- constants: shift pseudo-codes and calendar names
- errors: exception taxonomy
- domain: SQLAlchemy models, repositories and the reference snapshot
- rules: typed rule conditions, registry and templates
- services: period resolution, constraint evaluation and candidate ordering
- engine: assignment engine, roster mutator and generation service
- validator: structural checks and reports over a roster
- io: CSV import/export
- cli: command-line interface entrypoints
"""

__all__ = [
    "config",
    "constants",
    "errors",
    "domain",
    "rules",
    "services",
    "engine",
    "validator",
    "io",
    "cli",
]
