"""Command-line interface for the roster engine."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date

from rostering.config import TOGGLES, load_config
from rostering.domain.db import get_session, init_database, seed_shift_catalog
from rostering.domain.repositories import RosterRepository, RuleRepository
from rostering.engine.orchestrator import GenerationService
from rostering.errors import RosterError
from rostering.io.export_csv import export_roster_entries_csv, export_roster_grid_csv
from rostering.io.import_csv import (
    import_employees_csv,
    import_holidays_csv,
    import_leaves_csv,
    import_rules_csv,
    import_shift_catalog_csv,
)
from rostering.rules.templates import RULE_TEMPLATES, rule_from_template
from rostering.validator import roster_stats, summarize_roster, validate_roster


def _settings(args: argparse.Namespace):
    cfg = load_config(args.config)
    if args.db:
        cfg.db_url = args.db
    return cfg


def _roster(session, roster_id: int):
    roster = RosterRepository.get_by_id(session, roster_id)
    if roster is None:
        raise RosterError(f"Roster {roster_id} not found")
    return roster


def _cmd_init_db(args: argparse.Namespace) -> None:
    """Initialize the database and seed the shift catalog."""
    cfg = _settings(args)
    init_database(cfg.db_url)
    session = get_session(cfg.db_url)
    try:
        added = seed_shift_catalog(session, cfg.shift_catalog)
    finally:
        session.close()
    print(f"[OK] Database initialized: {cfg.db_url} ({added} catalog shifts added)")


def _cmd_import_csv(args: argparse.Namespace) -> None:
    """Import CSV data into database."""
    cfg = _settings(args)
    session = get_session(cfg.db_url)

    try:
        # catalog first: employees reference their fixed shift
        if args.shifts:
            count = import_shift_catalog_csv(session, args.shifts)
            print(f"[OK] Imported {count} catalog shifts")

        if args.employees:
            count = import_employees_csv(session, args.employees)
            print(f"[OK] Imported {count} employees")

        if args.holidays:
            count = import_holidays_csv(session, args.holidays)
            print(f"[OK] Imported {count} holidays")

        if args.leaves:
            count = import_leaves_csv(session, args.leaves)
            print(f"[OK] Imported {count} leaves")

        if args.rules:
            count = import_rules_csv(session, args.rules)
            print(f"[OK] Imported {count} rules")

        print("[OK] CSV import complete")

    except Exception as e:
        session.rollback()
        print(f"[ERROR] Import failed: {e}")
        raise
    finally:
        session.close()


def _cmd_seed_rules(args: argparse.Namespace) -> None:
    """Create rules from the built-in templates."""
    cfg = _settings(args)
    session = get_session(cfg.db_url)
    try:
        wanted = args.template or list(RULE_TEMPLATES)
        existing = {r.name for r in RuleRepository.get_all(session)}
        created = 0
        for template_id in wanted:
            rule = rule_from_template(template_id)
            if rule.name in existing:
                print(f"[INFO] Rule '{rule.name}' already exists, skipping")
                continue
            RuleRepository.create(session, rule)
            created += 1
        print(f"[OK] Created {created} rules from templates")
    finally:
        session.close()


def _cmd_generate(args: argparse.Namespace) -> None:
    """Generate (or regenerate) a month roster."""
    cfg = _settings(args)
    session = get_session(cfg.db_url)

    try:
        overrides = {name: value for name, value in vars(args).items() if name in TOGGLES and value is not None}
        gen = cfg.generation_config(args.month, args.year, **overrides)
        result = GenerationService(cfg).generate(
            session, gen, roster_id=args.roster_id, name=args.name, created_by=args.by
        )
        if not result.ok:
            print(f"[ERROR] Generation failed: {result.error}")
            sys.exit(1)

        for error in result.rule_errors:
            print(f"[WARN] Rule skipped: {error}")
        for slot in result.unresolved:
            print(f"[WARN] Unresolved: employee {slot.employee_id} on {slot.date}")
        if result.shortfalls:
            print(f"[WARN] {len(result.shortfalls)} coverage shortfalls")

        if args.out:
            export_roster_grid_csv(result.roster, args.out)
            print(f"[OK] Exported roster grid to {args.out}")

        print(
            f"[OK] Roster {result.roster.id} generated for {args.year}-{args.month:02d}: "
            f"{len(result.roster.entries)} entries, {result.violation_count} violations"
        )

    except Exception as e:
        session.rollback()
        print(f"[ERROR] Generation failed: {e}")
        raise
    finally:
        session.close()


def _cmd_edit_cell(args: argparse.Namespace) -> None:
    """Change one cell and save the roster."""
    cfg = _settings(args)
    session = get_session(cfg.db_url)
    try:
        mutator = GenerationService(cfg).mutator(session, args.roster_id)
        entry = mutator.edit_cell(
            args.employee,
            date.fromisoformat(args.date),
            args.shift,
            modified_by=args.by,
            expected_revision=args.revision,
            force=args.force,
        )
        roster = mutator.save(session)
        for v in entry.violations or []:
            print(f"[WARN] {v['rule_name']}: {v['message']}")
        print(f"[OK] Employee {args.employee} on {args.date} set to {entry.shift_code} (roster v{roster.version})")
    except RosterError as e:
        session.rollback()
        print(f"[ERROR] Edit failed: {e}")
        sys.exit(1)
    finally:
        session.close()


def _cmd_lock(args: argparse.Namespace) -> None:
    """Lock or unlock one cell."""
    cfg = _settings(args)
    session = get_session(cfg.db_url)
    try:
        mutator = GenerationService(cfg).mutator(session, args.roster_id)
        mutator.set_lock(args.employee, date.fromisoformat(args.date), not args.unlock, modified_by=args.by)
        mutator.save(session)
        state = "unlocked" if args.unlock else "locked"
        print(f"[OK] Employee {args.employee} on {args.date} {state}")
    except RosterError as e:
        print(f"[ERROR] Lock failed: {e}")
        sys.exit(1)
    finally:
        session.close()


def _cmd_transition(args: argparse.Namespace) -> None:
    """Publish or archive a roster."""
    cfg = _settings(args)
    session = get_session(cfg.db_url)
    try:
        roster = _roster(session, args.roster_id)
        if args.command == "publish":
            RosterRepository.publish(session, roster)
        else:
            RosterRepository.archive(session, roster)
        print(f"[OK] Roster {roster.id} is now {roster.status}")
    except RosterError as e:
        print(f"[ERROR] {args.command.capitalize()} failed: {e}")
        sys.exit(1)
    finally:
        session.close()


def _cmd_export(args: argparse.Namespace) -> None:
    """Export a roster to CSV."""
    cfg = _settings(args)
    session = get_session(cfg.db_url)

    try:
        roster = _roster(session, args.roster_id)
        if args.grid:
            count = export_roster_grid_csv(roster, args.grid)
            print(f"[OK] Exported {count} employee rows to {args.grid}")

        if args.entries:
            count = export_roster_entries_csv(roster, args.entries)
            print(f"[OK] Exported {count} entries to {args.entries}")

    except Exception as e:
        print(f"[ERROR] Export failed: {e}")
        raise
    finally:
        session.close()


def _cmd_summarize(args: argparse.Namespace) -> None:
    """Print a roster report, optionally validating it first."""
    cfg = _settings(args)
    session = get_session(cfg.db_url)
    try:
        roster = _roster(session, args.roster_id)
        if args.validate:
            from rostering.domain.snapshot import load_reference_snapshot

            snapshot = load_reference_snapshot(session, roster.year, roster.month, cfg.trailing_window_days)
            validate_roster(roster, snapshot.employees)
            print(f"[OK] Validation passed for roster {roster.id}")
        print(summarize_roster(roster))
        stats = roster_stats(roster)
        print(f"[OK] {stats['total_assignments']} assignments, efficiency {stats['efficiency']}%")
    except (RosterError, ValueError) as e:
        print(f"[ERROR] {e}")
        sys.exit(1)
    finally:
        session.close()


def _add_cell_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--roster-id", type=int, required=True, help="Roster id")
    parser.add_argument("--employee", type=int, required=True, help="Employee id")
    parser.add_argument("--date", required=True, help="Cell date (YYYY-MM-DD)")
    parser.add_argument("--by", help="Recorded as modifier")


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(prog="rostering", description="Monthly shift roster generation and validation")

    # Global options
    parser.add_argument("--db", help="Database URL (default: db_url from config, else sqlite:///roster.db)")
    parser.add_argument("--config", help="Path to config YAML (optional)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    # init-db command
    init = sub.add_parser("init-db", help="Initialize database and seed the shift catalog")
    init.set_defaults(func=_cmd_init_db)

    # import-csv command
    imp = sub.add_parser("import-csv", help="Import CSV data into database")
    imp.add_argument("--shifts", help="Path to shift catalog CSV")
    imp.add_argument("--employees", help="Path to employees CSV")
    imp.add_argument("--holidays", help="Path to holidays CSV")
    imp.add_argument("--leaves", help="Path to leaves CSV")
    imp.add_argument("--rules", help="Path to rules CSV")
    imp.set_defaults(func=_cmd_import_csv)

    # seed-rules command
    seed = sub.add_parser("seed-rules", help="Create rules from built-in templates")
    seed.add_argument("--template", action="append", choices=sorted(RULE_TEMPLATES), help="Template id (repeatable)")
    seed.set_defaults(func=_cmd_seed_rules)

    # generate command
    gen = sub.add_parser("generate", help="Generate a roster for a month")
    gen.add_argument("--month", type=int, required=True, help="Month (1-12)")
    gen.add_argument("--year", type=int, required=True, help="Year")
    gen.add_argument("--roster-id", type=int, help="Regenerate this roster, keeping locked cells")
    gen.add_argument("--name", help="Name for a new roster")
    gen.add_argument("--by", help="Recorded as creator")
    gen.add_argument("--out", help="Optional: export the roster grid to CSV")
    for toggle in TOGGLES:
        flag = toggle.replace("_", "-")
        gen.add_argument(f"--{flag}", dest=toggle, action="store_true", default=None)
        gen.add_argument(f"--no-{flag}", dest=toggle, action="store_false", default=None)
    gen.set_defaults(func=_cmd_generate)

    # edit-cell command
    edit = sub.add_parser("edit-cell", help="Change the shift of one cell")
    _add_cell_args(edit)
    edit.add_argument("--shift", required=True, help="Shift code, WO, HOL or LEAVE")
    edit.add_argument("--revision", type=int, help="Revision the edit is based on")
    edit.add_argument("--force", action="store_true", help="Override blocking rules where allowed")
    edit.set_defaults(func=_cmd_edit_cell)

    # lock command
    lock = sub.add_parser("lock", help="Lock (or unlock) one cell")
    _add_cell_args(lock)
    lock.add_argument("--unlock", action="store_true", help="Unlock instead")
    lock.set_defaults(func=_cmd_lock)

    # publish / archive commands
    for name, text in (("publish", "Publish a draft roster"), ("archive", "Archive a published roster")):
        cmd = sub.add_parser(name, help=text)
        cmd.add_argument("--roster-id", type=int, required=True, help="Roster id")
        cmd.set_defaults(func=_cmd_transition)

    # export command
    exp = sub.add_parser("export", help="Export a roster to CSV")
    exp.add_argument("--roster-id", type=int, required=True, help="Roster id")
    exp.add_argument("--grid", help="Path to export the employee x date grid")
    exp.add_argument("--entries", help="Path to export one row per entry")
    exp.set_defaults(func=_cmd_export)

    # summarize command
    summ = sub.add_parser("summarize", help="Print a roster report")
    summ.add_argument("--roster-id", type=int, required=True, help="Roster id")
    summ.add_argument("--validate", action="store_true", help="Check structural invariants first")
    summ.set_defaults(func=_cmd_summarize)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
