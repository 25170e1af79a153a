from __future__ import annotations

import argparse
import json
import logging
import os
import sys

from assignment_settings import DATA_DIR, DEFAULT_ASSIGNMENT_SETTINGS
from substitute_assignment import SubstituteAssignmentManager


def _build_manager(args: argparse.Namespace) -> SubstituteAssignmentManager:
    session_factory = None
    if args.use_database:
        from db import get_session, init_db

        init_db()
        session_factory = get_session
    return SubstituteAssignmentManager(
        data_dir=args.data_dir,
        timetable_path=args.timetable,
        substitutes_path=args.substitutes,
        session_factory=session_factory,
    )


def _cmd_assign(args: argparse.Namespace) -> int:
    manager = _build_manager(args)
    result = manager.auto_assign_substitutes(args.date, args.absent)
    payload = result.to_dict()
    if not args.include_logs:
        payload.pop("logs")
    if args.verify:
        payload["verification"] = [report.to_dict() for report in manager.verify_assignments()]
    print(json.dumps(payload, indent=2))
    return 0


def _cmd_show(args: argparse.Namespace) -> int:
    manager = _build_manager(args)
    print(json.dumps(manager.get_substitute_assignments(), indent=2))
    return 0


def _cmd_settings(args: argparse.Namespace) -> int:
    manager = _build_manager(args)
    changes = {
        key: getattr(args, key)
        for key in DEFAULT_ASSIGNMENT_SETTINGS
        if getattr(args, key) is not None
    }
    if changes:
        manager.settings.update(changes)
    print(json.dumps(manager.settings.to_dict(), indent=2))
    return 0


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="substitute-assign",
        description="Assign substitute teachers to cover absent teachers' periods.",
    )
    parser.add_argument(
        "--data-dir",
        default=DATA_DIR,
        help="Directory holding the timetable, roster and output files.",
    )
    parser.add_argument("--timetable", help="Timetable CSV (defaults to the data directory copy).")
    parser.add_argument("--substitutes", help="Substitute roster CSV (defaults to the data directory copy).")
    parser.add_argument(
        "--use-database",
        action="store_true",
        help="Store assignments and settings through DATABASE_URL instead of JSON files.",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("SUBSTITUTE_LOG_LEVEL", "WARNING").upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    sub = parser.add_subparsers(dest="command", required=True)

    assign = sub.add_parser("assign", help="Run the assignment for one day")
    assign.add_argument("--date", required=True, help="ISO date of the absence, e.g. 2024-09-02")
    assign.add_argument(
        "--absent",
        action="append",
        required=True,
        help="Absent teacher name (repeat for several teachers)",
    )
    assign.add_argument("--verify", action="store_true", help="Run the verification checks afterwards")
    assign.add_argument("--include-logs", action="store_true", help="Include the process log in the output")
    assign.set_defaults(func=_cmd_assign)

    show = sub.add_parser("show", help="Print the persisted assignments")
    show.set_defaults(func=_cmd_show)

    settings = sub.add_parser("settings", help="Show or change the assignment limits")
    for key in DEFAULT_ASSIGNMENT_SETTINGS:
        settings.add_argument(f"--{key.replace('_', '-')}", dest=key, type=int)
    settings.set_defaults(func=_cmd_settings)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except (FileNotFoundError, ValueError) as exc:
        sys.stderr.write(f"{exc}\n")
        return 1


if __name__ == "__main__":
    sys.exit(main())
