"""Command-line entrypoint for analyzing a todo dependency snapshot."""
from __future__ import annotations

import argparse
import json
from datetime import date, datetime
from pathlib import Path
from typing import Optional, Sequence

from .engine import ScheduleEngine
from .interfaces import JsonSnapshotSource, ValidationRequest
from .types import NEW_TASK_ID, GraphConfig, SnapshotError
from .validation import validate_request


def _parse_todo_id(raw: str) -> int:
    if raw.strip().lower() == "new":
        return NEW_TASK_ID
    try:
        return int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("Todo id must be an integer or 'new'") from exc


def _parse_date(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("Due date must be formatted as YYYY-MM-DD") from exc


def _parse_datetime(raw: str) -> datetime:
    try:
        return datetime.fromisoformat(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("Anchor must be an ISO 8601 datetime") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Schedule and validate todos with dependency relationships"
    )
    parser.add_argument("snapshot", type=Path, help="JSON file with the todo records")
    parser.add_argument(
        "--validate",
        type=_parse_todo_id,
        default=None,
        metavar="ID",
        help="Validate a dependency set for this todo id (or 'new') instead of scheduling",
    )
    parser.add_argument(
        "--depends-on",
        type=int,
        action="append",
        default=[],
        metavar="ID",
        help="Proposed dependency id for --validate (can be repeated)",
    )
    parser.add_argument(
        "--due-date",
        type=_parse_date,
        default=None,
        help="Proposed due date (YYYY-MM-DD) checked against each dependency",
    )
    parser.add_argument(
        "--tolerance",
        type=float,
        default=1.0,
        help="Slack in seconds below which a task counts as critical",
    )
    parser.add_argument(
        "--anchor",
        type=_parse_datetime,
        default=None,
        help="Fixed start for tasks without dependencies (default: now)",
    )
    parser.add_argument(
        "--default-duration",
        type=int,
        default=1,
        help="Duration in days for records that omit one",
    )
    parser.add_argument(
        "--dump-json",
        action="store_true",
        help="Output the result as compact JSON for automation",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Optional path to write JSONL logs for the run",
    )
    return parser


def run(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    config = GraphConfig(
        critical_tolerance_seconds=args.tolerance,
        default_duration=args.default_duration,
        anchor=args.anchor,
    )
    log_file = args.log_file
    log_handle = open(log_file, "a", encoding="utf-8") if log_file else None

    def logger(message: str, details: Optional[dict] = None) -> None:
        if not log_handle:
            return
        record = {"message": message, "details": details or {}}
        log_handle.write(json.dumps(record, ensure_ascii=False) + "\n")
        log_handle.flush()

    try:
        try:
            graph = JsonSnapshotSource(args.snapshot, config=config).load()
        except (OSError, SnapshotError) as exc:
            logger("cli.snapshot.error", {"error": str(exc)})
            parser.error(str(exc))

        logger("cli.snapshot.loaded", {"tasks": len(graph.nodes), "edges": len(graph.edges)})

        if args.validate is not None:
            request = ValidationRequest(
                todo_id=args.validate,
                dependency_ids=list(args.depends_on),
                due_date=args.due_date,
            )
            result = validate_request(graph, request, log=logger)
            payload = result.to_dict()
            if result.kind is not None:
                payload["kind"] = result.kind.value
            status = 0 if result.valid else 1
        else:
            report = ScheduleEngine(config=config).analyze(graph, log=logger)
            payload = report.to_dict()
            status = 0
    finally:
        if log_handle:
            log_handle.close()

    text = json.dumps(payload, indent=None if args.dump_json else 2)

    if args.dump_json:
        print(text)
        return status

    parser.exit(status=status, message=text + "\n")

    return status


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(args=argv)
    return run(parser, args)


if __name__ == "__main__":
    raise SystemExit(main())
