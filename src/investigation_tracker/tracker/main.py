"""CLI entrypoint for the investigation tracker.

Besides operator commands (serve, enqueue, scan, status, migrate) this exposes
the worker write-back contract: the investigation worker claims queue items and
reports completion through `investigation-tracker worker ...`.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys

from pydantic import ValidationError

from investigation_tracker import __version__
from investigation_tracker.server.config import ServerSettings
from investigation_tracker.tracker.factory import build_tracker
from investigation_tracker.tracker.handlers import InvestigationTracker
from investigation_tracker.tracker.logging import configure_logging
from investigation_tracker.tracker.validation import (
    InvalidRequest,
    validate_issue_number,
    validate_repository,
)

logger = logging.getLogger(__name__)


def _add_target_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--repo",
        "--repository",
        dest="repository",
        required=True,
        help="Target repository in the form 'owner/repo'",
    )
    parser.add_argument("--issue", "--issue-number", dest="issue_number", type=int, required=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="investigation-tracker",
        description="Track, queue and dispatch GitHub issue investigations",
    )
    parser.add_argument(
        "--version", action="version", version=f"issue-investigation-tracker {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API and webhook receiver")
    serve.add_argument("--host", default=None, help="Bind address (defaults to INVESTIGATION_HOST)")
    serve.add_argument(
        "--port", type=int, default=None, help="Listen port (defaults to INVESTIGATION_PORT)"
    )

    investigate = subparsers.add_parser(
        "investigate",
        help="Queue an issue, run a catch-up scan of its repository and ensure a worker",
    )
    _add_target_arguments(investigate)

    enqueue = subparsers.add_parser("enqueue", help="Queue a single issue without scanning")
    _add_target_arguments(enqueue)
    enqueue.add_argument(
        "--reinvestigate",
        action="store_true",
        help="Queue even if the issue was already investigated",
    )

    scan = subparsers.add_parser(
        "scan", help="Queue open issues that are new or updated since their last investigation"
    )
    scan.add_argument(
        "--repo",
        "--repository",
        dest="repository",
        required=True,
        help="Target repository in the form 'owner/repo'",
    )

    subparsers.add_parser("status", help="Print queue, ledger and worker liveness as JSON")
    subparsers.add_parser("migrate", help="Migrate a legacy ledger to the current schema")

    worker = subparsers.add_parser("worker", help="Commands used by the investigation worker")
    worker_commands = worker.add_subparsers(dest="worker_command", required=True)

    claim = worker_commands.add_parser(
        "claim", help="Claim the next queue item and print it as JSON (exit 1 if none)"
    )
    claim.add_argument(
        "--pid",
        type=int,
        default=None,
        help="Worker process id holding the claim (defaults to the calling process)",
    )

    complete = worker_commands.add_parser(
        "complete", help="Record an investigation and remove the issue from the queue"
    )
    _add_target_arguments(complete)

    release = worker_commands.add_parser(
        "release", help="Give a claimed item back to the queue after a failed attempt"
    )
    _add_target_arguments(release)

    return parser


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _status_payload(tracker: InvestigationTracker) -> dict[str, object]:
    return {
        "queue": [item.model_dump(mode="json") for item in tracker.state.queue.snapshot()],
        "ledger": tracker.state.ledger.snapshot(),
        "worker_alive": tracker.supervisor.is_alive(),
    }


def _serve(settings: ServerSettings, *, host: str | None, port: int | None) -> int:
    import uvicorn

    from investigation_tracker.server.app import create_app

    app = create_app(settings)
    uvicorn.run(
        app,
        host=host or settings.host,
        port=port or settings.port,
        log_config=None,
    )
    return 0


def _run_worker_command(tracker: InvestigationTracker, args: argparse.Namespace) -> int:
    if args.worker_command == "claim":
        pid = args.pid if args.pid is not None else os.getppid()
        item = tracker.state.queue.claim_next(pid)
        if item is None:
            return 1
        _print_json(item.model_dump(mode="json"))
        return 0

    repository = validate_repository(args.repository)
    issue_number = validate_issue_number(args.issue_number)

    if args.worker_command == "complete":
        removed = tracker.complete(repository, issue_number)
        if not removed:
            logger.warning(
                "Completed issue was not in the queue",
                extra={"repository": repository, "issue_number": issue_number},
            )
        return 0

    if args.worker_command == "release":
        if not tracker.state.queue.release(repository, issue_number):
            print(f"{repository}#{issue_number} is not queued", file=sys.stderr)
            return 1
        return 0

    raise AssertionError(f"Unhandled worker command: {args.worker_command}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = ServerSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    # stdout carries JSON results for everything but the server.
    configure_logging(
        settings.log_level, stream=sys.stdout if args.command == "serve" else sys.stderr
    )

    if args.command == "serve":
        return _serve(settings, host=args.host, port=args.port)

    tracker = build_tracker(settings)

    try:
        if args.command == "investigate":
            outcome = tracker.investigate(args.repository, args.issue_number)
            _print_json(
                {
                    "queued": outcome.queued,
                    "queue_length": outcome.queue_length,
                    "scan": {
                        "new": outcome.scan.new,
                        "reinvestigate": outcome.scan.reinvestigate,
                        "error": outcome.scan.error,
                    },
                    "worker": outcome.worker.value,
                }
            )
            return 0

        if args.command == "enqueue":
            repository = validate_repository(args.repository)
            issue_number = validate_issue_number(args.issue_number)
            added = tracker.state.queue.enqueue(
                repository, issue_number, is_reinvestigation=args.reinvestigate
            )
            print("queued" if added else "not queued (already queued or investigated)")
            return 0

        if args.command == "scan":
            repository = validate_repository(args.repository)
            result = tracker.scanner.scan(repository)
            _print_json(
                {"new": result.new, "reinvestigate": result.reinvestigate, "error": result.error}
            )
            return 0 if result.ok else 1

        if args.command == "status":
            _print_json(_status_payload(tracker))
            return 0

        if args.command == "migrate":
            # Opening the state store runs the migration.
            if tracker.state.migrated:
                print(f"Migrated legacy ledger at {settings.ledger_state_file}")
            else:
                print(f"Ledger at {settings.ledger_state_file} is already on the current schema")
            return 0

        if args.command == "worker":
            return _run_worker_command(tracker, args)

    except InvalidRequest as e:
        print(f"Invalid request: {e}", file=sys.stderr)
        return 2

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
