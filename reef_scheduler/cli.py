"""
Command-line entry point for the Reef scheduler.

Usage:
    reef-scheduler init-db
    reef-scheduler run            # foreground loop until SIGINT/SIGTERM
    reef-scheduler run-once       # single pass, prints a summary
    reef-scheduler serve          # API + background loop via uvicorn
"""
import argparse
import logging
import signal
import sys
from typing import Optional, Sequence

from .config import settings
from .logging import configure_logging

logger = logging.getLogger(__name__)


def _cmd_init_db(args: argparse.Namespace) -> int:
    from .database import init_db

    init_db()
    print(f"Database initialized: {settings.database_url}")
    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    from .database import init_db
    from .infra.tasks.cancellation import EventCancellationToken
    from .wiring.bootstrap import get_scheduler_service

    init_db()
    cancel = EventCancellationToken()

    def _handle_signal(signum, frame):
        logger.info("Received signal %s, stopping scheduler", signum)
        cancel.cancel()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    passes = get_scheduler_service().run(cancel)
    print(f"Scheduler stopped after {passes} pass(es)")
    return 0


def _cmd_run_once(args: argparse.Namespace) -> int:
    from .database import init_db
    from .wiring.bootstrap import get_run_scheduler_pass_use_case

    init_db()
    result = get_run_scheduler_pass_use_case().execute()

    if result.fetch_error:
        print(f"Failed to fetch due jobs: {result.fetch_error}")
        return 1

    print(f"Pass at {result.started_at.isoformat()}: {result.due_count} due")
    for outcome in result.outcomes:
        status = "ok" if outcome.success else f"FAILED ({outcome.failure_count}x): {outcome.error}"
        next_run = outcome.next_run_at.isoformat() if outcome.next_run_at else "not persisted"
        print(f"  task {outcome.job_id} / profile {outcome.profile_id}: {status}; next run {next_run}")
    return 0 if result.failed == 0 else 2


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "reef_scheduler.main:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reef-scheduler",
        description="Periodic profile scheduler",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create database tables").set_defaults(func=_cmd_init_db)
    sub.add_parser("run", help="Run the scheduler loop in the foreground").set_defaults(func=_cmd_run)
    sub.add_parser("run-once", help="Run a single scheduler pass").set_defaults(func=_cmd_run_once)

    serve = sub.add_parser("serve", help="Serve the API with the scheduler loop")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(func=_cmd_serve)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level or settings.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
