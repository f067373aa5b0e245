"""
Fixture Sync - daemon and command-line entry point.

Runs the sync scheduler in the foreground until SIGINT/SIGTERM, or executes
one-off operations (full sync, single job, status, cleanup) and exits.

The HTTP control API is served separately:
    uvicorn src.api.main:app --host 127.0.0.1 --port 8000
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv

from src.infra.config import Settings
from src.infra.logging_config import setup_logging
from src.provider.errors import ConfigurationError
from src.scheduler.errors import JobNotFoundError
from src.sync.runtime import SyncRuntime, build_runtime


# Environment variables
load_dotenv()

logger = logging.getLogger("fixture_sync")


def parse_args(argv: Optional[list] = None):
    parser = argparse.ArgumentParser(
        description="API-Football data synchronization engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the scheduler until interrupted
  python main.py run

  # One full synchronization, then exit
  python main.py full-sync

  # Execute one job immediately
  python main.py run-job daily-standings

  # Show registered jobs and today's activity
  python main.py status
        """
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the scheduler and run until SIGINT/SIGTERM (default)")
    subparsers.add_parser("full-sync", help="Run one full synchronization and exit")

    run_job = subparsers.add_parser("run-job", help="Execute one registered job now")
    run_job.add_argument("job_id", help="Job identifier, e.g. hourly-fixtures")

    subparsers.add_parser("status", help="Print job status and today's sync summary")
    subparsers.add_parser("test-connection", help="Probe the API-Football connection")

    cleanup = subparsers.add_parser("cleanup", help="Delete old execution records")
    cleanup.add_argument(
        "--retention-days",
        type=int,
        default=30,
        help="Keep records newer than this many days. Default=30"
    )

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "run"
    return args


async def run_daemon(runtime: SyncRuntime) -> None:
    """Start the scheduler and block until a shutdown signal arrives."""
    shutdown_requested = asyncio.Event()
    loop = asyncio.get_running_loop()

    def signal_handler(signum: int) -> None:
        signal_name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
        logger.info(f"{signal_name} received - stopping scheduler after in-flight jobs")
        shutdown_requested.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, signal_handler, signum)

    scheduled = await runtime.scheduler.start()
    logger.info("=" * 80)
    logger.info(f"Fixture sync scheduler running ({scheduled} job(s) scheduled)")
    for job in runtime.scheduler.status():
        logger.info(f"  - {job.job_id}: enabled={job.enabled}, next_run={job.next_run}")
    logger.info("=" * 80)

    await shutdown_requested.wait()
    await runtime.scheduler.stop()


async def run_full_sync(runtime: SyncRuntime) -> int:
    result = await runtime.orchestrator.full_sync()
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.success else 1


async def run_single_job(runtime: SyncRuntime, job_id: str) -> int:
    try:
        record = await runtime.scheduler.run_job_now(job_id)
    except JobNotFoundError as e:
        logger.error(str(e))
        return 2
    print(json.dumps(record.to_dict(), indent=2))
    return 0 if record.success else 1


def print_status(runtime: SyncRuntime) -> int:
    runtime.scheduler.registry.load()
    status = {
        "jobs": [job.to_dict() for job in runtime.scheduler.status()],
        "today": runtime.execution_log.daily_summary(datetime.now(timezone.utc).date()),
    }
    print(json.dumps(status, indent=2))
    return 0


async def dispatch(args, runtime: SyncRuntime) -> int:
    if args.command == "run":
        await run_daemon(runtime)
        return 0
    if args.command == "full-sync":
        return await run_full_sync(runtime)
    if args.command == "run-job":
        return await run_single_job(runtime, args.job_id)
    if args.command == "status":
        return print_status(runtime)
    if args.command == "test-connection":
        result = await runtime.client.test_connection()
        print(result["message"])
        return 0 if result["success"] else 1
    if args.command == "cleanup":
        deleted = runtime.execution_log.cleanup(retention_days=args.retention_days)
        logger.info(f"Deleted {deleted} execution record(s) older than {args.retention_days} days")
        return 0
    raise ValueError(f"Unknown command: {args.command}")


async def amain(args) -> int:
    runtime = build_runtime()
    try:
        return await dispatch(args, runtime)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    finally:
        await runtime.aclose()


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)
    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_dir)
    logger.info(f"Fixture sync starting: command={args.command}")

    try:
        return asyncio.run(amain(args))
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received - exiting")
        return 130
    except Exception as e:
        logger.error(f"Fatal error: {str(e)}", exc_info=True)
        raise


if __name__ == "__main__":
    sys.exit(main())
