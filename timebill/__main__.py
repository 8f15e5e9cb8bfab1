"""
Maintenance commands.

Usage:
    python -m timebill init-db
    python -m timebill health
    python -m timebill idle-timers [--hours N]
    python -m timebill stop-timer USER_ID
"""

import argparse
import asyncio
import logging
import sys

from .database import get_database, init_database, close_database
from .database.repositories import get_timer_repository
from .utils.formatting import format_duration
from .utils.logging_config import configure_logging

logger = logging.getLogger(__name__)


async def cmd_init_db(args) -> bool:
    ok = await init_database()
    if ok:
        logger.info("Database tables created")
    else:
        logger.error("Database initialization failed (is DATABASE_URL set?)")
    return ok


async def cmd_health(args) -> bool:
    status = await get_database().health_check()
    for key, value in status.items():
        print(f"{key}: {value}")
    return status.get("status") == "healthy"


async def cmd_idle_timers(args) -> bool:
    timers = await get_timer_repository().get_idle_timers(hours=args.hours)
    if not timers:
        print("No idle timers")
        return True

    for t in timers:
        print(
            f"{t['user_id']}: project={t['project_id']} task={t['task_name'] or '-'} "
            f"started {t['started_at']:%Y-%m-%d %H:%M} ({format_duration(t['duration_minutes'])})"
        )
    return True


async def cmd_stop_timer(args) -> bool:
    entry = await get_timer_repository().stop_timer(args.user_id)
    if entry is None:
        print(f"No time entry created for {args.user_id}")
    else:
        print(f"Created entry {entry.id}: {format_duration(entry.duration_minutes)}")
    return True


COMMANDS = {
    "init-db": cmd_init_db,
    "health": cmd_health,
    "idle-timers": cmd_idle_timers,
    "stop-timer": cmd_stop_timer,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="timebill", description="Timebill maintenance commands")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create database tables")
    sub.add_parser("health", help="Check database connectivity")

    idle = sub.add_parser("idle-timers", help="List timers running longer than a threshold")
    idle.add_argument("--hours", type=int, default=None, help="Threshold in hours (default from settings)")

    stop = sub.add_parser("stop-timer", help="Stop a user's active timer")
    stop.add_argument("user_id")

    return parser


async def run(args) -> bool:
    try:
        return await COMMANDS[args.command](args)
    finally:
        await close_database()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(debug=True if args.debug else None)
    success = asyncio.run(run(args))
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
