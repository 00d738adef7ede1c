#!/usr/bin/env python3
"""
Run one availability reminder sweep and exit.

The API process runs the same sweep in the background; this script is meant
for cron or for deployments that disable the in-process worker
(RUN_REMINDER_WORKER=false).

Usage:
    python scripts/send_availability_reminders.py
    python scripts/send_availability_reminders.py --window-minutes 30
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add the project root to the path so we can import matchday modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from matchday.database.db import AsyncSessionLocal
from matchday.services.availability_reminder_service import (
    REMINDER_WINDOW_MINUTES,
    send_availability_reminders,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


async def run(window_minutes: int) -> int:
    async with AsyncSessionLocal() as session:
        try:
            sent = await send_availability_reminders(session, window_minutes=window_minutes)
            await session.commit()
            return sent
        except Exception:
            await session.rollback()
            raise


def main():
    parser = argparse.ArgumentParser(description="Send availability reminders for matches in ~48h")
    parser.add_argument(
        "--window-minutes",
        type=int,
        default=REMINDER_WINDOW_MINUTES,
        help="Half-width of the window around now + 48h (default: %(default)s)",
    )
    args = parser.parse_args()

    sent = asyncio.run(run(args.window_minutes))
    print(f"✅ Sent {sent} reminder(s)")


if __name__ == "__main__":
    main()
