"""Run a single dispatcher tick.
Use from a platform cron every minute when no Celery beat is running:
    python -m app.scripts.dispatch_tick
"""

from __future__ import annotations

import asyncio
import logging

from app.workers.reminder import run_tick_once


async def main() -> None:
    summary = await run_tick_once()
    print("[CRON] dispatch_tick:", summary.model_dump())


if __name__ == "__main__":  # pragma: no cover
    logging.basicConfig(level=logging.INFO)
    print("[CRON] dispatch_tick: job started")
    try:
        asyncio.run(main())
        print("[CRON] dispatch_tick: job completed successfully")
    except Exception as e:
        print(f"[CRON] dispatch_tick: job failed: {e}")
        raise
