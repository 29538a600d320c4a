"""
Process pending accounting events once.

Meant to be run by cron or another scheduler:

    python scripts/process_pending_events.py --limit 200
"""

import argparse
import asyncio
import logging
import sys

sys.path.insert(0, '.')

from event_ledger.config import settings
from event_ledger.database import async_session_maker, close_db
from event_ledger.services.event_processor import EventProcessor

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("event_ledger.scripts.process_pending")


async def process_pending(limit: int) -> int:
    async with async_session_maker() as db:
        results = await EventProcessor(db).process_pending_events(limit=limit)

    failed = [r for r in results if not r.success]
    logger.info(f"Processed {len(results)} pending event(s), {len(failed)} failed")
    for result in failed:
        logger.warning(f"  {result.event_id}: {result.error}")

    await close_db()
    return 1 if failed else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--limit", type=int, default=settings.pending_batch_limit)
    args = parser.parse_args()
    sys.exit(asyncio.run(process_pending(args.limit)))
