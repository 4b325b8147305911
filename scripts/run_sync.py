"""
Run one ship sync from FleetYards and exit.

Exit code is non-zero when the run failed or could not start.
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import async_session_maker, engine
from core.exceptions import CatalogException
from core.logging import setup_logging
from ingestion.extractors.fleetyards_client import FleetYardsClient
from ingestion.runner import ShipSyncRunner
from models.base import SyncStatus

logger = logging.getLogger(__name__)


async def run_sync() -> int:
    """Run one sync; returns the process exit code"""
    try:
        async with async_session_maker() as session:
            runner = ShipSyncRunner(session)
            result = await runner.run(FleetYardsClient())

        logger.info(f"Sync result: {result.to_dict()}")
        for error in result.errors[:10]:
            logger.warning(f"  {error}")
        return 1 if result.status == SyncStatus.FAILED else 0

    except CatalogException as e:
        logger.error(f"Ship sync failed: {e.message}", extra={"error_context": e.to_dict()})
        return 1
    finally:
        await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run_sync()))
