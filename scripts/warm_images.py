"""
Warm the image optimization cache for every ship's primary image.

Usage:
    python scripts/warm_images.py https://catalog.example.com
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from catalog.warmer import ImageCacheWarmer
from core.config import settings
from core.database import async_session_maker, engine
from core.logging import setup_logging

logger = logging.getLogger(__name__)


async def warm_images(origin: str):
    warmer = ImageCacheWarmer(origin)
    try:
        async with async_session_maker() as session:
            result = await warmer.warm(session)
    finally:
        await engine.dispose()

    logger.info(
        f"Warmed {result.warmed}/{result.unique_images * len(result.widths)} requests "
        f"for {result.total_ships} ships ({result.failed} failed)"
    )


def main():
    parser = argparse.ArgumentParser(description="Pre-populate the ship image cache")
    parser.add_argument("origin", nargs="?", default=settings.WARM_ORIGIN, help="Site origin serving the image endpoint")
    args = parser.parse_args()

    if not args.origin:
        parser.error("origin is required when WARM_ORIGIN is not set")

    setup_logging()
    asyncio.run(warm_images(args.origin))


if __name__ == "__main__":
    main()
