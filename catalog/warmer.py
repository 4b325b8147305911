"""
Image cache warm-up for the image-optimization layer.

After a sync, every ship's primary image is requested once per configured
width through the internal image endpoint so the first real visitor hits a
warm cache. Individual request failures are counted, never raised.
"""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from urllib.parse import urlparse
import httpx
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from catalog.query import iter_primary_images
from core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class WarmResult:
    total_ships: int = 0
    unique_images: int = 0
    warmed: int = 0
    failed: int = 0
    widths: List[int] = field(default_factory=list)


def is_http_url(url: Optional[str]) -> bool:
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class ImageCacheWarmer:
    """
    Issue ``GET {origin}{endpoint}?url=<image>&w=<width>&q=<quality>`` for
    every (image, width) pair with at most ``concurrency`` requests in flight.
    """

    def __init__(
        self,
        origin: str,
        widths: Optional[List[int]] = None,
        concurrency: Optional[int] = None,
        quality: Optional[int] = None,
        endpoint: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0
    ):
        self.origin = origin.rstrip("/")
        self.widths = list(widths or settings.WARM_WIDTHS)
        self.concurrency = max(1, concurrency or settings.WARM_CONCURRENCY)
        self.quality = quality or settings.WARM_QUALITY
        self.endpoint = endpoint or settings.WARM_ENDPOINT
        self.timeout = timeout
        self._client = client

    async def collect_images(self, session: AsyncSession) -> Tuple[int, List[str]]:
        """Count ships and collect their distinct http(s) primary image URLs in first-seen order"""
        total_ships = 0
        urls: List[str] = []
        seen = set()
        async for fleetyards_id, url in iter_primary_images(session):
            total_ships += 1
            if is_http_url(url):
                if url not in seen:
                    seen.add(url)
                    urls.append(url)
            elif url:
                logger.debug(f"Skipping non-http image for {fleetyards_id}: {url}")
        return total_ships, urls

    async def _warm_one(self, client: httpx.AsyncClient, semaphore: asyncio.Semaphore, url: str, width: int) -> bool:
        target = f"{self.origin}{self.endpoint}"
        params = {"url": url, "w": width, "q": self.quality}
        async with semaphore:
            try:
                async with client.stream("GET", target, params=params) as response:
                    await response.aread()
                    return response.is_success
            except Exception as e:
                logger.debug(f"Warm request failed for {url} at {width}px: {e}")
                return False

    async def warm_urls(self, urls: List[str]) -> Tuple[int, int]:
        """Warm every (url, width) pair; returns (warmed, failed)"""
        if not urls:
            return 0, 0

        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(client):
            tasks = [
                self._warm_one(client, semaphore, url, width)
                for url in urls
                for width in self.widths
            ]
            return await asyncio.gather(*tasks)

        if self._client is not None:
            outcomes = await run(self._client)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                outcomes = await run(client)

        warmed = sum(1 for ok in outcomes if ok)
        return warmed, len(outcomes) - warmed

    async def warm(self, session: AsyncSession) -> WarmResult:
        total_ships, urls = await self.collect_images(session)
        logger.info(f"Warming {len(urls)} ship images at widths {self.widths}")

        warmed, failed = await self.warm_urls(urls)

        logger.info(f"Image warm-up complete: {warmed} warmed, {failed} failed")
        return WarmResult(
            total_ships=total_ships,
            unique_images=len(urls),
            warmed=warmed,
            failed=failed,
            widths=list(self.widths),
        )
