"""Scraper plug-in seam.

Platform body parsing lives outside this package. A scraper is any async
callable ``scraper(url, cookie=None) -> ScrapeResult`` registered per
platform; the registry normalizes what comes back.
"""

from __future__ import annotations

import logging
from importlib.metadata import entry_points
from typing import Any, Protocol

from pydantic import BaseModel

from xtfetch.formats import dedupe_formats

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "xtfetch.scrapers"


class ScrapeResult(BaseModel):
    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None

    def with_deduped_formats(self) -> ScrapeResult:
        if not self.data or "formats" not in self.data:
            return self
        formats = dedupe_formats(self.data.get("formats") or [])
        data = dict(self.data)
        data["formats"] = [f.model_dump(by_alias=True, exclude_none=True) for f in formats]
        return self.model_copy(update={"data": data})


class Scraper(Protocol):
    async def __call__(self, url: str, cookie: str | None = None) -> ScrapeResult: ...


class ScraperRegistry:
    def __init__(self) -> None:
        self._scrapers: dict[str, Scraper] = {}

    def register(self, platform: str, scraper: Scraper) -> None:
        self._scrapers[platform] = scraper
        logger.info("Registered scraper for %s", platform)

    def get(self, platform: str) -> Scraper | None:
        return self._scrapers.get(platform)

    def platforms(self) -> list[str]:
        return sorted(self._scrapers)

    def load_entry_points(self, group: str = ENTRY_POINT_GROUP) -> int:
        """Register scrapers published by installed packages.

        The entry point name is the platform id, its value the scraper callable.
        """
        loaded = 0
        for ep in entry_points(group=group):
            self.register(ep.name, ep.load())
            loaded += 1
        return loaded

    async def scrape(self, platform: str, url: str, cookie: str | None = None) -> ScrapeResult:
        """Run the platform scraper. Scraper exceptions become failed results."""
        scraper = self.get(platform)
        if scraper is None:
            return ScrapeResult(success=False, error=f"No scraper registered for {platform}")
        try:
            result = await scraper(url, cookie)
        except Exception as e:
            logger.exception("Scraper for %s raised", platform)
            return ScrapeResult(success=False, error=str(e) or type(e).__name__)
        return result.with_deduped_formats()
