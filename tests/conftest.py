from datetime import datetime, timedelta

import fakeredis
import pytest

from xtfetch.models.cookies import CookieRecord, CookieTier
from xtfetch.scrapers import ScrapeResult


class FakeClock:
    """Monotonic-style float clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDateClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 15, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeScraper:
    """Scraper stub that records calls and replays scripted results."""

    def __init__(self, *results: ScrapeResult) -> None:
        self.results = list(results)
        self.calls: list[tuple[str, str | None]] = []

    async def __call__(self, url: str, cookie: str | None = None) -> ScrapeResult:
        self.calls.append((url, cookie))
        if len(self.results) > 1:
            return self.results.pop(0)
        if self.results:
            return self.results[0]
        return ok_result(url)


def ok_result(url: str = "https://x.com/a/status/1") -> ScrapeResult:
    return ScrapeResult(
        success=True,
        data={
            "title": "Post",
            "url": url,
            "formats": [
                {"quality": "HD 720p", "type": "video", "url": "https://video.twimg.com/a/720.mp4"},
                {"quality": "HD 720p", "type": "video", "url": "https://video.twimg.com/a/720.mp4"},
            ],
        },
    )


def make_cookie(**overrides) -> CookieRecord:
    fields = {
        "platform": "facebook",
        "tier": CookieTier.PUBLIC,
        "cookie_value": "c_user=100012345; xs=abc%3Adef",
    }
    fields.update(overrides)
    return CookieRecord(**fields)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def date_clock() -> FakeDateClock:
    return FakeDateClock()


@pytest.fixture
async def redis_client():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()
