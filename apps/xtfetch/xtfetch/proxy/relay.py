"""Media relay: upstream fetch plus the response headers sent back to clients."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import AsyncIterator, Mapping
from urllib.parse import quote, urlencode, urljoin, urlsplit

import aiohttp

from xtfetch.http.errors import SSRFRejected
from xtfetch.platforms import DIRECT_ACCESS_PLATFORMS
from xtfetch.proxy.validation import validate_proxy_url

logger = logging.getLogger(__name__)

PROXY_PATH = "/api/v1/proxy"

# Chunk size for streaming relays (64 KB)
CHUNK_SIZE = 65536

MAX_REDIRECTS = 5
REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})

DEFAULT_FILENAME = "download.mp4"
INLINE_CACHE_CONTROL = "public, max-age=3600"
DOWNLOAD_CACHE_CONTROL = "no-cache, no-store, must-revalidate"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w\s.-]", re.ASCII)


def safe_filename(filename: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)


def content_disposition(filename: str, inline: bool, content_type: str) -> tuple[str, str]:
    """(Content-Disposition, Cache-Control) for a relayed file.

    Inline display (thumbnails, players) is cacheable; downloads are not.
    """
    if inline or content_type.startswith("video/"):
        return "inline", INLINE_CACHE_CONTROL
    encoded = quote(filename, safe="-_.!~*()")
    return (
        f"attachment; filename=\"{safe_filename(filename)}\"; filename*=UTF-8''{encoded}",
        DOWNLOAD_CACHE_CONTROL,
    )


def relay_headers(upstream: Mapping[str, str], filename: str, inline: bool) -> dict[str, str]:
    """Client response headers derived from the upstream response."""
    content_type = upstream.get("Content-Type") or "application/octet-stream"
    disposition, cache_control = content_disposition(filename, inline, content_type)
    headers = {
        "Content-Type": content_type,
        "Accept-Ranges": upstream.get("Accept-Ranges") or "bytes",
        "Content-Disposition": disposition,
        "Cache-Control": cache_control,
    }
    if upstream.get("Content-Range"):
        headers["Content-Range"] = upstream["Content-Range"]
    if upstream.get("Content-Length"):
        headers["Content-Length"] = upstream["Content-Length"]
    return headers


def needs_proxy(platform: str | None) -> bool:
    """Whether a platform's CDN URLs must go through the proxy to play."""
    return platform not in DIRECT_ACCESS_PLATFORMS


def build_proxy_url(
    url: str,
    filename: str | None = None,
    platform: str | None = None,
    inline: bool = False,
    head: bool = False,
    base: str = PROXY_PATH,
) -> str:
    params = {"url": url}
    if filename:
        params["filename"] = filename
    if platform:
        params["platform"] = platform
    if inline:
        params["inline"] = "1"
    if head:
        params["head"] = "1"
    return f"{base}?{urlencode(params)}"


@dataclass
class UpstreamMedia:
    """An open upstream response. ``close()`` must run when the relay ends."""

    status: int
    headers: Mapping[str, str]
    response: aiohttp.ClientResponse
    chunk_size: int = CHUNK_SIZE

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self.response.content.iter_chunked(self.chunk_size):
                yield chunk
        finally:
            self.close()

    def close(self) -> None:
        self.response.release()


class MediaRelay:
    """Opens validated CDN URLs with browser headers."""

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        timeout: float = 120.0,
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        self._session = session
        # Per-read timeout; total stream time is unbounded
        self._timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=timeout)
        self._chunk_size = chunk_size

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def _request(self, method: str, url: str, headers: dict[str, str]) -> aiohttp.ClientResponse:
        """Send a request, following redirects only to hosts that pass validation.

        Raises SSRFRejected when a hop fails validation or the chain is too long.
        """
        headers = dict(headers)
        for _ in range(MAX_REDIRECTS + 1):
            resp = await self._get_session().request(method, url, headers=headers, allow_redirects=False)
            location = resp.headers.get("Location")
            if resp.status not in REDIRECT_STATUSES or not location:
                return resp
            resp.release()

            next_url = validate_proxy_url(urljoin(url, location))
            if urlsplit(next_url).hostname != urlsplit(url).hostname:
                headers = {k: v for k, v in headers.items() if k.lower() != "cookie"}
            logger.debug("Following redirect %s -> %s", url[:80], next_url[:80])
            url = next_url
        raise SSRFRejected("too_many_redirects", urlsplit(url).hostname)

    async def head_size(self, url: str, headers: dict[str, str]) -> int:
        """Content-Length from a HEAD request, 0 when unknown or on failure."""
        try:
            resp = await self._request("HEAD", url, headers)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug("HEAD %s failed: %s", url[:80], e)
            return 0
        try:
            return int(resp.headers.get("Content-Length") or 0)
        except ValueError:
            return 0
        finally:
            resp.release()

    async def open(self, url: str, headers: dict[str, str]) -> UpstreamMedia:
        """Start a GET; raises aiohttp.ClientError or asyncio.TimeoutError on failure."""
        resp = await self._request("GET", url, headers)
        return UpstreamMedia(
            status=resp.status, headers=resp.headers, response=resp, chunk_size=self._chunk_size,
        )
