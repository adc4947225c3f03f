"""ResilientClient: aiohttp wrapper with timeouts, 5xx retries and offline detection.

- The first attempt uses a short timeout (min(timeout, connection_timeout))
  so an unreachable backend is detected quickly.
- Responses below 500 are returned as-is; 4xx is never retried.
- 5xx and transient network failures are retried with exponential backoff.
- A connection failure marks the backend offline for ``offline_ttl`` seconds;
  calls in that window fail immediately without touching the network.
- Timeouts and offline failures are never retried.
"""

from __future__ import annotations

import asyncio
import json as jsonlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import aiohttp

from xtfetch.http.errors import ApiError, OfflineError, RequestTimeoutError
from xtfetch.utils.retry import RetryConfig

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], str | None]


@dataclass
class FetchResponse:
    status: int
    headers: dict[str, str]
    body: bytes = b""
    url: str = ""
    attempts: int = 1
    _json: Any = field(default=None, init=False, repr=False)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        if self._json is None and self.body:
            self._json = jsonlib.loads(self.body)
        return self._json


class ResilientClient:
    def __init__(
        self,
        base_url: str = "",
        *,
        timeout: float = 30.0,
        retries: int = 3,
        connection_timeout: float = 5.0,
        offline_ttl: float = 10.0,
        token_provider: TokenProvider | None = None,
        session: aiohttp.ClientSession | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retries = retries
        self.connection_timeout = connection_timeout
        self.offline_ttl = offline_ttl
        self._token_provider = token_provider
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep
        self._clock = clock
        self._offline_since: float | None = None

    @classmethod
    def from_settings(cls, settings, **kwargs) -> ResilientClient:
        return cls(
            settings.api_base_url,
            timeout=settings.api_timeout,
            retries=settings.api_retries,
            connection_timeout=settings.connection_timeout,
            offline_ttl=settings.offline_cache_ttl,
            **kwargs,
        )

    # ──────────────────────────────────────────────
    # Session / status
    # ──────────────────────────────────────────────

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    def is_recently_offline(self) -> bool:
        if self._offline_since is None:
            return False
        if self._clock() - self._offline_since > self.offline_ttl:
            self._offline_since = None
            return False
        return True

    def reset_offline_status(self) -> None:
        self._offline_since = None

    def backend_status(self) -> dict[str, Any]:
        offline = self.is_recently_offline()
        status: dict[str, Any] = {"baseUrl": self.base_url, "offline": offline}
        if offline:
            status["retryIn"] = round(self.offline_ttl - (self._clock() - self._offline_since), 1)
        return status

    def _resolve(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        return f"{self.base_url}/{url.lstrip('/')}"

    # ──────────────────────────────────────────────
    # Requests
    # ──────────────────────────────────────────────

    async def _attempt(
        self,
        method: str,
        url: str,
        timeout: float,
        headers: dict[str, str],
        json: Any,
    ) -> FetchResponse:
        session = self._get_session()
        try:
            async with session.request(
                method,
                url,
                headers=headers,
                json=json,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                body = await resp.read()
                response = FetchResponse(status=resp.status, headers=dict(resp.headers), body=body, url=url)
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(timeout) from e
        except aiohttp.ClientConnectorError as e:
            self._offline_since = self._clock()
            logger.warning("Cannot connect to %s: %s", url, e)
            raise OfflineError("Cannot connect to backend server") from e

        self._offline_since = None
        return response

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        timeout: float | None = None,
        retries: int | None = None,
        auth: bool = False,
        headers: dict[str, str] | None = None,
        json: Any = None,
    ) -> FetchResponse:
        """Send a request, retrying 5xx and transient network failures.

        Raises RequestTimeoutError, OfflineError, ApiError (5xx after the last
        attempt), or the last aiohttp.ClientError.
        """
        if self.is_recently_offline():
            raise OfflineError("Backend server is offline (cached)")

        timeout = self.timeout if timeout is None else timeout
        attempts = max(1, self.retries if retries is None else retries)
        backoff = RetryConfig(attempts=attempts)
        target = self._resolve(url)

        request_headers = {"Accept": "application/json"}
        request_headers.update(headers or {})
        if auth and self._token_provider is not None:
            token = self._token_provider()
            if token:
                request_headers["Authorization"] = f"Bearer {token}"

        last_response: FetchResponse | None = None
        last_error: aiohttp.ClientError | None = None

        for attempt in range(attempts):
            attempt_timeout = min(timeout, self.connection_timeout) if attempt == 0 else timeout
            try:
                response = await self._attempt(method, target, attempt_timeout, request_headers, json)
            except aiohttp.ClientError as e:
                last_error, last_response = e, None
                logger.warning("%s %s failed (attempt %d/%d): %s", method, target, attempt + 1, attempts, e)
            else:
                response.attempts = attempt + 1
                if response.status < 500:
                    return response
                last_response, last_error = response, None
                logger.warning(
                    "%s %s returned %d (attempt %d/%d)",
                    method, target, response.status, attempt + 1, attempts,
                )

            if attempt < attempts - 1:
                await self._sleep(backoff.get_delay(attempt))

        if last_response is not None:
            raise ApiError(last_response.status, _decode_body(last_response))
        assert last_error is not None
        raise last_error

    async def request_json(self, url: str, method: str = "GET", **kwargs) -> Any:
        """fetch() and decode JSON, raising ApiError for any non-2xx status."""
        response = await self.fetch(url, method=method, **kwargs)
        body = _decode_body(response)
        if not response.ok:
            message = None
            if isinstance(body, dict):
                message = body.get("error") or body.get("message")
            raise ApiError(response.status, body, message)
        return body

    async def get(self, url: str, **kwargs) -> Any:
        return await self.request_json(url, "GET", **kwargs)

    async def post(self, url: str, json: Any = None, **kwargs) -> Any:
        return await self.request_json(url, "POST", json=json, **kwargs)

    async def put(self, url: str, json: Any = None, **kwargs) -> Any:
        return await self.request_json(url, "PUT", json=json, **kwargs)

    async def patch(self, url: str, json: Any = None, **kwargs) -> Any:
        return await self.request_json(url, "PATCH", json=json, **kwargs)

    async def delete(self, url: str, **kwargs) -> Any:
        return await self.request_json(url, "DELETE", **kwargs)


def _decode_body(response: FetchResponse) -> Any:
    if not response.body:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
