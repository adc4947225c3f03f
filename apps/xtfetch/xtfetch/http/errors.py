"""Relay error hierarchy.

Transport errors (timeouts, offline backend, upstream status) come from the
resilient client; SSRFRejected and RateLimitExceeded are request validation
failures and are never retried.
"""

from __future__ import annotations

from typing import Any


class RelayError(Exception):
    """Base error for outbound requests and relay validation."""


class RequestTimeoutError(RelayError):
    """An attempt exceeded its timeout. Never retried."""

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        msg = "Request timed out"
        if timeout is not None:
            msg += f" after {timeout:g}s"
        super().__init__(msg)


class OfflineError(RelayError):
    """The backend could not be reached (or was recently unreachable)."""

    def __init__(self, message: str = "Backend server is offline") -> None:
        super().__init__(message)


class ApiError(RelayError):
    """Upstream answered with a non-success status."""

    def __init__(self, status: int, body: Any = None, message: str | None = None) -> None:
        self.status = status
        self.body = body
        super().__init__(message or f"Upstream returned HTTP {status}")


class SSRFRejected(RelayError):
    """A proxy target failed validation."""

    def __init__(self, reason: str, hostname: str | None = None) -> None:
        self.reason = reason
        self.hostname = hostname
        super().__init__(f"URL not allowed ({reason}): {hostname or '-'}")


class PlatformBusy(RelayError):
    """The platform is in a backoff cooldown; no upstream request was made."""

    def __init__(self, platform: str) -> None:
        self.platform = platform
        super().__init__(f"{platform} is busy, please try again in a moment")


class RateLimitExceeded(RelayError):
    """Caller quota exhausted."""

    def __init__(self, reset_in: int, limit: int | None = None) -> None:
        self.reset_in = reset_in
        self.limit = limit
        super().__init__(f"Rate limit exceeded, resets in {reset_in}s")
