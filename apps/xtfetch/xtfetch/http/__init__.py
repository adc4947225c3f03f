"""Outbound HTTP: resilient client and error taxonomy."""

from xtfetch.http.client import FetchResponse, ResilientClient
from xtfetch.http.errors import (
    ApiError,
    OfflineError,
    PlatformBusy,
    RateLimitExceeded,
    RelayError,
    RequestTimeoutError,
    SSRFRejected,
)

__all__ = [
    "ApiError",
    "FetchResponse",
    "OfflineError",
    "PlatformBusy",
    "RateLimitExceeded",
    "RelayError",
    "RequestTimeoutError",
    "ResilientClient",
    "SSRFRejected",
]
