"""Validating media proxy."""

from xtfetch.proxy.relay import MediaRelay, build_proxy_url, content_disposition, needs_proxy, relay_headers
from xtfetch.proxy.validation import (
    PROXY_CHECKS,
    check_allow_list,
    check_private_host,
    check_scheme,
    unwrap_double_encoding,
    validate_proxy_url,
)

__all__ = [
    "MediaRelay",
    "PROXY_CHECKS",
    "build_proxy_url",
    "check_allow_list",
    "check_private_host",
    "check_scheme",
    "content_disposition",
    "needs_proxy",
    "relay_headers",
    "unwrap_double_encoding",
    "validate_proxy_url",
]
