"""SSRF validation for media proxy targets.

The chain runs in order and stops at the first failing check:
unwrap double encoding -> scheme -> private host -> CDN allow-list.
Each check is a pure function of the URL that raises SSRFRejected.
"""

from __future__ import annotations

import ipaddress
import logging
from typing import Callable
from urllib.parse import unquote, urlsplit

from xtfetch.http.errors import SSRFRejected
from xtfetch.platforms import allowed_proxy_domains, host_matches

logger = logging.getLogger(__name__)

MAX_DECODE_LEVELS = 3

ProxyCheck = Callable[[str], None]

_BLOCKED_NETWORKS = tuple(
    ipaddress.ip_network(net)
    for net in (
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "127.0.0.0/8",
        "0.0.0.0/8",
        "169.254.0.0/16",
    )
)


def _hostname(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").rstrip(".").lower()
    except ValueError:
        return ""


def _parseable(url: str) -> bool:
    try:
        parts = urlsplit(url)
        parts.port  # raises on a malformed port
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc)


def unwrap_double_encoding(url: str) -> str:
    """Percent-decode one level at a time while ``%25`` is present.

    A level that decodes to something unparseable rejects the URL instead of
    continuing with the raw string.
    """
    for _ in range(MAX_DECODE_LEVELS):
        if "%25" not in url:
            break
        try:
            decoded = unquote(url, errors="strict")
        except UnicodeDecodeError as e:
            raise SSRFRejected("malformed_url", _hostname(url)) from e
        if not _parseable(decoded):
            raise SSRFRejected("malformed_url", _hostname(url))
        url = decoded
    return url


def check_scheme(url: str) -> None:
    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise SSRFRejected("invalid_scheme") from e
    if parts.scheme.lower() not in ("http", "https"):
        raise SSRFRejected("invalid_scheme", _hostname(url))
    if not _hostname(url):
        raise SSRFRejected("malformed_url")


def is_private_host(hostname: str) -> bool:
    hostname = hostname.strip("[]").rstrip(".").lower()
    if not hostname:
        return True
    if hostname == "localhost" or hostname.endswith((".localhost", ".local")):
        return True
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    if any(ip in net for net in _BLOCKED_NETWORKS if net.version == ip.version):
        return True
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_unspecified
        or ip.is_multicast
    )


def check_private_host(url: str) -> None:
    hostname = _hostname(url)
    if is_private_host(hostname):
        raise SSRFRejected("private_host", hostname)


def check_allow_list(url: str, domains: frozenset[str] | None = None) -> None:
    hostname = _hostname(url)
    domains = allowed_proxy_domains() if domains is None else domains
    if not any(host_matches(hostname, domain) for domain in domains):
        raise SSRFRejected("host_not_allowed", hostname)


PROXY_CHECKS: tuple[ProxyCheck, ...] = (
    check_scheme,
    check_private_host,
    check_allow_list,
)


def validate_proxy_url(url: str, checks: tuple[ProxyCheck, ...] = PROXY_CHECKS) -> str:
    """Return the unwrapped URL if every check passes, else raise SSRFRejected."""
    try:
        target = unwrap_double_encoding(url.strip())
        for check in checks:
            check(target)
    except SSRFRejected as e:
        logger.warning("Proxy rejected %s (%s)", e.hostname or "-", e.reason)
        raise
    return target
