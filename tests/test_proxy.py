import logging

import pytest
from aioresponses import aioresponses
from yarl import URL

from xtfetch.http import SSRFRejected
from xtfetch.proxy.relay import (
    DOWNLOAD_CACHE_CONTROL,
    INLINE_CACHE_CONTROL,
    MAX_REDIRECTS,
    MediaRelay,
    build_proxy_url,
    content_disposition,
    needs_proxy,
    relay_headers,
    safe_filename,
)
from xtfetch.proxy.validation import is_private_host, unwrap_double_encoding, validate_proxy_url

CDN_URL = "https://scontent.xx.fbcdn.net/v/t42/clip.mp4?oh=abc&oe=123"


# ──────────────────────────────────────────────
# SSRF validation
# ──────────────────────────────────────────────

@pytest.mark.parametrize(
    "url",
    [
        CDN_URL,
        "https://video.twimg.com/ext_tw_video/1/pu/vid/720x1280/a.mp4",
        "https://p16-sign.tiktokcdn.com/obj/video",
        "https://wx1.sinaimg.cn/large/abc.jpg",
    ],
)
def test_cdn_urls_accepted(url):
    assert validate_proxy_url(url) == url


@pytest.mark.parametrize(
    "url, reason",
    [
        ("ftp://scontent.fbcdn.net/a.mp4", "invalid_scheme"),
        ("file:///etc/passwd", "invalid_scheme"),
        ("http://127.0.0.1/video.mp4", "private_host"),
        ("http://10.1.2.3/", "private_host"),
        ("http://192.168.0.10:8080/", "private_host"),
        ("http://169.254.169.254/latest/meta-data", "private_host"),
        ("http://localhost:3000/", "private_host"),
        ("http://printer.local/", "private_host"),
        ("http://[::1]/", "private_host"),
        ("http://[::ffff:127.0.0.1]/", "private_host"),
        ("https://evil.com/a.mp4", "host_not_allowed"),
        ("https://fbcdn.net.evil.com/a.mp4", "host_not_allowed"),
        ("https:///no-host", "malformed_url"),
    ],
)
def test_rejected_urls(url, reason):
    with pytest.raises(SSRFRejected) as exc_info:
        validate_proxy_url(url)
    assert exc_info.value.reason == reason


def test_double_encoded_url_is_unwrapped_before_checks():
    assert unwrap_double_encoding("https://scontent.fbcdn.net/v/my%2520clip.mp4") == (
        "https://scontent.fbcdn.net/v/my%20clip.mp4"
    )
    assert validate_proxy_url("https://scontent.fbcdn.net/v/a%252Fb.mp4") == "https://scontent.fbcdn.net/v/a%2Fb.mp4"


def test_double_encoded_private_host_rejected():
    with pytest.raises(SSRFRejected) as exc_info:
        validate_proxy_url("http://127.0.0.1/%2525")
    assert exc_info.value.reason == "private_host"


def test_undecodable_level_rejected():
    with pytest.raises(SSRFRejected) as exc_info:
        validate_proxy_url("https://scontent.fbcdn.net/%25%ff")
    assert exc_info.value.reason == "malformed_url"


def test_rejection_logged_with_hostname_and_reason(caplog):
    with caplog.at_level(logging.WARNING, logger="xtfetch.proxy.validation"):
        with pytest.raises(SSRFRejected):
            validate_proxy_url("https://evil.com/x")
    assert "evil.com" in caplog.text
    assert "host_not_allowed" in caplog.text


def test_public_ip_literal_is_not_private():
    assert not is_private_host("8.8.8.8")
    assert is_private_host("")


# ──────────────────────────────────────────────
# Response headers
# ──────────────────────────────────────────────

def test_inline_disposition_is_cacheable():
    assert content_disposition("a.jpg", True, "image/jpeg") == ("inline", INLINE_CACHE_CONTROL)
    assert content_disposition("a.mp4", False, "video/mp4") == ("inline", INLINE_CACHE_CONTROL)


def test_download_disposition_encodes_filename():
    disposition, cache_control = content_disposition("héllo world.mp3", False, "audio/mpeg")
    assert disposition == "attachment; filename=\"h_llo world.mp3\"; filename*=UTF-8''h%C3%A9llo%20world.mp3"
    assert cache_control == DOWNLOAD_CACHE_CONTROL


def test_safe_filename():
    assert safe_filename('a/b\\c"d.mp4') == "a_b_c_d.mp4"


def test_relay_headers_copies_range_info():
    upstream = {
        "Content-Type": "video/mp4",
        "Content-Length": "1024",
        "Content-Range": "bytes 0-1023/4096",
    }
    headers = relay_headers(upstream, "clip.mp4", inline=False)
    assert headers["Content-Type"] == "video/mp4"
    assert headers["Accept-Ranges"] == "bytes"
    assert headers["Content-Range"] == "bytes 0-1023/4096"
    assert headers["Content-Length"] == "1024"
    assert headers["Content-Disposition"] == "inline"


def test_relay_headers_defaults_content_type():
    headers = relay_headers({}, "file.bin", inline=False)
    assert headers["Content-Type"] == "application/octet-stream"
    assert "Content-Length" not in headers
    assert headers["Content-Disposition"].startswith("attachment;")


def test_build_proxy_url_and_needs_proxy():
    url = build_proxy_url(CDN_URL, filename="clip.mp4", platform="facebook", inline=True)
    assert url.startswith("/api/v1/proxy?url=https%3A%2F%2Fscontent")
    assert "filename=clip.mp4" in url
    assert "inline=1" in url
    assert needs_proxy("weibo")
    assert not needs_proxy("twitter")


# ──────────────────────────────────────────────
# Relay (mocked upstream)
# ──────────────────────────────────────────────

@pytest.fixture
async def relay():
    r = MediaRelay(chunk_size=4)
    yield r
    await r.close()


async def test_head_size(relay):
    with aioresponses() as m:
        m.head(CDN_URL, headers={"Content-Length": "4096"})
        assert await relay.head_size(CDN_URL, {}) == 4096


async def test_head_size_zero_on_failure(relay):
    with aioresponses() as m:
        m.head(CDN_URL, status=200, headers={"Content-Length": "nope"})
        assert await relay.head_size(CDN_URL, {}) == 0
    with aioresponses():
        assert await relay.head_size(CDN_URL, {}) == 0


async def test_open_streams_in_chunks(relay):
    with aioresponses() as m:
        m.get(CDN_URL, status=206, body=b"0123456789", headers={"Content-Range": "bytes 0-9/100"})
        upstream = await relay.open(CDN_URL, {"Range": "bytes=0-9"})
        assert upstream.status == 206
        assert upstream.headers["Content-Range"] == "bytes 0-9/100"
        chunks = [chunk async for chunk in upstream.iter_chunks()]
    assert b"".join(chunks) == b"0123456789"
    assert all(len(c) <= 4 for c in chunks)


async def test_redirect_to_private_host_is_rejected(relay):
    with aioresponses() as m:
        m.get(CDN_URL, status=302, headers={"Location": "http://127.0.0.1:6379/secret"})
        m.get("http://127.0.0.1:6379/secret", body=b"INTERNAL")
        with pytest.raises(SSRFRejected) as exc_info:
            await relay.open(CDN_URL, {})
        assert ("GET", URL("http://127.0.0.1:6379/secret")) not in m.requests
    assert exc_info.value.reason == "private_host"


async def test_redirect_to_cdn_host_drops_cookie(relay):
    target = "https://video.xx.fbcdn.net/v/t42/clip.mp4"
    with aioresponses() as m:
        m.get(CDN_URL, status=302, headers={"Location": target})
        m.get(target, body=b"media")
        upstream = await relay.open(CDN_URL, {"Cookie": "c_user=1", "Referer": "https://www.facebook.com/"})
        body = b"".join([chunk async for chunk in upstream.iter_chunks()])
        first = m.requests[("GET", URL(CDN_URL))][0].kwargs["headers"]
        second = m.requests[("GET", URL(target))][0].kwargs["headers"]
    assert body == b"media"
    assert first["Cookie"] == "c_user=1"
    assert "Cookie" not in second
    assert second["Referer"] == "https://www.facebook.com/"


async def test_head_size_rejects_redirect_off_allow_list(relay):
    with aioresponses() as m:
        m.head(CDN_URL, status=301, headers={"Location": "https://evil.com/a.mp4"})
        with pytest.raises(SSRFRejected) as exc_info:
            await relay.head_size(CDN_URL, {})
    assert exc_info.value.reason == "host_not_allowed"


async def test_redirect_loop_is_cut_off(relay):
    with aioresponses() as m:
        m.get(CDN_URL, status=302, headers={"Location": CDN_URL}, repeat=True)
        with pytest.raises(SSRFRejected) as exc_info:
            await relay.open(CDN_URL, {})
        assert len(m.requests[("GET", URL(CDN_URL))]) == MAX_REDIRECTS + 1
    assert exc_info.value.reason == "too_many_redirects"
