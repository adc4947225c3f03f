import pytest

from xtfetch.formats import (
    add_format,
    classify_format,
    create_format,
    decode_html,
    decode_url,
    dedupe_formats,
    format_bytes,
    is_hls,
    is_small_image,
    parse_file_size,
    quality_label,
)
from xtfetch.platforms import detect_platform
from xtfetch.url import (
    clean_tracking_params,
    detect_attack_patterns,
    extract_content_id,
    get_client_ip,
    is_valid_social_url,
    may_require_cookie,
    needs_resolve,
    normalize_for_cache,
    normalize_url,
)


# ──────────────────────────────────────────────
# URLs
# ──────────────────────────────────────────────

def test_normalize_url_maps_mobile_hosts_and_strips_tracking():
    assert normalize_url("m.facebook.com/watch?v=123&fbclid=abc") == "https://www.facebook.com/watch?v=123"
    assert normalize_url("https://mobile.twitter.com/a/status/9?s=20&t=x") == "https://twitter.com/a/status/9"


def test_clean_tracking_params_keeps_real_params():
    url = "https://www.youtube.com/watch?v=dQw4w9WgXcQ&utm_source=x&__cft__[0]=z"
    assert clean_tracking_params(url) == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def test_normalize_for_cache():
    assert normalize_for_cache("https://m.facebook.com/Reel/123/?x=1") == "www.facebook.com/reel/123"


@pytest.mark.parametrize(
    "url, platform",
    [
        ("https://x.com/user/status/1", "twitter"),
        ("https://vxtwitter.com/user/status/1", "twitter"),
        ("https://www.instagram.com/reel/Cabc/", "instagram"),
        ("https://fb.watch/xyz/", "facebook"),
        ("https://vm.tiktok.com/ZM123/", "tiktok"),
        ("https://m.weibo.cn/detail/456", "weibo"),
        ("https://youtu.be/dQw4w9WgXcQ", "youtube"),
        ("https://example.com/video", None),
    ],
)
def test_detect_platform(url, platform):
    assert detect_platform(url) == platform


@pytest.mark.parametrize(
    "platform, url, content_id",
    [
        ("twitter", "https://x.com/a/status/1790", "1790"),
        ("instagram", "https://www.instagram.com/p/Cx_9-a/", "Cx_9-a"),
        ("facebook", "https://www.facebook.com/watch/?v=555", "555"),
        ("facebook", "https://www.facebook.com/share/r/777/", "777"),
        ("tiktok", "https://www.tiktok.com/@u/video/7300", "7300"),
        ("youtube", "https://www.youtube.com/shorts/dQw4w9WgXcQ", "dQw4w9WgXcQ"),
        ("weibo", "https://weibo.com/1234/NqXyZ", "NqXyZ"),
        ("twitter", "https://x.com/a", None),
    ],
)
def test_extract_content_id(platform, url, content_id):
    assert extract_content_id(platform, url) == content_id


def test_needs_resolve_and_cookie_hints():
    assert needs_resolve("https://t.co/abc", "twitter")
    assert needs_resolve("https://vt.tiktok.com/x/")
    assert not needs_resolve("https://x.com/a/status/1", "twitter")
    assert may_require_cookie("instagram", "https://www.instagram.com/stories/u/1/")
    assert may_require_cookie("weibo", "https://weibo.com/1/abc")
    assert not may_require_cookie("twitter", "https://x.com/a/status/1")


@pytest.mark.parametrize(
    "url, error",
    [
        ("https://x.com/a/status/1", None),
        ("https://scontent.fbcdn.net/v/video.mp4", None),
        ("", "URL is required"),
        ("ftp://x.com/a", "Invalid URL protocol"),
        ("http://127.0.0.1/admin", "Invalid URL"),
        ("http://localhost:3000/", "Invalid URL"),
        ("https://example.com/video", "Unsupported platform"),
        ("https://x.com/" + "a" * 2000, "URL too long"),
    ],
)
def test_is_valid_social_url(url, error):
    valid, message = is_valid_social_url(url)
    assert valid is (error is None)
    assert message == error


@pytest.mark.parametrize(
    "value",
    ["https://x.com/a?q=1 UNION SELECT pw", "<script>alert(1)</script>", "javascript:alert(1)", "${jndi:x}"],
)
def test_detect_attack_patterns(value):
    assert detect_attack_patterns(value)


def test_plain_url_is_not_an_attack():
    assert not detect_attack_patterns("https://www.tiktok.com/@user/video/123?lang=en")


def test_get_client_ip_prefers_forwarded_chain():
    assert get_client_ip({"x-forwarded-for": "203.0.113.5, 10.0.0.1", "x-real-ip": "9.9.9.9"}) == "203.0.113.5"
    assert get_client_ip({"x-real-ip": " 9.9.9.9 "}) == "9.9.9.9"
    assert get_client_ip({}) == "unknown"


# ──────────────────────────────────────────────
# Formats
# ──────────────────────────────────────────────

def test_decode_url_and_html():
    assert decode_url(r"https:\/\/video.xx.fbcdn.net\/v\/a.mp4?x=1&y=2") == "https://video.xx.fbcdn.net/v/a.mp4?x=1&y=2"
    assert decode_html("Caf&#xe9; &amp; bar &#183;") == "Café & bar ·"


@pytest.mark.parametrize(
    "url, mime, kind",
    [
        ("https://cdn.test/a.mp4", None, "video"),
        ("https://cdn.test/a.M4A?x=1", None, "audio"),
        ("https://cdn.test/a.jpg", None, "image"),
        ("https://cdn.test/blob", "image/webp", "image"),
        ("https://cdn.test/master", "application/vnd.apple.mpegurl", "video"),
        ("https://cdn.test/unknown", None, "video"),
    ],
)
def test_classify_format(url, mime, kind):
    assert classify_format(url, mime) == kind


def test_is_hls():
    assert is_hls("https://cdn.test/master.m3u8?token=1")
    assert is_hls("https://cdn.test/x", "application/x-mpegURL")
    assert not is_hls("https://cdn.test/a.mp4")


def test_is_small_image():
    assert is_small_image("https://scontent.fbcdn.net/v/t1/s100x100/pic.jpg")
    assert is_small_image("https://static.xx.fbcdn.net/rsrc.php/v3/icon.png")
    assert not is_small_image("https://scontent.fbcdn.net/v/t39/1080_photo.jpg")


def test_quality_label():
    assert quality_label(1080) == "FHD 1080p"
    assert quality_label(720) == "HD 720p"
    assert quality_label(240) == "240p"


def test_create_and_add_format():
    formats = []
    assert add_format(formats, "HD 720p", "video", "https://cdn.test/a.m3u8", item_id="1")
    assert not add_format(formats, "SD 480p", "video", "https://cdn.test/a.m3u8")
    assert formats[0].is_hls
    assert formats[0].format == "mp4"
    assert create_format("Original", "image", "https://cdn.test/p.png").format == "png"


def test_dedupe_formats_first_wins_and_fills_missing_fields():
    raw = [
        {"quality": "HD", "type": "video", "url": "https://cdn.test/a.mp4"},
        {"quality": "HD", "type": "video", "url": "https://cdn.test/a.mp4", "size": 2048, "itemid": "7"},
        {"quality": "SD", "type": "video", "url": "https://cdn.test/a.mp4"},
        {"quality": "HD", "type": "video", "url": ""},
        {"quality": "HD", "type": "video", "url": "blob:xyz"},
        {"quality": "HD", "type": "bogus", "url": "https://cdn.test/b.mp4"},
    ]
    result = dedupe_formats(raw)
    assert [(f.quality, f.url) for f in result] == [("HD", "https://cdn.test/a.mp4"), ("SD", "https://cdn.test/a.mp4")]
    assert result[0].size == 2048
    assert result[0].item_id == "7"
    assert result[0].model_dump(by_alias=True, exclude_none=True)["itemId"] == "7"


def test_dedupe_formats_accepts_item_id_casings():
    result = dedupe_formats([
        {"quality": "A", "type": "image", "url": "https://cdn.test/1.jpg", "itemId": "a"},
        {"quality": "A", "type": "image", "url": "https://cdn.test/2.jpg", "item_id": "b"},
        {"quality": "A", "type": "image", "url": "https://cdn.test/3.jpg", "ItemId": "c"},
    ])
    assert [f.item_id for f in result] == ["a", "b", "c"]


@pytest.mark.parametrize("size, text", [(0, "0 B"), (512, "512 B"), (1536, "1.5 KB"), (5 * 1024 ** 3, "5 GB")])
def test_format_bytes(size, text):
    assert format_bytes(size) == text


def test_parse_file_size():
    assert parse_file_size("Size: 1.5 MB") == int(1.5 * 1024 ** 2)
    assert parse_file_size("unknown") is None
