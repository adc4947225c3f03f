"""Media format helpers shared by scrapers and the response layer."""

from __future__ import annotations

import re
from typing import Any, Iterable
from urllib.parse import urlsplit

from pydantic import ValidationError

from xtfetch.models.media import MediaFormat, MediaType
from xtfetch.url import clean_tracking_params, normalize_url

# Escapes found in JSON blobs and HTML attributes embedded in platform pages
_DECODE_MAP: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\\\\/"), "/"),
    (re.compile(r"\\u0025"), "%"),
    (re.compile(r"\\u0026"), "&"),
    (re.compile(r"\\u003[Cc]"), "<"),
    (re.compile(r"\\u003[Ee]"), ">"),
    (re.compile(r"\\u002[Ff]"), "/"),
    (re.compile(r"\\/"), "/"),
    (re.compile(r'\\"'), '"'),
    (re.compile(r"&amp;"), "&"),
    (re.compile(r"&lt;"), "<"),
    (re.compile(r"&gt;"), ">"),
    (re.compile(r"&#x3D;"), "="),
    (re.compile(r"&quot;"), '"'),
    (re.compile(r"&#x27;"), "'"),
    (re.compile(r"&#39;"), "'"),
    (re.compile(r"\\+$"), ""),
)

_SMALL_IMAGE_PATTERNS = (
    re.compile(r"/[ps]\d+x\d+/"),
    re.compile(r"s(16|24|32|40|48|60|75|100)x\1"),
    re.compile(r"emoji|static|sticker|rsrc\.php|/cp0/|/c\d+\.\d+\.\d+\.\d+/", re.I),
)

_AUDIO_EXT = (".mp3", ".m4a", ".aac", ".ogg", ".opus", ".wav")
_IMAGE_EXT = (".jpg", ".jpeg", ".png", ".webp", ".gif", ".heic", ".avif")

_FILE_SIZE = re.compile(r"([\d.]+)\s*(KB|MB|GB)", re.I)
_SIZE_UNITS = {"KB": 1024, "MB": 1024 ** 2, "GB": 1024 ** 3}


# ──────────────────────────────────────────────
# Decoding / validation
# ──────────────────────────────────────────────

def decode_url(value: str) -> str:
    for pattern, replacement in _DECODE_MAP:
        value = pattern.sub(replacement, value)
    return value


def decode_html(value: str) -> str:
    """decode_url plus numeric entities (&#x1f49a; and &#183;)."""
    value = decode_url(value)
    value = re.sub(r"&#x([0-9a-fA-F]+);", lambda m: chr(int(m.group(1), 16)), value)
    return re.sub(r"&#(\d+);", lambda m: chr(int(m.group(1))), value)


def is_valid_media_url(url: str | None, domains: Iterable[str] | None = None) -> bool:
    if not url or len(url) <= 20 or "<" in url or ">" in url:
        return False
    if domains is None:
        return True
    return any(d in url for d in domains)


def is_small_image(url: str) -> bool:
    """Avatars, emoji and sprite thumbnails that are not real post media."""
    return any(p.search(url) for p in _SMALL_IMAGE_PATTERNS)


def _resolvable(url: str | None) -> bool:
    if not url:
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


# ──────────────────────────────────────────────
# Classification
# ──────────────────────────────────────────────

def is_hls(url: str, mime: str | None = None) -> bool:
    if mime and "mpegurl" in mime.lower():
        return True
    try:
        path = urlsplit(url).path.lower()
    except ValueError:
        return False
    return path.endswith(".m3u8")


def classify_format(url: str, mime: str | None = None) -> MediaType:
    """video / audio / image from the mime type, else the URL extension."""
    if mime:
        kind = mime.split("/", 1)[0].lower()
        if kind in ("video", "audio", "image"):
            return kind
        if "mpegurl" in mime.lower():
            return "video"
    try:
        path = urlsplit(url).path.lower()
    except ValueError:
        path = url.lower()
    if path.endswith(_AUDIO_EXT):
        return "audio"
    if path.endswith(_IMAGE_EXT):
        return "image"
    return "video"


def quality_label(height: int) -> str:
    if height >= 1080:
        return "FHD 1080p"
    if height >= 720:
        return "HD 720p"
    if height >= 480:
        return "SD 480p"
    if height >= 360:
        return "SD 360p"
    return f"{height}p"


def quality_from_bitrate(bitrate: int) -> str:
    if bitrate >= 5_000_000:
        return "FULLHD (1080p)"
    if bitrate >= 2_000_000:
        return "HD (720p)"
    if bitrate >= 800_000:
        return "SD (480p)"
    if bitrate > 0:
        return "Low (360p)"
    return "Video"


# ──────────────────────────────────────────────
# Building / deduplication
# ──────────────────────────────────────────────

def _extension_for(media_type: MediaType, url: str) -> str:
    if media_type == "video":
        return "mp4"
    if media_type == "audio":
        return "mp3"
    return "png" if ".png" in url else "jpg"


def create_format(
    quality: str,
    media_type: MediaType,
    url: str,
    *,
    item_id: str | None = None,
    thumbnail: str | None = None,
    filename: str | None = None,
    size: int | None = None,
) -> MediaFormat:
    return MediaFormat(
        quality=quality,
        type=media_type,
        url=url,
        format=_extension_for(media_type, url),
        item_id=item_id,
        thumbnail=thumbnail,
        filename=filename,
        size=size,
        is_hls=is_hls(url),
    )


def add_format(formats: list[MediaFormat], quality: str, media_type: MediaType, url: str, **kwargs) -> bool:
    """Append a new format unless its URL is already present."""
    if not url or any(f.url == url for f in formats):
        return False
    formats.append(create_format(quality, media_type, url, **kwargs))
    return True


def _coerce(item: MediaFormat | dict[str, Any]) -> MediaFormat | None:
    if isinstance(item, MediaFormat):
        return item
    data = dict(item)
    # Scrapers disagree on item id casing
    for key in ("itemid", "item_ID", "itemID", "ItemId"):
        if key in data and "itemId" not in data and "item_id" not in data:
            data["itemId"] = data.pop(key)
    try:
        return MediaFormat.model_validate(data)
    except ValidationError:
        return None


def dedupe_formats(formats: Iterable[MediaFormat | dict[str, Any]]) -> list[MediaFormat]:
    """One format per (quality, type, url), first occurrence wins.

    Later duplicates fill in fields the survivor is missing (size, item id,
    thumbnail). Formats whose URL is empty or not an http(s) URL are dropped.
    """
    survivors: dict[tuple[str, str, str], MediaFormat] = {}
    for item in formats:
        fmt = _coerce(item)
        if fmt is None or not _resolvable(fmt.url):
            continue
        key = (fmt.quality, fmt.type, fmt.url)
        existing = survivors.get(key)
        if existing is None:
            survivors[key] = fmt.model_copy()
            continue
        for field in ("size", "item_id", "thumbnail", "filename", "format"):
            if getattr(existing, field) is None and getattr(fmt, field) is not None:
                setattr(existing, field, getattr(fmt, field))
    return list(survivors.values())


# ──────────────────────────────────────────────
# Sizes
# ──────────────────────────────────────────────

def format_bytes(size: int) -> str:
    """1536 -> "1.5 KB"."""
    if size <= 0:
        return "0 B"
    units = ("B", "KB", "MB", "GB")
    value, i = float(size), 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 1):g} {units[i]}"


def parse_file_size(text: str) -> int | None:
    """Parse "24.3 MB" style sizes into bytes."""
    match = _FILE_SIZE.search(text or "")
    if not match:
        return None
    return int(float(match.group(1)) * _SIZE_UNITS[match.group(2).upper()])


__all__ = [
    "add_format",
    "classify_format",
    "clean_tracking_params",
    "create_format",
    "decode_html",
    "decode_url",
    "dedupe_formats",
    "format_bytes",
    "is_hls",
    "is_small_image",
    "is_valid_media_url",
    "normalize_url",
    "parse_file_size",
    "quality_from_bitrate",
    "quality_label",
]
