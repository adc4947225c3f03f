"""Media format and response cache models."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

MediaType = Literal["video", "audio", "image"]


class MediaFormat(BaseModel):
    """One concrete downloadable variant of an extracted post.

    item_id groups the formats of a multi-item post (carousel, thread).
    Serialized with camelCase aliases for the web client.
    """

    model_config = ConfigDict(populate_by_name=True)

    quality: str
    type: MediaType
    url: str
    format: str | None = None
    size: int | None = None
    item_id: str | None = Field(default=None, alias="itemId")
    is_hls: bool = Field(default=False, alias="isHLS")
    thumbnail: str | None = None
    filename: str | None = None


class CacheEntry(BaseModel):
    """Serialized scraper result stored under result:{platform}:{content_id}."""

    key: str
    platform: str
    value: dict[str, Any]
    ttl_seconds: int
    created_at: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl_seconds
