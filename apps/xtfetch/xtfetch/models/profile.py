"""Browser identity profile model."""

from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field

SCOPE_ALL = "all"


class BrowserProfile(BaseModel):
    """A consistent user agent + client hints fingerprint.

    Stored in Redis as profiles:pool:{id}. Mismatches between the UA string
    and the Sec-CH-UA headers are a strong bot detection signal, so every
    profile bundles them together:
    - platform_scope: "all" or a specific platform id (preferred for that platform)
    - is_chromium: only Chromium browsers send Sec-CH-UA client hints
    - priority: selection weight (0 = never picked when others have weight)
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    label: str = ""
    platform_scope: str = SCOPE_ALL
    user_agent: str
    sec_ch_ua: str | None = None
    sec_ch_ua_mobile: str = "?0"
    sec_ch_ua_platform: str | None = None
    accept_language: str = "en-US,en;q=0.9"
    is_chromium: bool = False
    priority: int = Field(default=5, ge=0)
    enabled: bool = True
    use_count: int = 0
    success_count: int = 0
    error_count: int = 0
    last_used_at: datetime | None = None
