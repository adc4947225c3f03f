"""Cookie pool model for managing platform credentials."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, SecretStr, SerializationInfo, field_serializer

from xtfetch.cookies.parser import mask_cookie


class CookieStatus(str, Enum):
    """Cookie health status."""

    HEALTHY = "healthy"
    COOLDOWN = "cooldown"
    EXPIRED = "expired"
    DISABLED = "disabled"


class CookieTier(str, Enum):
    """Rationing class. Private cookies are reserved for privileged callers."""

    PUBLIC = "public"
    PRIVATE = "private"


class CookieRecord(BaseModel):
    """A session cookie for a platform account.

    Stored in Redis. The pool selects cookies based on:
    - enabled: must be True and status must not be disabled
    - status: healthy, or cooldown whose cooldown_until has passed
    - uses_this_hour: must be < max_uses_per_hour within the current hour window
    - uses_this_hour / last_used_at: prefer lowest (round-robin)

    cookie_value is a SecretStr: it only leaves the model through
    ``to_storage_json()``; every other dump masks it.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    platform: str
    tier: CookieTier = CookieTier.PUBLIC
    label: str | None = None
    user_id: str | None = None
    cookie_value: SecretStr
    status: CookieStatus = CookieStatus.HEALTHY
    enabled: bool = True
    use_count: int = 0
    success_count: int = 0
    error_count: int = 0
    last_error: str | None = None
    last_used_at: datetime | None = None
    cooldown_until: datetime | None = None
    max_uses_per_hour: int = Field(default=60, ge=1)
    hour_window_start: datetime | None = None
    uses_this_hour: int = 0
    created_at: datetime = Field(default_factory=datetime.now)

    @field_serializer("cookie_value")
    def _serialize_cookie_value(self, value: SecretStr, info: SerializationInfo) -> str:
        if info.context and info.context.get("reveal_secrets"):
            return value.get_secret_value()
        return mask_cookie(value.get_secret_value())

    def to_storage_json(self) -> str:
        """Serialize including the raw cookie value (Redis persistence only)."""
        return self.model_dump_json(context={"reveal_secrets": True})

    def public_view(self) -> dict[str, Any]:
        """JSON-safe dict with the cookie value masked."""
        return self.model_dump(mode="json")
