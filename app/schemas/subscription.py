"""Pydantic models for subscription API requests."""
from __future__ import annotations

from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts camelCase JSON while exposing snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PushKeys(BaseModel):
    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class PushSubscriptionIn(BaseModel):
    """Browser-issued push endpoint descriptor."""

    endpoint: str = Field(min_length=1, max_length=2048)
    keys: PushKeys

    @field_validator("endpoint")
    @classmethod
    def endpoint_is_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("https", "http") or not parsed.netloc:
            raise ValueError("endpoint must be an http(s) URL")
        return value


class SessionTokenRequest(CamelModel):
    """Body carrying only the session token (delete, check-subscription)."""

    session_token: str = Field(min_length=1)


class SubscribeRequest(CamelModel):
    session_token: str = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    notifications_enabled: StrictBool
    push_subscription: Optional[PushSubscriptionIn] = None


class SubscriptionUpdateRequest(CamelModel):
    """Partial update; only fields present in the body are applied."""

    session_token: str = Field(min_length=1)
    notifications_enabled: Optional[StrictBool] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    push_subscription: Optional[PushSubscriptionIn] = None

    def changes(self) -> dict[str, Any]:
        """Fields the client actually sent, minus the token.

        An explicit ``pushSubscription: null`` is kept so the store clears it.
        Explicit nulls for the other fields are dropped: those columns are required.
        """
        changes: dict[str, Any] = {}
        for name in self.model_fields_set - {"session_token"}:
            value = getattr(self, name)
            if name == "push_subscription":
                changes[name] = value.model_dump() if value is not None else None
            elif value is not None:
                changes[name] = value
        return changes


class NotificationTestRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    body: Optional[str] = Field(default=None, min_length=1, max_length=1000)
