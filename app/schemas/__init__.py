"""Pydantic schemas package."""

from app.schemas.subscription import (
    PushKeys,
    PushSubscriptionIn,
    SessionTokenRequest,
    SubscribeRequest,
    SubscriptionUpdateRequest,
    NotificationTestRequest,
)

__all__ = [
    "PushKeys",
    "PushSubscriptionIn",
    "SessionTokenRequest",
    "SubscribeRequest",
    "SubscriptionUpdateRequest",
    "NotificationTestRequest",
]
