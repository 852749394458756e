"""
Subscription model: one row per anonymous browser session that opted in.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Float, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base
from app.models.base import TimestampMixin

# Python None is stored as SQL NULL so "no push endpoint" is queryable
PushSubscriptionJSON = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


class Subscription(Base, TimestampMixin):
    """Air quality alert subscription for a point of interest."""

    __tablename__ = "subscriptions"
    __table_args__ = (
        CheckConstraint("latitude BETWEEN -90 AND 90", name="ck_subscriptions_latitude"),
        CheckConstraint("longitude BETWEEN -180 AND 180", name="ck_subscriptions_longitude"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # bcrypt hash of the client-generated session token; the token itself is never stored
    session_token_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)

    notifications_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    # Browser push endpoint descriptor: {"endpoint": ..., "keys": {"p256dh": ..., "auth": ...}}
    push_subscription: Mapped[dict[str, Any] | None] = mapped_column(PushSubscriptionJSON, nullable=True)

    last_notification_sent: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def push_endpoint(self) -> str | None:
        if not self.push_subscription:
            return None
        return self.push_subscription.get("endpoint")

    def to_public_dict(self) -> dict[str, Any]:
        """Client-facing view; never includes the token hash or push keys."""
        return {
            "id": self.id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "notificationsEnabled": self.notifications_enabled,
            "hasPushSubscription": self.push_subscription is not None,
            "lastNotificationSent": _isoformat(self.last_notification_sent),
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Subscription id={self.id} enabled={self.notifications_enabled}>"


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
