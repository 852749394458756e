"""
Subscription store: async CRUD over the subscriptions table.

Each operation runs in its own short session and transaction, so the store is
safe to share between concurrently running deliveries.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.errors import StoreError
from app.models.subscription import Subscription

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"notifications_enabled", "latitude", "longitude", "push_subscription"})


@dataclass(frozen=True)
class ActiveSubscription:
    """Projection of an enabled subscription used by broadcasts."""

    id: int
    latitude: float
    longitude: float
    last_notification_sent: datetime | None
    push_subscription: dict[str, Any] | None
    notifications_enabled: bool

    def to_public_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "notificationsEnabled": self.notifications_enabled,
            "lastNotificationSent": (
                self.last_notification_sent.isoformat() if self.last_notification_sent else None
            ),
            "hasPushSubscription": self.push_subscription is not None,
        }


class SubscriptionStore:
    """Durable table of subscription records."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Subscription store %s failed: %s", operation, exc)
            raise StoreError(f"Subscription store {operation} failed") from exc

    async def create(
        self,
        token_hash: str,
        latitude: float,
        longitude: float,
        notifications_enabled: bool,
        push_subscription: dict[str, Any] | None = None,
    ) -> int:
        """Insert a new subscription and return its id."""
        async with self._session("create") as session:
            subscription = Subscription(
                session_token_hash=token_hash,
                latitude=latitude,
                longitude=longitude,
                notifications_enabled=notifications_enabled,
                push_subscription=push_subscription,
            )
            session.add(subscription)
            await session.commit()
            logger.info("Created subscription %s", subscription.id)
            return subscription.id

    async def get_by_id(self, subscription_id: int) -> Subscription | None:
        async with self._session("get_by_id") as session:
            return await session.get(Subscription, subscription_id)

    async def list_all(self) -> list[Subscription]:
        """Every stored subscription, enabled or not."""
        async with self._session("list_all") as session:
            result = await session.execute(select(Subscription).order_by(Subscription.id))
            return list(result.scalars().all())

    async def list_active(self) -> list[ActiveSubscription]:
        """Subscriptions with notifications enabled."""
        async with self._session("list_active") as session:
            result = await session.execute(
                select(
                    Subscription.id,
                    Subscription.latitude,
                    Subscription.longitude,
                    Subscription.last_notification_sent,
                    Subscription.push_subscription,
                    Subscription.notifications_enabled,
                ).where(Subscription.notifications_enabled.is_(True))
            )
            return [ActiveSubscription(**row) for row in result.mappings().all()]

    async def count_active(self) -> int:
        async with self._session("count_active") as session:
            result = await session.execute(
                select(func.count(Subscription.id)).where(Subscription.notifications_enabled.is_(True))
            )
            return result.scalar_one()

    async def update(self, subscription_id: int, fields: dict[str, Any]) -> None:
        """Apply a partial update.

        Only the keys present in ``fields`` are written; ``push_subscription=None``
        clears the endpoint. ``updated_at`` is refreshed even when ``fields`` is
        empty. Unknown ids are a silent no-op.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update subscription fields: {sorted(unknown)}")

        values = dict(fields)
        values["updated_at"] = func.now()
        async with self._session("update") as session:
            await session.execute(
                update(Subscription).where(Subscription.id == subscription_id).values(**values)
            )
            await session.commit()
        logger.debug("Updated subscription %s fields=%s", subscription_id, sorted(fields))

    async def delete(self, subscription_id: int) -> None:
        """Delete a subscription. Deleting a missing id is not an error."""
        async with self._session("delete") as session:
            await session.execute(delete(Subscription).where(Subscription.id == subscription_id))
            await session.commit()
        logger.info("Deleted subscription %s", subscription_id)

    async def mark_notified(self, subscription_id: int) -> None:
        async with self._session("mark_notified") as session:
            await session.execute(
                update(Subscription)
                .where(Subscription.id == subscription_id)
                .values(last_notification_sent=func.now())
            )
            await session.commit()

    async def clear_push_subscription(self, endpoint: str) -> int:
        """Clear the push descriptor on every subscription using ``endpoint``.

        Returns the number of subscriptions cleared.
        """
        async with self._session("clear_push_subscription") as session:
            result = await session.execute(
                update(Subscription)
                .where(Subscription.push_subscription["endpoint"].as_string() == endpoint)
                .values(push_subscription=None, updated_at=func.now())
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount
