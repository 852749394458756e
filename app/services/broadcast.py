"""
Broadcast coordinator: fans one air quality alert out to every active subscription.
"""

import asyncio
import logging
from typing import Any

from app.errors import StoreError
from app.services.push import PushDeliveryService
from app.services.subscription_store import ActiveSubscription, SubscriptionStore

logger = logging.getLogger(__name__)


class BroadcastCoordinator:
    """Concurrent, failure-tolerant alert fan-out."""

    def __init__(self, store: SubscriptionStore, push: PushDeliveryService, max_concurrency: int = 50):
        self.store = store
        self.push = push
        self.max_concurrency = max_concurrency

    async def broadcast(self, title: str, body: str, alert_data: dict[str, Any] | None = None) -> int:
        """Send an alert to every enabled subscription with a push endpoint.

        Returns the number of successful deliveries. Individual failures never
        abort the batch, and subscriptions without an endpoint are skipped
        rather than counted as failures.
        """
        subscriptions = await self.store.list_active()
        targets = [sub for sub in subscriptions if sub.push_subscription]
        skipped = len(subscriptions) - len(targets)

        logger.info("Broadcasting to %d subscribers (%d without push endpoint)", len(targets), skipped)
        if not targets:
            return 0

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def deliver(subscription: ActiveSubscription) -> bool:
            async with semaphore:
                delivered = await self.push.send_to_subscription(subscription, title, body, alert_data)
            if delivered:
                await self._mark_notified(subscription.id)
            return delivered

        results = await asyncio.gather(*(deliver(sub) for sub in targets), return_exceptions=True)

        delivered_count = 0
        for subscription, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.error("Delivery to subscription %s raised: %s", subscription.id, result)
            elif result:
                delivered_count += 1

        logger.info(
            "Push notifications sent: %d/%d (failed: %d, skipped: %d)",
            delivered_count, len(targets), len(targets) - delivered_count, skipped,
        )
        return delivered_count

    async def _mark_notified(self, subscription_id: int) -> None:
        try:
            await self.store.mark_notified(subscription_id)
        except StoreError as e:
            logger.warning("Could not record notification time for subscription %s: %s", subscription_id, e)
