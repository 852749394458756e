"""
Push router: VAPID key distribution and operational test alerts.
"""

import logging

from fastapi import APIRouter, Body

from app.deps import Broadcaster, PushService, Store
from app.errors import NotFoundError
from app.schemas.subscription import NotificationTestRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["push"])

TEST_ALERT_TITLE = "🌫️ Air Quality Alert"
TEST_ALERT_BODY = "Air quality is unhealthy in your area. AQI: 165"
TEST_ALERT_DATA = {"aqi": 165, "category": "unhealthy"}


@router.get("/vapid-key")
async def get_vapid_public_key(push_service: PushService):
    """Get the VAPID public key for browser push subscription."""
    return {"success": True, "publicKey": push_service.public_key}


@router.post("/test-notification")
async def send_test_notification(
    broadcaster: Broadcaster,
    payload: NotificationTestRequest | None = Body(default=None),
):
    """Broadcast a sample alert to every active subscription."""
    payload = payload or NotificationTestRequest()
    sent_count = await broadcaster.broadcast(
        payload.title or TEST_ALERT_TITLE,
        payload.body or TEST_ALERT_BODY,
        TEST_ALERT_DATA,
    )
    return {"success": True, "sentCount": sent_count}


@router.post("/test/notify/{subscription_id}")
async def notify_subscription(subscription_id: int, store: Store, push_service: PushService):
    """Send the sample alert to a single subscription."""
    subscription = await store.get_by_id(subscription_id)
    if subscription is None:
        raise NotFoundError("Subscription not found")

    logger.info(
        "Test notification for subscription %s (enabled: %s)",
        subscription.id, subscription.notifications_enabled,
    )

    sent = False
    if subscription.push_subscription:
        sent = await push_service.send_to_subscription(
            subscription, TEST_ALERT_TITLE, TEST_ALERT_BODY, TEST_ALERT_DATA,
        )
    else:
        logger.info("No push subscription found for subscription %s", subscription.id)

    return {
        "success": True,
        "message": "Test notification triggered",
        "subscription": subscription.to_public_dict(),
        "notification": {
            "title": TEST_ALERT_TITLE,
            "body": TEST_ALERT_BODY,
            "category": TEST_ALERT_DATA["category"],
            "sent": sent,
        },
    }
