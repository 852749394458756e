"""
Subscription router: anonymous opt-in, authenticated updates and removal.
"""

import logging

from fastapi import APIRouter, Response, status

from app.deps import Authenticator, PushServiceOptional, Store
from app.errors import ValidationError
from app.schemas.subscription import SessionTokenRequest, SubscribeRequest, SubscriptionUpdateRequest
from app.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["subscriptions"])


@router.post("/subscribe", status_code=status.HTTP_201_CREATED)
async def subscribe(
    payload: SubscribeRequest,
    response: Response,
    store: Store,
    authenticator: Authenticator,
    push_service: PushServiceOptional,
):
    """Create a subscription for an anonymous browser session."""
    if not payload.notifications_enabled:
        raise ValidationError("Notifications must be enabled to subscribe")

    push_subscription = payload.push_subscription.model_dump() if payload.push_subscription else None
    vapid_public_key = push_service.public_key if push_service else None

    if settings.prevent_duplicate_subscriptions:
        existing = await authenticator.find_by_session_token(payload.session_token)
        if existing:
            changes = {
                "latitude": payload.latitude,
                "longitude": payload.longitude,
                "notifications_enabled": True,
            }
            if push_subscription is not None:
                changes["push_subscription"] = push_subscription
            await store.update(existing.id, changes)
            logger.info("Session already subscribed, refreshed subscription %s", existing.id)
            response.status_code = status.HTTP_200_OK
            return {
                "success": True,
                "message": "Subscription already exists and was updated",
                "subscriptionId": existing.id,
                "vapidPublicKey": vapid_public_key,
            }

    token_hash = await authenticator.hash_token(payload.session_token)
    subscription_id = await store.create(
        token_hash,
        payload.latitude,
        payload.longitude,
        payload.notifications_enabled,
        push_subscription,
    )

    return {
        "success": True,
        "message": "Successfully subscribed to air quality notifications",
        "subscriptionId": subscription_id,
        "vapidPublicKey": vapid_public_key,
    }


@router.put("/subscription/{subscription_id}")
async def update_subscription(
    subscription_id: int,
    payload: SubscriptionUpdateRequest,
    store: Store,
    authenticator: Authenticator,
):
    """Update location, notification toggle or push endpoint."""
    await authenticator.authorize(subscription_id, payload.session_token)
    await store.update(subscription_id, payload.changes())
    return {"success": True, "message": "Subscription updated successfully"}


@router.delete("/subscription/{subscription_id}")
async def delete_subscription(
    subscription_id: int,
    payload: SessionTokenRequest,
    store: Store,
    authenticator: Authenticator,
):
    """Unsubscribe."""
    await authenticator.authorize(subscription_id, payload.session_token)
    await store.delete(subscription_id)
    return {"success": True, "message": "Successfully unsubscribed"}


@router.get("/subscriptions")
async def list_subscriptions(store: Store):
    """Operational listing of active subscriptions."""
    subscriptions = await store.list_active()
    return {
        "success": True,
        "count": len(subscriptions),
        "subscriptions": [sub.to_public_dict() for sub in subscriptions],
    }


@router.post("/check-subscription")
async def check_subscription(payload: SessionTokenRequest, authenticator: Authenticator):
    """Find the subscription owned by a session token (returning visitor without a cached id)."""
    subscription = await authenticator.find_by_session_token(payload.session_token)
    if subscription is None:
        return {"success": True, "subscribed": False}
    return {
        "success": True,
        "subscribed": True,
        "subscription": subscription.to_public_dict(),
    }
