"""
Push notification delivery using web-push.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from pywebpush import WebPushException, webpush

from app.errors import ConfigurationError, DeliveryError, StoreError
from app.services.subscription_store import SubscriptionStore
from app.settings import Settings

logger = logging.getLogger(__name__)

# Push services answer these when the browser dropped the subscription
GONE_STATUSES = (404, 410)


@dataclass(frozen=True)
class VapidConfig:
    """VAPID key pair and contact used to sign push requests."""

    public_key: str
    private_key: str
    subject: str

    @property
    def claims(self) -> dict[str, str]:
        return {"sub": self.subject}

    @classmethod
    def from_settings(cls, settings: Settings) -> "VapidConfig":
        if not settings.vapid_public_key or not settings.vapid_private_key:
            logger.error(
                "VAPID keys not configured (public: %s, private: %s)",
                bool(settings.vapid_public_key), bool(settings.vapid_private_key),
            )
            raise ConfigurationError("VAPID_PUBLIC_KEY and VAPID_PRIVATE_KEY are required for push notifications")
        return cls(
            public_key=settings.vapid_public_key,
            private_key=settings.vapid_private_key,
            subject=f"mailto:{settings.vapid_contact_email}",
        )


class PushTarget(Protocol):
    id: int
    push_subscription: dict[str, Any] | None


class PushDeliveryService:
    """Sends one web push message to one endpoint and cleans up dead endpoints."""

    def __init__(
        self,
        config: VapidConfig,
        store: SubscriptionStore,
        *,
        ttl: int = 86400,
        timeout: float = 10.0,
        icon: str = "/favicon.ico",
        badge: str = "/favicon.ico",
        default_url: str = "/",
    ):
        self.config = config
        self.store = store
        self.ttl = ttl
        self.timeout = timeout
        self.icon = icon
        self.badge = badge
        self.default_url = default_url
        logger.info("Push notifications enabled - VAPID keys configured")

    @classmethod
    def from_settings(cls, settings: Settings, store: SubscriptionStore) -> "PushDeliveryService":
        return cls(
            VapidConfig.from_settings(settings),
            store,
            ttl=settings.push_ttl_seconds,
            timeout=settings.push_timeout_seconds,
            icon=settings.push_icon,
            badge=settings.push_badge,
            default_url=settings.push_default_url,
        )

    @property
    def public_key(self) -> str:
        return self.config.public_key

    def build_payload(self, title: str, body: str, metadata: dict[str, Any] | None = None) -> dict[str, Any]:
        return {
            "title": title,
            "body": body,
            "icon": self.icon,
            "badge": self.badge,
            "data": {
                "url": self.default_url,
                **(metadata or {}),
            },
        }

    async def send(
        self,
        endpoint_descriptor: dict[str, Any],
        title: str,
        body: str,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Deliver one notification.

        Returns True on success. Returns False on any failure; when the push
        service reports the endpoint gone, the endpoint is also cleared from
        every subscription that uses it. Failures are not retried here.
        """
        endpoint = endpoint_descriptor.get("endpoint", "")
        payload = self.build_payload(title, body, metadata)

        try:
            await self._push(endpoint_descriptor, payload)
        except DeliveryError as e:
            if e.permanent:
                logger.info("Push endpoint gone (status %s): %s...", e.push_status, endpoint[:60])
                await self._remove_dead_endpoint(endpoint)
            else:
                logger.error("Push notification failed for %s...: %s (status: %s)",
                             endpoint[:60], e.message, e.push_status or "N/A")
            return False

        logger.info("Push notification sent to %s...", endpoint[:60])
        return True

    async def send_to_subscription(
        self,
        subscription: PushTarget,
        title: str,
        body: str,
        alert_data: dict[str, Any] | None = None,
    ) -> bool:
        """Send an air quality alert to one subscription's endpoint."""
        if not subscription.push_subscription:
            return False
        metadata = {
            "subscriptionId": subscription.id,
            "airQuality": alert_data or {},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        return await self.send(subscription.push_subscription, title, body, metadata)

    async def _push(self, endpoint_descriptor: dict[str, Any], payload: dict[str, Any]) -> None:
        try:
            await asyncio.wait_for(
                asyncio.to_thread(
                    webpush,
                    subscription_info=endpoint_descriptor,
                    data=json.dumps(payload),
                    vapid_private_key=self.config.private_key,
                    # webpush writes aud/exp into the claims dict, so each call gets its own
                    vapid_claims=dict(self.config.claims),
                    ttl=self.ttl,
                    timeout=self.timeout,
                ),
                timeout=self.timeout,
            )
        except WebPushException as e:
            status = getattr(e.response, "status_code", None) if e.response is not None else None
            raise DeliveryError(str(e), status_code=status, permanent=status in GONE_STATUSES) from e
        except asyncio.TimeoutError as e:
            raise DeliveryError(f"Push delivery timed out after {self.timeout}s") from e
        except Exception as e:
            # Malformed keys and connection errors surface as plain exceptions
            raise DeliveryError(f"Push delivery error: {e}") from e

    async def _remove_dead_endpoint(self, endpoint: str) -> None:
        try:
            cleared = await self.store.clear_push_subscription(endpoint)
        except StoreError as e:
            logger.error("Could not clear dead push endpoint %s...: %s", endpoint[:60], e)
            return
        if cleared:
            logger.info("Removed dead push endpoint from %d subscription(s)", cleared)
