"""
FastAPI dependencies for the subscription and push services.

Services are built once in the application lifespan and kept on app.state.
"""

from typing import Annotated

from fastapi import Depends, Request

from app.errors import ConfigurationError
from app.services.broadcast import BroadcastCoordinator
from app.services.push import PushDeliveryService
from app.services.session_auth import SessionAuthenticator
from app.services.subscription_store import SubscriptionStore


def get_store(request: Request) -> SubscriptionStore:
    return request.app.state.store


def get_authenticator(request: Request) -> SessionAuthenticator:
    return request.app.state.authenticator


def get_push_service(request: Request) -> PushDeliveryService:
    """Push delivery service, or ConfigurationError when VAPID keys are missing."""
    push_service = getattr(request.app.state, "push_service", None)
    if push_service is None:
        raise ConfigurationError("Push delivery is not configured")
    return push_service


def get_push_service_optional(request: Request) -> PushDeliveryService | None:
    return getattr(request.app.state, "push_service", None)


def get_broadcaster(request: Request) -> BroadcastCoordinator:
    broadcaster = getattr(request.app.state, "broadcaster", None)
    if broadcaster is None:
        raise ConfigurationError("Push delivery is not configured")
    return broadcaster


Store = Annotated[SubscriptionStore, Depends(get_store)]
Authenticator = Annotated[SessionAuthenticator, Depends(get_authenticator)]
PushService = Annotated[PushDeliveryService, Depends(get_push_service)]
PushServiceOptional = Annotated[PushDeliveryService | None, Depends(get_push_service_optional)]
Broadcaster = Annotated[BroadcastCoordinator, Depends(get_broadcaster)]
