"""Pytest fixtures for subscription, authentication and push tests."""

import json
import os
import threading
import time
from types import SimpleNamespace

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("VAPID_PUBLIC_KEY", "test-vapid-public-key")
os.environ.setdefault("VAPID_PRIVATE_KEY", "test-vapid-private-key")
os.environ.setdefault("TOKEN_HASH_ROUNDS", "4")

import httpx
import pytest
import pytest_asyncio
from pywebpush import WebPushException

from app.db import build_engine, build_session_maker, init_db
from app.main import create_app, install_services
from app.services.broadcast import BroadcastCoordinator
from app.services.credentials import TokenHasher
from app.services.push import PushDeliveryService, VapidConfig
from app.services.session_auth import SessionAuthenticator
from app.services.subscription_store import SubscriptionStore


def push_descriptor(endpoint: str) -> dict:
    return {"endpoint": endpoint, "keys": {"p256dh": "BPubKeyForTests", "auth": "authSecret"}}


class FakeWebPush:
    """Stand-in for pywebpush.webpush that answers per endpoint."""

    def __init__(self):
        self.calls: list[dict] = []
        self.statuses: dict[str, int] = {}
        self.delays: dict[str, float] = {}
        self.errors: dict[str, Exception] = {}
        self._lock = threading.Lock()

    def __call__(self, subscription_info, data=None, vapid_private_key=None, vapid_claims=None, ttl=0,
                 timeout=None, **kwargs):
        endpoint = subscription_info["endpoint"]
        with self._lock:
            self.calls.append({
                "endpoint": endpoint,
                "payload": json.loads(data),
                "private_key": vapid_private_key,
                "claims": vapid_claims,
                "ttl": ttl,
                "timeout": timeout,
            })
        if endpoint in self.delays:
            time.sleep(self.delays[endpoint])
        if endpoint in self.errors:
            raise self.errors[endpoint]

        status = self.statuses.get(endpoint, 201)
        response = SimpleNamespace(status_code=status, text="", headers={})
        if status > 202:
            raise WebPushException(f"Push failed: {status}", response=response)
        return response

    @property
    def endpoints(self) -> list[str]:
        return [call["endpoint"] for call in self.calls]


@pytest_asyncio.fixture()
async def db_engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'subscriptions.db'}")
    await init_db(bind=engine, max_retries=1)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def store(db_engine) -> SubscriptionStore:
    return SubscriptionStore(build_session_maker(db_engine))


@pytest.fixture()
def hasher() -> TokenHasher:
    return TokenHasher(rounds=4)


@pytest.fixture()
def authenticator(store, hasher) -> SessionAuthenticator:
    return SessionAuthenticator(store, hasher)


@pytest.fixture()
def fake_webpush(monkeypatch) -> FakeWebPush:
    fake = FakeWebPush()
    monkeypatch.setattr("app.services.push.webpush", fake)
    return fake


@pytest.fixture()
def vapid_config() -> VapidConfig:
    return VapidConfig(
        public_key="test-vapid-public-key",
        private_key="test-vapid-private-key",
        subject="mailto:alerts@example.com",
    )


@pytest.fixture()
def push_service(vapid_config, store, fake_webpush) -> PushDeliveryService:
    return PushDeliveryService(vapid_config, store, timeout=0.5)


@pytest.fixture()
def broadcaster(store, push_service) -> BroadcastCoordinator:
    return BroadcastCoordinator(store, push_service, max_concurrency=4)


@pytest.fixture()
def create_subscription(store, hasher):
    """Insert a subscription directly through the store."""

    async def _create(
        token: str = "session-token",
        latitude: float = 40.0,
        longitude: float = -75.0,
        enabled: bool = True,
        endpoint: str | None = None,
    ) -> int:
        push = push_descriptor(endpoint) if endpoint else None
        return await store.create(hasher.hash(token), latitude, longitude, enabled, push)

    return _create


@pytest.fixture()
def application(store, fake_webpush):
    app = create_app()
    install_services(app, store)
    return app


@pytest_asyncio.fixture()
async def client(application):
    transport = httpx.ASGITransport(app=application)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client
