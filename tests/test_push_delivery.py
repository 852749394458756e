"""Tests for the push delivery engine."""

import time

import pytest

from app.errors import ConfigurationError, StoreError
from app.services.push import PushDeliveryService, VapidConfig
from app.settings import Settings

from conftest import push_descriptor

ENDPOINT = "https://push.example.com/device-1"


@pytest.mark.asyncio
async def test_send_success(push_service, fake_webpush):
    delivered = await push_service.send(push_descriptor(ENDPOINT), "Title", "Body", {"subscriptionId": 7})

    assert delivered is True
    assert fake_webpush.endpoints == [ENDPOINT]
    call = fake_webpush.calls[0]
    assert call["private_key"] == "test-vapid-private-key"
    assert call["claims"] == {"sub": "mailto:alerts@example.com"}
    assert call["timeout"] == 0.5


@pytest.mark.asyncio
async def test_payload_envelope(push_service, fake_webpush):
    await push_service.send(push_descriptor(ENDPOINT), "Title", "Body", {"subscriptionId": 7, "airQuality": {"aqi": 160}})

    payload = fake_webpush.calls[0]["payload"]
    assert payload == {
        "title": "Title",
        "body": "Body",
        "icon": "/favicon.ico",
        "badge": "/favicon.ico",
        "data": {"url": "/", "subscriptionId": 7, "airQuality": {"aqi": 160}},
    }


@pytest.mark.asyncio
async def test_claims_are_not_shared_between_sends(push_service, fake_webpush):
    await push_service.send(push_descriptor(ENDPOINT), "Title", "Body")
    fake_webpush.calls[0]["claims"]["aud"] = "https://push.example.com"

    await push_service.send(push_descriptor("https://other.example.net/x"), "Title", "Body")

    assert "aud" not in fake_webpush.calls[1]["claims"]
    assert push_service.config.claims == {"sub": "mailto:alerts@example.com"}


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [404, 410])
async def test_gone_endpoint_is_cleared(status, push_service, fake_webpush, store, create_subscription):
    subscription_id = await create_subscription(endpoint=ENDPOINT)
    fake_webpush.statuses[ENDPOINT] = status

    delivered = await push_service.send(push_descriptor(ENDPOINT), "Title", "Body")

    assert delivered is False
    subscription = await store.get_by_id(subscription_id)
    assert subscription.push_subscription is None
    assert subscription.notifications_enabled is True


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 413, 429, 500, 503])
async def test_transient_failure_keeps_endpoint(status, push_service, fake_webpush, store, create_subscription):
    subscription_id = await create_subscription(endpoint=ENDPOINT)
    fake_webpush.statuses[ENDPOINT] = status

    delivered = await push_service.send(push_descriptor(ENDPOINT), "Title", "Body")

    assert delivered is False
    assert (await store.get_by_id(subscription_id)).push_endpoint == ENDPOINT
    assert len(fake_webpush.calls) == 1  # no retry


@pytest.mark.asyncio
async def test_network_error_returns_false(push_service, fake_webpush, store, create_subscription):
    subscription_id = await create_subscription(endpoint=ENDPOINT)
    fake_webpush.errors[ENDPOINT] = ConnectionError("connection reset")

    assert await push_service.send(push_descriptor(ENDPOINT), "Title", "Body") is False
    assert (await store.get_by_id(subscription_id)).push_endpoint == ENDPOINT


@pytest.mark.asyncio
async def test_malformed_keys_return_false(push_service, fake_webpush):
    fake_webpush.errors[ENDPOINT] = ValueError("Could not deserialize key data")

    assert await push_service.send(push_descriptor(ENDPOINT), "Title", "Body") is False


@pytest.mark.asyncio
async def test_hung_delivery_times_out(push_service, fake_webpush):
    fake_webpush.delays[ENDPOINT] = 2.0

    started = time.monotonic()
    delivered = await push_service.send(push_descriptor(ENDPOINT), "Title", "Body")

    assert delivered is False
    assert time.monotonic() - started < 1.5


@pytest.mark.asyncio
async def test_self_heal_store_failure_is_swallowed(push_service, fake_webpush, monkeypatch):
    fake_webpush.statuses[ENDPOINT] = 410

    async def failing_clear(endpoint):
        raise StoreError("database unavailable")

    monkeypatch.setattr(push_service.store, "clear_push_subscription", failing_clear)

    assert await push_service.send(push_descriptor(ENDPOINT), "Title", "Body") is False


@pytest.mark.asyncio
async def test_send_to_subscription_metadata(push_service, fake_webpush, store, create_subscription):
    subscription_id = await create_subscription(endpoint=ENDPOINT)
    subscription = await store.get_by_id(subscription_id)

    delivered = await push_service.send_to_subscription(subscription, "Alert", "Unhealthy air", {"category": "unhealthy"})

    assert delivered is True
    data = fake_webpush.calls[0]["payload"]["data"]
    assert data["subscriptionId"] == subscription_id
    assert data["airQuality"] == {"category": "unhealthy"}
    assert "T" in data["timestamp"]


@pytest.mark.asyncio
async def test_send_to_subscription_without_endpoint(push_service, fake_webpush, store, create_subscription):
    subscription = await store.get_by_id(await create_subscription())

    assert await push_service.send_to_subscription(subscription, "Alert", "Body") is False
    assert fake_webpush.calls == []


def test_vapid_config_from_settings():
    config = VapidConfig.from_settings(
        Settings(vapid_public_key="pub", vapid_private_key="priv", vapid_contact_email="ops@example.com")
    )

    assert config.public_key == "pub"
    assert config.claims == {"sub": "mailto:ops@example.com"}


@pytest.mark.parametrize("public_key,private_key", [(None, "priv"), ("pub", None), (None, None)])
def test_vapid_config_requires_both_keys(public_key, private_key):
    settings = Settings(vapid_public_key=public_key, vapid_private_key=private_key)

    with pytest.raises(ConfigurationError):
        VapidConfig.from_settings(settings)


@pytest.mark.asyncio
async def test_push_service_from_settings(store):
    settings = Settings(
        vapid_public_key="pub",
        vapid_private_key="priv",
        push_timeout_seconds=3.0,
        push_icon="/icons/aqi.png",
    )

    service = PushDeliveryService.from_settings(settings, store)

    assert service.public_key == "pub"
    assert service.timeout == 3.0
    assert service.build_payload("T", "B")["icon"] == "/icons/aqi.png"
