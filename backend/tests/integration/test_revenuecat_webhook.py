"""
Integration tests for the RevenueCat subscription webhook.
"""

from sqlalchemy import select

from infrastructure.database.models import SubscriptionLog

REVENUECAT_URL = "/webhooks/revenuecat"


def _payload(user_id: str, event_type: str = "INITIAL_PURCHASE", **overrides) -> dict:
    event = {
        "type": event_type,
        "app_user_id": user_id,
        "product_id": "eveokee_premium_monthly",
        "store": "PLAY_STORE",
        "environment": "SANDBOX",
        "expiration_at_ms": "1767225600000",
        "entitlement_ids": ["premium"],
        "$internal": "dropped",
    }
    event.update(overrides)
    return {"api_version": "1.0", "event": event}


async def test_purchase_updates_subscription(async_client, free_user, load_subscription, revenuecat_headers, db_session):
    response = await async_client.post(
        REVENUECAT_URL, json=_payload(free_user.id), headers=revenuecat_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

    subscription = await load_subscription(free_user)
    assert subscription.status == "active"
    assert subscription.subscription_tier == "monthly"
    assert subscription.platform == "play_store"
    assert subscription.expires_at is not None

    log = (await db_session.execute(select(SubscriptionLog))).scalar_one()
    assert log.event_type == "INITIAL_PURCHASE"
    assert "$internal" not in log.raw_event
    assert log.raw_event["app_user_id"] == free_user.id


async def test_expiration_downgrades(async_client, free_user, load_subscription, revenuecat_headers):
    await async_client.post(REVENUECAT_URL, json=_payload(free_user.id), headers=revenuecat_headers)
    response = await async_client.post(
        REVENUECAT_URL, json=_payload(free_user.id, "EXPIRATION"), headers=revenuecat_headers,
    )

    assert response.status_code == 200
    subscription = await load_subscription(free_user)
    assert subscription.status == "expired"
    assert subscription.subscription_tier == "free"


async def test_missing_token_is_unauthorized(async_client, free_user, webhook_settings):
    response = await async_client.post(REVENUECAT_URL, json=_payload(free_user.id))

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


async def test_wrong_token_is_unauthorized(async_client, free_user, webhook_settings):
    response = await async_client.post(
        REVENUECAT_URL, json=_payload(free_user.id), headers={"Authorization": "Bearer nope"},
    )
    assert response.status_code == 401


async def test_missing_secret_is_server_error(async_client, free_user, monkeypatch, webhook_settings):
    monkeypatch.setattr(webhook_settings, "revenuecat_webhook_secret", None)

    response = await async_client.post(
        REVENUECAT_URL, json=_payload(free_user.id), headers={"Authorization": "Bearer rc-test-secret"},
    )
    assert response.status_code == 500


async def test_invalid_json(async_client, revenuecat_headers):
    response = await async_client.post(
        REVENUECAT_URL, content=b"{not json", headers={**revenuecat_headers, "content-type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid JSON"}


async def test_unknown_event_type_is_bad_request(async_client, free_user, revenuecat_headers):
    response = await async_client.post(
        REVENUECAT_URL, json=_payload(free_user.id, "SOMETHING_NEW"), headers=revenuecat_headers,
    )
    assert response.status_code == 400
    assert "error" in response.json()


async def test_out_of_range_expiration_is_bad_request(async_client, free_user, load_subscription, revenuecat_headers):
    response = await async_client.post(
        REVENUECAT_URL, json=_payload(free_user.id, "RENEWAL", expiration_at_ms=10**20), headers=revenuecat_headers,
    )

    assert response.status_code == 400
    subscription = await load_subscription(free_user)
    assert subscription.subscription_tier == "free"


async def test_invalid_user_id_format(async_client, revenuecat_headers):
    response = await async_client.post(
        REVENUECAT_URL, json=_payload("../../etc"), headers=revenuecat_headers,
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid user ID format"}


async def test_unknown_user_is_server_error(async_client, revenuecat_headers):
    response = await async_client.post(
        REVENUECAT_URL, json=_payload("no-such-user"), headers=revenuecat_headers,
    )
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to process webhook"}
