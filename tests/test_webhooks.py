"""
Tests for Shopify webhook driven invalidation.
"""

import json
from unittest.mock import AsyncMock, patch

from instantcache.deps import compute_shopify_hmac

SECRET = "test_webhook_secret"


def _post(client, topic, payload, signature=None):
    body = json.dumps(payload).encode()
    headers = {
        "Content-Type": "application/json",
        "X-Shopify-Topic": topic,
        "X-Shopify-Hmac-Sha256": signature if signature is not None else compute_shopify_hmac(SECRET, body),
    }
    return client.post("/webhooks/shopify", content=body, headers=headers)


def test_missing_signature_is_rejected(app_client):
    response = app_client.post(
        "/webhooks/shopify",
        content=b"{}",
        headers={"X-Shopify-Topic": "products/update"},
    )
    assert response.status_code == 401


def test_bad_signature_is_rejected(app_client):
    response = _post(app_client, "products/update", {"id": 1}, signature="bm9wZQ==")
    assert response.status_code == 401


def test_product_update_invalidates_and_schedules_refresh(app_client, provider):
    app_client.post("/instant-product-cache")

    with patch(
        "instantcache.routers.webhooks_route.shopify.refresh_after_invalidation",
        new_callable=AsyncMock,
    ) as mock_refresh:
        response = _post(app_client, "products/update", {"id": 42})

    assert response.status_code == 200
    body = response.json()
    assert body["handled"] is True
    assert body["invalidated"] >= 1
    mock_refresh.assert_called_once()

    # Next read goes back upstream
    assert app_client.post("/instant-product-cache").json()["source"] == "fresh"
    assert provider.calls["products"] == 2


def test_collection_update_sweeps_collection_entries(app_client):
    store = app_client.app.state.store
    app_client.portal.call(store.upsert, "collections_tailgate-beer", {"x": 1}, 10**13)
    app_client.portal.call(store.upsert, "site_settings", {"x": 1}, 10**13)

    with patch(
        "instantcache.routers.webhooks_route.shopify.refresh_after_invalidation",
        new_callable=AsyncMock,
    ):
        response = _post(app_client, "collections/update", {"handle": "tailgate-beer"})

    assert response.status_code == 200
    assert response.json()["invalidated"] >= 1
    assert app_client.portal.call(store.get, "collections_tailgate-beer") is None
    assert app_client.portal.call(store.get, "site_settings") is not None


def test_unrelated_topic_is_ignored(app_client):
    with patch(
        "instantcache.routers.webhooks_route.shopify.refresh_after_invalidation",
        new_callable=AsyncMock,
    ) as mock_refresh:
        response = _post(app_client, "orders/create", {"id": 7})

    assert response.status_code == 200
    assert response.json()["handled"] is False
    mock_refresh.assert_not_called()
