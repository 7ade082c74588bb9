from __future__ import annotations

import asyncio
import base64

import httpx
import pytest

from knowreply_mcp.config import Settings
from knowreply_mcp.connectors.factory import build_connectors
from knowreply_mcp.connectors.live import (
    HubSpotConnector,
    ShopifyConnector,
    StripeConnector,
    WooCommerceConnector,
    ZendeskConnector,
)
from knowreply_mcp.connectors.mock import MockStripe
from knowreply_mcp.core.errors import UpstreamError, UpstreamErrorKind


def _transport(handler, seen):
    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    return httpx.MockTransport(_record)


def _call(connector, operation, params, credentials):
    return asyncio.run(connector.call(operation, params, credentials))


def test_stripe_refund_is_form_encoded_with_bearer_token():
    seen = []
    conn = StripeConnector(transport=_transport(lambda r: httpx.Response(200, json={"id": "re_1"}), seen))
    out = _call(conn, "create_refund", {"charge": "ch_1", "amount": None}, {"token": "sk_test_1"})

    assert out == {"id": "re_1"}
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://api.stripe.com/v1/refunds"
    assert request.headers["authorization"] == "Bearer sk_test_1"
    assert request.content == b"charge=ch_1"


def test_path_params_are_quoted():
    seen = []
    conn = ZendeskConnector(transport=_transport(lambda r: httpx.Response(200, json={"ticket": {}}), seen))
    _call(conn, "get_ticket", {"ticket_id": "a/b"}, {"token": "t", "subdomain": "acme"})
    assert seen[0].url.raw_path.startswith(b"/api/v2/tickets/a%2Fb.json")
    assert seen[0].url.host == "acme.zendesk.com"


def test_shopify_and_woocommerce_credentials():
    seen = []
    ok = _transport(lambda r: httpx.Response(200, json={"order": {"id": 1}}), seen)

    _call(ShopifyConnector(transport=ok), "get_order", {"order_id": "42"}, {"token": "shpat", "shop_domain": "s.myshopify.com"})
    assert str(seen[0].url) == "https://s.myshopify.com/admin/api/2024-01/orders/42.json"
    assert seen[0].headers["x-shopify-access-token"] == "shpat"

    creds = {"base_url": "https://shop.example.com/", "consumer_key": "ck", "consumer_secret": "cs"}
    _call(WooCommerceConnector(transport=ok), "get_order", {"order_id": 7}, creds)
    assert str(seen[1].url) == "https://shop.example.com/wp-json/wc/v3/orders/7"
    assert seen[1].headers["authorization"] == "Basic " + base64.b64encode(b"ck:cs").decode()


def test_error_status_carries_upstream_message():
    body = {"error": {"message": "No such charge: 'ch_x'"}}
    conn = StripeConnector(transport=httpx.MockTransport(lambda r: httpx.Response(404, json=body)))
    with pytest.raises(UpstreamError) as err:
        _call(conn, "create_refund", {"charge": "ch_x"}, {"token": "sk"})

    assert err.value.kind is UpstreamErrorKind.RESPONSE
    assert err.value.http_status == 404
    assert err.value.is_not_found
    assert err.value.upstream_message == "No such charge: 'ch_x'"


def test_error_without_body_uses_reason_phrase():
    conn = HubSpotConnector(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
    with pytest.raises(UpstreamError) as err:
        _call(conn, "get_ticket", {"ticket_id": "1"}, {})
    assert err.value.http_status == 503
    assert err.value.upstream_message == "Service Unavailable"


def test_transport_failure_is_no_response():
    def boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    conn = StripeConnector(transport=httpx.MockTransport(boom))
    with pytest.raises(UpstreamError) as err:
        _call(conn, "list_customers", {"email": "a@example.com"}, {"token": "sk"})
    assert err.value.kind is UpstreamErrorKind.NO_RESPONSE
    assert err.value.http_status is None


def test_non_json_success_is_unexpected_shape():
    conn = StripeConnector(transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>")))
    with pytest.raises(UpstreamError) as err:
        _call(conn, "list_invoices", {"customer": "cus_1"}, {"token": "sk"})
    assert err.value.kind is UpstreamErrorKind.UNEXPECTED_SHAPE


def test_unknown_operation():
    with pytest.raises(ValueError):
        _call(StripeConnector(), "delete_everything", {}, {"token": "sk"})
    with pytest.raises(ValueError):
        _call(MockStripe(), "delete_everything", {}, {"token": "sk"})


def test_factory_selects_by_mode():
    mock = build_connectors(Settings())
    assert isinstance(mock["stripe"], MockStripe)
    assert set(mock) == {"stripe", "hubspot", "zendesk", "calendly", "shopify", "woocommerce"}

    live = build_connectors(Settings(connector_mode="live", upstream_timeout_s=3.0))
    assert isinstance(live["stripe"], StripeConnector)
    assert live["stripe"].timeout_s == 3.0
    assert build_connectors(Settings()) is not build_connectors(Settings())
