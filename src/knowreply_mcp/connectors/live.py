"""
Live connectors: real third-party HTTP APIs via httpx.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import httpx

from knowreply_mcp.core.coerce import utc_now_iso

from .base import HttpConnector, Route


class StripeConnector(HttpConnector):
    provider = "stripe"
    routes = {
        "list_customers": Route(
            "GET", "/customers", query=lambda p: {"email": p["email"], "limit": 1}
        ),
        "create_refund": Route(
            "POST", "/refunds", form=lambda p: {"charge": p["charge"], "amount": p.get("amount")}
        ),
        "list_subscriptions": Route(
            "GET",
            "/subscriptions",
            query=lambda p: {"customer": p["customer"], "status": "active", "limit": 1},
        ),
        "list_invoices": Route(
            "GET", "/invoices", query=lambda p: {"customer": p["customer"], "limit": 1}
        ),
    }

    def base_url(self, credentials: Mapping[str, Any]) -> str:
        return "https://api.stripe.com/v1"

    def error_message(self, payload: Any) -> Optional[str]:
        if isinstance(payload, Mapping) and isinstance(payload.get("error"), Mapping):
            return payload["error"].get("message")
        return None


# association type 16: ticket -> contact (HubSpot defined)
_TICKET_TO_CONTACT = 16

_CONTACT_PROPERTIES = ["email", "firstname", "lastname", "company", "lifecyclestage"]
_TICKET_PROPERTIES = "subject,content,hs_pipeline,hs_pipeline_stage,createdate,hs_lastmodifieddate"


def _hubspot_ticket_body(p: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "properties": {
            "subject": p["subject"],
            "content": p["content"],
            "hs_pipeline": "0",
            "hs_pipeline_stage": "1",
        },
        "associations": [
            {
                "to": {"id": p["contact_id"]},
                "types": [{"associationCategory": "HUBSPOT_DEFINED", "associationTypeId": _TICKET_TO_CONTACT}],
            }
        ],
    }


class HubSpotConnector(HttpConnector):
    provider = "hubspot"
    routes = {
        "search_contacts": Route(
            "POST",
            "/crm/v3/objects/contacts/search",
            json=lambda p: {
                "filterGroups": [{"filters": [{"propertyName": "email", "operator": "EQ", "value": p["email"]}]}],
                "properties": _CONTACT_PROPERTIES,
                "limit": 1,
            },
        ),
        "get_ticket": Route(
            "GET",
            "/crm/v3/objects/tickets/{ticket_id}",
            query=lambda p: {"properties": _TICKET_PROPERTIES},
        ),
        "create_ticket": Route("POST", "/crm/v3/objects/tickets", json=_hubspot_ticket_body),
    }

    def base_url(self, credentials: Mapping[str, Any]) -> str:
        return "https://api.hubapi.com"


class ZendeskConnector(HttpConnector):
    provider = "zendesk"
    routes = {
        "search_tickets": Route(
            "GET",
            "/search.json",
            query=lambda p: {
                "query": f"type:ticket requester:{p['email']}",
                "sort_by": "updated_at",
                "sort_order": "desc",
            },
        ),
        "get_ticket": Route("GET", "/tickets/{ticket_id}.json"),
        "update_ticket": Route(
            "PUT", "/tickets/{ticket_id}.json", json=lambda p: {"ticket": {"status": p["status"]}}
        ),
    }

    def base_url(self, credentials: Mapping[str, Any]) -> str:
        return f"https://{credentials['subdomain']}.zendesk.com/api/v2"

    def error_message(self, payload: Any) -> Optional[str]:
        if not isinstance(payload, Mapping):
            return None
        error = payload.get("error")
        if isinstance(error, Mapping):
            return error.get("message") or error.get("title")
        if isinstance(error, str):
            return payload.get("description") or error
        return None


class CalendlyConnector(HttpConnector):
    provider = "calendly"
    routes = {
        "get_current_user": Route("GET", "/users/me"),
        "list_scheduled_events": Route(
            "GET",
            "/scheduled_events",
            query=lambda p: {
                "organization": p["organization"],
                "invitee_email": p["email"],
                "status": "active",
                "min_start_time": p.get("min_start_time") or utc_now_iso(),
                "sort": "start_time:asc",
            },
        ),
    }

    def base_url(self, credentials: Mapping[str, Any]) -> str:
        return "https://api.calendly.com"


class ShopifyConnector(HttpConnector):
    provider = "shopify"
    api_version = "2024-01"
    routes = {
        "get_order": Route("GET", "/orders/{order_id}.json"),
    }

    def base_url(self, credentials: Mapping[str, Any]) -> str:
        return f"https://{credentials['shop_domain']}/admin/api/{self.api_version}"

    def headers(self, credentials: Mapping[str, Any]) -> Dict[str, str]:
        return {"X-Shopify-Access-Token": str(credentials.get("token") or "")}

    def error_message(self, payload: Any) -> Optional[str]:
        if isinstance(payload, Mapping) and payload.get("errors"):
            errors = payload["errors"]
            return errors if isinstance(errors, str) else str(errors)
        return None


class WooCommerceConnector(HttpConnector):
    provider = "woocommerce"
    routes = {
        "get_order": Route("GET", "/orders/{order_id}"),
    }

    def base_url(self, credentials: Mapping[str, Any]) -> str:
        return f"{str(credentials['base_url']).rstrip('/')}/wp-json/wc/v3"

    def headers(self, credentials: Mapping[str, Any]) -> Dict[str, str]:
        return {}

    def auth(self, credentials: Mapping[str, Any]) -> Optional[httpx.Auth]:
        return httpx.BasicAuth(credentials["consumer_key"], credentials["consumer_secret"])


LIVE_CONNECTORS = {
    cls.provider: cls
    for cls in (
        StripeConnector,
        HubSpotConnector,
        ZendeskConnector,
        CalendlyConnector,
        ShopifyConnector,
        WooCommerceConnector,
    )
}
