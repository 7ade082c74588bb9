"""
Fixture-backed connectors. They answer the same operations as the live
connectors with live-shaped payloads, and signal failures the way the HTTP
layer would (UpstreamError with a status code).
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from knowreply_mcp.core.coerce import mask_secret, parse_iso, utc_now_iso
from knowreply_mcp.core.errors import UpstreamError, UpstreamErrorKind

from . import fixtures

logger = logging.getLogger(__name__)

JSON = Dict[str, Any]


class MockConnector:
    provider: str = ""
    fixture: Callable[..., JSON] = staticmethod(lambda now=None: {})

    def __init__(self, now: Optional[datetime] = None) -> None:
        self.store: JSON = self.fixture(now)
        self.calls: List[Tuple[str, JSON]] = []

    async def call(self, operation: str, params: Mapping[str, Any], credentials: Mapping[str, Any]) -> Any:
        op = getattr(self, f"op_{operation}", None)
        if op is None:
            raise ValueError(f"{self.provider} mock has no operation {operation!r}")
        logger.info(
            "mock %s %s (token=%s)",
            self.provider,
            operation,
            mask_secret(credentials.get("token") or credentials.get("consumer_key")),
        )
        self.calls.append((operation, dict(params)))
        return op(dict(params))


def _response_error(status: int, message: str) -> UpstreamError:
    return UpstreamError(UpstreamErrorKind.RESPONSE, http_status=status, upstream_message=message)


class MockStripe(MockConnector):
    provider = "stripe"
    fixture = staticmethod(fixtures.stripe)

    def op_list_customers(self, p: JSON) -> JSON:
        customer = self.store["customers"].get(p["email"])
        return {"object": "list", "data": [customer] if customer else [], "has_more": False}

    def op_create_refund(self, p: JSON) -> JSON:
        charge_id = p["charge"]
        charge = self.store["charges"].get(charge_id)
        if charge is None:
            raise _response_error(404, f"No such charge: '{charge_id}'")
        if not charge["refundable"]:
            raise _response_error(400, f"Charge {charge_id} has already been refunded.")
        return {
            "id": f"re_mock_{uuid.uuid4().hex[:12]}",
            "object": "refund",
            "amount": p.get("amount") or charge["amount"],
            "charge": charge_id,
            "currency": charge["currency"],
            "status": "succeeded",
            "reason": None,
            "created": int(datetime.now(timezone.utc).timestamp()),
        }

    def op_list_subscriptions(self, p: JSON) -> JSON:
        subs = [s for s in self.store["subscriptions"].get(p["customer"], []) if s["status"] == "active"]
        return {"object": "list", "data": subs[:1], "has_more": len(subs) > 1}

    def op_list_invoices(self, p: JSON) -> JSON:
        invoices = sorted(self.store["invoices"].get(p["customer"], []), key=lambda i: i["created"], reverse=True)
        return {"object": "list", "data": invoices[:1], "has_more": len(invoices) > 1}


class MockHubSpot(MockConnector):
    provider = "hubspot"
    fixture = staticmethod(fixtures.hubspot)

    def op_search_contacts(self, p: JSON) -> JSON:
        found = [c for c in self.store["contacts"].values() if c["properties"].get("email") == p["email"]]
        return {"total": len(found), "results": found[:1]}

    def op_get_ticket(self, p: JSON) -> JSON:
        ticket = self.store["tickets"].get(p["ticket_id"])
        if ticket is None:
            raise _response_error(404, "Object not found.")
        return ticket

    def op_create_ticket(self, p: JSON) -> JSON:
        if p["contact_id"] not in self.store["contacts"]:
            raise _response_error(404, f"Contact {p['contact_id']} not found.")
        now = utc_now_iso()
        ticket = {
            "id": f"hub_ticket_mock_{uuid.uuid4().hex[:7]}",
            "properties": {
                "subject": p["subject"],
                "content": p["content"],
                "hs_pipeline": "0",
                "hs_pipeline_stage": "1",
                "createdate": now,
                "hs_lastmodifieddate": now,
            },
        }
        self.store["tickets"][ticket["id"]] = ticket
        return ticket


class MockZendesk(MockConnector):
    provider = "zendesk"
    fixture = staticmethod(fixtures.zendesk)

    def op_search_tickets(self, p: JSON) -> JSON:
        email = p["email"]
        if email not in self.store["users"]:
            raise _response_error(404, "RecordNotFound")
        found = [t for t in self.store["tickets"].values() if t["requester"] == email]
        found.sort(key=lambda t: t["updated_at"], reverse=True)
        return {"results": found, "count": len(found)}

    def _ticket(self, ticket_id: str) -> JSON:
        ticket = self.store["tickets"].get(ticket_id)
        if ticket is None:
            raise _response_error(404, "RecordNotFound")
        return ticket

    def op_get_ticket(self, p: JSON) -> JSON:
        return {"ticket": dict(self._ticket(p["ticket_id"]))}

    def op_update_ticket(self, p: JSON) -> JSON:
        ticket = self._ticket(p["ticket_id"])
        if ticket["status"] == "closed":
            raise _response_error(422, "Status: closed prevents ticket update")
        ticket["status"] = p["status"]
        ticket["updated_at"] = utc_now_iso()
        return {"ticket": dict(ticket)}


class MockCalendly(MockConnector):
    provider = "calendly"
    fixture = staticmethod(fixtures.calendly)

    def op_get_current_user(self, p: JSON) -> JSON:
        return {"resource": dict(self.store["user"])}

    def op_list_scheduled_events(self, p: JSON) -> JSON:
        floor = parse_iso(p.get("min_start_time")) or datetime.now(timezone.utc)
        events = [
            e
            for e in self.store["events"].get(p["email"], [])
            if e["status"] == "active" and (parse_iso(e["start_time"]) or floor) >= floor
        ]
        events.sort(key=lambda e: e["start_time"])
        return {"collection": events, "pagination": {"count": len(events), "next_page": None}}


class MockShopify(MockConnector):
    provider = "shopify"
    fixture = staticmethod(fixtures.shopify)

    def op_get_order(self, p: JSON) -> JSON:
        order = self.store["orders"].get(str(p["order_id"]))
        if order is None:
            raise _response_error(404, "Not Found")
        return {"order": order}


class MockWooCommerce(MockConnector):
    provider = "woocommerce"
    fixture = staticmethod(fixtures.woocommerce)

    def op_get_order(self, p: JSON) -> JSON:
        order = self.store["orders"].get(str(p["order_id"]))
        if order is None:
            raise _response_error(404, "Invalid ID.")
        return order


MOCK_CONNECTORS = {
    cls.provider: cls
    for cls in (MockStripe, MockHubSpot, MockZendesk, MockCalendly, MockShopify, MockWooCommerce)
}
