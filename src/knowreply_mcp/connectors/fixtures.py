"""
Fixture data for mock connectors, in the upstream APIs' own payload shapes.

Every builder returns a fresh structure; timestamps are relative to `now`
so "upcoming" and "recent" stay true whenever the fixtures are built.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

JSON = Dict[str, Any]

DAY = timedelta(days=1)


def _iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


def _epoch(dt: datetime) -> int:
    return int(dt.timestamp())


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def stripe(now: Optional[datetime] = None) -> JSON:
    now = _now(now)
    return {
        "customers": {
            "customer@example.com": {
                "id": "cus_mock_12345",
                "object": "customer",
                "name": "Mock Customer",
                "email": "customer@example.com",
                "phone": "+15555550100",
                "created": _epoch(now - 90 * DAY),
                "currency": "usd",
                "livemode": False,
                "metadata": {},
            },
        },
        "charges": {
            "ch_mock_valid_charge": {"amount": 5000, "currency": "usd", "refundable": True},
            "ch_mock_invalid_charge": {"amount": 2500, "currency": "usd", "refundable": False},
        },
        "subscriptions": {
            "cus_mock_12345": [
                {
                    "id": "sub_mock_67890",
                    "object": "subscription",
                    "customer": "cus_mock_12345",
                    "status": "active",
                    "current_period_end": _epoch(now + 15 * DAY),
                    "trial_end": None,
                    "plan": {"id": "price_mock_pro", "nickname": "Pro Monthly", "product": "prod_mock_pro"},
                },
            ],
        },
        "invoices": {
            "cus_mock_12345": [
                {
                    "id": "in_mock_latest",
                    "object": "invoice",
                    "number": "MOCK-0002",
                    "customer": "cus_mock_12345",
                    "status": "open",
                    "amount_due": 2000,
                    "amount_paid": 0,
                    "currency": "usd",
                    "created": _epoch(now - 1 * DAY),
                    "due_date": _epoch(now + 7 * DAY),
                    "hosted_invoice_url": "https://invoice.stripe.com/i/mock_latest",
                    "invoice_pdf": "https://pay.stripe.com/invoice/mock_latest/pdf",
                },
                {
                    "id": "in_mock_previous",
                    "object": "invoice",
                    "number": "MOCK-0001",
                    "customer": "cus_mock_12345",
                    "status": "paid",
                    "amount_due": 2000,
                    "amount_paid": 2000,
                    "currency": "usd",
                    "created": _epoch(now - 31 * DAY),
                    "due_date": _epoch(now - 24 * DAY),
                    "hosted_invoice_url": "https://invoice.stripe.com/i/mock_previous",
                    "invoice_pdf": "https://pay.stripe.com/invoice/mock_previous/pdf",
                },
            ],
        },
    }


def hubspot(now: Optional[datetime] = None) -> JSON:
    now = _now(now)
    return {
        "contacts": {
            "hub_contact_12345": {
                "id": "hub_contact_12345",
                "properties": {
                    "email": "contact@example.com",
                    "firstname": "Test",
                    "lastname": "Contact",
                    "company": "Example Corp",
                    "lifecyclestage": "customer",
                },
                "createdAt": _iso(now - 30 * DAY),
                "updatedAt": _iso(now - 2 * DAY),
            },
        },
        "tickets": {
            "hub_ticket_78901": {
                "id": "hub_ticket_78901",
                "properties": {
                    "subject": "Issue with login",
                    "content": "User reported they cannot log in to their account.",
                    "hs_pipeline": "0",
                    "hs_pipeline_stage": "2",
                    "createdate": _iso(now - 2 * DAY),
                    "hs_lastmodifieddate": _iso(now - 1 * DAY),
                },
            },
        },
    }


def zendesk(now: Optional[datetime] = None) -> JSON:
    now = _now(now)
    return {
        "users": ["user@example.com", "another@example.com", "quiet@example.com"],
        "tickets": {
            "zd_ticket_12345": {
                "id": "zd_ticket_12345",
                "requester": "user@example.com",
                "subject": "Issue with my recent order",
                "description": "I haven't received my package yet.",
                "status": "open",
                "priority": "normal",
                "created_at": _iso(now - 3 * DAY),
                "updated_at": _iso(now - 1 * DAY),
            },
            "zd_ticket_00789": {
                "id": "zd_ticket_00789",
                "requester": "user@example.com",
                "subject": "Login problem",
                "description": "Can't log in to my account.",
                "status": "pending",
                "priority": "high",
                "created_at": _iso(now - 5 * DAY),
                "updated_at": _iso(now - 2 * DAY),
            },
            "zd_ticket_67890": {
                "id": "zd_ticket_67890",
                "requester": "another@example.com",
                "subject": "Billing question",
                "description": "Why was I charged twice?",
                "status": "solved",
                "priority": "low",
                "created_at": _iso(now - 10 * DAY),
                "updated_at": _iso(now - 9 * DAY),
            },
            "zd_ticket_closed": {
                "id": "zd_ticket_closed",
                "requester": "another@example.com",
                "subject": "Old issue, resolved",
                "description": "Resolved long ago.",
                "status": "closed",
                "priority": "low",
                "created_at": _iso(now - 40 * DAY),
                "updated_at": _iso(now - 30 * DAY),
            },
        },
    }


def calendly(now: Optional[datetime] = None) -> JSON:
    now = _now(now)

    def event(uuid: str, name: str, start: datetime, minutes: int, event_type: str) -> JSON:
        return {
            "uri": f"https://api.calendly.com/scheduled_events/{uuid}",
            "name": name,
            "status": "active",
            "start_time": _iso(start),
            "end_time": _iso(start + timedelta(minutes=minutes)),
            "event_type": f"https://api.calendly.com/event_types/{event_type}",
            "invitees_counter": {"total": 1, "active": 1, "limit": 1},
        }

    return {
        "user": {
            "uri": "https://api.calendly.com/users/USER_MOCK",
            "current_organization": "https://api.calendly.com/organizations/ORG_MOCK",
        },
        "events": {
            "invitee@example.com": [
                event("event_uuid_future_sync", "Future Sync-Up", now + 10 * DAY, 30, "ETYPE789"),
                event("event_uuid_123", "Project Kickoff Meeting", now + 3 * DAY, 60, "ETYPE123"),
            ],
            "another@example.com": [
                event("event_uuid_past_for_another", "Old Meeting for Another", now - 2 * DAY, 60, "ETYPEPAST"),
            ],
        },
    }


def shopify(now: Optional[datetime] = None) -> JSON:
    now = _now(now)
    return {
        "orders": {
            "shopify_order_12345": {
                "id": "shopify_order_12345",
                "name": "#1001",
                "financial_status": "paid",
                "fulfillment_status": "fulfilled",
                "created_at": _iso(now - 3 * DAY),
                "estimated_delivery_at": _iso(now + 2 * DAY),
                "line_items": [
                    {"id": "li_mock_abc", "title": "Awesome T-Shirt", "quantity": 1, "price": "25.00", "sku": "TSHIRT-AWESOME-M"},
                    {"id": "li_mock_def", "title": "Cool Cap", "quantity": 1, "price": "15.00", "sku": "CAP-COOL-OS"},
                ],
                "shipping_lines": [{"title": "Standard Shipping", "price": "5.00"}],
            },
            "shopify_order_unfulfilled": {
                "id": "shopify_order_unfulfilled",
                "name": "#1002",
                "financial_status": "paid",
                "fulfillment_status": None,
                "created_at": _iso(now - 1 * DAY),
                "estimated_delivery_at": None,
                "line_items": [
                    {"id": "li_mock_xyz", "title": "Magic Mug", "quantity": 1, "price": "12.50", "sku": "MUG-MAGIC"},
                ],
                "shipping_lines": [],
            },
        },
    }


def woocommerce(now: Optional[datetime] = None) -> JSON:
    now = _now(now)
    created = now - 2 * DAY
    return {
        "orders": {
            "123": {
                "id": 123,
                "parent_id": 0,
                "status": "processing",
                "currency": "USD",
                "date_created": created.strftime("%Y-%m-%dT%H:%M:%S"),
                "date_modified": (created + timedelta(hours=4)).strftime("%Y-%m-%dT%H:%M:%S"),
                "discount_total": "0.00",
                "shipping_total": "10.00",
                "total": "59.99",
                "total_tax": "4.99",
                "customer_id": 12,
                "payment_method_title": "Credit Card (Stripe)",
                "customer_note": "",
                "date_paid": created.strftime("%Y-%m-%dT%H:%M:%S"),
                "date_completed": None,
                "billing": {
                    "first_name": "John",
                    "last_name": "Doe",
                    "email": "john.doe@example.com",
                    "city": "Anytown",
                    "country": "US",
                },
                "shipping": {
                    "first_name": "John",
                    "last_name": "Doe",
                    "city": "Anytown",
                    "country": "US",
                },
                "line_items": [
                    {
                        "id": 1,
                        "name": "Test Product",
                        "product_id": 42,
                        "quantity": 1,
                        "total": "45.00",
                        "sku": "TP-1",
                        "price": 45.0,
                    },
                ],
            },
        },
    }
