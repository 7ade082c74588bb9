"""
WooCommerce actions. Credentials arrive as a pre-resolved connection object
({"connection": {baseUrl, consumerKey, consumerSecret}}) or flat.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Union

from knowreply_mcp.core.actions.base import ActionHandler
from knowreply_mcp.core.actions.models import ActionContext
from knowreply_mcp.core.errors import require
from knowreply_mcp.core.validation import Schema, non_empty, positive_int, url

NumericOrderId = positive_int("Order ID must be a positive integer")
TextOrderId = non_empty("Order ID cannot be empty if a string")
BaseUrl = url("WooCommerce base URL is required.")
ConsumerKey = non_empty("WooCommerce Consumer Key is required.")
ConsumerSecret = non_empty("WooCommerce Consumer Secret is required.")

ORDER_FIELDS = (
    "id",
    "parent_id",
    "status",
    "currency",
    "date_created",
    "date_modified",
    "date_paid",
    "date_completed",
    "discount_total",
    "shipping_total",
    "total",
    "total_tax",
    "customer_id",
    "customer_note",
    "payment_method_title",
    "billing",
    "shipping",
)
LINE_ITEM_FIELDS = ("id", "name", "product_id", "variation_id", "quantity", "total", "sku", "price")


class WooCommerceConnection(Schema):
    base_url: BaseUrl
    consumer_key: ConsumerKey
    consumer_secret: ConsumerSecret


def _pick(source: Mapping[str, Any], fields: tuple) -> Dict[str, Any]:
    return {k: source[k] for k in fields if k in source}


class GetOrderById(ActionHandler):
    class Args(Schema):
        order_id: Union[NumericOrderId, TextOrderId]

    name = "woocommerce_getOrderById"
    description = "Retrieve a WooCommerce order by its ID."
    args_schema = Args
    auth_schema = WooCommerceConnection
    service = "WooCommerce"
    task = "retrieve the order"
    success_message = "Order retrieved successfully."

    def credentials_from(self, auth: Any) -> Any:
        if isinstance(auth, Mapping) and isinstance(auth.get("connection"), Mapping):
            return auth["connection"]
        return auth

    def not_found_text(self, args: Args) -> str:
        return f"Order {args.order_id} not found."

    async def execute(self, args: Args, creds: WooCommerceConnection, ctx: ActionContext) -> Any:
        order = require(await self.call("get_order", {"order_id": args.order_id}, creds), "id")
        data = _pick(order, ORDER_FIELDS)
        data["line_items"] = [_pick(item, LINE_ITEM_FIELDS) for item in order.get("line_items") or []]
        return data


HANDLERS = (GetOrderById,)
