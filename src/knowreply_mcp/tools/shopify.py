"""
Shopify actions.
"""

from __future__ import annotations

from typing import Any

from knowreply_mcp.core.actions.base import ActionHandler
from knowreply_mcp.core.actions.models import ActionContext
from knowreply_mcp.core.errors import require
from knowreply_mcp.core.validation import Schema, non_empty

OrderId = non_empty("Order ID cannot be empty.")
AdminToken = non_empty("Shopify Admin API token cannot be empty.")
ShopDomain = non_empty("Shopify shop domain cannot be empty.")


class ShopifyAuth(Schema):
    token: AdminToken
    shop_domain: ShopDomain


class GetOrderStatus(ActionHandler):
    class Args(Schema):
        order_id: OrderId

    name = "shopify_getOrderStatus"
    description = "Get fulfillment and payment status of a Shopify order."
    args_schema = Args
    auth_schema = ShopifyAuth
    service = "Shopify"
    task = "retrieve the order status"
    not_found_message = "Order not found."
    success_message = "Order status retrieved successfully."

    async def execute(self, args: Args, creds: ShopifyAuth, ctx: ActionContext) -> Any:
        order = require(await self.call("get_order", {"order_id": args.order_id}, creds), "order")["order"]
        require(order, "id")
        return {
            "orderNumber": order.get("name"),
            "status": order.get("fulfillment_status") or "pending_fulfillment",
            "financialStatus": order.get("financial_status"),
            "estimatedDelivery": order.get("estimated_delivery_at"),
            "items": [
                {
                    "title": item.get("title"),
                    "quantity": item.get("quantity"),
                    "price": item.get("price"),
                    "sku": item.get("sku"),
                }
                for item in order.get("line_items") or []
            ],
            "createdAt": order.get("created_at"),
        }


HANDLERS = (GetOrderStatus,)
