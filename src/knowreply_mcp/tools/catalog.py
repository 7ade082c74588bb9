"""
Registry assembly: every session gets its own registry and connectors.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional, Type

from knowreply_mcp.config import Settings
from knowreply_mcp.connectors.factory import build_connectors
from knowreply_mcp.core.actions.base import ActionHandler
from knowreply_mcp.core.actions.registry import ActionRegistry

from . import calendly, hubspot, notifications, prompts, shopify, stripe, woocommerce, zendesk

# provider key -> handler classes backed by that provider's connector
PROVIDERS: Mapping[str, Iterable[Type[ActionHandler]]] = {
    "stripe": stripe.HANDLERS,
    "hubspot": hubspot.HANDLERS,
    "zendesk": zendesk.HANDLERS,
    "calendly": calendly.HANDLERS,
    "shopify": shopify.HANDLERS,
    "woocommerce": woocommerce.HANDLERS,
}


def build_registry(settings: Optional[Settings] = None, connectors: Optional[Dict[str, Any]] = None) -> ActionRegistry:
    settings = settings or Settings()
    if connectors is None:
        connectors = build_connectors(settings)

    reg = ActionRegistry()
    for provider, handlers in PROVIDERS.items():
        connector = connectors.get(provider)
        if connector is None:
            continue
        for handler_cls in handlers:
            reg.register(handler_cls(connector))

    for handler_cls in notifications.HANDLERS:
        reg.register(handler_cls())
    for prompt in prompts.PROMPTS:
        reg.register_prompt(prompt)
    return reg


def legacy_name(provider: str, action: str) -> str:
    """`/mcp/stripe/issueRefund` addresses the action registered as `stripe_issueRefund`."""
    return f"{provider}_{action}"
