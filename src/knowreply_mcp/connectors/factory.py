"""
Connector selection: one fresh connector per provider, per session.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from knowreply_mcp.config import Settings

from .live import LIVE_CONNECTORS
from .mock import MOCK_CONNECTORS


def build_connectors(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> Dict[str, Any]:
    if settings.connector_mode == "live":
        return {
            name: cls(timeout_s=settings.upstream_timeout_s, transport=transport)
            for name, cls in LIVE_CONNECTORS.items()
        }
    return {name: cls() for name, cls in MOCK_CONNECTORS.items()}
