"""
Tolerant coercion helpers for inputs coming from MCP clients and upstreams.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

MASK_VISIBLE = 5


def mask_secret(value: Optional[str]) -> str:
    """
    Log-safe rendering of a credential: a prefix of at most half its length,
    so the complete value never appears.
    """
    if value is None:
        return "None"
    text = str(value)
    if text == "":
        return "[empty string]"
    return f"{text[:min(MASK_VISIBLE, len(text) // 2)]}..."


def as_mapping(value: Any) -> Dict[str, Any]:
    if isinstance(value, Mapping):
        return dict(value)
    return {}


def request_id(message: Any) -> Any:
    """
    JSON-RPC id of a message, or None when it cannot be recovered.
    Only strings and numbers are valid ids.
    """
    if not isinstance(message, Mapping):
        return None
    rid = message.get("id")
    if isinstance(rid, bool):
        return None
    if isinstance(rid, (str, int, float)):
        return rid
    return None


def to_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except Exception:
        return default


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def epoch_to_iso(value: Any) -> Optional[str]:
    """
    Unix seconds (as upstreams like Stripe report them) to ISO-8601 UTC.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def parse_iso(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
