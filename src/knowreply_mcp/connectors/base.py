"""
Upstream connector interface and the shared httpx implementation.

A connector exposes named operations:

    await connector.call("create_refund", {"charge": "ch_1"}, {"token": "sk_..."})

and either returns the decoded upstream payload or raises UpstreamError.
Mock and live connectors for a provider answer the same operations with the
same payload shapes, so handlers never know which one they talk to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Protocol
from urllib.parse import quote

import httpx

from knowreply_mcp.core.coerce import mask_secret
from knowreply_mcp.core.errors import UpstreamError, UpstreamErrorKind

logger = logging.getLogger(__name__)

JSON = Dict[str, Any]
Builder = Callable[[Mapping[str, Any]], Any]


class Connector(Protocol):
    provider: str

    async def call(self, operation: str, params: Mapping[str, Any], credentials: Mapping[str, Any]) -> Any:
        ...


@dataclass(frozen=True)
class Route:
    """
    One upstream operation.
    - path: format string; placeholders are filled from params (URL-quoted)
    - query/json/form: builders turning params into the request parts
    """
    method: str
    path: str
    query: Optional[Builder] = None
    json: Optional[Builder] = None
    form: Optional[Builder] = None


def _drop_none(values: Mapping[str, Any]) -> JSON:
    return {k: v for k, v in values.items() if v is not None}


class HttpConnector:
    """
    Base for live connectors. Subclasses fill `routes` and the credential hooks.
    """

    provider: str = ""
    routes: Dict[str, Route] = {}

    def __init__(self, *, timeout_s: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.timeout_s = timeout_s
        self._transport = transport

    # ---------------------------
    # Hooks
    # ---------------------------

    def base_url(self, credentials: Mapping[str, Any]) -> str:
        raise NotImplementedError

    def headers(self, credentials: Mapping[str, Any]) -> Dict[str, str]:
        token = credentials.get("token")
        return {"Authorization": f"Bearer {token}"} if token else {}

    def auth(self, credentials: Mapping[str, Any]) -> Optional[httpx.Auth]:
        return None

    def error_message(self, payload: Any) -> Optional[str]:
        if isinstance(payload, Mapping):
            message = payload.get("message")
            if isinstance(message, str) and message:
                return message
        return None

    # ---------------------------
    # Call
    # ---------------------------

    def url_for(self, route: Route, params: Mapping[str, Any], credentials: Mapping[str, Any]) -> str:
        quoted = {k: quote(str(v), safe="") for k, v in params.items() if v is not None}
        return self.base_url(credentials).rstrip("/") + route.path.format_map(quoted)

    async def call(self, operation: str, params: Mapping[str, Any], credentials: Mapping[str, Any]) -> Any:
        route = self.routes.get(operation)
        if route is None:
            raise ValueError(f"{self.provider} connector has no operation {operation!r}")

        url = self.url_for(route, params, credentials)
        kwargs: Dict[str, Any] = {"headers": {"Accept": "application/json", **self.headers(credentials)}}
        if route.query is not None:
            kwargs["params"] = _drop_none(route.query(params))
        if route.json is not None:
            kwargs["json"] = route.json(params)
        if route.form is not None:
            kwargs["data"] = _drop_none(route.form(params))
        auth = self.auth(credentials)
        if auth is not None:
            kwargs["auth"] = auth

        logger.info(
            "%s %s %s (token=%s)",
            self.provider,
            route.method,
            operation,
            mask_secret(credentials.get("token") or credentials.get("consumer_key")),
        )
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
                response = await client.request(route.method, url, **kwargs)
        except httpx.TransportError as exc:
            logger.error("%s %s: no response (%s)", self.provider, operation, type(exc).__name__)
            raise UpstreamError(UpstreamErrorKind.NO_RESPONSE, upstream_message=str(exc) or None) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            message = self.error_message(payload) or response.reason_phrase or "Request failed"
            raise UpstreamError(
                UpstreamErrorKind.RESPONSE,
                http_status=response.status_code,
                upstream_message=message,
                payload=payload,
            )
        if payload is None:
            raise UpstreamError.unexpected()
        return payload
