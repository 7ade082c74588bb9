"""
Error types shared by the protocol layer and the upstream connectors.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping, Optional

JSON = Dict[str, Any]

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
SERVER_ERROR = -32000


class ProtocolError(RuntimeError):
    """
    JSON-RPC level failure: becomes the `error` member of the response.
    Fatal to the request, never to the process.

    On the wire every protocol failure carries code -32000; the specific
    JSON-RPC reason (`code`, e.g. -32602) travels in `error.data.code`.
    """

    def __init__(self, code: int, message: str, data: Optional[Any] = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def as_error(self) -> JSON:
        data: JSON = {"code": self.code}
        if self.data is not None:
            data["detail"] = self.data
        return {"code": SERVER_ERROR, "message": self.message, "data": data}


class ActionNotFound(ProtocolError):
    def __init__(self, name: str) -> None:
        super().__init__(INVALID_PARAMS, f"Unknown tool: {name}")
        self.name = name


class UpstreamErrorKind(str, Enum):
    RESPONSE = "response"
    NO_RESPONSE = "no_response"
    UNEXPECTED_SHAPE = "unexpected_shape"


class UpstreamError(Exception):
    """
    Raised by connectors. Handlers never build user-facing messages from it
    directly; the runner turns it into an ActionResult.
    """

    def __init__(
        self,
        kind: UpstreamErrorKind,
        *,
        http_status: Optional[int] = None,
        upstream_message: Optional[str] = None,
        payload: Optional[Any] = None,
    ) -> None:
        super().__init__(upstream_message or kind.value)
        self.kind = kind
        self.http_status = http_status
        self.upstream_message = upstream_message
        self.payload = payload

    @property
    def is_not_found(self) -> bool:
        return self.kind is UpstreamErrorKind.RESPONSE and self.http_status == 404

    @classmethod
    def not_found(cls, message: str = "Not Found") -> "UpstreamError":
        return cls(UpstreamErrorKind.RESPONSE, http_status=404, upstream_message=message)

    @classmethod
    def unexpected(cls, payload: Any = None) -> "UpstreamError":
        return cls(UpstreamErrorKind.UNEXPECTED_SHAPE, payload=payload)


def require(payload: Any, *keys: str) -> Mapping[str, Any]:
    """
    Ensure an upstream payload is an object carrying `keys`.
    """
    if not isinstance(payload, Mapping):
        raise UpstreamError.unexpected(payload)
    for key in keys:
        if payload.get(key) is None:
            raise UpstreamError.unexpected(payload)
    return payload
