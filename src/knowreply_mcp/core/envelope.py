"""
Envelope builders: ActionResult shapes and JSON-RPC messages.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional

from knowreply_mcp.core.actions.models import ActionResult
from knowreply_mcp.core.errors import ProtocolError, UpstreamError, UpstreamErrorKind

INVALID_ARGUMENTS = "Invalid arguments."
INVALID_AUTH = "Invalid auth information."


# ---------------------------
# ActionResult builders
# ---------------------------

def success(data: Any, message: str) -> ActionResult:
    return ActionResult(success=True, data=data, message=message)


def failure(message: str, errors: Optional[Mapping[str, List[str]]] = None, data: Any = None) -> ActionResult:
    return ActionResult(success=False, data=data, message=message, errors=errors)


def invalid_arguments(errors: Mapping[str, List[str]]) -> ActionResult:
    return failure(INVALID_ARGUMENTS, errors=errors)


def invalid_auth(errors: Mapping[str, List[str]]) -> ActionResult:
    return failure(INVALID_AUTH, errors=errors)


def upstream_message(service: str, exc: UpstreamError) -> str:
    if exc.kind is UpstreamErrorKind.NO_RESPONSE:
        return f"No response received from {service} API. Check network connectivity."
    if exc.kind is UpstreamErrorKind.UNEXPECTED_SHAPE:
        return f"{service} API call did not return expected data."
    return f"{service} API Error: {exc.upstream_message or 'Request failed'}"


def upstream_failure(service: str, exc: UpstreamError) -> ActionResult:
    message = upstream_message(service, exc)
    errors: Dict[str, List[str]] = {"upstream": [message]}
    if exc.http_status is not None:
        errors["status"] = [str(exc.http_status)]
    return failure(message, errors=errors)


def unexpected_failure(task: str, exc: BaseException) -> ActionResult:
    return failure(f"An unexpected error occurred while trying to {task}: {exc}")


# ---------------------------
# JSON-RPC
# ---------------------------

def make_jsonrpc_response(request_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def make_error_response(request_id: Any, *, code: int, message: str, data: Optional[Any] = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": request_id, "error": error}


def protocol_error_response(request_id: Any, exc: ProtocolError) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": exc.as_error()}


def is_error_response(message: Mapping[str, Any]) -> bool:
    return "error" in message


def tool_content(result: ActionResult) -> Dict[str, Any]:
    """
    tools/call result: text rendering for generic clients plus the structured payload.
    """
    payload = result.as_dict()
    return {
        "content": [{"type": "text", "text": json.dumps(payload, ensure_ascii=False)}],
        "structuredContent": payload,
        "isError": not result.success,
    }
