"""
HTTP transport (FastAPI).

POST {endpoint}                  one JSON-RPC message; SSE when the client accepts text/event-stream
GET/DELETE {endpoint}            405 (no server-initiated streams, no session resumption)
POST {endpoint}/{provider}/{act} direct invocation: {"args": ..., "auth": ...} -> ActionResult
GET /health                      liveness + whether the internal API key is loaded
"""

from __future__ import annotations

import asyncio
import hmac
import json
import logging
from typing import Any, AsyncIterator, Callable, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from knowreply_mcp.config import Settings, configure_logging
from knowreply_mcp.core.actions.models import ActionContext, ActionRequest
from knowreply_mcp.core.actions.registry import ActionRegistry
from knowreply_mcp.core.actions.runner import run_action
from knowreply_mcp.core.coerce import mask_secret, request_id
from knowreply_mcp.core.envelope import make_error_response, protocol_error_response
from knowreply_mcp.core.errors import INVALID_REQUEST, PARSE_ERROR, SERVER_ERROR, ProtocolError
from knowreply_mcp.tools.catalog import build_registry, legacy_name

from .session import BufferedChannel, Channel, QueueChannel, TransportSession, is_notification

logger = logging.getLogger(__name__)

JSON = Dict[str, Any]

API_KEY_HEADER = "x-internal-api-key"


def _http_status(response: JSON) -> int:
    # protocol-level failures are reported before any body is written
    return 500 if "error" in response else 200


def _sse(message: JSON) -> str:
    return f"event: message\ndata: {json.dumps(message, ensure_ascii=False)}\n\n"


def _key_matches(provided: Optional[str], expected: str) -> bool:
    if provided is None:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def sse_events(session: TransportSession, channel: QueueChannel, message: Any) -> AsyncIterator[str]:
    """
    SSE frames for one message: notifications, then the response.
    Closing the generator early (client disconnect) closes the session.
    """
    task = asyncio.ensure_future(session.run(message))
    # a failed run must still end the stream
    task.add_done_callback(lambda _t: channel.close())
    try:
        async for item in channel:
            yield _sse(item)
        await task
    finally:
        session.close()


def create_app(
    settings: Optional[Settings] = None,
    *,
    connectors_factory: Optional[Callable[[], Dict[str, Any]]] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings)

    app = FastAPI(title=settings.server_name, version=settings.server_version)
    app.state.settings = settings
    endpoint = settings.endpoint_path

    def new_registry() -> ActionRegistry:
        connectors = connectors_factory() if connectors_factory is not None else None
        return build_registry(settings, connectors)

    def new_session(channel: Channel) -> TransportSession:
        return TransportSession(
            new_registry(),
            channel,
            server_info={"name": settings.server_name, "version": settings.server_version},
        )

    def check_api_key(request: Request) -> Optional[JSONResponse]:
        expected = settings.internal_api_key
        if not expected:
            if settings.require_api_key:
                logger.error("internal API key is not configured; denying request")
                return JSONResponse(
                    {"error": "Internal Server Configuration Error: API Key missing"}, status_code=500
                )
            return None
        provided = request.headers.get(API_KEY_HEADER)
        if not _key_matches(provided, expected):
            logger.warning("failed authentication attempt, provided key: %s", mask_secret(provided))
            return JSONResponse({"error": "Unauthorized access to MCP server"}, status_code=401)
        return None

    @app.get("/health")
    async def health():
        return {"status": "ok", "message": "MCP Server is running", "apiKeyStatus": settings.api_key_status}

    @app.api_route(endpoint, methods=["GET", "DELETE"])
    async def mcp_not_allowed(request: Request):
        denied = check_api_key(request)
        if denied is not None:
            return denied
        logger.info("rejected %s %s", request.method, endpoint)
        return JSONResponse(
            make_error_response(None, code=SERVER_ERROR, message="Method not allowed"),
            status_code=405,
        )

    @app.post(endpoint)
    async def mcp_post(request: Request):
        denied = check_api_key(request)
        if denied is not None:
            return denied

        raw = await request.body()
        try:
            message = json.loads(raw)
        except ValueError:
            return JSONResponse(
                protocol_error_response(None, ProtocolError(PARSE_ERROR, "Parse error")), status_code=500
            )
        if isinstance(message, list):
            return JSONResponse(
                protocol_error_response(None, ProtocolError(INVALID_REQUEST, "Batch requests are not supported")),
                status_code=500,
            )

        # notification-only messages get 202 whatever the client accepts
        if "text/event-stream" in request.headers.get("accept", "") and not is_notification(message):
            return stream_response(message)

        try:
            session = new_session(BufferedChannel())
            response = await session.run(message)
        except Exception as exc:
            logger.exception("error handling MCP request")
            return JSONResponse(
                make_error_response(request_id(message), code=SERVER_ERROR, message="Internal server error", data=str(exc)),
                status_code=500,
            )
        if response is None:
            return Response(status_code=202)
        return JSONResponse(response, status_code=_http_status(response))

    def stream_response(message: Any) -> StreamingResponse:
        channel = QueueChannel()
        session = new_session(channel)
        return StreamingResponse(
            sse_events(session, channel, message),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache"},
        )

    @app.post(endpoint + "/{provider}/{action}")
    async def mcp_direct(provider: str, action: str, request: Request):
        denied = check_api_key(request)
        if denied is not None:
            return denied

        try:
            body = await request.json()
        except ValueError:
            body = None
        if not isinstance(body, dict) or "args" not in body or "auth" not in body:
            return JSONResponse({"error": "Missing 'args' or 'auth' in request body"}, status_code=400)

        registry = new_registry()
        try:
            handler = registry.find(legacy_name(provider, action))
            if handler is None:
                logger.warning("no handler for %s/%s", provider, action)
                return JSONResponse({"error": "MCP handler not found"}, status_code=404)
            action_request = ActionRequest(action_name=handler.name, args=body["args"], auth=body["auth"])
            result = await run_action(handler, action_request, ActionContext())
        except Exception:
            logger.exception("error executing %s/%s", provider, action)
            return JSONResponse({"error": "Error executing MCP handler"}, status_code=500)
        finally:
            registry.clear()
        return JSONResponse(result.as_dict())

    return app


app = create_app()
