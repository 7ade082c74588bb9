"""
Transport session: one per inbound JSON-RPC message.

    CREATED -> CONNECTED -> DISPATCHING -> (STREAMING)* -> COMPLETED
                 any state --(channel closed)--> CLOSED

The session owns its registry and its channel and releases both exactly
once, on completion or on close, whichever comes first. After a close,
nothing more is written to the channel: pending notifications are dropped
and the handler's eventual result is discarded.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
import uuid
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Protocol, Set

from websockets.exceptions import ConnectionClosed

from knowreply_mcp.core import envelope
from knowreply_mcp.core.actions.models import ActionContext, ActionRequest, NotificationEvent
from knowreply_mcp.core.actions.registry import ActionRegistry
from knowreply_mcp.core.actions.runner import run_action
from knowreply_mcp.core.coerce import as_mapping, request_id
from knowreply_mcp.core.errors import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    SERVER_ERROR,
    ProtocolError,
)

from .streamer import NotificationStreamer, ProgressChannel

logger = logging.getLogger(__name__)

JSON = Dict[str, Any]

PROTOCOL_VERSION = "2025-03-26"


class SessionState(enum.Enum):
    CREATED = "created"
    CONNECTED = "connected"
    DISPATCHING = "dispatching"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CLOSED = "closed"


# ---------------------------
# Channels
# ---------------------------

class Channel(Protocol):
    async def send(self, message: JSON) -> None:
        ...

    def close(self) -> None:
        ...


class BufferedChannel:
    """
    Collects outgoing messages; for plain request/response transports.
    """

    def __init__(self) -> None:
        self.messages: List[JSON] = []
        self.closed = False

    async def send(self, message: JSON) -> None:
        self.messages.append(message)

    def close(self) -> None:
        self.closed = True


class QueueChannel:
    """
    Async-iterable channel: a consumer (e.g. an SSE response) reads messages
    while the session produces them. Iteration ends when the channel closes.
    """

    _END = object()

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self.closed = False

    async def send(self, message: JSON) -> None:
        if not self.closed:
            self._queue.put_nowait(message)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(self._END)

    async def __aiter__(self) -> AsyncIterator[JSON]:
        while True:
            item = await self._queue.get()
            if item is self._END:
                return
            yield item


class WebSocketChannel:
    """
    Frames messages onto an open websocket. Closing the channel does not
    close the socket; the socket outlives one session.
    A failed send means the peer is gone: `on_disconnect` fires once.
    """

    def __init__(self, ws: Any, on_disconnect: Optional[Callable[[], None]] = None) -> None:
        self._ws = ws
        self.on_disconnect = on_disconnect
        self.closed = False

    async def send(self, message: JSON) -> None:
        if self.closed:
            return
        try:
            await self._ws.send(json.dumps(message, ensure_ascii=False))
        except (ConnectionClosed, ConnectionResetError):
            self.closed = True
            if self.on_disconnect is not None:
                self.on_disconnect()

    def close(self) -> None:
        self.closed = True


# ---------------------------
# Session
# ---------------------------

def is_notification(message: Any) -> bool:
    return isinstance(message, dict) and "method" in message and "id" not in message


class TransportSession:
    def __init__(
        self,
        registry: ActionRegistry,
        channel: Channel,
        *,
        server_info: Optional[JSON] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self.registry = registry
        self.channel = channel
        self.server_info = server_info or {"name": "KnowReply-MCP-Server", "version": "1.0.0"}
        self.state = SessionState.CREATED
        self.released = False
        self._closed = asyncio.Event()
        self._progress: Optional[ProgressChannel] = None
        self._tasks: Set["asyncio.Task[Any]"] = set()

    # ---------------------------
    # Lifecycle
    # ---------------------------

    @property
    def alive(self) -> bool:
        return self.state is not SessionState.CLOSED and not self.released

    def capabilities(self) -> JSON:
        return {
            "tools": {"listChanged": False},
            "prompts": {"listChanged": False},
            "logging": {},
        }

    def connect(self) -> None:
        if self.state is not SessionState.CREATED:
            raise RuntimeError(f"session {self.session_id} cannot connect from {self.state.value}")
        self.state = SessionState.CONNECTED

    def close(self) -> None:
        """
        Caller disconnected. No-op once the session completed or closed.
        """
        if self.state in (SessionState.COMPLETED, SessionState.CLOSED):
            return
        logger.info("session %s closed in state %s", self.session_id, self.state.value)
        self.state = SessionState.CLOSED
        self._closed.set()
        if self._progress is not None:
            self._progress.abandon()
        self._release()

    def _complete(self) -> None:
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.COMPLETED
        self._release()

    def _release(self) -> None:
        if self.released:
            return
        self.released = True
        self.registry.clear()
        self.channel.close()

    # ---------------------------
    # Dispatch
    # ---------------------------

    async def run(self, message: Any) -> Optional[JSON]:
        """
        Handle one JSON-RPC message. Returns the response that was delivered,
        or None (notification, or the caller went away first).
        """
        if self.state is SessionState.CREATED:
            self.connect()
        if self.state is not SessionState.CONNECTED:
            raise RuntimeError(f"session {self.session_id} cannot run from {self.state.value}")

        self.state = SessionState.DISPATCHING
        rid = request_id(message)
        try:
            response = await self._dispatch(message)
        except ProtocolError as exc:
            logger.info("session %s: protocol error %s %s", self.session_id, exc.code, exc.message)
            response = envelope.protocol_error_response(rid, exc)
        except Exception as exc:
            logger.exception("session %s: internal error", self.session_id)
            response = envelope.make_error_response(
                rid, code=SERVER_ERROR, message="Internal server error", data=str(exc)
            )

        if is_notification(message):
            response = None

        if not self.alive:
            return None
        if response is not None:
            await self.channel.send(response)
            if not self.alive:
                return None
        self._complete()
        return response

    async def _dispatch(self, message: Any) -> Optional[JSON]:
        if not isinstance(message, dict):
            raise ProtocolError(INVALID_REQUEST, "Invalid Request")
        if message.get("jsonrpc") != "2.0":
            raise ProtocolError(INVALID_REQUEST, "Invalid Request: jsonrpc must be '2.0'")
        method = message.get("method")
        if not isinstance(method, str) or not method:
            raise ProtocolError(INVALID_REQUEST, "Invalid Request: method must be a string")

        rid = request_id(message)
        params = as_mapping(message.get("params"))
        logger.info("<- method=%s id=%s session=%s", method, rid, self.session_id)

        if method.startswith("notifications/"):
            return None
        if method == "initialize":
            return envelope.make_jsonrpc_response(
                rid,
                {
                    "protocolVersion": params.get("protocolVersion") or PROTOCOL_VERSION,
                    "capabilities": self.capabilities(),
                    "serverInfo": dict(self.server_info),
                },
            )
        if method == "ping":
            return envelope.make_jsonrpc_response(rid, {})
        if method == "tools/list":
            return envelope.make_jsonrpc_response(rid, {"tools": self.registry.list()})
        if method == "prompts/list":
            return envelope.make_jsonrpc_response(rid, {"prompts": self.registry.list_prompts()})
        if method == "resources/list":
            return envelope.make_jsonrpc_response(rid, {"resources": []})
        if method == "prompts/get":
            name = params.get("name")
            if not isinstance(name, str) or not name:
                raise ProtocolError(INVALID_PARAMS, "prompts/get requires params.name (string)")
            return envelope.make_jsonrpc_response(rid, self.registry.get_prompt(name, as_mapping(params.get("arguments"))))
        if method == "tools/call":
            return await self._call_tool(rid, params)

        raise ProtocolError(METHOD_NOT_FOUND, f"Method not found: {method}")

    def build_request(self, params: JSON) -> ActionRequest:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise ProtocolError(INVALID_PARAMS, "tools/call requires params.name (string)")
        arguments = params.get("arguments")
        if isinstance(arguments, dict) and ("args" in arguments or "auth" in arguments):
            return ActionRequest(action_name=name, args=arguments.get("args"), auth=arguments.get("auth"))
        return ActionRequest(action_name=name, args=arguments, auth={})

    async def _call_tool(self, rid: Any, params: JSON) -> Optional[JSON]:
        request = self.build_request(params)
        handler = self.registry.get(request.action_name)

        progress = ProgressChannel()
        self._progress = progress
        streamer = NotificationStreamer(progress, lambda: self.alive, self._closed)
        ctx = ActionContext(session_id=self.session_id, streamer=streamer, is_alive=lambda: self.alive)

        async def produce() -> None:
            try:
                result = await run_action(handler, request, ctx)
            except Exception as exc:
                progress.fail(exc)
            else:
                if not progress.finish(result):
                    logger.info("session %s: result of %s discarded", self.session_id, request.action_name)

        task = asyncio.ensure_future(produce())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        try:
            delivered, result = await progress.drain(self._relay)
        finally:
            self._progress = None
        if not delivered:
            return None
        return envelope.make_jsonrpc_response(rid, envelope.tool_content(result))

    async def _relay(self, event: NotificationEvent) -> None:
        if not self.alive:
            return
        self.state = SessionState.STREAMING
        await self.channel.send(event.as_jsonrpc())
