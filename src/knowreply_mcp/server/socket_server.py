# src/knowreply_mcp/server/socket_server.py
"""
MCP Socket (WebSocket) Server
- one text frame = one JSON-RPC message
- each message runs in its own TransportSession (fresh registry)
- notifications are framed before the response frame
- client disconnect closes the in-flight session
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from knowreply_mcp.config import Settings, configure_logging
from knowreply_mcp.core.envelope import protocol_error_response
from knowreply_mcp.core.errors import PARSE_ERROR, ProtocolError
from knowreply_mcp.tools.catalog import build_registry

from .session import TransportSession, WebSocketChannel

logger = logging.getLogger(__name__)

SessionFactory = Callable[[Any], TransportSession]

# -------------------------
# Helpers JSON strict
# -------------------------

def _json_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False)


def _json_loads(txt: Any) -> Any:
    if isinstance(txt, bytes):
        txt = txt.decode("utf-8")
    return json.loads(txt)


def session_factory(settings: Settings, connectors_factory: Optional[Callable[[], Dict[str, Any]]] = None) -> SessionFactory:
    server_info = {"name": settings.server_name, "version": settings.server_version}

    def _new(ws: Any) -> TransportSession:
        connectors = connectors_factory() if connectors_factory is not None else None
        channel = WebSocketChannel(ws)
        session = TransportSession(build_registry(settings, connectors), channel, server_info=server_info)
        channel.on_disconnect = session.close
        return session

    return _new


# -------------------------
# WebSocket Server
# -------------------------

async def client_loop(ws: Any, new_session: SessionFactory) -> None:
    session: Optional[TransportSession] = None
    try:
        async for raw in ws:
            try:
                data = _json_loads(raw)
            except ValueError:
                await ws.send(_json_dumps(protocol_error_response(None, ProtocolError(PARSE_ERROR, "Parse error"))))
                continue

            session = new_session(ws)
            await session.run(data)
            session = None
    except (ConnectionClosed, ConnectionResetError, OSError):
        # Client dropped the connection mid-request.
        logger.info("websocket client disconnected")
    finally:
        if session is not None:
            session.close()


async def serve_socket(settings: Optional[Settings] = None, new_session: Optional[SessionFactory] = None) -> None:
    """
    Start MCP WebSocket server. Blocking call.
    """
    settings = settings or Settings.from_env()
    factory = new_session or session_factory(settings)

    async def _handler(ws: Any, *_: Any) -> None:
        await client_loop(ws, factory)

    async with websockets.serve(_handler, settings.ws_host, settings.ws_port):
        logger.info("listening on ws://%s:%s", settings.ws_host, settings.ws_port)
        await asyncio.Future()  # run forever

# -------------------------
# CLI / Debug
# -------------------------

def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings)
    asyncio.run(serve_socket(settings))


if __name__ == "__main__":
    main()
