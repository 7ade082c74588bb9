from __future__ import annotations

import asyncio

import pytest

from knowreply_mcp.core.actions.registry import ActionRegistry
from knowreply_mcp.server.session import BufferedChannel, SessionState, TransportSession
from knowreply_mcp.tools import catalog
from knowreply_mcp.tools.notifications import StartNotificationStream
from knowreply_mcp.tools.prompts import GREETING
from knowreply_mcp.tools.stripe import IssueRefund


class CountingRegistry(ActionRegistry):
    def __init__(self) -> None:
        super().__init__()
        self.cleared = 0

    def clear(self) -> None:
        self.cleared += 1
        super().clear()


class DroppingChannel(BufferedChannel):
    """Simulates the caller going away once `after` messages were delivered."""

    def __init__(self, after: int) -> None:
        super().__init__()
        self.after = after
        self.session = None

    async def send(self, message):
        await super().send(message)
        if len(self.messages) == self.after:
            self.session.close()


def _registry(stub=None) -> CountingRegistry:
    reg = CountingRegistry()
    reg.register(StartNotificationStream())
    reg.register_prompt(GREETING)
    if stub is not None:
        reg.register(IssueRefund(stub))
    return reg


def _call(name, arguments, rid=1):
    return {"jsonrpc": "2.0", "id": rid, "method": "tools/call", "params": {"name": name, "arguments": arguments}}


# ---------------------------
# Protocol
# ---------------------------

def test_initialize():
    channel = BufferedChannel()
    session = TransportSession(_registry(), channel, server_info={"name": "srv", "version": "9"})
    resp = asyncio.run(session.run({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}}))

    assert resp["id"] == 1
    assert resp["result"]["serverInfo"] == {"name": "srv", "version": "9"}
    assert resp["result"]["protocolVersion"] == "2025-03-26"
    assert "tools" in resp["result"]["capabilities"]
    assert channel.messages == [resp]
    assert session.state is SessionState.COMPLETED


def test_tools_list_and_prompts_get():
    reg = catalog.build_registry()
    resp = asyncio.run(TransportSession(reg, BufferedChannel()).run({"jsonrpc": "2.0", "id": "a", "method": "tools/list"}))
    assert len(resp["result"]["tools"]) == 13

    msg = {
        "jsonrpc": "2.0",
        "id": 2,
        "method": "prompts/get",
        "params": {"name": "greeting-template", "arguments": {"name": "Bo"}},
    }
    resp = asyncio.run(TransportSession(_registry(), BufferedChannel()).run(msg))
    assert resp["result"]["messages"][0]["content"]["text"].startswith("Hello, Bo!")


def test_unknown_tool_is_invalid_params():
    reg = _registry()
    channel = BufferedChannel()
    resp = asyncio.run(TransportSession(reg, channel).run(_call("nope_action", {})))

    assert resp["error"] == {"code": -32000, "message": "Unknown tool: nope_action", "data": {"code": -32602}}
    assert channel.messages == [resp]
    assert reg.cleared == 1
    assert channel.closed


def test_unknown_method_and_invalid_request():
    resp = asyncio.run(TransportSession(_registry(), BufferedChannel()).run({"jsonrpc": "2.0", "id": 3, "method": "foo/bar"}))
    assert resp["error"]["code"] == -32000
    assert resp["error"]["data"] == {"code": -32601}

    resp = asyncio.run(TransportSession(_registry(), BufferedChannel()).run({"id": 4, "method": "ping"}))
    assert resp["error"]["data"] == {"code": -32600}
    assert resp["id"] == 4


def test_notification_gets_no_response():
    channel = BufferedChannel()
    session = TransportSession(_registry(), channel)
    assert asyncio.run(session.run({"jsonrpc": "2.0", "method": "notifications/initialized"})) is None
    assert channel.messages == []
    assert session.released


def test_internal_error_is_reported():
    class Broken(ActionRegistry):
        def list(self):
            raise RuntimeError("kaboom")

    resp = asyncio.run(TransportSession(Broken(), BufferedChannel()).run({"jsonrpc": "2.0", "id": 5, "method": "tools/list"}))
    assert resp["error"] == {"code": -32000, "message": "Internal server error", "data": "kaboom"}


def test_session_runs_once():
    session = TransportSession(_registry(), BufferedChannel())
    asyncio.run(session.run({"jsonrpc": "2.0", "id": 1, "method": "ping"}))
    with pytest.raises(RuntimeError):
        asyncio.run(session.run({"jsonrpc": "2.0", "id": 2, "method": "ping"}))


# ---------------------------
# tools/call
# ---------------------------

def test_tool_call_splits_args_and_auth(stub):
    conn = stub("stripe", create_refund={"id": "re_1", "amount": 500, "status": "succeeded"})
    resp = asyncio.run(
        TransportSession(_registry(conn), BufferedChannel()).run(
            _call("stripe_issueRefund", {"args": {"chargeId": "ch_123"}, "auth": {"token": "sk_test_1"}})
        )
    )
    result = resp["result"]
    assert result["isError"] is False
    assert result["structuredContent"]["message"] == "Refund succeeded."
    assert result["content"][0]["type"] == "text"
    assert conn.calls[0][2] == {"token": "sk_test_1"}


def test_failed_action_is_a_result_not_an_error(stub):
    resp = asyncio.run(
        TransportSession(_registry(stub("stripe")), BufferedChannel()).run(
            _call("stripe_issueRefund", {"args": {"chargeId": ""}, "auth": {"token": "sk"}})
        )
    )
    assert "error" not in resp
    assert resp["result"]["isError"] is True
    assert resp["result"]["structuredContent"]["message"] == "Invalid arguments."


def test_stream_delivers_events_then_result():
    channel = BufferedChannel()
    resp = asyncio.run(
        TransportSession(_registry(), channel).run(_call("start-notification-stream", {"interval": 0, "count": 3}))
    )

    methods = [m.get("method") for m in channel.messages]
    assert methods == ["notifications/message"] * 3 + [None]
    assert channel.messages[-1] is resp
    texts = [m["params"]["data"] for m in channel.messages[:3]]
    assert [t.split(" at ")[0] for t in texts] == ["Notification #1", "Notification #2", "Notification #3"]
    meta = [m["params"]["_meta"] for m in channel.messages[:3]]
    assert [m["sequence"] for m in meta] == [1, 2, 3]
    assert all(m["timestamp"].endswith("Z") for m in meta)
    assert resp["result"]["structuredContent"] == {
        "success": True,
        "data": {"sent": 3},
        "message": "Finished sending 3 notification(s).",
        "errors": None,
    }


def test_disconnect_mid_stream_drops_the_rest():
    reg = _registry()
    channel = DroppingChannel(after=2)
    session = TransportSession(reg, channel)
    channel.session = session

    async def scenario():
        out = await session.run(_call("start-notification-stream", {"interval": 0, "count": 5}))
        # let the abandoned producer run to completion
        await asyncio.sleep(0.01)
        return out

    assert asyncio.run(scenario()) is None
    assert len(channel.messages) == 2
    assert all(m["method"] == "notifications/message" for m in channel.messages)
    assert session.state is SessionState.CLOSED
    assert reg.cleared == 1

    session.close()
    assert reg.cleared == 1
