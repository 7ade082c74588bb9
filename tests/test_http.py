from __future__ import annotations

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from knowreply_mcp.config import Settings
from knowreply_mcp.server.http import create_app, sse_events
from knowreply_mcp.server.session import QueueChannel, SessionState, TransportSession
from knowreply_mcp.tools.catalog import build_registry

KEY = "internal-secret-key"


@pytest.fixture
def client():
    return TestClient(create_app(Settings(internal_api_key=KEY)))


@pytest.fixture
def open_client():
    return TestClient(create_app(Settings()))


def _post(client, body, **headers):
    return client.post("/mcp", content=json.dumps(body), headers={"x-internal-api-key": KEY, **headers})


def _sse_messages(text):
    out = []
    for frame in text.split("\n\n"):
        if not frame.strip():
            continue
        lines = frame.split("\n")
        assert lines[0] == "event: message"
        out.append(json.loads(lines[1][len("data: "):]))
    return out


# ---------------------------
# Gatekeeping
# ---------------------------

def test_health_reports_key_status(client, open_client):
    assert client.get("/health").json() == {"status": "ok", "message": "MCP Server is running", "apiKeyStatus": "Loaded"}
    assert open_client.get("/health").json()["apiKeyStatus"] == "Not Loaded"


def test_api_key_is_enforced(client):
    body = {"jsonrpc": "2.0", "id": 1, "method": "ping"}
    assert client.post("/mcp", json=body).status_code == 401
    assert client.post("/mcp", json=body, headers={"x-internal-api-key": "wrong"}).json() == {
        "error": "Unauthorized access to MCP server"
    }
    assert _post(client, body).status_code == 200


def test_non_ascii_api_key_is_unauthorized(client):
    body = {"jsonrpc": "2.0", "id": 1, "method": "ping"}
    resp = client.post("/mcp", json=body, headers={"x-internal-api-key": "café".encode("latin-1")})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized access to MCP server"}


def test_required_key_missing_is_server_error():
    client = TestClient(create_app(Settings(require_api_key=True)))
    resp = client.post("/mcp", json={"jsonrpc": "2.0", "id": 1, "method": "ping"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal Server Configuration Error: API Key missing"}


def test_get_and_delete_are_not_allowed(client):
    for method in ("GET", "DELETE"):
        resp = client.request(method, "/mcp", headers={"x-internal-api-key": KEY})
        assert resp.status_code == 405
        assert resp.json() == {"jsonrpc": "2.0", "id": None, "error": {"code": -32000, "message": "Method not allowed"}}


# ---------------------------
# JSON-RPC over POST
# ---------------------------

def test_parse_error_and_batch(client):
    resp = client.post("/mcp", content="{not json", headers={"x-internal-api-key": KEY})
    assert resp.status_code == 500
    assert resp.json()["error"] == {"code": -32000, "message": "Parse error", "data": {"code": -32700}}

    resp = _post(client, [{"jsonrpc": "2.0", "id": 1, "method": "ping"}])
    assert resp.status_code == 500
    assert resp.json()["error"]["data"] == {"code": -32600}


def test_initialize_and_list(client):
    resp = _post(client, {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}})
    assert resp.status_code == 200
    assert resp.json()["result"]["serverInfo"] == {"name": "KnowReply-MCP-Server", "version": "1.0.0"}

    tools = _post(client, {"jsonrpc": "2.0", "id": 2, "method": "tools/list"}).json()["result"]["tools"]
    assert "stripe_issueRefund" in [t["name"] for t in tools]


def test_notification_is_accepted_without_body(client):
    resp = _post(client, {"jsonrpc": "2.0", "method": "notifications/initialized"})
    assert resp.status_code == 202
    assert resp.content == b""


def test_notification_with_sse_accept_is_still_202(client):
    resp = _post(client, {"jsonrpc": "2.0", "method": "notifications/initialized"}, accept="application/json, text/event-stream")
    assert resp.status_code == 202
    assert resp.content == b""


def test_unknown_tool_is_a_protocol_error(client):
    resp = _post(client, {"jsonrpc": "2.0", "id": 9, "method": "tools/call", "params": {"name": "nope_x", "arguments": {}}})
    assert resp.status_code == 500
    assert resp.json()["error"] == {"code": -32000, "message": "Unknown tool: nope_x", "data": {"code": -32602}}


def test_tool_call_against_mock_connector(client):
    body = {
        "jsonrpc": "2.0",
        "id": 3,
        "method": "tools/call",
        "params": {
            "name": "hubspot_getTicketStatus",
            "arguments": {"args": {"ticketId": "hub_ticket_78901"}, "auth": {}},
        },
    }
    result = _post(client, body).json()["result"]
    assert result["isError"] is False
    assert result["structuredContent"]["data"]["status"] == "Waiting on customer"


def test_sse_streams_notifications_before_result(client):
    body = {
        "jsonrpc": "2.0",
        "id": 7,
        "method": "tools/call",
        "params": {"name": "start-notification-stream", "arguments": {"interval": 0, "count": 2}},
    }
    resp = _post(client, body, accept="application/json, text/event-stream")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")

    messages = _sse_messages(resp.text)
    assert [m.get("method") for m in messages] == ["notifications/message", "notifications/message", None]
    assert messages[-1]["id"] == 7
    assert messages[-1]["result"]["structuredContent"]["data"] == {"sent": 2}


def test_sse_client_disconnect_closes_the_session():
    async def scenario():
        channel = QueueChannel()
        session = TransportSession(build_registry(), channel)
        body = {
            "jsonrpc": "2.0",
            "id": 8,
            "method": "tools/call",
            "params": {"name": "start-notification-stream", "arguments": {"interval": 50, "count": 5}},
        }
        events = sse_events(session, channel, body)
        first = await events.__anext__()
        await events.aclose()
        # let the abandoned producer notice
        await asyncio.sleep(0.1)
        return first, session

    first, session = asyncio.run(scenario())
    assert first.startswith("event: message\n")
    assert '"notifications/message"' in first
    assert session.state is SessionState.CLOSED
    assert session.released
    assert len(session.registry) == 0


# ---------------------------
# Direct provider/action route
# ---------------------------

def test_direct_route_requires_args_and_auth(client):
    resp = client.post("/mcp/stripe/issueRefund", json={"args": {}}, headers={"x-internal-api-key": KEY})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing 'args' or 'auth' in request body"}


def test_direct_route_unknown_handler(client):
    resp = client.post("/mcp/stripe/teleport", json={"args": {}, "auth": {}}, headers={"x-internal-api-key": KEY})
    assert resp.status_code == 404
    assert resp.json() == {"error": "MCP handler not found"}


def test_direct_route_runs_the_action(client):
    body = {"args": {"chargeId": "ch_mock_valid_charge"}, "auth": {"token": "sk_test_123"}}
    resp = client.post("/mcp/stripe/issueRefund", json=body, headers={"x-internal-api-key": KEY})
    assert resp.status_code == 200
    out = resp.json()
    assert out["success"] is True
    assert out["message"] == "Refund succeeded."
    assert out["data"]["amount"] == 5000
    assert set(out) == {"success", "data", "message", "errors"}


def test_direct_route_reports_action_failures_in_band(client):
    body = {"args": {"email": "bad"}, "auth": {"token": "sk_test_123"}}
    resp = client.post("/mcp/stripe/getCustomerByEmail", json=body, headers={"x-internal-api-key": KEY})
    assert resp.status_code == 200
    assert resp.json()["errors"] == {"email": ["Invalid email format."]}
