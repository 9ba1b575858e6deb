"""
Integration tests for the streamable HTTP transport.

Handlers that raise HttpResponse are answered with a real HTTP response on
this transport; everything else travels as JSON-RPC in a JSON body.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

import httpx
import pytest
from starlette.testclient import TestClient

from mcp_http_passthrough import create_server
from mcp_http_passthrough.client import (
    HttpResponseError,
    McpClient,
    StreamableHTTPClientTransport,
    extract_http_error_info,
    is_http_response_error,
)
from mcp_http_passthrough.core.server import McpServer
from mcp_http_passthrough.http import HttpResponse
from mcp_http_passthrough.transport import StreamableHTTPTransport

INITIALIZE = {
    "jsonrpc": "2.0",
    "id": 1,
    "method": "initialize",
    "params": {"protocolVersion": "2025-03-26", "capabilities": {}},
}


def call_tool(name, arguments=None, request_id=2):
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "tools/call",
        "params": {"name": name, "arguments": arguments or {}},
    }


class TestStreamableHTTPTransport:
    """Test suite for StreamableHTTPTransport routing."""

    @pytest.fixture
    def mock_server_factory(self):
        """Mock MCP server factory."""

        def factory():
            server = AsyncMock()
            server.handle_message.return_value = {"jsonrpc": "2.0", "id": 1, "result": {}}
            server.close = AsyncMock()
            return server

        return factory

    @pytest.fixture
    def transport(self, mock_server_factory):
        return StreamableHTTPTransport(
            server_factory=mock_server_factory, host="127.0.0.1", port=8080
        )

    @pytest.fixture
    def client(self, transport):
        return TestClient(transport.create_app())

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "transport": "streamable-http",
            "active_sessions": 0,
        }

    def test_get_not_allowed(self, client):
        response = client.get("/mcp")

        assert response.status_code == 405
        assert response.json()["error"]["code"] == -32601

    def test_parse_error(self, client):
        response = client.post(
            "/mcp", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32700

    def test_invalid_request(self, client):
        response = client.post("/mcp", json={"jsonrpc": "2.0", "id": 1})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32600

    def test_initialize_creates_session(self, client, transport):
        response = client.post("/mcp", json=INITIALIZE)

        assert response.status_code == 200
        session_id = response.headers["mcp-session-id"]
        assert session_id in transport.sessions
        assert transport.get_metrics()["sessions_created"] == 1

    def test_request_without_session_rejected(self, client):
        response = client.post("/mcp", json=call_tool("echo"))

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Bad Request: No valid session ID provided"

    def test_unknown_session_rejected(self, client):
        response = client.post(
            "/mcp", json=call_tool("echo"), headers={"Mcp-Session-Id": "no-such-session"}
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == -32001

    def test_notification_accepted(self, client, transport):
        session_id = client.post("/mcp", json=INITIALIZE).headers["mcp-session-id"]
        transport.sessions[session_id].handle_message.return_value = None

        response = client.post(
            "/mcp",
            json={"jsonrpc": "2.0", "method": "notifications/initialized"},
            headers={"Mcp-Session-Id": session_id},
        )

        assert response.status_code == 202

    def test_delete_session(self, client, transport):
        session_id = client.post("/mcp", json=INITIALIZE).headers["mcp-session-id"]
        server = transport.sessions[session_id]

        response = client.delete("/mcp", headers={"Mcp-Session-Id": session_id})

        assert response.status_code == 204
        assert session_id not in transport.sessions
        server.close.assert_awaited_once()

    def test_delete_unknown_session(self, client):
        response = client.delete("/mcp", headers={"Mcp-Session-Id": "missing"})

        assert response.status_code == 404

    def test_server_failure_is_internal_error(self, client, transport):
        session_id = client.post("/mcp", json=INITIALIZE).headers["mcp-session-id"]
        transport.sessions[session_id].handle_message.side_effect = RuntimeError("boom")

        response = client.post(
            "/mcp", json=call_tool("echo"), headers={"Mcp-Session-Id": session_id}
        )

        assert response.status_code == 500
        assert response.json()["error"]["code"] == -32603
        assert transport.get_metrics()["errors"] == 1

    def test_session_limit_refuses_initialize(self, mock_server_factory):
        transport = StreamableHTTPTransport(server_factory=mock_server_factory, max_sessions=1)
        client = TestClient(transport.create_app())
        assert client.post("/mcp", json=INITIALIZE).status_code == 200

        response = client.post("/mcp", json=INITIALIZE)

        assert response.status_code == 503
        assert response.json()["error"]["message"] == "Too many sessions"
        assert len(transport.sessions) == 1

    def test_session_slot_freed_by_delete(self, mock_server_factory):
        transport = StreamableHTTPTransport(server_factory=mock_server_factory, max_sessions=1)
        client = TestClient(transport.create_app())
        session_id = client.post("/mcp", json=INITIALIZE).headers["mcp-session-id"]
        client.delete("/mcp", headers={"Mcp-Session-Id": session_id})

        response = client.post("/mcp", json=INITIALIZE)

        assert response.status_code == 200
        assert transport.get_metrics()["sessions_created"] == 2

    def test_stateless_mode_uses_fresh_server(self, mock_server_factory):
        transport = StreamableHTTPTransport(server_factory=mock_server_factory, stateful=False)
        client = TestClient(transport.create_app())

        response = client.post("/mcp", json=call_tool("echo"))

        assert response.status_code == 200
        assert "mcp-session-id" not in response.headers
        assert transport.sessions == {}


class TestNativeHttpResponses:
    """Test handlers' HTTP responses written on the wire."""

    @pytest.fixture
    def transport(self):
        return StreamableHTTPTransport(server_factory=create_server, stateful=False)

    @pytest.fixture
    def client(self, transport):
        return TestClient(transport.create_app())

    def test_unauthorized_tool(self, client, transport):
        response = client.post(
            "/mcp", json=call_tool("protected_resource", {"resource": "secret"})
        )

        assert response.status_code == 401
        assert response.text == "Unauthorized"
        assert response.headers["www-authenticate"] == (
            'Bearer realm="api.example.com", error="invalid_token"'
        )
        assert response.headers["content-type"] == "text/plain; charset=utf-8"
        assert transport.get_metrics()["native_responses"] == 1

    def test_challenges_stay_separate_header_lines(self, client):
        response = client.post("/mcp", json=call_tool("auth_challenge"))

        assert response.status_code == 401
        assert response.text == "Authentication Required"
        assert response.headers.get_list("www-authenticate") == [
            'Bearer realm="api.example.com", error="invalid_token"',
            'Basic realm="admin.example.com"',
        ]
        assert response.headers["content-type"] == "text/plain"

    def test_rate_limited(self, client):
        response = client.post("/mcp", json=call_tool("rate_limited"))

        assert response.status_code == 429
        assert response.headers["retry-after"] == "30"

    def test_ordinary_call_stays_json_rpc(self, client):
        response = client.post("/mcp", json=call_tool("echo", {"message": "hi"}))

        assert response.status_code == 200
        assert response.json()["result"]["content"][0]["text"] == "hi"

    def test_repeated_header_values_in_order(self):
        def factory():
            server = McpServer("repeat")

            @server.tool()
            async def repeated() -> str:
                response = HttpResponse(status=400, status_text="Bad Request")
                response.headers.set("X", "a")
                response.headers.append("X", "b")
                response.headers.append("X", "c")
                raise response

            return server

        transport = StreamableHTTPTransport(server_factory=factory, stateful=False)
        response = TestClient(transport.create_app()).post("/mcp", json=call_tool("repeated"))

        assert response.status_code == 400
        assert response.headers.get_list("x") == ["a", "b", "c"]
        assert response.content == b""


@asynccontextmanager
async def http_client(stateful=True, server_factory=create_server):
    transport = StreamableHTTPTransport(server_factory=server_factory, stateful=stateful)
    app = transport.create_app()
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as http:
        client = McpClient("http-test")
        await client.connect(StreamableHTTPClientTransport("http://testserver/mcp", client=http))
        try:
            yield client, transport
        finally:
            await client.close()


class TestStreamableHTTPClient:
    """Test the client's view of native HTTP responses."""

    @pytest.mark.asyncio
    async def test_session_established(self):
        async with http_client() as (client, transport):
            assert client.server_info["name"] == "mcp-http-passthrough"
            assert len(transport.sessions) == 1

        assert transport.sessions == {}

    @pytest.mark.asyncio
    async def test_unauthorized_becomes_http_response_error(self):
        async with http_client() as (client, _):
            with pytest.raises(HttpResponseError) as exc_info:
                await client.call_tool("protected_resource", {"resource": "secret"})

        error = exc_info.value
        assert is_http_response_error(error)
        assert str(error) == "Error POSTing to endpoint (HTTP 401): Unauthorized"
        assert error.status == 401
        assert error.status_text == "Unauthorized"
        assert error.body == "Unauthorized"
        assert error.headers.get("www-authenticate") == (
            'Bearer realm="api.example.com", error="invalid_token"'
        )

    @pytest.mark.asyncio
    async def test_error_keeps_genuine_response(self):
        async with http_client() as (client, _):
            with pytest.raises(HttpResponseError) as exc_info:
                await client.call_tool("auth_challenge")

        response = exc_info.value.response
        assert isinstance(response, httpx.Response)
        assert response.status_code == 401
        assert response.headers.get_list("www-authenticate") == [
            'Bearer realm="api.example.com", error="invalid_token"',
            'Basic realm="admin.example.com"',
        ]
        assert exc_info.value.headers.get_list("www-authenticate") == (
            response.headers.get_list("www-authenticate")
        )

    @pytest.mark.asyncio
    async def test_extract_info(self):
        async with http_client(stateful=False) as (client, _):
            with pytest.raises(HttpResponseError) as exc_info:
                await client.call_tool("rate_limited")

        info = extract_http_error_info(exc_info.value)
        assert info["type"] == "http_response"
        assert info["status"] == 429
        assert info["body"] == "Too Many Requests"
        assert info["headers"]["retry-after"] == "30"

    @pytest.mark.asyncio
    async def test_resource_and_prompt_paths(self):
        async with http_client() as (client, _):
            with pytest.raises(HttpResponseError) as resource_error:
                await client.read_resource("demo://admin/settings")
            with pytest.raises(HttpResponseError) as prompt_error:
                await client.get_prompt("account_summary", {"account": "acme"})
            greeting = await client.get_prompt("greeting", {"name": "Ada"})

        assert resource_error.value.status == 403
        assert prompt_error.value.status == 401
        assert greeting["messages"][0]["content"]["text"] == "Say hello to Ada."

    @pytest.mark.asyncio
    async def test_success_status_response_is_raised(self):
        def factory():
            server = McpServer("success")

            @server.tool()
            async def accepted() -> str:
                raise HttpResponse("body", status=200, status_text="OK")

            return server

        async with http_client(stateful=False, server_factory=factory) as (client, _):
            with pytest.raises(HttpResponseError) as exc_info:
                await client.call_tool("accepted")

        error = exc_info.value
        assert error.status == 200
        assert error.body == "body"
        assert error.response.text == "body"

    @pytest.mark.asyncio
    async def test_success_status_json_body_is_raised(self):
        def factory():
            server = McpServer("json-body")

            @server.tool()
            async def created() -> str:
                raise HttpResponse(
                    '{"id": 7}',
                    status=201,
                    status_text="Created",
                    headers={"Content-Type": "application/json"},
                )

            return server

        async with http_client(stateful=False, server_factory=factory) as (client, _):
            with pytest.raises(HttpResponseError) as exc_info:
                await client.call_tool("created")

        assert exc_info.value.status == 201
        assert exc_info.value.response.json() == {"id": 7}
