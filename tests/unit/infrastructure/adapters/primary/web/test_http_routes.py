"""Tests for the HTTP routes."""

import orjson
import pytest
from fastapi.testclient import TestClient

from toolgate.domain.exceptions import CircuitOpenError

USER_MESSAGE = {"messages": [{"role": "user", "content": "list my files"}]}
LIST_FILES = '{"action": "listFiles", "params": {"path": "."}}'


def parse_sse(text: str) -> list[dict]:
    return [
        orjson.loads(line[len("data: ") :])
        for line in text.splitlines()
        if line.startswith("data: ")
    ]


class TestHealthRoutes:
    """Tests for /health, /status, /test-upstream and /tools."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["checks"]["upstream"] is True
        assert data["checks"]["tools"] is True
        assert data["checks"]["circuitBreaker"]["state"] == "closed"

    def test_health_with_upstream_down(self, client, upstream):
        upstream.down = True

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "unhealthy"
        assert response.json()["checks"]["upstream"] is False

    def test_status(self, client):
        data = client.get("/status").json()

        assert data["circuitBreaker"]["name"] == "llm"
        assert data["uptime"] >= 0
        assert "timestamp" in data

    def test_upstream_connected(self, client):
        response = client.get("/test-upstream")

        assert response.status_code == 200
        assert response.json()["status"] == "connected"
        assert response.json()["upstreamUrl"] == "http://llm.test"
        assert response.json()["modelsCount"] == 1

    def test_upstream_disconnected(self, client, upstream):
        upstream.down = True

        response = client.get("/test-upstream")

        assert response.status_code == 503
        assert response.json()["status"] == "disconnected"
        assert "Unable to connect" in response.json()["error"]

    def test_tools(self, client):
        tools = client.get("/tools").json()

        names = {tool["name"] for tool in tools}
        assert {"writeFile", "executeCommand", "search", "math"} <= names
        assert all(tool["schema"]["type"] == "object" for tool in tools)


class TestCallRoute:
    """Tests for POST /call."""

    def test_write_then_read(self, client, sandbox_dir):
        write = client.post(
            "/call", json={"tool": "writeFile", "params": {"path": "a.txt", "content": "hi"}}
        )
        read = client.post("/call", json={"action": "readFile", "params": {"path": "a.txt"}})

        assert write.status_code == 200
        assert (sandbox_dir / "a.txt").read_text() == "hi"
        assert read.json() == {"result": "hi"}

    def test_unknown_tool(self, client):
        response = client.post("/call", json={"tool": "nope", "params": {}})

        assert response.status_code == 400
        assert "Unknown tool: nope" in response.json()["error"]

    def test_sandbox_escape(self, client):
        response = client.post("/call", json={"tool": "readFile", "params": {"path": "../x"}})

        assert response.status_code == 400
        assert response.json()["error"].startswith("Access denied")

    def test_tool_failure(self, client):
        response = client.post("/call", json={"tool": "readFile", "params": {"path": "none.txt"}})

        assert response.status_code == 500
        assert response.json()["error"].startswith('Tool "readFile" failed')

    def test_missing_tool_name(self, client):
        response = client.post("/call", json={"params": {}})

        assert response.status_code == 422


class TestChatRoutes:
    """Tests for the chat endpoints."""

    def test_streaming_chat_runs_tools(self, client, upstream):
        upstream.turns = [LIST_FILES, "Your sandbox is empty."]

        response = client.post("/chat", json=USER_MESSAGE)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        events = parse_sse(response.text)
        assert [e["type"] for e in events] == ["action", "chunk", "chunk", "chunk", "done"]
        assert events[0]["data"] == {"action": "listFiles", "params": {"path": "."}}
        assert events[3] == {"type": "chunk", "data": "Your sandbox is empty."}
        assert len(upstream.requests) == 2

    def test_streaming_chat_upstream_down(self, client, upstream):
        upstream.down = True

        events = parse_sse(client.post("/chat", json=USER_MESSAGE).text)

        assert events[0]["type"] == "error"
        assert events[-1] == {"type": "done"}

    def test_non_streaming_chat(self, client):
        response = client.post("/chat", json={**USER_MESSAGE, "stream": False})

        assert response.status_code == 200
        assert response.json()["choices"][0]["message"]["content"] == "Hi!"

    def test_non_streaming_chat_executes_tools(self, client, upstream):
        upstream.completion = {"choices": [{"message": {"role": "assistant", "content": LIST_FILES}}]}

        response = client.post("/chat", json={**USER_MESSAGE, "stream": False})

        content = response.json()["choices"][0]["message"]["content"]
        assert content.startswith("🔧 **Tool executed: listFiles**")

    def test_non_streaming_chat_upstream_down(self, client, upstream):
        upstream.down = True

        response = client.post("/chat", json={**USER_MESSAGE, "stream": False})

        assert response.status_code == 503
        data = response.json()
        assert data["error"].startswith("Service temporarily unavailable")
        assert data["choices"][0]["message"]["content"].startswith("I'm sorry")

    def test_invalid_role(self, client):
        response = client.post("/chat", json={"messages": [{"role": "tool", "content": "x"}]})

        assert response.status_code == 422

    def test_overrides_are_forwarded(self, client, upstream):
        response = client.post(
            "/chat/overrides",
            json={**USER_MESSAGE, "overrides": {"temperature": 0.1, "max_tokens": 64}},
        )

        assert response.status_code == 200
        assert upstream.requests[-1]["temperature"] == 0.1
        assert upstream.requests[-1]["max_tokens"] == 64
        assert upstream.requests[-1]["stream"] is False

    def test_unknown_override_rejected(self, client):
        response = client.post(
            "/chat/overrides", json={**USER_MESSAGE, "overrides": {"logit_bias": {}}}
        )

        assert response.status_code == 422

    def test_legacy_chat_does_not_run_tools(self, client, upstream, sandbox_dir):
        upstream.turns = ['{"action": "writeFile", "params": {"path": "x.txt", "content": "x"}}']

        events = parse_sse(client.post("/chat/legacy", json=USER_MESSAGE).text)

        assert [e["type"] for e in events] == ["action", "done"]
        assert not (sandbox_dir / "x.txt").exists()


class TestMCPRoutes:
    """Tests for the MCP HTTP endpoints."""

    def test_initialize(self, client):
        response = client.post(
            "/mcp",
            json={"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}},
            headers={"X-MCP-Connection-Id": "http-client"},
        )

        assert response.status_code == 200
        assert response.json()["result"]["protocolVersion"] == "2024-11-05"
        assert client.app.state.container.mcp_server.get_connection("http-client") is not None

    def test_notification_accepted(self, client):
        response = client.post(
            "/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"}
        )

        assert response.status_code == 202

    def test_parse_error(self, client):
        response = client.post(
            "/mcp", content=b"{oops", headers={"content-type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32700
        assert response.json()["id"] is None

    def test_error_status_matches_method_route(self, client):
        unknown = {"jsonrpc": "2.0", "id": 7, "method": "tools/destroy", "params": {}}

        response = client.post("/mcp", json=unknown)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32601
        assert client.post("/mcp/tools/destroy", json={}).status_code == response.status_code
        assert client.post("/mcp", json={"id": 1}).status_code == 400

    def test_method_route(self, client):
        response = client.post(
            "/mcp/tools/call",
            json={"params": {"name": "math", "arguments": {"expr": "6 * 7"}}},
        )

        assert response.status_code == 200
        assert response.json()["id"] == "tools/call"
        assert response.json()["result"]["content"][0]["text"] == "42"

    def test_method_route_with_empty_body(self, client):
        response = client.post("/mcp/tools/list")

        assert response.status_code == 200
        assert len(response.json()["result"]["tools"]) == 16

    def test_method_route_unknown_method(self, client):
        response = client.post("/mcp/tools/destroy", json={})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32601

    def test_method_route_bad_body(self, client):
        assert client.post("/mcp/ping", content=b"{oops").status_code == 400
        assert client.post("/mcp/ping", json=[1]).status_code == 400

    def test_method_route_empty_list_params(self, client):
        response = client.post("/mcp/tools/list", json={"params": []})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32602

    def test_close_connection(self, client):
        client.post("/mcp/ping", json={"connectionId": "temp"})
        client.post("/mcp/tools/list", json={"connectionId": "temp"})

        assert client.delete("/mcp/connections/temp").json() == {"closed": "temp"}
        assert client.delete("/mcp/connections/temp").status_code == 404


class TestErrorHandlers:
    """Tests for the centralized exception handlers."""

    @pytest.fixture
    def failing_client(self, app):
        async def circuit_open():
            raise CircuitOpenError("llm", 12.5)

        async def crash():
            raise RuntimeError("secret internals")

        app.add_api_route("/boom/circuit", circuit_open)
        app.add_api_route("/boom/crash", crash)
        with TestClient(app, raise_server_exceptions=False) as test_client:
            yield test_client

    def test_gateway_error_body(self, failing_client):
        response = failing_client.get("/boom/circuit")

        assert response.status_code == 503
        assert response.headers["retry-after"] == "12"
        error = response.json()["error"]
        assert error["type"] == "CircuitOpen"
        assert error["retryable"] is True
        assert error["error_id"]

    def test_unhandled_error_in_production(self, failing_client):
        failing_client.app.state.container.settings.environment = "production"

        response = failing_client.get("/boom/crash")

        assert response.status_code == 500
        assert response.json()["error"]["type"] == "InternalServerError"
        assert "secret internals" not in response.text
