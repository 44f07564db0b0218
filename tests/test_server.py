"""HTTP-level tests for the FastAPI application."""

import httpx
import pytest
from fastapi.testclient import TestClient

from chat_mcp.config import Settings
from chat_mcp.server import create_app
from tests.conftest import (
    BASE_PATH,
    FakeUpstream,
    completion_body,
    parse_events,
    sse_body,
    tools_call,
)

SSE_ACCEPT = "application/json, text/event-stream"


@pytest.fixture
def client(settings: Settings, transport: httpx.MockTransport):
    app = create_app(settings, transport=transport)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def oauth_settings() -> Settings:
    return Settings(
        base_path=BASE_PATH,
        model="test-model",
        auth_mode="oauth",
        oauth_issuer="https://auth.test",
        oauth_scopes="mcp:read mcp:write",
    )


@pytest.fixture
def oauth_client(oauth_settings: Settings, transport: httpx.MockTransport):
    app = create_app(oauth_settings, transport=transport)
    with TestClient(app) as c:
        yield c


class TestCors:
    def test_preflight(self, client: TestClient) -> None:
        r = client.options("/mcp")

        assert r.status_code == 204
        assert r.headers["access-control-allow-origin"] == "*"
        assert r.headers["access-control-allow-methods"] == "POST, OPTIONS"
        assert r.headers["access-control-allow-headers"] == "Content-Type, Authorization, Accept"
        assert r.headers["access-control-max-age"] == "86400"

    def test_browser_preflight_is_answered_the_same(self, client: TestClient) -> None:
        r = client.options(
            "/mcp",
            headers={
                "Origin": "https://app.example",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization",
            },
        )

        assert r.status_code == 204
        assert r.headers["access-control-allow-origin"] == "*"
        assert r.content == b""

    def test_headers_on_json_response(self, client: TestClient) -> None:
        r = client.post("/mcp", json={"jsonrpc": "2.0", "id": 1, "method": "tools/list"})

        assert r.headers["access-control-allow-origin"] == "*"
        assert r.headers["access-control-allow-methods"] == "POST, OPTIONS"

    def test_headers_on_parse_error(self, client: TestClient) -> None:
        r = client.post("/mcp", content=b"nope", headers={"Content-Type": "application/json"})

        assert r.status_code == 200
        assert r.json() == {
            "jsonrpc": "2.0",
            "id": None,
            "error": {"code": -32700, "message": "Parse error"},
        }
        assert r.headers["access-control-allow-origin"] == "*"


class TestMcpEndpoint:
    def test_session_lifecycle(self, client: TestClient) -> None:
        init = client.post(
            "/mcp",
            json={"jsonrpc": "2.0", "id": 0, "method": "initialize", "params": {}},
        )
        initialized = client.post(
            "/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"}
        )

        assert init.json()["result"]["protocolVersion"] == "2025-03-26"
        assert initialized.status_code == 202
        assert initialized.content == b""

    def test_tools_call_json(self, client: TestClient, upstream: FakeUpstream) -> None:
        upstream.reply_json(completion_body("pong"))

        r = client.post("/mcp", json=tools_call(prompt="ping"))

        assert r.headers["content-type"].startswith("application/json")
        assert r.json()["result"] == {
            "content": [{"type": "text", "text": "pong"}],
            "isError": False,
        }

    def test_tools_call_streaming(self, client: TestClient, upstream: FakeUpstream) -> None:
        # First line split from its blank separator across chunks
        first = b'data: {"choices": [{"delta": {"content": "He"}}]}\n'
        upstream.reply_stream([first, b"\n" + sse_body("llo")])
        message = tools_call(prompt="hi", _meta={"progressToken": 42})

        r = client.post("/mcp", json=message, headers={"Accept": SSE_ACCEPT})

        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/event-stream")
        assert r.headers["cache-control"] == "no-cache"
        assert r.headers["access-control-allow-origin"] == "*"
        events = parse_events(r.text)
        assert [e["params"]["progress"] for e in events[:2]] == [0, 1]
        assert [e["params"]["progressToken"] for e in events[:2]] == [42, 42]
        assert events[2] == {
            "jsonrpc": "2.0",
            "id": 7,
            "result": {"content": [{"type": "text", "text": "Hello"}], "isError": False},
        }

    def test_streaming_upstream_drop(self, client: TestClient, upstream: FakeUpstream) -> None:
        upstream.reply_stream(
            [sse_body("partial", done=False)], error=httpx.RemoteProtocolError("peer closed")
        )

        r = client.post("/mcp", json=tools_call(), headers={"Accept": SSE_ACCEPT})

        events = parse_events(r.text)
        assert len(events) == 2
        assert events[-1]["error"]["code"] == -32603
        assert "peer closed" in events[-1]["error"]["message"]

    def test_upstream_500(self, client: TestClient, upstream: FakeUpstream) -> None:
        upstream.reply_text("server overloaded", status_code=500)

        r = client.post("/mcp", json=tools_call())

        assert r.status_code == 200
        result = r.json()["result"]
        assert result["isError"] is True
        assert "500" in result["content"][0]["text"]
        assert "server overloaded" in result["content"][0]["text"]


class TestOAuth:
    def test_missing_token_is_rejected(
        self, oauth_client: TestClient, upstream: FakeUpstream
    ) -> None:
        r = oauth_client.post("/mcp", json=tools_call())

        assert r.status_code == 401
        assert r.json()["error"]["code"] == -32001
        assert "resource_metadata=" in r.headers["www-authenticate"]
        assert upstream.requests == []

    def test_token_is_forwarded_upstream(
        self, oauth_client: TestClient, upstream: FakeUpstream
    ) -> None:
        upstream.reply_json(completion_body("ok"))

        r = oauth_client.post(
            "/mcp", json=tools_call(), headers={"Authorization": "Bearer user-token"}
        )

        assert r.json()["result"]["isError"] is False
        assert upstream.requests[0].headers["authorization"] == "Bearer user-token"

    def test_protected_resource_metadata(self, oauth_client: TestClient) -> None:
        r = oauth_client.get("/.well-known/oauth-protected-resource")

        assert r.status_code == 200
        body = r.json()
        assert body["resource"].endswith("/mcp")
        assert body["authorization_servers"] == ["https://auth.test"]
        assert body["scopes_supported"] == ["mcp:read", "mcp:write"]

    def test_authorization_server_metadata(self, oauth_client: TestClient) -> None:
        r = oauth_client.get("/.well-known/oauth-authorization-server")

        assert r.json()["token_endpoint"] == "https://auth.test/token"

    def test_metadata_not_mounted_in_api_key_mode(self, client: TestClient) -> None:
        assert client.get("/.well-known/oauth-protected-resource").status_code == 404


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        r = client.get("/health")

        assert r.status_code == 200
        assert r.json()["status"] == "healthy"

    def test_root_points_at_inspector(self, client: TestClient) -> None:
        r = client.get("/")

        assert "npx @modelcontextprotocol/inspector" in r.text
        assert r.text.endswith("/mcp")
