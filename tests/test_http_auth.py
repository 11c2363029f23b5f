"""Tests for the OAuth routes, health check and the guarded MCP endpoint."""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from tests.conftest import make_record
from tests.fixtures.whoop_fixtures import TOKEN_RESPONSE
from whoop_mcp.auth import WhoopOAuthService
from whoop_mcp.config import WhoopAppConfig
from whoop_mcp.server import build_services, create_app


@pytest.fixture
def app(services, mcp):
    return create_app(services, mcp)


@pytest.fixture
async def http(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


def state_from_location(location: str) -> str:
    return parse_qs(urlparse(location).query)["state"][0]


class TestLogin:
    """Test GET /oauth/whoop/login."""

    async def test_redirects_to_whoop_and_registers_state(self, http, services):
        response = await http.get("/oauth/whoop/login", params={"key": "alice"})

        assert response.status_code == 302
        location = response.headers["location"]
        assert location.startswith(WhoopOAuthService.AUTH_URL)
        state = state_from_location(location)
        assert state in services.registry

    async def test_defaults_to_default_key(self, http, services):
        response = await http.get("/oauth/whoop/login")

        pending = services.registry.consume(state_from_location(response.headers["location"]))
        assert pending.account_key == "default"
        assert pending.success_redirect is None

    async def test_scopes_and_next_are_honoured(self, http, services):
        response = await http.get(
            "/oauth/whoop/login",
            params={"scopes": "read:sleep, read:recovery", "next": "https://example.com/done"},
        )

        location = response.headers["location"]
        assert parse_qs(urlparse(location).query)["scope"] == ["read:sleep read:recovery"]
        pending = services.registry.consume(state_from_location(location))
        assert pending.success_redirect == "https://example.com/done"


class TestCallback:
    """Test GET /oauth/whoop/callback."""

    async def test_missing_code_or_state(self, http):
        response = await http.get("/oauth/whoop/callback", params={"code": "abc"})

        assert response.status_code == 400
        assert response.text == "Missing OAuth code or state."

    async def test_unknown_state(self, http):
        response = await http.get("/oauth/whoop/callback", params={"code": "abc", "state": "nope"})

        assert response.status_code == 400
        assert response.text == "Unknown or expired OAuth state."

    async def test_provider_error_parameter(self, http):
        response = await http.get(
            "/oauth/whoop/callback", params={"error": "access_denied", "state": "x"}
        )

        assert response.status_code == 400
        assert "access_denied" in response.text

    async def test_success_stores_token_under_key(self, http, services, token_store, stub_api):
        login = await http.get("/oauth/whoop/login", params={"key": "alice"})
        state = state_from_location(login.headers["location"])
        stub_api.stub_token_endpoint(TOKEN_RESPONSE)

        response = await http.get(
            "/oauth/whoop/callback", params={"code": "auth-code", "state": state}
        )

        assert response.status_code == 200
        assert response.text == "WHOOP authorization successful. You can close this window."
        assert (await token_store.get("alice")).access_token == "A2-access-token"

    async def test_success_redirects_to_next(self, http, stub_api):
        login = await http.get(
            "/oauth/whoop/login", params={"next": "https://example.com/done"}
        )
        state = state_from_location(login.headers["location"])
        stub_api.stub_token_endpoint(TOKEN_RESPONSE)

        response = await http.get(
            "/oauth/whoop/callback", params={"code": "auth-code", "state": state}
        )

        assert response.status_code == 302
        assert response.headers["location"] == "https://example.com/done"

    async def test_exchange_failure_reports_provider_status(self, http, token_store, stub_api):
        login = await http.get("/oauth/whoop/login")
        state = state_from_location(login.headers["location"])
        stub_api.stub_token_endpoint({"error": "invalid_grant"}, status_code=400)

        response = await http.get(
            "/oauth/whoop/callback", params={"code": "bad-code", "state": state}
        )

        assert response.status_code == 400
        assert "Failed to exchange WHOOP authorization code" in response.text
        assert await token_store.get("default") is None

    async def test_unparseable_token_response_is_bad_gateway(self, http, token_store, stub_api):
        login = await http.get("/oauth/whoop/login")
        state = state_from_location(login.headers["location"])
        stub_api.stub_token_endpoint(["x"])

        response = await http.get(
            "/oauth/whoop/callback", params={"code": "auth-code", "state": state}
        )

        assert response.status_code == 502
        assert "Failed to exchange WHOOP authorization code" in response.text
        assert await token_store.get("default") is None


class TestHealth:
    """Test GET /healthz."""

    async def test_reports_missing_token(self, http):
        response = await http.get("/healthz")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "hasToken": False}

    async def test_reports_stored_token(self, http, token_store):
        await token_store.set("default", make_record())

        response = await http.get("/healthz")

        assert response.json() == {"status": "ok", "hasToken": True}


class TestMcpEndpointApiKey:
    """Test the optional API key on the MCP endpoint."""

    @pytest.fixture
    def secured_services(self, tmp_path, token_store):
        config = WhoopAppConfig(
            _env_file=None,
            whoop_client_id="test_client_id",
            whoop_client_secret="test_client_secret",
            public_base_url="http://testserver",
            mcp_api_key="s3cret",
        )
        return build_services(config, token_store)

    @pytest.fixture
    async def secured_http(self, secured_services):
        transport = httpx.ASGITransport(app=create_app(secured_services))
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client

    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"Authorization": "Bearer wrong"},
            {"x-api-key": "wrong"},
        ],
    )
    async def test_rejects_missing_or_wrong_key(self, secured_http, headers):
        response = await secured_http.post(
            "/sse", json={"jsonrpc": "2.0", "id": 1, "method": "tools/list"}, headers=headers
        )

        assert response.status_code == 401
        assert response.json() == {
            "jsonrpc": "2.0",
            "error": {"code": -32600, "message": "Unauthorized: missing or invalid API key."},
            "id": None,
        }

    @pytest.mark.parametrize(
        "headers",
        [
            {"Authorization": "Bearer s3cret"},
            {"x-api-key": "s3cret"},
        ],
    )
    async def test_accepts_valid_key(self, secured_http, headers):
        response = await secured_http.post(
            "/sse", json={"jsonrpc": "2.0", "id": 1, "method": "tools/list"}, headers=headers
        )

        # Past the key check, a request without a session is a routing error.
        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32000

    async def test_open_endpoint_without_configured_key(self, http):
        response = await http.post("/sse", json={"jsonrpc": "2.0", "id": 1, "method": "tools/list"})

        assert response.status_code == 400
