"""Pytest configuration and shared fixtures."""

import time

import pytest
import respx

from tests.stubs.whoop_api_stub import WhoopAPIStubber
from whoop_mcp.config import WhoopAppConfig
from whoop_mcp.models import TokenRecord
from whoop_mcp.server import build_services, create_server
from whoop_mcp.token_store import FileTokenStore


def now_ms() -> int:
    return int(time.time() * 1000)


def make_record(access_token="A1", refresh_token="R1", expires_in_ms=3_600_000, scope=""):
    """Build a token record expiring ``expires_in_ms`` from now (negative for expired)."""
    return TokenRecord(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=now_ms() + expires_in_ms,
        scope=scope,
    )


@pytest.fixture
def app_config(tmp_path):
    """Provide a WHOOP configuration that ignores the developer's .env."""
    return WhoopAppConfig(
        _env_file=None,
        whoop_client_id="test_client_id",
        whoop_client_secret="test_client_secret",
        public_base_url="http://testserver",
        token_store_path=str(tmp_path / "tokens.json"),
    )


@pytest.fixture
def token_store(tmp_path):
    return FileTokenStore(tmp_path / "tokens.json")


@pytest.fixture
def services(app_config, token_store):
    return build_services(app_config, token_store)


@pytest.fixture
def oauth_service(services):
    return services.oauth_service


@pytest.fixture
def resolver(services):
    return services.resolver


@pytest.fixture
def mcp(services):
    """Provide a FastMCP server wired to the test services."""
    return create_server(services)


@pytest.fixture
async def stored_token(token_store):
    """Store a valid token set for the default account."""
    record = make_record()
    await token_store.set("default", record)
    return record


@pytest.fixture
def respx_mock():
    """Provide a respx mock router for WHOOP HTTP requests."""
    with respx.mock(base_url="https://api.prod.whoop.com", assert_all_called=False) as respx_mock:
        yield respx_mock


@pytest.fixture
def stub_api(respx_mock):
    """Provide a WHOOP API stubber."""
    return WhoopAPIStubber(respx_mock)
