"""Tests for server wiring: tool registration, prompts, configuration and logging."""

import logging
import sys

import pytest
from fastmcp import Client

from tests.helpers import get_prompt_text
from whoop_mcp.config import WhoopAppConfig
from whoop_mcp.logging_config import PlainFormatter, redact_token, setup_logging
from whoop_mcp.server import create_app
from whoop_mcp.token_store import FileTokenStore

EXPECTED_TOOLS = {
    "whoop_sleep_recent",
    "whoop_cycle_strain",
    "whoop_recovery_recent",
    "whoop_workouts_recent",
    "whoop_profile",
    "whoop_today",
}


class TestToolRegistration:
    """Test the tools exposed over MCP."""

    async def test_all_tools_registered(self, mcp):
        async with Client(mcp) as client:
            tools = await client.list_tools()

        assert {tool.name for tool in tools} == EXPECTED_TOOLS

    async def test_tools_are_read_only_and_accept_key(self, mcp):
        async with Client(mcp) as client:
            tools = await client.list_tools()

        for tool in tools:
            assert tool.annotations is not None
            assert tool.annotations.readOnlyHint is True
            assert "key" in tool.inputSchema["properties"]


class TestMCPPrompts:
    """Test MCP prompts."""

    async def test_daily_check_in_prompt(self, mcp):
        async with Client(mcp) as client:
            result = await client.get_prompt("daily_check_in", {"key": "alice"})

        text = get_prompt_text(result.messages[0])
        assert 'whoop_today(key="alice")' in text
        assert "whoop_recovery_recent" in text


class TestServices:
    """Test the process-wide service container."""

    def test_build_services_shares_one_store(self, services, token_store):
        assert services.oauth_service.token_store is token_store
        assert services.resolver.token_store is token_store
        assert services.flow.registry is services.registry

    def test_registry_ttl_comes_from_config(self, services):
        assert services.registry.ttl_seconds == 600

    def test_mcp_body_limit_comes_from_config(self, services):
        app = create_app(services)

        assert app.state.multiplexer.max_body_bytes == 1024 * 1024


class TestConfig:
    """Test configuration validation and derived values."""

    def test_missing_client_id_is_rejected(self, monkeypatch):
        monkeypatch.delenv("WHOOP_CLIENT_ID", raising=False)

        with pytest.raises(ValueError, match="WHOOP_CLIENT_ID"):
            WhoopAppConfig(_env_file=None, whoop_client_secret="secret")

    def test_placeholder_secret_is_rejected(self):
        with pytest.raises(ValueError, match="WHOOP_CLIENT_SECRET"):
            WhoopAppConfig(
                _env_file=None,
                whoop_client_id="id",
                whoop_client_secret="your_client_secret_here",
            )

    def test_redirect_uri_derived_from_host_and_port(self):
        config = WhoopAppConfig(
            _env_file=None,
            whoop_client_id="id",
            whoop_client_secret="secret",
            whoop_mcp_host="0.0.0.0",
            whoop_mcp_port=9000,
            whoop_redirect_path="oauth/cb",
        )

        assert config.redirect_uri == "http://localhost:9000/oauth/cb"

    def test_public_base_url_wins(self, app_config):
        assert app_config.redirect_uri == "http://testserver/oauth/whoop/callback"

    def test_scopes_parsed_from_comma_list(self):
        config = WhoopAppConfig(
            _env_file=None,
            whoop_client_id="id",
            whoop_client_secret="secret",
            whoop_scopes="read:sleep, read:recovery,,",
        )

        assert config.default_scopes == ["read:sleep", "read:recovery"]

    def test_default_scopes(self, app_config):
        assert app_config.default_scopes == ["read:sleep", "read:cycles", "read:profile"]

    def test_default_token_store_is_file(self, app_config, tmp_path):
        assert FileTokenStore(app_config.token_store_path).path == (tmp_path / "tokens.json").resolve()


class TestLogging:
    """Test logging helpers."""

    def test_setup_logging_installs_single_stderr_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging("debug")
            setup_logging("debug")

            assert len(root.handlers) == 1
            handler = root.handlers[0]
            assert handler.stream is sys.stderr
            assert isinstance(handler.formatter, PlainFormatter)
            assert root.level == logging.DEBUG
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_redact_token(self):
        assert redact_token(None) is None
        assert redact_token("short") == "*****"
        assert redact_token("abcdefghijklmnop") == "abcd…mnop"
