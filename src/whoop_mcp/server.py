"""WHOOP MCP Server - Main entry point."""

from __future__ import annotations

import argparse
import contextlib
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

import uvicorn
from dotenv import load_dotenv
from fastmcp import FastMCP
from starlette.applications import Starlette
from starlette.routing import Route

from .auth import WhoopOAuthService
from .authorization import AuthorizationFlow, PendingAuthorizationRegistry
from .client import AccessTokenResolver
from .config import WhoopAppConfig
from .http_auth import McpEndpoint, WhoopOAuthRoutes
from .logging_config import setup_logging
from .middleware import WhoopClientMiddleware
from .sessions import SessionMultiplexer
from .token_store import TokenStore, create_token_store_from_env

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Process-wide collaborators shared by the HTTP routes and MCP tools."""

    config: WhoopAppConfig
    token_store: TokenStore
    oauth_service: WhoopOAuthService
    resolver: AccessTokenResolver
    registry: PendingAuthorizationRegistry
    flow: AuthorizationFlow


def build_services(
    config: WhoopAppConfig | None = None,
    token_store: TokenStore | None = None,
) -> Services:
    """Wire the credential store, OAuth client, resolver and authorization flow."""
    config = config or WhoopAppConfig()
    token_store = token_store or create_token_store_from_env(config)
    oauth_service = WhoopOAuthService(config, token_store)
    registry = PendingAuthorizationRegistry(
        oauth_service, ttl_seconds=config.whoop_oauth_state_ttl_seconds
    )
    return Services(
        config=config,
        token_store=token_store,
        oauth_service=oauth_service,
        resolver=AccessTokenResolver(token_store, oauth_service),
        registry=registry,
        flow=AuthorizationFlow(registry, oauth_service),
    )


def create_server(services: Services) -> FastMCP:
    """Create the FastMCP server with WHOOP tools registered.

    Args:
        services: Shared collaborators; tools resolve tokens through its resolver.

    Returns:
        Configured FastMCP instance
    """
    mcp = FastMCP("whoop-mcp")
    mcp.add_middleware(WhoopClientMiddleware(services.resolver))

    from .tools.cycles import whoop_cycle_strain, whoop_recovery_recent
    from .tools.profile import whoop_profile, whoop_today
    from .tools.sleep import whoop_sleep_recent
    from .tools.workouts import whoop_workouts_recent

    read_only = {"readOnlyHint": True, "openWorldHint": False}

    mcp.tool(annotations={**read_only, "title": "WHOOP Recent Sleep"})(whoop_sleep_recent)
    mcp.tool(annotations={**read_only, "title": "WHOOP Cycle Strain"})(whoop_cycle_strain)
    mcp.tool(annotations={**read_only, "title": "WHOOP Recent Recovery"})(whoop_recovery_recent)
    mcp.tool(annotations={**read_only, "title": "WHOOP Recent Workouts"})(whoop_workouts_recent)
    mcp.tool(annotations={**read_only, "title": "WHOOP Profile"})(whoop_profile)
    mcp.tool(annotations={**read_only, "title": "WHOOP Today"})(whoop_today)

    @mcp.prompt()
    async def daily_check_in(key: str = "default") -> str:  # type: ignore[reportUnusedFunction]
        """Review today's WHOOP sleep, recovery and strain.

        Args:
            key: Account key whose WHOOP data to use
        """
        return f"""Give me a short check-in on how I'm doing today.

Steps:
1. Use whoop_today(key="{key}") for last night's sleep and today's strain
2. Use whoop_recovery_recent(limit=7, key="{key}") to compare today's recovery with the past week
3. Point out anything unusual (short sleep, low HRV, high strain)
4. Suggest whether today is better suited to training hard or recovering"""

    return mcp


def create_app(services: Services | None = None, mcp: FastMCP | None = None) -> Starlette:
    """Build the HTTP application: OAuth routes, health check and the MCP endpoint."""
    services = services or build_services()
    mcp = mcp or create_server(services)
    multiplexer = SessionMultiplexer(
        mcp._mcp_server,  # type: ignore[reportPrivateUsage]
        max_body_bytes=services.config.whoop_mcp_max_body_bytes,
    )

    oauth_routes = WhoopOAuthRoutes(
        app_config=services.config,
        flow=services.flow,
        token_store=services.token_store,
    )
    endpoint = McpEndpoint(multiplexer, api_key=services.config.mcp_api_key)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with multiplexer.run():
            yield

    app = Starlette(
        routes=[
            *oauth_routes.get_routes(),
            Route(services.config.whoop_mcp_path, endpoint=endpoint, methods=["GET", "POST", "DELETE"]),
        ],
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.multiplexer = multiplexer
    return app


def main():
    """Main entry point for the WHOOP MCP server."""
    parser = argparse.ArgumentParser(description="WHOOP MCP Server")
    parser.add_argument(
        "--transport",
        type=str,
        choices=["stdio", "http"],
        default="http",
        help="Transport mode: http (default) or stdio",
    )
    args = parser.parse_args()

    services = build_services()
    setup_logging(services.config.log_level)

    if args.transport == "http":
        config = services.config
        logger.info(
            "Serving MCP at %s%s (OAuth callback %s)",
            config.base_url,
            config.whoop_mcp_path,
            config.redirect_uri,
        )
        uvicorn.run(
            create_app(services),
            host=config.whoop_mcp_host,
            port=config.whoop_mcp_port,
            log_config=None,
        )
    else:
        # Stdio mode: tokens must already be stored (see whoop-mcp-auth)
        create_server(services).run()


if __name__ == "__main__":
    main()
