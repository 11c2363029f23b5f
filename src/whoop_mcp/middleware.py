"""Middleware for the WHOOP MCP server.

Opens a WhoopClient around every tool call so tools can reach it via
ctx.get_state("client").
"""

from collections.abc import Callable
from typing import Any

from fastmcp.server.middleware import Middleware, MiddlewareContext

from .client import AccessTokenResolver, WhoopClient


class WhoopClientMiddleware(Middleware):
    """Create and inject a WhoopClient for each tool call.

    The client resolves credentials per account key on every request, so a
    single resolver (and its refresh locks) is shared across calls.
    """

    def __init__(self, resolver: AccessTokenResolver):
        self.resolver = resolver

    async def on_call_tool(self, context: MiddlewareContext, call_next: Callable[..., Any]):
        """Create and inject WhoopClient before every tool call."""
        async with WhoopClient(self.resolver) as client:
            if context.fastmcp_context:
                context.fastmcp_context.set_state("client", client)

            return await call_next(context)
