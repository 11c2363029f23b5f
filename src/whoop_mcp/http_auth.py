"""HTTP mode routes: WHOOP OAuth login/callback, health, and the guarded MCP endpoint."""

from __future__ import annotations

import logging
import secrets

from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from .authorization import AuthorizationFlow
from .config import WhoopAppConfig
from .errors import ExchangeError, UnknownOrExpiredState, describe_http_error
from .models import DEFAULT_ACCOUNT_KEY
from .sessions import SessionMultiplexer
from .token_store import TokenStore

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "WHOOP authorization successful. You can close this window."


class WhoopOAuthRoutes:
    """Browser-facing endpoints that drive the WHOOP authorization flow."""

    LOGIN_PATH = "/oauth/whoop/login"
    HEALTH_PATH = "/healthz"

    def __init__(
        self,
        *,
        app_config: WhoopAppConfig,
        flow: AuthorizationFlow,
        token_store: TokenStore,
    ) -> None:
        self.app_config = app_config
        self.flow = flow
        self.token_store = token_store

    def get_routes(self) -> list[Route]:
        return [
            Route(self.LOGIN_PATH, self.login, methods=["GET"]),
            Route(self.app_config.whoop_redirect_path, self.complete_authorization, methods=["GET"]),
            Route(self.HEALTH_PATH, self.health, methods=["GET"]),
        ]

    async def login(self, request: Request) -> Response:
        """Register a pending state for ``key`` and redirect to WHOOP."""
        query = request.query_params
        key = query.get("key") or DEFAULT_ACCOUNT_KEY
        success_redirect = query.get("next") or None
        scopes = None
        if raw_scopes := query.get("scopes"):
            scopes = [scope.strip() for scope in raw_scopes.split(",") if scope.strip()] or None

        url, _ = self.flow.start_authorization(key, scopes=scopes, success_redirect=success_redirect)
        return RedirectResponse(url, status_code=302)

    async def complete_authorization(self, request: Request) -> Response:
        """Handle WHOOP's callback: consume the state and store the token set."""
        query = request.query_params
        if error := query.get("error"):
            description = query.get("error_description")
            detail = f"{error} ({description})" if description else error
            return PlainTextResponse(f"WHOOP authorization failed: {detail}", status_code=400)

        code = query.get("code")
        state = query.get("state")
        if not code or not state:
            return PlainTextResponse("Missing OAuth code or state.", status_code=400)

        try:
            pending = await self.flow.complete_authorization(code, state)
        except UnknownOrExpiredState as exc:
            return PlainTextResponse(exc.message, status_code=400)
        except ExchangeError as exc:
            return PlainTextResponse(exc.message, status_code=exc.status_code or 502)

        if pending.success_redirect:
            return RedirectResponse(pending.success_redirect, status_code=302)
        return PlainTextResponse(SUCCESS_MESSAGE)

    async def health(self, request: Request) -> Response:
        """Report liveness and whether the default account has a stored token."""
        try:
            record = await self.token_store.get(DEFAULT_ACCOUNT_KEY)
        except Exception as exc:
            logger.exception("Health check could not read the token store")
            info = describe_http_error(exc)
            return JSONResponse({"status": "error", "message": info.message}, status_code=500)
        return JSONResponse({"status": "ok", "hasToken": record is not None})


def extract_api_key(headers: Headers) -> str | None:
    """Return the caller's API key from ``Authorization`` or ``x-api-key``."""
    authorization = headers.get("authorization")
    if authorization is not None:
        if authorization.startswith("Bearer "):
            return authorization[len("Bearer ") :]
        return authorization
    return headers.get("x-api-key")


class McpEndpoint:
    """ASGI app for the MCP path: API key check, then the session multiplexer."""

    def __init__(self, multiplexer: SessionMultiplexer, api_key: str | None = None) -> None:
        self.multiplexer = multiplexer
        self.api_key = api_key

    def is_authorized(self, headers: Headers) -> bool:
        if not self.api_key:
            return True
        provided = extract_api_key(headers)
        return provided is not None and secrets.compare_digest(
            provided.encode(), self.api_key.encode()
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if not self.is_authorized(Headers(scope=scope)):
            response = JSONResponse(
                {
                    "jsonrpc": "2.0",
                    "error": {"code": -32600, "message": "Unauthorized: missing or invalid API key."},
                    "id": None,
                },
                status_code=401,
            )
            await response(scope, receive, send)
            return

        await self.multiplexer.handle_request(scope, receive, send)
