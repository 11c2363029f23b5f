"""Error taxonomy for credential, authorization, and session failures."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import httpx


class WhoopMCPError(Exception):
    """Base exception carrying a kind, a message, and an optional status code."""

    error_type = "error"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        suggestions: Sequence[str] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.suggestions = list(suggestions or [])
        super().__init__(self.message)


def _login_hint(key: str) -> str:
    return f"Open /oauth/whoop/login?key={key} to authorize WHOOP access."


class NotAuthorizedError(WhoopMCPError):
    """No credential has ever been stored for the account key."""

    error_type = "not_authorized"

    def __init__(self, key: str):
        self.key = key
        super().__init__(
            f"No WHOOP token available for account '{key}'. Complete the OAuth flow first.",
            401,
            [_login_hint(key)],
        )


class NoCredentialError(WhoopMCPError):
    """A refresh was requested for an account key with nothing stored."""

    error_type = "no_credential"

    def __init__(self, key: str):
        self.key = key
        super().__init__(
            f"No stored WHOOP refresh token for account '{key}'.",
            401,
            [_login_hint(key)],
        )


class RefreshError(WhoopMCPError):
    """The provider rejected or never answered a refresh-token exchange."""

    error_type = "refresh_failed"


class AuthRefreshFailed(WhoopMCPError):
    """Token resolution needed a refresh and the refresh failed."""

    error_type = "auth_refresh_failed"

    def __init__(self, key: str, message: str, status_code: int | None = None):
        self.key = key
        super().__init__(
            message,
            status_code,
            [
                _login_hint(key),
                "If the problem persists, check network connectivity to WHOOP.",
            ],
        )


class ExchangeError(WhoopMCPError):
    """The authorization code could not be exchanged for tokens."""

    error_type = "exchange_failed"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(
            message,
            status_code,
            ["Restart the authorization flow; authorization codes are single-use."],
        )


class UnknownOrExpiredState(WhoopMCPError):
    """An OAuth callback carried a state this process does not recognise."""

    error_type = "unknown_state"

    def __init__(self, state: str):
        self.state = state
        super().__init__("Unknown or expired OAuth state.", 400)


class SessionError(WhoopMCPError):
    """Base class for MCP session routing failures."""

    error_type = "session_error"
    jsonrpc_code = -32000


class MissingSessionError(SessionError):
    """A non-initialization request arrived without a session id."""

    error_type = "missing_session"

    def __init__(self) -> None:
        super().__init__("Missing MCP session ID.", 400, ["Re-initialize the MCP connection."])


class UnknownSessionError(SessionError):
    """A request named a session id that is not registered."""

    error_type = "unknown_session"
    jsonrpc_code = -32001

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(
            f"Unknown MCP session: {session_id}", 404, ["Re-initialize the MCP connection."]
        )


class PayloadTooLargeError(WhoopMCPError):
    """A request body exceeded the MCP endpoint's size limit."""

    error_type = "payload_too_large"
    jsonrpc_code = -32600

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Payload too large: request body exceeds {limit} bytes.", 413)


@dataclass(frozen=True)
class ErrorInfo:
    """Renderable description of a failure."""

    message: str
    status_code: int | None = None


def describe_http_error(error: BaseException) -> ErrorInfo:
    """Summarise an exception, keeping HTTP status and response body detail."""
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        try:
            detail = response.text.strip()
        except httpx.ResponseNotRead:
            detail = ""
        detail = detail or response.reason_phrase or "{}"
        return ErrorInfo(
            f"HTTP request failed (status {response.status_code}) - {detail}",
            response.status_code,
        )

    if isinstance(error, httpx.RequestError):
        return ErrorInfo(f"Request failed: {error}")

    if isinstance(error, WhoopMCPError):
        return ErrorInfo(error.message, error.status_code)

    return ErrorInfo(str(error) or "Unknown error")
