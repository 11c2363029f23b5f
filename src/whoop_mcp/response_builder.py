"""Response builder utilities for structured JSON output.

Every tool returns JSON with the same envelope:

{
    "data": {...},           # Main data payload
    "analysis": {...},       # Optional derived metrics
    "metadata": {...}        # Query metadata and fetch timestamp
}

Failures use {"error": {"message", "type", "timestamp", "suggestions"?}}.
"""

import json
from datetime import datetime
from typing import Any, cast

import httpx

from .errors import WhoopMCPError, describe_http_error


def _convert_datetimes(obj: Any) -> str | dict[str, Any] | list[Any] | Any:
    """Recursively convert datetime objects to ISO strings."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    elif isinstance(obj, dict):
        return {str(k): _convert_datetimes(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_convert_datetimes(item) for item in obj]
    return obj


class ResponseBuilder:
    """Builder for standardized JSON responses."""

    @staticmethod
    def build_response(
        data: dict[str, Any],
        analysis: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        query_type: str | None = None,
    ) -> str:
        """Build standardized JSON response.

        Args:
            data: Main data payload
            analysis: Optional derived metrics
            metadata: Optional metadata (enriched with a fetch timestamp)
            query_type: Optional query type for metadata

        Returns:
            JSON string with ``data``, optional ``analysis`` and ``metadata``.
        """
        response: dict[str, Any] = {"data": cast(dict[str, Any], _convert_datetimes(data))}

        if analysis:
            response["analysis"] = cast(dict[str, Any], _convert_datetimes(analysis))

        meta = cast(dict[str, Any], _convert_datetimes(metadata or {}))
        meta["fetched_at"] = datetime.now().isoformat()
        if query_type:
            meta["query_type"] = query_type
        response["metadata"] = meta

        return json.dumps(response, indent=2)

    @staticmethod
    def build_error_response(
        error_message: str,
        error_type: str = "error",
        suggestions: list[str] | None = None,
    ) -> str:
        """Build standardized error response.

        Args:
            error_message: Human-readable error message
            error_type: Kind of error (e.g., "not_authorized", "api_error")
            suggestions: Optional list of suggestions to resolve the error
        """
        response: dict[str, dict[str, str | list[str]]] = {
            "error": {
                "message": error_message,
                "type": error_type,
                "timestamp": datetime.now().isoformat(),
            }
        }

        if suggestions:
            response["error"]["suggestions"] = suggestions

        return json.dumps(response, indent=2)

    @classmethod
    def from_exception(cls, error: Exception, action: str) -> str:
        """Render a tool failure, keeping provider status and suggestions.

        ``action`` completes the sentence "Failed to ...".
        """
        info = describe_http_error(error)
        message = f"Failed to {action}: {info.message}"

        if isinstance(error, WhoopMCPError):
            return cls.build_error_response(
                message,
                error_type=error.error_type,
                suggestions=error.suggestions or None,
            )

        if isinstance(error, httpx.HTTPStatusError):
            suggestions: list[str] = []
            status = error.response.status_code
            if status == 401:
                suggestions.append(
                    "The WHOOP token was rejected. Re-authorize via /oauth/whoop/login."
                )
            elif status == 404:
                suggestions.append("Check that the requested WHOOP record exists.")
            elif status == 429:
                suggestions.append("WHOOP rate limit reached. Wait a minute and retry.")
            return cls.build_error_response(
                message, error_type="api_error", suggestions=suggestions or None
            )

        if isinstance(error, httpx.RequestError):
            return cls.build_error_response(message, error_type="network_error")

        return cls.build_error_response(message, error_type="internal_error")
