"""OAuth authorization-code and refresh-token exchanges against WHOOP."""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Sequence
from typing import Literal
from urllib.parse import quote, urlencode

import httpx

from .config import WhoopAppConfig
from .errors import ExchangeError, NoCredentialError, RefreshError, describe_http_error
from .logging_config import redact_token
from .models import DEFAULT_ACCOUNT_KEY, ProviderTokenResponse, TokenRecord
from .token_store import TokenStore

logger = logging.getLogger(__name__)

# Subtracted from the provider-declared lifetime so a resolved token always
# has at least a minute left.
EXPIRY_BUFFER_MS = 60_000


class WhoopOAuthService:
    """Build authorization URLs and exchange codes or refresh tokens."""

    AUTH_URL = "https://api.prod.whoop.com/oauth/oauth2/auth"
    TOKEN_URL = "https://api.prod.whoop.com/oauth/oauth2/token"

    def __init__(self, app_config: WhoopAppConfig, token_store: TokenStore) -> None:
        self.app_config = app_config
        self.token_store = token_store
        self.redirect_uri = app_config.redirect_uri
        self.scopes = app_config.default_scopes

    def build_authorization_url(
        self,
        scopes: Sequence[str] | None = None,
        redirect_uri: str | None = None,
    ) -> tuple[str, str]:
        """Return the WHOOP authorization URL and the fresh state it carries."""
        state = secrets.token_urlsafe(32)
        params = {
            "client_id": self.app_config.whoop_client_id,
            "redirect_uri": redirect_uri or self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(scopes or self.scopes),
            "state": state,
        }
        return f"{self.AUTH_URL}?{urlencode(params, quote_via=quote)}", state

    async def exchange_code(
        self,
        code: str,
        key: str = DEFAULT_ACCOUNT_KEY,
        redirect_uri: str | None = None,
    ) -> TokenRecord:
        """Exchange an authorization code and commit the resulting token record.

        Raises:
            ExchangeError: If the request fails or WHOOP rejects the code.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri or self.redirect_uri,
            "client_id": self.app_config.whoop_client_id,
            "client_secret": self.app_config.whoop_client_secret,
        }
        try:
            token_data = await self._post_token_request(data)
        except (httpx.HTTPError, ValueError) as exc:
            info = describe_http_error(exc)
            logger.warning(
                "Authorization code exchange failed for account %s: %s", key, info.message
            )
            raise ExchangeError(
                f"Failed to exchange WHOOP authorization code: {info.message}",
                info.status_code,
            ) from exc

        self._maybe_log_response("exchange", token_data)
        record = self.normalize_token_response(token_data)
        await self.token_store.set(key, record)
        logger.info("Stored WHOOP token set for account %s", key)
        return record

    async def refresh_token(
        self,
        key: str = DEFAULT_ACCOUNT_KEY,
        redirect_uri: str | None = None,
    ) -> TokenRecord:
        """Refresh the stored token record for ``key`` and commit the result.

        Raises:
            NoCredentialError: If nothing is stored for ``key``.
            RefreshError: If the request fails or WHOOP rejects the refresh token.
        """
        existing = await self.token_store.get(key)
        if existing is None:
            raise NoCredentialError(key)

        data = {
            "grant_type": "refresh_token",
            "refresh_token": existing.refresh_token,
            "client_id": self.app_config.whoop_client_id,
            "client_secret": self.app_config.whoop_client_secret,
            "redirect_uri": redirect_uri or self.redirect_uri,
            "scope": existing.scope,
        }
        try:
            token_data = await self._post_token_request(data)
        except (httpx.HTTPError, ValueError) as exc:
            info = describe_http_error(exc)
            logger.warning("Token refresh failed for account %s: %s", key, info.message)
            raise RefreshError(
                f"Failed to refresh WHOOP access token: {info.message}",
                info.status_code,
            ) from exc

        self._maybe_log_response("refresh", token_data)
        record = self.normalize_token_response(token_data, previous=existing)
        await self.token_store.set(key, record)
        logger.info("Refreshed WHOOP token set for account %s", key)
        return record

    @staticmethod
    def normalize_token_response(
        token_data: ProviderTokenResponse,
        previous: TokenRecord | None = None,
    ) -> TokenRecord:
        """Convert a provider response into a record with buffered expiry."""
        refresh_token = token_data.refresh_token
        if not refresh_token:
            refresh_token = previous.refresh_token if previous else ""
        return TokenRecord(
            access_token=token_data.access_token,
            refresh_token=refresh_token,
            expires_at=WhoopOAuthService._now_ms()
            + token_data.expires_in * 1000
            - EXPIRY_BUFFER_MS,
            scope=token_data.scope,
            token_type=token_data.token_type,
        )

    async def _post_token_request(self, data: dict[str, str]) -> ProviderTokenResponse:
        async with httpx.AsyncClient() as client:
            response = await client.post(self.TOKEN_URL, data=data)
            response.raise_for_status()
            return ProviderTokenResponse.model_validate(response.json())

    def _maybe_log_response(
        self, stage: Literal["exchange", "refresh"], token_data: ProviderTokenResponse
    ) -> None:
        if not self.app_config.whoop_log_oauth_responses:
            return
        logger.info(
            "WHOOP OAuth %s response: access_token=%s refresh_token=%s expires_in=%s "
            "scope=%r token_type=%s",
            stage,
            redact_token(token_data.access_token),
            redact_token(token_data.refresh_token),
            token_data.expires_in,
            token_data.scope,
            token_data.token_type,
        )

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)
