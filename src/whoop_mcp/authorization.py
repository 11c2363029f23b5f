"""Pending OAuth authorizations and the start/complete authorization flow."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from .auth import WhoopOAuthService
from .errors import UnknownOrExpiredState
from .models import DEFAULT_ACCOUNT_KEY

logger = logging.getLogger(__name__)

DEFAULT_STATE_TTL_SECONDS = 600


@dataclass
class PendingAuthorization:
    """Correlates an issued OAuth state with the account it authorizes."""

    state: str
    account_key: str
    authorization_url: str
    success_redirect: str | None = None
    created_at: float = field(default_factory=time.time)


class PendingAuthorizationRegistry:
    """In-memory registry of outstanding OAuth states.

    Entries are taken exactly once by ``consume``. Entries older than the TTL
    are evicted whenever the registry is touched.
    """

    def __init__(
        self,
        oauth_service: WhoopOAuthService,
        ttl_seconds: float = DEFAULT_STATE_TTL_SECONDS,
    ) -> None:
        self.oauth_service = oauth_service
        self.ttl_seconds = ttl_seconds
        self._pending: dict[str, PendingAuthorization] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, state: object) -> bool:
        return state in self._pending

    def create(
        self,
        account_key: str = DEFAULT_ACCOUNT_KEY,
        success_redirect: str | None = None,
        scopes: Sequence[str] | None = None,
    ) -> PendingAuthorization:
        """Issue a new state for ``account_key`` and remember it."""
        self._evict_expired()
        url, state = self.oauth_service.build_authorization_url(scopes)
        pending = PendingAuthorization(
            state=state,
            account_key=account_key,
            authorization_url=url,
            success_redirect=success_redirect,
        )
        self._pending[state] = pending
        return pending

    def consume(self, state: str) -> PendingAuthorization:
        """Remove and return the entry for ``state``.

        Raises:
            UnknownOrExpiredState: If the state was never issued by this
                process, was already consumed, or has expired.
        """
        self._evict_expired()
        pending = self._pending.pop(state, None)
        if pending is None:
            raise UnknownOrExpiredState(state)
        return pending

    def _evict_expired(self) -> None:
        cutoff = time.time() - self.ttl_seconds
        expired = [state for state, entry in self._pending.items() if entry.created_at <= cutoff]
        for state in expired:
            del self._pending[state]
        if expired:
            logger.info("Evicted %d expired OAuth state(s)", len(expired))


class AuthorizationFlow:
    """Start and complete WHOOP authorization for an account key."""

    def __init__(
        self, registry: PendingAuthorizationRegistry, oauth_service: WhoopOAuthService
    ) -> None:
        self.registry = registry
        self.oauth_service = oauth_service

    def start_authorization(
        self,
        key: str = DEFAULT_ACCOUNT_KEY,
        scopes: Sequence[str] | None = None,
        success_redirect: str | None = None,
    ) -> tuple[str, str]:
        """Return the URL to send the user to and the state it carries."""
        pending = self.registry.create(key, success_redirect=success_redirect, scopes=scopes)
        logger.info("Started WHOOP authorization for account %s", key)
        return pending.authorization_url, pending.state

    async def complete_authorization(self, code: str, state: str) -> PendingAuthorization:
        """Consume ``state`` and commit the tokens obtained for ``code``.

        Returns the consumed entry so the caller can honour its redirect.

        Raises:
            UnknownOrExpiredState: If ``state`` is not pending.
            ExchangeError: If the code exchange fails; the user must start over.
        """
        pending = self.registry.consume(state)
        await self.oauth_service.exchange_code(code, pending.account_key)
        logger.info("Completed WHOOP authorization for account %s", pending.account_key)
        return pending
