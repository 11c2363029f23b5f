"""WHOOP API client with expiry-aware token resolution."""

import asyncio
import logging
import time
import types
from typing import Any

import httpx

from .auth import WhoopOAuthService
from .errors import AuthRefreshFailed, NoCredentialError, NotAuthorizedError, RefreshError
from .models import (
    DEFAULT_ACCOUNT_KEY,
    Cycle,
    PaginatedCycleResponse,
    PaginatedSleepResponse,
    Recovery,
    RecoveryCollection,
    Sleep,
    UserBasicProfile,
    UserBodyMeasurement,
    Workout,
    WorkoutCollection,
)
from .token_store import TokenStore

logger = logging.getLogger(__name__)


class AccessTokenResolver:
    """Resolve a usable access token per account key, refreshing when expired.

    At most one refresh per account key is in flight: callers that find an
    expired record queue on that key's lock and re-read the store once they
    hold it, so they pick up the token the first caller committed.
    """

    def __init__(self, token_store: TokenStore, oauth_service: WhoopOAuthService) -> None:
        self.token_store = token_store
        self.oauth_service = oauth_service
        self._refresh_locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._refresh_locks.get(key)
        if lock is None:
            lock = self._refresh_locks[key] = asyncio.Lock()
        return lock

    async def resolve_access_token(self, key: str = DEFAULT_ACCOUNT_KEY) -> str:
        """Return a valid access token for ``key``.

        Raises:
            NotAuthorizedError: If no token was ever stored for ``key``.
            AuthRefreshFailed: If the stored token expired and refreshing failed.
        """
        record = await self.token_store.get(key)
        if record is None:
            raise NotAuthorizedError(key)
        if record.is_valid(self._now_ms()):
            return record.access_token

        lock = self._lock_for(key)
        if lock.locked():
            logger.debug("Waiting for in-flight token refresh for account %s", key)
        async with lock:
            record = await self.token_store.get(key)
            if record is None:
                raise NotAuthorizedError(key)
            if record.is_valid(self._now_ms()):
                return record.access_token

            try:
                refreshed = await self.oauth_service.refresh_token(key)
            except (NoCredentialError, RefreshError) as exc:
                raise AuthRefreshFailed(key, exc.message, exc.status_code) from exc
            return refreshed.access_token

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)


class WhoopClient:
    """Async HTTP client for the WHOOP developer API.

    Every call takes the account key whose credentials should be used.
    Provider error responses are raised as ``httpx.HTTPStatusError``.
    """

    BASE_URL = "https://api.prod.whoop.com/developer"
    MAX_PAGE_SIZE = 25

    def __init__(self, resolver: AccessTokenResolver):
        """Initialize the WHOOP API client."""
        self.resolver = resolver
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "WhoopClient":
        """Async context manager entry."""
        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            timeout=30.0,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        key: str = DEFAULT_ACCOUNT_KEY,
        **kwargs: Any,
    ) -> httpx.Response:
        """Make an authenticated request to the WHOOP API on behalf of ``key``."""
        if not self._client:
            raise RuntimeError("Client not initialized. Use async context manager.")

        access_token = await self.resolver.resolve_access_token(key)
        headers = {"Authorization": f"Bearer {access_token}"}
        if "headers" in kwargs:
            headers.update(kwargs.pop("headers"))

        response = await self._client.request(method, endpoint, headers=headers, **kwargs)
        response.raise_for_status()
        return response

    @classmethod
    def _paginated_params(
        cls,
        limit: int | None = None,
        start: str | None = None,
        end: str | None = None,
        next_token: str | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if limit is not None:
            params["limit"] = max(1, min(limit, cls.MAX_PAGE_SIZE))
        if start:
            params["start"] = start
        if end:
            params["end"] = end
        if next_token:
            params["nextToken"] = next_token
        return params

    # User methods

    async def get_basic_profile(self, key: str = DEFAULT_ACCOUNT_KEY) -> UserBasicProfile:
        """Get the member's basic profile."""
        response = await self._request("GET", "/v2/user/profile/basic", key)
        return UserBasicProfile(**response.json())

    async def get_body_measurements(self, key: str = DEFAULT_ACCOUNT_KEY) -> UserBodyMeasurement:
        """Get the member's body measurements."""
        response = await self._request("GET", "/v2/user/measurement/body", key)
        return UserBodyMeasurement(**response.json())

    # Sleep methods

    async def list_sleep(
        self,
        limit: int | None = None,
        start: str | None = None,
        end: str | None = None,
        next_token: str | None = None,
        key: str = DEFAULT_ACCOUNT_KEY,
    ) -> PaginatedSleepResponse:
        """List sleep sessions, most recent first."""
        response = await self._request(
            "GET",
            "/v2/activity/sleep",
            key,
            params=self._paginated_params(limit, start, end, next_token),
        )
        return PaginatedSleepResponse(**response.json())

    async def get_sleep(self, sleep_id: str, key: str = DEFAULT_ACCOUNT_KEY) -> Sleep:
        """Get a single sleep session."""
        response = await self._request("GET", f"/v2/activity/sleep/{sleep_id}", key)
        return Sleep(**response.json())

    # Recovery methods

    async def list_recoveries(
        self,
        limit: int | None = None,
        start: str | None = None,
        end: str | None = None,
        next_token: str | None = None,
        key: str = DEFAULT_ACCOUNT_KEY,
    ) -> RecoveryCollection:
        """List recovery scores, most recent first."""
        response = await self._request(
            "GET",
            "/v2/recovery",
            key,
            params=self._paginated_params(limit, start, end, next_token),
        )
        return RecoveryCollection(**response.json())

    async def get_recovery_for_cycle(
        self, cycle_id: int, key: str = DEFAULT_ACCOUNT_KEY
    ) -> Recovery:
        """Get the recovery attached to a cycle."""
        response = await self._request("GET", f"/v2/cycle/{cycle_id}/recovery", key)
        return Recovery(**response.json())

    # Workout methods

    async def list_workouts(
        self,
        limit: int | None = None,
        start: str | None = None,
        end: str | None = None,
        next_token: str | None = None,
        key: str = DEFAULT_ACCOUNT_KEY,
    ) -> WorkoutCollection:
        """List workouts, most recent first."""
        response = await self._request(
            "GET",
            "/v2/activity/workout",
            key,
            params=self._paginated_params(limit, start, end, next_token),
        )
        return WorkoutCollection(**response.json())

    async def get_workout(self, workout_id: str, key: str = DEFAULT_ACCOUNT_KEY) -> Workout:
        """Get a single workout."""
        response = await self._request("GET", f"/v2/activity/workout/{workout_id}", key)
        return Workout(**response.json())

    # Cycle methods

    async def list_cycles(
        self,
        limit: int | None = None,
        start: str | None = None,
        end: str | None = None,
        next_token: str | None = None,
        key: str = DEFAULT_ACCOUNT_KEY,
    ) -> PaginatedCycleResponse:
        """List physiological cycles, most recent first."""
        response = await self._request(
            "GET",
            "/v2/cycle",
            key,
            params=self._paginated_params(limit, start, end, next_token),
        )
        return PaginatedCycleResponse(**response.json())

    async def get_cycle(self, cycle_id: int, key: str = DEFAULT_ACCOUNT_KEY) -> Cycle:
        """Get a single cycle."""
        response = await self._request("GET", f"/v2/cycle/{cycle_id}", key)
        return Cycle(**response.json())

    async def get_sleep_for_cycle(self, cycle_id: int, key: str = DEFAULT_ACCOUNT_KEY) -> Sleep:
        """Get the sleep attached to a cycle."""
        response = await self._request("GET", f"/v2/cycle/{cycle_id}/sleep", key)
        return Sleep(**response.json())
