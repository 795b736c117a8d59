"""Token lifecycle manager.

Keeps the in-process hot copy of the token pair, decides when it must be
refreshed or replaced, and makes sure concurrent callers share one
refresh/authenticate operation.

The authentication endpoint accepts one call per five minutes. Spending it
twice in a burst locks the deployment out, so:
    - all callers of one process join a single in-flight renewal
    - the durable store is re-read before renewing, in case another
      instance already did
    - after a rate-limited renewal no new attempt is made for one auth
      interval while a servable token exists
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any

from cjcatalog.services.auth_api import AuthenticationAPI
from cjcatalog.services.token_models import TokenPair, TokenState
from cjcatalog.services.token_store import TokenStore
from cjcatalog.shared.clock import Clock, SystemClock
from cjcatalog.shared.constants import (
    CatalogErrorMessages,
    CatalogOperationNames,
    TokenConfig,
)
from cjcatalog.shared.errors import (
    AuthUnavailable,
    CacheError,
    CatalogError,
    ErrorCode,
    ErrorContext,
    RateLimited,
    create_config_error,
)
from cjcatalog.shared.logging import log_operation_error

logger = logging.getLogger(__name__)


class TokenLifecycleManager:
    """Supplies a valid access token to every outbound call.

    State transitions (see ``TokenState``):
        UNSET -> authenticate -> VALID
        VALID -> time passes -> NEAR_EXPIRY -> refresh -> VALID
        EXPIRED_REFRESHABLE -> refresh -> VALID
        DEAD -> authenticate -> VALID

    Args:
        auth_api: Client for the token endpoints
        store: Durable store shared with other instances
        api_key: CJ API key; only needed for full authentication
        clock: Time source
        refresh_buffer: Refresh this long before the access token expires
        stale_grace: How long past expiry a token may be served while the
            auth endpoint is rate limiting
        auth_call_interval: Minimum gap between renewals after a
            rate-limited one
    """

    def __init__(
        self,
        auth_api: AuthenticationAPI,
        store: TokenStore,
        api_key: str | None,
        clock: Clock | None = None,
        refresh_buffer: timedelta = timedelta(seconds=TokenConfig.REFRESH_BUFFER),
        stale_grace: timedelta = timedelta(seconds=TokenConfig.STALE_TOKEN_GRACE),
        auth_call_interval: timedelta = timedelta(seconds=TokenConfig.AUTH_CALL_INTERVAL),
    ) -> None:
        self.auth_api = auth_api
        self.store = store
        self.api_key = api_key or ""
        self.clock = clock or SystemClock()
        self.refresh_buffer = refresh_buffer
        self.stale_grace = stale_grace
        self.auth_call_interval = auth_call_interval

        self._pair: TokenPair | None = None
        self._inflight: asyncio.Task[TokenPair] | None = None
        self._renew_blocked_until: datetime | None = None

        self._stats = {
            "authentications": 0,
            "refreshes": 0,
            "store_adoptions": 0,
            "stale_served": 0,
        }

    def state(self) -> TokenState:
        """Lifecycle state of the hot copy right now."""
        if self._pair is None:
            return TokenState.UNSET
        return self._pair.state(self.clock.now(), self.refresh_buffer)

    def invalidate(self) -> None:
        """Drop the hot copy so the next call re-reads the store.

        An active auth cooldown is kept: the endpoint budget is spent either way.
        """
        self._pair = None

    async def get_valid_token(self) -> str:
        """Return an access token that may be sent upstream.

        Returns:
            The access token

        Raises:
            ConfigurationError: If authentication is needed and no API key
                is configured
            AuthUnavailable: If no token could be obtained and no stale one
                may be served
        """
        now = self.clock.now()
        pair = self._pair
        if pair is not None:
            if pair.is_fresh(now, self.refresh_buffer):
                return pair.access_token
            if self._renewal_blocked(now) and pair.is_servable(now, self.stale_grace):
                self._stats["stale_served"] += 1
                logger.debug("Auth endpoint cooling down, serving cached token")
                return pair.access_token

        if self._inflight is None:
            task = asyncio.create_task(self._renew())
            task.add_done_callback(self._on_renew_done)
            self._inflight = task

        # Shielded: one caller's cancellation must not abort the shared renewal
        pair = await asyncio.shield(self._inflight)
        return pair.access_token

    def _on_renew_done(self, task: asyncio.Task[TokenPair]) -> None:
        if self._inflight is task:
            self._inflight = None
        # Mark the exception retrieved when every waiter was cancelled
        if not task.cancelled():
            task.exception()

    def _renewal_blocked(self, now: datetime) -> bool:
        return self._renew_blocked_until is not None and now < self._renew_blocked_until

    async def _renew(self) -> TokenPair:
        """Refresh or re-authenticate; runs once per burst of callers."""
        await self._adopt_stored_pair()

        now = self.clock.now()
        previous = self._pair
        if previous is not None and previous.is_fresh(now, self.refresh_buffer):
            return previous

        blocked_until = self._renew_blocked_until
        if blocked_until is not None and now < blocked_until:
            if previous is not None and previous.is_servable(now, self.stale_grace):
                self._stats["stale_served"] += 1
                return previous
            raise self._cooling_down(blocked_until - now)

        if previous is not None and previous.can_refresh(now, self.refresh_buffer):
            try:
                pair = await self.auth_api.refresh_access_token(previous.refresh_token)
                self._stats["refreshes"] += 1
            except CatalogError as e:
                fallback = self._stale_fallback(previous, e)
                if fallback is not None:
                    return fallback
                if isinstance(e, RateLimited):
                    raise self._unavailable(e, CatalogOperationNames.REFRESH_TOKEN) from e
                logger.warning("Token refresh rejected, re-authenticating: %s", e)
                pair = await self._authenticate(previous)
        else:
            pair = await self._authenticate(previous)

        if pair is previous:
            return pair

        self._pair = pair
        self._renew_blocked_until = None
        await self._persist(pair)
        return pair

    async def _authenticate(self, previous: TokenPair | None) -> TokenPair:
        if not self.api_key:
            raise create_config_error(
                CatalogErrorMessages.MISSING_API_KEY,
                config_key="api.api_key",
                operation=CatalogOperationNames.AUTHENTICATE,
            )

        try:
            pair = await self.auth_api.fetch_access_token(self.api_key)
        except CatalogError as e:
            fallback = self._stale_fallback(previous, e)
            if fallback is not None:
                return fallback
            raise self._unavailable(e, CatalogOperationNames.AUTHENTICATE) from e

        self._stats["authentications"] += 1
        return pair

    def _stale_fallback(self, previous: TokenPair | None, error: CatalogError) -> TokenPair | None:
        """Pick the token to serve when a renewal failed, if any.

        A rate-limited renewal may serve a token up to ``stale_grace`` past
        expiry; any other failure only one that has not hard-expired.
        """
        now = self.clock.now()
        if isinstance(error, RateLimited):
            self._renew_blocked_until = now + self.auth_call_interval
        if previous is None:
            return None

        if isinstance(error, RateLimited):
            servable = previous.is_servable(now, self.stale_grace)
        else:
            servable = previous.is_servable(now)

        if not servable:
            return None

        self._stats["stale_served"] += 1
        logger.warning(
            "Token renewal failed (%s), serving cached token expiring %s",
            error.code.value,
            previous.access_expires_at.isoformat(),
        )
        return previous

    def _cooling_down(self, retry_after: timedelta) -> AuthUnavailable:
        return AuthUnavailable(
            code=ErrorCode.AUTH_RATE_LIMITED,
            message=CatalogErrorMessages.AUTH_RATE_LIMITED,
            context=ErrorContext(
                operation=CatalogOperationNames.GET_VALID_TOKEN,
                additional_data={
                    "retry_after_s": retry_after.total_seconds(),
                },
            ),
        )

    def _unavailable(self, error: CatalogError, operation: str) -> AuthUnavailable:
        rate_limited = isinstance(error, RateLimited)
        message = (
            CatalogErrorMessages.AUTH_RATE_LIMITED
            if rate_limited
            else CatalogErrorMessages.AUTH_FAILED.format(error=error.message)
        )
        return AuthUnavailable(
            code=ErrorCode.AUTH_RATE_LIMITED if rate_limited else ErrorCode.AUTH_UNAVAILABLE,
            message=message,
            context=ErrorContext(
                operation=CatalogOperationNames.GET_VALID_TOKEN,
                additional_data={"failed_step": operation, "cause": error.code.value},
            ),
            original_error=error,
        )

    async def _adopt_stored_pair(self) -> None:
        """Take the stored pair when it outlives the hot copy."""
        try:
            stored = await self.store.load()
        except CacheError as e:
            log_operation_error(logger, e, level=logging.WARNING)
            return

        if stored is None:
            return
        if self._pair is None or stored.access_expires_at > self._pair.access_expires_at:
            self._pair = stored
            self._stats["store_adoptions"] += 1
            logger.debug(
                "Adopted stored token expiring %s", stored.access_expires_at.isoformat()
            )

    async def _persist(self, pair: TokenPair) -> None:
        try:
            await self.store.save(pair)
        except CacheError as e:
            log_operation_error(logger, e, level=logging.WARNING)

    def get_stats(self) -> dict[str, Any]:
        return {"state": self.state().value, **self._stats}
