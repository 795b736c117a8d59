"""Retrying request executor.

Performs upstream HTTP calls through the RequestThrottler, classifies each
response, and retries rate-limit signals with linear backoff.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from cjcatalog.services.http_session import AsyncSessionManager
from cjcatalog.services.request_throttler import RequestThrottler
from cjcatalog.shared.clock import Clock, SystemClock
from cjcatalog.shared.constants import (
    APIConfig,
    CatalogErrorMessages,
    CatalogOperationNames,
    CJHeaders,
    CJResponseCodes,
)
from cjcatalog.shared.errors import (
    ErrorCode,
    ErrorContext,
    MalformedResponse,
    RateLimited,
    UpstreamError,
)
from cjcatalog.shared.logging import log_api_call

logger = logging.getLogger(__name__)

ERROR_BODY_PREVIEW_LENGTH = 500


@dataclass(frozen=True)
class UpstreamRequest:
    """One logical call to the upstream API.

    Attributes:
        method: HTTP method
        endpoint: Path relative to the API base URL
        params: Query parameters; ``None`` and ``""`` values are not sent
        body: JSON body for POST requests
        access_token: Token for the CJ-Access-Token header, if the
            endpoint needs one
    """

    method: str
    endpoint: str
    params: dict[str, Any] | None = None
    body: dict[str, Any] | None = None
    access_token: str | None = field(default=None, repr=False)

    def query_params(self) -> dict[str, str]:
        if not self.params:
            return {}
        return {
            key: str(value)
            for key, value in self.params.items()
            if value is not None and value != ""
        }

    def headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.access_token:
            headers[CJHeaders.ACCESS_TOKEN] = self.access_token
        if self.method.upper() == "POST":
            headers[CJHeaders.CONTENT_TYPE] = CJHeaders.JSON
        return headers


def _envelope_code(body: dict[str, Any]) -> int | None:
    code = body.get("code")
    if code is None or isinstance(code, bool):
        return None
    try:
        return int(code)
    except (TypeError, ValueError):
        return None


class RetryingRequestExecutor:
    """Executes upstream requests with throttling, classification and retry.

    Outcome classification:
        - HTTP 429 or envelope code 1600200: RateLimited, retried
        - any other non-2xx status: UpstreamError, not retried
        - 2xx body that is not a JSON object: MalformedResponse, not retried
        - 2xx envelope with a code other than 200: UpstreamError, not retried

    Args:
        session_manager: Provider of the aiohttp session
        throttler: Concurrency ceiling shared by all calls of this process
        base_url: API base URL
        clock: Time source used for backoff sleeps
        max_attempts: Attempts per request while rate limited (default: 3)
        base_delay: Backoff unit; failed attempt n waits base_delay * n
    """

    def __init__(
        self,
        session_manager: AsyncSessionManager,
        throttler: RequestThrottler,
        base_url: str,
        clock: Clock | None = None,
        max_attempts: int = APIConfig.DEFAULT_MAX_ATTEMPTS,
        base_delay: float = APIConfig.DEFAULT_RETRY_BASE_DELAY,
    ) -> None:
        if max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {max_attempts}"
            raise ValueError(msg)

        self.session_manager = session_manager
        self.throttler = throttler
        self.base_url = base_url.rstrip("/")
        self.clock = clock or SystemClock()
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    async def execute(
        self,
        request: UpstreamRequest,
        *,
        max_attempts: int | None = None,
    ) -> dict[str, Any]:
        """Execute a request, retrying while the upstream is rate limiting.

        Args:
            request: The request to send
            max_attempts: Override of the attempt budget for this request

        Returns:
            The decoded response envelope

        Raises:
            RateLimited: If every attempt was rate limited
            MalformedResponse: If a 2xx body breaks the response contract
            UpstreamError: For any other upstream or transport failure
        """
        attempts = max_attempts or self.max_attempts
        context = ErrorContext(
            operation=CatalogOperationNames.EXECUTE_REQUEST,
            endpoint=request.endpoint,
            additional_data={"method": request.method, "max_attempts": attempts},
        )

        attempt = 1
        while True:
            try:
                async with self.throttler.slot():
                    return await self._attempt(request, context)
            except RateLimited as e:
                if attempt >= attempts:
                    raise RateLimited(
                        code=ErrorCode.API_RATE_LIMIT,
                        message=CatalogErrorMessages.RETRIES_EXHAUSTED.format(
                            attempts=attempts,
                            endpoint=request.endpoint,
                        ),
                        context=context,
                        original_error=e,
                        status_code=e.status_code,
                        upstream_code=e.upstream_code,
                    ) from e

                delay = self.base_delay * attempt
                logger.info(
                    "Rate limited on %s (attempt %d/%d), retrying in %.2fs",
                    request.endpoint,
                    attempt,
                    attempts,
                    delay,
                )
                await self.clock.sleep(delay)
                attempt += 1

    async def _attempt(
        self,
        request: UpstreamRequest,
        context: ErrorContext,
    ) -> dict[str, Any]:
        """Send one HTTP request and classify the outcome."""
        session = await self.session_manager.get_session()
        url = f"{self.base_url}/{request.endpoint.lstrip('/')}"

        kwargs: dict[str, Any] = {
            "params": request.query_params(),
            "headers": request.headers(),
        }
        if request.body is not None:
            kwargs["json"] = request.body

        started = time.perf_counter()
        try:
            response = await session.request(request.method, url, **kwargs)
            try:
                status = response.status
                content = await response.read()
            finally:
                response.release()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamError(
                code=ErrorCode.NETWORK_ERROR,
                message=CatalogErrorMessages.NETWORK_ERROR.format(
                    endpoint=request.endpoint,
                    error=str(e) or type(e).__name__,
                ),
                context=context,
                original_error=e,
            ) from e

        log_api_call(
            logger,
            endpoint=request.endpoint,
            method=request.method,
            status_code=status,
            duration_ms=(time.perf_counter() - started) * 1000,
        )
        return self._classify(status, content, request, context)

    def _classify(
        self,
        status: int,
        content: bytes,
        request: UpstreamRequest,
        context: ErrorContext,
    ) -> dict[str, Any]:
        """Map an HTTP status and body onto success or a typed failure."""
        if status == 429:
            raise RateLimited(
                code=ErrorCode.API_RATE_LIMIT,
                message=CatalogErrorMessages.RATE_LIMITED.format(endpoint=request.endpoint),
                context=context,
                status_code=status,
            )

        if not 200 <= status < 300:
            raise UpstreamError(
                code=ErrorCode.API_SERVER_ERROR if status >= 500 else ErrorCode.API_REQUEST_FAILED,
                message=CatalogErrorMessages.HTTP_ERROR.format(
                    status_code=status,
                    endpoint=request.endpoint,
                    body=content.decode("utf-8", errors="replace")[:ERROR_BODY_PREVIEW_LENGTH],
                ),
                context=context,
                status_code=status,
            )

        try:
            body = json.loads(content.decode("utf-8"))
        except ValueError as e:
            raise MalformedResponse(
                code=ErrorCode.API_INVALID_RESPONSE,
                message=f"Upstream response on {request.endpoint} is not valid JSON",
                context=context,
                original_error=e,
                status_code=status,
            ) from e

        if not isinstance(body, dict):
            raise MalformedResponse(
                code=ErrorCode.API_INVALID_RESPONSE,
                message=CatalogErrorMessages.NOT_JSON_OBJECT.format(endpoint=request.endpoint),
                context=context,
                status_code=status,
            )

        code = _envelope_code(body)
        if code == CJResponseCodes.TOO_MANY_REQUESTS:
            raise RateLimited(
                code=ErrorCode.API_RATE_LIMIT,
                message=CatalogErrorMessages.RATE_LIMITED.format(endpoint=request.endpoint),
                context=context,
                status_code=status,
                upstream_code=code,
            )

        if code and code != CJResponseCodes.SUCCESS:
            raise UpstreamError(
                code=ErrorCode.API_APPLICATION_ERROR,
                message=CatalogErrorMessages.APPLICATION_ERROR.format(
                    code=code,
                    endpoint=request.endpoint,
                    message=body.get("message") or "Unknown error",
                ),
                context=context,
                status_code=status,
                upstream_code=code,
            )

        return body
