"""Upstream authentication calls.

Issues the two token endpoints through the request executor and turns
their payload into a TokenPair.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from cjcatalog.services.request_executor import RetryingRequestExecutor, UpstreamRequest
from cjcatalog.services.token_models import TokenPair
from cjcatalog.shared.constants import CatalogErrorMessages, CatalogOperationNames, CJEndpoints
from cjcatalog.shared.errors import create_malformed_response_error

logger = logging.getLogger(__name__)

# The auth endpoints allow one call per five minutes; never retry inline
AUTH_MAX_ATTEMPTS = 1


def _parse_expiry(value: Any, field_name: str) -> datetime:
    if not isinstance(value, str) or not value:
        msg = f"{field_name} is missing"
        raise ValueError(msg)
    # fromisoformat only accepts a trailing "Z" from Python 3.11 on
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def parse_token_payload(body: dict[str, Any], endpoint: str, operation: str) -> TokenPair:
    """Build a TokenPair from an authentication response envelope.

    Raises:
        MalformedResponse: If a token field is missing or a date is unparsable
    """
    data = body.get("data")
    try:
        if not isinstance(data, dict):
            msg = "data is not an object"
            raise ValueError(msg)
        return TokenPair(
            access_token=data.get("accessToken") or "",
            refresh_token=data.get("refreshToken") or "",
            access_expires_at=_parse_expiry(
                data.get("accessTokenExpiryDate"), "accessTokenExpiryDate"
            ),
            refresh_expires_at=_parse_expiry(
                data.get("refreshTokenExpiryDate"), "refreshTokenExpiryDate"
            ),
        )
    except (TypeError, ValueError) as e:
        raise create_malformed_response_error(
            CatalogErrorMessages.TOKEN_PAYLOAD_INVALID.format(error=str(e)),
            endpoint=endpoint,
            operation=operation,
            original_error=e,
        ) from e


class AuthenticationAPI:
    """Client for the upstream token endpoints.

    Args:
        executor: Request executor shared with the catalog calls
    """

    def __init__(self, executor: RetryingRequestExecutor) -> None:
        self.executor = executor

    async def fetch_access_token(self, api_key: str) -> TokenPair:
        """Exchange the API key for a fresh token pair.

        Raises:
            RateLimited: If the auth budget is spent
            UpstreamError: If the upstream rejects the key
            MalformedResponse: If the payload lacks token fields
        """
        request = UpstreamRequest(
            method="POST",
            endpoint=CJEndpoints.GET_ACCESS_TOKEN,
            body={"apiKey": api_key},
        )
        body = await self.executor.execute(request, max_attempts=AUTH_MAX_ATTEMPTS)
        pair = parse_token_payload(
            body, CJEndpoints.GET_ACCESS_TOKEN, CatalogOperationNames.AUTHENTICATE
        )
        logger.info(
            "Obtained CJ access token (expires %s)", pair.access_expires_at.isoformat()
        )
        return pair

    async def refresh_access_token(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new token pair.

        Raises:
            RateLimited: If the auth budget is spent
            UpstreamError: If the upstream rejects the refresh token
            MalformedResponse: If the payload lacks token fields
        """
        request = UpstreamRequest(
            method="POST",
            endpoint=CJEndpoints.REFRESH_ACCESS_TOKEN,
            body={"refreshToken": refresh_token},
        )
        body = await self.executor.execute(request, max_attempts=AUTH_MAX_ATTEMPTS)
        pair = parse_token_payload(
            body, CJEndpoints.REFRESH_ACCESS_TOKEN, CatalogOperationNames.REFRESH_TOKEN
        )
        logger.info(
            "Refreshed CJ access token (expires %s)", pair.access_expires_at.isoformat()
        )
        return pair


__all__ = ["AUTH_MAX_ATTEMPTS", "AuthenticationAPI", "parse_token_payload"]
