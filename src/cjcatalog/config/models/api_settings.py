"""Upstream API configuration models.

This module contains configuration models for the CJ Dropshipping API:
connection settings, retry policy, concurrency ceiling and the token
lifecycle thresholds.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from cjcatalog.shared.constants import APIConfig, CJEndpoints, TokenConfig


class CatalogAPISettings(BaseModel):
    """CJ API configuration.

    Security: api_key is masked in __repr__ so settings objects can be
    logged safely.
    """

    base_url: str = Field(
        default=CJEndpoints.BASE_URL,
        description="Base URL of the CJ API, without trailing endpoint path",
    )

    # API authentication (sensitive - hidden from repr)
    api_key: str = Field(
        default="",
        repr=False,
        description="CJ API key (required for authentication)",
    )

    # Request settings
    request_timeout: float = Field(
        default=APIConfig.DEFAULT_REQUEST_TIMEOUT,
        gt=0,
        description="Timeout of a single HTTP attempt in seconds",
    )
    operation_timeout: float | None = Field(
        default=APIConfig.DEFAULT_OPERATION_TIMEOUT,
        gt=0,
        description="Default deadline of a client operation in seconds (None disables)",
    )

    # Retry settings
    max_attempts: int = Field(
        default=APIConfig.DEFAULT_MAX_ATTEMPTS,
        ge=1,
        description="Attempts per request when the upstream is rate limiting",
    )
    retry_base_delay: float = Field(
        default=APIConfig.DEFAULT_RETRY_BASE_DELAY,
        ge=0,
        description="Linear backoff unit; attempt n waits base * n after failing",
    )

    # Concurrency settings
    max_concurrent: int = Field(
        default=APIConfig.DEFAULT_MAX_CONCURRENT,
        gt=0,
        description="Maximum outbound requests in flight per process",
    )
    search_page_size_limit: int = Field(
        default=APIConfig.MAX_SEARCH_PAGE_SIZE,
        gt=0,
        description="Upper bound applied to the search page size",
    )

    def __repr__(self) -> str:
        masked_key = "****" if self.api_key else "[empty]"
        return (
            f"CatalogAPISettings("
            f"base_url={self.base_url!r}, "
            f"api_key={masked_key}, "
            f"max_attempts={self.max_attempts}, "
            f"max_concurrent={self.max_concurrent})"
        )


class AuthSettings(BaseModel):
    """Token lifecycle configuration."""

    refresh_buffer_seconds: float = Field(
        default=TokenConfig.REFRESH_BUFFER,
        ge=0,
        description="Refresh this long before the access token expires",
    )
    stale_token_grace_seconds: float = Field(
        default=TokenConfig.STALE_TOKEN_GRACE,
        ge=0,
        description=(
            "How long past expiry a cached access token may still be served "
            "while the auth endpoint is rate limiting"
        ),
    )


__all__ = [
    "AuthSettings",
    "CatalogAPISettings",
]
