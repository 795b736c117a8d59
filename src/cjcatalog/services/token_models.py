"""Token pair model.

This module defines the access/refresh credential bundle issued by the
upstream authentication endpoint and the lifecycle states derived from it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from cjcatalog.shared.clock import ensure_utc


class TokenState(Enum):
    """Lifecycle state of the cached token pair at a given instant."""

    UNSET = "unset"
    VALID = "valid"
    NEAR_EXPIRY = "near_expiry"
    EXPIRED_REFRESHABLE = "expired_refreshable"
    DEAD = "dead"


@dataclass(frozen=True)
class TokenPair:
    """Access and refresh token with their absolute expiry times.

    Replaced wholesale on every successful authentication or refresh and
    never mutated in place.

    Attributes:
        access_token: Token sent in the CJ-Access-Token header
        refresh_token: Token accepted by the refresh endpoint
        access_expires_at: Expiry of the access token (aware UTC)
        refresh_expires_at: Expiry of the refresh token (aware UTC)

    Raises:
        ValueError: If a token is empty or the access token outlives the
            refresh token
    """

    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime

    def __post_init__(self) -> None:
        if not self.access_token:
            msg = "access_token must be non-empty"
            raise ValueError(msg)
        if not self.refresh_token:
            msg = "refresh_token must be non-empty"
            raise ValueError(msg)

        object.__setattr__(self, "access_expires_at", ensure_utc(self.access_expires_at))
        object.__setattr__(self, "refresh_expires_at", ensure_utc(self.refresh_expires_at))

        if self.access_expires_at > self.refresh_expires_at:
            msg = (
                f"access_expires_at ({self.access_expires_at}) must not be after "
                f"refresh_expires_at ({self.refresh_expires_at})"
            )
            raise ValueError(msg)

    def state(self, now: datetime, refresh_buffer: timedelta) -> TokenState:
        """Classify this pair at ``now``.

        Args:
            now: Current time
            refresh_buffer: How long before expiry a token counts as near expiry

        Returns:
            The lifecycle state
        """
        if now < self.access_expires_at - refresh_buffer:
            return TokenState.VALID
        if now < self.access_expires_at:
            return TokenState.NEAR_EXPIRY
        if now < self.refresh_expires_at:
            return TokenState.EXPIRED_REFRESHABLE
        return TokenState.DEAD

    def is_fresh(self, now: datetime, refresh_buffer: timedelta) -> bool:
        """True while the access token is outside its refresh buffer."""
        return now < self.access_expires_at - refresh_buffer

    def can_refresh(self, now: datetime, refresh_buffer: timedelta) -> bool:
        """True while the refresh token is usable and not about to lapse."""
        return now < self.refresh_expires_at - refresh_buffer

    def is_servable(self, now: datetime, grace: timedelta = timedelta(0)) -> bool:
        """True while the access token may still be sent upstream.

        Args:
            now: Current time
            grace: Tolerated time past hard expiry
        """
        return now < self.access_expires_at + grace

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict with ISO-8601 timestamps."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "access_expires_at": self.access_expires_at.isoformat(),
            "refresh_expires_at": self.refresh_expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenPair:
        """Build a pair from ``to_dict`` output.

        Raises:
            KeyError: If a field is missing
            ValueError: If a timestamp or the pair itself is invalid
        """
        return cls(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            access_expires_at=datetime.fromisoformat(data["access_expires_at"]),
            refresh_expires_at=datetime.fromisoformat(data["refresh_expires_at"]),
        )

    def __repr__(self) -> str:
        return (
            f"TokenPair(access_token=****, refresh_token=****, "
            f"access_expires_at={self.access_expires_at.isoformat()}, "
            f"refresh_expires_at={self.refresh_expires_at.isoformat()})"
        )
