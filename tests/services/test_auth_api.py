"""Tests for AuthenticationAPI payload handling."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from cjcatalog.services.auth_api import AUTH_MAX_ATTEMPTS, AuthenticationAPI, parse_token_payload
from cjcatalog.services.request_executor import RetryingRequestExecutor
from cjcatalog.shared.errors import ErrorCode, MalformedResponse, RateLimited
from tests.fakes import auth_envelope, envelope, make_pair


@pytest.fixture
def executor():
    executor = Mock(spec=RetryingRequestExecutor)
    executor.execute = AsyncMock()
    return executor


class TestParseTokenPayload:
    def test_parses_iso_dates_with_offset(self):
        body = envelope(
            {
                "accessToken": "a",
                "refreshToken": "r",
                "accessTokenExpiryDate": "2026-01-16T12:00:00+08:00",
                "refreshTokenExpiryDate": "2026-06-30T12:00:00+08:00",
            }
        )

        pair = parse_token_payload(body, "auth", "authenticate")

        assert pair.access_expires_at == datetime(2026, 1, 16, 4, 0, tzinfo=timezone.utc)
        assert pair.refresh_expires_at.tzinfo is not None

    def test_parses_trailing_z(self):
        body = envelope(
            {
                "accessToken": "a",
                "refreshToken": "r",
                "accessTokenExpiryDate": "2026-01-16T12:00:00Z",
                "refreshTokenExpiryDate": "2026-06-30T12:00:00Z",
            }
        )

        pair = parse_token_payload(body, "auth", "authenticate")

        assert pair.access_expires_at == datetime(2026, 1, 16, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "data",
        [
            None,
            [],
            {"accessToken": "a", "refreshToken": "r"},
            {
                "accessToken": "",
                "refreshToken": "r",
                "accessTokenExpiryDate": "2026-01-16T12:00:00Z",
                "refreshTokenExpiryDate": "2026-06-30T12:00:00Z",
            },
            {
                "accessToken": "a",
                "refreshToken": "r",
                "accessTokenExpiryDate": "next tuesday",
                "refreshTokenExpiryDate": "2026-06-30T12:00:00Z",
            },
        ],
    )
    def test_invalid_payload_is_malformed(self, data):
        with pytest.raises(MalformedResponse):
            parse_token_payload(envelope(data), "auth", "authenticate")


class TestAuthenticationAPI:
    @pytest.mark.asyncio
    async def test_fetch_access_token_sends_key_once(self, executor):
        pair = make_pair()
        executor.execute.return_value = auth_envelope(pair)

        result = await AuthenticationAPI(executor).fetch_access_token("my-key")

        assert result == pair
        request = executor.execute.call_args.args[0]
        assert request.method == "POST"
        assert request.endpoint == "authentication/getAccessToken"
        assert request.body == {"apiKey": "my-key"}
        assert request.access_token is None
        assert executor.execute.call_args.kwargs["max_attempts"] == AUTH_MAX_ATTEMPTS == 1

    @pytest.mark.asyncio
    async def test_refresh_access_token(self, executor):
        pair = make_pair(access_token="access-2")
        executor.execute.return_value = auth_envelope(pair)

        result = await AuthenticationAPI(executor).refresh_access_token("refresh-1")

        assert result.access_token == "access-2"
        request = executor.execute.call_args.args[0]
        assert request.endpoint == "authentication/refreshAccessToken"
        assert request.body == {"refreshToken": "refresh-1"}

    @pytest.mark.asyncio
    async def test_rate_limit_propagates(self, executor):
        executor.execute.side_effect = RateLimited(
            code=ErrorCode.API_RATE_LIMIT,
            message="rate limited",
            status_code=429,
        )

        with pytest.raises(RateLimited):
            await AuthenticationAPI(executor).fetch_access_token("my-key")
