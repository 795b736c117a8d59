"""Tests for the token pair model."""

from datetime import datetime, timedelta, timezone

import pytest

from cjcatalog.services.token_models import TokenPair, TokenState
from tests.fakes import T0, make_pair

BUFFER = timedelta(hours=1)


class TestTokenState:
    @pytest.mark.parametrize(
        ("offset", "expected"),
        [
            (timedelta(0), TokenState.VALID),
            (timedelta(days=15) - BUFFER - timedelta(seconds=1), TokenState.VALID),
            (timedelta(days=15) - BUFFER, TokenState.NEAR_EXPIRY),
            (timedelta(days=15), TokenState.EXPIRED_REFRESHABLE),
            (timedelta(days=180), TokenState.DEAD),
        ],
    )
    def test_state_boundaries(self, offset, expected):
        assert make_pair().state(T0 + offset, BUFFER) is expected

    def test_refresh_stops_one_buffer_before_refresh_expiry(self):
        pair = make_pair()

        assert pair.can_refresh(T0 + timedelta(days=180) - BUFFER - timedelta(seconds=1), BUFFER)
        assert not pair.can_refresh(T0 + timedelta(days=180) - BUFFER, BUFFER)

    def test_servable_within_grace(self):
        pair = make_pair()
        expiry = T0 + timedelta(days=15)

        assert not pair.is_servable(expiry)
        assert pair.is_servable(expiry + timedelta(minutes=14), timedelta(minutes=15))
        assert not pair.is_servable(expiry + timedelta(minutes=15), timedelta(minutes=15))


class TestTokenPairValidation:
    def test_rejects_empty_tokens(self):
        with pytest.raises(ValueError):
            make_pair(access_token="")
        with pytest.raises(ValueError):
            make_pair(refresh_token="")

    def test_rejects_access_outliving_refresh(self):
        with pytest.raises(ValueError):
            make_pair(access_in=timedelta(days=2), refresh_in=timedelta(days=1))

    def test_naive_times_taken_as_utc(self):
        pair = TokenPair("a", "r", datetime(2026, 1, 2), datetime(2026, 6, 1))

        assert pair.access_expires_at.tzinfo == timezone.utc


class TestSerialization:
    def test_dict_round_trip(self):
        pair = make_pair()

        assert TokenPair.from_dict(pair.to_dict()) == pair

    def test_missing_field(self):
        data = make_pair().to_dict()
        del data["refresh_token"]

        with pytest.raises(KeyError):
            TokenPair.from_dict(data)

    def test_repr_hides_tokens(self):
        text = repr(make_pair(access_token="secret-a", refresh_token="secret-r"))

        assert "secret" not in text
