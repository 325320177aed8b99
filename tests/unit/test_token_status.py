"""Tests for token status evaluation and JWT expiry decoding."""

from datetime import datetime, timedelta, timezone

import pytest

from capi_cli.auth.token import (
    Token,
    TokenStatus,
    build_status_report,
    decode_jwt_expiration,
    evaluate_status,
    format_remaining,
    token_expiration,
)
from capi_cli.client.errors import MalformedJWTError
from capi_cli.config.models import APIConfig


def _api(**kwargs) -> APIConfig:
    return APIConfig(endpoint="https://api.example.com", **kwargs)


class TestEvaluateStatus:
    def test_no_token(self, now: datetime):
        assert evaluate_status(_api(), now) is TokenStatus.NO_TOKEN

    @pytest.mark.parametrize(
        "offset, expected",
        [
            (timedelta(seconds=10), TokenStatus.EXPIRING_SOON),
            (timedelta(minutes=5), TokenStatus.EXPIRING_SOON),
            (timedelta(minutes=10), TokenStatus.VALID),
            (timedelta(seconds=-1), TokenStatus.EXPIRED),
            (timedelta(0), TokenStatus.EXPIRED),
        ],
    )
    def test_stored_expiry_thresholds(self, now: datetime, offset: timedelta, expected: TokenStatus):
        api = _api(token="opaque", token_expires_at=now + offset)
        assert evaluate_status(api, now) is expected

    def test_jwt_fallback(self, now: datetime, make_jwt):
        api = _api(token=make_jwt(now + timedelta(hours=1)))
        assert evaluate_status(api, now) is TokenStatus.VALID

    def test_jwt_fallback_expired(self, now: datetime, make_jwt):
        api = _api(token=make_jwt(now - timedelta(minutes=1)))
        assert evaluate_status(api, now) is TokenStatus.EXPIRED

    def test_stored_expiry_wins_over_jwt(self, now: datetime, make_jwt):
        api = _api(
            token=make_jwt(now - timedelta(hours=1)),
            token_expires_at=now + timedelta(hours=1),
        )
        assert evaluate_status(api, now) is TokenStatus.VALID

    @pytest.mark.parametrize(
        "token",
        [
            "not-a-jwt",
            "a.b",
            "a.b.c.d",
            "header.!!!notbase64!!!.sig",
            "header.bm90IGpzb24.sig",
        ],
    )
    def test_malformed_token_is_unknown(self, now: datetime, token: str):
        assert evaluate_status(_api(token=token), now) is TokenStatus.UNKNOWN_EXPIRATION

    def test_jwt_without_exp_is_unknown(self, now: datetime, make_jwt):
        assert evaluate_status(_api(token=make_jwt(sub="user")), now) is TokenStatus.UNKNOWN_EXPIRATION

    def test_jwt_zero_exp_is_unknown(self, now: datetime, make_jwt):
        assert evaluate_status(_api(token=make_jwt(0)), now) is TokenStatus.UNKNOWN_EXPIRATION


class TestDecodeJwtExpiration:
    def test_decodes_exp(self, make_jwt):
        assert decode_jwt_expiration(make_jwt(1767225600)) == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_float_exp(self, make_jwt):
        assert decode_jwt_expiration(make_jwt(1767225600.0)) == datetime(2026, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("exp", ["soon", True, [1]])
    def test_non_numeric_exp(self, make_jwt, exp):
        with pytest.raises(MalformedJWTError):
            decode_jwt_expiration(make_jwt(exp))

    def test_payload_not_object(self):
        with pytest.raises(MalformedJWTError):
            decode_jwt_expiration("h.WzEsMl0.s")

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            decode_jwt_expiration("nope")


class TestTokenExpiration:
    def test_none_without_token(self):
        assert token_expiration(_api()) is None

    def test_stored(self, now: datetime):
        assert token_expiration(_api(token="t", token_expires_at=now)) == now


class TestTokenFromResponse:
    def test_expires_in(self, now: datetime):
        token = Token.from_response(
            {"access_token": "a", "refresh_token": "r", "expires_in": 600, "token_type": "bearer"},
            now=now,
        )
        assert token.access_token == "a"
        assert token.refresh_token == "r"
        assert token.expires_at == now + timedelta(seconds=600)

    def test_absolute_expiry(self, now: datetime):
        token = Token.from_response({"access_token": "a", "expiry": "2026-01-15T13:00:00Z"}, now=now)
        assert token.expires_at == now + timedelta(hours=1)

    def test_expires_in_numeric_string(self, now: datetime):
        token = Token.from_response({"access_token": "a", "expires_in": "3600"}, now=now)
        assert token.expires_at == now + timedelta(hours=1)

    def test_expires_in_garbage_ignored(self, now: datetime):
        token = Token.from_response({"access_token": "a", "expires_in": "soon"}, now=now)
        assert token.expires_at is None

    def test_no_expiry(self, now: datetime):
        token = Token.from_response({"access_token": "a"}, now=now)
        assert token.expires_at is None
        assert token.refresh_token == ""


class TestFormatRemaining:
    @pytest.mark.parametrize(
        "delta, text",
        [
            (timedelta(seconds=42), "42s"),
            (timedelta(minutes=4, seconds=5), "4m5s"),
            (timedelta(hours=2, minutes=1), "2h1m0s"),
            (timedelta(seconds=-90), "-1m30s"),
        ],
    )
    def test_format(self, delta: timedelta, text: str):
        assert format_remaining(delta) == text


class TestBuildStatusReport:
    def test_no_token(self, now: datetime):
        report = build_status_report(_api(), "api.example.com", now)
        assert report == {
            "api_domain": "api.example.com",
            "endpoint": "https://api.example.com",
            "status": "No token",
            "authenticated": False,
        }

    def test_with_expiry(self, now: datetime):
        api = _api(
            token="t", refresh_token="r",
            token_expires_at=now + timedelta(minutes=2),
            last_refreshed=now - timedelta(minutes=58),
        )
        report = build_status_report(api, "api.example.com", now)
        assert report["status"] == "Token present"
        assert report["authenticated"] is True
        assert report["expiry_status"] == "Expires soon"
        assert report["time_until_expiry"] == "2m0s"
        assert report["refresh_token_available"] is True
        assert "last_refreshed" in report

    def test_unknown_expiry(self, now: datetime):
        report = build_status_report(_api(token="opaque"), "api.example.com", now)
        assert report["expiry_status"] == "Unknown expiration"
        assert "expires_at" not in report
        assert report["refresh_token_available"] is False
