"""Access-token model and expiry status evaluation."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from capi_cli.client.errors import MalformedJWTError
from capi_cli.config.constants import EXPIRING_SOON_WINDOW

if TYPE_CHECKING:
    from capi_cli.config.models import APIConfig

logger = logging.getLogger(__name__)


class TokenStatus(str, Enum):
    NO_TOKEN = "No token"
    VALID = "Valid"
    EXPIRING_SOON = "Expires soon"
    EXPIRED = "Expired"
    UNKNOWN_EXPIRATION = "Unknown expiration"


def _seconds(value: Any) -> float | None:
    """Numeric ``expires_in``; some identity services send it as a string."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            logger.debug("Ignoring non-numeric expires_in %r", value)
    return None


class Token(BaseModel):
    """A token issued by the identity service."""

    access_token: str
    refresh_token: str = ""
    expires_at: datetime | None = None
    token_type: str = "bearer"

    @classmethod
    def from_response(cls, data: dict[str, Any], now: datetime | None = None) -> Token:
        """Build a token from an OAuth2 token-endpoint JSON body.

        Expiry comes from ``expires_in`` (seconds from *now*) or an absolute
        ``expiry`` timestamp, whichever is present.
        """
        now = now or datetime.now(timezone.utc)
        expires_at: datetime | None = None
        expires_in = _seconds(data.get("expires_in"))
        if expires_in is not None and 0 < expires_in < float("inf"):
            expires_at = now + timedelta(seconds=expires_in)
        elif data.get("expiry"):
            try:
                expires_at = datetime.fromisoformat(str(data["expiry"]).replace("Z", "+00:00"))
            except ValueError:
                logger.debug("Ignoring unparseable expiry %r", data["expiry"])
            else:
                if expires_at.tzinfo is None:
                    expires_at = expires_at.replace(tzinfo=timezone.utc)
        return cls(
            access_token=data.get("access_token") or "",
            refresh_token=data.get("refresh_token") or "",
            expires_at=expires_at,
            token_type=data.get("token_type") or "bearer",
        )


def decode_jwt_expiration(token: str) -> datetime:
    """Read the ``exp`` claim from an unverified JWT.

    Raises MalformedJWTError for anything that is not a three-part token
    with a base64url JSON payload carrying a numeric ``exp``.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise MalformedJWTError("invalid JWT format")
    payload = parts[1]
    payload += "=" * (-len(payload) % 4)
    try:
        raw = base64.urlsafe_b64decode(payload.encode("ascii"))
        claims = json.loads(raw)
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise MalformedJWTError(f"failed to decode JWT payload: {exc}") from exc
    if not isinstance(claims, dict):
        raise MalformedJWTError("JWT payload is not an object")
    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)) or not exp:
        raise MalformedJWTError("no expiration claim found")
    try:
        return datetime.fromtimestamp(exp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise MalformedJWTError(f"exp claim out of range: {exp}") from exc


def token_expiration(api_config: APIConfig) -> datetime | None:
    """Stored expiry if any, else the JWT ``exp`` claim, else None."""
    if api_config.token_expires_at is not None:
        return api_config.token_expires_at
    if not api_config.token:
        return None
    try:
        return decode_jwt_expiration(api_config.token)
    except MalformedJWTError as exc:
        logger.debug("No expiry derivable from token: %s", exc)
        return None


def status_for_expiry(expires_at: datetime, now: datetime | None = None) -> TokenStatus:
    remaining = expires_at - (now or datetime.now(timezone.utc))
    if remaining <= timedelta(0):
        return TokenStatus.EXPIRED
    if remaining <= EXPIRING_SOON_WINDOW:
        return TokenStatus.EXPIRING_SOON
    return TokenStatus.VALID


def evaluate_status(api_config: APIConfig, now: datetime | None = None) -> TokenStatus:
    """Derive the token status for one API. Performs no I/O and never raises."""
    if not api_config.token:
        return TokenStatus.NO_TOKEN
    expires_at = token_expiration(api_config)
    if expires_at is None:
        return TokenStatus.UNKNOWN_EXPIRATION
    return status_for_expiry(expires_at, now)


def format_remaining(delta: timedelta) -> str:
    total = int(delta.total_seconds())
    sign = "-" if total < 0 else ""
    total = abs(total)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{sign}{minutes}m{seconds}s"
    return f"{sign}{seconds}s"


def build_status_report(
    api_config: APIConfig, domain: str, now: datetime | None = None,
) -> dict[str, Any]:
    """Status of one API's token as a flat dict for rendering."""
    now = now or datetime.now(timezone.utc)
    report: dict[str, Any] = {"api_domain": domain, "endpoint": api_config.endpoint}
    if not api_config.token:
        report["status"] = TokenStatus.NO_TOKEN.value
        report["authenticated"] = False
        return report

    report["status"] = "Token present"
    report["authenticated"] = True
    expires_at = token_expiration(api_config)
    if expires_at is None:
        report["expiry_status"] = TokenStatus.UNKNOWN_EXPIRATION.value
    else:
        report["expiry_status"] = status_for_expiry(expires_at, now).value
        report["expires_at"] = expires_at.isoformat()
        report["time_until_expiry"] = format_remaining(expires_at - now)
    if api_config.last_refreshed is not None:
        report["last_refreshed"] = api_config.last_refreshed.isoformat()
    report["refresh_token_available"] = bool(api_config.refresh_token)
    return report
