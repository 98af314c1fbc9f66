"""JWT session state held by a client instance."""

import base64
import binascii
import enum
import json
import logging
import time
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger(__name__)


class AuthMode(enum.Enum):
    ANONYMOUS = "anonymous"
    SIGNED = "signed"
    BEARER = "bearer"
    PROVIDED = "provided"


def select_auth_mode(
    secret_key: str | None, token: str | None, headers: Mapping[str, str]
) -> AuthMode:
    """Picks the single mechanism used to authenticate a request.

    An Authorization header set by the caller wins, then the bearer token,
    then the secret key.
    """
    if any(name.lower() == "authorization" for name in headers):
        return AuthMode.PROVIDED
    if token is not None:
        return AuthMode.BEARER
    if secret_key and secret_key.strip():
        return AuthMode.SIGNED
    return AuthMode.ANONYMOUS


def now_millis() -> int:
    return int(time.time() * 1000)


def decode_token_payload(token: str) -> dict[str, Any]:
    """Decodes the middle (payload) segment of a compact JWT.

    Raises ValueError when the token is not three segments of base64url JSON.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise ValueError("Token must have three dot-separated segments")

    segment = parts[1]
    segment += "=" * (-len(segment) % 4)
    try:
        raw = base64.urlsafe_b64decode(segment.encode("ascii"))
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Malformed token payload: {e}") from e

    if not isinstance(payload, dict):
        raise ValueError("Token payload is not a JSON object")
    return payload


def _seconds_to_millis(value: Any) -> int | None:
    if value is None:
        return None
    return int(value) * 1000


class TokenSession:
    """Bearer token with its expiry and next-refresh timestamps.

    Both timestamps are epoch milliseconds. The three fields are only ever
    written together through ``store`` or ``clear``.
    """

    def __init__(self):
        self.token: str | None = None
        self.expires: int | None = None
        self.next_refresh: int | None = None

    def __bool__(self) -> bool:
        return self.token is not None

    def store(
        self,
        token: str | None,
        expires: int | None = None,
        next_refresh: int | None = None,
    ):
        self.token = token
        self.expires = expires
        self.next_refresh = next_refresh

    def clear(self):
        self.store(None)

    def set_token(self, token: str | None):
        """Stores a raw token, reading exp/refresh claims when possible.

        A token that cannot be decoded is still kept as an opaque bearer
        credential, only its timestamps are reset.
        """
        expires, next_refresh = None, None
        if token and len(token) > 1:
            try:
                payload = decode_token_payload(token)
                if payload.get("exp"):
                    expires = _seconds_to_millis(payload["exp"])
                    next_refresh = _seconds_to_millis(payload.get("refresh"))
            except (ValueError, TypeError) as e:
                logger.debug("Could not read token claims: %s", e)
        self.store(token, expires, next_refresh)

    def store_jwt(self, jwt_data: dict[str, Any]):
        """Stores the ``jwt`` object of an auth endpoint response."""
        self.store(
            jwt_data.get("access_token"),
            jwt_data.get("expires"),
            jwt_data.get("refresh"),
        )

    def is_expired(self, now: int | None = None) -> bool:
        if now is None:
            now = now_millis()
        return self.expires is None or self.expires <= now

    def can_refresh(self, now: int | None = None) -> bool:
        """True when a held, unexpired token is due for a refresh.

        A next-refresh time later than the expiry counts as due.
        """
        if now is None:
            now = now_millis()
        if self.token is None or self.is_expired(now):
            return False
        if self.next_refresh is None:
            return False
        return self.next_refresh < now or self.next_refresh > self.expires
