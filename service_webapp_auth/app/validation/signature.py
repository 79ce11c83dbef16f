"""
initData signature verification.

The bot token never signs anything directly. A deployment secret is derived
as ``HMAC-SHA256(key="WebAppData", msg=bot_token)`` and the data-check-string
is then signed with ``HMAC-SHA256(key=secret, msg=check_string)``.
"""

import hashlib
import hmac
import time
from typing import Callable, Optional, Union

from pydantic import SecretStr

from shared.errors import ConfigError, ExpiredPayload, MalformedPayload, SignatureMismatch
from shared.logging import get_logger
from .init_data import CanonicalPayload, canonicalize, parse_init_data

WEBAPP_DATA_KEY = b"WebAppData"
AUTH_DATE_FIELD = "auth_date"
# Tolerated lead of auth_date over the local clock
MAX_CLOCK_SKEW_SECONDS = 60


def derive_secret_key(bot_token: str) -> bytes:
    """Derive the deployment secret from the bot token."""
    return hmac.new(WEBAPP_DATA_KEY, bot_token.encode("utf-8"), hashlib.sha256).digest()


def compute_signature(secret_key: bytes, check_string: str) -> str:
    """Sign a data-check-string, returning lowercase hex."""
    return hmac.new(secret_key, check_string.encode("utf-8"), hashlib.sha256).hexdigest()


class InitDataVerifier:
    """Verifies Telegram Mini App initData against one bot token."""

    def __init__(self,
                 bot_token: Union[str, SecretStr, None],
                 max_age_seconds: int = 0,
                 clock: Callable[[], float] = time.time):
        if isinstance(bot_token, SecretStr):
            bot_token = bot_token.get_secret_value()
        if not bot_token or not bot_token.strip():
            raise ConfigError("Telegram bot token is not configured")
        if max_age_seconds < 0:
            raise ConfigError("max_age_seconds must not be negative")

        self._secret_key = derive_secret_key(bot_token)
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self.logger = get_logger("webapp_auth.verifier")

    def __repr__(self) -> str:
        return f"InitDataVerifier(max_age_seconds={self.max_age_seconds})"

    def verify(self, init_data: str) -> CanonicalPayload:
        """Parse, canonicalize and verify initData.

        Raises MalformedPayload, MissingSignature, SignatureMismatch or
        ExpiredPayload. Nothing from the payload should be trusted unless
        this returns.
        """
        payload = canonicalize(parse_init_data(init_data))
        self.verify_signature(payload)
        if self.max_age_seconds:
            self.check_freshness(payload)
        return payload

    def verify_signature(self, payload: CanonicalPayload) -> None:
        """Compare the claimed hash with the computed one in constant time."""
        expected = compute_signature(self._secret_key, payload.check_string)
        # bytes so non-ASCII claims compare instead of raising TypeError
        if not hmac.compare_digest(expected.encode("ascii"), payload.claimed_hash.encode("utf-8")):
            raise SignatureMismatch()

    def check_freshness(self, payload: CanonicalPayload, max_age_seconds: Optional[int] = None) -> None:
        """Reject payloads whose auth_date is older than the allowed age.

        An auth_date more than MAX_CLOCK_SKEW_SECONDS ahead of the local
        clock is MalformedPayload.
        """
        max_age = self.max_age_seconds if max_age_seconds is None else max_age_seconds
        raw_auth_date = payload.fields.get(AUTH_DATE_FIELD)
        if not raw_auth_date:
            raise MalformedPayload("initData is missing auth_date", details={"field": AUTH_DATE_FIELD})

        try:
            auth_date = int(raw_auth_date)
        except ValueError as e:
            raise MalformedPayload("initData auth_date is not an integer", details={"field": AUTH_DATE_FIELD}) from e

        age = self._clock() - auth_date
        if age < -MAX_CLOCK_SKEW_SECONDS:
            self.logger.info("Future initData rejected", lead_seconds=int(-age))
            raise MalformedPayload("initData auth_date is in the future", details={"field": AUTH_DATE_FIELD})
        if age > max_age:
            self.logger.info("Stale initData rejected", age_seconds=int(age), max_age_seconds=max_age)
            raise ExpiredPayload(details={"max_age_seconds": max_age})
