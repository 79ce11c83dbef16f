"""
initData validation package.

Provides the pieces the auth service uses to trust a Telegram Mini App
launch:

- init_data: parsing and data-check-string construction.
- signature: deployment secret derivation, HMAC verification and the
  optional auth_date freshness policy.
- identity: turning the verified ``user`` field into a TelegramIdentity.

Nothing here performs IO; every function is safe to call on the event loop.
"""

from .init_data import CanonicalPayload, build_check_string, canonicalize, parse_init_data
from .signature import InitDataVerifier, compute_signature, derive_secret_key
from .identity import TelegramIdentity, extract_identity

__all__ = [
    "CanonicalPayload",
    "InitDataVerifier",
    "TelegramIdentity",
    "build_check_string",
    "canonicalize",
    "compute_signature",
    "derive_secret_key",
    "extract_identity",
    "parse_init_data",
]
