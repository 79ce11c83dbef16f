"""
Identity provider adapters.

The auth service talks to its identity provider only through
``IdentityProvider``. ``create_provider`` picks the adapter named by the
``AUTH_IDENTITY_PROVIDER`` setting.
"""

from shared.config import BaseConfig
from shared.errors import ConfigError
from .base import AccountAlreadyExists, IdentityProvider, ProviderAccount
from .memory import InMemoryIdentityProvider


def create_provider(config: BaseConfig) -> IdentityProvider:
    """Build the configured identity provider."""
    kind = config.identity_provider.lower()
    if kind == "firebase":
        from .firebase import FirebaseIdentityProvider
        return FirebaseIdentityProvider.from_config(config)
    if kind == "memory":
        return InMemoryIdentityProvider()
    raise ConfigError("Unknown identity provider", details={"identity_provider": kind})


__all__ = [
    "AccountAlreadyExists",
    "IdentityProvider",
    "InMemoryIdentityProvider",
    "ProviderAccount",
    "create_provider",
]
