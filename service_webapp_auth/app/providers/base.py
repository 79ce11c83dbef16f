"""
Identity provider interface.

Adapters translate their SDK's errors at this boundary: a missing account is
``None`` from ``lookup_account``, a lost creation race is
``AccountAlreadyExists``, and everything else becomes ProvisioningFailure or
UpstreamIssuanceFailure. Methods are blocking; callers run them in a worker
thread.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class ProviderAccount(BaseModel):
    """Account record held by the identity provider."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None


class AccountAlreadyExists(Exception):
    """Raised by create_account when the subject was created concurrently."""

    def __init__(self, subject_id: str):
        self.subject_id = subject_id
        super().__init__(f"Account {subject_id} already exists")


class IdentityProvider(ABC):
    """Accounts and custom tokens keyed by subject identifier."""

    name = "abstract"

    def state(self) -> str:
        """Report provider state for health checks."""
        return "ready"

    @abstractmethod
    def lookup_account(self, subject_id: str) -> Optional[ProviderAccount]:
        """Return the account, or None when it does not exist."""

    @abstractmethod
    def create_account(self,
                       subject_id: str,
                       display_name: str,
                       photo_url: Optional[str] = None) -> ProviderAccount:
        """Create an account. Raises AccountAlreadyExists on a lost race."""

    @abstractmethod
    def issue_token(self, subject_id: str, claims: Optional[Dict[str, Any]] = None) -> str:
        """Mint a credential the client exchanges with the provider."""
