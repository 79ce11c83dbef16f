"""
In-process identity provider for local runs and tests.
"""

import secrets
import threading
from typing import Any, Dict, List, Optional, Tuple

from .base import AccountAlreadyExists, IdentityProvider, ProviderAccount


class InMemoryIdentityProvider(IdentityProvider):
    """Keeps accounts in a dict and issues opaque random tokens."""

    name = "memory"

    def __init__(self):
        self._accounts: Dict[str, ProviderAccount] = {}
        self._lock = threading.Lock()
        self.create_calls = 0
        self.issued: List[Tuple[str, Optional[Dict[str, Any]]]] = []

    @property
    def accounts(self) -> Dict[str, ProviderAccount]:
        with self._lock:
            return dict(self._accounts)

    def lookup_account(self, subject_id: str) -> Optional[ProviderAccount]:
        with self._lock:
            return self._accounts.get(subject_id)

    def create_account(self,
                       subject_id: str,
                       display_name: str,
                       photo_url: Optional[str] = None) -> ProviderAccount:
        with self._lock:
            self.create_calls += 1
            if subject_id in self._accounts:
                raise AccountAlreadyExists(subject_id)
            account = ProviderAccount(
                subject_id=subject_id,
                display_name=display_name,
                photo_url=photo_url or None
            )
            self._accounts[subject_id] = account
            return account

    def issue_token(self, subject_id: str, claims: Optional[Dict[str, Any]] = None) -> str:
        with self._lock:
            self.issued.append((subject_id, dict(claims) if claims else None))
        return f"memory.{subject_id}.{secrets.token_urlsafe(24)}"
