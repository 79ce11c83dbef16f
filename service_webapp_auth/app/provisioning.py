"""
Account provisioning in the identity provider.
"""

from typing import Optional

from pydantic import BaseModel

from shared.errors import ProvisioningFailure
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, call_with_retry
from .providers.base import AccountAlreadyExists, IdentityProvider
from .upstream import call_provider
from .validation.identity import TelegramIdentity

# Provider accounts for Telegram users are keyed "tg:<telegram user id>".
SUBJECT_PREFIX = "tg:"


def subject_id_for(external_id: int) -> str:
    """Map a Telegram user id to the provider subject identifier."""
    return f"{SUBJECT_PREFIX}{external_id}"


class ProvisioningResult(BaseModel):
    """Outcome of ensure_account."""
    subject_id: str
    created: bool


class IdentityProvisioner:
    """Makes sure each Telegram user has exactly one provider account.

    Existing accounts are never modified; profile changes made in the
    provider stay authoritative.
    """

    def __init__(self,
                 provider: IdentityProvider,
                 timeout_seconds: float = 10.0,
                 retry_config: Optional[RetryConfig] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.provider = provider
        self.timeout_seconds = timeout_seconds
        self.retry_config = retry_config or RetryConfig()
        self.metrics = metrics
        self.logger = get_logger("webapp_auth.provisioner")

    async def ensure_account(self, identity: TelegramIdentity) -> ProvisioningResult:
        """Create the account for ``identity`` unless it already exists."""
        subject_id = subject_id_for(identity.external_id)

        try:
            account = await self._call("lookup_account", self.provider.lookup_account, subject_id)
            if account is not None:
                self._record("existing")
                return ProvisioningResult(subject_id=subject_id, created=False)

            try:
                await self._call(
                    "create_account",
                    self.provider.create_account,
                    subject_id,
                    identity.display_name,
                    identity.photo_url or None
                )
            except AccountAlreadyExists:
                self.logger.info("Account created concurrently", subject_id=subject_id)
                self._record("existing")
                return ProvisioningResult(subject_id=subject_id, created=False)
        except ProvisioningFailure:
            self._record("failed")
            raise

        self.logger.info("New account created", subject_id=subject_id)
        self._record("created")
        return ProvisioningResult(subject_id=subject_id, created=True)

    async def _call(self, operation: str, func, *args):
        async def attempt():
            return await call_provider(
                operation,
                func,
                *args,
                timeout_seconds=self.timeout_seconds,
                failure=ProvisioningFailure,
                metrics=self.metrics
            )

        return await call_with_retry(
            attempt,
            exceptions=(ProvisioningFailure,),
            config=self.retry_config,
            name=operation
        )

    def _record(self, result: str):
        if self.metrics is not None:
            self.metrics.record_provisioning(result)
