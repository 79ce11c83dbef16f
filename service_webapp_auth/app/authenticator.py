"""
initData to custom token exchange.
"""

from typing import Optional

from pydantic import BaseModel

from shared.errors import UpstreamIssuanceFailure, VerificationError
from shared.logging import get_logger, set_subject_context
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, call_with_retry
from .providers.base import IdentityProvider
from .provisioning import IdentityProvisioner
from .upstream import call_provider
from .validation.identity import extract_identity
from .validation.signature import InitDataVerifier


class AuthResult(BaseModel):
    """Issued credential and the subject it is bound to."""
    token: str
    subject_id: str
    created: bool


class TelegramAuthenticator:
    """Verifies initData, provisions the account and issues a token."""

    def __init__(self,
                 verifier: InitDataVerifier,
                 provider: IdentityProvider,
                 timeout_seconds: float = 10.0,
                 retry_config: Optional[RetryConfig] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.verifier = verifier
        self.provider = provider
        self.timeout_seconds = timeout_seconds
        self.retry_config = retry_config or RetryConfig()
        self.metrics = metrics
        self.provisioner = IdentityProvisioner(
            provider,
            timeout_seconds=timeout_seconds,
            retry_config=self.retry_config,
            metrics=metrics
        )
        self.logger = get_logger("webapp_auth.authenticator")

    async def authenticate(self, init_data: str) -> AuthResult:
        """Exchange raw initData for a provider credential."""
        try:
            payload = self.verifier.verify(init_data)
            identity = extract_identity(payload.fields)
        except VerificationError as e:
            self._record_verification(e.code)
            raise
        self._record_verification("verified")

        provisioned = await self.provisioner.ensure_account(identity)
        set_subject_context(provisioned.subject_id)

        token = await self.issue_token(provisioned.subject_id, identity.display_claims())

        self.logger.info(
            "Telegram user authenticated",
            subject_id=provisioned.subject_id,
            created=provisioned.created
        )
        return AuthResult(token=token, subject_id=provisioned.subject_id, created=provisioned.created)

    async def issue_token(self, subject_id: str, claims: Optional[dict] = None) -> str:
        """Mint a token for ``subject_id`` with bounded retries."""
        async def attempt():
            return await call_provider(
                "issue_token",
                self.provider.issue_token,
                subject_id,
                claims,
                timeout_seconds=self.timeout_seconds,
                failure=UpstreamIssuanceFailure,
                metrics=self.metrics
            )

        return await call_with_retry(
            attempt,
            exceptions=(UpstreamIssuanceFailure,),
            config=self.retry_config,
            name="issue_token"
        )

    def _record_verification(self, outcome: str):
        if self.metrics is not None:
            self.metrics.record_verification(outcome)
