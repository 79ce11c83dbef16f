"""
Unit tests for IdentityProvisioner.
"""

import time
import pytest
from unittest.mock import MagicMock

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_webapp_auth.app.providers.base import AccountAlreadyExists, ProviderAccount
from service_webapp_auth.app.providers.memory import InMemoryIdentityProvider
from service_webapp_auth.app.provisioning import IdentityProvisioner, subject_id_for
from service_webapp_auth.app.validation.identity import TelegramIdentity
from shared.errors import ConfigError, ProvisioningFailure
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig


@pytest.fixture
def identity():
    """Telegram identity with a full profile."""
    return TelegramIdentity(id=42, first_name="Ann", last_name="Lee", photo_url="https://t.me/i/ann.jpg")


@pytest.fixture
def provider():
    """In-memory identity provider."""
    return InMemoryIdentityProvider()


def test_subject_id_is_prefixed():
    """Subjects are keyed tg:<telegram id>."""
    assert subject_id_for(42) == "tg:42"


class TestIdentityProvisioner:
    """Test cases for IdentityProvisioner."""

    @pytest.mark.asyncio
    async def test_creates_missing_account(self, provider, identity):
        """A new Telegram user gets an account."""
        result = await IdentityProvisioner(provider).ensure_account(identity)

        assert result.subject_id == "tg:42"
        assert result.created is True
        assert provider.accounts["tg:42"] == ProviderAccount(
            subject_id="tg:42",
            display_name="Ann Lee",
            photo_url="https://t.me/i/ann.jpg"
        )

    @pytest.mark.asyncio
    async def test_reprovisioning_is_a_no_op(self, provider, identity):
        """The second call creates nothing and raises nothing."""
        provisioner = IdentityProvisioner(provider)

        first = await provisioner.ensure_account(identity)
        second = await provisioner.ensure_account(identity)

        assert first.created is True
        assert second.created is False
        assert provider.create_calls == 1
        assert len(provider.accounts) == 1

    @pytest.mark.asyncio
    async def test_existing_account_not_overwritten(self, provider, identity):
        """Provider-managed profile data is left alone."""
        provider.create_account("tg:42", "Renamed In Console")

        result = await IdentityProvisioner(provider).ensure_account(identity)

        assert result.created is False
        assert provider.accounts["tg:42"].display_name == "Renamed In Console"

    @pytest.mark.asyncio
    async def test_missing_photo_is_absent(self, provider):
        """No photo_url means no photo on the account."""
        await IdentityProvisioner(provider).ensure_account(TelegramIdentity(id=7, first_name="Bo"))

        assert provider.accounts["tg:7"].photo_url is None
        assert provider.accounts["tg:7"].display_name == "Bo"

    @pytest.mark.asyncio
    async def test_lost_creation_race_counts_as_existing(self, identity):
        """A concurrent create resolves to the existing account."""
        mock_provider = MagicMock()
        mock_provider.lookup_account.return_value = None
        mock_provider.create_account.side_effect = AccountAlreadyExists("tg:42")

        result = await IdentityProvisioner(mock_provider).ensure_account(identity)

        assert result.created is False

    @pytest.mark.asyncio
    async def test_lookup_failure_is_fatal(self, identity):
        """Lookup errors other than not-found surface as ProvisioningFailure."""
        mock_provider = MagicMock()
        mock_provider.lookup_account.side_effect = ProvisioningFailure("Account lookup failed")
        metrics = MetricsCollector("test")

        with pytest.raises(ProvisioningFailure):
            await IdentityProvisioner(mock_provider, metrics=metrics).ensure_account(identity)

        mock_provider.create_account.assert_not_called()
        assert metrics.sample_value("accounts_provisioned_total", result="failed") == 1.0

    @pytest.mark.asyncio
    async def test_config_error_is_not_wrapped(self, identity):
        """An unusable provider reports ConfigError."""
        mock_provider = MagicMock()
        mock_provider.lookup_account.side_effect = ConfigError("Identity provider failed to initialize")

        with pytest.raises(ConfigError):
            await IdentityProvisioner(mock_provider).ensure_account(identity)

    @pytest.mark.asyncio
    async def test_timeout_is_provisioning_failure(self, identity):
        """A slow provider becomes ProvisioningFailure."""
        mock_provider = MagicMock()
        mock_provider.lookup_account.side_effect = lambda subject_id: time.sleep(0.5)

        with pytest.raises(ProvisioningFailure) as exc_info:
            await IdentityProvisioner(mock_provider, timeout_seconds=0.05).ensure_account(identity)

        assert exc_info.value.details["operation"] == "lookup_account"

    @pytest.mark.asyncio
    async def test_transient_failure_retried(self, provider, identity):
        """Bounded retries recover from a transient lookup error."""
        calls = []

        def flaky_lookup(subject_id):
            calls.append(subject_id)
            if len(calls) == 1:
                raise ProvisioningFailure("Account lookup failed")
            return None

        provider.lookup_account = flaky_lookup
        provisioner = IdentityProvisioner(
            provider,
            retry_config=RetryConfig(max_attempts=2, base_delay=0, jitter=False)
        )

        result = await provisioner.ensure_account(identity)

        assert result.created is True
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_records_metrics(self, provider, identity):
        """Created and existing outcomes are counted separately."""
        metrics = MetricsCollector("test")
        provisioner = IdentityProvisioner(provider, metrics=metrics)

        await provisioner.ensure_account(identity)
        await provisioner.ensure_account(identity)

        assert metrics.sample_value("accounts_provisioned_total", result="created") == 1.0
        assert metrics.sample_value("accounts_provisioned_total", result="existing") == 1.0
        assert metrics.sample_value("upstream_calls_total", operation="create_account", status="ok") == 1.0
