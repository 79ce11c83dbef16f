"""
Tests for the auth service HTTP surface.
"""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_webapp_auth.app.main import create_app
from service_webapp_auth.app.providers.memory import InMemoryIdentityProvider
from shared.config import get_config
from shared.errors import ConfigError, ProvisioningFailure
from shared.test_helpers import TEST_BOT_TOKEN, create_init_data, create_test_user


def make_config(**overrides):
    settings = {"bot_token": TEST_BOT_TOKEN, "identity_provider": "memory", "_env_file": None}
    settings.update(overrides)
    return get_config("webapp-auth", 8010, **settings)


@pytest.fixture
def provider():
    """In-memory identity provider."""
    return InMemoryIdentityProvider()


@pytest.fixture
def client(provider):
    """Create test client."""
    app = create_app(make_config(), provider)
    return TestClient(app)


def test_root_endpoint(client):
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "webapp-auth"
    assert data["version"] == "1.0.0"


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "webapp-auth"
    assert data["status"] == "ok"
    assert data["dependencies"] == {"identity_provider": "ready"}


def test_health_check_reports_failed_provider():
    """A provider that failed to initialize makes the service unhealthy."""
    failed = InMemoryIdentityProvider()
    failed.state = lambda: "failed"
    client = TestClient(create_app(make_config(), failed))

    response = client.get("/health")

    assert response.status_code == 503


def test_metrics_endpoint(client):
    """Prometheus exposition is served."""
    client.get("/")
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "http_requests_total" in response.text


def test_telegram_auth_success(client, provider):
    """Valid initData returns a firebaseToken."""
    response = client.post("/api/telegram-auth", json={"initData": create_init_data(create_test_user(user_id=42))})

    assert response.status_code == 200
    data = response.json()
    assert data["firebaseToken"].startswith("memory.tg:42.")
    assert "tg:42" in provider.accounts


def test_telegram_auth_alias_route(client):
    """The camelCase route serves the same exchange."""
    response = client.post("/api/telegramAuth", json={"initData": create_init_data(create_test_user())})

    assert response.status_code == 200
    assert "firebaseToken" in response.json()


def test_request_id_is_echoed(client):
    """X-Request-ID is propagated to the response and error body."""
    response = client.post("/api/telegram-auth", json={"initData": ""}, headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"
    assert response.json()["request_id"] == "req-123"


@pytest.mark.parametrize("body", [{}, {"initData": ""}, {"initData": None}])
def test_missing_init_data(client, body):
    """Missing initData is a 400."""
    response = client.post("/api/telegram-auth", json=body)

    assert response.status_code == 400
    assert response.json()["code"] == "MALFORMED_PAYLOAD"


def test_invalid_json_body(client):
    """A body that is not JSON is a 400."""
    response = client.post(
        "/api/telegram-auth",
        content="initData=abc",
        headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "MALFORMED_PAYLOAD"


def test_get_not_allowed(client):
    """Only POST is accepted."""
    response = client.get("/api/telegram-auth")

    assert response.status_code == 405


def test_missing_hash(client):
    """initData without hash is a 400 MISSING_SIGNATURE."""
    response = client.post("/api/telegram-auth", json={"initData": "auth_date=1&user=%7B%7D"})

    assert response.status_code == 400
    assert response.json()["code"] == "MISSING_SIGNATURE"


def test_forged_signature(client, provider):
    """initData signed with another bot token is a 403."""
    forged = create_init_data(create_test_user(), bot_token="654321:OTHER-BOT")

    response = client.post("/api/telegram-auth", json={"initData": forged})

    assert response.status_code == 403
    data = response.json()
    assert data["code"] == "SIGNATURE_MISMATCH"
    assert TEST_BOT_TOKEN not in response.text
    assert provider.accounts == {}


def test_missing_user_field(client, provider):
    """A signed payload without user is a 400 and never provisions."""
    response = client.post("/api/telegram-auth", json={"initData": create_init_data(user=None)})

    assert response.status_code == 400
    assert response.json()["code"] == "MISSING_USER_FIELD"
    assert provider.create_calls == 0


def test_expired_payload():
    """Stale initData is a 401 when a max age is configured."""
    client = TestClient(create_app(make_config(max_age_seconds=60), InMemoryIdentityProvider()))

    response = client.post(
        "/api/telegram-auth",
        json={"initData": create_init_data(create_test_user(), auth_date=1)}
    )

    assert response.status_code == 401
    assert response.json()["code"] == "EXPIRED_PAYLOAD"


def test_provisioning_failure(provider):
    """Provider failures are a 500 distinct from signature errors."""
    provider.lookup_account = MagicMock(side_effect=ProvisioningFailure("Account lookup failed"))
    client = TestClient(create_app(make_config(), provider))

    response = client.post("/api/telegram-auth", json={"initData": create_init_data(create_test_user())})

    assert response.status_code == 500
    assert response.json()["code"] == "PROVISIONING_FAILURE"


@pytest.mark.parametrize("bot_token", [None, "", "   "])
def test_missing_bot_token_fails_at_startup(provider, bot_token):
    """The service refuses to start without a bot token."""
    with pytest.raises(ConfigError) as exc_info:
        create_app(make_config(bot_token=bot_token), provider)

    assert exc_info.value.code == "CONFIG_ERROR"


def test_missing_firebase_credentials_fails_at_startup():
    """Selecting Firebase without credentials fails at startup."""
    with pytest.raises(ConfigError):
        create_app(make_config(identity_provider="firebase"))


def test_unknown_provider_fails_at_startup():
    """An unknown provider name is a ConfigError."""
    with pytest.raises(ConfigError):
        create_app(make_config(identity_provider="ldap"))


def test_unparseable_firebase_key_fails_at_startup():
    """A garbled Firebase private key is rejected before serving requests."""
    config = make_config(
        identity_provider="firebase",
        firebase_project_id="demo-project",
        firebase_client_email="svc@demo-project.iam.gserviceaccount.com",
        firebase_private_key="not a pem",
    )

    with pytest.raises(ConfigError):
        create_app(config)
