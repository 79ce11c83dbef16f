"""
Firebase Authentication adapter.

Uses the Firebase Admin SDK to look up and create users and to mint custom
tokens. The service account key is parsed at startup. The SDK app is
created lazily, once per holder, on first use.
"""

import base64
import json
import threading
from enum import Enum
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import auth, credentials
from firebase_admin.exceptions import FirebaseError
from google.auth.exceptions import GoogleAuthError

from shared.config import BaseConfig
from shared.errors import ConfigError, ProvisioningFailure, UpstreamIssuanceFailure
from shared.logging import get_logger
from .base import AccountAlreadyExists, IdentityProvider, ProviderAccount

APP_NAME = "webapp-auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"
REQUIRED_ACCOUNT_KEYS = ("project_id", "client_email", "private_key")

# Credential refresh and transport errors are raised by google-auth unwrapped
PROVIDER_ERRORS = (FirebaseError, GoogleAuthError, ValueError)

logger = get_logger("webapp_auth.firebase")


class ProviderState(Enum):
    """Initialization state of the Firebase app."""
    UNCONFIGURED = "unconfigured"
    READY = "ready"
    FAILED = "failed"


def load_service_account_info(config: BaseConfig) -> Dict[str, Any]:
    """Build service account info from configuration.

    A base64 encoded service account JSON takes precedence over the discrete
    FIREBASE_PROJECT_ID / FIREBASE_CLIENT_EMAIL / FIREBASE_PRIVATE_KEY
    variables.
    """
    if config.firebase_service_account_json_base64:
        encoded = config.firebase_service_account_json_base64.get_secret_value()
        try:
            info = json.loads(base64.b64decode(encoded, validate=True).decode("utf-8"))
        except ValueError as e:
            raise ConfigError("Firebase service account JSON could not be decoded") from e
        if not isinstance(info, dict):
            raise ConfigError("Firebase service account JSON is not an object")
        missing = [key for key in REQUIRED_ACCOUNT_KEYS if not info.get(key)]
        if missing:
            raise ConfigError("Firebase service account JSON is incomplete", details={"missing": missing})
        info.setdefault("type", "service_account")
        info.setdefault("token_uri", TOKEN_URI)
        return info

    private_key = config.firebase_private_key.get_secret_value() if config.firebase_private_key else ""
    discrete = {
        "FIREBASE_PROJECT_ID": config.firebase_project_id,
        "FIREBASE_CLIENT_EMAIL": config.firebase_client_email,
        "FIREBASE_PRIVATE_KEY": private_key,
    }
    missing = [name for name, value in discrete.items() if not value]
    if missing:
        raise ConfigError("Firebase credentials are not configured", details={"missing": missing})

    return {
        "type": "service_account",
        "project_id": config.firebase_project_id,
        "client_email": config.firebase_client_email,
        # Hosting dashboards store the PEM with literal \n sequences
        "private_key": private_key.replace("\\n", "\n"),
        "token_uri": TOKEN_URI,
    }


def load_credential(service_account_info: Dict[str, Any]) -> credentials.Certificate:
    """Parse the service account key. No network access is needed."""
    try:
        return credentials.Certificate(service_account_info)
    except ValueError as e:
        logger.error("Firebase service account rejected", error_type=type(e).__name__)
        raise ConfigError("Firebase service account key could not be parsed") from e


class FirebaseAppHolder:
    """Creates the Firebase app at most once and remembers failures."""

    def __init__(self, credential: credentials.Base, app_name: str = APP_NAME):
        self._credential = credential
        self._app_name = app_name
        self._lock = threading.Lock()
        self._app: Optional[firebase_admin.App] = None
        self._state = ProviderState.UNCONFIGURED

    def __repr__(self) -> str:
        return f"FirebaseAppHolder(app_name={self._app_name!r}, state={self._state.value!r})"

    @property
    def state(self) -> ProviderState:
        return self._state

    def get_app(self) -> firebase_admin.App:
        """Return the Firebase app, initializing it on first call."""
        if self._state is ProviderState.READY:
            return self._app

        with self._lock:
            if self._state is ProviderState.READY:
                return self._app
            if self._state is ProviderState.FAILED:
                raise ConfigError("Identity provider failed to initialize")

            try:
                try:
                    app = firebase_admin.get_app(self._app_name)
                except ValueError:
                    app = firebase_admin.initialize_app(
                        self._credential,
                        name=self._app_name
                    )
            except ValueError as e:
                self._state = ProviderState.FAILED
                logger.error("Firebase initialization failed", error_type=type(e).__name__)
                raise ConfigError("Identity provider failed to initialize") from e

            self._app = app
            self._state = ProviderState.READY
            logger.info("Firebase app initialized", app_name=self._app_name)
            return app


class FirebaseIdentityProvider(IdentityProvider):
    """IdentityProvider backed by Firebase Authentication."""

    name = "firebase"

    def __init__(self, app_holder: FirebaseAppHolder):
        self.app_holder = app_holder

    @classmethod
    def from_config(cls, config: BaseConfig) -> "FirebaseIdentityProvider":
        """Parse credentials now so a bad deployment fails at startup."""
        return cls(FirebaseAppHolder(load_credential(load_service_account_info(config))))

    def state(self) -> str:
        return self.app_holder.state.value

    def lookup_account(self, subject_id: str) -> Optional[ProviderAccount]:
        app = self.app_holder.get_app()
        try:
            user = auth.get_user(subject_id, app=app)
        except auth.UserNotFoundError:
            return None
        except PROVIDER_ERRORS as e:
            raise ProvisioningFailure(
                "Account lookup failed",
                details={"operation": "lookup", "provider_code": _provider_code(e)}
            ) from e

        return ProviderAccount(
            subject_id=user.uid,
            display_name=user.display_name,
            photo_url=user.photo_url
        )

    def create_account(self,
                       subject_id: str,
                       display_name: str,
                       photo_url: Optional[str] = None) -> ProviderAccount:
        app = self.app_holder.get_app()
        try:
            user = auth.create_user(
                uid=subject_id,
                display_name=display_name,
                photo_url=photo_url or None,
                app=app
            )
        except auth.UidAlreadyExistsError as e:
            raise AccountAlreadyExists(subject_id) from e
        except PROVIDER_ERRORS as e:
            raise ProvisioningFailure(
                "Account creation failed",
                details={"operation": "create", "provider_code": _provider_code(e)}
            ) from e

        return ProviderAccount(
            subject_id=user.uid,
            display_name=user.display_name,
            photo_url=user.photo_url
        )

    def issue_token(self, subject_id: str, claims: Optional[Dict[str, Any]] = None) -> str:
        app = self.app_holder.get_app()
        try:
            token = auth.create_custom_token(subject_id, developer_claims=claims, app=app)
        except PROVIDER_ERRORS as e:
            raise UpstreamIssuanceFailure(
                "Custom token creation failed",
                details={"provider_code": _provider_code(e)}
            ) from e

        return token.decode("utf-8") if isinstance(token, bytes) else token


def _provider_code(error: Exception) -> str:
    code = getattr(error, "code", None)
    return str(code) if code else type(error).__name__
