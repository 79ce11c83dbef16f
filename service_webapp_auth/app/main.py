"""
Telegram Mini App auth service.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import MalformedPayload
from shared.retry import RetryConfig
from .authenticator import TelegramAuthenticator
from .providers import IdentityProvider, create_provider
from .validation.signature import InitDataVerifier

SERVICE_NAME = "webapp-auth"
SERVICE_PORT = 8010


class TelegramAuthRequest(BaseModel):
    """Request body sent by the mini app."""

    model_config = ConfigDict(populate_by_name=True)

    init_data: Optional[str] = Field(default=None, alias="initData")


class WebAppAuthService(BaseService):
    """Auth service implementation."""

    def __init__(self,
                 config: Optional[ServiceConfig] = None,
                 provider: Optional[IdentityProvider] = None):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config)

        # Both raise ConfigError so a broken deployment never starts
        verifier = InitDataVerifier(self.config.require_bot_token(), self.config.max_age_seconds)
        self.provider = provider or create_provider(self.config)

        self.authenticator = TelegramAuthenticator(
            verifier,
            self.provider,
            timeout_seconds=self.config.upstream_timeout_seconds,
            retry_config=RetryConfig(
                max_attempts=self.config.upstream_max_attempts,
                base_delay=self.config.upstream_retry_base_delay
            ),
            metrics=self.metrics
        )

        self.logger.info(
            "Auth service configured",
            identity_provider=self.provider.name,
            max_age_seconds=self.config.max_age_seconds
        )

        self._setup_auth_routes()

    def _setup_auth_routes(self):
        """Set up auth-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Mini App Auth Bridge - Telegram Auth Service",
                "version": "1.0.0"
            }

        async def telegram_auth(request: TelegramAuthRequest):
            """Exchange Telegram initData for a Firebase custom token."""
            if not request.init_data:
                raise MalformedPayload("Missing initData", details={"field": "initData"})

            result = await self.authenticator.authenticate(request.init_data)
            return {"firebaseToken": result.token}

        self.app.add_api_route("/api/telegram-auth", telegram_auth, methods=["POST"])
        self.app.add_api_route("/api/telegramAuth", telegram_auth, methods=["POST"], include_in_schema=False)

    async def _check_dependencies(self):
        """Check auth dependencies."""
        state = self.provider.state()
        if state == "failed":
            raise RuntimeError("identity provider failed to initialize")
        return {"identity_provider": state}


def create_app(config: Optional[ServiceConfig] = None, provider: Optional[IdentityProvider] = None):
    """Create FastAPI application."""
    service = WebAppAuthService(config, provider)
    return service.app


if __name__ == "__main__":
    service = WebAppAuthService()
    service.run()
