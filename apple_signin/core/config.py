import logging
from enum import StrEnum
from pathlib import Path

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from apple_signin.core.constants import AppleEndpoint
from apple_signin.core.exceptions import AppleSignInConfigurationException
from apple_signin.schemas import AppleSignInOptions


class Environment(StrEnum):
    LOCAL = "local"
    DEV = "dev"
    STG = "stg"
    PRD = "prd"


class Settings(BaseSettings):
    """
    Library settings.

    These parameters can be configured
    with environment variables prefixed with ``APPLE_SIGNIN_``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="APPLE_SIGNIN_",
        env_ignore_empty=False,
        extra="ignore",
    )

    # Current working environment
    current_environment: Environment = Environment.PRD
    log_level: int = logging.INFO
    log_file: Path | None = None

    # Sign in with Apple credentials
    client_id: str | None = None
    team_id: str | None = None
    key_identifier: str | None = None
    private_key: str | None = None
    private_key_path: Path | None = None

    # HTTP
    http_timeout: float = 10.0  # Request timeout in seconds

    # Apple signing keys
    jwks_url: str = AppleEndpoint.KEYS
    jwks_cache_ttl: int = 3600  # Key set cache TTL in seconds

    @computed_field
    @property
    def is_configured(self) -> bool:
        """
        Whether enough credentials are set to build a client.
        """
        return all(
            (
                self.client_id,
                self.team_id,
                self.key_identifier,
                self.private_key or self.private_key_path,
            )
        )

    @property
    def apple_sign_in_options(self) -> AppleSignInOptions:
        """
        Assemble Sign in with Apple options from settings.

        Raises:
            AppleSignInConfigurationException: If a required setting is missing
        """
        missing = [
            name
            for name in ("client_id", "team_id", "key_identifier")
            if not getattr(self, name)
        ]

        if missing:
            raise AppleSignInConfigurationException(
                f"Missing Sign in with Apple settings: {', '.join(missing)}"
            )

        private_key = self.private_key

        # Keys injected through env files often carry escaped newlines
        if private_key is not None:
            private_key = private_key.replace("\\n", "\n")

        return AppleSignInOptions(
            client_id=self.client_id,
            team_id=self.team_id,
            key_identifier=self.key_identifier,
            private_key=private_key,
            private_key_path=self.private_key_path,
        )


settings = Settings()
