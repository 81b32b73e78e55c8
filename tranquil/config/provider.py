"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass
class AuthConfig:
    """Token core configuration."""
    secret_key: str
    refresh_token_expiry: str
    access_token_expiry: str
    query_token_param: str
    require_active_account: bool


@dataclass
class IdentityExchangeConfig:
    """External identity provider configuration."""
    url: Optional[str]
    timeout: float
    token_field: str

    @property
    def is_configured(self) -> bool:
        """Check if an identity provider endpoint is set."""
        return bool(self.url)


@dataclass
class StorageConfig:
    """Blob storage configuration."""
    redis_url: str
    prefix: str


@dataclass
class APIConfig:
    """API configuration."""
    port: int
    host: str
    debug: bool
    log_level: str
    auth_log_level: Optional[str] = None


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_auth_config(self) -> AuthConfig:
        """Get token core configuration."""
        ...

    def get_identity_exchange_config(self) -> IdentityExchangeConfig:
        """Get identity provider configuration."""
        ...

    def get_storage_config(self) -> StorageConfig:
        """Get blob storage configuration."""
        ...

    def get_api_config(self) -> APIConfig:
        """Get API configuration."""
        ...


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_auth_config(self) -> AuthConfig:
        """Get token core configuration from environment variables."""
        # No default secret - tokens minted with a guessable key are forgeable
        secret_key = os.getenv("SECRET_KEY")
        if not secret_key:
            raise ValueError(
                "SECRET_KEY environment variable is required. "
                "Set it to a base64url-encoded 32-byte key."
            )

        return AuthConfig(
            secret_key=secret_key,
            refresh_token_expiry=os.getenv("REFRESH_TOKEN_EXPIRY", "10y"),
            access_token_expiry=os.getenv("ACCESS_TOKEN_EXPIRY", "1h"),
            query_token_param=os.getenv("QUERY_TOKEN_PARAM", "token"),
            require_active_account=os.getenv("REQUIRE_ACTIVE_ACCOUNT", "true").lower() == "true",
        )

    def get_identity_exchange_config(self) -> IdentityExchangeConfig:
        """Get identity provider configuration from environment variables."""
        return IdentityExchangeConfig(
            url=os.getenv("IDENTITY_EXCHANGE_URL") or None,
            timeout=float(os.getenv("IDENTITY_EXCHANGE_TIMEOUT", "10")),
            token_field=os.getenv("IDENTITY_EXCHANGE_TOKEN_FIELD", "token"),
        )

    def get_storage_config(self) -> StorageConfig:
        """Get blob storage configuration from environment variables."""
        return StorageConfig(
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            prefix=os.getenv("STORAGE_PREFIX", "tranquil:blob:"),
        )

    def get_api_config(self) -> APIConfig:
        """Get API configuration from environment variables."""
        return APIConfig(
            port=int(os.getenv("API_PORT", "8080")),
            host=os.getenv("API_HOST", "0.0.0.0"),
            debug=os.getenv("API_DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            auth_log_level=(os.getenv("AUTH_LOG_LEVEL") or "").upper() or None,
        )
