"""
Authentication Factory following Black Box Design principles.

This factory:
- Constructs the credential stack based on configuration
- Wires dependencies together
- Returns only the service facade (hiding implementation)
"""

import logging
from typing import Any, Callable, Optional

import httpx

from .exchange import HttpIdentityExchange, IdentityExchange, StaticIdentityExchange
from .issuer import CredentialIssuer
from .service import CredentialService
from .verifier import CredentialVerifier
from ...config.provider import ConfigProvider

logger = logging.getLogger(__name__)


class AuthFactory:
    """
    Factory for building the credential stack.

    This is the composition root that:
    - Creates issuer, verifier and identity exchange
    - Wires them together via dependency injection
    - Returns only the public interface
    """

    @staticmethod
    def build_exchange(
        config_provider: ConfigProvider,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> IdentityExchange:
        """Pick the identity exchange implementation from configuration."""
        exchange_config = config_provider.get_identity_exchange_config()

        if exchange_config.is_configured:
            logger.info(f"Using identity exchange at {exchange_config.url}")
            return HttpIdentityExchange(
                url=exchange_config.url,
                timeout=exchange_config.timeout,
                token_field=exchange_config.token_field,
                client=http_client,
            )

        logger.warning("IDENTITY_EXCHANGE_URL not set - all logins will be rejected")
        return StaticIdentityExchange()

    @staticmethod
    def build(
        config_provider: ConfigProvider,
        catalog: Optional[Any] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> CredentialService:
        """
        Build the complete credential stack.

        Args:
            config_provider: Configuration provider
            catalog: Optional CatalogModule for user records
            http_client: Optional shared AsyncClient for the identity exchange

        Returns:
            CredentialService facade (hides all implementation details)
        """
        auth_config = config_provider.get_auth_config()

        # The key is looked up per call; derived key material is never cached
        def key_provider() -> str:
            return config_provider.get_auth_config().secret_key

        issuer = CredentialIssuer(
            refresh_expiry=auth_config.refresh_token_expiry,
            access_expiry=auth_config.access_token_expiry,
        )

        return CredentialService(
            issuer=issuer,
            verifier=CredentialVerifier(),
            exchange=AuthFactory.build_exchange(config_provider, http_client),
            key_provider=key_provider,
            catalog=catalog,
        )

    @staticmethod
    def build_for_testing(
        secret_key: Any,
        exchange: Optional[IdentityExchange] = None,
        catalog: Optional[Any] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> CredentialService:
        """
        Build the credential stack for testing with injected dependencies.

        Args:
            secret_key: Key material used for every token
            exchange: Identity exchange double
            catalog: Optional CatalogModule
            clock: Optional clock for the verifier

        Returns:
            CredentialService for testing
        """
        verifier = CredentialVerifier(clock=clock) if clock else CredentialVerifier()
        return CredentialService(
            issuer=CredentialIssuer(),
            verifier=verifier,
            exchange=exchange or StaticIdentityExchange(),
            key_provider=lambda: secret_key,
            catalog=catalog,
        )
