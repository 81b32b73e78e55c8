"""
Credential Service Facade following Black Box Design principles.

This module provides:
- The issuance flows behind the login/refresh endpoints
- A single place where the identity exchange is called
- Key material pulled through a provider on every call
"""

import logging
import secrets
from typing import Any, Callable, Dict, Optional

from .errors import MalformedRequest, Unauthorized
from .exchange import IdentityExchange
from .issuer import CredentialIssuer
from .models import ACTIVE_FLAG, ADMIN_FLAG
from .verifier import CredentialVerifier

logger = logging.getLogger(__name__)

# Single-tier logins carry no device identity
PASSWORD_LOGIN_DEVICE_ID = "web"

INVALID_LOGIN_MESSAGE = "Invalid email or password"


def account_flags(user: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Pick the account flags from a user record for embedding in a refresh credential."""
    if not user:
        return {}
    flags = {}
    for flag in (ACTIVE_FLAG, ADMIN_FLAG):
        if flag in user:
            flags[flag] = bool(user[flag])
    return flags


class CredentialService:
    """
    Facade over issuer, verifier and identity exchange.

    Route handlers only talk to this class; they never touch the codec.
    """

    def __init__(
        self,
        issuer: CredentialIssuer,
        verifier: CredentialVerifier,
        exchange: IdentityExchange,
        key_provider: Callable[[], Any],
        catalog: Optional[Any] = None,
    ):
        """
        Initialize with injected dependencies.

        Args:
            issuer: Credential issuer
            verifier: Credential verifier
            exchange: External identity exchange
            key_provider: Callable returning the secret key material
            catalog: Optional CatalogModule for user records
        """
        self.issuer = issuer
        self.verifier = verifier
        self.exchange = exchange
        self.key_provider = key_provider
        self.catalog = catalog

    async def _lookup_user(self, email: str) -> Optional[Dict[str, Any]]:
        if self.catalog is None:
            return None
        return await self.catalog.find_user(email)

    async def login(
        self,
        email: Optional[str],
        password: Optional[str],
        device_id: Optional[str],
        device_address: Optional[str] = None,
    ) -> str:
        """
        Confirm a login with the identity provider and issue a refresh credential.

        Raises:
            MalformedRequest: Missing email, password or device identity
            UpstreamIdentityFailure: Provider rejected the login or failed
        """
        if not email or not password or not device_id:
            raise MalformedRequest()

        await self.exchange.exchange(email, password)

        user = await self._lookup_user(email)
        token = self.issuer.issue_refresh_credential(
            {
                "email": email,
                "password": password,
                "deviceID": device_id,
                "deviceAddress": device_address or "",
            },
            self.key_provider(),
            extensions=account_flags(user),
        )
        logger.info(f"Issued refresh credential for {email} on device {device_id}")
        return token

    async def refresh(self, refresh_token: Optional[str]) -> str:
        """
        Exchange a valid refresh credential for a new access credential.

        The stored login secret is replayed to the identity provider to get
        a fresh capability token.

        Raises:
            MalformedRequest: No refresh token given
            Unauthorized: Refresh credential invalid or expired
            UpstreamIdentityFailure: Provider rejected the login or failed
        """
        if not refresh_token:
            raise MalformedRequest()

        key = self.key_provider()
        result = self.verifier.verify_refresh_credential(refresh_token, key)
        if not result.ok:
            logger.warning(f"Refresh rejected: {result.reason}")
            raise Unauthorized()

        payload = result.value
        capability_token = await self.exchange.exchange(payload.email, payload.password)
        token = self.issuer.issue_access_credential(refresh_token, capability_token, key)
        logger.info(f"Issued access credential for {payload.email}")
        return token

    async def password_login(self, email: Optional[str], password: Optional[str]) -> str:
        """
        Single-tier login against the stored user records.

        Issues a refresh-tier credential that can be traded at the refresh
        endpoint like any other.

        Raises:
            MalformedRequest: Missing email or password
            Unauthorized: Unknown email or wrong password
        """
        if not email or not password:
            raise MalformedRequest()

        user = await self._lookup_user(email)
        stored = user.get("password") if user else None
        if not isinstance(stored, str) or not secrets.compare_digest(
            stored.encode("utf-8"), password.encode("utf-8")
        ):
            logger.warning(f"Password login failed for {email}")
            raise Unauthorized(INVALID_LOGIN_MESSAGE)

        return self.issuer.issue_refresh_credential(
            {
                "email": email,
                "password": password,
                "deviceID": PASSWORD_LOGIN_DEVICE_ID,
                "deviceAddress": "",
            },
            self.key_provider(),
            extensions=account_flags(user),
        )
