"""
External Identity Exchange.

Trades raw login credentials for a provider capability token. This is the
only network call the token core depends on. It is attempted once per
issuance; failures surface immediately as UpstreamIdentityFailure with a
generic message.
"""

import logging
import secrets
from typing import Dict, Optional, Protocol, Tuple

import httpx

from .errors import UpstreamIdentityFailure

logger = logging.getLogger(__name__)


class IdentityExchange(Protocol):
    """Protocol for identity providers - allows swappable implementations."""

    async def exchange(self, email: str, password: str) -> str:
        """
        Exchange login credentials for a capability token.

        Raises:
            UpstreamIdentityFailure: 401 if the provider rejected the
                credentials, 500 for any other failure
        """
        ...


class HttpIdentityExchange:
    """
    Identity exchange backed by an HTTP login endpoint.

    POSTs ``{"email", "password"}`` as JSON and reads the capability token
    from ``token_field`` of the JSON response.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        token_field: str = "token",
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize identity exchange client.

        Args:
            url: Provider login endpoint
            timeout: Per-call timeout in seconds
            token_field: JSON field holding the capability token
            client: Optional shared AsyncClient (owned by the caller)
        """
        self.url = url
        self.timeout = timeout
        self.token_field = token_field
        self._client = client

    async def exchange(self, email: str, password: str) -> str:
        """Call the provider once and return its capability token."""
        try:
            if self._client is not None:
                response = await self._post(self._client, email, password)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, email, password)
        except httpx.TimeoutException as e:
            logger.warning(f"Identity exchange timed out after {self.timeout}s: {e}")
            raise UpstreamIdentityFailure(status_code=500) from e
        except httpx.HTTPError as e:
            logger.warning(f"Identity exchange transport error: {e}")
            raise UpstreamIdentityFailure(status_code=500) from e

        if response.status_code in (401, 403):
            logger.info(f"Identity provider rejected login for {email}")
            raise UpstreamIdentityFailure("Invalid email or password", status_code=401)

        if response.status_code >= 400:
            logger.warning(f"Identity provider returned {response.status_code}")
            logger.debug(f"Identity provider body: {response.text[:500]}")
            raise UpstreamIdentityFailure(status_code=500)

        try:
            body = response.json()
        except ValueError as e:
            logger.warning("Identity provider returned a non-JSON body")
            raise UpstreamIdentityFailure(status_code=500) from e

        token = body.get(self.token_field) if isinstance(body, dict) else None
        if not isinstance(token, str) or not token:
            logger.warning(f"Identity provider response missing '{self.token_field}'")
            raise UpstreamIdentityFailure(status_code=500)

        return token

    async def _post(self, client: httpx.AsyncClient, email: str, password: str) -> httpx.Response:
        return await client.post(
            self.url,
            json={"email": email, "password": password},
            timeout=self.timeout,
        )


class StaticIdentityExchange:
    """
    In-process identity exchange for local runs and tests.

    Holds a fixed ``{(email, password): capability_token}`` mapping.
    """

    def __init__(self, accounts: Optional[Dict[Tuple[str, str], str]] = None):
        self.accounts = dict(accounts or {})
        self.calls = 0

    async def exchange(self, email: str, password: str) -> str:
        self.calls += 1
        for (known_email, known_password), token in self.accounts.items():
            if known_email != email:
                continue
            if secrets.compare_digest(known_password.encode("utf-8"), password.encode("utf-8")):
                return token
        raise UpstreamIdentityFailure("Invalid email or password", status_code=401)
