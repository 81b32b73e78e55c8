"""
Credential Issuer.

Builds refresh credentials from login input and wraps an existing refresh
credential plus a capability token into an access credential. No network
calls happen here: checking the login against the identity provider is the
caller's job.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from . import codec
from .errors import EncodingError, MalformedRequest
from .models import (
    CAPABILITY_CLAIM,
    DEVICE_ADDRESS_CLAIM,
    DEVICE_ID_CLAIM,
    EMAIL_CLAIM,
    PASSWORD_CLAIM,
    REFERENCE_CLAIM,
)

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_EXPIRY = "10y"
DEFAULT_ACCESS_EXPIRY = "1h"


class CredentialIssuer:
    """Mints refresh and access credentials."""

    def __init__(
        self,
        refresh_expiry: codec.Expiry = DEFAULT_REFRESH_EXPIRY,
        access_expiry: codec.Expiry = DEFAULT_ACCESS_EXPIRY,
    ):
        # Fail at construction rather than on the first login
        codec.parse_expiry(refresh_expiry)
        codec.parse_expiry(access_expiry)
        self.refresh_expiry = refresh_expiry
        self.access_expiry = access_expiry

    def issue_refresh_credential(
        self,
        login_input: Mapping[str, Any],
        key: Optional[codec.KeyMaterial],
        expiry: Optional[codec.Expiry] = None,
        extensions: Optional[Mapping[str, Any]] = None,
        now: Optional[float] = None,
    ) -> str:
        """
        Encrypt login input into a refresh credential.

        Args:
            login_input: Mapping with email, password, deviceID and
                optionally deviceAddress
            key: Secret key material
            expiry: Lifetime, defaults to the issuer's refresh expiry
            extensions: Extra claims (account flags) carried alongside

        Returns:
            Encoded refresh credential

        Raises:
            MalformedRequest: If email, password or device identity is missing
            EncodingError: If the key material is absent or malformed
        """
        missing = [
            name
            for name in (EMAIL_CLAIM, PASSWORD_CLAIM, DEVICE_ID_CLAIM)
            if not isinstance(login_input.get(name), str) or not login_input.get(name)
        ]
        if missing:
            raise MalformedRequest(f"Malformed request: missing {', '.join(missing)}")

        device_address = login_input.get(DEVICE_ADDRESS_CLAIM) or ""
        if not isinstance(device_address, str):
            raise MalformedRequest("Malformed request: deviceAddress must be a string")

        claims: Dict[str, Any] = dict(extensions or {})
        claims.update(
            {
                EMAIL_CLAIM: login_input[EMAIL_CLAIM],
                PASSWORD_CLAIM: login_input[PASSWORD_CLAIM],
                DEVICE_ID_CLAIM: login_input[DEVICE_ID_CLAIM],
                DEVICE_ADDRESS_CLAIM: device_address,
            }
        )

        token = codec.encode(
            claims, key, self.refresh_expiry if expiry is None else expiry, now=now
        )
        logger.debug(f"Issued refresh credential for {login_input[EMAIL_CLAIM]}")
        return token

    def issue_access_credential(
        self,
        refresh_credential: str,
        external_capability_token: str,
        key: Optional[codec.KeyMaterial],
        expiry: Optional[codec.Expiry] = None,
        now: Optional[float] = None,
    ) -> str:
        """
        Sign an access credential referencing an already verified refresh credential.

        Only the encoded refresh credential is embedded, so the login secret
        stays inside its encrypted envelope.

        Raises:
            EncodingError: If an input is empty or the key material is bad
        """
        if not refresh_credential or not isinstance(refresh_credential, str):
            raise EncodingError("Refresh credential reference is required")
        if not external_capability_token or not isinstance(external_capability_token, str):
            raise EncodingError("External capability token is required")

        claims = {
            CAPABILITY_CLAIM: external_capability_token,
            REFERENCE_CLAIM: refresh_credential,
        }
        return codec.sign(
            claims, key, self.access_expiry if expiry is None else expiry, now=now
        )
