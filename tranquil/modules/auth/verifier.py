"""
Credential Verifier.

Every step returns a VerificationResult instead of raising. The chain for an
access credential is:

    received -> structurally valid -> signature valid -> not expired
             -> nested refresh credential valid -> resolved

Any failed step ends the chain; partial results are never returned.
"""

import time
from typing import Callable, Optional

from . import codec
from .errors import DecodingError
from .models import (
    AccessCredentialPayload,
    RefreshCredentialPayload,
    ResolvedIdentity,
    VerificationResult,
)


class CredentialVerifier:
    """
    Validates refresh and access credentials and resolves caller identity.

    The clock is injectable so expiry boundaries can be tested without
    sleeping; callers may also pass ``now`` explicitly.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock

    def _now(self, now: Optional[float]) -> float:
        return self.clock() if now is None else now

    def verify_refresh_credential(
        self,
        token: str,
        key: Optional[codec.KeyMaterial],
        now: Optional[float] = None,
    ) -> VerificationResult[RefreshCredentialPayload]:
        """Decrypt a refresh credential and reject it once expired."""
        try:
            payload = RefreshCredentialPayload.from_claims(codec.decode(token, key))
        except DecodingError as e:
            return VerificationResult.failure(f"refresh credential invalid: {e}")

        if self._now(now) > payload.expires_at:
            return VerificationResult.failure("refresh credential expired")

        return VerificationResult.success(payload)

    def verify_access_credential(
        self,
        token: str,
        key: Optional[codec.KeyMaterial],
        now: Optional[float] = None,
    ) -> VerificationResult[AccessCredentialPayload]:
        """Verify an access credential's signature and reject it once expired."""
        try:
            payload = AccessCredentialPayload.from_claims(codec.verify_signature(token, key))
        except DecodingError as e:
            return VerificationResult.failure(f"access credential invalid: {e}")

        if self._now(now) > payload.expires_at:
            return VerificationResult.failure("access credential expired")

        return VerificationResult.success(payload)

    def resolve_identity(
        self,
        access_token: str,
        key: Optional[codec.KeyMaterial],
        now: Optional[float] = None,
    ) -> VerificationResult[ResolvedIdentity]:
        """
        Fully validate an access credential and the refresh credential it references.

        Both checks use the same ``now`` so a single request sees one clock.
        """
        now = self._now(now)

        access = self.verify_access_credential(access_token, key, now)
        if not access.ok:
            return VerificationResult.failure(access.reason)

        refresh = self.verify_refresh_credential(
            access.value.refresh_credential_reference, key, now
        )
        if not refresh.ok:
            return VerificationResult.failure(f"nested {refresh.reason}")

        return VerificationResult.success(ResolvedIdentity.merge(refresh.value, access.value))
