"""
Credential payload types for the two-tier token scheme.

Wire claim names live here so the codec, issuer and verifier agree on them.
Claims a payload type does not know about are kept in ``extensions``; for a
refresh credential that is where the account flags travel.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Optional, TypeVar

from .errors import DecodingError

ISSUER = "wcp"
AUDIENCE = "wcp"

REGISTERED_CLAIMS = ("iat", "exp", "iss", "aud")

EMAIL_CLAIM = "email"
PASSWORD_CLAIM = "password"
DEVICE_ID_CLAIM = "deviceID"
DEVICE_ADDRESS_CLAIM = "deviceAddress"
CAPABILITY_CLAIM = "externalCapabilityToken"
REFERENCE_CLAIM = "refreshCredentialReference"

ACTIVE_FLAG = "is_active"
ADMIN_FLAG = "is_admin"


def _require_str(claims: Dict[str, Any], name: str, allow_empty: bool = False) -> str:
    value = claims.get(name)
    if not isinstance(value, str) or (not allow_empty and not value):
        raise DecodingError(f"Claim '{name}' missing or not a string")
    return value


def _require_int(claims: Dict[str, Any], name: str) -> int:
    value = claims.get(name)
    # bool is an int subclass; a boolean exp is malformed
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodingError(f"Claim '{name}' missing or not numeric")
    return int(value)


def _extensions(claims: Dict[str, Any], known: tuple) -> Dict[str, Any]:
    return {k: v for k, v in claims.items() if k not in known and k not in REGISTERED_CLAIMS}


@dataclass(frozen=True)
class RefreshCredentialPayload:
    """Long-lived, encrypted. Carries the raw login secret and device identity."""

    email: str
    password: str
    device_id: str
    device_address: str
    issued_at: int
    expires_at: int
    issuer: str = ISSUER
    audience: str = AUDIENCE
    extensions: Dict[str, Any] = field(default_factory=dict)

    _KNOWN = (EMAIL_CLAIM, PASSWORD_CLAIM, DEVICE_ID_CLAIM, DEVICE_ADDRESS_CLAIM)

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "RefreshCredentialPayload":
        return cls(
            email=_require_str(claims, EMAIL_CLAIM),
            password=_require_str(claims, PASSWORD_CLAIM),
            device_id=_require_str(claims, DEVICE_ID_CLAIM),
            device_address=_require_str(claims, DEVICE_ADDRESS_CLAIM, allow_empty=True),
            issued_at=_require_int(claims, "iat"),
            expires_at=_require_int(claims, "exp"),
            issuer=_require_str(claims, "iss"),
            audience=_require_str(claims, "aud"),
            extensions=_extensions(claims, cls._KNOWN),
        )


@dataclass(frozen=True)
class AccessCredentialPayload:
    """Short-lived, signed. Carries the capability token and the encoded refresh credential."""

    external_capability_token: str
    refresh_credential_reference: str
    issued_at: int
    expires_at: int
    issuer: str = ISSUER
    audience: str = AUDIENCE
    extensions: Dict[str, Any] = field(default_factory=dict)

    _KNOWN = (CAPABILITY_CLAIM, REFERENCE_CLAIM)

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "AccessCredentialPayload":
        return cls(
            external_capability_token=_require_str(claims, CAPABILITY_CLAIM),
            refresh_credential_reference=_require_str(claims, REFERENCE_CLAIM),
            issued_at=_require_int(claims, "iat"),
            expires_at=_require_int(claims, "exp"),
            issuer=_require_str(claims, "iss"),
            audience=_require_str(claims, "aud"),
            extensions=_extensions(claims, cls._KNOWN),
        )


@dataclass(frozen=True)
class ResolvedIdentity:
    """
    Verified caller identity for the duration of one request.

    Built only by the verifier from a fully validated access credential and
    its nested refresh credential. Never serialized into a credential.
    """

    email: str
    password: str
    device_id: str
    device_address: str
    external_capability_token: str
    issued_at: int
    expires_at: int
    extensions: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return bool(self.extensions.get(ACTIVE_FLAG, True))

    @property
    def is_admin(self) -> bool:
        return bool(self.extensions.get(ADMIN_FLAG, False))

    @classmethod
    def merge(
        cls, refresh: RefreshCredentialPayload, access: AccessCredentialPayload
    ) -> "ResolvedIdentity":
        """Refresh fields plus the access credential's capability token, which wins on clashes."""
        extensions = {k: v for k, v in refresh.extensions.items() if k != CAPABILITY_CLAIM}
        return cls(
            email=refresh.email,
            password=refresh.password,
            device_id=refresh.device_id,
            device_address=refresh.device_address,
            external_capability_token=access.external_capability_token,
            issued_at=refresh.issued_at,
            expires_at=refresh.expires_at,
            extensions=extensions,
        )


T = TypeVar("T")


@dataclass(frozen=True)
class VerificationResult(Generic[T]):
    """
    Outcome of one verification step.

    ``reason`` is for server-side logs only and must not be echoed to callers.
    """

    ok: bool
    value: Optional[T] = None
    reason: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "VerificationResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason: str) -> "VerificationResult[T]":
        return cls(ok=False, reason=reason)
