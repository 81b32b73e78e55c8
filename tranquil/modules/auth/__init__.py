"""
Authentication Module - Black Box Interface

Purpose: Issue and verify the two-tier bearer credentials
Interface: CredentialService, CredentialIssuer, CredentialVerifier, AuthFactory
Hidden: JWE/JWS formats, claim names, key handling

Refresh credentials are encrypted (they carry the login secret); access
credentials are signed and reference the refresh credential they came from.
"""

from .errors import (
    AuthError,
    DecodingError,
    EncodingError,
    Forbidden,
    MalformedRequest,
    TokenError,
    Unauthorized,
    UpstreamIdentityFailure,
)
from .factory import AuthFactory
from .issuer import CredentialIssuer
from .models import (
    AccessCredentialPayload,
    RefreshCredentialPayload,
    ResolvedIdentity,
    VerificationResult,
)
from .service import CredentialService
from .verifier import CredentialVerifier

__all__ = [
    "AuthFactory",
    "CredentialService",
    "CredentialIssuer",
    "CredentialVerifier",
    "AccessCredentialPayload",
    "RefreshCredentialPayload",
    "ResolvedIdentity",
    "VerificationResult",
    "AuthError",
    "TokenError",
    "EncodingError",
    "DecodingError",
    "MalformedRequest",
    "Forbidden",
    "Unauthorized",
    "UpstreamIdentityFailure",
]
