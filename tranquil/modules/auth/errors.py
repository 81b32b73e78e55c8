"""
Error taxonomy for the token core.

Codec failures (EncodingError, DecodingError) never leave the auth module:
the verifier turns them into rejected VerificationResults. AuthError
subclasses carry the HTTP status the API layer answers with.
"""

from typing import Optional


class TokenError(Exception):
    """Base class for token codec failures."""


class EncodingError(TokenError):
    """Token could not be produced (bad key material, bad expiry, bad payload)."""


class DecodingError(TokenError):
    """Token is malformed, fails its tag/signature, or was not issued by us."""


class AuthError(Exception):
    """Request-scoped authentication failure with an HTTP status."""

    status_code = 401
    default_message = "Authentication failed"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class MalformedRequest(AuthError):
    """Required login fields are missing."""

    status_code = 400
    default_message = "Malformed request"


class Forbidden(AuthError):
    """No credential was presented."""

    status_code = 403
    default_message = "Authentication required: no bearer token provided"


class Unauthorized(AuthError):
    """A credential was presented but is not acceptable."""

    status_code = 401
    default_message = "Authentication failed: invalid credentials"


class UpstreamIdentityFailure(AuthError):
    """
    The external identity exchange rejected the login or failed.

    status_code is 401 when the provider rejected the credentials and 500
    for everything else. The message is always generic.
    """

    status_code = 500
    default_message = "Identity provider unavailable"
