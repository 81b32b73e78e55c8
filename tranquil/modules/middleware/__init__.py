"""
Authorization Gate Module - Black Box Interface

Purpose: Establish credential trust once per request for FastAPI applications
Interface: AuthorizationGate, create_authorization_gate(), current_identity()
Hidden: Bearer extraction, nested credential verification, error formatting

This is the only place tokens are decoded. Handlers receive the verified
ResolvedIdentity through the current_identity dependency and must not
re-decode tokens themselves.
"""

import logging
import re
from typing import Any, Callable, Dict, List, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from ..auth.errors import Forbidden, Unauthorized
from ..auth.models import ResolvedIdentity
from ..auth.verifier import CredentialVerifier

logger = logging.getLogger(__name__)

INACTIVE_ACCOUNT_MESSAGE = "Authentication failed: account is inactive"

DEFAULT_SKIP_PATHS = {
    "/health": ["GET"],
    "/auth": ["POST"],
    "/auth/login": ["POST"],
    "/auth/refresh": ["POST"],
    "/docs": ["GET"],
    "/openapi.json": ["GET"],
}

# Direct-link downloads cannot set headers
DEFAULT_QUERY_TOKEN_PATHS = [r"^/patterns/[^/]+/data$"]


class AuthorizationGate:
    """
    Bearer-token authorization middleware.

    Order of checks for a protected request:
    1. A bearer token must be present (header, or query parameter on
       download paths) - otherwise 403
    2. The token must resolve to an identity - otherwise 401
    3. The identity's account must be active (when required) - otherwise 401
    The identity is then stored on ``request.state.identity``.

    Which verification step failed is logged but never returned, so callers
    cannot tell a tampered token from an expired one.
    """

    def __init__(
        self,
        verifier: CredentialVerifier,
        key_provider: Callable[[], Any],
        skip_paths: Optional[Dict[str, list]] = None,
        query_token_paths: Optional[List[str]] = None,
        query_param: str = "token",
        require_active: bool = True,
        log_attempts: bool = True,
    ):
        """
        Initialize authorization gate.

        Args:
            verifier: CredentialVerifier used to resolve access credentials
            key_provider: Callable returning the secret key material, called per request
            skip_paths: Dict of {path: [methods]} to skip authorization
            query_token_paths: Regex patterns of paths that accept a query token
            query_param: Name of the query parameter carrying the token
            require_active: Reject identities whose account flag is inactive
            log_attempts: Whether to log authorization attempts
        """
        self.verifier = verifier
        self.key_provider = key_provider
        self.skip_paths = skip_paths or {}
        self.query_token_paths = [re.compile(p) for p in (query_token_paths or [])]
        self.query_param = query_param
        self.require_active = require_active
        self.log_attempts = log_attempts

    def should_skip_auth(self, request: Request) -> bool:
        """Check if authorization should be skipped for this request."""
        path = str(request.url.path)
        method = request.method.upper()

        if path in self.skip_paths:
            allowed_methods = self.skip_paths[path]
            if "*" in allowed_methods or method in allowed_methods:
                return True

        return False

    def allows_query_token(self, request: Request) -> bool:
        path = str(request.url.path)
        return any(pattern.match(path) for pattern in self.query_token_paths)

    def extract_token(self, request: Request) -> Optional[str]:
        """Return the bearer token from the Authorization header or, where allowed, the query."""
        auth_header = request.headers.get("authorization")
        if auth_header:
            scheme, _, token = auth_header.partition(" ")
            if scheme.lower() == "bearer" and token.strip():
                return token.strip()

        if self.allows_query_token(request):
            token = request.query_params.get(self.query_param)
            if token:
                return token

        return None

    def format_error(self, status_code: int, message: str) -> Dict[str, Any]:
        """Format error response body."""
        return {
            "error": message,
            "status": status_code
        }

    def _reject(self, status_code: int, message: str) -> JSONResponse:
        return JSONResponse(status_code=status_code, content=self.format_error(status_code, message))

    async def __call__(self, request: Request, call_next):
        """Process the request through the authorization gate."""
        if self.should_skip_auth(request):
            if self.log_attempts:
                logger.debug(f"Skipping auth for {request.method} {request.url.path}")
            return await call_next(request)

        token = self.extract_token(request)
        if not token:
            if self.log_attempts:
                logger.warning(f"Request to {request.url.path} without bearer token")
            return self._reject(Forbidden.status_code, Forbidden.default_message)

        try:
            result = self.verifier.resolve_identity(token, self.key_provider())
        except Exception as e:
            logger.error(f"Error during authorization: {e}")
            return self._reject(500, "Internal error during authentication")

        if not result.ok:
            if self.log_attempts:
                logger.warning(f"Rejected credential for {request.url.path}: {result.reason}")
            return self._reject(Unauthorized.status_code, Unauthorized.default_message)

        identity = result.value
        if self.require_active and not identity.is_active:
            if self.log_attempts:
                logger.warning(f"Inactive account {identity.email} rejected for {request.url.path}")
            return self._reject(Unauthorized.status_code, INACTIVE_ACCOUNT_MESSAGE)

        if self.log_attempts:
            logger.info(f"Request authorized for {identity.email}")

        request.state.identity = identity
        return await call_next(request)


def create_authorization_gate(
    verifier: CredentialVerifier,
    key_provider: Callable[[], Any],
    skip_paths: Optional[Dict[str, list]] = None,
    query_token_paths: Optional[List[str]] = None,
    query_param: str = "token",
    require_active: bool = True,
) -> AuthorizationGate:
    """
    Factory function to create the authorization gate with the default public paths.

    Args:
        verifier: CredentialVerifier instance
        key_provider: Callable returning the secret key material
        skip_paths: Extra paths to skip {"/path": ["GET", "POST"]}
        query_token_paths: Regex patterns accepting a query token
            (defaults to pattern data downloads)
        query_param: Query parameter name for the token
        require_active: Reject inactive accounts

    Returns:
        Configured AuthorizationGate instance
    """
    default_skip_paths = dict(DEFAULT_SKIP_PATHS)
    if skip_paths:
        default_skip_paths.update(skip_paths)

    return AuthorizationGate(
        verifier=verifier,
        key_provider=key_provider,
        skip_paths=default_skip_paths,
        query_token_paths=(
            query_token_paths if query_token_paths is not None else DEFAULT_QUERY_TOKEN_PATHS
        ),
        query_param=query_param,
        require_active=require_active,
    )


def current_identity(request: Request) -> ResolvedIdentity:
    """FastAPI dependency returning the identity the gate attached to this request."""
    identity = getattr(request.state, "identity", None)
    if not isinstance(identity, ResolvedIdentity):
        raise HTTPException(status_code=Unauthorized.status_code, detail=Unauthorized.default_message)
    return identity


# Module interface - what this module provides
__all__ = [
    "AuthorizationGate",
    "create_authorization_gate",
    "current_identity",
]
