"""
API Module - Black Box Interface

Purpose: HTTP request/response shapes
Interface: pydantic models for the issuance and catalog endpoints
Hidden: Field aliases, validation details

The API module only describes data - it contains no business logic.
"""

from .models import (
    AccessTokenResponse,
    CreatedResponse,
    ErrorResponse,
    LoginRequest,
    PasswordLoginRequest,
    Pattern,
    Playlist,
    PostPatternRequest,
    RefreshRequest,
    RefreshTokenResponse,
    TokenResponse,
)

__all__ = [
    "LoginRequest",
    "PasswordLoginRequest",
    "RefreshRequest",
    "Pattern",
    "Playlist",
    "PostPatternRequest",
    "RefreshTokenResponse",
    "AccessTokenResponse",
    "TokenResponse",
    "CreatedResponse",
    "ErrorResponse",
]
