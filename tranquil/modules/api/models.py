"""
Tranquil shared API models.

These models define the JSON bodies accepted and returned by the HTTP
layer. Credential payloads are not here; they live in the auth module.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Request Models (API Input)


class LoginRequest(BaseModel):
    """Two-tier login: credentials plus the device being signed in."""

    model_config = ConfigDict(populate_by_name=True)

    # Optional at the schema level so missing fields map to 400, not 422
    email: Optional[str] = Field(None, description="Account email")
    password: Optional[str] = Field(None, description="Account password")
    device_id: Optional[str] = Field(None, alias="deviceID", description="Device identifier")
    device_address: Optional[str] = Field(
        None, alias="deviceAddress", description="Device network/hardware address"
    )


class PasswordLoginRequest(BaseModel):
    """Single-tier login against stored user records."""

    email: Optional[str] = None
    password: Optional[str] = None


class RefreshRequest(BaseModel):
    """Trade a refresh credential for an access credential."""

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: Optional[str] = Field(None, alias="refreshToken")


class Pattern(BaseModel):
    """Catalog pattern record."""

    model_config = ConfigDict(extra="allow")

    uuid: str = Field(..., min_length=1)
    name: str
    date: Optional[str] = None
    popularity: Optional[int] = None
    creator: Optional[str] = None


class Playlist(BaseModel):
    """Catalog playlist record."""

    model_config = ConfigDict(extra="allow")

    uuid: str = Field(..., min_length=1)
    name: str
    description: str = ""
    patterns: List[str] = Field(default_factory=list)
    featured_pattern: Optional[str] = None
    date: Optional[str] = None


class PostPatternRequest(BaseModel):
    """Upload a pattern record together with its raw data."""

    data: str
    pattern: Pattern


# Response Models (API Output)


class RefreshTokenResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(..., alias="refreshToken")


class AccessTokenResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(..., alias="accessToken")


class TokenResponse(BaseModel):
    token: str


class CreatedResponse(BaseModel):
    uuid: str


class ErrorResponse(BaseModel):
    error: str
    status: int
