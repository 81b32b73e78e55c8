"""
Token Codec - encrypted and signed token primitives.

Two token kinds share the same registered claims (iat, exp, iss, aud):

- encrypted tokens: JWE compact serialization, ``dir`` + ``A128CBC-HS256``
  (confidentiality and integrity). Used for refresh credentials.
- signed tokens: JWS compact serialization, ``HS256`` by default
  (integrity and authenticity only). Used for access credentials.

Decoding checks structure, tag/signature, issuer and audience. It does not
check expiry; that belongs to the verifier.
"""

import base64
import binascii
import json
import re
import time
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional, Type, Union

import jwcrypto.jwk
import jwcrypto.jwt
import jwt
from jwcrypto.common import JWException, base64url_encode

from .errors import DecodingError, EncodingError, TokenError
from .models import AUDIENCE, ISSUER, REGISTERED_CLAIMS

KeyMaterial = Union[str, bytes]
Expiry = Union[str, int, float, timedelta]

ENCRYPTION_HEADER = {"alg": "dir", "enc": "A128CBC-HS256"}
# A128CBC-HS256 takes a 256-bit composite key (128 MAC + 128 AES)
ENCRYPTION_KEY_BYTES = 32
MIN_SIGNING_KEY_BYTES = 32
DEFAULT_SIGNING_ALGORITHM = "HS256"

_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
    "y": 31557600,  # 365.25 days
}
_UNIT_ALIASES = {
    "sec": "s", "secs": "s", "second": "s", "seconds": "s",
    "min": "m", "mins": "m", "minute": "m", "minutes": "m",
    "hr": "h", "hrs": "h", "hour": "h", "hours": "h",
    "day": "d", "days": "d",
    "week": "w", "weeks": "w",
    "yr": "y", "yrs": "y", "year": "y", "years": "y",
}
_DURATION_RE = re.compile(r"^\s*(\d+)\s*([a-zA-Z]+)\s*$")


def parse_expiry(expiry: Expiry) -> int:
    """
    Convert an expiry into whole seconds.

    Accepts a timedelta, a number of seconds, or a duration string such as
    "10y", "1h", "30 minutes".

    Raises:
        EncodingError: If the expiry is not a positive duration
    """
    if isinstance(expiry, bool):
        raise EncodingError("Expiry must be a duration, not a boolean")

    if isinstance(expiry, timedelta):
        seconds = int(expiry.total_seconds())
    elif isinstance(expiry, (int, float)):
        seconds = int(expiry)
    elif isinstance(expiry, str):
        match = _DURATION_RE.match(expiry)
        if not match:
            raise EncodingError(f"Invalid expiry format: {expiry!r}")
        amount, unit = match.groups()
        unit = unit.lower()
        unit = _UNIT_ALIASES.get(unit, unit)
        if unit not in _UNIT_SECONDS:
            raise EncodingError(f"Unknown expiry unit: {unit!r}")
        seconds = int(amount) * _UNIT_SECONDS[unit]
    else:
        raise EncodingError(f"Unsupported expiry type: {type(expiry).__name__}")

    if seconds <= 0:
        raise EncodingError("Expiry must be positive")
    return seconds


def load_key(key: Optional[KeyMaterial], error_cls: Type[TokenError] = EncodingError) -> bytes:
    """
    Turn key material into raw bytes.

    ``str`` is read as base64url (padding optional), ``bytes`` is used as is.
    """
    if key is None:
        raise error_cls("Key material is absent")

    if isinstance(key, (bytes, bytearray)):
        if not key:
            raise error_cls("Key material is absent")
        return bytes(key)

    if isinstance(key, str):
        padded = key.strip() + "=" * (-len(key.strip()) % 4)
        try:
            raw = base64.b64decode(padded, altchars=b"-_", validate=True)
        except (binascii.Error, ValueError) as e:
            raise error_cls("Key material is not valid base64url") from e
        if not raw:
            raise error_cls("Key material is absent")
        return raw

    raise error_cls(f"Unsupported key material type: {type(key).__name__}")


def _encryption_key(key: Optional[KeyMaterial], error_cls: Type[TokenError]) -> jwcrypto.jwk.JWK:
    raw = load_key(key, error_cls)
    if len(raw) != ENCRYPTION_KEY_BYTES:
        raise error_cls(f"Encryption key must be {ENCRYPTION_KEY_BYTES} bytes, got {len(raw)}")
    return jwcrypto.jwk.JWK(kty="oct", k=base64url_encode(raw))


def _signing_key(key: Optional[KeyMaterial], error_cls: Type[TokenError]) -> bytes:
    raw = load_key(key, error_cls)
    if len(raw) < MIN_SIGNING_KEY_BYTES:
        raise error_cls(f"Signing key must be at least {MIN_SIGNING_KEY_BYTES} bytes")
    return raw


def check_key(key: Optional[KeyMaterial]) -> None:
    """
    Validate key material once for both token kinds.

    Raises:
        EncodingError: If the key is absent, not base64url, or not 32 bytes
    """
    _encryption_key(key, EncodingError)
    _signing_key(key, EncodingError)


def _with_temporal_claims(
    payload: Mapping[str, Any],
    expiry: Expiry,
    now: Optional[float],
    issuer: str,
    audience: str,
) -> Dict[str, Any]:
    if not isinstance(payload, Mapping):
        raise EncodingError("Payload must be a mapping")

    issued_at = int(time.time() if now is None else now)
    claims = {k: v for k, v in payload.items() if k not in REGISTERED_CLAIMS}
    claims.update(
        {
            "iat": issued_at,
            "exp": issued_at + parse_expiry(expiry),
            "iss": issuer,
            "aud": audience,
        }
    )
    return claims


def _check_registered_claims(claims: Any, issuer: str, audience: str) -> Dict[str, Any]:
    if not isinstance(claims, dict):
        raise DecodingError("Token payload is not a JSON object")

    for name in REGISTERED_CLAIMS:
        if name not in claims:
            raise DecodingError(f"Token is missing the '{name}' claim")

    if claims["iss"] != issuer:
        raise DecodingError("Token issuer mismatch")
    if claims["aud"] != audience:
        raise DecodingError("Token audience mismatch")
    return claims


def encode(
    payload: Mapping[str, Any],
    key: Optional[KeyMaterial],
    expiry: Expiry,
    now: Optional[float] = None,
    issuer: str = ISSUER,
    audience: str = AUDIENCE,
) -> str:
    """
    Encrypt a payload into a JWE compact token.

    Args:
        payload: Claims to carry; registered claims are overwritten
        key: 32-byte key (raw bytes or base64url string)
        expiry: Lifetime of the token
        now: Issue time in epoch seconds (defaults to the current time)

    Raises:
        EncodingError: On missing/malformed key material, bad expiry or payload
    """
    jwk = _encryption_key(key, EncodingError)
    claims = _with_temporal_claims(payload, expiry, now, issuer, audience)

    try:
        token = jwcrypto.jwt.JWT(header=dict(ENCRYPTION_HEADER), claims=claims)
        token.make_encrypted_token(jwk)
        return token.serialize()
    except (JWException, TypeError, ValueError) as e:
        raise EncodingError(f"Failed to encrypt token: {e}") from e


def decode(
    token: str,
    key: Optional[KeyMaterial],
    issuer: str = ISSUER,
    audience: str = AUDIENCE,
) -> Dict[str, Any]:
    """
    Decrypt a JWE compact token and return its claims.

    Raises:
        DecodingError: If the token is malformed, fails authentication,
            or carries the wrong issuer/audience. Expiry is not checked.
    """
    if not isinstance(token, str) or not token:
        raise DecodingError("Token is empty")

    jwk = _encryption_key(key, DecodingError)

    try:
        parsed = jwcrypto.jwt.JWT(
            jwt=token,
            key=jwk,
            check_claims=False,
            expected_type="JWE",
        )
        claims = json.loads(parsed.claims)
    except (JWException, TypeError, ValueError) as e:
        raise DecodingError(f"Failed to decrypt token: {e}") from e

    return _check_registered_claims(claims, issuer, audience)


def sign(
    payload: Mapping[str, Any],
    key: Optional[KeyMaterial],
    expiry: Expiry,
    now: Optional[float] = None,
    issuer: str = ISSUER,
    audience: str = AUDIENCE,
    algorithm: str = DEFAULT_SIGNING_ALGORITHM,
) -> str:
    """
    Sign a payload into a JWS compact token.

    Raises:
        EncodingError: On missing/malformed key material, bad expiry or payload
    """
    secret = _signing_key(key, EncodingError)
    claims = _with_temporal_claims(payload, expiry, now, issuer, audience)

    try:
        return jwt.encode(claims, secret, algorithm=algorithm)
    except (jwt.PyJWTError, NotImplementedError, TypeError, ValueError) as e:
        raise EncodingError(f"Failed to sign token: {e}") from e


def verify_signature(
    token: str,
    key: Optional[KeyMaterial],
    issuer: str = ISSUER,
    audience: str = AUDIENCE,
    algorithm: str = DEFAULT_SIGNING_ALGORITHM,
) -> Dict[str, Any]:
    """
    Verify a JWS compact token and return its claims.

    Raises:
        DecodingError: If the token is malformed, the signature does not
            verify, or the issuer/audience is wrong. Expiry is not checked.
    """
    if not isinstance(token, str) or not token:
        raise DecodingError("Token is empty")

    secret = _signing_key(key, DecodingError)

    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            issuer=issuer,
            audience=audience,
            options={
                "verify_signature": True,
                "verify_aud": True,
                "verify_iss": True,
                "verify_exp": False,
                "verify_nbf": False,
                "verify_iat": False,
                "require": list(REGISTERED_CLAIMS),
            },
        )
    except jwt.PyJWTError as e:
        raise DecodingError(f"Failed to verify token: {e}") from e

    return _check_registered_claims(claims, issuer, audience)
