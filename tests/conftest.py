"""
Shared pytest fixtures for Tranquil tests.

This module provides common fixtures including:
- Secret key material (a primary and a second, unrelated key)
- Credential issuer/verifier instances
- In-memory catalog and identity exchange doubles
- A FastAPI test client wired to the doubles
"""

import base64
import json
import os
import sys
from typing import Dict, Optional

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tranquil.config.provider import APIConfig, AuthConfig, IdentityExchangeConfig, StorageConfig
from tranquil.modules.auth import AuthFactory, CredentialIssuer, CredentialVerifier
from tranquil.modules.auth.exchange import StaticIdentityExchange
from tranquil.modules.storage import CatalogModule, InMemoryBlobStore

# Fixed instant used wherever a test needs a deterministic issue time
ISSUED_AT = 1_700_000_000

TEST_EMAIL = "user@example.com"
TEST_PASSWORD = "hunter2"
TEST_CAPABILITY = "cap-token-123"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass"
INACTIVE_EMAIL = "gone@example.com"
INACTIVE_PASSWORD = "gone-pass"


def b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def tamper(token: str, segment: int, position: int) -> str:
    """Flip one decoded byte of a compact-serialized token segment."""
    parts = token.split(".")
    data = parts[segment]
    raw = bytearray(base64.urlsafe_b64decode(data + "=" * (-len(data) % 4)))
    raw[position % len(raw)] ^= 0x01
    parts[segment] = b64url(bytes(raw))
    return ".".join(parts)


class StubConfigProvider:
    """In-memory ConfigProvider for tests."""

    def __init__(self, secret_key: str, require_active: bool = True):
        self.secret_key = secret_key
        self.require_active = require_active

    def get_auth_config(self) -> AuthConfig:
        return AuthConfig(
            secret_key=self.secret_key,
            refresh_token_expiry="10y",
            access_token_expiry="1h",
            query_token_param="token",
            require_active_account=self.require_active,
        )

    def get_identity_exchange_config(self) -> IdentityExchangeConfig:
        return IdentityExchangeConfig(url=None, timeout=1.0, token_field="token")

    def get_storage_config(self) -> StorageConfig:
        return StorageConfig(redis_url="redis://localhost:6379/15", prefix="test:")

    def get_api_config(self) -> APIConfig:
        return APIConfig(port=8080, host="127.0.0.1", debug=False, log_level="INFO")


@pytest.fixture
def secret_key() -> str:
    """Base64url-encoded 32-byte key."""
    return b64url(bytes(range(32)))


@pytest.fixture
def other_key() -> str:
    """A second valid key unrelated to secret_key."""
    return b64url(bytes(range(100, 132)))


@pytest.fixture
def login_input() -> Dict[str, str]:
    return {
        "email": TEST_EMAIL,
        "password": TEST_PASSWORD,
        "deviceID": "sisbot-42",
        "deviceAddress": "aa:bb:cc:dd:ee:ff",
    }


@pytest.fixture
def issuer() -> CredentialIssuer:
    return CredentialIssuer()


@pytest.fixture
def verifier() -> CredentialVerifier:
    return CredentialVerifier()


@pytest.fixture
def identity_exchange() -> StaticIdentityExchange:
    return StaticIdentityExchange(
        {
            (TEST_EMAIL, TEST_PASSWORD): TEST_CAPABILITY,
            (ADMIN_EMAIL, ADMIN_PASSWORD): "cap-admin",
            (INACTIVE_EMAIL, INACTIVE_PASSWORD): "cap-inactive",
        }
    )


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    users = [
        {"email": TEST_EMAIL, "password": TEST_PASSWORD, "uuid": "u-1", "is_admin": False, "is_active": True},
        {"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD, "uuid": "u-2", "is_admin": True, "is_active": True},
        {"email": INACTIVE_EMAIL, "password": INACTIVE_PASSWORD, "uuid": "u-3", "is_admin": False, "is_active": False},
    ]
    patterns = [
        {"uuid": "p-1", "name": "Spiral", "date": "2023-01-01"},
        {"uuid": "p-2", "name": "Star", "date": "2023-01-02"},
    ]
    playlists = [
        {
            "uuid": "pl-1",
            "name": "Calm",
            "description": "Slow ones",
            "patterns": ["p-1"],
            "featured_pattern": "p-1",
            "date": "2023-01-03",
        }
    ]
    return InMemoryBlobStore(
        {
            "users.json": json.dumps(users),
            "patterns.json": json.dumps(patterns),
            "playlists.json": json.dumps(playlists),
            "patterns/p-1": "0 0\n1 3.14\n",
        }
    )


@pytest.fixture
def catalog(blob_store) -> CatalogModule:
    return CatalogModule(blob_store)


@pytest.fixture
def credential_service(secret_key, identity_exchange, catalog):
    return AuthFactory.build_for_testing(
        secret_key=secret_key,
        exchange=identity_exchange,
        catalog=catalog,
    )


def make_client(secret_key: str, credential_service, catalog, require_active: bool = True):
    from fastapi.testclient import TestClient

    from tranquil.main import create_app

    app = create_app(
        config_provider=StubConfigProvider(secret_key, require_active=require_active),
        credential_service=credential_service,
        catalog=catalog,
    )
    return TestClient(app)


@pytest.fixture
def client(secret_key, credential_service, catalog):
    return make_client(secret_key, credential_service, catalog)


def bearer(token: Optional[str]) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
