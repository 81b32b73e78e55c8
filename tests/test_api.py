"""
End-to-end tests for the HTTP API using in-memory doubles.
"""

import json

import pytest

from conftest import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    INACTIVE_EMAIL,
    INACTIVE_PASSWORD,
    TEST_CAPABILITY,
    TEST_EMAIL,
    TEST_PASSWORD,
    StubConfigProvider,
    b64url,
    bearer,
    make_client,
)
from tranquil.main import create_app
from tranquil.modules.auth import AuthFactory, codec
from tranquil.modules.auth.errors import EncodingError
from tranquil.modules.storage import CatalogModule, InMemoryBlobStore, StorageWriteError


def login(client, email=TEST_EMAIL, password=TEST_PASSWORD, device="sisbot-42"):
    response = client.post(
        "/auth/login",
        json={"email": email, "password": password, "deviceID": device, "deviceAddress": "aa:bb"},
    )
    assert response.status_code == 200, response.text
    return response.json()["refreshToken"]


def access_for(client, **kwargs):
    refresh = login(client, **kwargs)
    response = client.post("/auth/refresh", json={"refreshToken": refresh})
    assert response.status_code == 200, response.text
    return response.json()["accessToken"]


def test_health_is_public(client):
    """Test the health check needs no token."""
    assert client.get("/health").json() == {"status": "ok"}


def test_login_returns_refresh_token(client, secret_key, identity_exchange):
    """Test login confirms with the provider and returns an encrypted refresh credential."""
    refresh = login(client)
    claims = codec.decode(refresh, secret_key)

    assert claims["email"] == TEST_EMAIL
    assert claims["deviceID"] == "sisbot-42"
    assert claims["is_active"] is True
    assert claims["is_admin"] is False
    assert identity_exchange.calls == 1


@pytest.mark.parametrize(
    "body",
    [
        {"password": TEST_PASSWORD, "deviceID": "d"},
        {"email": TEST_EMAIL, "deviceID": "d"},
        {"email": TEST_EMAIL, "password": TEST_PASSWORD},
        {},
    ],
)
def test_login_missing_fields_is_400(client, body, identity_exchange):
    """Test missing login fields give 400 without calling the provider."""
    response = client.post("/auth/login", json=body)

    assert response.status_code == 400
    assert response.json()["error"] == "Malformed request"
    assert identity_exchange.calls == 0


def test_login_non_json_body_is_400(client):
    """Test an unparseable body is a malformed request."""
    response = client.post(
        "/auth/login", content="not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400


def test_login_rejected_by_provider_is_401(client):
    """Test provider rejection surfaces as a generic 401."""
    response = client.post(
        "/auth/login", json={"email": TEST_EMAIL, "password": "wrong", "deviceID": "d"}
    )

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid email or password"


def test_refresh_returns_signed_access_token(client, secret_key):
    """Test refresh replays the login to the provider and signs an access credential."""
    refresh = login(client)

    response = client.post("/auth/refresh", json={"refreshToken": refresh})

    assert response.status_code == 200
    claims = codec.verify_signature(response.json()["accessToken"], secret_key)
    assert claims["externalCapabilityToken"] == TEST_CAPABILITY
    assert claims["refreshCredentialReference"] == refresh


def test_refresh_with_garbage_is_401(client):
    """Test an invalid refresh credential is refused."""
    response = client.post("/auth/refresh", json={"refreshToken": "garbage"})
    assert response.status_code == 401


def test_refresh_with_access_token_is_401(client):
    """Test an access credential cannot be used as a refresh credential."""
    access = access_for(client)
    response = client.post("/auth/refresh", json={"refreshToken": access})
    assert response.status_code == 401


def test_refresh_missing_token_is_400(client):
    """Test an empty refresh body is a malformed request."""
    assert client.post("/auth/refresh", json={}).status_code == 400


def test_password_login_single_tier(client, secret_key):
    """Test the single-tier login checks stored users and issues a refresh-tier token."""
    response = client.post("/auth", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})

    assert response.status_code == 200
    claims = codec.decode(response.json()["token"], secret_key)
    assert claims["email"] == ADMIN_EMAIL
    assert claims["is_admin"] is True

    # The single-tier token trades for an access credential like any other
    refreshed = client.post("/auth/refresh", json={"refreshToken": response.json()["token"]})
    assert refreshed.status_code == 200


@pytest.mark.parametrize(
    "email,password",
    [(TEST_EMAIL, "wrong"), ("nobody@example.com", "pw")],
)
def test_password_login_bad_credentials(client, email, password):
    """Test unknown users and wrong passwords get the same 401."""
    response = client.post("/auth", json={"email": email, "password": password})

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid email or password"


def test_password_login_missing_fields_is_400(client):
    """Test single-tier login requires both fields."""
    assert client.post("/auth", json={"email": TEST_EMAIL}).status_code == 400


def test_catalog_requires_token(client):
    """Test catalog routes are gated: 403 without a token, 401 with a bad one."""
    assert client.get("/patterns").status_code == 403
    assert client.get("/patterns", headers=bearer("garbage")).status_code == 401


def test_refresh_token_is_not_accepted_by_gate(client):
    """Test the gate only accepts access credentials."""
    refresh = login(client)
    assert client.get("/patterns", headers=bearer(refresh)).status_code == 401


def test_list_and_get_patterns(client):
    """Test pattern listing and lookup with a valid access credential."""
    headers = bearer(access_for(client))

    listing = client.get("/patterns", headers=headers)
    assert listing.status_code == 200
    assert [p["uuid"] for p in listing.json()] == ["p-1", "p-2"]

    detail = client.get("/patterns/p-2", headers=headers)
    assert detail.status_code == 200
    assert detail.json()["name"] == "Star"
    assert detail.headers["Cache-Control"] == "max-age=31536000"

    missing = client.get("/patterns/nope", headers=headers)
    assert missing.status_code == 404


def test_pattern_data_download_with_query_token(client):
    """Test raw pattern data can be fetched with the token in the query string."""
    token = access_for(client)

    response = client.get("/patterns/p-1/data", params={"token": token})

    assert response.status_code == 200
    assert response.text == "0 0\n1 3.14\n"
    assert response.headers["content-type"].startswith("text/plain")

    assert client.get("/patterns/p-9/data", params={"token": token}).status_code == 404


def test_non_admin_cannot_post_pattern(client, blob_store):
    """Test pattern uploads require the admin flag."""
    response = client.post(
        "/patterns",
        headers=bearer(access_for(client)),
        json={"data": "x", "pattern": {"uuid": "p-3", "name": "New"}},
    )

    assert response.status_code == 403
    assert "patterns/p-3" not in blob_store.objects


def test_admin_posts_pattern(client, blob_store):
    """Test an admin upload stores data and prepends to the index without duplicates."""
    headers = bearer(access_for(client, email=ADMIN_EMAIL, password=ADMIN_PASSWORD))

    response = client.post(
        "/patterns",
        headers=headers,
        json={"data": "1 1\n", "pattern": {"uuid": "p-2", "name": "Star v2"}},
    )

    assert response.status_code == 200
    assert response.json() == {"uuid": "p-2"}
    assert blob_store.objects["patterns/p-2"] == "1 1\n"
    index = json.loads(blob_store.objects["patterns.json"])
    assert [p["uuid"] for p in index] == ["p-2", "p-1"]
    assert index[0]["name"] == "Star v2"


def test_playlists(client, blob_store):
    """Test playlist listing, lookup and admin-only creation."""
    user_headers = bearer(access_for(client))
    admin_headers = bearer(access_for(client, email=ADMIN_EMAIL, password=ADMIN_PASSWORD))

    assert [p["uuid"] for p in client.get("/playlists", headers=user_headers).json()] == ["pl-1"]
    assert client.get("/playlists/pl-1", headers=user_headers).json()["name"] == "Calm"
    assert client.get("/playlists/none", headers=user_headers).status_code == 404

    new_playlist = {"uuid": "pl-2", "name": "Busy", "description": "", "patterns": ["p-2"]}
    assert client.post("/playlists", headers=user_headers, json=new_playlist).status_code == 403

    response = client.post("/playlists", headers=admin_headers, json=new_playlist)
    assert response.status_code == 200
    index = json.loads(blob_store.objects["playlists.json"])
    assert [p["uuid"] for p in index] == ["pl-2", "pl-1"]


def test_inactive_account_is_gated(client):
    """Test an inactive account can log in but its access credential is refused."""
    access = access_for(client, email=INACTIVE_EMAIL, password=INACTIVE_PASSWORD)

    response = client.get("/patterns", headers=bearer(access))

    assert response.status_code == 401
    assert "inactive" in response.json()["error"]


def test_inactive_account_allowed_when_check_disabled(secret_key, credential_service, catalog):
    """Test REQUIRE_ACTIVE_ACCOUNT=false lets inactive accounts through."""
    client = make_client(secret_key, credential_service, catalog, require_active=False)
    access = access_for(client, email=INACTIVE_EMAIL, password=INACTIVE_PASSWORD)

    assert client.get("/patterns", headers=bearer(access)).status_code == 200


def test_corrupt_index_is_storage_error(client, blob_store):
    """Test an unreadable index gives 500 rather than a crash."""
    headers = bearer(access_for(client))
    blob_store.objects["patterns.json"] = "{not json"

    response = client.get("/patterns", headers=headers)

    assert response.status_code == 500
    assert response.json()["error"] == "Storage error"


class FailingWriteStore(InMemoryBlobStore):
    async def put(self, name, body):
        raise StorageWriteError(f"Failed to write {name}: disk full")


def test_failed_write_is_storage_write_error(secret_key, identity_exchange, blob_store):
    """Test a failed upload reports a write error, distinct from unreadable indexes."""
    catalog = CatalogModule(FailingWriteStore(blob_store.objects))
    service = AuthFactory.build_for_testing(secret_key, exchange=identity_exchange, catalog=catalog)
    client = make_client(secret_key, service, catalog)
    headers = bearer(access_for(client, email=ADMIN_EMAIL, password=ADMIN_PASSWORD))

    response = client.post(
        "/patterns", headers=headers, json={"data": "x", "pattern": {"uuid": "p-3", "name": "New"}}
    )

    assert response.status_code == 500
    assert response.json() == {"error": "Storage write error", "status": 500}


@pytest.mark.parametrize(
    "bad_key",
    [
        b64url(bytes(16)),
        b64url(bytes(64)),
        "not base64!",
    ],
)
def test_create_app_rejects_unusable_key(bad_key, credential_service, catalog):
    """Test a key that cannot serve both token kinds stops startup."""
    with pytest.raises(EncodingError):
        create_app(
            config_provider=StubConfigProvider(bad_key),
            credential_service=credential_service,
            catalog=catalog,
        )


def test_openapi_documents_error_body(client):
    """Test error responses are published with the shared error model."""
    schema = client.get("/openapi.json").json()

    assert "ErrorResponse" in schema["components"]["schemas"]
    gated = schema["paths"]["/patterns"]["get"]["responses"]
    assert gated["403"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
    assert "401" in schema["paths"]["/auth/login"]["post"]["responses"]
