#!/usr/bin/env python3
"""
Tranquil - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Initializes modules
3. Runs the API server

All business logic is in the modules, following black box principles.
Route handlers only move JSON between the request and the catalog; the
authorization gate has already verified the caller before they run.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from tranquil.config.provider import ConfigProvider, EnvConfigProvider
from tranquil.logging_config import configure_logging, get_logging_config
from tranquil.modules.api import (
    AccessTokenResponse,
    CreatedResponse,
    ErrorResponse,
    LoginRequest,
    PasswordLoginRequest,
    Playlist,
    PostPatternRequest,
    RefreshRequest,
    RefreshTokenResponse,
    TokenResponse,
)
from tranquil.modules.auth import AuthError, AuthFactory, CredentialService, ResolvedIdentity, TokenError
from tranquil.modules.auth import codec
from tranquil.modules.middleware import create_authorization_gate, current_identity
from tranquil.modules.storage import CatalogModule, RedisBlobStore, StorageError, StorageWriteError

logger = logging.getLogger(__name__)

CACHE_FOREVER = "max-age=31536000"

ISSUANCE_RESPONSES = {status: {"model": ErrorResponse} for status in (400, 401, 500)}
GATED_RESPONSES = {status: {"model": ErrorResponse} for status in (401, 403, 404, 500)}


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, "status": status_code})


def get_credential_service(request: Request) -> CredentialService:
    return request.app.state.credential_service


def get_catalog(request: Request) -> CatalogModule:
    return request.app.state.catalog


def create_app(
    config_provider: Optional[ConfigProvider] = None,
    credential_service: Optional[CredentialService] = None,
    catalog: Optional[CatalogModule] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config_provider: Configuration source (environment by default)
        credential_service: Pre-built credential stack (built from config if omitted)
        catalog: Pre-built catalog (Redis-backed if omitted)

    Raises:
        EncodingError: If SECRET_KEY is not a base64url-encoded 32-byte key
    """
    config_provider = config_provider or EnvConfigProvider()
    auth_config = config_provider.get_auth_config()

    # Refuse to start with unusable key material
    codec.check_key(auth_config.secret_key)

    blob_store = None
    if catalog is None:
        storage_config = config_provider.get_storage_config()
        blob_store = RedisBlobStore(storage_config.redis_url, prefix=storage_config.prefix)
        catalog = CatalogModule(blob_store)

    http_client = None
    if credential_service is None:
        http_client = httpx.AsyncClient()
        credential_service = AuthFactory.build(config_provider, catalog, http_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifecycle - release connections on shutdown."""
        logger.info("Starting Tranquil API...")
        yield
        logger.info("Shutting down Tranquil API...")
        if http_client is not None:
            await http_client.aclose()
        if blob_store is not None:
            await blob_store.disconnect()
        logger.info("Tranquil API shutdown complete")

    app = FastAPI(
        title="Tranquil API",
        description="Pattern and playlist catalog behind two-tier bearer credentials",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.credential_service = credential_service
    app.state.catalog = catalog

    gate = create_authorization_gate(
        verifier=credential_service.verifier,
        key_provider=credential_service.key_provider,
        query_param=auth_config.query_token_param,
        require_active=auth_config.require_active_account,
    )

    @app.middleware("http")
    async def authorize(request: Request, call_next):
        return await gate(request, call_next)

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.debug(f"Malformed request to {request.url.path}: {exc.errors()}")
        return error_response(400, "Malformed request")

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(f"Storage error on {request.url.path}: {exc}")
        if isinstance(exc, StorageWriteError):
            return error_response(500, "Storage write error")
        return error_response(500, "Storage error")

    @app.exception_handler(TokenError)
    async def token_error_handler(request: Request, exc: TokenError):
        logger.error(f"Token error on {request.url.path}: {exc}")
        return error_response(500, "Internal error during authentication")

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    @app.get("/health")
    async def health():
        return {"status": "ok"}

    # Issuance Endpoints

    @app.post("/auth/login", response_model=RefreshTokenResponse, responses=ISSUANCE_RESPONSES)
    async def login(
        body: LoginRequest,
        service: CredentialService = Depends(get_credential_service),
    ):
        """
        Sign a device in and return a long-lived refresh credential.

        Returns:
            200: {refreshToken}
            400: Missing email, password or deviceID
            401: Identity provider rejected the login
        """
        token = await service.login(body.email, body.password, body.device_id, body.device_address)
        return RefreshTokenResponse(refresh_token=token)

    @app.post("/auth/refresh", response_model=AccessTokenResponse, responses=ISSUANCE_RESPONSES)
    async def refresh(
        body: RefreshRequest,
        service: CredentialService = Depends(get_credential_service),
    ):
        """
        Trade a refresh credential for a short-lived access credential.

        Returns:
            200: {accessToken}
            401: Refresh credential invalid/expired, or provider rejected it
        """
        token = await service.refresh(body.refresh_token)
        return AccessTokenResponse(access_token=token)

    @app.post("/auth", response_model=TokenResponse, responses=ISSUANCE_RESPONSES)
    async def password_login(
        body: PasswordLoginRequest,
        service: CredentialService = Depends(get_credential_service),
    ):
        """Single-tier login against stored user records."""
        token = await service.password_login(body.email, body.password)
        return TokenResponse(token=token)

    # Pattern Endpoints

    @app.get("/patterns", responses=GATED_RESPONSES)
    async def list_patterns(
        identity: ResolvedIdentity = Depends(current_identity),
        catalog: CatalogModule = Depends(get_catalog),
    ):
        return await catalog.list_patterns()

    @app.get("/patterns/{uuid}", responses=GATED_RESPONSES)
    async def get_pattern(
        uuid: str,
        identity: ResolvedIdentity = Depends(current_identity),
        catalog: CatalogModule = Depends(get_catalog),
    ):
        pattern = await catalog.get_pattern(uuid)
        if pattern is None:
            return error_response(404, "Not Found")
        return JSONResponse(content=pattern, headers={"Cache-Control": CACHE_FOREVER})

    @app.get("/patterns/{uuid}/data", responses=GATED_RESPONSES)
    async def get_pattern_data(
        uuid: str,
        identity: ResolvedIdentity = Depends(current_identity),
        catalog: CatalogModule = Depends(get_catalog),
    ):
        """Raw pattern data. Accepts the bearer token as a query parameter."""
        data = await catalog.get_pattern_data(uuid)
        if data is None:
            return error_response(404, "Not Found")
        return PlainTextResponse(content=data, headers={"Cache-Control": CACHE_FOREVER})

    @app.post("/patterns", response_model=CreatedResponse, responses=GATED_RESPONSES)
    async def post_pattern(
        body: PostPatternRequest,
        identity: ResolvedIdentity = Depends(current_identity),
        catalog: CatalogModule = Depends(get_catalog),
    ):
        if not identity.is_admin:
            return error_response(403, "User not admin!")
        uuid = await catalog.add_pattern(body.pattern.model_dump(exclude_none=True), body.data)
        return CreatedResponse(uuid=uuid)

    # Playlist Endpoints

    @app.get("/playlists", responses=GATED_RESPONSES)
    async def list_playlists(
        identity: ResolvedIdentity = Depends(current_identity),
        catalog: CatalogModule = Depends(get_catalog),
    ):
        return await catalog.list_playlists()

    @app.get("/playlists/{uuid}", responses=GATED_RESPONSES)
    async def get_playlist(
        uuid: str,
        identity: ResolvedIdentity = Depends(current_identity),
        catalog: CatalogModule = Depends(get_catalog),
    ):
        playlist = await catalog.get_playlist(uuid)
        if playlist is None:
            return error_response(404, "Not Found")
        return JSONResponse(content=playlist, headers={"Cache-Control": CACHE_FOREVER})

    @app.post("/playlists", response_model=CreatedResponse, responses=GATED_RESPONSES)
    async def post_playlist(
        body: Playlist,
        identity: ResolvedIdentity = Depends(current_identity),
        catalog: CatalogModule = Depends(get_catalog),
    ):
        if not identity.is_admin:
            return error_response(403, "User not admin!")
        uuid = await catalog.add_playlist(body.model_dump(exclude_none=True))
        return CreatedResponse(uuid=uuid)


def main() -> None:
    """Run the API server with uvicorn."""
    api_config = EnvConfigProvider().get_api_config()
    log_level = "DEBUG" if api_config.debug else api_config.log_level
    query_token_param = EnvConfigProvider().get_auth_config().query_token_param
    configure_logging(log_level, api_config.auth_log_level, query_token_param)

    uvicorn.run(
        "tranquil.main:create_app",
        factory=True,
        host=api_config.host,
        port=api_config.port,
        log_config=get_logging_config(log_level, api_config.auth_log_level, query_token_param),
    )


if __name__ == "__main__":
    main()
