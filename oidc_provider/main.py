"""
OpenID Provider: discovery, JWKS, authorize (login + consent) and token endpoints.
Port 9000 by default.
"""
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from oidc_provider.authorize import router as authorize_router
from oidc_provider.clients import ClientRegistry, load_client_registry
from oidc_provider.code_store import AuthorizationCodeStore, sweep_periodically
from oidc_provider.config import CODE_SWEEP_INTERVAL_SECONDS, SIGNING_KEY_PATH
from oidc_provider.context import ProviderContext
from oidc_provider.database import SessionLocal, init_db
from oidc_provider.errors import OAuthError
from oidc_provider.keys import KeyMaterial
from oidc_provider.seed import seed_from_env
from oidc_provider.token_endpoint import NO_STORE_HEADERS
from oidc_provider.token_endpoint import router as token_router
from oidc_provider.users import SqlUserDirectory, UserDirectory
from oidc_provider.well_known import router as well_known_router

logger = logging.getLogger(__name__)


def _load_from_database() -> tuple[ClientRegistry, UserDirectory]:
    """Create tables, seed from env, then read the client registry once."""
    init_db()
    db = SessionLocal()
    try:
        seed_from_env(db)
        clients = load_client_registry(db)
    finally:
        db.close()
    return clients, SqlUserDirectory(SessionLocal)


async def oauth_error_handler(request: Request, exc: OAuthError) -> JSONResponse:
    headers = dict(NO_STORE_HEADERS)
    if exc.status_code == 401:
        headers["WWW-Authenticate"] = 'Basic realm="token"'
    return JSONResponse({"error": exc.error}, status_code=exc.status_code, headers=headers)


def create_app(
    *,
    clients: ClientRegistry | None = None,
    users: UserDirectory | None = None,
    keys: KeyMaterial | None = None,
    codes: AuthorizationCodeStore | None = None,
    sweep_interval: float = CODE_SWEEP_INTERVAL_SECONDS,
    **context_options,
) -> FastAPI:
    """
    Build the provider app. Components not passed in are created at startup:
    clients/users from the database, the key from SIGNING_KEY_PATH, an empty code store.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        registry, directory = clients, users
        if registry is None or directory is None:
            db_clients, db_users = _load_from_database()
            if registry is None:
                registry = db_clients
            if directory is None:
                directory = db_users
        app.state.provider = ProviderContext(
            clients=registry,
            users=directory,
            keys=keys if keys is not None else KeyMaterial.load_or_create(SIGNING_KEY_PATH),
            codes=codes if codes is not None else AuthorizationCodeStore(),
            **context_options,
        )
        sweeper = asyncio.create_task(sweep_periodically(app.state.provider.codes, sweep_interval))
        logger.info("Provider ready: issuer=%s kid=%s", app.state.provider.issuer, app.state.provider.keys.kid)
        try:
            yield
        finally:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper

    app = FastAPI(title="OIDC Provider", version="0.1.0", lifespan=lifespan)
    app.add_exception_handler(OAuthError, oauth_error_handler)
    app.include_router(authorize_router, tags=["authorize"])
    app.include_router(token_router, tags=["token"])
    app.include_router(well_known_router, tags=["well-known"])

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "oidc_provider"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        "oidc_provider.main:app",
        host="127.0.0.1",
        port=9000,
        reload=True,
    )
