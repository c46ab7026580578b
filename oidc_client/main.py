"""
Relying party web app: log in through the OpenID Provider and show the verified profile.
GET /, /login, /auth/callback, /logout. Port 8000 by default.
"""
import html
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, RedirectResponse

from oidc_client.config import (
    ALLOWED_ALGORITHMS,
    CLIENT_ID,
    CLIENT_SECRET,
    CLOCK_SKEW_SECONDS,
    DEFAULT_SCOPE,
    HTTP_TIMEOUT_SECONDS,
    ISSUER,
    REDIRECT_URI,
    SESSION_COOKIE,
    SESSION_TTL_SECONDS,
    STATE_COOKIE,
)
from oidc_client.discovery import fetch_key_set, fetch_provider_metadata
from oidc_client.errors import StateMismatch, TokenExchangeError, TokenVerificationError
from oidc_client.flow import AuthorizationFlow, ClientConfig, generate_state
from oidc_client.session_store import SessionStore
from oidc_client.verifier import IDTokenVerifier

logger = logging.getLogger(__name__)

# Pending-login state cookie lifetime: 10 minutes
STATE_COOKIE_MAX_AGE = 600


def _page(title: str, body: str, status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(
        f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{html.escape(title)}</title></head>
<body>
  {body}
  <p><a href="/">Home</a></p>
</body>
</html>""",
        status_code=status_code,
    )


def _error_page(title: str, message: str, status_code: int) -> HTMLResponse:
    response = _page(title, f"<h1>{html.escape(title)}</h1><p>{html.escape(message)}</p>", status_code)
    response.delete_cookie(STATE_COOKIE, path="/")
    return response


def create_app(
    *,
    http_client: httpx.Client | None = None,
    issuer: str = ISSUER,
    client_id: str = CLIENT_ID,
    client_secret: str = CLIENT_SECRET,
    redirect_uri: str = REDIRECT_URI,
    scope: str = DEFAULT_SCOPE,
    secure_cookies: bool = False,
) -> FastAPI:
    """
    Build the relying party app. At startup the provider's discovery document and key set
    are fetched once through http_client (a fresh httpx.Client if none is given).
    """

    def bootstrap(http: httpx.Client) -> AuthorizationFlow:
        metadata = fetch_provider_metadata(http, issuer)
        keys = fetch_key_set(http, metadata.jwks_uri)
        config = ClientConfig.from_metadata(
            metadata,
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=redirect_uri,
            scope=scope,
        )
        verifier = IDTokenVerifier(keys, allowed_algorithms=ALLOWED_ALGORITHMS, leeway=CLOCK_SKEW_SECONDS)
        return AuthorizationFlow(config, verifier, http)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        http = http_client if http_client is not None else httpx.Client(timeout=HTTP_TIMEOUT_SECONDS)
        try:
            # Blocking HTTP; keep it off the event loop
            app.state.flow = await run_in_threadpool(bootstrap, http)
            app.state.sessions = SessionStore()
            yield
        finally:
            if http_client is None:
                http.close()

    app = FastAPI(title="OIDC Client", version="0.1.0", lifespan=lifespan)

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "oidc_client"}

    @app.get("/", response_class=HTMLResponse)
    def home(request: Request):
        """Home page: login link, or the verified profile when a session exists."""
        profile = request.app.state.sessions.get(request.cookies.get(SESSION_COOKIE))
        if profile is None:
            return _page("OIDC Client", '<h1>OIDC Client</h1><p>Not logged in.</p><p><a href="/login">Log in</a></p>')
        picture = ""
        if profile.get("picture"):
            picture = f'<img src="{html.escape(profile["picture"])}" alt="Profile picture" width="100"/>'
        return _page(
            "OIDC Client",
            f"""<h1>Welcome, {html.escape(profile.get("name") or profile["sub"])}!</h1>
  <p>Email: {html.escape(profile.get("email") or "")}</p>
  {picture}
  <p><a href="/logout">Log out</a></p>""",
        )

    @app.get("/login")
    def login(request: Request):
        """Generate state, persist it in a cookie, redirect to the provider's /authorize."""
        state = generate_state()
        response = RedirectResponse(url=request.app.state.flow.authorization_url(state), status_code=302)
        response.set_cookie(
            STATE_COOKIE,
            state,
            max_age=STATE_COOKIE_MAX_AGE,
            path="/",
            httponly=True,
            secure=secure_cookies,
            samesite="lax",
        )
        return response

    @app.get("/auth/callback", response_class=HTMLResponse)
    def callback(
        request: Request,
        code: str | None = None,
        state: str | None = None,
        error: str | None = None,
    ):
        """
        Handle redirect from the provider. State is checked before the code is exchanged;
        any failure ends this login attempt.
        """
        expected_state = request.cookies.get(STATE_COOKIE)
        if error:
            return _error_page("Login error", error, 400)
        flow: AuthorizationFlow = request.app.state.flow
        try:
            claims = flow.complete(code, state, expected_state)
        except StateMismatch:
            logger.warning("Callback rejected: state mismatch")
            return _error_page("Login error", "Invalid or missing state. Please log in again.", 400)
        except TokenExchangeError as e:
            return _error_page("Token exchange failed", e.error or "Token exchange failed", 502)
        except TokenVerificationError:
            return _error_page("Login error", "ID token verification failed.", 401)

        session_id = request.app.state.sessions.create(claims.profile())
        logger.info("Login succeeded for sub=%s", claims.sub)
        response = RedirectResponse(url="/", status_code=302)
        response.delete_cookie(STATE_COOKIE, path="/")
        response.set_cookie(
            SESSION_COOKIE,
            session_id,
            max_age=SESSION_TTL_SECONDS,
            path="/",
            httponly=True,
            secure=secure_cookies,
            samesite="lax",
        )
        return response

    @app.get("/logout")
    def logout(request: Request):
        request.app.state.sessions.delete(request.cookies.get(SESSION_COOKIE))
        response = RedirectResponse(url="/", status_code=302)
        response.delete_cookie(SESSION_COOKIE, path="/")
        return response

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        "oidc_client.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
