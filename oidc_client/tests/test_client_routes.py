"""
Tests for the relying party web app: bootstrap, /login, /auth/callback, and a full login
against an in-process OpenID Provider.
"""
import asyncio
import base64
import json
import time
from urllib.parse import parse_qs, urlparse

import httpx
import jwt
import pytest
from fastapi.testclient import TestClient

from oidc_client.config import SESSION_COOKIE, STATE_COOKIE
from oidc_client.errors import DiscoveryError
from oidc_client.main import create_app
from oidc_provider.clients import ClientRegistry
from oidc_provider.code_store import AuthorizationCodeStore
from oidc_provider.keys import KeyMaterial
from oidc_provider.main import create_app as create_provider_app
from oidc_provider.passwords import hash_password
from oidc_provider.tokens import TokenIssuer
from oidc_provider.users import InMemoryUserDirectory, Profile, UserRecord
from oidc_provider.well_known import discovery_document

OP_ISSUER = "http://op.test"
RP_REDIRECT_URI = "http://testserver/auth/callback"


@pytest.fixture(scope="module")
def keys():
    return KeyMaterial.generate()


@pytest.fixture(scope="module")
def users():
    return InMemoryUserDirectory(
        [
            UserRecord(
                "alice",
                hash_password("wonderland", rounds=4),
                Profile("sub-alice", name="Alice", email="alice@example.com", picture="https://example.com/a.png"),
            )
        ]
    )


class FakeProvider:
    """MockTransport handler serving discovery, JWKS and a scripted token endpoint."""

    def __init__(self, keys, users, issuer=OP_ISSUER):
        self.keys = keys
        self.issuer = issuer
        self.token_issuer = TokenIssuer(keys, users, issuer=issuer)
        self.token_calls: list[httpx.Request] = []
        self.token_status = 200
        self.audience = "c1"
        self.id_token: str | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/.well-known/openid-configuration":
            return httpx.Response(200, json=discovery_document(self.issuer, ["RS256"]))
        if request.url.path == "/.well-known/jwks.json":
            return httpx.Response(200, json=self.keys.jwks())
        if request.url.path == "/token":
            self.token_calls.append(request)
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_grant"})
            id_token = self.id_token or self.token_issuer.issue_id_token(self.audience, "sub-alice", time.time())
            return httpx.Response(
                200,
                json={"access_token": "at", "token_type": "Bearer", "id_token": id_token, "expires_in": 3600},
            )
        return httpx.Response(404)


@pytest.fixture
def provider(keys, users):
    return FakeProvider(keys, users)


@pytest.fixture
def browser(provider):
    http = httpx.Client(base_url=OP_ISSUER, transport=httpx.MockTransport(provider))
    app = create_app(
        http_client=http,
        issuer=OP_ISSUER,
        client_id="c1",
        client_secret="secret-1",
        redirect_uri=RP_REDIRECT_URI,
    )
    with TestClient(app, follow_redirects=False) as c:
        yield c
    http.close()


def _login(browser) -> str:
    r = browser.get("/login")
    assert r.status_code == 302
    return parse_qs(urlparse(r.headers["location"]).query)["state"][0]


def test_health(browser):
    assert browser.get("/health").json() == {"status": "ok", "service": "oidc_client"}


def test_home_logged_out(browser):
    r = browser.get("/")
    assert r.status_code == 200
    assert 'href="/login"' in r.text


def test_login_redirects_with_state_cookie(browser):
    r = browser.get("/login")
    assert r.status_code == 302
    location = urlparse(r.headers["location"])
    assert f"{location.scheme}://{location.netloc}{location.path}" == f"{OP_ISSUER}/authorize"
    params = parse_qs(location.query)
    assert params["client_id"] == ["c1"]
    assert params["redirect_uri"] == [RP_REDIRECT_URI]
    assert params["response_type"] == ["code"]
    assert browser.cookies.get(STATE_COOKIE) == params["state"][0]
    assert "httponly" in r.headers["set-cookie"].lower()


def test_callback_success_creates_session(browser, provider):
    state = _login(browser)
    r = browser.get("/auth/callback", params={"code": "abc", "state": state})
    assert r.status_code == 302
    assert r.headers["location"] == "/"
    assert browser.cookies.get(SESSION_COOKIE)
    assert len(provider.token_calls) == 1

    home = browser.get("/")
    assert "Welcome, Alice!" in home.text
    assert "alice@example.com" in home.text


def test_callback_state_mismatch_skips_exchange(browser, provider):
    _login(browser)
    r = browser.get("/auth/callback", params={"code": "abc", "state": "forged"})
    assert r.status_code == 400
    assert provider.token_calls == []
    assert browser.cookies.get(SESSION_COOKIE) is None


def test_callback_without_state_cookie(browser, provider):
    r = browser.get("/auth/callback", params={"code": "abc", "state": "anything"})
    assert r.status_code == 400
    assert provider.token_calls == []


def test_callback_error_param(browser, provider):
    state = _login(browser)
    r = browser.get("/auth/callback", params={"error": "access_denied", "state": state})
    assert r.status_code == 400
    assert "access_denied" in r.text
    assert provider.token_calls == []


def test_callback_exchange_failure(browser, provider):
    provider.token_status = 400
    state = _login(browser)
    r = browser.get("/auth/callback", params={"code": "spent", "state": state})
    assert r.status_code == 502
    assert "invalid_grant" in r.text
    assert len(provider.token_calls) == 1
    assert browser.cookies.get(SESSION_COOKIE) is None


def test_callback_rejects_token_for_other_audience(browser, provider):
    provider.audience = "someone-else"
    state = _login(browser)
    r = browser.get("/auth/callback", params={"code": "abc", "state": state})
    assert r.status_code == 401
    assert browser.cookies.get(SESSION_COOKIE) is None


def test_callback_rejects_hostile_token_content(browser, provider, keys):
    body = json.dumps({"iss": OP_ISSUER, "sub": "x", "aud": "c1", "exp": float("nan"), "iat": 0}).encode()
    provider.id_token = jwt.PyJWS().encode(body, keys.private_key, algorithm="RS256", headers={"kid": keys.kid})
    state = _login(browser)
    r = browser.get("/auth/callback", params={"code": "abc", "state": state})
    assert r.status_code == 401

    header = base64.urlsafe_b64encode(json.dumps({"alg": ["RS256"]}).encode()).rstrip(b"=").decode()
    provider.id_token = f"{header}.e30.c2ln"
    state = _login(browser)
    r = browser.get("/auth/callback", params={"code": "abc", "state": state})
    assert r.status_code == 401
    assert browser.cookies.get(SESSION_COOKIE) is None


def test_logout(browser):
    state = _login(browser)
    browser.get("/auth/callback", params={"code": "abc", "state": state})
    assert "Welcome" in browser.get("/").text
    r = browser.get("/logout")
    assert r.status_code == 302
    assert "Welcome" not in browser.get("/").text


def test_bootstrap_runs_off_the_event_loop(provider):
    loops = []

    def handler(request):
        try:
            loops.append(asyncio.get_running_loop())
        except RuntimeError:
            loops.append(None)
        return provider(request)

    http = httpx.Client(transport=httpx.MockTransport(handler))
    app = create_app(http_client=http, issuer=OP_ISSUER, client_id="c1", client_secret="s")
    with TestClient(app):
        pass
    http.close()
    assert len(loops) == 2
    assert loops == [None, None]


def test_startup_fails_on_issuer_mismatch(keys, users):
    impostor = FakeProvider(keys, users, issuer="https://impostor.example")
    http = httpx.Client(transport=httpx.MockTransport(impostor))
    app = create_app(http_client=http, issuer=OP_ISSUER, client_id="c1", client_secret="s")
    with pytest.raises(DiscoveryError):
        with TestClient(app):
            pass
    http.close()


# --- full login against the real provider app ---


def test_end_to_end_login(keys, users):
    registry = ClientRegistry.from_mapping({"c1": ("secret-1", [RP_REDIRECT_URI])}, rounds=4)
    codes = AuthorizationCodeStore()
    op_app = create_provider_app(clients=registry, users=users, keys=keys, codes=codes, issuer="http://testserver")

    with TestClient(op_app, follow_redirects=False) as op:
        rp_app = create_app(
            http_client=op,
            issuer="http://testserver",
            client_id="c1",
            client_secret="secret-1",
            redirect_uri=RP_REDIRECT_URI,
        )
        with TestClient(rp_app, follow_redirects=False) as browser:
            r = browser.get("/login")
            authorize = urlparse(r.headers["location"])
            params = {k: v[0] for k, v in parse_qs(authorize.query).items()}

            assert op.get(authorize.path, params=params).status_code == 200
            r = op.post(
                "/authorize",
                data={
                    "client_id": params["client_id"],
                    "redirect_uri": params["redirect_uri"],
                    "state": params["state"],
                    "response_type": params["response_type"],
                    "scope": params["scope"],
                    "username": "alice",
                    "password": "wonderland",
                    "action": "allow",
                },
            )
            assert r.status_code == 302
            callback = urlparse(r.headers["location"])
            assert f"{callback.scheme}://{callback.netloc}{callback.path}" == RP_REDIRECT_URI
            returned = {k: v[0] for k, v in parse_qs(callback.query).items()}
            assert returned["state"] == params["state"]
            assert len(codes) == 1

            r = browser.get("/auth/callback", params=returned)
            assert r.status_code == 302
            assert len(codes) == 0
            home = browser.get("/")
            assert "Welcome, Alice!" in home.text

            # The code was spent by the first exchange
            replay = op.post(
                "/token",
                data={
                    "grant_type": "authorization_code",
                    "code": returned["code"],
                    "redirect_uri": RP_REDIRECT_URI,
                    "client_id": "c1",
                    "client_secret": "secret-1",
                },
            )
            assert replay.status_code == 400
            assert replay.json() == {"error": "invalid_grant"}
