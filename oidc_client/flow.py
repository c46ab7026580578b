"""
Authorization code flow for the relying party: authorize URL with CSRF state,
state check, code exchange and ID token verification.
A code is exchanged at most once; a failed exchange means starting over at /authorize.
"""
import hmac
import logging
import secrets
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from oidc_client.config import CLIENT_ID, CLIENT_SECRET, DEFAULT_SCOPE, HTTP_TIMEOUT_SECONDS, REDIRECT_URI
from oidc_client.discovery import ProviderMetadata
from oidc_client.errors import StateMismatch, TokenExchangeError
from oidc_client.verifier import IDTokenClaims, IDTokenVerifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientConfig:
    issuer: str
    client_id: str
    client_secret: str
    redirect_uri: str
    authorization_endpoint: str
    token_endpoint: str
    scope: str = DEFAULT_SCOPE

    @classmethod
    def from_metadata(
        cls,
        metadata: ProviderMetadata,
        *,
        client_id: str = CLIENT_ID,
        client_secret: str = CLIENT_SECRET,
        redirect_uri: str = REDIRECT_URI,
        scope: str = DEFAULT_SCOPE,
    ) -> "ClientConfig":
        return cls(
            issuer=metadata.issuer,
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=redirect_uri,
            authorization_endpoint=metadata.authorization_endpoint,
            token_endpoint=metadata.token_endpoint,
            scope=scope,
        )


def generate_state() -> str:
    """Opaque value for CSRF protection (256 bits); returned in callback."""
    return secrets.token_urlsafe(32)


def build_authorization_url(config: ClientConfig, csrf_state: str) -> str:
    params = {
        "response_type": "code",
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "scope": config.scope,
        "state": csrf_state,
    }
    separator = "&" if "?" in config.authorization_endpoint else "?"
    return f"{config.authorization_endpoint}{separator}{urlencode(params)}"


def check_state(expected: str | None, returned: str | None) -> None:
    """Byte-for-byte comparison of the stored and returned state. Must pass before exchange_code."""
    if not expected or not returned:
        raise StateMismatch("state missing")
    if not hmac.compare_digest(expected.encode("utf-8"), returned.encode("utf-8")):
        raise StateMismatch("state does not match")


@dataclass(frozen=True)
class TokenResponse:
    access_token: str
    token_type: str
    id_token: str
    expires_in: int

    @classmethod
    def from_json(cls, data: object) -> "TokenResponse":
        """Typed decode of the token endpoint's JSON; raises TokenExchangeError on shape mismatch."""
        if not isinstance(data, dict):
            raise TokenExchangeError("token response is not a JSON object")
        for name in ("access_token", "token_type", "id_token"):
            if not isinstance(data.get(name), str) or not data[name]:
                raise TokenExchangeError(f"token response missing {name}")
        expires_in = data.get("expires_in")
        if isinstance(expires_in, bool) or not isinstance(expires_in, int):
            raise TokenExchangeError("token response missing expires_in")
        if data["token_type"].lower() != "bearer":
            raise TokenExchangeError(f"unexpected token_type {data['token_type']!r}")
        return cls(
            access_token=data["access_token"],
            token_type=data["token_type"],
            id_token=data["id_token"],
            expires_in=expires_in,
        )


def exchange_code(
    http: httpx.Client,
    code: str,
    config: ClientConfig,
    timeout: float = HTTP_TIMEOUT_SECONDS,
) -> TokenResponse:
    """
    POST the code to the token endpoint (client_secret_post). One attempt only:
    on timeout or failure the code is spent and the caller must restart the flow.
    """
    try:
        r = http.post(
            config.token_endpoint,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": config.redirect_uri,
                "client_id": config.client_id,
                "client_secret": config.client_secret,
            },
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
    except httpx.TimeoutException as e:
        raise TokenExchangeError(f"token endpoint timed out: {e}") from e
    except httpx.HTTPError as e:
        raise TokenExchangeError(f"token endpoint unreachable: {e}") from e

    try:
        body = r.json()
    except ValueError:
        body = None
    if r.status_code != 200:
        error = body.get("error") if isinstance(body, dict) else None
        logger.warning("Token exchange failed: status=%s error=%s", r.status_code, error)
        raise TokenExchangeError("token endpoint returned an error", error=error, status_code=r.status_code)
    return TokenResponse.from_json(body)


class AuthorizationFlow:
    """Per-process orchestrator: config, verifier and transport are built once at startup."""

    def __init__(
        self,
        config: ClientConfig,
        verifier: IDTokenVerifier,
        http: httpx.Client,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self.config = config
        self.verifier = verifier
        self.http = http
        self.timeout = timeout

    def authorization_url(self, csrf_state: str) -> str:
        return build_authorization_url(self.config, csrf_state)

    def complete(
        self,
        code: str | None,
        returned_state: str | None,
        expected_state: str | None,
        now: float | None = None,
    ) -> IDTokenClaims:
        """
        Callback handling: state check, then a single code exchange, then ID token verification.
        Raises StateMismatch without contacting the token endpoint.
        """
        check_state(expected_state, returned_state)
        if not code:
            raise TokenExchangeError("callback carried no code")
        tokens = exchange_code(self.http, code, self.config, timeout=self.timeout)
        return self.verifier.verify(tokens.id_token, self.config.issuer, self.config.client_id, now)
