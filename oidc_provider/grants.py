"""
Authorization code grant: authenticate the client, redeem the code, issue the ID token.
Every failure collapses to invalid_client or invalid_grant; the precise cause is logged only.
"""
import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass

from oidc_provider.clients import ClientRegistry
from oidc_provider.code_store import AuthorizationCodeStore
from oidc_provider.errors import InvalidClient, InvalidGrant, InvalidRequest, UnsupportedGrantType
from oidc_provider.tokens import TokenIssuer

logger = logging.getLogger(__name__)

GRANT_TYPE_AUTHORIZATION_CODE = "authorization_code"


@dataclass(frozen=True)
class TokenResponse:
    access_token: str
    id_token: str
    expires_in: int
    token_type: str = "Bearer"

    def to_dict(self) -> dict:
        return asdict(self)


class TokenEndpoint:
    def __init__(
        self,
        clients: ClientRegistry,
        codes: AuthorizationCodeStore,
        issuer: TokenIssuer,
        clock: Callable[[], float] = time.time,
    ):
        self._clients = clients
        self._codes = codes
        self._issuer = issuer
        self._clock = clock

    def handle_token_request(
        self,
        client_id: str | None,
        client_secret: str | None,
        code: str | None,
        *,
        grant_type: str | None = None,
        redirect_uri: str | None = None,
        now: float | None = None,
    ) -> TokenResponse:
        if now is None:
            now = self._clock()

        # A presented code is consumed before any other check, so it never survives a failed request.
        grant = self._codes.redeem(code, now) if code else None

        if grant_type is not None and grant_type != GRANT_TYPE_AUTHORIZATION_CODE:
            logger.info("Token request rejected: unsupported grant_type=%s", grant_type)
            raise UnsupportedGrantType(grant_type)

        try:
            client = self._clients.authenticate(client_id, client_secret)
        except InvalidClient as e:
            logger.warning("Token request rejected (invalid_client): %s", e.reason)
            raise

        if not code:
            raise InvalidRequest("code is required")
        if grant is None:
            logger.warning("Token request rejected (invalid_grant): code unknown, expired or reused; client_id=%s", client.id)
            raise InvalidGrant("unknown, expired or already redeemed code")
        if grant.client_id != client.id:
            logger.warning(
                "Token request rejected (invalid_grant): code issued to %s presented by %s",
                grant.client_id,
                client.id,
            )
            raise InvalidGrant("client mismatch")
        if redirect_uri is not None and grant.redirect_uri is not None and redirect_uri != grant.redirect_uri:
            logger.warning("Token request rejected (invalid_grant): redirect_uri mismatch for client_id=%s", client.id)
            raise InvalidGrant("redirect_uri mismatch")

        id_token = self._issuer.issue_id_token(client.id, grant.subject_id, now)
        return TokenResponse(
            access_token=secrets.token_urlsafe(32),
            id_token=id_token,
            expires_in=self._issuer.ttl_seconds,
        )
