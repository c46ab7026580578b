"""
Process-wide provider components, constructed once and shared by reference.
Routes reach them through the get_context dependency; nothing lives in module globals.
"""
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from fastapi import Request

from oidc_provider.clients import ClientRegistry
from oidc_provider.code_store import AuthorizationCodeStore
from oidc_provider.config import CODE_TTL_SECONDS, ISSUER
from oidc_provider.keys import KeyMaterial
from oidc_provider.grants import TokenEndpoint
from oidc_provider.tokens import TokenIssuer
from oidc_provider.users import UserDirectory


@dataclass
class ProviderContext:
    clients: ClientRegistry
    users: UserDirectory
    keys: KeyMaterial
    codes: AuthorizationCodeStore
    issuer: str = ISSUER
    code_ttl_seconds: float = CODE_TTL_SECONDS
    clock: Callable[[], float] = time.time
    token_endpoint: TokenEndpoint = field(init=False)

    def __post_init__(self):
        token_issuer = TokenIssuer(self.keys, self.users, issuer=self.issuer)
        self.token_endpoint = TokenEndpoint(self.clients, self.codes, token_issuer, clock=self.clock)


def get_context(request: Request) -> ProviderContext:
    """Dependency: the provider components attached at startup."""
    return request.app.state.provider
