"""
Well-known endpoints: OpenID Connect discovery and JWKS.
"""
from fastapi import APIRouter, Depends

from oidc_provider.context import ProviderContext, get_context

router = APIRouter()

JWKS_PATH = "/.well-known/jwks.json"


def discovery_document(issuer: str, algorithms: list[str]) -> dict:
    """Static provider metadata; relying parties fetch it once at bootstrap."""
    return {
        "issuer": issuer,
        "authorization_endpoint": f"{issuer}/authorize",
        "token_endpoint": f"{issuer}/token",
        "jwks_uri": f"{issuer}{JWKS_PATH}",
        "response_types_supported": ["code"],
        "grant_types_supported": ["authorization_code"],
        "subject_types_supported": ["public"],
        "id_token_signing_alg_values_supported": algorithms,
        "token_endpoint_auth_methods_supported": ["client_secret_post", "client_secret_basic"],
        "scopes_supported": ["openid", "profile", "email"],
        "claims_supported": ["iss", "sub", "aud", "exp", "iat", "name", "email", "picture"],
    }


@router.get(JWKS_PATH)
def jwks_json(ctx: ProviderContext = Depends(get_context)):
    """JSON Web Key Set for token signature verification."""
    return ctx.keys.jwks()


@router.get("/.well-known/openid-configuration")
def openid_configuration(ctx: ProviderContext = Depends(get_context)):
    """OpenID Connect discovery document."""
    return discovery_document(ctx.issuer, [ctx.keys.algorithm])
