"""
Token endpoint (POST /token). Authorization code exchange only.
"""
from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse

from oidc_provider.client_auth import get_client_credentials
from oidc_provider.context import ProviderContext, get_context

router = APIRouter()

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


@router.post("/token")
def token(
    request: Request,
    grant_type: str | None = Form(None),
    code: str | None = Form(None),
    redirect_uri: str | None = Form(None),
    client_id: str | None = Form(None),
    client_secret: str | None = Form(None),
    ctx: ProviderContext = Depends(get_context),
):
    """
    Exchange a single-use code for {access_token, token_type, id_token, expires_in}.
    Failures are rendered by the OAuthError handler as {"error": "invalid_client" | "invalid_grant" | ...}.
    """
    cid, secret = get_client_credentials(request, client_id, client_secret)
    response = ctx.token_endpoint.handle_token_request(
        cid,
        secret,
        code,
        grant_type=grant_type,
        redirect_uri=redirect_uri,
    )
    return JSONResponse(response.to_dict(), headers=NO_STORE_HEADERS)
