"""
Authorization endpoint with a combined login + consent step.
GET /authorize: validate params, show form. POST /authorize: log in, issue code, redirect.
"""
import html
import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form
from fastapi.responses import HTMLResponse, RedirectResponse

from oidc_provider.context import ProviderContext, get_context
from oidc_provider.errors import OAuthError

logger = logging.getLogger(__name__)
router = APIRouter()


def _with_params(redirect_uri: str, params: dict) -> str:
    separator = "&" if "?" in redirect_uri else "?"
    return f"{redirect_uri}{separator}{urlencode(params)}"


def _redirect_error(redirect_uri: str, error: str, state: str | None) -> RedirectResponse:
    params = {"error": error}
    if state:
        params["state"] = state
    return RedirectResponse(url=_with_params(redirect_uri, params), status_code=302)


def _invalid_request_page(message: str) -> HTMLResponse:
    return HTMLResponse(f"<h1>Invalid request</h1><p>{html.escape(message)}</p>", status_code=400)


def _login_page(
    client_id: str,
    redirect_uri: str,
    state: str,
    scope: str | None,
    error: str | None = None,
    status_code: int = 200,
) -> HTMLResponse:
    """Combined login and consent form; the authorize parameters ride along as hidden fields."""
    carried = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": scope or "",
        "state": state,
    }
    hidden = "\n".join(
        f'      <input type="hidden" name="{name}" value="{html.escape(value)}"/>' for name, value in carried.items()
    )
    notice = f'<p class="error">{html.escape(error)}</p>' if error else ""
    return HTMLResponse(
        f"""<!DOCTYPE html>
<html>
  <head><meta charset="utf-8"><title>Sign in to continue</title></head>
  <body>
    <h2>Sign in</h2>
    {notice}
    <p>The application <code>{html.escape(client_id)}</code> will receive your name, email and picture.</p>
    <form method="post" action="/authorize">
{hidden}
      <p><input name="username" placeholder="Username" autocomplete="username"/></p>
      <p><input name="password" type="password" placeholder="Password" autocomplete="current-password"/></p>
      <button name="action" value="allow">Allow</button>
      <button name="action" value="deny">Deny</button>
    </form>
  </body>
</html>""",
        status_code=status_code,
    )


@router.get("/authorize", response_class=HTMLResponse)
def authorize_get(
    response_type: str | None = None,
    client_id: str | None = None,
    redirect_uri: str | None = None,
    scope: str | None = None,
    state: str | None = None,
    ctx: ProviderContext = Depends(get_context),
):
    """
    Validates client_id and redirect_uri (exact match) before anything else; those errors are
    shown here and never redirected. Then response_type=code and state, reported via redirect.
    """
    try:
        ctx.clients.resolve_redirect(client_id, redirect_uri)
    except OAuthError as e:
        logger.info("Authorize rejected: %s", e.reason)
        return _invalid_request_page("Unknown client_id or unregistered redirect_uri.")

    if response_type != "code":
        return _redirect_error(redirect_uri, "unsupported_response_type", state)
    if not state:
        return _redirect_error(redirect_uri, "invalid_request", None)
    return _login_page(client_id, redirect_uri, state, scope)


@router.post("/authorize")
def authorize_post(
    client_id: str = Form(...),
    redirect_uri: str = Form(...),
    state: str = Form(...),
    response_type: str = Form("code"),
    scope: str | None = Form(None),
    username: str = Form(""),
    password: str = Form(""),
    action: str = Form("allow"),
    ctx: ProviderContext = Depends(get_context),
):
    """
    Process login and consent. On approval: issue code, redirect to redirect_uri?code=...&state=...
    """
    try:
        client = ctx.clients.resolve_redirect(client_id, redirect_uri)
    except OAuthError as e:
        logger.info("Authorize rejected: %s", e.reason)
        return _invalid_request_page("Unknown client_id or unregistered redirect_uri.")
    if response_type != "code":
        return _redirect_error(redirect_uri, "unsupported_response_type", state)

    if action != "allow":
        logger.info("Consent denied for client_id=%s", client.id)
        return _redirect_error(redirect_uri, "access_denied", state)

    subject_id = ctx.users.authenticate(username, password)
    if subject_id is None:
        return _login_page(
            client_id, redirect_uri, state, scope, error="Invalid username or password.", status_code=401
        )

    code = ctx.codes.issue(client.id, subject_id, ctx.code_ttl_seconds, redirect_uri=redirect_uri)
    logger.info("Authorization code issued for client_id=%s sub=%s", client.id, subject_id)
    return RedirectResponse(url=_with_params(redirect_uri, {"code": code, "state": state}), status_code=302)
