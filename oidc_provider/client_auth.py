"""
Client authentication for the token endpoint (RFC 6749 §2.3.1):
client_secret_post (form fields) or client_secret_basic (Authorization header).
"""
import base64
import binascii
from urllib.parse import unquote_plus

from fastapi import Request


def credentials_from_basic(authorization: str | None) -> tuple[str, str] | None:
    """(client_id, client_secret) from an HTTP Basic header; None if absent, not Basic or undecodable."""
    if not authorization:
        return None
    scheme, _, value = authorization.strip().partition(" ")
    if scheme.lower() != "basic" or not value:
        return None
    try:
        raw = base64.b64decode(value.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    client_id, sep, client_secret = raw.partition(":")
    if not sep:
        return None
    # Each half is form-urlencoded before base64
    return unquote_plus(client_id), unquote_plus(client_secret)


def get_client_credentials(
    request: Request,
    client_id: str | None,
    client_secret: str | None,
) -> tuple[str | None, str | None]:
    """Posted credentials win; otherwise fall back to the Authorization header."""
    if client_id and client_secret is not None:
        return client_id, client_secret
    return credentials_from_basic(request.headers.get("Authorization")) or (client_id, client_secret)
