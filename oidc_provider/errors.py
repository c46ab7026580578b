"""
Protocol errors raised by the provider (RFC 6749 §5.2).
The response carries only the error code; the precise cause goes to the log.
"""


class OAuthError(Exception):
    error = "server_error"
    status_code = 500

    def __init__(self, reason: str = ""):
        super().__init__(reason or self.error)
        self.reason = reason


class InvalidRequest(OAuthError):
    error = "invalid_request"
    status_code = 400


class InvalidClient(OAuthError):
    """Unknown client id or bad secret."""

    error = "invalid_client"
    status_code = 401


class InvalidGrant(OAuthError):
    """Unknown, expired, already-redeemed or client-mismatched code."""

    error = "invalid_grant"
    status_code = 400


class UnsupportedGrantType(OAuthError):
    error = "unsupported_grant_type"
    status_code = 400


class InvalidRedirect(OAuthError):
    """redirect_uri not registered for the client. Raised before any code is issued."""

    error = "invalid_request"
    status_code = 400


class ServerError(OAuthError):
    pass
