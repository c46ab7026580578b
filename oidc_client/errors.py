"""
Relying-party errors. Every verification error is terminal for the login attempt.
"""


class OIDCClientError(Exception):
    pass


class DiscoveryError(OIDCClientError):
    """Discovery document or JWKS unusable, or issuer mismatch."""


class StateMismatch(OIDCClientError):
    """Callback state does not equal the value stored before redirecting."""


class TokenExchangeError(OIDCClientError):
    """Token endpoint call failed, timed out, or answered with an error or malformed body."""

    def __init__(self, message: str, error: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.error = error
        self.status_code = status_code


class TokenVerificationError(OIDCClientError):
    pass


class MalformedToken(TokenVerificationError):
    """Wrong segment count, undecodable content or claim of the wrong type."""


class MissingClaim(MalformedToken):
    pass


class UnsupportedAlgorithm(TokenVerificationError):
    pass


class SignatureInvalid(TokenVerificationError):
    pass


class IssuerMismatch(TokenVerificationError):
    pass


class AudienceMismatch(TokenVerificationError):
    pass


class TokenExpired(TokenVerificationError):
    pass


class TokenNotYetValid(TokenVerificationError):
    pass
