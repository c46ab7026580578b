"""
ID token verification against a pre-fetched key set.
Fails closed: any failed check raises a TokenVerificationError subclass; there is no partial result.
"""
import logging
import math
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

import jwt

from oidc_client.config import ALLOWED_ALGORITHMS, CLOCK_SKEW_SECONDS
from oidc_client.errors import (
    AudienceMismatch,
    DiscoveryError,
    IssuerMismatch,
    MalformedToken,
    MissingClaim,
    SignatureInvalid,
    TokenExpired,
    TokenVerificationError,
    TokenNotYetValid,
    UnsupportedAlgorithm,
)

logger = logging.getLogger(__name__)

# Signature only; every claim is checked below against the caller's clock
_DECODE_OPTIONS = {
    "verify_signature": True,
    "verify_exp": False,
    "verify_nbf": False,
    "verify_iat": False,
    "verify_aud": False,
    "verify_iss": False,
    "verify_sub": False,
    "verify_jti": False,
}

_REGISTERED = {"iss", "sub", "aud", "exp", "iat", "nbf", "name", "email", "picture"}


class KeySet:
    """Public signing keys by kid, built once from a JWKS document."""

    def __init__(self, keys: Iterable[jwt.PyJWK]):
        self._keys = {k.key_id: k for k in keys if k.key_id and k.public_key_use in (None, "sig")}
        if not self._keys:
            raise DiscoveryError("JWKS contains no usable signing keys")

    @classmethod
    def from_jwks(cls, document: dict) -> "KeySet":
        try:
            jwk_set = jwt.PyJWKSet.from_dict(document)
        except (jwt.PyJWKSetError, jwt.PyJWKError) as e:
            raise DiscoveryError(f"Invalid JWKS: {e}") from e
        return cls(jwk_set.keys)

    def get(self, kid: str | None) -> jwt.PyJWK | None:
        if not isinstance(kid, str):
            return None
        return self._keys.get(kid)

    def __len__(self) -> int:
        return len(self._keys)


def _require_str(payload: dict, name: str) -> str:
    if name not in payload:
        raise MissingClaim(f"missing required claim: {name}")
    value = payload[name]
    if not isinstance(value, str) or not value:
        raise MalformedToken(f"claim {name} must be a non-empty string")
    return value


def _numeric(payload: dict, name: str, required: bool = True) -> float | None:
    if name not in payload:
        if required:
            raise MissingClaim(f"missing required claim: {name}")
        return None
    value = payload[name]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedToken(f"claim {name} must be a number")
    # json accepts NaN and Infinity; neither is a time
    if isinstance(value, float) and not math.isfinite(value):
        raise MalformedToken(f"claim {name} must be finite")
    return value


def _optional_str(payload: dict, name: str) -> str | None:
    value = payload.get(name)
    if value is not None and not isinstance(value, str):
        raise MalformedToken(f"claim {name} must be a string")
    return value


def _audience(payload: dict) -> tuple[str, ...]:
    if "aud" not in payload:
        raise MissingClaim("missing required claim: aud")
    aud = payload["aud"]
    if isinstance(aud, str):
        aud = [aud]
    if not isinstance(aud, list) or not aud or not all(isinstance(a, str) for a in aud):
        raise MalformedToken("claim aud must be a string or a non-empty list of strings")
    return tuple(aud)


@dataclass(frozen=True)
class IDTokenClaims:
    iss: str
    sub: str
    aud: tuple[str, ...]
    exp: float
    iat: float
    nbf: float | None = None
    name: str | None = None
    email: str | None = None
    picture: str | None = None
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict) -> "IDTokenClaims":
        """Typed decode of the payload; raises on any missing or mistyped claim."""
        return cls(
            iss=_require_str(payload, "iss"),
            sub=_require_str(payload, "sub"),
            aud=_audience(payload),
            exp=_numeric(payload, "exp"),
            iat=_numeric(payload, "iat"),
            nbf=_numeric(payload, "nbf", required=False),
            name=_optional_str(payload, "name"),
            email=_optional_str(payload, "email"),
            picture=_optional_str(payload, "picture"),
            extra={k: v for k, v in payload.items() if k not in _REGISTERED},
        )

    def profile(self) -> dict:
        return {"sub": self.sub, "name": self.name, "email": self.email, "picture": self.picture}


class IDTokenVerifier:
    def __init__(
        self,
        keys: KeySet,
        allowed_algorithms: Iterable[str] = ALLOWED_ALGORITHMS,
        leeway: int = CLOCK_SKEW_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.keys = keys
        self.allowed_algorithms = frozenset(allowed_algorithms)
        self.leeway = leeway
        self._clock = clock

    def _verified_payload(self, raw_token: str) -> dict:
        if not isinstance(raw_token, str) or raw_token.count(".") != 2:
            raise MalformedToken("token must have three dot-separated segments")
        try:
            header = jwt.get_unverified_header(raw_token)
        except jwt.InvalidTokenError as e:
            raise MalformedToken(f"undecodable header: {e}") from e

        alg = header.get("alg")
        if not isinstance(alg, str) or alg not in self.allowed_algorithms:
            raise UnsupportedAlgorithm(f"algorithm {alg!r} is not allowed")

        key = self.keys.get(header.get("kid"))
        if key is None:
            raise SignatureInvalid(f"no key for kid {header.get('kid')!r}")
        if key.algorithm_name != alg:
            raise UnsupportedAlgorithm(f"key {key.key_id} is for {key.algorithm_name}, token uses {alg}")

        try:
            return jwt.decode(raw_token, key.key, algorithms=[alg], options=_DECODE_OPTIONS)
        except jwt.InvalidSignatureError as e:
            raise SignatureInvalid("signature verification failed") from e
        except jwt.InvalidAlgorithmError as e:
            raise UnsupportedAlgorithm(str(e)) from e
        except jwt.InvalidTokenError as e:
            raise MalformedToken(f"undecodable token: {e}") from e

    def verify(
        self,
        raw_token: str,
        expected_issuer: str,
        expected_audience: str,
        now: float | None = None,
    ) -> IDTokenClaims:
        """
        Check signature (allow-listed algorithm, key by kid), then iss, aud, exp and nbf.
        Returns typed claims only when every check passes.
        """
        if now is None:
            now = self._clock()
        try:
            claims = IDTokenClaims.from_payload(self._verified_payload(raw_token))
            if claims.iss != expected_issuer:
                raise IssuerMismatch(f"iss {claims.iss!r} != {expected_issuer!r}")
            if expected_audience not in claims.aud:
                raise AudienceMismatch(f"{expected_audience!r} not in aud")
            if now > claims.exp + self.leeway:
                raise TokenExpired(f"token expired at {claims.exp}")
            if claims.nbf is not None and now + self.leeway < claims.nbf:
                raise TokenNotYetValid(f"token not valid before {claims.nbf}")
        except TokenVerificationError as e:
            logger.warning("ID token rejected (%s): %s", type(e).__name__, e)
            raise
        return claims
