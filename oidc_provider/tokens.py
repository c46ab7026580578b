"""
ID token issuance: claims for a redeemed (client_id, subject_id), signed with the current key.
"""
import logging

import jwt

from oidc_provider.config import ID_TOKEN_TTL_SECONDS, ISSUER
from oidc_provider.errors import ServerError
from oidc_provider.keys import KeyMaterial
from oidc_provider.users import UserDirectory

logger = logging.getLogger(__name__)


class TokenIssuer:
    def __init__(
        self,
        keys: KeyMaterial,
        users: UserDirectory,
        issuer: str = ISSUER,
        ttl_seconds: int = ID_TOKEN_TTL_SECONDS,
    ):
        self.keys = keys
        self.users = users
        self.issuer = issuer
        self.ttl_seconds = ttl_seconds

    def build_claims(self, client_id: str, subject_id: str, now: float) -> dict:
        """iss/sub/aud/exp/iat plus the subject's profile claims; integer UTC seconds."""
        profile = self.users.get_profile(subject_id)
        if profile is None:
            raise ServerError(f"no profile for subject {subject_id!r}")
        iat = int(now)
        claims = {
            "iss": self.issuer,
            "sub": subject_id,
            "aud": client_id,
            "exp": iat + self.ttl_seconds,
            "iat": iat,
        }
        claims.update(profile.claims())
        return claims

    def issue_id_token(self, client_id: str, subject_id: str, now: float) -> str:
        claims = self.build_claims(client_id, subject_id, now)
        token = jwt.encode(
            claims,
            self.keys.private_key,
            algorithm=self.keys.algorithm,
            headers={"kid": self.keys.kid, "typ": "JWT"},
        )
        logger.info("Issued ID token for client_id=%s sub=%s", client_id, subject_id)
        return token
