"""
RSA signing key for ID tokens. Load from file or generate and persist; no key material in code.
One key for the process lifetime; JWKS is derived from it so it always matches what we sign with.
"""
import base64
import hashlib
import json
import logging
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey, generate_private_key

from oidc_provider.config import SIGNING_ALGORITHM

logger = logging.getLogger(__name__)

_KEY_BITS = 2048


def _b64url_uint(value: int) -> str:
    return base64.urlsafe_b64encode(value.to_bytes((value.bit_length() + 7) // 8, "big")).rstrip(b"=").decode("ascii")


def _thumbprint(n_b64: str, e_b64: str) -> str:
    """RFC 7638 JWK thumbprint, used as the key id."""
    canonical = json.dumps({"e": e_b64, "kty": "RSA", "n": n_b64}, separators=(",", ":"), sort_keys=True)
    digest = hashlib.sha256(canonical.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def _serialize_private(key: RSAPrivateKey) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


class KeyMaterial:
    """Holds the private signing key, its kid and algorithm."""

    def __init__(self, private_key: RSAPrivateKey, algorithm: str = SIGNING_ALGORITHM):
        self.private_key = private_key
        self.algorithm = algorithm
        numbers = self.public_key.public_numbers()
        self._n = _b64url_uint(numbers.n)
        self._e = _b64url_uint(numbers.e)
        self.kid = _thumbprint(self._n, self._e)

    @classmethod
    def generate(cls) -> "KeyMaterial":
        return cls(generate_private_key(65537, _KEY_BITS))

    @classmethod
    def load_or_create(cls, path: str) -> "KeyMaterial":
        """Load RSA private key from path, or generate one and save it there."""
        p = Path(path)
        if p.exists():
            key = serialization.load_pem_private_key(p.read_bytes(), password=None)
            if not isinstance(key, RSAPrivateKey):
                raise ValueError(f"Signing key at {path} is not an RSA key")
            material = cls(key)
            logger.info("Loaded signing key from %s (kid=%s)", path, material.kid)
            return material
        material = cls.generate()
        try:
            p.write_bytes(_serialize_private(material.private_key))
            logger.info("Generated and saved signing key to %s (kid=%s)", path, material.kid)
        except OSError as e:
            logger.warning("Could not save signing key to %s: %s", path, e)
        return material

    @property
    def public_key(self) -> RSAPublicKey:
        return self.private_key.public_key()

    def public_jwk(self) -> dict:
        return {
            "kty": "RSA",
            "kid": self.kid,
            "alg": self.algorithm,
            "use": "sig",
            "n": self._n,
            "e": self._e,
        }

    def jwks(self) -> dict:
        """Public key set: exactly the key TokenIssuer signs with."""
        return {"keys": [self.public_jwk()]}
