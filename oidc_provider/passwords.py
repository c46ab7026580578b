"""
bcrypt helpers shared by client secrets and user passwords.
"""
import bcrypt

from oidc_provider.config import BCRYPT_ROUNDS


def hash_password(password: str, rounds: int | None = None) -> str:
    # Bcrypt has a 72-byte limit
    raw = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=rounds or BCRYPT_ROUNDS)
    return bcrypt.hashpw(raw, salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Constant-time check of plain against a bcrypt hash. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except ValueError:
        return False
