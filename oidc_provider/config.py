"""
OpenID Provider configuration. Public identifiers and lifetimes only.
No secrets in this file; credentials come from env or DB.
"""
import os

# Issuer URL (public identifier); must match the iss claim byte-for-byte
ISSUER = os.environ.get("OAUTH_ISSUER", "http://127.0.0.1:9000").rstrip("/")

# Authorization code lifetime (seconds): five minutes
CODE_TTL_SECONDS = int(os.environ.get("OAUTH_CODE_TTL_SECONDS", "300"))

# ID token lifetime (seconds); also reported as expires_in
ID_TOKEN_TTL_SECONDS = 3600

# Signing algorithm for ID tokens (single key, no rotation)
SIGNING_ALGORITHM = "RS256"

# How often the background task purges expired codes (seconds)
CODE_SWEEP_INTERVAL_SECONDS = float(os.environ.get("OAUTH_CODE_SWEEP_INTERVAL", "60"))

# SQLite for development: users and clients are loaded from here at startup
DATABASE_URL = os.environ.get("AUTH_DATABASE_URL", "sqlite:///./oidc_provider.db")

# Path to RSA private key PEM file. If missing, a key is generated and saved there.
SIGNING_KEY_PATH = os.environ.get("OAUTH_SIGNING_KEY_PATH", ".oidc_signing_key.pem")

# bcrypt cost for client secrets and user passwords
BCRYPT_ROUNDS = int(os.environ.get("OAUTH_BCRYPT_ROUNDS", "12"))

# Profile claims copied from the user directory into the ID token
PROFILE_CLAIMS = ("name", "email", "picture")
