"""
Relying party configuration. Values from env with development defaults.
"""
import os

# OpenID Provider (issuer): where we fetch discovery and redirect for login
ISSUER = os.environ.get("OAUTH_ISSUER", "http://127.0.0.1:9000").rstrip("/")

# Our client_id and secret (must be registered at the provider); no secret in code
CLIENT_ID = os.environ.get("OAUTH_CLIENT_ID", "my-client-app")
CLIENT_SECRET = os.environ.get("OAUTH_CLIENT_SECRET", "")

# Callback URL; must be registered byte-for-byte at the provider
REDIRECT_URI = os.environ.get("OAUTH_REDIRECT_URI", "http://127.0.0.1:8000/auth/callback")

DEFAULT_SCOPE = os.environ.get("OAUTH_SCOPE", "openid profile email")

# Timeout for discovery, JWKS and token calls (seconds). Token calls are never retried.
HTTP_TIMEOUT_SECONDS = float(os.environ.get("OAUTH_HTTP_TIMEOUT", "10"))

# Leeway applied to exp/nbf when verifying ID tokens (seconds)
CLOCK_SKEW_SECONDS = int(os.environ.get("OAUTH_CLOCK_SKEW_SECONDS", "30"))

# Signature algorithms we accept; anything else (including "none") is rejected
ALLOWED_ALGORITHMS = tuple(a.strip() for a in os.environ.get("OAUTH_ALLOWED_ALGS", "RS256").split(",") if a.strip())

# Login session lifetime (seconds) and cookie names
SESSION_TTL_SECONDS = 3600
STATE_COOKIE = "oauth_state"
SESSION_COOKIE = "session_id"
