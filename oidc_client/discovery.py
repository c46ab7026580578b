"""
Bootstrap: fetch the provider's discovery document and key set once, before any login.
"""
import logging
from dataclasses import dataclass

import httpx

from oidc_client.config import HTTP_TIMEOUT_SECONDS
from oidc_client.errors import DiscoveryError
from oidc_client.verifier import KeySet

logger = logging.getLogger(__name__)

DISCOVERY_PATH = "/.well-known/openid-configuration"


@dataclass(frozen=True)
class ProviderMetadata:
    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    jwks_uri: str
    response_types_supported: tuple[str, ...]
    id_token_signing_alg_values_supported: tuple[str, ...]

    @classmethod
    def from_document(cls, document: dict) -> "ProviderMetadata":
        """Typed decode of the discovery JSON; raises DiscoveryError on shape mismatch."""
        if not isinstance(document, dict):
            raise DiscoveryError("discovery document must be a JSON object")
        values = {}
        for name in ("issuer", "authorization_endpoint", "token_endpoint", "jwks_uri"):
            value = document.get(name)
            if not isinstance(value, str) or not value:
                raise DiscoveryError(f"discovery document missing {name}")
            values[name] = value
        for name in ("response_types_supported", "id_token_signing_alg_values_supported"):
            value = document.get(name)
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise DiscoveryError(f"discovery document missing {name}")
            values[name] = tuple(value)
        return cls(**values)


def _get_json(http: httpx.Client, url: str, timeout: float) -> dict:
    try:
        r = http.get(url, headers={"Accept": "application/json"}, timeout=timeout)
        r.raise_for_status()
        return r.json()
    except (httpx.HTTPError, ValueError) as e:
        raise DiscoveryError(f"GET {url} failed: {e}") from e


def fetch_provider_metadata(
    http: httpx.Client,
    issuer: str,
    timeout: float = HTTP_TIMEOUT_SECONDS,
) -> ProviderMetadata:
    """Fetch {issuer}/.well-known/openid-configuration; its issuer must equal ours exactly."""
    metadata = ProviderMetadata.from_document(_get_json(http, f"{issuer}{DISCOVERY_PATH}", timeout))
    if metadata.issuer != issuer:
        raise DiscoveryError(f"issuer mismatch: expected {issuer!r}, provider says {metadata.issuer!r}")
    if "code" not in metadata.response_types_supported:
        raise DiscoveryError("provider does not support response_type=code")
    logger.info("Discovered provider %s", issuer)
    return metadata


def fetch_key_set(
    http: httpx.Client,
    jwks_uri: str,
    timeout: float = HTTP_TIMEOUT_SECONDS,
) -> KeySet:
    keys = KeySet.from_jwks(_get_json(http, jwks_uri, timeout))
    logger.info("Fetched %d signing key(s) from %s", len(keys), jwks_uri)
    return keys
