"""Tests for signing key material, JWKS and the discovery document."""
import jwt

from oidc_provider.keys import KeyMaterial


def test_jwks_has_single_signing_key(keys):
    doc = keys.jwks()
    assert len(doc["keys"]) == 1
    jwk = doc["keys"][0]
    assert jwk["kid"] == keys.kid
    assert jwk["kty"] == "RSA"
    assert jwk["alg"] == "RS256"
    assert jwk["use"] == "sig"
    assert "n" in jwk and "e" in jwk
    assert "d" not in jwk


def test_jwks_public_key_matches_private_key(keys):
    jwk = jwt.PyJWK.from_dict(keys.jwks()["keys"][0])
    assert jwk.key.public_numbers() == keys.public_key.public_numbers()


def test_kid_is_stable_for_same_key(keys):
    assert KeyMaterial(keys.private_key).kid == keys.kid
    assert KeyMaterial.generate().kid != keys.kid


def test_load_or_create_persists_key(tmp_path):
    path = tmp_path / "key.pem"
    first = KeyMaterial.load_or_create(str(path))
    assert path.exists()
    second = KeyMaterial.load_or_create(str(path))
    assert second.kid == first.kid


def test_jwks_endpoint_matches_signing_key(client, keys):
    r = client.get("/.well-known/jwks.json")
    assert r.status_code == 200
    assert r.json() == keys.jwks()


def test_openid_configuration(client):
    r = client.get("/.well-known/openid-configuration")
    assert r.status_code == 200
    data = r.json()
    issuer = data["issuer"]
    assert issuer == "http://127.0.0.1:9000"
    assert data["authorization_endpoint"] == f"{issuer}/authorize"
    assert data["token_endpoint"] == f"{issuer}/token"
    assert data["jwks_uri"] == f"{issuer}/.well-known/jwks.json"
    assert data["response_types_supported"] == ["code"]
    assert data["id_token_signing_alg_values_supported"] == ["RS256"]
    assert "client_secret_post" in data["token_endpoint_auth_methods_supported"]


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json().get("service") == "oidc_provider"
