"""
Pytest configuration for oidc_provider. In-memory SQLite, a throwaway signing key path,
and cheap bcrypt so tests don't touch the working directory or burn CPU.
"""
import os
import tempfile

os.environ["AUTH_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["OAUTH_SIGNING_KEY_PATH"] = os.path.join(tempfile.mkdtemp(), "signing_key.pem")
os.environ["OAUTH_BCRYPT_ROUNDS"] = "4"
for _name in ("OAUTH_ISSUER", "OAUTH_SEED_USER", "OAUTH_SEED_PASSWORD", "OAUTH_CLIENT_ID", "OAUTH_SEED_CLIENT_SECRET"):
    os.environ.pop(_name, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from oidc_provider.clients import ClientRegistry  # noqa: E402
from oidc_provider.code_store import AuthorizationCodeStore  # noqa: E402
from oidc_provider.keys import KeyMaterial  # noqa: E402
from oidc_provider.main import create_app  # noqa: E402
from oidc_provider.passwords import hash_password  # noqa: E402
from oidc_provider.users import InMemoryUserDirectory, Profile, UserRecord  # noqa: E402

REDIRECT_URI = "http://127.0.0.1:8080/auth/callback"
OTHER_REDIRECT_URI = "http://127.0.0.1:8081/callback"


@pytest.fixture(scope="session")
def keys():
    return KeyMaterial.generate()


@pytest.fixture(scope="session")
def registry():
    return ClientRegistry.from_mapping(
        {
            "c1": ("secret-1", [REDIRECT_URI]),
            "c2": ("secret-2", [OTHER_REDIRECT_URI]),
        },
        rounds=4,
    )


@pytest.fixture(scope="session")
def users():
    return InMemoryUserDirectory(
        [
            UserRecord(
                username="demo",
                password_hash=hash_password("password", rounds=4),
                profile=Profile(
                    subject="u1",
                    name="Demo User",
                    email="demo.user@example.com",
                    picture="https://www.gravatar.com/avatar/?d=mp",
                ),
            )
        ]
    )


@pytest.fixture
def codes():
    return AuthorizationCodeStore()


@pytest.fixture
def client(registry, users, keys, codes):
    app = create_app(clients=registry, users=users, keys=keys, codes=codes)
    with TestClient(app) as c:
        yield c
