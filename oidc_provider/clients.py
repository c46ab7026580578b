"""
Client registry: registered client id -> secret hash + allowed redirect URIs.
Built once at startup (static map or database rows) and read-only afterwards.
"""
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from sqlalchemy.orm import Session

from oidc_provider.errors import InvalidClient, InvalidRedirect
from oidc_provider.models import Client as ClientRow
from oidc_provider.passwords import hash_password, verify_password

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Client:
    id: str
    secret_hash: str
    redirect_uris: frozenset[str]

    def verify_secret(self, secret: str | None) -> bool:
        if not secret:
            return False
        return verify_password(secret, self.secret_hash)


class ClientRegistry:
    """Immutable lookup of registered clients."""

    def __init__(self, clients: Iterable[Client], rounds: int | None = None):
        self._clients: dict[str, Client] = {}
        for client in clients:
            if client.id in self._clients:
                raise ValueError(f"Duplicate client_id: {client.id}")
            self._clients[client.id] = client
        # Compared against when the client is unknown so both paths pay one bcrypt check
        self._dummy_hash = hash_password("not-a-registered-client", rounds)

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[str, tuple[str, Iterable[str]]],
        rounds: int | None = None,
    ) -> "ClientRegistry":
        """Build from {client_id: (plain_secret, redirect_uris)}; secrets are hashed here."""
        return cls(
            (
                Client(id=client_id, secret_hash=hash_password(secret, rounds), redirect_uris=frozenset(uris))
                for client_id, (secret, uris) in mapping.items()
            ),
            rounds=rounds,
        )

    def __len__(self) -> int:
        return len(self._clients)

    def lookup(self, client_id: str | None) -> Client | None:
        if not client_id:
            return None
        return self._clients.get(client_id)

    @staticmethod
    def validate_redirect(client: Client, uri: str | None) -> bool:
        """Exact string equality against the registered set; no normalization."""
        if uri is None:
            return False
        return uri in client.redirect_uris

    def resolve_redirect(self, client_id: str | None, redirect_uri: str | None) -> Client:
        """Authorize-time check. Raises before any code can be issued."""
        client = self.lookup(client_id)
        if client is None:
            raise InvalidClient(f"unknown client_id {client_id!r}")
        if not self.validate_redirect(client, redirect_uri):
            raise InvalidRedirect(f"redirect_uri not registered for {client.id}")
        return client

    def authenticate(self, client_id: str | None, client_secret: str | None) -> Client:
        """Return the client if the secret matches; raise InvalidClient otherwise."""
        client = self.lookup(client_id)
        if client is None:
            verify_password(client_secret or "", self._dummy_hash)
            raise InvalidClient(f"unknown client_id {client_id!r}")
        if not client.verify_secret(client_secret):
            raise InvalidClient(f"bad client_secret for {client.id}")
        return client


def load_client_registry(db: Session) -> ClientRegistry:
    """Database-backed loader: read every client row once."""
    rows = db.query(ClientRow).all()
    registry = ClientRegistry(
        Client(
            id=row.client_id,
            secret_hash=row.client_secret_hash,
            redirect_uris=frozenset(row.redirect_uris),
        )
        for row in rows
    )
    logger.info("Loaded %d client(s) from database", len(registry))
    return registry


def client_row(client_id: str, client_secret: str, redirect_uris: Iterable[str]) -> ClientRow:
    """New DB row for a confidential client; the secret is stored hashed."""
    return ClientRow(
        client_id=client_id,
        client_secret_hash=hash_password(client_secret),
        redirect_uris=list(redirect_uris),
    )
