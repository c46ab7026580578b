"""
First-run data from the environment; nothing is seeded unless the variables are set.

    OAUTH_SEED_USER, OAUTH_SEED_PASSWORD  [OAUTH_SEED_NAME, OAUTH_SEED_EMAIL, OAUTH_SEED_PICTURE]
    OAUTH_CLIENT_ID, OAUTH_SEED_CLIENT_SECRET, OAUTH_REDIRECT_URIS (comma-separated)
"""
import logging
import os
import secrets

from sqlalchemy import select
from sqlalchemy.orm import Session

from oidc_provider.clients import client_row
from oidc_provider.models import Client, User
from oidc_provider.passwords import hash_password

logger = logging.getLogger(__name__)


def _exists(db: Session, column, value: str) -> bool:
    return db.scalar(select(column).where(column == value)) is not None


def _seed_user(db: Session, username: str, password: str) -> None:
    if _exists(db, User.username, username):
        return
    db.add(
        User(
            subject=f"user-{secrets.token_hex(8)}",
            username=username,
            password_hash=hash_password(password),
            name=os.environ.get("OAUTH_SEED_NAME"),
            email=os.environ.get("OAUTH_SEED_EMAIL"),
            picture=os.environ.get("OAUTH_SEED_PICTURE"),
        )
    )
    logger.info("Seeded user %s", username)


def _seed_client(db: Session, client_id: str, client_secret: str, uris: list[str]) -> None:
    if _exists(db, Client.client_id, client_id):
        return
    db.add(client_row(client_id, client_secret, uris))
    logger.info("Seeded client %s with %d redirect URI(s)", client_id, len(uris))


def seed_from_env(db: Session) -> None:
    """Idempotent: rows that already exist are left untouched."""
    username, password = os.environ.get("OAUTH_SEED_USER"), os.environ.get("OAUTH_SEED_PASSWORD")
    if username and password:
        _seed_user(db, username, password)

    client_id, client_secret = os.environ.get("OAUTH_CLIENT_ID"), os.environ.get("OAUTH_SEED_CLIENT_SECRET")
    uris = [u.strip() for u in os.environ.get("OAUTH_REDIRECT_URIS", "").split(",") if u.strip()]
    if client_id and client_secret and uris:
        _seed_client(db, client_id, client_secret, uris)
    db.commit()
