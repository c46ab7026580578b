"""
User directory: subject id -> profile claims, plus password login for the authorize step.
"""
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.orm import Session

from oidc_provider.config import PROFILE_CLAIMS
from oidc_provider.models import User
from oidc_provider.passwords import verify_password

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Profile:
    subject: str
    name: str | None = None
    email: str | None = None
    picture: str | None = None

    def claims(self) -> dict[str, str]:
        """Profile claims for the ID token; unset values are omitted."""
        values = {name: getattr(self, name) for name in PROFILE_CLAIMS}
        return {k: v for k, v in values.items() if v is not None}


@dataclass(frozen=True)
class UserRecord:
    username: str
    password_hash: str
    profile: Profile


class UserDirectory(Protocol):
    def authenticate(self, username: str, password: str) -> str | None:
        """Return the subject id when the password matches, else None."""
        ...

    def get_profile(self, subject_id: str) -> Profile | None:
        ...


class InMemoryUserDirectory:
    def __init__(self, users: Iterable[UserRecord]):
        self._by_username = {u.username: u for u in users}
        self._by_subject = {u.profile.subject: u.profile for u in self._by_username.values()}

    def authenticate(self, username: str, password: str) -> str | None:
        user = self._by_username.get(username)
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user.profile.subject

    def get_profile(self, subject_id: str) -> Profile | None:
        return self._by_subject.get(subject_id)


def _profile_from_row(user: User) -> Profile:
    return Profile(subject=user.subject, name=user.name, email=user.email, picture=user.picture)


class SqlUserDirectory:
    """Reads users from the database on each call; opens a short session per lookup."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def authenticate(self, username: str, password: str) -> str | None:
        db = self._session_factory()
        try:
            user = db.query(User).filter(User.username == username).first()
            if user is None or not verify_password(password, user.password_hash):
                logger.info("Login failed for username=%s", username)
                return None
            return user.subject
        finally:
            db.close()

    def get_profile(self, subject_id: str) -> Profile | None:
        db = self._session_factory()
        try:
            user = db.query(User).filter(User.subject == subject_id).first()
            return _profile_from_row(user) if user else None
        finally:
            db.close()
