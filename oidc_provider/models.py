"""
Rows the provider reads at startup: users (profile directory) and registered clients.
Authorization codes are never persisted; they live in the in-memory code store.
"""
from datetime import datetime

from sqlalchemy import JSON, DateTime, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "oidc_users"

    id: Mapped[int] = mapped_column(primary_key=True)
    # Value of the sub claim; never reassigned
    subject: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    username: Mapped[str] = mapped_column(String(150), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(60))
    name: Mapped[str | None] = mapped_column(String(200))
    email: Mapped[str | None] = mapped_column(String(320))
    picture: Mapped[str | None] = mapped_column(Text)
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Client(Base):
    __tablename__ = "oidc_clients"

    id: Mapped[int] = mapped_column(primary_key=True)
    client_id: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    # bcrypt; every client here is confidential
    client_secret_hash: Mapped[str] = mapped_column(String(60))
    # Compared byte-for-byte against the redirect_uri parameter
    redirect_uris: Mapped[list[str]] = mapped_column(JSON)
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
