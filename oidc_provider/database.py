"""
Provider database. SQLite unless AUTH_DATABASE_URL points elsewhere.
"""
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from oidc_provider.config import DATABASE_URL
from oidc_provider.models import Base


def make_engine(url: str) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url)
    # Routes run in FastAPI's threadpool; an in-memory database must stay one shared connection
    options: dict = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in url:
        options["poolclass"] = StaticPool
    return create_engine(url, **options)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False)


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
