"""
Account storage for the mail server. MAIL_DATABASE_URL selects the database (SQLite file by default).
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mail_server.config import DATABASE_URL
from mail_server.models import Base


def _make_engine(url: str):
    if not url.startswith("sqlite"):
        return create_engine(url)
    # request handlers run in a threadpool; SQLite connections must be shareable across threads
    connect_args = {"check_same_thread": False}
    if url.startswith("sqlite:///:memory:") or url == "sqlite://":
        # one connection, or every session would see its own empty in-memory database
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
    return create_engine(url, connect_args=connect_args)


engine = _make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create the accounts table if missing."""
    Base.metadata.create_all(bind=engine)


def get_db():
    """Request-scoped session; closed when the response is sent."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
