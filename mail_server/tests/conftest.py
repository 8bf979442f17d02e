"""
Pytest configuration for mail_server. In-memory SQLite and a fixed session secret, set before the
app modules are imported; Graph is replaced by GraphStub so no test touches the network.
"""
import os

os.environ["MAIL_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SESSION_SECRET"] = "test-session-secret-0123456789"
os.environ["FRONTEND_URL"] = "http://frontend.test"
os.environ["MS_CLIENT_ID"] = "00000000-0000-0000-0000-000000000000"
os.environ["MS_CLIENT_SECRET"] = "test-client-secret"
os.environ["MS_REDIRECT_URI"] = "http://api.test/auth/callback"

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from mail_server.accounts import upsert_account
from mail_server.database import SessionLocal, init_db
from mail_server.main import app
from mail_server.models import Account
from mail_server.session import issue_session_token
from mail_server.tests.graph_fakes import GraphStub


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    """Fresh accounts table per test."""
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.query(Account).delete()
        session.commit()
        session.close()


@pytest.fixture
def account(db):
    return upsert_account(
        db,
        email="alice@example.com",
        display_name="Alice",
        access_token="graph-at-alice",
        refresh_token="graph-rt-alice",
        expires_in=3600,
    )


@pytest.fixture
def auth_headers(account):
    return {"Authorization": f"Bearer {issue_session_token(account)}"}


@pytest.fixture
def graph_stub():
    stub = GraphStub()
    with patch("mail_server.graph.httpx.request", side_effect=stub):
        yield stub
