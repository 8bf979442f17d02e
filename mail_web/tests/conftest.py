"""
Pytest configuration for mail_web. The mail server is replaced by ApiStub (patched httpx.request).
"""
import os

os.environ["MAIL_API_URL"] = "http://api.test"
os.environ["MAIL_WEB_URL"] = "http://web.test"

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from mail_web.config import SESSION_COOKIE_NAME
from mail_web.main import app
from mail_web.tests.api_fakes import ApiStub, make_token


@pytest.fixture
def token():
    return make_token()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def logged_in(token):
    return TestClient(app, cookies={SESSION_COOKIE_NAME: token})


@pytest.fixture
def api_stub():
    stub = ApiStub()
    with patch("mail_web.api_client.httpx.request", side_effect=stub):
        yield stub
