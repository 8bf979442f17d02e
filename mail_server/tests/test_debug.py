"""Tests for /health and the /debug diagnostics."""
from unittest.mock import patch

import httpx

from mail_server.tests.graph_fakes import FakeResponse


def test_health_returns_200(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["service"] == "mail_server"
    assert "timestamp" in body


def test_debug_check_never_echoes_secrets(client):
    r = client.get("/debug/check")
    assert r.status_code == 200
    body = r.json()
    assert body["config"]["clientId"]["valid"] is True
    assert body["config"]["clientSecret"]["value"] == "set"
    assert body["config"]["sessionSecret"]["value"] == "set"
    assert "test-client-secret" not in r.text
    assert "test-session-secret" not in r.text
    assert body["config"]["redirectUri"]["value"] == "http://api.test/auth/callback"
    assert len(body["troubleshooting"]) == 5


def test_debug_test_microsoft_reachable(client):
    with patch("mail_server.graph.httpx.get", return_value=FakeResponse(200, json={"@odata.context": "x"})):
        r = client.get("/debug/test-microsoft")
    assert r.status_code == 200
    assert r.json()["microsoftGraph"] == "Reachable"


def test_debug_test_microsoft_unreachable(client):
    with patch("mail_server.graph.httpx.get", side_effect=httpx.ConnectError("no route")):
        r = client.get("/debug/test-microsoft")
    assert r.status_code == 200
    body = r.json()
    assert body["microsoftGraph"] == "Unreachable"
    assert "no route" in body["error"]
