"""Tests for the mail gateway: list, read, send, send-with-attachments, update."""
import base64
import json

import httpx

from mail_server.tests.graph_fakes import FakeResponse

MB = 1024 * 1024


def test_list_maps_paging_to_graph_query(client, auth_headers, graph_stub):
    payload = {"value": [{"id": "m6", "subject": "Hello"}], "@odata.nextLink": "next"}
    graph_stub.on("GET", "/me/messages", FakeResponse(200, json=payload))

    r = client.get("/api/emails", params={"page": 2, "pageSize": 5}, headers=auth_headers)

    assert r.status_code == 200
    assert r.json() == payload
    call = graph_stub.calls_to("GET", "/me/messages")[0]
    assert call.params["$top"] == 5
    assert call.params["$skip"] == 5
    assert call.params["$orderby"] == "receivedDateTime DESC"
    assert "receivedDateTime" in call.params["$select"]
    assert call.headers["Authorization"] == "Bearer graph-at-alice"
    assert call.timeout == 10.0


def test_list_defaults_to_first_page_of_twenty(client, auth_headers, graph_stub):
    graph_stub.on("GET", "/me/messages", FakeResponse(200, json={"value": []}))
    client.get("/api/emails", headers=auth_headers)
    call = graph_stub.calls[0]
    assert call.params["$top"] == 20
    assert call.params["$skip"] == 0


def test_list_rejects_bad_paging(client, auth_headers, graph_stub):
    r = client.get("/api/emails", params={"page": 0}, headers=auth_headers)
    assert r.status_code == 422
    assert graph_stub.calls == []


def test_list_upstream_failure_returns_500(client, auth_headers, graph_stub):
    graph_stub.on("GET", "/me/messages", FakeResponse(401, json={"error": {"code": "InvalidAuthenticationToken"}}))
    r = client.get("/api/emails", headers=auth_headers)
    assert r.status_code == 500
    detail = r.json()["detail"]
    assert detail["error"] == "Failed to fetch emails"
    assert detail["details"] == {"code": "InvalidAuthenticationToken"}


def test_list_upstream_timeout_returns_500(client, auth_headers, graph_stub):
    graph_stub.on("GET", "/me/messages", httpx.ReadTimeout("timed out"))
    r = client.get("/api/emails", headers=auth_headers)
    assert r.status_code == 500
    assert r.json()["detail"]["error"] == "Failed to fetch emails"


def test_get_email_passes_through(client, auth_headers, graph_stub):
    message = {"id": "abc", "subject": "Hi", "body": {"contentType": "html", "content": "<p>x</p>"}}
    graph_stub.on("GET", "/me/messages/abc", FakeResponse(200, json=message))
    r = client.get("/api/emails/abc", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == message


def test_get_email_not_found(client, auth_headers, graph_stub):
    r = client.get("/api/emails/missing", headers=auth_headers)
    assert r.status_code == 404
    assert r.json()["detail"]["error"] == "Failed to fetch email"


def test_send_builds_graph_message(client, auth_headers, graph_stub):
    graph_stub.on("POST", "/me/sendMail", FakeResponse(202))
    r = client.post(
        "/api/emails/send",
        json={"to": ["bob@example.com"], "cc": "c@example.com", "subject": "Hi", "body": "<b>Hello</b>"},
        headers=auth_headers,
    )
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Email sent successfully"}
    sent = graph_stub.calls_to("POST", "/me/sendMail")[0].json["message"]
    assert sent["subject"] == "Hi"
    assert sent["body"] == {"contentType": "HTML", "content": "<b>Hello</b>"}
    assert sent["toRecipients"] == [{"emailAddress": {"address": "bob@example.com"}}]
    assert sent["ccRecipients"] == [{"emailAddress": {"address": "c@example.com"}}]
    assert "bccRecipients" not in sent


def test_send_with_empty_to_is_rejected_before_upstream(client, auth_headers, graph_stub):
    r = client.post("/api/emails/send", json={"to": [], "subject": "Hi", "body": "x"}, headers=auth_headers)
    assert r.status_code == 400
    assert graph_stub.calls == []


def test_send_with_malformed_recipients_is_rejected(client, auth_headers, graph_stub):
    r = client.post("/api/emails/send", json={"to": ["nobody"], "subject": "Hi", "body": "x"}, headers=auth_headers)
    assert r.status_code == 400
    assert graph_stub.calls == []


def test_send_with_non_string_recipient_is_bad_request(client, auth_headers, graph_stub):
    r = client.post("/api/emails/send", json={"to": [5], "subject": "Hi", "body": "x"}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "invalid_request"
    assert "'to'" in r.json()["detail"]["error_description"]
    assert graph_stub.calls == []


def test_send_with_bad_json_recipient_string(client, auth_headers, graph_stub):
    r = client.post("/api/emails/send", json={"to": "[\"a@x.com\"", "subject": "Hi", "body": "x"}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "invalid_request"
    assert graph_stub.calls == []


def test_send_upstream_failure(client, auth_headers, graph_stub):
    graph_stub.on("POST", "/me/sendMail", FakeResponse(403, json={"error": {"code": "ErrorAccessDenied"}}))
    r = client.post("/api/emails/send", json={"to": ["b@x.com"], "subject": "s", "body": "b"}, headers=auth_headers)
    assert r.status_code == 500
    assert r.json()["detail"]["error"] == "Failed to send email"


def test_send_with_attachments_encodes_files(client, auth_headers, graph_stub):
    graph_stub.on("POST", "/me/sendMail", FakeResponse(202))
    r = client.post(
        "/api/emails/send-with-attachments",
        data={"to": json.dumps(["bob@example.com"]), "bcc": '["hidden@example.com"]', "subject": "Files", "body": "See attached"},
        files=[
            ("attachments", ("notes.txt", b"hello world", "text/plain")),
            ("attachments", ("image.png", b"\x89PNG\r\n", "image/png")),
        ],
        headers=auth_headers,
    )
    assert r.status_code == 200
    assert r.json()["attachments"] == 2

    call = graph_stub.calls_to("POST", "/me/sendMail")[0]
    assert call.timeout == 60.0
    assert call.json["saveToSentItems"] is True
    message = call.json["message"]
    assert message["bccRecipients"] == [{"emailAddress": {"address": "hidden@example.com"}}]
    first, second = message["attachments"]
    assert first["@odata.type"] == "#microsoft.graph.fileAttachment"
    assert first["name"] == "notes.txt"
    assert first["contentType"] == "text/plain"
    assert base64.b64decode(first["contentBytes"]) == b"hello world"
    assert second["contentType"] == "image/png"


def test_send_with_attachments_rejects_oversized_file(client, auth_headers, graph_stub):
    r = client.post(
        "/api/emails/send-with-attachments",
        data={"to": "bob@example.com", "subject": "Big", "body": "x"},
        files=[("attachments", ("big.bin", b"\0" * (11 * MB), "application/octet-stream"))],
        headers=auth_headers,
    )
    assert r.status_code == 413
    assert graph_stub.calls == []


def test_send_with_attachments_accepts_file_at_limit(client, auth_headers, graph_stub):
    graph_stub.on("POST", "/me/sendMail", FakeResponse(202))
    r = client.post(
        "/api/emails/send-with-attachments",
        data={"to": "bob@example.com", "subject": "Edge", "body": "x"},
        files=[("attachments", ("edge.bin", b"\0" * (10 * MB), "application/octet-stream"))],
        headers=auth_headers,
    )
    assert r.status_code == 200


def test_send_with_attachments_rejects_eleven_files(client, auth_headers, graph_stub):
    files = [("attachments", (f"f{i}.txt", b"x", "text/plain")) for i in range(11)]
    r = client.post(
        "/api/emails/send-with-attachments",
        data={"to": "bob@example.com", "subject": "Many", "body": "x"},
        files=files,
        headers=auth_headers,
    )
    assert r.status_code == 400
    assert "Too many attachments" in r.json()["detail"]["error_description"]
    assert graph_stub.calls == []


def test_send_with_attachments_requires_recipients(client, auth_headers, graph_stub):
    r = client.post(
        "/api/emails/send-with-attachments",
        data={"subject": "s", "body": "b"},
        files=[("attachments", ("a.txt", b"x", "text/plain"))],
        headers=auth_headers,
    )
    assert r.status_code == 400
    assert graph_stub.calls == []


def test_send_with_attachments_requires_subject_or_body(client, auth_headers, graph_stub):
    r = client.post(
        "/api/emails/send-with-attachments",
        data={"to": "bob@example.com", "subject": " ", "body": ""},
        headers=auth_headers,
    )
    assert r.status_code == 400


def test_send_with_attachments_rejects_malformed_cc(client, auth_headers, graph_stub):
    r = client.post(
        "/api/emails/send-with-attachments",
        data={"to": "bob@example.com", "cc": '["broken"', "subject": "s", "body": "b"},
        headers=auth_headers,
    )
    assert r.status_code == 400
    assert "cc" in r.json()["detail"]["error_description"]


def test_update_passes_patch_through(client, auth_headers, graph_stub):
    graph_stub.on("PATCH", "/me/messages/abc", FakeResponse(200, json={"id": "abc", "isRead": True}))
    r = client.patch("/api/emails/abc", json={"isRead": True}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["isRead"] is True
    assert graph_stub.calls[0].json == {"isRead": True}


def test_update_failure(client, auth_headers, graph_stub):
    graph_stub.on("PATCH", "/me/messages/abc", FakeResponse(500, content=b"boom"))
    r = client.patch("/api/emails/abc", json={"isRead": False}, headers=auth_headers)
    assert r.status_code == 500
    assert r.json()["detail"] == {"error": "Failed to update email", "details": "boom"}
