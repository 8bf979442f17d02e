"""
httpx client for the mail server REST API. Every call carries the session token as bearer.
401 raises Unauthorized (the page forces a new login); other failures raise ApiError.
"""
import json
import logging
from dataclasses import dataclass

import httpx

from mail_web.config import API_BASE_URL, API_SEND_TIMEOUT_SECONDS, API_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class Unauthorized(ApiError):
    """Session token rejected by the mail server."""


@dataclass
class Download:
    content: bytes
    content_type: str
    content_disposition: str | None


def _error_message(r: httpx.Response) -> str:
    """Pull the operation message out of {"detail": {"error", "error_description"}} bodies."""
    try:
        body = r.json()
    except ValueError:
        return r.text[:300] or f"Request failed ({r.status_code})"
    detail = body.get("detail", body) if isinstance(body, dict) else body
    if isinstance(detail, dict):
        return str(detail.get("error_description") or detail.get("error") or detail)
    if isinstance(detail, list) and detail:
        return str(detail[0].get("msg", detail[0])) if isinstance(detail[0], dict) else str(detail[0])
    return str(detail)


def _request(
    method: str,
    path: str,
    token: str,
    *,
    params: dict | None = None,
    json: dict | None = None,
    data: dict | None = None,
    files: list | None = None,
    timeout: float = API_TIMEOUT_SECONDS,
) -> httpx.Response:
    try:
        r = httpx.request(
            method,
            f"{API_BASE_URL}{path}",
            headers={"Authorization": f"Bearer {token}"},
            params=params,
            json=json,
            data=data,
            files=files,
            timeout=timeout,
        )
    except httpx.HTTPError as e:
        logger.error("Mail server %s %s unreachable: %s", method, path, e)
        raise ApiError(502, f"Mail server unreachable: {e}") from e
    if r.status_code == 401:
        raise Unauthorized(401, _error_message(r))
    if r.status_code >= 400:
        message = _error_message(r)
        logger.warning("Mail server %s %s returned %s: %s", method, path, r.status_code, message)
        raise ApiError(r.status_code, message)
    return r


def _download(r: httpx.Response) -> Download:
    return Download(
        content=r.content,
        content_type=r.headers.get("content-type", "application/octet-stream"),
        content_disposition=r.headers.get("content-disposition"),
    )


def list_emails(token: str, page: int = 1, page_size: int = 20) -> dict:
    return _request("GET", "/api/emails", token, params={"page": page, "pageSize": page_size}).json()


def get_email(token: str, email_id: str) -> dict:
    return _request("GET", f"/api/emails/{email_id}", token).json()


def update_email(token: str, email_id: str, patch: dict) -> dict:
    return _request("PATCH", f"/api/emails/{email_id}", token, json=patch).json()


def send_email(token: str, *, to: list[str], subject: str, body: str,
               cc: list[str] | None = None, bcc: list[str] | None = None) -> dict:
    payload = {"to": to, "cc": cc or [], "bcc": bcc or [], "subject": subject, "body": body}
    return _request("POST", "/api/emails/send", token, json=payload).json()


def send_email_with_attachments(
    token: str,
    *,
    to: list[str],
    subject: str,
    body: str,
    attachments: list[tuple[str, bytes, str]],
    cc: list[str] | None = None,
    bcc: list[str] | None = None,
) -> dict:
    """attachments: (filename, content, content_type) tuples, sent as multipart 'attachments' parts."""
    data = {
        "to": json.dumps(to),
        "cc": json.dumps(cc or []),
        "bcc": json.dumps(bcc or []),
        "subject": subject,
        "body": body,
    }
    files = [("attachments", (name, content, ctype)) for name, content, ctype in attachments]
    return _request(
        "POST",
        "/api/emails/send-with-attachments",
        token,
        data=data,
        files=files,
        timeout=API_SEND_TIMEOUT_SECONDS,
    ).json()


def list_attachments(token: str, email_id: str) -> list[dict]:
    return _request("GET", f"/api/emails/{email_id}/attachments", token).json().get("value", [])


def download_attachment(token: str, email_id: str, attachment_id: str, inline: bool = False) -> Download:
    params = {"disposition": "inline"} if inline else None
    return _download(_request("GET", f"/api/emails/{email_id}/attachments/{attachment_id}", token, params=params))


def download_all_attachments(token: str, email_id: str) -> Download:
    return _download(_request("GET", f"/api/emails/{email_id}/attachments/download-all", token))
