"""
Microsoft Graph client for the mail gateway. Synchronous httpx calls with fixed timeouts.
Every call uses the caller's stored provider access token; failures raise GraphError, never retried.
"""
import logging
from typing import Any

import httpx

from mail_server.config import GRAPH_API_BASE, GRAPH_PING_TIMEOUT_SECONDS, GRAPH_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

USER_AGENT = "Email-Client-App/1.0"
MESSAGE_LIST_FIELDS = "id,subject,from,receivedDateTime,isRead,bodyPreview,hasAttachments"
ATTACHMENT_LIST_FIELDS = "id,name,contentType,size,isInline,lastModifiedDateTime"

FILE_ATTACHMENT = "#microsoft.graph.fileAttachment"
ITEM_ATTACHMENT = "#microsoft.graph.itemAttachment"
REFERENCE_ATTACHMENT = "#microsoft.graph.referenceAttachment"


class GraphError(Exception):
    """Graph request failed (transport error or 4xx/5xx)."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details if details is not None else message


def _error_details(r: httpx.Response) -> Any:
    """Provider error body (Graph returns {"error": {"code", "message"}}) or raw text."""
    content_type = r.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = r.json()
        except ValueError:
            return r.text[:800]
        return body.get("error", body) if isinstance(body, dict) else body
    return (r.text or "")[:800] or None


def request(
    method: str,
    path: str,
    access_token: str,
    *,
    params: dict | None = None,
    json: Any = None,
    timeout: float = GRAPH_TIMEOUT_SECONDS,
) -> httpx.Response:
    """Authenticated Graph call. Returns the response on 2xx, raises GraphError otherwise."""
    url = f"{GRAPH_API_BASE}{path}"
    headers = {
        "Authorization": f"Bearer {access_token}",
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
    }
    if json is not None:
        headers["Content-Type"] = "application/json"
    try:
        r = httpx.request(method, url, headers=headers, params=params, json=json, timeout=timeout)
    except httpx.HTTPError as e:
        logger.error("Graph %s %s unreachable: %s", method, path, e)
        raise GraphError(f"Graph request failed: {e}") from e
    if r.status_code >= 400:
        details = _error_details(r)
        logger.error("Graph %s %s returned %s: %s", method, path, r.status_code, details)
        raise GraphError(f"Graph returned {r.status_code}", status_code=r.status_code, details=details)
    return r


def _json(r: httpx.Response) -> dict:
    if r.status_code == 204 or not r.content:
        return {}
    try:
        return r.json()
    except ValueError as e:
        logger.error("Graph returned a non-JSON body (%s): %s", r.status_code, r.text[:200])
        raise GraphError("Graph returned an unreadable response", status_code=r.status_code, details=r.text[:800]) from e


def get_profile(access_token: str) -> dict:
    return _json(request("GET", "/me", access_token))


def list_mail_folders(access_token: str) -> dict:
    return _json(request("GET", "/me/mailFolders", access_token))


def list_messages(access_token: str, page: int, page_size: int) -> dict:
    """One page of messages, newest first."""
    params = {
        "$top": page_size,
        "$skip": (page - 1) * page_size,
        "$orderby": "receivedDateTime DESC",
        "$select": MESSAGE_LIST_FIELDS,
    }
    return _json(request("GET", "/me/messages", access_token, params=params))


def get_message(access_token: str, message_id: str) -> dict:
    return _json(request("GET", f"/me/messages/{message_id}", access_token))


def update_message(access_token: str, message_id: str, patch: dict) -> dict:
    return _json(request("PATCH", f"/me/messages/{message_id}", access_token, json=patch))


def send_mail(access_token: str, payload: dict, *, timeout: float = GRAPH_TIMEOUT_SECONDS) -> None:
    request("POST", "/me/sendMail", access_token, json=payload, timeout=timeout)


def list_attachments(access_token: str, message_id: str) -> dict:
    params = {"$select": ATTACHMENT_LIST_FIELDS}
    return _json(request("GET", f"/me/messages/{message_id}/attachments", access_token, params=params))


def get_attachment(access_token: str, message_id: str, attachment_id: str) -> dict:
    """Attachment metadata; file attachments include base64 contentBytes."""
    return _json(request("GET", f"/me/messages/{message_id}/attachments/{attachment_id}", access_token))


def get_attachment_content(access_token: str, message_id: str, attachment_id: str) -> bytes:
    """Raw attachment bytes (MIME for item attachments)."""
    r = request("GET", f"/me/messages/{message_id}/attachments/{attachment_id}/$value", access_token)
    return r.content


def ping() -> dict:
    """Unauthenticated GET of the Graph root; used by diagnostics."""
    r = httpx.get(f"{GRAPH_API_BASE}/", timeout=GRAPH_PING_TIMEOUT_SECONDS)
    try:
        return {"status_code": r.status_code, "body": r.json()}
    except ValueError:
        return {"status_code": r.status_code, "body": r.text[:200]}
