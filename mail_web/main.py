"""
Mail Web: browser front end for the mail server.
Sign-in goes through the mail server's /auth/login; the returned session token is kept in a cookie
and sent as bearer on every API call. Port 3000 by default.
"""
import html
import logging
import re
from typing import Annotated
from urllib.parse import quote

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from mail_web import api_client
from mail_web import pages
from mail_web.api_client import ApiError, Unauthorized
from mail_web.attachment_utils import can_display_inline
from mail_web.config import (
    API_BASE_URL,
    DASHBOARD_RECENT,
    LOGOUT_URL,
    MAX_UPLOAD_BYTES,
    MAX_UPLOAD_FILES,
    PAGE_SIZE,
    PORT,
    SESSION_COOKIE_NAME,
    WEB_BASE_URL,
)
from mail_web.session_store import WebSession, clear_session_cookie, read_session, set_session_cookie

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Mail Web", version="1.0.0")

_TAGS = re.compile(r"<[^>]+>")


class LoginRequired(Exception):
    """No usable session cookie."""


def current_session(request: Request) -> WebSession:
    session = read_session(request.cookies.get(SESSION_COOKIE_NAME))
    if session is None:
        raise LoginRequired()
    return session


def _login_redirect(message: str | None = None) -> RedirectResponse:
    url = "/login"
    if message:
        url += f"?error={quote(message, safe='')}"
    response = RedirectResponse(url=url, status_code=302)
    clear_session_cookie(response)
    return response


@app.exception_handler(LoginRequired)
def handle_login_required(request: Request, exc: LoginRequired):
    return _login_redirect()


@app.exception_handler(Unauthorized)
def handle_unauthorized(request: Request, exc: Unauthorized):
    """Mail server rejected the token: drop it and force a new sign-in."""
    logger.info("Session rejected by mail server: %s", exc.message)
    return _login_redirect("Your session has expired. Please sign in again.")


@app.exception_handler(ApiError)
def handle_api_error(request: Request, exc: ApiError):
    session = read_session(request.cookies.get(SESSION_COOKIE_NAME))
    retry_url = str(request.url) if request.method == "GET" else None
    return HTMLResponse(pages.error_page(session, exc.message, retry_url), status_code=exc.status_code)


def text_to_html(text: str) -> str:
    return html.escape(text).replace("\r\n", "\n").replace("\n", "<br>")


def split_addresses(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in re.split(r"[;,]", value) if part.strip()]


def _address(recipient: dict | None) -> str | None:
    return ((recipient or {}).get("emailAddress") or {}).get("address")


def _prefixed(prefix: str, subject: str | None) -> str:
    subject = subject or ""
    return subject if subject.lower().startswith(prefix.lower()) else f"{prefix} {subject}"


def compose_defaults(message: dict, mode: str) -> dict:
    """Prefilled compose fields for reply, reply-all and forward."""
    if mode == "forward":
        content = (message.get("body") or {}).get("content") or ""
        quoted = html.unescape(_TAGS.sub("", content)).strip()
        body = (
            "\n\n---------- Forwarded message ---------\n"
            f"From: {pages.sender(message)}\n"
            f"Date: {pages.format_date(message.get('receivedDateTime'))}\n"
            f"Subject: {message.get('subject') or ''}\n"
            f"To: {pages.recipients_text(message.get('toRecipients'))}\n\n"
            f"{quoted}"
        )
        return {"to": "", "subject": _prefixed("Fwd:", message.get("subject")), "body": body}

    to = [_address(message.get("from"))]
    if mode == "reply-all":
        to += [_address(r) for r in message.get("toRecipients") or []]
        to += [_address(r) for r in message.get("ccRecipients") or []]
    unique = []
    for address in to:
        if address and address not in unique:
            unique.append(address)
    return {"to": ", ".join(unique), "subject": _prefixed("Re:", message.get("subject")), "body": ""}


def _proxy(download: api_client.Download, inline: bool = False) -> Response:
    """
    Relay attachment bytes. Inline only for script-free previewable types; everything else is
    forced to a download. Sender-controlled content never runs in this origin.
    """
    headers = {"X-Content-Type-Options": "nosniff"}
    # sandboxed documents cannot use the browser PDF viewer
    if not download.content_type.lower().startswith("application/pdf"):
        headers["Content-Security-Policy"] = "sandbox"
    disposition = download.content_disposition
    if inline and can_display_inline(download.content_type):
        disposition = disposition or "inline"
    elif disposition and disposition.lower().startswith("inline"):
        disposition = "attachment" + disposition[len("inline"):]
    if disposition:
        headers["Content-Disposition"] = disposition
    return Response(content=download.content, media_type=download.content_type, headers=headers)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "mail_web"}


@app.get("/")
def home(request: Request):
    if read_session(request.cookies.get(SESSION_COOKIE_NAME)):
        return RedirectResponse(url="/dashboard", status_code=302)
    return RedirectResponse(url="/login", status_code=302)


@app.get("/login", response_class=HTMLResponse)
def login(error: str | None = None):
    return HTMLResponse(pages.login_page(error, f"{API_BASE_URL}/auth/login"))


@app.get("/auth/success")
def auth_success(token: str | None = None):
    """Landing page after the mail server's OAuth callback; stores the session token."""
    session = read_session(token)
    if session is None:
        return _login_redirect("Sign-in returned an invalid or expired session. Please try again.")
    logger.info("Signed in as %s (temporary=%s)", session.email, session.is_temporary)
    response = RedirectResponse(url="/dashboard", status_code=302)
    set_session_cookie(response, session.token)
    return response


@app.get("/auth/error", response_class=HTMLResponse)
def auth_error(message: str | None = None):
    return HTMLResponse(pages.auth_error_page(message or "Authentication failed"), status_code=400)


@app.get("/logout")
def logout():
    url = f"{LOGOUT_URL}?post_logout_redirect_uri={quote(WEB_BASE_URL + '/login', safe='')}"
    response = RedirectResponse(url=url, status_code=302)
    clear_session_cookie(response)
    return response


@app.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request, sent: int = 0):
    session = current_session(request)
    data = api_client.list_emails(session.token, page=1, page_size=DASHBOARD_RECENT)
    notice = "Email sent successfully." if sent else None
    return HTMLResponse(pages.dashboard_page(session, data.get("value", []), notice))


@app.get("/emails", response_class=HTMLResponse)
def email_list(request: Request, page: int = 1):
    session = current_session(request)
    page = max(page, 1)
    data = api_client.list_emails(session.token, page=page, page_size=PAGE_SIZE)
    messages = data.get("value", [])
    has_next = bool(data.get("@odata.nextLink")) or len(messages) == PAGE_SIZE
    return HTMLResponse(pages.email_list_page(session, messages, page, has_next))


@app.get("/emails/{email_id}", response_class=HTMLResponse)
def email_view(request: Request, email_id: str):
    """Message view; unread messages are marked read when opened."""
    session = current_session(request)
    message = api_client.get_email(session.token, email_id)
    if not message.get("isRead"):
        api_client.update_email(session.token, email_id, {"isRead": True})
        message["isRead"] = True
    attachments = api_client.list_attachments(session.token, email_id) if message.get("hasAttachments") else []
    return HTMLResponse(pages.email_view_page(session, message, attachments))


@app.post("/emails/{email_id}/toggle-read")
def toggle_read(
    request: Request,
    email_id: str,
    is_read: Annotated[str, Form()] = "true",
    back: Annotated[str, Form()] = "/emails",
):
    session = current_session(request)
    api_client.update_email(session.token, email_id, {"isRead": is_read == "true"})
    # only same-site paths
    target = back if back.startswith("/") and not back.startswith("//") else "/emails"
    return RedirectResponse(url=target, status_code=303)


@app.get("/emails/{email_id}/attachments/download-all")
def download_all(request: Request, email_id: str):
    session = current_session(request)
    return _proxy(api_client.download_all_attachments(session.token, email_id))


@app.get("/emails/{email_id}/attachments/{attachment_id}")
def download_attachment(request: Request, email_id: str, attachment_id: str, inline: int = 0):
    session = current_session(request)
    return _proxy(
        api_client.download_attachment(session.token, email_id, attachment_id, inline=bool(inline)), inline=bool(inline)
    )


@app.get("/compose", response_class=HTMLResponse)
def compose_form(request: Request, reply_to: str | None = None, mode: str = "reply"):
    session = current_session(request)
    defaults = {}
    if reply_to:
        message = api_client.get_email(session.token, reply_to)
        defaults = compose_defaults(message, mode)
    return HTMLResponse(
        pages.compose_page(session, max_files=MAX_UPLOAD_FILES, max_mb=MAX_UPLOAD_BYTES // (1024 * 1024), **defaults)
    )


@app.post("/compose", response_class=HTMLResponse)
def compose_send(
    request: Request,
    to: Annotated[str, Form()] = "",
    cc: Annotated[str, Form()] = "",
    bcc: Annotated[str, Form()] = "",
    subject: Annotated[str, Form()] = "",
    body: Annotated[str, Form()] = "",
    attachments: Annotated[list[UploadFile] | None, File()] = None,
):
    """Validate locally, then send through the plain or the multipart endpoint."""
    session = current_session(request)
    form = {"to": to, "cc": cc, "bcc": bcc, "subject": subject, "body": body}

    def redisplay(error: str, status_code: int = 400) -> HTMLResponse:
        return HTMLResponse(
            pages.compose_page(session, error=error, max_files=MAX_UPLOAD_FILES,
                               max_mb=MAX_UPLOAD_BYTES // (1024 * 1024), **form),
            status_code=status_code,
        )

    recipients = split_addresses(to)
    if not recipients:
        return redisplay('At least one "To" recipient is required')

    files = [f for f in (attachments or []) if f.filename]
    if len(files) > MAX_UPLOAD_FILES:
        return redisplay(f"Maximum {MAX_UPLOAD_FILES} files allowed")
    loaded = []
    for upload in files:
        content = upload.file.read(MAX_UPLOAD_BYTES + 1)
        if len(content) > MAX_UPLOAD_BYTES:
            return redisplay(
                f'File "{upload.filename}" exceeds the maximum size of {MAX_UPLOAD_BYTES // (1024 * 1024)}MB'
            )
        loaded.append((upload.filename, content, upload.content_type or "application/octet-stream"))

    try:
        if loaded:
            api_client.send_email_with_attachments(
                session.token,
                to=recipients,
                cc=split_addresses(cc),
                bcc=split_addresses(bcc),
                subject=subject.strip(),
                body=text_to_html(body),
                attachments=loaded,
            )
        else:
            api_client.send_email(
                session.token,
                to=recipients,
                cc=split_addresses(cc),
                bcc=split_addresses(bcc),
                subject=subject.strip(),
                body=text_to_html(body),
            )
    except Unauthorized:
        raise
    except ApiError as e:
        return redisplay(e.message, status_code=e.status_code)

    logger.info("Sent message for %s (%d attachment(s))", session.email, len(loaded))
    return RedirectResponse(url="/dashboard?sent=1", status_code=303)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "mail_web.main:app",
        host="127.0.0.1",
        port=PORT,
        reload=True,
    )
