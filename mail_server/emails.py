"""
Mail gateway routes: list, read, send, update. Attachment routes live in attachments.py.
"""
import base64
import logging
from typing import Annotated

from fastapi import APIRouter, Body, File, Form, HTTPException, Query, UploadFile
from pydantic import BaseModel, Field

from mail_server import graph
from mail_server.config import (
    DEFAULT_PAGE_SIZE,
    GRAPH_SEND_TIMEOUT_SECONDS,
    MAX_ATTACHMENT_BYTES,
    MAX_ATTACHMENT_FILES,
    MAX_PAGE_SIZE,
)
from mail_server.errors import bad_request, upstream_failure
from mail_server.graph import FILE_ATTACHMENT, GraphError
from mail_server.recipients import RecipientError, normalize_recipients, to_graph_recipients
from mail_server.session import CurrentAccount

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/emails")


class SendRequest(BaseModel):
    to: list | str | None = None
    cc: list | str | None = None
    bcc: list | str | None = None
    subject: str = ""
    body: str = ""


class SendResult(BaseModel):
    success: bool = True
    message: str
    attachments: int | None = Field(default=None)


def build_message(
    to: list[str],
    subject: str,
    body: str,
    cc: list[str] | None = None,
    bcc: list[str] | None = None,
    attachments: list[dict] | None = None,
) -> dict:
    """Graph message resource with an HTML body."""
    message = {
        "subject": subject,
        "body": {"contentType": "HTML", "content": body},
        "toRecipients": to_graph_recipients(to),
    }
    if cc:
        message["ccRecipients"] = to_graph_recipients(cc)
    if bcc:
        message["bccRecipients"] = to_graph_recipients(bcc)
    if attachments:
        message["attachments"] = attachments
    return message


def encode_attachment(filename: str, content_type: str | None, data: bytes) -> dict:
    return {
        "@odata.type": FILE_ATTACHMENT,
        "name": filename,
        "contentType": content_type or "application/octet-stream",
        "contentBytes": base64.b64encode(data).decode("ascii"),
    }


def _recipients(value, field: str) -> list[str]:
    try:
        return normalize_recipients(value, field)
    except RecipientError as e:
        raise bad_request(str(e))


@router.get("")
def list_emails(
    account: CurrentAccount,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(alias="pageSize", ge=1, le=MAX_PAGE_SIZE)] = DEFAULT_PAGE_SIZE,
):
    """One page of the mailbox, newest first; provider payload returned as-is."""
    try:
        return graph.list_messages(account.access_token, page, page_size)
    except GraphError as e:
        raise upstream_failure("Failed to fetch emails", e)


@router.post("/send", response_model=SendResult, response_model_exclude_none=True)
def send_email(request: SendRequest, account: CurrentAccount):
    to = _recipients(request.to, "to")
    cc = _recipients(request.cc, "cc")
    bcc = _recipients(request.bcc, "bcc")
    if not to:
        raise bad_request("At least one recipient is required")

    payload = {"message": build_message(to, request.subject, request.body, cc=cc, bcc=bcc)}
    try:
        graph.send_mail(account.access_token, payload)
    except GraphError as e:
        raise upstream_failure("Failed to send email", e)
    logger.info("Sent email for %s to %d recipient(s)", account.email, len(to) + len(cc) + len(bcc))
    return SendResult(message="Email sent successfully")


@router.post("/send-with-attachments", response_model=SendResult)
def send_email_with_attachments(
    account: CurrentAccount,
    to: Annotated[str | None, Form()] = None,
    subject: Annotated[str, Form()] = "",
    body: Annotated[str, Form()] = "",
    cc: Annotated[str | None, Form()] = None,
    bcc: Annotated[str | None, Form()] = None,
    attachments: Annotated[list[UploadFile] | None, File()] = None,
):
    """
    Multipart send. Files are read into memory, checked against the per-file and per-request
    limits, base64 encoded and inlined into the Graph message; a copy is saved to Sent Items.
    """
    files = attachments or []
    if len(files) > MAX_ATTACHMENT_FILES:
        raise bad_request(f"Too many attachments (maximum {MAX_ATTACHMENT_FILES} files)")

    to_list = _recipients(to, "to")
    cc_list = _recipients(cc, "cc")
    bcc_list = _recipients(bcc, "bcc")
    if not to_list:
        raise bad_request("At least one recipient is required")
    if not subject.strip() and not body.strip():
        raise bad_request("Subject or body is required")

    encoded = []
    for upload in files:
        data = upload.file.read(MAX_ATTACHMENT_BYTES + 1)
        if len(data) > MAX_ATTACHMENT_BYTES:
            raise HTTPException(
                status_code=413,
                detail={
                    "error": "file_too_large",
                    "error_description": f"File '{upload.filename}' exceeds {MAX_ATTACHMENT_BYTES // (1024 * 1024)}MB",
                },
            )
        encoded.append(encode_attachment(upload.filename or "attachment", upload.content_type, data))

    payload = {
        "message": build_message(to_list, subject, body, cc=cc_list, bcc=bcc_list, attachments=encoded),
        "saveToSentItems": True,
    }
    try:
        graph.send_mail(account.access_token, payload, timeout=GRAPH_SEND_TIMEOUT_SECONDS)
    except GraphError as e:
        raise upstream_failure("Failed to send email with attachments", e)
    logger.info("Sent email with %d attachment(s) for %s", len(encoded), account.email)
    return SendResult(message="Email with attachments sent successfully", attachments=len(encoded))


@router.get("/{email_id}")
def get_email(email_id: str, account: CurrentAccount):
    try:
        return graph.get_message(account.access_token, email_id)
    except GraphError as e:
        raise upstream_failure("Failed to fetch email", e, passthrough_not_found=True)


@router.patch("/{email_id}")
def update_email(email_id: str, patch: Annotated[dict, Body()], account: CurrentAccount):
    """Partial update passed through to Graph, e.g. {"isRead": true}."""
    if not patch:
        raise bad_request("Update body is empty")
    try:
        return graph.update_message(account.access_token, email_id, patch)
    except GraphError as e:
        raise upstream_failure("Failed to update email", e, passthrough_not_found=True)
