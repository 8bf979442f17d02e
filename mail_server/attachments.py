"""
Attachment routes: list metadata, download one (metadata or raw-content endpoint), download all.
File attachments carry base64 contentBytes; item attachments (embedded messages) are served as .eml.
"""
import base64
import io
import logging
import os
import zipfile
from dataclasses import dataclass
from urllib.parse import quote

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from mail_server import graph
from mail_server.config import BULK_DOWNLOAD_MODE, SUMMARY_PREVIEW_CHARS
from mail_server.errors import upstream_failure
from mail_server.graph import FILE_ATTACHMENT, ITEM_ATTACHMENT, GraphError
from mail_server.session import CurrentAccount

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/emails")

EML_CONTENT_TYPE = "message/rfc822"


@dataclass
class AttachmentFile:
    name: str
    content_type: str
    data: bytes


def _safe_filename(name: str) -> str:
    return name.replace('"', "'").replace("\r", " ").replace("\n", " ")


def content_disposition(filename: str, disposition: str = "attachment") -> str:
    """Quoted ASCII filename plus RFC 5987 filename* when the name is not ASCII."""
    safe = _safe_filename(filename)
    try:
        safe.encode("ascii")
    except UnicodeEncodeError:
        fallback = safe.encode("ascii", "replace").decode("ascii").replace("?", "_")
        return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(safe)}"
    return f'{disposition}; filename="{safe}"'


def file_response(item: AttachmentFile, disposition: str = "attachment") -> Response:
    return Response(
        content=item.data,
        media_type=item.content_type,
        headers={
            "Content-Disposition": content_disposition(item.name, disposition),
            "Content-Length": str(len(item.data)),
        },
    )


def _eml_name(name: str | None) -> str:
    name = name or "message"
    return name if name.lower().endswith(".eml") else f"{name}.eml"


class UnsupportedAttachment(Exception):
    """Attachment has no bytes to serve (reference attachments link to cloud files)."""

    def __init__(self, name: str, kind: str):
        super().__init__(f"Attachment type {kind} cannot be downloaded")
        self.name = name
        self.kind = kind


def _unsupported(e: UnsupportedAttachment) -> HTTPException:
    return HTTPException(status_code=400, detail={"error": "unsupported_attachment", "error_description": str(e)})


def load_attachment(access_token: str, email_id: str, attachment_id: str) -> AttachmentFile:
    """Fetch via the metadata endpoint, decoding contentBytes; item attachments go through /$value."""
    meta = graph.get_attachment(access_token, email_id, attachment_id)
    kind = meta.get("@odata.type", FILE_ATTACHMENT)
    if kind == ITEM_ATTACHMENT:
        data = graph.get_attachment_content(access_token, email_id, attachment_id)
        return AttachmentFile(name=_eml_name(meta.get("name")), content_type=EML_CONTENT_TYPE, data=data)
    if kind != FILE_ATTACHMENT or meta.get("contentBytes") is None:
        raise UnsupportedAttachment(meta.get("name") or attachment_id, kind)
    return AttachmentFile(
        name=meta.get("name") or attachment_id,
        content_type=meta.get("contentType") or "application/octet-stream",
        data=base64.b64decode(meta["contentBytes"]),
    )


def load_attachment_raw(access_token: str, email_id: str, attachment_id: str) -> AttachmentFile:
    """Bytes from the raw-content endpoint; metadata only supplies name and type."""
    meta = graph.get_attachment(access_token, email_id, attachment_id)
    data = graph.get_attachment_content(access_token, email_id, attachment_id)
    if meta.get("@odata.type") == ITEM_ATTACHMENT:
        return AttachmentFile(name=_eml_name(meta.get("name")), content_type=EML_CONTENT_TYPE, data=data)
    return AttachmentFile(
        name=meta.get("name") or attachment_id,
        content_type=meta.get("contentType") or "application/octet-stream",
        data=data,
    )


def build_summary(
    email_id: str, items: list[AttachmentFile], skipped: list[UnsupportedAttachment] | None = None
) -> bytes:
    """
    Plain-text file with each attachment's name, type, size and the first characters of its text.
    Attachments without bytes are listed by name only.
    """
    skipped = skipped or []
    lines = [f"Attachments for message {email_id}", f"Total: {len(items) + len(skipped)}", ""]
    for index, item in enumerate(items, start=1):
        preview = item.data.decode("utf-8", errors="replace")[:SUMMARY_PREVIEW_CHARS]
        lines.extend(
            [
                "=" * 60,
                f"[{index}] {item.name}",
                f"Type: {item.content_type}",
                f"Size: {len(item.data)} bytes",
                "-" * 60,
                preview,
                "",
            ]
        )
    for index, missing in enumerate(skipped, start=len(items) + 1):
        lines.extend(["=" * 60, f"[{index}] {missing.name}", f"Not downloadable ({missing.kind})", ""])
    return "\n".join(lines).encode("utf-8")


def _unique_name(name: str, used: set[str]) -> str:
    """'a.txt' -> 'a (1).txt', 'a (2).txt', ... until unused; dotfiles keep their name as stem."""
    if name not in used:
        return name
    stem, ext = os.path.splitext(name)
    n = 1
    while f"{stem} ({n}){ext}" in used:
        n += 1
    return f"{stem} ({n}){ext}"


def build_zip(items: list[AttachmentFile]) -> bytes:
    buffer = io.BytesIO()
    used: set[str] = set()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for item in items:
            name = _unique_name(item.name, used)
            used.add(name)
            archive.writestr(name, item.data)
    return buffer.getvalue()


@router.get("/{email_id}/attachments")
def list_attachments(email_id: str, account: CurrentAccount):
    try:
        data = graph.list_attachments(account.access_token, email_id)
    except GraphError as e:
        raise upstream_failure("Failed to fetch attachments", e, passthrough_not_found=True)
    return {"value": data.get("value", [])}


@router.get("/{email_id}/attachments/download-all")
def download_all_attachments(email_id: str, account: CurrentAccount):
    """
    One attachment is returned as-is. Several become one file: a text summary with truncated
    previews, or a zip archive when BULK_DOWNLOAD_MODE=zip. Reference attachments have no bytes;
    the summary names them and the zip leaves them out.
    """
    items: list[AttachmentFile] = []
    skipped: list[UnsupportedAttachment] = []
    try:
        listing = graph.list_attachments(account.access_token, email_id).get("value", [])
        if not listing:
            raise HTTPException(status_code=404, detail={"error": "No attachments found"})
        for a in listing:
            try:
                items.append(load_attachment(account.access_token, email_id, a["id"]))
            except UnsupportedAttachment as e:
                logger.info("Skipping %s in bulk download of %s: %s", e.name, email_id, e)
                skipped.append(e)
    except GraphError as e:
        raise upstream_failure("Failed to download attachments", e, passthrough_not_found=True)

    if not items:
        raise _unsupported(skipped[0])
    if len(items) == 1 and not skipped:
        return file_response(items[0])

    mode = "zip" if BULK_DOWNLOAD_MODE == "zip" else "summary"
    logger.info("Bulk download of %d attachments from %s (%s)", len(items), email_id, mode)
    if mode == "zip":
        return file_response(AttachmentFile(f"attachments-{email_id}.zip", "application/zip", build_zip(items)))
    summary = build_summary(email_id, items, skipped)
    return file_response(AttachmentFile(f"attachments-{email_id}.txt", "text/plain; charset=utf-8", summary))


@router.get("/{email_id}/attachments/{attachment_id}")
def download_attachment(email_id: str, attachment_id: str, account: CurrentAccount, disposition: str = "attachment"):
    try:
        item = load_attachment(account.access_token, email_id, attachment_id)
    except UnsupportedAttachment as e:
        raise _unsupported(e)
    except GraphError as e:
        raise upstream_failure("Failed to download attachment", e, passthrough_not_found=True)
    return file_response(item, "inline" if disposition == "inline" else "attachment")


@router.get("/{email_id}/attachments/{attachment_id}/content")
def download_attachment_content(
    email_id: str, attachment_id: str, account: CurrentAccount, disposition: str = "attachment"
):
    try:
        item = load_attachment_raw(account.access_token, email_id, attachment_id)
    except GraphError as e:
        raise upstream_failure("Failed to download attachment content", e, passthrough_not_found=True)
    return file_response(item, "inline" if disposition == "inline" else "attachment")
