"""
HTML rendering for the mail web front end. Plain strings with html.escape, no template engine.
"""
import html
from datetime import datetime, timezone
from urllib.parse import quote

from mail_web.attachment_utils import can_preview, file_icon, format_file_size
from mail_web.session_store import WebSession

_STYLE = """
body { font-family: system-ui, sans-serif; margin: 0; color: #222; }
nav { background: #0f6cbd; color: #fff; padding: 0.6rem 1rem; display: flex; gap: 1rem; align-items: center; }
nav a { color: #fff; text-decoration: none; }
nav .user { margin-left: auto; }
main { padding: 1rem 1.5rem; max-width: 960px; }
table { border-collapse: collapse; width: 100%; }
td, th { padding: 0.4rem; border-bottom: 1px solid #ddd; text-align: left; }
tr.unread td { font-weight: bold; }
.alert { background: #fde7e9; border: 1px solid #d13438; padding: 0.6rem; margin-bottom: 1rem; }
.notice { background: #e6f2e6; border: 1px solid #107c10; padding: 0.6rem; margin-bottom: 1rem; }
.stats span { display: inline-block; margin-right: 2rem; }
iframe.body { width: 100%; min-height: 420px; border: 1px solid #ddd; }
form.inline { display: inline; }
label { display: block; margin-top: 0.6rem; }
input[type=text], textarea { width: 100%; }
"""


def e(value) -> str:
    return html.escape("" if value is None else str(value))


def layout(title: str, body: str, session: WebSession | None = None) -> str:
    nav = ""
    if session:
        temp = " (temporary account)" if session.is_temporary else ""
        nav = f"""<nav>
  <a href="/dashboard">Dashboard</a>
  <a href="/emails">Inbox</a>
  <a href="/compose">Compose</a>
  <span class="user">{e(session.display_name)} &lt;{e(session.email)}&gt;{temp}</span>
  <a href="/logout">Log out</a>
</nav>"""
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{e(title)}</title><style>{_STYLE}</style></head>
<body>
{nav}
<main>
{body}
</main>
</body>
</html>"""


def alert(message: str, retry_url: str | None = None) -> str:
    retry = f' <a href="{e(retry_url)}">Try again</a>' if retry_url else ""
    return f'<div class="alert">{e(message)}{retry}</div>'


def format_date(value: str | None) -> str:
    """Graph timestamps (ISO 8601, UTC) as 'YYYY-MM-DD HH:MM'."""
    if not value:
        return ""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.strftime("%Y-%m-%d %H:%M")


def sender(message: dict) -> str:
    address = (message.get("from") or {}).get("emailAddress") or {}
    return address.get("name") or address.get("address") or "(Unknown sender)"


def recipients_text(recipients: list | None) -> str:
    parts = []
    for r in recipients or []:
        address = r.get("emailAddress") or {}
        if address.get("name") and address.get("address"):
            parts.append(f"{address['name']} <{address['address']}>")
        elif address.get("address"):
            parts.append(address["address"])
    return ", ".join(parts)


def _toggle_form(message: dict, back: str) -> str:
    label = "Mark unread" if message.get("isRead") else "Mark read"
    return f"""<form class="inline" method="post" action="/emails/{quote(message['id'], safe='')}/toggle-read">
<input type="hidden" name="is_read" value="{'false' if message.get('isRead') else 'true'}">
<input type="hidden" name="back" value="{e(back)}">
<button type="submit">{label}</button></form>"""


def message_rows(messages: list[dict], back: str) -> str:
    if not messages:
        return "<p>No messages.</p>"
    rows = []
    for m in messages:
        css = "" if m.get("isRead") else ' class="unread"'
        clip = " 📎" if m.get("hasAttachments") else ""
        rows.append(
            f"""<tr{css}>
  <td>{e(sender(m))}</td>
  <td><a href="/emails/{quote(m['id'], safe='')}">{e(m.get('subject') or '(No subject)')}</a>{clip}<br><small>{e(m.get('bodyPreview') or '')}</small></td>
  <td>{e(format_date(m.get('receivedDateTime')))}</td>
  <td>{_toggle_form(m, back)}</td>
</tr>"""
        )
    return "<table><tr><th>From</th><th>Subject</th><th>Received</th><th></th></tr>" + "".join(rows) + "</table>"


def login_page(error: str | None, login_url: str) -> str:
    body = "<h1>Web Mail</h1>"
    if error:
        body += alert(error)
    body += f'<p><a href="{e(login_url)}">Sign in with Microsoft</a></p>'
    return layout("Sign in", body)


def auth_error_page(message: str) -> str:
    body = f"""<h1>Sign-in failed</h1>
{alert(message)}
<p><a href="/login">Back to sign in</a></p>"""
    return layout("Sign-in failed", body)


def dashboard_page(session: WebSession, messages: list[dict], notice: str | None = None) -> str:
    unread = sum(1 for m in messages if not m.get("isRead"))
    with_attachments = sum(1 for m in messages if m.get("hasAttachments"))
    notice_html = f'<div class="notice">{e(notice)}</div>' if notice else ""
    body = f"""<h1>Welcome, {e(session.display_name)}</h1>
{notice_html}
<div class="stats">
  <span>Recent: <strong>{len(messages)}</strong></span>
  <span>Unread: <strong>{unread}</strong></span>
  <span>With attachments: <strong>{with_attachments}</strong></span>
</div>
<h2>Recent messages</h2>
{message_rows(messages, "/dashboard")}
<p><a href="/dashboard">Refresh</a> | <a href="/emails">Open inbox</a> | <a href="/compose">Compose</a></p>"""
    return layout("Dashboard", body, session)


def email_list_page(session: WebSession, messages: list[dict], page: int, has_next: bool) -> str:
    nav = []
    if page > 1:
        nav.append(f'<a href="/emails?page={page - 1}">&larr; Previous</a>')
    nav.append(f"Page {page}")
    if has_next:
        nav.append(f'<a href="/emails?page={page + 1}">Next &rarr;</a>')
    body = f"""<h1>Inbox</h1>
{message_rows(messages, f"/emails?page={page}")}
<p>{" | ".join(nav)}</p>"""
    return layout("Inbox", body, session)


def attachment_list(email_id: str, attachments: list[dict]) -> str:
    if not attachments:
        return ""
    eid = quote(email_id, safe="")
    items = []
    for a in attachments:
        aid = quote(a["id"], safe="")
        name, ctype = a.get("name"), a.get("contentType")
        preview = ""
        if can_preview(name, ctype):
            preview = f' <a href="/emails/{eid}/attachments/{aid}?inline=1" target="_blank">Preview</a>'
        items.append(
            f"""<li>{file_icon(name, ctype)} {e(name)} <small>({e(format_file_size(a.get('size')))})</small>
{preview} <a href="/emails/{eid}/attachments/{aid}">Download</a></li>"""
        )
    download_all = ""
    if len(attachments) > 1:
        download_all = f'<p><a href="/emails/{eid}/attachments/download-all">Download all</a></p>'
    return f"<h3>Attachments ({len(attachments)})</h3><ul>{''.join(items)}</ul>{download_all}"


def email_view_page(session: WebSession, message: dict, attachments: list[dict]) -> str:
    eid = quote(message["id"], safe="")
    body_obj = message.get("body") or {}
    content = body_obj.get("content") or message.get("bodyPreview") or "No content"
    if str(body_obj.get("contentType", "")).lower() != "html":
        content = f"<pre>{e(content)}</pre>"
    cc = recipients_text(message.get("ccRecipients"))
    cc_row = f"<tr><th>Cc</th><td>{e(cc)}</td></tr>" if cc else ""
    body = f"""<h1>{e(message.get('subject') or '(No subject)')}</h1>
<table>
<tr><th>From</th><td>{e(sender(message))}</td></tr>
<tr><th>To</th><td>{e(recipients_text(message.get('toRecipients')))}</td></tr>
{cc_row}
<tr><th>Date</th><td>{e(format_date(message.get('receivedDateTime')))}</td></tr>
</table>
<p>
  <a href="/compose?reply_to={eid}&amp;mode=reply">Reply</a> |
  <a href="/compose?reply_to={eid}&amp;mode=reply-all">Reply all</a> |
  <a href="/compose?reply_to={eid}&amp;mode=forward">Forward</a> |
  {_toggle_form(message, f"/emails/{eid}")}
</p>
<iframe class="body" sandbox srcdoc="{html.escape(content, quote=True)}"></iframe>
{attachment_list(message["id"], attachments)}
<p><a href="/emails">Back to inbox</a></p>"""
    return layout(message.get("subject") or "Message", body, session)


def compose_page(
    session: WebSession,
    *,
    to: str = "",
    cc: str = "",
    bcc: str = "",
    subject: str = "",
    body: str = "",
    error: str | None = None,
    max_files: int = 10,
    max_mb: int = 10,
) -> str:
    error_html = alert(error) if error else ""
    page = f"""<h1>Compose</h1>
{error_html}
<form method="post" action="/compose" enctype="multipart/form-data">
  <label>To (comma separated) <input type="text" name="to" value="{e(to)}" required></label>
  <label>Cc <input type="text" name="cc" value="{e(cc)}"></label>
  <label>Bcc <input type="text" name="bcc" value="{e(bcc)}"></label>
  <label>Subject <input type="text" name="subject" value="{e(subject)}"></label>
  <label>Message <textarea name="body" rows="14">{e(body)}</textarea></label>
  <label>Attachments (up to {max_files} files, {max_mb}MB each) <input type="file" name="attachments" multiple></label>
  <p><button type="submit">Send</button> <a href="/emails">Cancel</a></p>
</form>"""
    return layout("Compose", page, session)


def error_page(session: WebSession | None, message: str, retry_url: str | None) -> str:
    body = f"<h1>Something went wrong</h1>{alert(message, retry_url)}"
    return layout("Error", body, session)
