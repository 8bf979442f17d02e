"""Display helpers for attachments: human-readable size, icon, previewability."""

_SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]

_PREVIEW_EXTENSIONS = {"pdf", "jpg", "jpeg", "png", "gif", "bmp", "webp", "txt"}
_PREVIEW_TYPES = (
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/bmp",
    "image/webp",
    "text/plain",
)


def _extension(file_name: str | None) -> str:
    if not file_name or "." not in file_name:
        return ""
    return file_name.rsplit(".", 1)[-1].lower()


def format_file_size(size: int | None) -> str:
    """1536 -> '1.5 KB'."""
    if not size:
        return "0 Bytes"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {_SIZE_UNITS[unit]}"


def file_icon(file_name: str | None, content_type: str | None) -> str:
    ext = _extension(file_name)
    ctype = content_type or ""
    if "pdf" in ctype or ext == "pdf":
        return "📄"
    if "word" in ctype or ext in ("doc", "docx"):
        return "📝"
    if "excel" in ctype or "spreadsheet" in ctype or ext in ("xls", "xlsx"):
        return "📊"
    if "powerpoint" in ctype or "presentation" in ctype or ext in ("ppt", "pptx"):
        return "📽️"
    if "text" in ctype or ext == "txt":
        return "📃"
    if "image" in ctype or ext in ("jpg", "jpeg", "png", "gif", "bmp", "webp"):
        return "🖼️"
    if "zip" in ctype or ext in ("zip", "rar", "7z"):
        return "📦"
    if "audio" in ctype or ext in ("mp3", "wav", "ogg"):
        return "🎵"
    if "video" in ctype or ext in ("mp4", "avi", "mov"):
        return "🎬"
    return "📎"


def can_preview(file_name: str | None, content_type: str | None) -> bool:
    if _extension(file_name) in _PREVIEW_EXTENSIONS:
        return True
    ctype = content_type or ""
    return any(t in ctype for t in _PREVIEW_TYPES)


def can_display_inline(content_type: str | None) -> bool:
    """Only previewable types that cannot run script are served inline from this origin."""
    ctype = (content_type or "").lower()
    if "html" in ctype or "svg" in ctype or "xml" in ctype or "javascript" in ctype:
        return False
    return can_preview(None, ctype)
