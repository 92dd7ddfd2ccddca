"""Validation helpers for uploaded files and stored attachment metadata."""

from typing import Any

from django.core.exceptions import ValidationError

import magic

MAX_UPLOAD_MB = 10

ALLOWED_UPLOAD_MIME: set[str] = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/zip",
    "text/plain",
    "image/png",
    "image/jpeg",
}

ATTACHMENT_KEYS = ("name", "url", "type", "size")


def validate_file_size(file_obj: Any, max_mb: int = MAX_UPLOAD_MB) -> None:
    """Ensure file size does not exceed max_mb megabytes."""
    if file_obj and file_obj.size > max_mb * 1024 * 1024:
        raise ValidationError(f"File exceeds {max_mb} MB limit.")

def probe_mime(file_obj: Any) -> str | None:
    """Read initial bytes to detect MIME type using libmagic."""
    if not file_obj:
        return None
    header = file_obj.read(4096)
    file_obj.seek(0)
    return magic.from_buffer(header, mime=True)

def validate_upload_mime(file_obj: Any) -> str | None:
    """Validate that an uploaded file has an allowed MIME type; return the type."""
    mime = probe_mime(file_obj)
    if mime and mime not in ALLOWED_UPLOAD_MIME:
        raise ValidationError(f"File type {mime} is not supported")
    return mime

def validate_attachments(value: Any) -> None:
    """Attachments are an ordered list of {name, url, type, size} objects."""
    if not isinstance(value, list):
        raise ValidationError("Attachments must be a list.")
    for item in value:
        if not isinstance(item, dict) or not item.get("name") or not item.get("url"):
            raise ValidationError("Each attachment needs a name and a url.")
        unknown = set(item) - set(ATTACHMENT_KEYS)
        if unknown:
            raise ValidationError(f"Unknown attachment keys: {', '.join(sorted(unknown))}")
