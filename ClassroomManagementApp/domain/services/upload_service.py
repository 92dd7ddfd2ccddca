"""File storage for attachments.

Files go through Django's default storage backend; callers get back opaque
metadata ({file_name, file_url, file_type, file_size, public_id}) that they
can copy into an assignment's or submission's attachment list.
"""
import logging
import os
import uuid
from typing import Any

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.files.storage import default_storage
from rest_framework.exceptions import NotFound, ValidationError

from ClassroomManagementApp.core.validators import probe_mime, validate_file_size, validate_upload_mime

logger = logging.getLogger(__name__)

UPLOAD_DIR = "uploads"
MAX_FILES_PER_UPLOAD = 5


def _path_for(public_id: str) -> str | None:
    """Resolve a public id to its stored path (ids never contain separators)."""
    if not public_id or "/" in public_id or "\\" in public_id or public_id.startswith("."):
        return None
    return f"{UPLOAD_DIR}/{public_id}"


def _existing_path(public_id: str) -> str:
    path = _path_for(public_id)
    if path is None or not default_storage.exists(path):
        raise NotFound("File not found or already deleted")
    return path


def _validate(file_obj: Any) -> str | None:
    try:
        validate_file_size(file_obj)
        return validate_upload_mime(file_obj)
    except DjangoValidationError as exc:
        raise ValidationError(exc.messages[0])


def _save(file_obj: Any, mime: str | None) -> dict[str, Any]:
    _, ext = os.path.splitext(file_obj.name)
    public_id = f"attachment-{uuid.uuid4().hex}{ext.lower()}"
    stored = default_storage.save(f"{UPLOAD_DIR}/{public_id}", file_obj)
    logger.info("Stored upload %s (%s, %d bytes)", stored, mime, file_obj.size)
    return {
        "file_name": file_obj.name,
        "file_url": default_storage.url(stored),
        "file_type": mime or getattr(file_obj, "content_type", ""),
        "file_size": file_obj.size,
        "public_id": os.path.basename(stored),
    }


def store_upload(file_obj: Any) -> dict[str, Any]:
    """Validate and store one uploaded file, returning its attachment metadata.

    Raises:
        ValidationError: File too large or of an unsupported type.
    """
    return _save(file_obj, _validate(file_obj))


def store_uploads(files: list[Any]) -> list[dict[str, Any]]:
    """Store up to MAX_FILES_PER_UPLOAD files; nothing is written unless every file passes."""
    if not files:
        raise ValidationError("Please upload at least one file")
    if len(files) > MAX_FILES_PER_UPLOAD:
        raise ValidationError(f"You can upload at most {MAX_FILES_PER_UPLOAD} files at a time")
    mimes = [_validate(file_obj) for file_obj in files]
    return [_save(file_obj, mime) for file_obj, mime in zip(files, mimes)]


def get_upload_info(public_id: str) -> dict[str, Any]:
    """Metadata of a stored file, read back from storage."""
    path = _existing_path(public_id)
    with default_storage.open(path, "rb") as handle:
        mime = probe_mime(handle)
    _, ext = os.path.splitext(public_id)
    return {
        "public_id": public_id,
        "format": ext.lstrip(".").lower(),
        "file_type": mime,
        "file_size": default_storage.size(path),
        "file_url": default_storage.url(path),
        "created_at": default_storage.get_created_time(path),
    }


def delete_upload(public_id: str) -> None:
    path = _existing_path(public_id)
    default_storage.delete(path)
    logger.info("Deleted upload %s", path)
