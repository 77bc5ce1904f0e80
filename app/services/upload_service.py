"""
Upload service: validation policy, storage key derivation, storage write.

Business logic separated from the HTTP layer. Validation runs on the declared
size and content type before any byte is written; the storage write is a
single put with no retry, and its URL comes from the gateway without a second
round trip.
"""
import logging
import re
from datetime import datetime, UTC

from config import ALLOWED_CONTENT_TYPES, DEFAULT_MAX_UPLOAD_BYTES
from exceptions import BadUpload, StorageFailure, UpstreamTimeout
from models import FileUpload, User
from services.storage_service import StorageGateway

logger = logging.getLogger(__name__)

UPLOAD_KEY_PREFIX = "uploads"


def normalize_content_type(content_type: str | None) -> str:
    """Media type without parameters, lowercased: 'Image/PNG; x=1' -> 'image/png'."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def validate_upload(
    filename: str | None,
    size: int | None,
    content_type: str | None,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> str:
    """
    Enforce upload policy. Returns the normalized content type.
    Raises BadUpload if there is no file, it is larger than max_bytes, or its
    type is not in ALLOWED_CONTENT_TYPES.
    """
    if not filename:
        raise BadUpload("No file provided")
    if size is None or size < 0:
        raise BadUpload("File size unknown")
    if size > max_bytes:
        raise BadUpload(f"File too large (max {max_bytes // (1024 * 1024)} MB)")
    media_type = normalize_content_type(content_type)
    if media_type not in ALLOWED_CONTENT_TYPES:
        raise BadUpload("Invalid file type. Only images, PDFs, and ZIP files are allowed")
    return media_type


def safe_filename(name: str) -> str:
    """Remove path separators and reserved chars so name is safe inside a key."""
    safe = re.sub(r'[\\/:*?"<>|\s]+', "_", name)
    if len(safe) > 200:
        safe = safe[:200]
    return safe or "unnamed"


def build_storage_key(user_id: str, filename: str, now: datetime) -> str:
    """
    uploads/<user_id>/<unix seconds>_<filename>. Second resolution: the same
    user uploading the same name twice within one second gets the same key.
    """
    return f"{UPLOAD_KEY_PREFIX}/{user_id}/{int(now.timestamp())}_{safe_filename(filename)}"


def store_upload(
    storage: StorageGateway,
    user: User,
    filename: str,
    data: bytes,
    content_type: str,
    now: datetime | None = None,
) -> FileUpload:
    """
    Write data to storage and describe the result. Raises StorageFailure on
    any gateway error, UpstreamTimeout if the gateway timed out.
    """
    now = now or datetime.now(UTC)
    key = build_storage_key(user.id, filename, now)
    try:
        storage.put_object(key, data, content_type)
    except UpstreamTimeout:
        raise
    except Exception as exc:
        raise StorageFailure(f"Failed to write {key} to {storage.bucket_name}: {exc}") from exc

    upload = FileUpload(
        id=f"file_{int(now.timestamp())}",
        filename=filename,
        size=len(data),
        content_type=content_type,
        storage_key=key,
        storage_url=storage.url_for(key),
        uploaded_at=now,
        user_id=user.id,
    )
    logger.info("File uploaded successfully: %s (%d bytes) -> %s", upload.filename, upload.size, key)
    return upload
