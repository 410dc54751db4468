"""
Attachment storage.

Files live either in a local directory (default) or in an S3-compatible
bucket, selected with STORAGE_BACKEND. Keys are ``<subfolder>/<random>.<ext>``
in both backends.
"""

import os
import uuid
import logging
from pathlib import Path
from fastapi import UploadFile, HTTPException

import boto3
from botocore.config import Config

from app.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local").strip().lower()
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(Path(__file__).parent.parent.parent / "uploads")))

# S3 configuration
S3_ACCESS_KEY_ID = os.getenv("S3_ACCESS_KEY_ID", "").strip()
S3_SECRET_ACCESS_KEY = os.getenv("S3_SECRET_ACCESS_KEY", "").strip()
S3_ENDPOINT = os.getenv("S3_ENDPOINT", "").strip()
S3_BUCKET = os.getenv("S3_BUCKET", "crewhours-attachments").strip()

_s3_client = None


def _get_s3():
    global _s3_client
    if _s3_client is None:
        if not all([S3_ACCESS_KEY_ID, S3_SECRET_ACCESS_KEY, S3_ENDPOINT]):
            raise RuntimeError(
                "S3 storage not configured. Set S3_ACCESS_KEY_ID, S3_SECRET_ACCESS_KEY, S3_ENDPOINT."
            )
        _s3_client = boto3.client(
            "s3",
            endpoint_url=S3_ENDPOINT,
            aws_access_key_id=S3_ACCESS_KEY_ID,
            aws_secret_access_key=S3_SECRET_ACCESS_KEY,
            config=Config(signature_version="s3v4"),
            region_name="auto",
        )
    return _s3_client


# Receipts, delivery notes and site photos
ALLOWED_MIME_TYPES = {
    "application/pdf",
    "text/plain",
    "image/png",
    "image/jpeg",
    "image/jpg",   # some clients send this
    "image/webp",
    "image/gif",
    "image/heic",
    "image/heif",
}

# Fallback allowlist by extension (helps when browsers send application/octet-stream)
ALLOWED_EXTENSIONS = {
    ".pdf", ".txt", ".png", ".jpg", ".jpeg", ".webp", ".gif", ".heic", ".heif",
}

_GUESSED_TYPES = {
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".heic": "image/heic",
    ".heif": "image/heif",
}

MAX_FILE_SIZE = int(os.getenv("MAX_ATTACHMENT_BYTES", str(10 * 1024 * 1024)))


def save_upload(file: UploadFile, subfolder: str = "attachments") -> tuple[str, str, int, str]:
    """Store an uploaded file. Returns (storage_key, original_name, size, content_type)."""
    original_name = Path(file.filename).name if file.filename else "unnamed"
    ext = Path(original_name).suffix.lower()

    content_type = (file.content_type or "").lower().strip()

    mime_ok = bool(content_type) and (content_type in ALLOWED_MIME_TYPES)
    ext_ok = ext in ALLOWED_EXTENSIONS
    if not mime_ok and not ext_ok:
        raise ValidationError(f"File type not allowed: {file.content_type}", {"file": "type"})

    content = file.file.read()
    size = len(content)

    if size > MAX_FILE_SIZE:
        raise ValidationError("File too large", {"file": "size"})
    if size == 0:
        raise ValidationError("Empty file", {"file": "size"})

    if not content_type or content_type in {"application/octet-stream", "binary/octet-stream"}:
        content_type = _GUESSED_TYPES.get(ext, "application/octet-stream")

    key = f"{subfolder}/{uuid.uuid4().hex}{ext}"

    try:
        if STORAGE_BACKEND == "s3":
            _get_s3().put_object(Bucket=S3_BUCKET, Key=key, Body=content, ContentType=content_type)
        else:
            path = UPLOAD_DIR / key
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        logger.info(f"Stored attachment {key} ({size} bytes, backend={STORAGE_BACKEND})")
    except Exception as e:
        logger.error(f"Attachment upload failed: {e}")
        raise HTTPException(status_code=500, detail="File upload failed")

    return key, original_name, size, content_type


def local_path(key: str) -> Path:
    """Path of a locally stored file. Raises NotFoundError for keys outside UPLOAD_DIR or missing files."""
    root = UPLOAD_DIR.resolve()
    path = (root / key).resolve()
    if root not in path.parents or not path.is_file():
        raise NotFoundError("Attachment file not found")
    return path


def get_download_url(key: str, expires_in: int = 3600) -> str:
    """Presigned URL for a file in the S3 bucket."""
    try:
        return _get_s3().generate_presigned_url(
            "get_object",
            Params={"Bucket": S3_BUCKET, "Key": key},
            ExpiresIn=expires_in,
        )
    except Exception as e:
        logger.error(f"Failed to generate presigned URL for {key}: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate download link")


def delete_file(key: str) -> bool:
    """Delete a stored file. Returns False (and logs) on failure."""
    try:
        if STORAGE_BACKEND == "s3":
            _get_s3().delete_object(Bucket=S3_BUCKET, Key=key)
        else:
            (UPLOAD_DIR / key).unlink(missing_ok=True)
        logger.info(f"Deleted attachment {key}")
        return True
    except Exception as e:
        logger.error(f"Attachment delete failed for {key}: {e}")
        return False


def purge_files(keys: list[str]) -> list[str]:
    """Delete several files after their rows are gone. Returns keys that could not be removed."""
    return [key for key in keys if not delete_file(key)]
