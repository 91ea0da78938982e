# uploads.py
from flask import current_app
import os
import uuid

import requests

from core import UploadError, StorageNotConfigured

ALLOWED_TYPES = ["image/jpeg", "image/png", "image/webp", "image/gif"]
EXTENSIONS = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp", "image/gif": "gif"}
MAX_SIZE = 5 * 1024 * 1024  # 5MB
CACHE_CONTROL = "3600"
TIMEOUT = 15


class StorageUploadFailed(UploadError):
    status_code = 500


def _storage_config():
    url = (current_app.config.get("SUPABASE_URL") or "").rstrip("/")
    key = current_app.config.get("SUPABASE_ANON_KEY")
    if not url or not key:
        current_app.logger.error("SUPABASE_URL or SUPABASE_ANON_KEY is not configured.")
        raise StorageNotConfigured()
    return url, key, current_app.config.get("SUPABASE_BUCKET") or "product-images"


def public_url(object_path):
    url, _, bucket = _storage_config()
    return f"{url}/storage/v1/object/public/{bucket}/{object_path}"


def validate_image(file_storage):
    """Read the upload into memory after checking its type and size."""
    if file_storage is None or not file_storage.filename:
        raise UploadError("No file provided.")
    if file_storage.mimetype not in ALLOWED_TYPES:
        raise UploadError(f"Invalid file type. Allowed: {', '.join(ALLOWED_TYPES)}")
    data = file_storage.read(MAX_SIZE + 1)
    if len(data) > MAX_SIZE:
        raise UploadError(f"File too large. Max size: {MAX_SIZE // (1024 * 1024)}MB")
    return data


def upload_image(file_storage):
    """Push an image to the product bucket and return its public URL."""
    data = validate_image(file_storage)
    url, key, bucket = _storage_config()

    extension = os.path.splitext(file_storage.filename)[1].lstrip(".").lower()
    if not (extension.isascii() and extension.isalnum()):
        extension = EXTENSIONS[file_storage.mimetype]
    object_path = f"{uuid.uuid4()}.{extension}"

    try:
        response = requests.post(
            f"{url}/storage/v1/object/{bucket}/{object_path}",
            data=data,
            headers={
                "Authorization": f"Bearer {key}",
                "apikey": key,
                "Content-Type": file_storage.mimetype,
                "cache-control": f"max-age={CACHE_CONTROL}",
                "x-upsert": "false",
            },
            timeout=TIMEOUT,
        )
    except requests.RequestException as exc:
        current_app.logger.error("Storage upload error: %s", exc)
        raise StorageUploadFailed("Failed to upload image.") from exc

    if response.status_code >= 400:
        current_app.logger.error("Storage upload error %s: %s", response.status_code, response.text)
        raise StorageUploadFailed("Failed to upload image.")

    current_app.logger.info("Uploaded image %s to bucket %s", object_path, bucket)
    return public_url(object_path)
