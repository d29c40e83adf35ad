"""
File upload utility functions
"""
import logging
import uuid
from pathlib import Path
from typing import Optional
from fastapi import UploadFile
import aiofiles
from minisocial.config import settings
from minisocial.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

UPLOAD_URL_PREFIX = "/uploads/"


def is_local_upload(image_url: Optional[str]) -> bool:
    """Check whether an image reference points at files this service stores"""
    return bool(image_url) and image_url.startswith(UPLOAD_URL_PREFIX)


def upload_path(image_url: str) -> Path:
    """Map an ``/uploads/<name>`` reference to its location on disk"""
    # Only the final component is used so a reference cannot escape UPLOAD_DIR
    return Path(settings.UPLOAD_DIR) / Path(image_url).name


async def save_upload_file(upload_file: UploadFile) -> str:
    """
    Validate and save an uploaded image to disk

    Raises:
        ValidationError: unsupported MIME type or file too large

    Returns:
        URL path to the saved file
    """
    if upload_file.content_type not in settings.ALLOWED_FILE_TYPES:
        raise ValidationError(
            "Invalid file type. Only images are allowed.",
            errors=[{"field": "image", "message": f"Unsupported file type: {upload_file.content_type}"}],
        )

    content = await upload_file.read()
    if len(content) > settings.MAX_UPLOAD_SIZE:
        raise ValidationError(
            "File too large",
            errors=[{"field": "image", "message": f"Maximum size is {settings.MAX_UPLOAD_SIZE} bytes"}],
        )

    # Generate unique filename
    file_extension = Path(upload_file.filename).suffix if upload_file.filename else ""
    unique_filename = f"image-{uuid.uuid4().hex}{file_extension.lower()}"

    upload_dir = Path(settings.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)

    try:
        async with aiofiles.open(upload_dir / unique_filename, 'wb') as out_file:
            await out_file.write(content)
    except OSError as e:
        logger.error(f"Error saving uploaded file: {e}")
        raise

    logger.info(f"Stored upload {unique_filename} ({len(content)} bytes)")
    return f"{UPLOAD_URL_PREFIX}{unique_filename}"


async def delete_file(image_url: str) -> bool:
    """Delete a stored upload; returns False when it could not be removed"""
    if not is_local_upload(image_url):
        return False

    full_path = upload_path(image_url)
    try:
        if full_path.exists():
            full_path.unlink()
            return True
        logger.warning(f"Upload already missing: {full_path}")
        return False
    except OSError as e:
        logger.error(f"Error deleting file {full_path}: {e}")
        return False
