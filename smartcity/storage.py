"""
Local storage for case photos.

Uploaded images are checked with Pillow, written under the configured upload
directory with a random name, and served back from ``/uploads``.
"""

from pathlib import Path
from typing import Optional
import io
import logging
import uuid

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool
from PIL import Image, UnidentifiedImageError

from .config import Settings
from .errors import InvalidRequest

logger = logging.getLogger("smartcity.storage")

PUBLIC_PREFIX = "/uploads"
MAX_IMAGE_DIMENSION = 8000  # pixels
ALLOWED_FORMATS = {"JPEG": ".jpg", "PNG": ".png", "GIF": ".gif", "WEBP": ".webp"}


def ensure_upload_dir(settings: Settings) -> Path:
    path = Path(settings.upload_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def validate_image(file_data: bytes, max_bytes: int) -> str:
    """Return the file extension for a valid image or raise InvalidRequest."""
    if not file_data:
        raise InvalidRequest("Uploaded image is empty")
    if len(file_data) > max_bytes:
        raise InvalidRequest(f"File size exceeds {max_bytes / (1024 * 1024):.1f} MB limit")

    try:
        img = Image.open(io.BytesIO(file_data))
        img.verify()
        # verify() leaves the image unusable; reopen to read its size
        img = Image.open(io.BytesIO(file_data))
        width, height = img.size
        fmt = img.format
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise InvalidRequest("Uploaded file is not a valid image") from exc

    if fmt not in ALLOWED_FORMATS:
        raise InvalidRequest(f"Image type not allowed. Allowed: {', '.join(sorted(ALLOWED_FORMATS))}")
    if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
        raise InvalidRequest(f"Image dimensions exceed {MAX_IMAGE_DIMENSION}px")
    return ALLOWED_FORMATS[fmt]


def _write(path: Path, data: bytes) -> None:
    path.write_bytes(data)


async def save_case_image(settings: Settings, upload: Optional[UploadFile]) -> Optional[str]:
    """Persist an uploaded case photo and return its public URL, or None."""
    if upload is None or not upload.filename:
        return None

    # Read one byte past the limit so oversize files are detected without buffering them whole
    data = await upload.read(settings.max_upload_bytes + 1)
    extension = validate_image(data, settings.max_upload_bytes)

    name = f"{uuid.uuid4().hex}{extension}"
    target = ensure_upload_dir(settings) / name
    await run_in_threadpool(_write, target, data)
    logger.info("Stored case image %s (%d bytes)", name, len(data))
    return f"{PUBLIC_PREFIX}/{name}"


def _unlink(path: Path) -> None:
    path.unlink(missing_ok=True)


async def discard_case_image(settings: Settings, image_url: Optional[str]) -> None:
    """Remove a stored photo whose case never made it into the database."""
    if not image_url or not image_url.startswith(f"{PUBLIC_PREFIX}/"):
        return
    name = image_url[len(PUBLIC_PREFIX) + 1:]
    await run_in_threadpool(_unlink, Path(settings.upload_dir) / name)
    logger.info("Discarded case image %s", name)
