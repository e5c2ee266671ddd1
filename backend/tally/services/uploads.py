"""Photo upload storage (served statically under /uploads)."""

import uuid
from pathlib import Path

import structlog
from fastapi import UploadFile

from tally.config import settings
from tally.core.exceptions import ValidationError

logger = structlog.get_logger()

UPLOAD_URL_PREFIX = "/uploads"

# Accepted content types; the stored extension always comes from here.
_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/heic": ".heic",
}


async def read_image(file: UploadFile) -> bytes:
    """Read an uploaded image, enforcing type and size limits."""
    if file.content_type not in _EXTENSIONS:
        raise ValidationError("Only image files are allowed")

    content = await file.read()
    max_bytes = settings.max_upload_size_mb * 1024 * 1024
    if len(content) > max_bytes:
        raise ValidationError(f"File too large (max {settings.max_upload_size_mb} MB)")
    if not content:
        raise ValidationError("Empty file")
    return content


async def store_photo(file: UploadFile, upload_dir: Path | None = None) -> str:
    """Persist an uploaded photo and return its public URL."""
    content = await read_image(file)
    extension = _EXTENSIONS[file.content_type]

    directory = upload_dir or settings.upload_path
    directory.mkdir(parents=True, exist_ok=True)
    filename = f"{uuid.uuid4().hex}{extension}"
    (directory / filename).write_bytes(content)

    logger.info("Photo stored", filename=filename, size=len(content))
    return f"{UPLOAD_URL_PREFIX}/{filename}"


def discard_photo(url: str | None, upload_dir: Path | None = None) -> None:
    """Remove a stored photo that ended up not referenced by any item."""
    if not url or not url.startswith(f"{UPLOAD_URL_PREFIX}/"):
        return
    directory = upload_dir or settings.upload_path
    path = directory / Path(url).name
    path.unlink(missing_ok=True)
    logger.info("Photo discarded", filename=path.name)
