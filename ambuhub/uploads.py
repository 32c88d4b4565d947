import logging
import os
import secrets
from typing import Optional

from fastapi import UploadFile

from .errors import UploadError

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads/"
CHUNK_SIZE = 64 * 1024

ALLOWED_TYPES = {
    "image/png": (".png",),
    "image/jpeg": (".jpg", ".jpeg"),
    "image/gif": (".gif",),
    "image/webp": (".webp",),
}


def save_image(upload: Optional[UploadFile], upload_dir: str, max_bytes: int) -> Optional[str]:
    """Store an uploaded image and return the URL it is served under.

    Returns None when the form was submitted without choosing a file. This does
    blocking file I/O; async callers run it in a worker thread.
    """
    if upload is None or not upload.filename:
        return None

    ext = os.path.splitext(upload.filename)[1].lower()
    allowed = ALLOWED_TYPES.get((upload.content_type or "").lower())
    if not allowed or ext not in allowed:
        raise UploadError(f"unsupported image type: {upload.filename}")

    os.makedirs(upload_dir, exist_ok=True)
    stored_name = secrets.token_hex(16) + ext
    path = os.path.join(upload_dir, stored_name)
    written = 0
    try:
        with open(path, "wb") as out:
            while True:
                chunk = upload.file.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise UploadError(f"image larger than {max_bytes} bytes")
                out.write(chunk)
    except UploadError:
        _remove(path)
        raise
    except OSError as e:
        _remove(path)
        logger.error("Could not store upload %s: %s", upload.filename, e)
        raise UploadError("could not store image") from e

    if written == 0:
        _remove(path)
        raise UploadError("empty image file")

    logger.info("Stored image %s (%d bytes)", stored_name, written)
    return URL_PREFIX + stored_name


def stored_path(filename: str, upload_dir: str) -> Optional[str]:
    """Map a stored image name to its file, or None if there is no such image."""
    name = os.path.basename(filename or "")
    if not name or name != filename or name.startswith("."):
        return None
    path = os.path.join(upload_dir, name)
    return path if os.path.isfile(path) else None


def discard_image(image_url: Optional[str], upload_dir: str) -> None:
    """Delete a previously stored image; images not managed here are left alone."""
    if not image_url or not image_url.startswith(URL_PREFIX):
        return
    path = stored_path(image_url[len(URL_PREFIX):], upload_dir)
    if path:
        _remove(path)


def _remove(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
