"""Object storage for uploaded media: files land under UPLOAD_DIR and are served from /static."""

import logging
import os
from typing import Optional

from bson import ObjectId
from fastapi import UploadFile

from config import settings

logger = logging.getLogger(__name__)

STATIC_PREFIX = "/static"


async def upload_file(file: Optional[UploadFile], folder: str, default_ext: str = "") -> Optional[str]:
    """Save an upload and return its public URL, or None when there is nothing to save."""
    if file is None or not file.filename:
        return None
    target_dir = os.path.join(settings.UPLOAD_DIR, folder)
    os.makedirs(target_dir, exist_ok=True)
    ext = os.path.splitext(file.filename)[1] or default_ext
    filename = f"{ObjectId()}{ext}"
    with open(os.path.join(target_dir, filename), "wb") as f:
        f.write(await file.read())
    url = f"{STATIC_PREFIX}/{folder}/{filename}"
    logger.info(f"Stored upload {file.filename} as {url}")
    return url


def delete_file(url: Optional[str]):
    """Remove a previously uploaded file given its public URL. Unknown URLs are ignored."""
    if not url or not url.startswith(STATIC_PREFIX + "/"):
        return
    path = os.path.join(settings.UPLOAD_DIR, *url[len(STATIC_PREFIX) + 1:].split("/"))
    if os.path.isfile(path):
        os.remove(path)
        logger.info(f"Removed upload {url}")
