"""
Local disk storage for product images, served under /uploads.
"""
import logging
import os
import uuid
from typing import List

from fastapi import UploadFile

from config import MAX_PRODUCT_IMAGES, UPLOAD_DIR
from errors import InvalidArgument

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}


class ImageStorage:
    def __init__(self, root: str = UPLOAD_DIR, url_prefix: str = "/uploads"):
        self.root = root
        self.url_prefix = url_prefix.rstrip("/")
        os.makedirs(self.root, exist_ok=True)

    def save(self, upload: UploadFile) -> dict:
        ext = os.path.splitext(upload.filename or "")[1].lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise InvalidArgument(f"Unsupported image type: {upload.filename}")
        public_id = f"{uuid.uuid4().hex}{ext}"
        with open(os.path.join(self.root, public_id), "wb") as f:
            f.write(upload.file.read())
        return {"url": f"{self.url_prefix}/{public_id}", "public_id": public_id}

    def save_all(self, uploads: List[UploadFile]) -> List[dict]:
        uploads = [u for u in uploads or [] if u.filename]
        if len(uploads) > MAX_PRODUCT_IMAGES:
            raise InvalidArgument(f"At most {MAX_PRODUCT_IMAGES} images per request")
        return [self.save(u) for u in uploads]

    def delete(self, public_id: str) -> None:
        # public ids are bare file names; anything else never came from save()
        if not public_id or os.path.basename(public_id) != public_id:
            return
        try:
            os.remove(os.path.join(self.root, public_id))
        except FileNotFoundError:
            logger.warning("Image %s already removed", public_id)


_storage = None


def get_storage() -> ImageStorage:
    global _storage
    if _storage is None:
        _storage = ImageStorage()
    return _storage
