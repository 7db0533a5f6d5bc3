# backend/core/storage.py
import logging
import os
import uuid
from typing import IO, Optional

from django.core.files import File
from django.core.files.storage import Storage, default_storage

from core.exceptions import StorageError

logger = logging.getLogger(__name__)


def object_name_for(user_id: Optional[str], filename: str) -> str:
    """scans/<owner>/<random><ext>; anonymous uploads share one prefix."""
    ext = os.path.splitext(filename or "")[1].lower() or ".jpg"
    owner = str(user_id) if user_id else "anonymous"
    return f"scans/{owner}/{uuid.uuid4()}{ext}"


class ImageStore:
    """Byte-level image access on top of a Django storage backend."""

    def __init__(self, storage: Optional[Storage] = None):
        self.storage = storage or default_storage

    def upload(self, name: str, fileobj: IO[bytes], size: Optional[int] = None,
               content_type: Optional[str] = None) -> str:
        try:
            ref = self.storage.save(name, File(fileobj, name=os.path.basename(name)))
        except OSError as e:
            raise StorageError(f"failed to upload image: {e}") from e
        logger.debug("Stored image %s (%s bytes, %s)", ref, size, content_type)
        return ref

    def download(self, ref: str) -> IO[bytes]:
        if not self.storage.exists(ref):
            raise StorageError(f"image not found in storage: {ref}")
        try:
            return self.storage.open(ref, "rb")
        except OSError as e:
            raise StorageError(f"failed to read image {ref}: {e}") from e

    def delete(self, ref: str):
        try:
            self.storage.delete(ref)
        except OSError as e:
            raise StorageError(f"failed to delete image {ref}: {e}") from e

    def url(self, ref: str) -> str:
        return self.storage.url(ref)
