import mimetypes
import uuid
from typing import Optional

from django.core.files.base import ContentFile
from django.core.files.storage import default_storage


class DjangoBlobStore:
    """Scene images kept in a Django storage backend (local media or S3 etc.)."""

    def __init__(self, storage=None, prefix="scenes"):
        self.storage = storage or default_storage
        self.prefix  = prefix

    def store(self, data: bytes, content_type: str) -> str:
        ext = mimetypes.guess_extension(content_type or "") or ".bin"
        name = f"{self.prefix}/{uuid.uuid4().hex}{ext}"
        return self.storage.save(name, ContentFile(data))

    def delete(self, blob_ref: str):
        if blob_ref and self.storage.exists(blob_ref):
            self.storage.delete(blob_ref)

    def get_url(self, blob_ref: Optional[str]) -> Optional[str]:
        if not blob_ref or not self.storage.exists(blob_ref):
            return None
        return self.storage.url(blob_ref)
