"""Blob store adapters. The core stores only ``content_ref`` locators and never
looks at file bytes."""
import logging
import os
import re
import unicodedata
import uuid
from typing import Optional

from app.core.config import settings
from app.core.exceptions import NotFoundError
from app.utils.supabase_client import get_supabase

logger = logging.getLogger(__name__)

def sanitize_filename(filename: str) -> str:
    name, ext = os.path.splitext(filename)

    name = unicodedata.normalize("NFD", name).encode("ascii", "ignore").decode("utf-8")

    name = re.sub(r"\s+", "_", name)

    name = re.sub(r"[^a-zA-Z0-9._-]", "", name)

    return f"{name or 'file'}{ext.lower()}"


class BlobStore:
    def put(self, data: bytes, filename: str, owner_id: str) -> str:
        raise NotImplementedError

    def get(self, content_ref: str) -> bytes:
        raise NotImplementedError

    def delete(self, content_ref: str) -> bool:
        """Best effort. Returns False instead of raising when removal fails."""
        raise NotImplementedError

class SupabaseBlobStore(BlobStore):
    def __init__(self, client=None, bucket: Optional[str] = None):
        self._client = client
        self.bucket = bucket or settings.storage_bucket

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def put(self, data: bytes, filename: str, owner_id: str) -> str:
        storage_path = f"{owner_id}/{uuid.uuid4().hex}_{sanitize_filename(filename)}"
        res = self.client.storage.from_(self.bucket).upload(storage_path, data)
        logger.info(f"Uploaded {filename} to Supabase → {res.path}")
        return res.path

    def get(self, content_ref: str) -> bytes:
        try:
            return self.client.storage.from_(self.bucket).download(content_ref)
        except Exception as e:
            logger.warning(f"Download failed for '{content_ref}': {e}")
            raise NotFoundError("File content not found")

    def delete(self, content_ref: str) -> bool:
        try:
            self.client.storage.from_(self.bucket).remove([content_ref])
            return True
        except Exception as e:
            logger.exception(f"Storage deletion failed for '{content_ref}': {e}")
            return False

class LocalBlobStore(BlobStore):
    def __init__(self, root: Optional[str] = None):
        self.root = os.path.abspath(root or settings.local_blob_dir)

    def _resolve(self, content_ref: str) -> str:
        path = os.path.abspath(os.path.join(self.root, content_ref))
        if not path.startswith(self.root + os.sep):
            raise NotFoundError("Invalid content reference")
        return path

    def put(self, data: bytes, filename: str, owner_id: str) -> str:
        content_ref = f"{sanitize_filename(owner_id)}/{uuid.uuid4().hex}_{sanitize_filename(filename)}"
        path = self._resolve(content_ref)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)
        return content_ref

    def get(self, content_ref: str) -> bytes:
        path = self._resolve(content_ref)
        if not os.path.isfile(path):
            raise NotFoundError("File content not found")
        with open(path, "rb") as f:
            return f.read()

    def delete(self, content_ref: str) -> bool:
        try:
            os.remove(self._resolve(content_ref))
            return True
        except (OSError, NotFoundError) as e:
            logger.warning(f"Could not remove blob '{content_ref}': {e}")
            return False

def get_blob_store() -> BlobStore:
    if settings.blob_backend == "local":
        return LocalBlobStore()
    return SupabaseBlobStore()
