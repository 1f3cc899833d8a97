# medintake/storage.py
"""Blob storage for uploaded images.

Production deployments keep blobs in a Supabase Storage bucket. When no
Supabase credentials are configured the blobs are written below a local
directory instead, one sub-directory per bucket.
"""
import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional

from supabase import Client, create_client

logger = logging.getLogger(__name__)


class BlobStoreError(Exception):
    """Raised when the storage collaborator rejects or fails an operation."""


class SupabaseBlobStore:
    def __init__(self, client: Client, bucket: str):
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_credentials(cls, url: str, key: str, bucket: str) -> "SupabaseBlobStore":
        return cls(create_client(url, key), bucket)

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def upload(self, path: str, data: bytes, content_type: str,
               metadata: Optional[Dict[str, str]] = None) -> None:
        options = {"content-type": content_type}
        if metadata:
            options["metadata"] = metadata
        try:
            self._bucket().upload(path, data, file_options=options)
        except Exception as exc:
            raise BlobStoreError(f"upload of {path} failed") from exc

    def download(self, path: str) -> bytes:
        try:
            return self._bucket().download(path)
        except Exception as exc:
            raise BlobStoreError(f"download of {path} failed") from exc

    def remove(self, paths: Iterable[str]) -> None:
        try:
            self._bucket().remove(list(paths))
        except Exception as exc:
            raise BlobStoreError("remove failed") from exc

    def public_url(self, path: str) -> str:
        return self._bucket().get_public_url(path)


class LocalBlobStore:
    def __init__(self, root: str, bucket: str):
        self.root = Path(root) / bucket
        self.bucket = bucket

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            raise BlobStoreError(f"path {path!r} escapes the bucket")
        return target

    @staticmethod
    def _sidecar(target: Path) -> Path:
        return target.with_name(target.name + ".meta.json")

    def upload(self, path: str, data: bytes, content_type: str,
               metadata: Optional[Dict[str, str]] = None) -> None:
        target = self._resolve(path)
        if target.exists():
            raise BlobStoreError(f"{path} already exists")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            self._sidecar(target).write_text(
                json.dumps({"contentType": content_type, "metadata": metadata or {}})
            )
        except OSError as exc:
            raise BlobStoreError(f"upload of {path} failed") from exc

    def download(self, path: str) -> bytes:
        try:
            return self._resolve(path).read_bytes()
        except OSError as exc:
            raise BlobStoreError(f"download of {path} failed") from exc

    def remove(self, paths: Iterable[str]) -> None:
        for path in paths:
            target = self._resolve(path)
            try:
                target.unlink(missing_ok=True)
                self._sidecar(target).unlink(missing_ok=True)
            except OSError as exc:
                raise BlobStoreError(f"remove of {path} failed") from exc

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def public_url(self, path: str) -> str:
        return self._resolve(path).as_uri()


def build_blob_store(settings):
    if settings.uses_supabase_storage:
        logger.info("Using Supabase storage bucket %s", settings.xray_bucket)
        return SupabaseBlobStore.from_credentials(
            settings.supabase_url, settings.supabase_key, settings.xray_bucket
        )
    logger.info("Using local blob storage under %s", settings.upload_dir)
    return LocalBlobStore(settings.upload_dir, settings.xray_bucket)
