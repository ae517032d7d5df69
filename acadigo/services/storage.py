"""Object storage adapters.

Both backends expose ``upload(file, path, acting_user)`` returning a
:class:`FileDescriptor` and ``delete(file_path)``. Uploads made by a student
always land under ``submissions/`` whatever path the caller asked for.
"""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Iterable, Optional

import requests
from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from acadigo.config import Settings
from acadigo.errors import UpstreamFailure, ValidationError
from acadigo.models import User, UserRole
from acadigo.schemas.common import FileDescriptor
from acadigo.utils.clock import utcnow
from acadigo.utils.storage import (
    ensure_directory,
    normalize_key,
    read_upload,
    remove_file,
    safe_filename,
    write_bytes,
)

logger = logging.getLogger(__name__)

SUBMISSIONS_PREFIX = "submissions"


def build_key(folder: str, filename: Optional[str], owner_id: Optional[int] = None) -> str:
    """``<folder>/[<owner>-]<timestamp>-<safe name>``."""
    stamp = int(utcnow().timestamp() * 1000)
    name = safe_filename(filename or "upload")
    prefix = f"{owner_id}-" if owner_id is not None else ""
    return f"{folder}/{prefix}{stamp}-{name}"


class StorageBackend:
    """Common upload pipeline; subclasses implement the byte transport."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def resolve_key(self, path: str, acting_user: Optional[User] = None) -> str:
        key = normalize_key(path)
        if not key:
            raise ValidationError("Invalid storage path")
        if acting_user is not None and acting_user.role == UserRole.STUDENT:
            if key != SUBMISSIONS_PREFIX and not key.startswith(SUBMISSIONS_PREFIX + "/"):
                key = f"{SUBMISSIONS_PREFIX}/{key}"
        return key

    async def upload(
        self, upload: UploadFile, path: str, acting_user: Optional[User] = None
    ) -> FileDescriptor:
        key = self.resolve_key(path, acting_user)
        try:
            data = await read_upload(upload, self.settings.max_upload_bytes)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        content_type = (
            upload.content_type
            or mimetypes.guess_type(upload.filename or "")[0]
            or "application/octet-stream"
        )
        try:
            url = await run_in_threadpool(self._put, key, data, content_type)
        except UpstreamFailure:
            raise
        except Exception as exc:  # noqa: BLE001 - any transport error is an upstream failure
            logger.error("Error uploading %s: %s", key, exc)
            raise UpstreamFailure("Failed to upload file") from exc

        return FileDescriptor(
            file_name=upload.filename or Path(key).name,
            file_url=url,
            file_path=key,
            file_size=len(data),
        )

    def delete(self, file_path: str) -> bool:
        raise NotImplementedError

    def _put(self, key: str, data: bytes, content_type: str) -> str:
        raise NotImplementedError


class LocalStorage(StorageBackend):
    """Files under ``settings.storage_dir``, served from ``public_file_base_url``."""

    def __init__(self, settings: Settings, root: Optional[Path] = None) -> None:
        super().__init__(settings)
        self.root = Path(root or settings.storage_dir)
        ensure_directory(self.root)

    def _put(self, key: str, data: bytes, content_type: str) -> str:
        write_bytes(self.root / key, data)
        return f"{self.settings.public_file_base_url.rstrip('/')}/{key}"

    def delete(self, file_path: str) -> bool:
        key = normalize_key(file_path)
        if not key:
            return False
        return remove_file(self.root / key)

    def exists(self, file_path: str) -> bool:
        return (self.root / normalize_key(file_path)).is_file()


class SupabaseStorage(StorageBackend):
    """Supabase Storage over its REST API."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        super().__init__(settings)
        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise UpstreamFailure("Supabase credentials not provided")
        self.base_url = settings.supabase_url.rstrip("/") + "/storage/v1"
        self.bucket = settings.supabase_bucket
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {settings.supabase_service_role_key}",
                "apikey": settings.supabase_service_role_key,
            }
        )

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/object/public/{self.bucket}/{key}"

    def _put(self, key: str, data: bytes, content_type: str) -> str:
        response = self.session.post(
            f"{self.base_url}/object/{self.bucket}/{key}",
            data=data,
            headers={
                "Content-Type": content_type,
                "x-upsert": "true",
                "cache-control": "3600",
            },
            timeout=30,
        )
        if response.status_code >= 400:
            raise UpstreamFailure(f"Supabase upload failed ({response.status_code})")
        return self.public_url(key)

    def delete(self, file_path: str) -> bool:
        response = self.session.delete(
            f"{self.base_url}/object/{self.bucket}",
            json={"prefixes": [file_path]},
            timeout=30,
        )
        if response.status_code >= 400:
            raise UpstreamFailure(f"Supabase delete failed ({response.status_code})")
        return True


def build_storage(settings: Settings) -> StorageBackend:
    if settings.storage_backend == "supabase":
        return SupabaseStorage(settings)
    return LocalStorage(settings)


def discard_files(storage: StorageBackend, paths: Iterable[Optional[str]]) -> int:
    """Delete every path, logging failures and carrying on. Returns the failure count."""
    failures = 0
    for path in paths:
        if not path:
            continue
        try:
            storage.delete(path)
        except Exception as exc:  # noqa: BLE001 - deletes never block the caller
            failures += 1
            logger.warning("Failed to delete stored file %s: %s", path, exc)
    return failures
