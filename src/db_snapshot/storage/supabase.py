"""Supabase storage bucket backend.

Wraps the storage API of the supabase-py async client.  Shares the client
of an ``AsyncSupabaseAdapter`` so one service-role connection serves both
table reads/writes and bucket uploads.

Usage:
    from db_snapshot.adapters.supabase import AsyncSupabaseAdapter
    from db_snapshot.storage.supabase import SupabaseStorage

    adapter = AsyncSupabaseAdapter(url, key)
    storage = SupabaseStorage(adapter, bucket="backups")
"""

import logging

from db_snapshot.adapters.supabase import AsyncSupabaseAdapter
from db_snapshot.storage.base import (
    StorageConflictError,
    StorageError,
    StorageNotFoundError,
)

logger = logging.getLogger(__name__)

_CONFLICT_MARKERS = ("409", "duplicate", "already exists")


def _is_conflict(error: Exception) -> bool:
    """Whether a storage API error reports an existing object."""
    status = str(getattr(error, "status", "") or getattr(error, "statusCode", ""))
    message = str(error).lower()
    return status == "409" or any(m in message for m in _CONFLICT_MARKERS)


class SupabaseStorage:
    """``ObjectStorage`` backed by a Supabase storage bucket.

    Args:
        adapter: Supabase adapter whose client is reused.
        bucket: Bucket name (default ``"backups"``).
    """

    def __init__(self, adapter: AsyncSupabaseAdapter, bucket: str = "backups") -> None:
        self._adapter = adapter
        self.bucket = bucket

    async def _bucket(self):
        client = await self._adapter.get_client()
        return client.storage.from_(self.bucket)

    async def put(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/json",
        fail_if_exists: bool = True,
    ) -> None:
        """Upload *data*; ``upsert`` is disabled when ``fail_if_exists``."""
        bucket = await self._bucket()
        try:
            await bucket.upload(
                path,
                data,
                file_options={
                    "content-type": content_type,
                    "upsert": "false" if fail_if_exists else "true",
                },
            )
        except Exception as e:
            if fail_if_exists and _is_conflict(e):
                raise StorageConflictError(f"Object already exists: {path}") from e
            raise StorageError(f"Failed to upload {path}: {e}") from e

    async def get(self, path: str) -> bytes:
        """Download the object at *path*."""
        bucket = await self._bucket()
        try:
            return await bucket.download(path)
        except Exception as e:
            if "404" in str(e) or "not found" in str(e).lower():
                raise StorageNotFoundError(f"Path not found: {path}") from e
            raise StorageError(f"Failed to download {path}: {e}") from e

    async def remove_many(self, paths: list[str]) -> list[str]:
        """Remove objects in one request.

        The storage API silently ignores missing paths and returns the
        objects it deleted.
        """
        if not paths:
            return []
        bucket = await self._bucket()
        try:
            removed = await bucket.remove(paths)
        except Exception as e:
            raise StorageError(f"Failed to remove {len(paths)} objects: {e}") from e
        names = [item.get("name") for item in removed or [] if isinstance(item, dict)]
        return [n for n in names if n]
