"""Filesystem object storage.

Stores snapshot objects under a base directory, mirroring the bucket
layout (``auto/...``, ``manual/...``).  Used by the CLI when no hosted
bucket is configured.
"""

import logging
import os
from pathlib import Path

from db_snapshot.storage.base import (
    StorageConflictError,
    StorageError,
    StorageNotFoundError,
)

logger = logging.getLogger(__name__)


class LocalStorage:
    """``ObjectStorage`` backed by a local directory.

    Args:
        base_path: Root directory for all objects.  Created on first write.
    """

    def __init__(self, base_path: str | Path) -> None:
        self.base_path = Path(base_path)

    def _resolve(self, path: str) -> Path:
        """Resolve a relative object path inside ``base_path``."""
        full_path = (self.base_path / path.replace("/", os.sep)).resolve()
        if self.base_path.resolve() not in full_path.parents:
            raise StorageError(f"Path escapes storage root: {path}")
        return full_path

    async def put(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/json",
        fail_if_exists: bool = True,
    ) -> None:
        """Write bytes; ``content_type`` is implied by the file extension."""
        full_path = self._resolve(path)
        full_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(full_path, "xb" if fail_if_exists else "wb") as f:
                f.write(data)
        except FileExistsError:
            raise StorageConflictError(f"Object already exists: {path}") from None
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

    async def get(self, path: str) -> bytes:
        """Read the object at *path*."""
        full_path = self._resolve(path)
        if not full_path.is_file():
            raise StorageNotFoundError(f"Path not found: {path}")
        return full_path.read_bytes()

    async def remove_many(self, paths: list[str]) -> list[str]:
        """Remove objects, skipping paths that are already gone."""
        removed: list[str] = []
        for path in paths:
            full_path = self._resolve(path)
            if not full_path.is_file():
                logger.debug("Storage object already absent: %s", path)
                continue
            try:
                full_path.unlink()
            except OSError as e:
                raise StorageError(f"Failed to remove {path}: {e}") from e
            removed.append(path)
        return removed
