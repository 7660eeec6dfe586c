"""Object storage for snapshot documents.

``SupabaseStorage`` is only available when the ``supabase`` extra is
installed.

Usage:
    from db_snapshot.storage import LocalStorage, ObjectStorage
"""

from db_snapshot.storage.base import (
    ObjectStorage,
    StorageConflictError,
    StorageError,
    StorageNotFoundError,
)
from db_snapshot.storage.local import LocalStorage

__all__ = [
    "ObjectStorage",
    "LocalStorage",
    "StorageError",
    "StorageConflictError",
    "StorageNotFoundError",
]

try:
    from db_snapshot.storage.supabase import SupabaseStorage

    __all__.append("SupabaseStorage")
except ImportError:
    # supabase extra not installed -- SupabaseStorage unavailable
    pass
