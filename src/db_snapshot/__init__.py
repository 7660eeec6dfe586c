"""db-snapshot: Relational snapshot backup and restore.

Exports a dependency-ordered set of tables into one JSON document, stores
it with a backup history entry, applies retention, and restores documents
table by table in replace or merge mode.

Usage:
    from db_snapshot import SnapshotService, get_adapter, get_storage, load_db_config
    from db_snapshot import DEFAULT_CATALOG, TableCatalog, TableDef, ForeignKey
    from db_snapshot import validate_snapshot, RunReport
"""

__version__ = "0.1.0"

# Adapters
from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.adapters.postgres import AsyncPostgresAdapter

# Config
from db_snapshot.config.loader import load_db_config
from db_snapshot.config.models import DatabaseConfig, DatabaseProfile, SnapshotSettings

# Factory
from db_snapshot.factory import ProfileNotFoundError, get_adapter, get_storage, resolve_url

# Storage
from db_snapshot.storage.base import ObjectStorage
from db_snapshot.storage.local import LocalStorage

# Pipeline
from db_snapshot.backup.catalog import DEFAULT_CATALOG, TableCatalog
from db_snapshot.backup.errors import FormatError, SnapshotError
from db_snapshot.backup.models import ForeignKey, SnapshotDocument, TableDef
from db_snapshot.backup.report import RunReport
from db_snapshot.backup.validator import validate_snapshot
from db_snapshot.service import SnapshotService

__all__ = [
    # Adapters
    "DatabaseClient",
    "AsyncPostgresAdapter",
    # Config
    "load_db_config",
    "DatabaseProfile",
    "DatabaseConfig",
    "SnapshotSettings",
    # Factory
    "get_adapter",
    "get_storage",
    "ProfileNotFoundError",
    "resolve_url",
    # Storage
    "ObjectStorage",
    "LocalStorage",
    # Pipeline
    "SnapshotService",
    "DEFAULT_CATALOG",
    "TableCatalog",
    "TableDef",
    "ForeignKey",
    "SnapshotDocument",
    "RunReport",
    "validate_snapshot",
    "SnapshotError",
    "FormatError",
]

# Optional: Supabase adapter and storage (only available with supabase extra)
try:
    from db_snapshot.adapters.supabase import AsyncSupabaseAdapter
    from db_snapshot.storage.supabase import SupabaseStorage

    __all__ += ["AsyncSupabaseAdapter", "SupabaseStorage"]
except ImportError:
    # supabase extra not installed -- Supabase adapter and storage unavailable
    pass
