"""Adapter and storage factory.

Resolves the active database profile and builds the matching
``DatabaseClient`` and ``ObjectStorage``.

Profile resolution order:
1. ``{env_prefix}DB_PROFILE`` environment variable
2. ``.db-profile`` lock file in the current working directory
3. ``ProfileNotFoundError``

Usage:
    from db_snapshot.factory import get_adapter, get_storage

    adapter = get_adapter(env_prefix="APP_")
    storage = get_storage(config.snapshot, adapter)
"""

import os
from pathlib import Path
from urllib.parse import quote

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.config.loader import load_db_config
from db_snapshot.config.models import DatabaseConfig, DatabaseProfile, SnapshotSettings
from db_snapshot.storage.base import ObjectStorage
from db_snapshot.storage.local import LocalStorage


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


# ============================================================================
# Profile selection
# ============================================================================


def _profile_lock_file() -> Path:
    return Path.cwd() / ".db-profile"


def read_profile_lock() -> str | None:
    """Return the profile pinned by ``db-snapshot use``, if any."""
    lock_file = _profile_lock_file()
    if lock_file.exists():
        return lock_file.read_text().strip() or None
    return None


def write_profile_lock(profile_name: str) -> None:
    """Pin *profile_name* for later commands in this directory."""
    _profile_lock_file().write_text(profile_name)


def clear_profile_lock() -> None:
    """Unpin the profile (no-op without a lock file)."""
    lock_file = _profile_lock_file()
    if lock_file.exists():
        lock_file.unlink()


def get_active_profile_name(env_prefix: str = "") -> str:
    """Name of the profile to use: environment variable first, then lock file.

    Args:
        env_prefix: Prefix for the environment variable
            (``"APP_"`` reads ``APP_DB_PROFILE``).

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    env_profile = os.environ.get(f"{env_prefix}DB_PROFILE")
    if env_profile:
        return env_profile

    lock_profile = read_profile_lock()
    if lock_profile:
        return lock_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Set {env_prefix}DB_PROFILE=<name> or run: db-snapshot use <name>"
    )


def get_active_profile(
    env_prefix: str = "",
    config: DatabaseConfig | None = None,
) -> tuple[str, DatabaseProfile]:
    """Resolve the active profile against *config* (default: ``db.toml``).

    Raises:
        ProfileNotFoundError: If no profile is selected.
        KeyError: If the selected profile is not defined
    """
    profile_name = get_active_profile_name(env_prefix=env_prefix)
    config = config or load_db_config()

    if profile_name not in config.profiles:
        raise KeyError(
            f"Profile '{profile_name}' not found in db.toml.\n"
            f"Available profiles: {', '.join(config.profiles.keys())}"
        )

    return profile_name, config.profiles[profile_name]


# ============================================================================
# Adapter / storage construction
# ============================================================================


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Example:
        >>> resolve_url(DatabaseProfile(url="postgresql://u:[YOUR-PASSWORD]@h/db",
        ...                             db_password="p@ss"))
        'postgresql://u:p%40ss@h/db'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def create_adapter(profile: DatabaseProfile) -> DatabaseClient:
    """Build the adapter for a profile's provider.

    Raises:
        ValueError: If a Supabase profile has no ``service_key``.
    """
    if profile.provider == "supabase":
        from db_snapshot.adapters.supabase import AsyncSupabaseAdapter

        if not profile.service_key:
            raise ValueError("Supabase profiles require service_key")
        return AsyncSupabaseAdapter(url=profile.url, key=profile.service_key)

    from db_snapshot.adapters.postgres import AsyncPostgresAdapter

    return AsyncPostgresAdapter(resolve_url(profile), jsonb_columns=["metadata"])


def get_adapter(
    profile_name: str | None = None,
    env_prefix: str = "",
    config: DatabaseConfig | None = None,
) -> DatabaseClient:
    """Create an adapter for *profile_name* or the active profile.

    Raises:
        ProfileNotFoundError: If no profile is configured.
        KeyError: If the profile is not in db.toml.
    """
    config = config or load_db_config()
    if profile_name is None:
        profile_name, profile = get_active_profile(env_prefix=env_prefix, config=config)
    elif profile_name in config.profiles:
        profile = config.profiles[profile_name]
    else:
        raise KeyError(
            f"Profile '{profile_name}' not found. "
            f"Available: {', '.join(config.profiles.keys())}"
        )
    return create_adapter(profile)


def get_storage(settings: SnapshotSettings, adapter: DatabaseClient) -> ObjectStorage:
    """Create the object storage configured in ``[snapshot]``.

    Raises:
        ValueError: If Supabase storage is configured without a Supabase adapter.
    """
    if settings.storage == "supabase":
        from db_snapshot.adapters.supabase import AsyncSupabaseAdapter
        from db_snapshot.storage.supabase import SupabaseStorage

        if not isinstance(adapter, AsyncSupabaseAdapter):
            raise ValueError("Supabase storage requires a supabase profile")
        return SupabaseStorage(adapter, bucket=settings.bucket)

    return LocalStorage(settings.storage_path)
