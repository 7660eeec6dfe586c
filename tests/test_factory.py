"""Tests for profile resolution and adapter/storage construction."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from db_snapshot.adapters.postgres import AsyncPostgresAdapter
from db_snapshot.config.models import DatabaseConfig, DatabaseProfile, SnapshotSettings
from db_snapshot.factory import (
    ProfileNotFoundError,
    clear_profile_lock,
    create_adapter,
    get_active_profile,
    get_active_profile_name,
    get_adapter,
    get_storage,
    read_profile_lock,
    resolve_url,
    write_profile_lock,
)
from db_snapshot.storage.local import LocalStorage

CONFIG = DatabaseConfig(
    profiles={
        "dev": DatabaseProfile(url="postgresql://localhost/dev"),
        "prod": DatabaseProfile(
            url="https://xyz.supabase.co", provider="supabase", service_key="key"
        ),
    }
)


@pytest.fixture(autouse=True)
def _isolated_cwd(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DB_PROFILE", raising=False)
    monkeypatch.delenv("APP_DB_PROFILE", raising=False)


class TestProfileLock:
    def test_write_read_clear(self) -> None:
        assert read_profile_lock() is None
        write_profile_lock("dev")
        assert read_profile_lock() == "dev"
        clear_profile_lock()
        assert read_profile_lock() is None

    def test_blank_lock_file_ignored(self, tmp_path: Path) -> None:
        (tmp_path / ".db-profile").write_text("  \n")
        assert read_profile_lock() is None


class TestActiveProfile:
    def test_env_var_wins_over_lock(self, monkeypatch: pytest.MonkeyPatch) -> None:
        write_profile_lock("dev")
        monkeypatch.setenv("DB_PROFILE", "prod")
        assert get_active_profile_name() == "prod"

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APP_DB_PROFILE", "prod")
        assert get_active_profile_name(env_prefix="APP_") == "prod"
        with pytest.raises(ProfileNotFoundError):
            get_active_profile_name()

    def test_lock_file_fallback(self) -> None:
        write_profile_lock("dev")
        assert get_active_profile_name() == "dev"

    def test_nothing_configured(self) -> None:
        with pytest.raises(ProfileNotFoundError, match="DB_PROFILE"):
            get_active_profile_name()

    def test_unknown_profile(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_PROFILE", "staging")
        with pytest.raises(KeyError, match="staging"):
            get_active_profile(config=CONFIG)

    def test_resolves_profile(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_PROFILE", "dev")
        name, profile = get_active_profile(config=CONFIG)
        assert name == "dev"
        assert profile is CONFIG.profiles["dev"]


class TestResolveUrl:
    def test_password_substituted_and_quoted(self) -> None:
        profile = DatabaseProfile(
            url="postgresql://u:[YOUR-PASSWORD]@h/db", db_password="p@ss/word"
        )
        assert resolve_url(profile) == "postgresql://u:p%40ss%2Fword@h/db"

    def test_no_placeholder(self) -> None:
        profile = DatabaseProfile(url="postgresql://u:x@h/db", db_password="p")
        assert resolve_url(profile) == "postgresql://u:x@h/db"


class TestCreateAdapter:
    def test_postgres_profile(self) -> None:
        with patch("db_snapshot.adapters.postgres.create_async_engine_pooled") as mock_create:
            mock_create.return_value = MagicMock()
            adapter = create_adapter(CONFIG.profiles["dev"])
        assert isinstance(adapter, AsyncPostgresAdapter)
        assert mock_create.call_args.args[0] == "postgresql+asyncpg://localhost/dev"

    def test_supabase_profile(self) -> None:
        from db_snapshot.adapters.supabase import AsyncSupabaseAdapter

        adapter = create_adapter(CONFIG.profiles["prod"])
        assert isinstance(adapter, AsyncSupabaseAdapter)

    def test_supabase_profile_requires_key(self) -> None:
        with pytest.raises(ValueError, match="service_key"):
            create_adapter(DatabaseProfile(url="https://x.supabase.co", provider="supabase"))

    def test_get_adapter_by_name(self) -> None:
        with patch("db_snapshot.adapters.postgres.create_async_engine_pooled"):
            assert isinstance(get_adapter("dev", config=CONFIG), AsyncPostgresAdapter)
        with pytest.raises(KeyError):
            get_adapter("staging", config=CONFIG)


class TestGetStorage:
    def test_local_storage(self, tmp_path: Path) -> None:
        storage = get_storage(SnapshotSettings(storage_path=str(tmp_path)), MagicMock())
        assert isinstance(storage, LocalStorage)
        assert storage.base_path == tmp_path

    def test_supabase_storage_needs_supabase_adapter(self) -> None:
        with pytest.raises(ValueError, match="supabase"):
            get_storage(SnapshotSettings(storage="supabase"), MagicMock())

    def test_supabase_storage(self) -> None:
        from db_snapshot.adapters.supabase import AsyncSupabaseAdapter
        from db_snapshot.storage.supabase import SupabaseStorage

        adapter = AsyncSupabaseAdapter(url="https://x.supabase.co", key="k")
        storage = get_storage(SnapshotSettings(storage="supabase", bucket="snaps"), adapter)
        assert isinstance(storage, SupabaseStorage)
        assert storage.bucket == "snaps"
