"""Pydantic models for database and snapshot configuration."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from db_snapshot.backup.reader import MAX_PAGE_SIZE


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from db.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    provider: Literal["postgres", "supabase"] = "postgres"
    service_key: str | None = None  # Supabase service-role key


class SnapshotSettings(BaseModel):
    """``[snapshot]`` section of db.toml."""

    storage: Literal["local", "supabase"] = "local"
    storage_path: str = "backups"  # root directory for local storage
    bucket: str = "backups"
    page_size: int = Field(default=MAX_PAGE_SIZE, ge=1)
    batch_size: int = Field(default=50, ge=1)
    retention_keep: int = Field(default=7, ge=0)
    require_owner: bool = False  # fail unattended runs without an admin owner

    @field_validator("page_size")
    @classmethod
    def clamp_page_size(cls, value: int) -> int:
        """The hosted store caps responses at MAX_PAGE_SIZE rows."""
        return min(value, MAX_PAGE_SIZE)


class DatabaseConfig(BaseModel):
    """Complete configuration from db.toml."""

    profiles: dict[str, DatabaseProfile]
    snapshot: SnapshotSettings = Field(default_factory=SnapshotSettings)
