"""
User Config Models — Per-user host credentials and backup settings.

Loaded by the configuration store; read-only to the engine.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BackupSettings(BaseModel):
    """Pre-sync backup settings. Every field is optional."""

    model_config = ConfigDict(populate_by_name=True)

    # Kept as a plain string: unknown values are ignored by the resolver
    backup_strategy: Optional[str] = Field(default=None, alias="backupStrategy")
    # Legacy switch, predates backup_strategy
    backup_before_sync: Optional[bool] = Field(default=None, alias="backupBeforeSync")
    backup_directory: Optional[str] = Field(default=None, alias="backupDirectory")
    backup_retention_count: Optional[int] = Field(default=None, alias="backupRetentionCount")
    block_sync_on_backup_failure: Optional[bool] = Field(
        default=None, alias="blockSyncOnBackupFailure"
    )


class SourceHostSettings(BaseModel):
    """GitHub access."""

    token: Optional[str] = None
    api_url: str = "https://api.github.com"


class MirrorHostSettings(BaseModel):
    """Gitea access."""

    url: str
    token: str
    owner: Optional[str] = None

    @property
    def base_url(self) -> str:
        return self.url.rstrip("/")


class UserConfig(BaseModel):
    """Everything the engine needs to know about one user."""

    user_id: str
    source: SourceHostSettings = Field(default_factory=SourceHostSettings)
    mirror: MirrorHostSettings
    backup: BackupSettings = Field(default_factory=BackupSettings)
