"""
Repository Models — Mirrored repository rows and activity entries.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class RepositorySyncState(str, Enum):
    """Mirror status of a repository."""

    IMPORTED = "imported"
    MIRRORING = "mirroring"
    SYNCED = "synced"
    SYNCING = "syncing"
    # Waits for a human; excluded from the schedule until approved or dismissed.
    PENDING_APPROVAL = "pending-approval"
    ERROR = "error"


class Repository(BaseModel):
    """A source repository mirrored for one user."""

    id: str
    user_id: str
    name: str
    owner: str  # owner on the source host
    mirror_owner: Optional[str] = None  # owner on the mirror host, defaults to config
    status: RepositorySyncState = RepositorySyncState.IMPORTED
    error_message: Optional[str] = None
    last_mirrored: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class ActivityEntry(BaseModel):
    """One line of the activity log shown to the user."""

    ts_iso: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )
    event_id: str
    user_id: str
    repository_id: Optional[str] = None
    repository_name: Optional[str] = None
    message: str
    details: Optional[str] = None
    status: str
    extra: Dict[str, Any] = Field(default_factory=dict)
