"""
Activity Log — Append-only NDJSON record of what happened to each repository.

Each line is one JSON object (newline-delimited JSON).
Entries are never edited, only appended. Skipped detections, absorbed
backup failures, blocks, approvals and dismissals all land here.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import List, Optional, Protocol
from uuid import uuid4

from ..models.repository import ActivityEntry

logger = logging.getLogger(__name__)


class ActivitySink(Protocol):
    def record(
        self,
        user_id: str,
        repository_id: Optional[str],
        repository_name: Optional[str],
        message: str,
        details: Optional[str] = None,
        status: str = "info",
        **extra,
    ) -> str: ...


class ActivityLog:
    """
    NDJSON activity writer.

    Usage:
        log = ActivityLog(Path("audit/activity.ndjson"))
        log.record("user-1", "repo-1", "app", "Force-push detected", status="pending-approval")
    """

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()
        self._ensure_exists()

    def _ensure_exists(self) -> None:
        """Ensure the log file and directory exist."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.touch()

    def record(
        self,
        user_id: str,
        repository_id: Optional[str],
        repository_name: Optional[str],
        message: str,
        details: Optional[str] = None,
        status: str = "info",
        **extra,
    ) -> str:
        """
        Append an entry. Fire-and-forget: write failures are logged, not raised.

        Returns:
            Generated event_id
        """
        entry = ActivityEntry(
            event_id=f"E-{uuid4().hex[:8].upper()}",
            user_id=user_id,
            repository_id=repository_id,
            repository_name=repository_name,
            message=message,
            details=details,
            status=status,
            extra=extra,
        )
        try:
            with self._lock, self.path.open("a", encoding="utf-8") as f:
                f.write(entry.model_dump_json(exclude_defaults=False) + "\n")
        except OSError as e:
            logger.error(f"Failed to write activity entry: {e}")
        return entry.event_id

    def read(
        self,
        user_id: Optional[str] = None,
        repository_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ActivityEntry]:
        """Entries oldest first, optionally filtered; limit keeps the newest."""
        entries: List[ActivityEntry] = []
        if not self.path.exists():
            return entries
        with self.path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = ActivityEntry(**json.loads(line))
                except (ValueError, TypeError) as e:
                    logger.warning(f"Skipping malformed activity line: {e}")
                    continue
                if user_id and entry.user_id != user_id:
                    continue
                if repository_id and entry.repository_id != repository_id:
                    continue
                entries.append(entry)
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries
