"""
Stores — File-backed configuration and repository stores.

- Configuration: config/users.yaml, a mapping of user id → UserConfig.
- Repositories: state/repositories.json, rows keyed by repository id.

Writes go through a temp file and an atomic rename.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..errors import ConfigurationError
from ..models.config import UserConfig
from ..models.repository import Repository, RepositorySyncState

logger = logging.getLogger(__name__)


class ConfigStore(Protocol):
    def get(self, user_id: str) -> Optional[UserConfig]: ...


class RepositoryStore(Protocol):
    def get(self, repository_id: str) -> Optional[Repository]: ...

    def list_for_user(self, user_id: str) -> List[Repository]: ...

    def find_pending(self, user_id: str, repository_ids: Iterable[str]) -> List[Repository]: ...

    def update_status(
        self,
        repository_id: str,
        status: RepositorySyncState,
        error_message: Optional[str] = None,
        mirrored: bool = False,
    ) -> Repository: ...


class YamlConfigStore:
    """
    Per-user configuration read from a YAML file.

        user-1:
          mirror: {url: https://gitea.local, token: xxx, owner: backup}
          source: {token: ghp_xxx}
          backup: {backupStrategy: block-on-force-push, backupRetentionCount: 10}
    """

    def __init__(self, path: Path):
        self.path = path

    def _load(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"{self.path}: expected a mapping of user id to config")
        return data

    def get(self, user_id: str) -> Optional[UserConfig]:
        raw = self._load().get(user_id)
        if raw is None:
            return None
        try:
            return UserConfig(user_id=user_id, **raw)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid configuration for {user_id}: {e}") from e

    def user_ids(self) -> List[str]:
        return list(self._load().keys())


class JsonRepositoryStore:
    """Repository rows in one JSON file."""

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Repository]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return {row["id"]: Repository(**row) for row in data.get("repositories", [])}

    def _save(self, rows: Dict[str, Repository]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".tmp")
        payload = {"repositories": [r.model_dump(mode="json") for r in rows.values()]}
        with temp_path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=4)
            f.write("\n")
        temp_path.replace(self.path)

    def get(self, repository_id: str) -> Optional[Repository]:
        return self._load().get(repository_id)

    def list_for_user(self, user_id: str) -> List[Repository]:
        return [r for r in self._load().values() if r.user_id == user_id]

    def find_pending(self, user_id: str, repository_ids: Iterable[str]) -> List[Repository]:
        wanted = set(repository_ids)
        return [
            r
            for r in self._load().values()
            if r.id in wanted
            and r.user_id == user_id
            and r.status == RepositorySyncState.PENDING_APPROVAL
        ]

    def add(self, repository: Repository) -> Repository:
        with self._lock:
            rows = self._load()
            rows[repository.id] = repository
            self._save(rows)
        return repository

    def update_status(
        self,
        repository_id: str,
        status: RepositorySyncState,
        error_message: Optional[str] = None,
        mirrored: bool = False,
    ) -> Repository:
        """Set a row's status; error_message is replaced (None clears it)."""
        with self._lock:
            rows = self._load()
            if repository_id not in rows:
                raise KeyError(repository_id)
            now = datetime.now(timezone.utc)
            updates = {"status": status, "error_message": error_message, "updated_at": now}
            if mirrored:
                updates["last_mirrored"] = now
            row = rows[repository_id].model_copy(update=updates)
            rows[repository_id] = row
            self._save(rows)
        logger.debug(f"Repository {repository_id} → {status.value}")
        return row
