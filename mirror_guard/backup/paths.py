"""
Backup Paths — Where a repository's snapshots live on disk.

    <root>/<user_id>/<owner>/<repo_name>/<timestamp>.bundle

Owner and repo names come from a host's API and are untrusted: every
character outside [A-Za-z0-9._-] becomes "_" before they touch the path.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from ..config.environment import EngineEnvironment
from ..models.config import BackupSettings

DEFAULT_BACKUP_DIR = "data/repo-backups"
BUNDLE_SUFFIX = ".bundle"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


@dataclass(frozen=True)
class BackupPaths:
    backup_root: Path
    repo_backup_dir: Path


def sanitize_path_segment(value: str) -> str:
    """Make one path component safe. Never returns "", "." or ".."."""
    cleaned = _UNSAFE_CHARS.sub("_", value)
    if cleaned in ("", ".", ".."):
        return "_"
    return cleaned


def resolve_backup_root(
    settings: Optional[BackupSettings],
    env: Optional[EngineEnvironment] = None,
    cwd: Optional[Union[str, Path]] = None,
) -> Path:
    """Configured directory, then PRE_SYNC_BACKUP_DIR, then data/repo-backups."""
    env = env or EngineEnvironment()
    base = Path(cwd) if cwd is not None else Path(os.getcwd())

    configured = settings.backup_directory.strip() if settings and settings.backup_directory else ""
    raw = configured or env.backup_directory or DEFAULT_BACKUP_DIR

    root = Path(raw).expanduser()
    if not root.is_absolute():
        root = base / root
    return Path(os.path.normpath(root))


def resolve_backup_paths(
    settings: Optional[BackupSettings],
    user_id: str,
    owner: str,
    repo_name: str,
    env: Optional[EngineEnvironment] = None,
    cwd: Optional[Union[str, Path]] = None,
) -> BackupPaths:
    root = resolve_backup_root(settings, env, cwd)
    repo_dir = (
        root
        / sanitize_path_segment(user_id)
        / sanitize_path_segment(owner)
        / sanitize_path_segment(repo_name)
    )
    return BackupPaths(backup_root=root, repo_backup_dir=repo_dir)


def bundle_filename(now: Optional[datetime] = None) -> str:
    """Sortable UTC timestamp name, e.g. 20260218T120000123456Z.bundle"""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y%m%dT%H%M%S%fZ") + BUNDLE_SUFFIX
