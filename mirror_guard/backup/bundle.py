"""
Bundle Backups — Snapshot a mirror's full history before a sync overwrites it.

Each snapshot is a self-contained `git bundle --all` of the mirror, so a
restore never depends on any other snapshot. Old bundles are pruned to the
configured retention count after every successful snapshot.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from ..config.environment import EngineEnvironment
from ..errors import BackupIOError
from ..models.config import UserConfig
from ..models.detection import BackupDescriptor, BackupOutcome, DetectionResult
from .paths import BUNDLE_SUFFIX, bundle_filename, resolve_backup_paths
from .strategy import blocks_on_backup_failure, resolve_strategy, should_backup

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_COUNT = 20
CLONE_TIMEOUT = 600
BUNDLE_TIMEOUT = 600


def _git(args: List[str], cwd: Optional[Path] = None, timeout: int = 60) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(
            ["git", *args],
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise BackupIOError(f"git {args[0]} failed: {e}") from e


def _auth_args(token: Optional[str]) -> List[str]:
    if not token:
        return []
    return ["-c", f"http.extraHeader=Authorization: token {token}"]


def create_bundle_backup(
    clone_url: str,
    repo_backup_dir: Path,
    token: Optional[str] = None,
    now: Optional[datetime] = None,
) -> BackupDescriptor:
    """
    Clone the mirror bare and write a bundle of every ref.

    Raises BackupIOError on any git or filesystem failure. A partial
    bundle is removed before raising.
    """
    created_at = now or datetime.now(timezone.utc)
    try:
        repo_backup_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise BackupIOError(f"Cannot create backup directory {repo_backup_dir}: {e}") from e

    bundle_path = repo_backup_dir / bundle_filename(created_at)
    try:
        workdir = Path(tempfile.mkdtemp(prefix="mirror-guard-"))
    except OSError as e:
        raise BackupIOError(f"Cannot create temporary clone directory: {e}") from e
    try:
        clone_dir = workdir / "repo.git"
        result = _git(
            [*_auth_args(token), "clone", "--mirror", "--quiet", clone_url, str(clone_dir)],
            timeout=CLONE_TIMEOUT,
        )
        if result.returncode != 0:
            raise BackupIOError(
                f"git clone --mirror failed: {result.stderr.strip() or 'unknown error'}"
            )

        result = _git(
            ["bundle", "create", str(bundle_path), "--all"],
            cwd=clone_dir,
            timeout=BUNDLE_TIMEOUT,
        )
        if result.returncode != 0:
            bundle_path.unlink(missing_ok=True)
            raise BackupIOError(
                f"git bundle create failed: {result.stderr.strip() or 'unknown error'}"
            )
    finally:
        shutil.rmtree(workdir, ignore_errors=True)

    logger.info(f"[backup] Snapshot written: {bundle_path}")
    return BackupDescriptor(bundle_path=str(bundle_path), created_at=created_at)


def list_backups(repo_backup_dir: Path) -> List[Path]:
    """
    Bundles for one repository, oldest first.

    Ordered by the UTC timestamp in the filename; mtime is ignored.
    """
    if not repo_backup_dir.is_dir():
        return []
    bundles = [p for p in repo_backup_dir.iterdir() if p.is_file() and p.name.endswith(BUNDLE_SUFFIX)]
    return sorted(bundles, key=lambda p: p.name)


def prune_backups(repo_backup_dir: Path, retention_count: Optional[int] = None) -> List[Path]:
    """Delete the oldest bundles beyond retention_count. Returns what was removed."""
    keep = max(1, retention_count if retention_count is not None else DEFAULT_RETENTION_COUNT)
    bundles = list_backups(repo_backup_dir)
    excess = bundles[: max(0, len(bundles) - keep)]

    removed = []
    for path in excess:
        try:
            path.unlink()
            removed.append(path)
        except OSError as e:
            logger.warning(f"[backup] Could not prune {path}: {e}")

    if removed:
        logger.info(f"[backup] Pruned {len(removed)} old snapshot(s) in {repo_backup_dir}")
    return removed


def maybe_backup(
    config: UserConfig,
    owner: str,
    repo_name: str,
    clone_url: str,
    detection: Optional[DetectionResult] = None,
    force: bool = False,
    env: Optional[EngineEnvironment] = None,
) -> BackupOutcome:
    """
    Snapshot the mirror when the strategy (or force) calls for it.

    force bypasses the strategy gate; the approval path uses it.
    Raises BackupIOError only when the user asked to block the sync on
    backup failure and the strategy honours that flag.
    """
    env = env or EngineEnvironment()
    settings = config.backup
    strategy = resolve_strategy(settings, env)
    detected = bool(detection and detection.detected)

    if not force and not should_backup(strategy, detected):
        return BackupOutcome.skipped()

    paths = resolve_backup_paths(settings, config.user_id, owner, repo_name, env)
    try:
        descriptor = create_bundle_backup(clone_url, paths.repo_backup_dir, token=config.mirror.token)
    except BackupIOError as e:
        if not force and blocks_on_backup_failure(strategy, settings):
            logger.error(f"[backup] Snapshot failed for {owner}/{repo_name}, blocking sync: {e}")
            raise
        logger.warning(f"[backup] Snapshot failed for {owner}/{repo_name}, continuing: {e}")
        return BackupOutcome.failed(str(e))

    prune_backups(paths.repo_backup_dir, settings.backup_retention_count)
    return BackupOutcome.created(descriptor)
