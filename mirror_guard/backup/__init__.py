"""
Pre-Sync Backups — Strategy resolution, snapshot paths, and bundle creation.
"""

from .bundle import create_bundle_backup, list_backups, maybe_backup, prune_backups
from .paths import BackupPaths, resolve_backup_paths, resolve_backup_root, sanitize_path_segment
from .strategy import (
    needs_detection,
    resolve_strategy,
    should_backup,
    should_block_sync,
)

__all__ = [
    "BackupPaths",
    "create_bundle_backup",
    "list_backups",
    "maybe_backup",
    "needs_detection",
    "prune_backups",
    "resolve_backup_paths",
    "resolve_backup_root",
    "resolve_strategy",
    "sanitize_path_segment",
    "should_backup",
    "should_block_sync",
]
