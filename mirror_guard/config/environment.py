"""
Engine Environment — Process-level overrides, read once into a snapshot.

The strategy resolver and path resolution take an EngineEnvironment
argument instead of reading os.environ, so tests can build one directly.

## Environment Variables

- PRE_SYNC_BACKUP_STRATEGY: disabled, always, on-force-push, block-on-force-push
- PRE_SYNC_BACKUP_ENABLED: legacy switch; false disables backups
- PRE_SYNC_BACKUP_DIR: backup root when a user has none configured
- FORCE_PUSH_DETECTION_TIMEOUT: seconds before detection is skipped (default: 60)
- FORCE_PUSH_ANCESTRY_WORKERS: concurrent compare calls (default: 4)
- MIRROR_GUARD_STATE_DIR: directory for the JSON stores (default: state)
- MIRROR_GUARD_CONFIG_FILE: per-user YAML config (default: config/users.yaml)
- MIRROR_GUARD_AUDIT_FILE: activity log (default: audit/activity.ndjson)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_DETECTION_TIMEOUT = 60.0
DEFAULT_ANCESTRY_WORKERS = 4

_FALSE_VALUES = ("false", "0", "no", "off")
_TRUE_VALUES = ("true", "1", "yes", "on")


def parse_bool(value: Optional[str]) -> Optional[bool]:
    """Parse an env flag; None when unset or unrecognised."""
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return None


@dataclass(frozen=True)
class EngineEnvironment:
    """Immutable snapshot of the engine's environment overrides."""

    backup_strategy: Optional[str] = None
    backup_enabled: Optional[bool] = None
    backup_directory: Optional[str] = None
    detection_timeout: float = DEFAULT_DETECTION_TIMEOUT
    ancestry_workers: int = DEFAULT_ANCESTRY_WORKERS
    state_dir: str = "state"
    config_file: str = "config/users.yaml"
    audit_file: str = "audit/activity.ndjson"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineEnvironment":
        """Build a snapshot from environment variables."""
        env = os.environ if environ is None else environ

        timeout = DEFAULT_DETECTION_TIMEOUT
        raw_timeout = env.get("FORCE_PUSH_DETECTION_TIMEOUT")
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                logger.warning(f"Ignoring invalid FORCE_PUSH_DETECTION_TIMEOUT={raw_timeout!r}")

        workers = DEFAULT_ANCESTRY_WORKERS
        raw_workers = env.get("FORCE_PUSH_ANCESTRY_WORKERS")
        if raw_workers:
            try:
                workers = max(1, int(raw_workers))
            except ValueError:
                logger.warning(f"Ignoring invalid FORCE_PUSH_ANCESTRY_WORKERS={raw_workers!r}")

        return cls(
            backup_strategy=env.get("PRE_SYNC_BACKUP_STRATEGY") or None,
            backup_enabled=parse_bool(env.get("PRE_SYNC_BACKUP_ENABLED")),
            backup_directory=env.get("PRE_SYNC_BACKUP_DIR") or None,
            detection_timeout=timeout,
            ancestry_workers=workers,
            state_dir=env.get("MIRROR_GUARD_STATE_DIR", "state"),
            config_file=env.get("MIRROR_GUARD_CONFIG_FILE", "config/users.yaml"),
            audit_file=env.get("MIRROR_GUARD_AUDIT_FILE", "audit/activity.ndjson"),
        )
