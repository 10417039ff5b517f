"""
Backup Strategy — Which protection applies to a repository, and what it implies.

Resolution order (first match wins):
1. backup_strategy in the user's settings
2. legacy backup_before_sync: true → always, false → disabled
3. PRE_SYNC_BACKUP_STRATEGY
4. PRE_SYNC_BACKUP_ENABLED=false → disabled
5. on-force-push

Every function here is pure; the environment arrives as a snapshot.
"""

from __future__ import annotations

from typing import Optional

from ..config.environment import EngineEnvironment
from ..models.config import BackupSettings
from ..models.detection import ProtectionStrategy

DEFAULT_STRATEGY = ProtectionStrategy.ON_FORCE_PUSH

_DETECTION_STRATEGIES = (
    ProtectionStrategy.ON_FORCE_PUSH,
    ProtectionStrategy.BLOCK_ON_FORCE_PUSH,
)


def parse_strategy(value: Optional[str]) -> Optional[ProtectionStrategy]:
    """Return the strategy named by value, or None if it names none."""
    if not value:
        return None
    try:
        return ProtectionStrategy(value.strip().lower())
    except ValueError:
        return None


def resolve_strategy(
    settings: Optional[BackupSettings],
    env: Optional[EngineEnvironment] = None,
) -> ProtectionStrategy:
    """Compute the effective strategy. Tolerates missing settings."""
    env = env or EngineEnvironment()

    if settings is not None:
        explicit = parse_strategy(settings.backup_strategy)
        if explicit is not None:
            return explicit
        if settings.backup_before_sync is True:
            return ProtectionStrategy.ALWAYS
        if settings.backup_before_sync is False:
            return ProtectionStrategy.DISABLED

    from_env = parse_strategy(env.backup_strategy)
    if from_env is not None:
        return from_env
    if env.backup_enabled is False:
        return ProtectionStrategy.DISABLED

    return DEFAULT_STRATEGY


def should_backup(strategy: ProtectionStrategy, detected: bool) -> bool:
    if strategy == ProtectionStrategy.DISABLED:
        return False
    if strategy == ProtectionStrategy.ALWAYS:
        return True
    return detected


def should_block_sync(strategy: ProtectionStrategy, detected: bool) -> bool:
    return strategy == ProtectionStrategy.BLOCK_ON_FORCE_PUSH and detected


def needs_detection(strategy: ProtectionStrategy) -> bool:
    """Only the force-push strategies depend on a detection result."""
    return strategy in _DETECTION_STRATEGIES


def blocks_on_backup_failure(
    strategy: ProtectionStrategy, settings: Optional[BackupSettings]
) -> bool:
    """The block-on-failure flag only applies to always and on-force-push."""
    if settings is None or not settings.block_sync_on_backup_failure:
        return False
    return strategy in (ProtectionStrategy.ALWAYS, ProtectionStrategy.ON_FORCE_PUSH)
