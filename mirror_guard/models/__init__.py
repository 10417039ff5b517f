"""
Data models — Pydantic schemas shared across the engine.
"""

from .config import BackupSettings, MirrorHostSettings, SourceHostSettings, UserConfig
from .detection import (
    AffectedBranch,
    BackupDescriptor,
    BackupOutcome,
    BranchSnapshot,
    DetectionResult,
    DivergenceReason,
    ProtectionStrategy,
)
from .repository import ActivityEntry, Repository, RepositorySyncState

__all__ = [
    "ActivityEntry",
    "AffectedBranch",
    "BackupDescriptor",
    "BackupOutcome",
    "BackupSettings",
    "BranchSnapshot",
    "DetectionResult",
    "DivergenceReason",
    "MirrorHostSettings",
    "ProtectionStrategy",
    "Repository",
    "RepositorySyncState",
    "SourceHostSettings",
    "UserConfig",
]
