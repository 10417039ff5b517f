"""
Detection Models — Branch snapshots, force-push findings, and backups.

A DetectionResult is created once per sync attempt, consumed immediately
by the backup orchestrator, and never persisted.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator


class ProtectionStrategy(str, Enum):
    """How a repository is protected against destructive upstream changes."""

    DISABLED = "disabled"
    ALWAYS = "always"
    ON_FORCE_PUSH = "on-force-push"
    BLOCK_ON_FORCE_PUSH = "block-on-force-push"


class DivergenceReason(str, Enum):
    """Why a mirrored branch would be lost or rewritten by the next sync."""

    DELETED = "deleted"
    DIVERGED = "diverged"
    # Reserved; nothing produces it today.
    NON_FAST_FORWARD = "non-fast-forward"


class BranchSnapshot(BaseModel):
    """One branch head as reported by a host."""

    name: str
    commit_id: str


class AffectedBranch(BaseModel):
    """A mirrored branch the next sync would delete or rewrite."""

    name: str
    reason: DivergenceReason
    mirror_commit_id: str
    source_commit_id: Optional[str] = None

    @model_validator(mode="after")
    def _source_commit_matches_reason(self) -> "AffectedBranch":
        deleted = self.reason == DivergenceReason.DELETED
        if deleted != (self.source_commit_id is None):
            raise ValueError(
                "source_commit_id must be None exactly when the branch was deleted"
            )
        return self

    def describe(self) -> str:
        if self.reason == DivergenceReason.DELETED:
            return f"{self.name}: deleted on source (mirror at {self.mirror_commit_id[:12]})"
        return (
            f"{self.name}: {self.reason.value} "
            f"({self.mirror_commit_id[:12]} -> {self.source_commit_id[:12]})"
        )


class DetectionResult(BaseModel):
    """Outcome of comparing the mirror's branches against the source."""

    detected: bool = False
    affected_branches: List[AffectedBranch] = Field(default_factory=list)
    skipped: bool = False
    skip_reason: Optional[str] = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "DetectionResult":
        if self.skipped and (self.detected or self.affected_branches):
            raise ValueError("a skipped detection cannot report findings")
        if self.detected != bool(self.affected_branches):
            raise ValueError("detected must be true exactly when branches are affected")
        return self

    @classmethod
    def clean(cls) -> "DetectionResult":
        """No force-push found."""
        return cls()

    @classmethod
    def skipped_because(cls, reason: str) -> "DetectionResult":
        """Detection could not run; the sync proceeds unguarded."""
        return cls(skipped=True, skip_reason=reason)

    @classmethod
    def from_findings(cls, branches: List[AffectedBranch]) -> "DetectionResult":
        return cls(detected=bool(branches), affected_branches=list(branches))

    def summary(self) -> str:
        if self.skipped:
            return f"Detection skipped: {self.skip_reason}"
        if not self.detected:
            return "No force-push detected"
        names = ", ".join(b.name for b in self.affected_branches)
        return f"Force-push detected on {len(self.affected_branches)} branch(es): {names}"


class BackupDescriptor(BaseModel):
    """A bundle snapshot written to disk."""

    bundle_path: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class BackupOutcome(BaseModel):
    """What the backup orchestrator did for one sync attempt."""

    status: Literal["created", "skipped", "failed"]
    descriptor: Optional[BackupDescriptor] = None
    error: Optional[str] = None

    @classmethod
    def created(cls, descriptor: BackupDescriptor) -> "BackupOutcome":
        return cls(status="created", descriptor=descriptor)

    @classmethod
    def skipped(cls) -> "BackupOutcome":
        return cls(status="skipped")

    @classmethod
    def failed(cls, error: str) -> "BackupOutcome":
        return cls(status="failed", error=error)
