"""
Sync Pipeline — The guarded path every mirror sync goes through.

    resolve strategy
      → detect force-push (only for strategies that use it)
      → block (pending-approval) or snapshot
      → trigger the mirror sync on the mirror host

## Usage

    pipeline = SyncPipeline(config_store, repo_store, activity)
    outcome = pipeline.run(repository)
    if outcome.blocked:
        ...  # waits for approve / dismiss
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from pydantic import BaseModel

from ..backup.bundle import maybe_backup
from ..backup.strategy import needs_detection, resolve_strategy, should_block_sync
from ..config.environment import EngineEnvironment
from ..detection.detector import detect_force_push
from ..errors import AwaitingApproval, BackupIOError, ConfigurationError, HostError
from ..hosts.base import MirrorHost, SourceHost
from ..hosts.gitea import GiteaClient
from ..hosts.github import GitHubClient
from ..logging_config import for_repository
from ..models.config import UserConfig
from ..models.detection import BackupOutcome, DetectionResult, ProtectionStrategy
from ..models.repository import Repository, RepositorySyncState
from ..persistence.activity import ActivitySink
from ..persistence.stores import ConfigStore, RepositoryStore

logger = logging.getLogger(__name__)

MirrorFactory = Callable[[UserConfig], MirrorHost]
SourceFactory = Callable[[UserConfig], SourceHost]


def default_mirror_factory(config: UserConfig) -> MirrorHost:
    return GiteaClient(config.mirror.base_url, config.mirror.token)


def default_source_factory(config: UserConfig) -> SourceHost:
    return GitHubClient(config.source.token, api_url=config.source.api_url)


class SyncOutcome(BaseModel):
    """Result of one guarded sync attempt."""

    repository_id: str
    status: RepositorySyncState
    strategy: ProtectionStrategy
    blocked: bool = False
    detection: Optional[DetectionResult] = None
    backup: Optional[BackupOutcome] = None
    error: Optional[str] = None


def schedulable(repositories: List[Repository]) -> List[Repository]:
    """Repositories the scheduler may sync; pending approvals wait for a human."""
    return [r for r in repositories if r.status != RepositorySyncState.PENDING_APPROVAL]


def mirror_owner_for(repository: Repository, config: UserConfig) -> str:
    return repository.mirror_owner or config.mirror.owner or repository.owner


def format_affected(detection: DetectionResult) -> str:
    return "\n".join(f"- {b.describe()}" for b in detection.affected_branches)


class SyncPipeline:
    """Runs the force-push guard around a mirror sync."""

    def __init__(
        self,
        config_store: ConfigStore,
        repo_store: RepositoryStore,
        activity: ActivitySink,
        env: Optional[EngineEnvironment] = None,
        mirror_factory: MirrorFactory = default_mirror_factory,
        source_factory: SourceFactory = default_source_factory,
    ):
        self.config_store = config_store
        self.repo_store = repo_store
        self.activity = activity
        self.env = env or EngineEnvironment()
        self.mirror_factory = mirror_factory
        self.source_factory = source_factory

    def load_config(self, user_id: str) -> UserConfig:
        config = self.config_store.get(user_id)
        if config is None:
            raise ConfigurationError(f"No configuration found for user {user_id}")
        return config

    def run(
        self,
        repository: Repository,
        skip_detection: bool = False,
        approved: bool = False,
    ) -> SyncOutcome:
        """
        Sync one repository behind the guard.

        approved is set by the approval path: the human already accepted
        the rewrite and a safety snapshot was attempted, so detection and
        the pre-sync snapshot are both skipped.

        Raises AwaitingApproval for a pending-approval row unless approved.
        """
        current = self.repo_store.get(repository.id) or repository
        if current.status == RepositorySyncState.PENDING_APPROVAL and not approved:
            raise AwaitingApproval(
                f"{repository.full_name} is awaiting approval; approve or dismiss it first"
            )
        skip_detection = skip_detection or approved

        config = self.load_config(repository.user_id)
        strategy = resolve_strategy(config.backup, self.env)
        mirror = self.mirror_factory(config)
        mirror_owner = mirror_owner_for(repository, config)

        self.repo_store.update_status(repository.id, RepositorySyncState.SYNCING)
        for_repository(logger, repository).info(
            f"[sync] {repository.full_name}: strategy={strategy.value}"
            + (" (detection skipped)" if skip_detection else "")
        )

        detection: Optional[DetectionResult] = None
        if needs_detection(strategy) and not skip_detection:
            detection = detect_force_push(
                mirror,
                self.source_factory(config),
                mirror_owner=mirror_owner,
                mirror_repo=repository.name,
                source_owner=repository.owner,
                source_repo=repository.name,
                timeout=self.env.detection_timeout,
                max_workers=self.env.ancestry_workers,
            )
            if detection.skipped:
                self._record(
                    repository,
                    f"Force-push detection skipped for {repository.name}",
                    f"{detection.skip_reason}. Sync proceeds without force-push protection.",
                    RepositorySyncState.SYNCING,
                )

        detected = bool(detection and detection.detected)

        if should_block_sync(strategy, detected):
            return self._block(repository, strategy, detection)

        try:
            if approved:
                backup = BackupOutcome.skipped()
            else:
                backup = maybe_backup(
                    config,
                    mirror_owner,
                    repository.name,
                    mirror.clone_url(mirror_owner, repository.name),
                    detection,
                    env=self.env,
                )
        except BackupIOError as e:
            message = f"Pre-sync snapshot failed: {e}"
            self.repo_store.update_status(repository.id, RepositorySyncState.ERROR, message)
            self._record(
                repository,
                f"Sync blocked for {repository.name}: snapshot failed",
                f"{e}. Sync was not performed because blocking on snapshot failure is enabled.",
                RepositorySyncState.ERROR,
            )
            return SyncOutcome(
                repository_id=repository.id,
                status=RepositorySyncState.ERROR,
                strategy=strategy,
                detection=detection,
                backup=BackupOutcome.failed(str(e)),
                error=message,
            )

        self._record_backup(repository, detection, backup)
        return self._push(repository, mirror, mirror_owner, strategy, detection, backup)

    def _block(
        self,
        repository: Repository,
        strategy: ProtectionStrategy,
        detection: DetectionResult,
    ) -> SyncOutcome:
        summary = detection.summary()
        self.repo_store.update_status(
            repository.id, RepositorySyncState.PENDING_APPROVAL, summary
        )
        self._record(
            repository,
            f"Sync blocked for {repository.name}: force-push detected",
            f"{summary}. Approve or dismiss to continue.\n{format_affected(detection)}",
            RepositorySyncState.PENDING_APPROVAL,
            affected_branches=[b.model_dump(mode="json") for b in detection.affected_branches],
        )
        for_repository(logger, repository).warning(
            f"[sync] {repository.full_name}: blocked pending approval"
        )
        return SyncOutcome(
            repository_id=repository.id,
            status=RepositorySyncState.PENDING_APPROVAL,
            strategy=strategy,
            blocked=True,
            detection=detection,
        )

    def _push(
        self,
        repository: Repository,
        mirror: MirrorHost,
        mirror_owner: str,
        strategy: ProtectionStrategy,
        detection: Optional[DetectionResult],
        backup: BackupOutcome,
    ) -> SyncOutcome:
        try:
            mirror.trigger_mirror_sync(mirror_owner, repository.name)
        except HostError as e:
            message = f"Mirror sync failed: {e}"
            self.repo_store.update_status(repository.id, RepositorySyncState.ERROR, message)
            self._record(
                repository, f"Sync failed for {repository.name}", str(e), RepositorySyncState.ERROR
            )
            for_repository(logger, repository).error(f"[sync] {repository.full_name}: {message}")
            return SyncOutcome(
                repository_id=repository.id,
                status=RepositorySyncState.ERROR,
                strategy=strategy,
                detection=detection,
                backup=backup,
                error=message,
            )

        self.repo_store.update_status(repository.id, RepositorySyncState.SYNCED, mirrored=True)
        self._record(
            repository,
            f"Sync completed for {repository.name}",
            None,
            RepositorySyncState.SYNCED,
        )
        return SyncOutcome(
            repository_id=repository.id,
            status=RepositorySyncState.SYNCED,
            strategy=strategy,
            detection=detection,
            backup=backup,
        )

    def _record_backup(
        self,
        repository: Repository,
        detection: Optional[DetectionResult],
        backup: BackupOutcome,
    ) -> None:
        if backup.status == "created":
            details = f"Snapshot at {backup.descriptor.bundle_path}."
            if detection and detection.detected:
                details += f" {detection.summary()}."
            self._record(
                repository,
                f"Pre-sync snapshot created for {repository.name}",
                details,
                RepositorySyncState.SYNCING,
            )
        elif backup.status == "failed":
            self._record(
                repository,
                f"Pre-sync snapshot failed for {repository.name}",
                f"{backup.error}. Sync continues without a snapshot.",
                RepositorySyncState.SYNCING,
            )

    def _record(
        self,
        repository: Repository,
        message: str,
        details: Optional[str],
        status: RepositorySyncState,
        **extra,
    ) -> None:
        self.activity.record(
            repository.user_id,
            repository.id,
            repository.name,
            message,
            details,
            status.value,
            **extra,
        )
