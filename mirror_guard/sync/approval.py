"""
Approval Workflow — Human decision on a sync blocked by a force-push.

    pending-approval --approve--> syncing --(sync)--> synced | error
    pending-approval --dismiss--> synced

Approve always attempts a safety snapshot first (best effort), then runs
the sync with detection skipped. Each repository is handled on its own:
one failure never aborts the rest of the batch.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel

from ..backup.bundle import maybe_backup
from ..errors import NoPendingRepositories, ValidationError
from ..logging_config import for_repository
from ..models.repository import Repository, RepositorySyncState
from .pipeline import SyncPipeline, mirror_owner_for

logger = logging.getLogger(__name__)

ACTIONS = ("approve", "dismiss")


class ApprovalResult(BaseModel):
    action: str
    acted_on: int
    message: str
    repositories: List[Repository]


def validate_request(repository_ids: Any, action: Any) -> List[str]:
    """Check an approve-sync request; returns the de-duplicated ids."""
    if not isinstance(repository_ids, list) or not repository_ids:
        raise ValidationError("repositoryIds are required.", field="repositoryIds")
    if not all(isinstance(i, str) and i for i in repository_ids):
        raise ValidationError("repositoryIds must be non-empty strings.", field="repositoryIds")
    if action not in ACTIONS:
        raise ValidationError("action must be 'approve' or 'dismiss'.", field="action")
    return list(dict.fromkeys(repository_ids))


class ApprovalService:
    """Applies approve / dismiss to repositories waiting for approval."""

    def __init__(self, pipeline: SyncPipeline):
        self.pipeline = pipeline
        self.repo_store = pipeline.repo_store
        self.activity = pipeline.activity
        self._threads: List[threading.Thread] = []

    def apply(
        self,
        user_id: str,
        repository_ids: Any,
        action: Any,
        blocking: bool = False,
    ) -> ApprovalResult:
        """
        Validate and apply an action.

        Raises ValidationError for a malformed request or missing config,
        NoPendingRepositories when none of the ids is waiting.
        By default approved syncs run on a background thread; set
        blocking=True for synchronous operation (e.g. tests, CLI).
        """
        ids = validate_request(repository_ids, action)

        if self.pipeline.config_store.get(user_id) is None:
            raise ValidationError("No configuration found.")

        repos = self.repo_store.find_pending(user_id, ids)
        if not repos:
            raise NoPendingRepositories(
                "No pending-approval repositories found for the given IDs."
            )

        if action == "dismiss":
            return self.dismiss(user_id, repos)
        return self.approve(user_id, repos, blocking=blocking)

    # ─── Dismiss ────────────────────────────────────────────

    def dismiss(self, user_id: str, repos: Sequence[Repository]) -> ApprovalResult:
        updated = []
        for repo in repos:
            try:
                row = self.repo_store.update_status(repo.id, RepositorySyncState.SYNCED, None)
            except Exception as e:
                logger.error(f"[approve-sync] Failed to dismiss {repo.name}: {e}")
                continue
            self.activity.record(
                user_id,
                repo.id,
                repo.name,
                f"Force-push alert dismissed for {repo.name}",
                "User dismissed the force-push alert. "
                "Repository will resume normal sync schedule.",
                RepositorySyncState.SYNCED.value,
            )
            updated.append(row)

        return ApprovalResult(
            action="dismiss",
            acted_on=len(updated),
            message=f"Dismissed {len(updated)} repository alert(s).",
            repositories=updated,
        )

    # ─── Approve ────────────────────────────────────────────

    def approve(
        self, user_id: str, repos: Sequence[Repository], blocking: bool = False
    ) -> ApprovalResult:
        started = []
        for repo in repos:
            try:
                row = self.repo_store.update_status(repo.id, RepositorySyncState.SYNCING, None)
            except Exception as e:
                logger.error(f"[approve-sync] Failed to mark {repo.name} as syncing: {e}")
                continue
            self.activity.record(
                user_id,
                repo.id,
                repo.name,
                f"Sync approved for {repo.name}",
                "User approved the force-push. A safety snapshot is taken before syncing.",
                RepositorySyncState.SYNCING.value,
            )
            started.append(row)

        def _do_approve():
            for repo in started:
                self._approve_one(user_id, repo)

        if blocking:
            _do_approve()
        else:
            thread = threading.Thread(target=_do_approve, name="approve-sync", daemon=True)
            self._threads.append(thread)
            thread.start()

        return ApprovalResult(
            action="approve",
            acted_on=len(started),
            message=f"Approved sync for {len(started)} repository(ies). Backup + sync started.",
            repositories=started,
        )

    def wait(self, timeout: Optional[float] = None) -> None:
        """Join background approval threads."""
        for thread in list(self._threads):
            thread.join(timeout)

    def _approve_one(self, user_id: str, repo: Repository) -> None:
        log = for_repository(logger, repo)
        try:
            config = self.pipeline.load_config(user_id)
            mirror = self.pipeline.mirror_factory(config)
            owner = mirror_owner_for(repo, config)

            try:
                backup = maybe_backup(
                    config,
                    owner,
                    repo.name,
                    mirror.clone_url(owner, repo.name),
                    force=True,
                    env=self.pipeline.env,
                )
            except Exception as e:
                log.warning(
                    f"[approve-sync] Backup failed for {repo.name}, proceeding with sync: {e}"
                )
            else:
                if backup.status == "created":
                    self.activity.record(
                        user_id,
                        repo.id,
                        repo.name,
                        f"Safety snapshot created for {repo.name}",
                        f"Pre-approval snapshot at {backup.descriptor.bundle_path}.",
                        RepositorySyncState.SYNCING.value,
                    )
                else:
                    log.warning(
                        f"[approve-sync] Backup failed for {repo.name}, "
                        f"proceeding with sync: {backup.error}"
                    )

            outcome = self.pipeline.run(repo, approved=True)
            log.info(
                f"[approve-sync] Sync finished for approved repository {repo.name}: "
                f"{outcome.status.value}"
            )
        except Exception as e:
            log.error(f"[approve-sync] Failed to sync approved repository {repo.name}: {e}")
            try:
                self.repo_store.update_status(
                    repo.id, RepositorySyncState.ERROR, f"Approved sync failed: {e}"
                )
            except Exception as store_error:
                log.error(f"[approve-sync] Could not record failure for {repo.name}: {store_error}")
            self.activity.record(
                user_id,
                repo.id,
                repo.name,
                f"Approved sync failed for {repo.name}",
                str(e),
                RepositorySyncState.ERROR.value,
            )
