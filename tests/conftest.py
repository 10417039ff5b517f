"""
Shared fixtures — in-memory hosts, temp stores, and a wired pipeline.

Nothing here touches the network: host clients are replaced by fakes
that serve fixed branch snapshots and compare answers.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest
import yaml

from mirror_guard.config.environment import EngineEnvironment
from mirror_guard.errors import ConfirmedRewrite, NotFoundError
from mirror_guard.hosts.base import CompareStatus
from mirror_guard.models.detection import BranchSnapshot
from mirror_guard.models.repository import Repository, RepositorySyncState
from mirror_guard.persistence.activity import ActivityLog
from mirror_guard.persistence.stores import JsonRepositoryStore, YamlConfigStore
from mirror_guard.services import Services
from mirror_guard.sync.approval import ApprovalService
from mirror_guard.sync.pipeline import SyncPipeline


def branches(mapping: Dict[str, str]) -> List[BranchSnapshot]:
    """{"main": "aaa"} → [BranchSnapshot(name="main", commit_id="aaa")]"""
    return [BranchSnapshot(name=name, commit_id=sha) for name, sha in mapping.items()]


class FakeSourceHost:
    """Source host serving fixed branches and compare answers."""

    def __init__(
        self,
        branch_map: Optional[Dict[str, str]] = None,
        compare_results: Optional[Dict[Tuple[str, str], object]] = None,
        list_error: Optional[Exception] = None,
    ):
        self.branch_map = branch_map or {}
        # (base, head) -> CompareStatus, or an exception instance to raise
        self.compare_results = compare_results or {}
        self.list_error = list_error
        self.compare_calls: List[Tuple[str, str]] = []

    def list_branches(self, owner, repo):
        if self.list_error:
            raise self.list_error
        return branches(self.branch_map)

    def compare(self, owner, repo, base, head):
        self.compare_calls.append((base, head))
        result = self.compare_results.get((base, head), CompareStatus.AHEAD)
        if isinstance(result, Exception):
            raise result
        return result


class FakeMirrorHost:
    """Mirror host serving fixed branches and recording sync triggers."""

    def __init__(
        self,
        branch_map: Optional[Dict[str, str]] = None,
        list_error: Optional[Exception] = None,
        sync_error: Optional[Exception] = None,
    ):
        self.branch_map = branch_map or {}
        self.list_error = list_error
        self.sync_error = sync_error
        self.synced: List[Tuple[str, str]] = []
        self.list_calls = 0

    def list_branches(self, owner, repo):
        self.list_calls += 1
        if self.list_error:
            raise self.list_error
        return branches(self.branch_map)

    def trigger_mirror_sync(self, owner, repo):
        if self.sync_error:
            raise self.sync_error
        self.synced.append((owner, repo))

    def clone_url(self, owner, repo):
        return f"https://gitea.test/{owner}/{repo}.git"


def not_found(host: str = "gitea") -> NotFoundError:
    return NotFoundError("Not Found", status_code=404, host=host)


def rewritten() -> ConfirmedRewrite:
    return ConfirmedRewrite("No common ancestor", status_code=404, host="github")


@pytest.fixture
def env(tmp_path: Path) -> EngineEnvironment:
    """Environment snapshot with no overrides and a fast timeout."""
    return EngineEnvironment(
        detection_timeout=5.0,
        ancestry_workers=2,
        backup_directory=str(tmp_path / "backups"),
    )


@pytest.fixture
def write_config(tmp_path: Path):
    """Write config/users.yaml; returns the store."""
    path = tmp_path / "config" / "users.yaml"

    def _write(users: Dict[str, dict]) -> YamlConfigStore:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(users), encoding="utf-8")
        return YamlConfigStore(path)

    return _write


def user_config(**backup) -> dict:
    return {
        "mirror": {"url": "https://gitea.test", "token": "gitea-token", "owner": "backup"},
        "source": {"token": "gh-token"},
        "backup": backup,
    }


@pytest.fixture
def config_store(write_config):
    return write_config({"user-1": user_config()})


@pytest.fixture
def repo_store(tmp_path: Path) -> JsonRepositoryStore:
    store = JsonRepositoryStore(tmp_path / "state" / "repositories.json")
    store.add(Repository(id="repo-1", user_id="user-1", name="app", owner="acme", status=RepositorySyncState.SYNCED))
    store.add(Repository(id="repo-2", user_id="user-1", name="lib", owner="acme", status=RepositorySyncState.SYNCED))
    store.add(Repository(id="repo-3", user_id="user-2", name="other", owner="someone", status=RepositorySyncState.PENDING_APPROVAL))
    return store


@pytest.fixture
def activity(tmp_path: Path) -> ActivityLog:
    return ActivityLog(tmp_path / "audit" / "activity.ndjson")


@pytest.fixture
def hosts():
    """A (mirror, source) pair the pipeline factories hand out."""
    return FakeMirrorHost({"main": "aaa"}), FakeSourceHost({"main": "aaa"})


@pytest.fixture
def pipeline(config_store, repo_store, activity, env, hosts) -> SyncPipeline:
    mirror, source = hosts
    return SyncPipeline(
        config_store,
        repo_store,
        activity,
        env=env,
        mirror_factory=lambda config: mirror,
        source_factory=lambda config: source,
    )


@pytest.fixture
def services(pipeline, config_store, repo_store, activity, env) -> Services:
    return Services(
        env=env,
        config_store=config_store,
        repo_store=repo_store,
        activity=activity,
        pipeline=pipeline,
        approvals=ApprovalService(pipeline),
    )
