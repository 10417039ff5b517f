"""
Services — Wire stores, activity log, pipeline and approval together.

Paths in EngineEnvironment are resolved against the project root.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config.environment import EngineEnvironment
from .persistence.activity import ActivityLog
from .persistence.stores import JsonRepositoryStore, YamlConfigStore
from .sync.approval import ApprovalService
from .sync.pipeline import SyncPipeline


@dataclass
class Services:
    env: EngineEnvironment
    config_store: YamlConfigStore
    repo_store: JsonRepositoryStore
    activity: ActivityLog
    pipeline: SyncPipeline
    approvals: ApprovalService


def _under(root: Path, value: str) -> Path:
    path = Path(value)
    return path if path.is_absolute() else root / path


def build_services(root: Path, env: Optional[EngineEnvironment] = None) -> Services:
    env = env or EngineEnvironment.from_env()
    config_store = YamlConfigStore(_under(root, env.config_file))
    repo_store = JsonRepositoryStore(_under(root, env.state_dir) / "repositories.json")
    activity = ActivityLog(_under(root, env.audit_file))
    pipeline = SyncPipeline(config_store, repo_store, activity, env=env)
    return Services(
        env=env,
        config_store=config_store,
        repo_store=repo_store,
        activity=activity,
        pipeline=pipeline,
        approvals=ApprovalService(pipeline),
    )
