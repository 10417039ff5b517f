"""
Tests for snapshot paths, bundle creation, retention and the backup gate.
"""

import os
import shutil
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from mirror_guard.backup.bundle import (
    create_bundle_backup,
    list_backups,
    maybe_backup,
    prune_backups,
)
from mirror_guard.backup.paths import (
    bundle_filename,
    resolve_backup_paths,
    resolve_backup_root,
    sanitize_path_segment,
)
from mirror_guard.config.environment import EngineEnvironment
from mirror_guard.errors import BackupIOError
from mirror_guard.models.config import BackupSettings, UserConfig
from mirror_guard.models.detection import (
    AffectedBranch,
    BackupDescriptor,
    DetectionResult,
    DivergenceReason,
)

CLONE_URL = "https://gitea.test/backup/app.git"


def _config(tmp_path, **backup):
    backup.setdefault("backup_directory", str(tmp_path / "backups"))
    return UserConfig(
        user_id="user-1",
        mirror={"url": "https://gitea.test", "token": "gitea-token"},
        backup=BackupSettings(**backup),
    )


def _detected():
    return DetectionResult.from_findings([
        AffectedBranch(name="main", reason=DivergenceReason.DIVERGED, mirror_commit_id="a", source_commit_id="b")
    ])


def _make_bundles(directory: Path, count: int):
    directory.mkdir(parents=True, exist_ok=True)
    paths = []
    for i in range(count):
        path = directory / f"2026010{i}T000000000000Z.bundle"
        path.write_bytes(b"bundle")
        os.utime(path, (1_700_000_000 + i, 1_700_000_000 + i))
        paths.append(path)
    return paths


class TestBackupPaths:

    def test_relative_directory_resolves_against_cwd(self, tmp_path):
        root = resolve_backup_root(BackupSettings(backup_directory="custom/backups"), cwd=tmp_path)
        assert root == tmp_path / "custom" / "backups"
        assert root.is_absolute()

    def test_absolute_directory_used_verbatim(self, tmp_path):
        target = tmp_path / "abs"
        assert resolve_backup_root(BackupSettings(backup_directory=str(target)), cwd="/elsewhere") == target

    def test_env_directory_fallback(self, tmp_path):
        env = EngineEnvironment(backup_directory="custom/backup/path")
        root = resolve_backup_root(BackupSettings(), env, cwd=tmp_path)
        assert root == tmp_path / "custom" / "backup" / "path"

    def test_blank_setting_falls_back(self, tmp_path):
        env = EngineEnvironment(backup_directory="from-env")
        root = resolve_backup_root(BackupSettings(backup_directory="   "), env, cwd=tmp_path)
        assert root == tmp_path / "from-env"

    def test_default_directory(self, tmp_path):
        assert resolve_backup_root(None, cwd=tmp_path) == tmp_path / "data" / "repo-backups"

    def test_repo_dir_layout_is_sanitized(self, tmp_path):
        paths = resolve_backup_paths(
            BackupSettings(), "user-1", "org/with-slash", "repo name!", cwd=tmp_path
        )
        assert paths.repo_backup_dir == (
            tmp_path / "data" / "repo-backups" / "user-1" / "org_with-slash" / "repo_name_"
        )

    @pytest.mark.parametrize("value", ["", ".", ".."])
    def test_dot_segments_never_escape(self, value):
        assert sanitize_path_segment(value) == "_"

    def test_traversal_stays_inside_root(self, tmp_path):
        paths = resolve_backup_paths(BackupSettings(), "../..", "..", "../etc", cwd=tmp_path)
        assert str(paths.repo_backup_dir).startswith(str(paths.backup_root))

    def test_bundle_filename_sorts_by_time(self):
        early = bundle_filename(datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc))
        late = bundle_filename(datetime(2026, 1, 1, 12, 0, 1, tzinfo=timezone.utc))
        assert early == "20260101T120000000000Z.bundle"
        assert early < late


class TestCreateBundleBackup:

    def test_clones_then_bundles(self, tmp_path):
        calls = []

        def fake_run(args, cwd=None, **kwargs):
            calls.append((args, cwd))
            if "bundle" in args:
                Path(args[args.index("create") + 1]).write_bytes(b"bundle")
            return subprocess.CompletedProcess(args, 0, "", "")

        with patch("mirror_guard.backup.bundle.subprocess.run", side_effect=fake_run):
            descriptor = create_bundle_backup(CLONE_URL, tmp_path / "repo", token="t0k")

        assert isinstance(descriptor, BackupDescriptor)
        assert Path(descriptor.bundle_path).exists()
        clone_args, _ = calls[0]
        assert clone_args[:3] == ["git", "-c", "http.extraHeader=Authorization: token t0k"]
        assert "--mirror" in clone_args and CLONE_URL in clone_args
        bundle_args, bundle_cwd = calls[1]
        assert bundle_args[-1] == "--all"
        assert bundle_cwd.endswith("repo.git")

    def test_clone_failure_raises(self, tmp_path):
        failed = subprocess.CompletedProcess([], 128, "", "fatal: repository not found")
        with patch("mirror_guard.backup.bundle.subprocess.run", return_value=failed):
            with pytest.raises(BackupIOError, match="repository not found"):
                create_bundle_backup(CLONE_URL, tmp_path / "repo")
        assert list_backups(tmp_path / "repo") == []

    def test_missing_git_raises(self, tmp_path):
        with patch("mirror_guard.backup.bundle.subprocess.run", side_effect=FileNotFoundError("git")):
            with pytest.raises(BackupIOError):
                create_bundle_backup(CLONE_URL, tmp_path / "repo")

    def test_timeout_raises(self, tmp_path):
        with patch(
            "mirror_guard.backup.bundle.subprocess.run",
            side_effect=subprocess.TimeoutExpired("git", 600),
        ):
            with pytest.raises(BackupIOError):
                create_bundle_backup(CLONE_URL, tmp_path / "repo")


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
class TestBundleWithGit:
    """Bundles a real local repository end to end."""

    def _git(self, *args, cwd):
        subprocess.run(
            ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com",
             "-c", "commit.gpgsign=false", *args],
            cwd=cwd, check=True, capture_output=True,
        )

    def test_bundle_contains_every_branch(self, tmp_path):
        source = tmp_path / "source"
        source.mkdir()
        self._git("init", "--quiet", cwd=source)
        (source / "README.md").write_text("hello\n")
        self._git("add", "README.md", cwd=source)
        self._git("commit", "--quiet", "-m", "initial", cwd=source)
        self._git("branch", "-M", "main", cwd=source)
        self._git("checkout", "--quiet", "-b", "dev", cwd=source)
        (source / "dev.txt").write_text("dev\n")
        self._git("add", "dev.txt", cwd=source)
        self._git("commit", "--quiet", "-m", "dev work", cwd=source)

        descriptor = create_bundle_backup(str(source), tmp_path / "backups")

        heads = subprocess.run(
            ["git", "bundle", "list-heads", descriptor.bundle_path],
            capture_output=True, text=True, check=True,
        ).stdout
        assert "refs/heads/main" in heads
        assert "refs/heads/dev" in heads
        verify = subprocess.run(
            ["git", "bundle", "verify", descriptor.bundle_path],
            cwd=source, capture_output=True, text=True,
        )
        assert verify.returncode == 0, verify.stderr


class TestPruneBackups:

    def test_keeps_newest(self, tmp_path):
        paths = _make_bundles(tmp_path, 5)
        removed = prune_backups(tmp_path, 2)
        assert removed == paths[:3]
        assert list_backups(tmp_path) == paths[3:]

    def test_under_retention_removes_nothing(self, tmp_path):
        _make_bundles(tmp_path, 2)
        assert prune_backups(tmp_path, 5) == []

    def test_retention_at_least_one(self, tmp_path):
        paths = _make_bundles(tmp_path, 3)
        prune_backups(tmp_path, 0)
        assert list_backups(tmp_path) == paths[-1:]

    def test_ties_broken_by_name(self, tmp_path):
        for name in ("b.bundle", "a.bundle", "c.bundle"):
            path = tmp_path / name
            path.write_bytes(b"")
            os.utime(path, (1_700_000_000, 1_700_000_000))
        prune_backups(tmp_path, 1)
        assert [p.name for p in list_backups(tmp_path)] == ["c.bundle"]

    def test_touched_old_bundle_is_still_oldest(self, tmp_path):
        paths = _make_bundles(tmp_path, 3)
        # A restored or copied snapshot gets a fresh mtime
        os.utime(paths[0], (1_800_000_000, 1_800_000_000))
        removed = prune_backups(tmp_path, 2)
        assert removed == [paths[0]]
        assert list_backups(tmp_path) == paths[1:]

    def test_ignores_other_files(self, tmp_path):
        (tmp_path / "notes.txt").write_text("keep me")
        _make_bundles(tmp_path, 3)
        prune_backups(tmp_path, 1)
        assert (tmp_path / "notes.txt").exists()

    def test_missing_directory(self, tmp_path):
        assert prune_backups(tmp_path / "nope", 1) == []


class TestMaybeBackup:

    def _descriptor(self, tmp_path):
        return BackupDescriptor(bundle_path=str(tmp_path / "x.bundle"))

    def test_skipped_without_detection(self, tmp_path):
        with patch("mirror_guard.backup.bundle.create_bundle_backup") as create:
            outcome = maybe_backup(_config(tmp_path), "backup", "app", CLONE_URL)
        assert outcome.status == "skipped"
        create.assert_not_called()

    def test_created_on_detection(self, tmp_path):
        with patch(
            "mirror_guard.backup.bundle.create_bundle_backup",
            return_value=self._descriptor(tmp_path),
        ) as create:
            outcome = maybe_backup(_config(tmp_path), "backup", "app", CLONE_URL, _detected())
        assert outcome.status == "created"
        repo_dir = create.call_args.args[1]
        assert repo_dir == tmp_path / "backups" / "user-1" / "backup" / "app"
        assert create.call_args.kwargs["token"] == "gitea-token"

    def test_always_backs_up(self, tmp_path):
        with patch(
            "mirror_guard.backup.bundle.create_bundle_backup",
            return_value=self._descriptor(tmp_path),
        ):
            outcome = maybe_backup(_config(tmp_path, backup_strategy="always"), "backup", "app", CLONE_URL)
        assert outcome.status == "created"

    def test_disabled_never_backs_up(self, tmp_path):
        with patch("mirror_guard.backup.bundle.create_bundle_backup") as create:
            outcome = maybe_backup(
                _config(tmp_path, backup_strategy="disabled"), "backup", "app", CLONE_URL, _detected()
            )
        assert outcome.status == "skipped"
        create.assert_not_called()

    def test_force_ignores_strategy(self, tmp_path):
        with patch(
            "mirror_guard.backup.bundle.create_bundle_backup",
            return_value=self._descriptor(tmp_path),
        ):
            outcome = maybe_backup(
                _config(tmp_path, backup_strategy="disabled"), "backup", "app", CLONE_URL, force=True
            )
        assert outcome.status == "created"

    def test_failure_is_absorbed_by_default(self, tmp_path):
        with patch(
            "mirror_guard.backup.bundle.create_bundle_backup",
            side_effect=BackupIOError("disk full"),
        ):
            outcome = maybe_backup(_config(tmp_path), "backup", "app", CLONE_URL, _detected())
        assert outcome.status == "failed"
        assert outcome.error == "disk full"

    def test_failure_blocks_when_configured(self, tmp_path):
        config = _config(tmp_path, backup_strategy="always", block_sync_on_backup_failure=True)
        with patch(
            "mirror_guard.backup.bundle.create_bundle_backup",
            side_effect=BackupIOError("disk full"),
        ):
            with pytest.raises(BackupIOError):
                maybe_backup(config, "backup", "app", CLONE_URL)

    def test_forced_failure_never_raises(self, tmp_path):
        config = _config(tmp_path, backup_strategy="always", block_sync_on_backup_failure=True)
        with patch(
            "mirror_guard.backup.bundle.create_bundle_backup",
            side_effect=BackupIOError("disk full"),
        ):
            outcome = maybe_backup(config, "backup", "app", CLONE_URL, force=True)
        assert outcome.status == "failed"

    def test_prunes_after_success(self, tmp_path):
        config = _config(tmp_path, backup_retention_count=2)
        repo_dir = tmp_path / "backups" / "user-1" / "backup" / "app"
        _make_bundles(repo_dir, 4)
        with patch(
            "mirror_guard.backup.bundle.create_bundle_backup",
            return_value=self._descriptor(tmp_path),
        ):
            maybe_backup(config, "backup", "app", CLONE_URL, _detected())
        assert len(list_backups(repo_dir)) == 2
