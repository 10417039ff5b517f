"""
CLI guard commands — detection, strategy, backups, sync and approvals.

Usage:
    python -m mirror_guard.main strategy USER_ID [--json]
    python -m mirror_guard.main detect REPO_ID [--json]
    python -m mirror_guard.main backup REPO_ID [--list]
    python -m mirror_guard.main sync [REPO_ID] [--user USER_ID] [--skip-detection]
    python -m mirror_guard.main pending USER_ID
    python -m mirror_guard.main approve USER_ID REPO_ID...
    python -m mirror_guard.main dismiss USER_ID REPO_ID...
    python -m mirror_guard.main activity USER_ID [--repo REPO_ID] [--since ISO] [--limit N]
"""

from __future__ import annotations

import json
from datetime import timezone
from typing import Tuple

import click
from dateutil import parser as date_parser

from ..backup.bundle import DEFAULT_RETENTION_COUNT, list_backups, maybe_backup
from ..backup.paths import resolve_backup_paths
from ..backup.strategy import needs_detection, resolve_strategy
from ..detection.detector import detect_force_push
from ..errors import ConfigurationError, MirrorGuardError
from ..models.repository import Repository, RepositorySyncState
from ..services import Services
from ..sync.pipeline import mirror_owner_for, schedulable


def _services(ctx: click.Context) -> Services:
    return ctx.obj["services"]


def _repository(services: Services, repository_id: str) -> Repository:
    repo = services.repo_store.get(repository_id)
    if repo is None:
        raise click.ClickException(f"Unknown repository: {repository_id}")
    return repo


def _config(services: Services, user_id: str):
    try:
        return services.pipeline.load_config(user_id)
    except ConfigurationError as e:
        raise click.ClickException(str(e))


@click.command("strategy")
@click.argument("user_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def strategy_cmd(ctx: click.Context, user_id: str, as_json: bool) -> None:
    """Show the effective protection strategy for a user."""
    services = _services(ctx)
    config = _config(services, user_id)
    strategy = resolve_strategy(config.backup, services.env)

    result = {
        "user_id": user_id,
        "strategy": strategy.value,
        "needs_detection": needs_detection(strategy),
        "backup_root": str(
            resolve_backup_paths(config.backup, user_id, "-", "-", services.env).backup_root
        ),
        "retention_count": config.backup.backup_retention_count or DEFAULT_RETENTION_COUNT,
    }
    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    click.echo(f"\n🛡️  Protection for {user_id}\n")
    click.echo(f"  Strategy:   {result['strategy']}")
    click.echo(f"  Detection:  {'yes' if result['needs_detection'] else 'no'}")
    click.echo(f"  Snapshots:  {result['backup_root']} (keep {result['retention_count']})")
    click.echo()


@click.command("detect")
@click.argument("repository_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def detect_cmd(ctx: click.Context, repository_id: str, as_json: bool) -> None:
    """Run force-push detection for one repository without syncing."""
    services = _services(ctx)
    repo = _repository(services, repository_id)
    config = _config(services, repo.user_id)
    pipeline = services.pipeline

    result = detect_force_push(
        pipeline.mirror_factory(config),
        pipeline.source_factory(config),
        mirror_owner=mirror_owner_for(repo, config),
        mirror_repo=repo.name,
        source_owner=repo.owner,
        source_repo=repo.name,
        timeout=services.env.detection_timeout,
        max_workers=services.env.ancestry_workers,
    )

    if as_json:
        click.echo(result.model_dump_json(indent=2))
        return

    icon = "⏭️" if result.skipped else ("⚠️" if result.detected else "✅")
    click.echo(f"{icon} {repo.full_name}: {result.summary()}")
    for branch in result.affected_branches:
        click.echo(f"    - {branch.describe()}")


@click.command("backup")
@click.argument("repository_id")
@click.option("--list", "list_only", is_flag=True, help="List existing snapshots instead")
@click.pass_context
def backup_cmd(ctx: click.Context, repository_id: str, list_only: bool) -> None:
    """Take a snapshot of a repository's mirror now (or list snapshots)."""
    services = _services(ctx)
    repo = _repository(services, repository_id)
    config = _config(services, repo.user_id)
    owner = mirror_owner_for(repo, config)

    if list_only:
        paths = resolve_backup_paths(config.backup, repo.user_id, owner, repo.name, services.env)
        bundles = list_backups(paths.repo_backup_dir)
        if not bundles:
            click.echo(f"No snapshots in {paths.repo_backup_dir}")
            return
        for bundle in reversed(bundles):
            click.echo(f"  {bundle.name}  {bundle.stat().st_size:>12,} bytes")
        return

    mirror = services.pipeline.mirror_factory(config)
    try:
        outcome = maybe_backup(
            config, owner, repo.name, mirror.clone_url(owner, repo.name),
            force=True, env=services.env,
        )
    except MirrorGuardError as e:
        raise click.ClickException(str(e))

    if outcome.status != "created":
        raise click.ClickException(f"Snapshot failed: {outcome.error}")
    click.echo(f"✅ Snapshot written: {outcome.descriptor.bundle_path}")


@click.command("sync")
@click.argument("repository_id", required=False)
@click.option("--user", "user_id", help="Sync every schedulable repository of this user")
@click.option("--skip-detection", is_flag=True, help="Sync without force-push detection")
@click.option("--json-lines", "jsonl", is_flag=True, help="One JSON outcome per line")
@click.pass_context
def sync_cmd(
    ctx: click.Context,
    repository_id: str | None,
    user_id: str | None,
    skip_detection: bool,
    jsonl: bool,
) -> None:
    """Run guarded syncs for one repository or all of a user's repositories."""
    services = _services(ctx)

    if repository_id:
        repos = [_repository(services, repository_id)]
    elif user_id:
        repos = schedulable(services.repo_store.list_for_user(user_id))
    else:
        raise click.UsageError("Give a REPOSITORY_ID or --user")

    failures = 0
    for repo in repos:
        try:
            outcome = services.pipeline.run(repo, skip_detection=skip_detection)
        except MirrorGuardError as e:
            failures += 1
            click.echo(f"❌ {repo.full_name}: {e}", err=True)
            continue

        if outcome.status == RepositorySyncState.ERROR:
            failures += 1
        if jsonl:
            click.echo(outcome.model_dump_json())
            continue

        icon = {
            RepositorySyncState.SYNCED: "✅",
            RepositorySyncState.PENDING_APPROVAL: "⏸️",
            RepositorySyncState.ERROR: "❌",
        }.get(outcome.status, "•")
        line = f"{icon} {repo.full_name}: {outcome.status.value}"
        if outcome.error:
            line += f" — {outcome.error}"
        click.echo(line)

    if failures:
        ctx.exit(1)


@click.command("pending")
@click.argument("user_id")
@click.pass_context
def pending_cmd(ctx: click.Context, user_id: str) -> None:
    """List repositories waiting for approval."""
    services = _services(ctx)
    repos = [
        r
        for r in services.repo_store.list_for_user(user_id)
        if r.status == RepositorySyncState.PENDING_APPROVAL
    ]
    if not repos:
        click.echo("No repositories waiting for approval.")
        return
    for repo in repos:
        click.echo(f"⏸️  {repo.id}  {repo.full_name}")
        if repo.error_message:
            click.echo(f"      {repo.error_message}")


def _apply(ctx: click.Context, user_id: str, repository_ids: Tuple[str, ...], action: str) -> None:
    services = _services(ctx)
    try:
        result = services.approvals.apply(user_id, list(repository_ids), action, blocking=True)
    except MirrorGuardError as e:
        raise click.ClickException(str(e))
    click.echo(result.message)
    for repo in result.repositories:
        current = services.repo_store.get(repo.id) or repo
        click.echo(f"  {current.id}  {current.full_name}: {current.status.value}")


@click.command("approve")
@click.argument("user_id")
@click.argument("repository_ids", nargs=-1, required=True)
@click.pass_context
def approve_cmd(ctx: click.Context, user_id: str, repository_ids: Tuple[str, ...]) -> None:
    """Approve blocked syncs: snapshot, then sync without detection."""
    _apply(ctx, user_id, repository_ids, "approve")


@click.command("dismiss")
@click.argument("user_id")
@click.argument("repository_ids", nargs=-1, required=True)
@click.pass_context
def dismiss_cmd(ctx: click.Context, user_id: str, repository_ids: Tuple[str, ...]) -> None:
    """Dismiss force-push alerts and return repositories to the schedule."""
    _apply(ctx, user_id, repository_ids, "dismiss")


@click.command("activity")
@click.argument("user_id")
@click.option("--repo", "repository_id", help="Only this repository")
@click.option("--since", help="Only entries at or after this time (ISO 8601)")
@click.option("--limit", default=20, show_default=True, help="Newest N entries")
@click.pass_context
def activity_cmd(
    ctx: click.Context,
    user_id: str,
    repository_id: str | None,
    since: str | None,
    limit: int,
) -> None:
    """Show the activity log."""
    services = _services(ctx)
    entries = services.activity.read(user_id=user_id, repository_id=repository_id)

    if since:
        try:
            cutoff = date_parser.isoparse(since)
        except ValueError:
            raise click.BadParameter(f"Not an ISO 8601 time: {since}", param_hint="--since")
        if cutoff.tzinfo is None:
            cutoff = cutoff.replace(tzinfo=timezone.utc)
        entries = [e for e in entries if date_parser.isoparse(e.ts_iso) >= cutoff]

    for entry in entries[-limit:] if limit > 0 else []:
        click.echo(f"{entry.ts_iso[:19]}  [{entry.status}] {entry.message}")
        if entry.details:
            for line in entry.details.splitlines():
                click.echo(f"    {line}")
