"""
Mirror Guard — CLI Entry Point

Usage:
    python -m mirror_guard.main strategy USER_ID
    python -m mirror_guard.main detect REPO_ID
    python -m mirror_guard.main sync --user USER_ID
    python -m mirror_guard.main approve USER_ID REPO_ID...
    python -m mirror_guard.main serve [--port 5050]
"""

from __future__ import annotations

# Load .env file FIRST, before any other imports that might read env vars
from pathlib import Path
from dotenv import load_dotenv

_env_file = Path.cwd() / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

import click

from .cli.guard import (
    activity_cmd,
    approve_cmd,
    backup_cmd,
    detect_cmd,
    dismiss_cmd,
    pending_cmd,
    strategy_cmd,
    sync_cmd,
)
from .logging_config import setup_logging
from .services import build_services


@click.group()
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Project root for state, config and audit files (default: cwd)",
)
@click.pass_context
def cli(ctx: click.Context, root: Path | None) -> None:
    """Mirror Guard — force-push detection and pre-sync backups."""
    setup_logging()
    ctx.ensure_object(dict)
    ctx.obj.setdefault("root", root or Path.cwd())
    if "services" not in ctx.obj:
        ctx.obj["services"] = build_services(ctx.obj["root"])


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=5050, show_default=True, help="Port")
@click.option("--user", "default_user_id", help="Acting user when no X-User-Id header is sent")
@click.option("--debug", is_flag=True, help="Enable Flask debug mode")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int, default_user_id: str | None, debug: bool) -> None:
    """Run the approval API server."""
    from .admin.server import run_server

    click.echo(f"Mirror Guard admin on http://{host}:{port} (local use only)")
    run_server(
        host=host,
        port=port,
        default_user_id=default_user_id,
        debug=debug,
        services=ctx.obj["services"],
        project_root=ctx.obj["root"],
    )


cli.add_command(strategy_cmd)
cli.add_command(detect_cmd)
cli.add_command(backup_cmd)
cli.add_command(sync_cmd)
cli.add_command(pending_cmd)
cli.add_command(approve_cmd)
cli.add_command(dismiss_cmd)
cli.add_command(activity_cmd)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
