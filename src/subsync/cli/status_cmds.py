"""Inspection commands: status, backups, doctor."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import app
from .sync_cmds import open_repo

console = Console()


@app.command()
def status():
    """Show effective settings, recorded sync state and any stopped replay."""
    from ..core.config import SyncSettings
    from ..core.state import SyncState

    repo_path, git, config = open_repo(console)
    settings = SyncSettings.from_config(config)
    state = SyncState.for_git_dir(git.git_dir())

    table = Table(title="subsync Status")
    table.add_column("Property", style="bold")
    table.add_column("Value")

    table.add_row("Repo", repo_path)
    table.add_row("Upstream", f"{settings.upstream_ref} ({git.remote_url(settings.remote) or 'remote missing'})")
    table.add_row("Downstream Branch", settings.local_branch)
    table.add_row("Current Branch", git.current_branch() or "detached HEAD")
    table.add_row("Sub-path", settings.path)
    table.add_row("Summary Pattern", escape(settings.summary_pattern))
    table.add_row("Last Synced Upstream", state.last_synced_upstream or "never")
    table.add_row("Last Synced At", state.last_synced_at or "N/A")
    table.add_row("Last Backup", state.last_backup or "N/A")

    plan = state.pending_replay
    if plan:
        current = f"{plan.current.short_sha} {escape(plan.current.summary)}" if plan.current else "N/A"
        table.add_row("Stopped Replay", f"[red]yes[/red] at {current}")
        table.add_row("Commits Remaining", str(len(plan.pending)))
        table.add_row("Cherry-pick In Progress", "yes" if git.cherry_pick_in_progress() else "no")
    else:
        table.add_row("Stopped Replay", "no")

    backups = git.list_branches(f"{settings.backup_prefix}-*")
    table.add_row("Backup Branches", str(len(backups)))

    console.print(table)


@app.command()
def backups():
    """List backup branches created before each rewrite, newest first."""
    from ..core.config import SyncSettings

    _, git, config = open_repo(console)
    settings = SyncSettings.from_config(config)

    branches = git.list_branches(f"{settings.backup_prefix}-*")
    if not branches:
        console.print("[dim]No backup branches.[/dim]")
        return

    table = Table(title="Backup Branches")
    table.add_column("Branch", style="bold")
    table.add_column("Commit")
    table.add_column("Date")
    for b in branches:
        table.add_row(b["name"], b["sha"][:12], b["date"])
    console.print(table)
    console.print("[dim]Restore with: git reset --hard <branch>. Delete with: git branch -D <branch>.[/dim]")


@app.command("doctor")
def doctor():
    """Check prerequisites without fetching or changing anything."""
    from ..core.config import SyncSettings
    from ..core.history_filter import INSTALL_HINT, FilterRepo
    from ..core.state import SyncState

    _, git, config = open_repo(console)
    settings = SyncSettings.from_config(config)
    issues: list[str] = []
    warnings: list[str] = []

    if not FilterRepo().is_available():
        issues.append(f"git-filter-repo is not installed. {INSTALL_HINT}")

    if git.remote_url(settings.remote) is None:
        issues.append(f"Remote '{settings.remote}' not found. Add with: git remote add {settings.remote} <upstream-url>")
    elif git.rev_parse(settings.upstream_ref) is None:
        warnings.append(f"{settings.upstream_ref} not fetched yet. Run: git fetch {settings.remote}")

    branch = git.current_branch()
    if branch != settings.local_branch:
        warnings.append(f"Branch '{settings.local_branch}' is not checked out (current: {branch or 'detached HEAD'}).")
    if not git.is_clean():
        warnings.append("Working tree has uncommitted changes.")

    if SyncState.for_git_dir(git.git_dir()).pending_replay is not None:
        warnings.append("A replay stopped on a conflict. Run 'subsync continue' or 'subsync abort'.")

    for issue in issues:
        console.print(f"[red]ERROR:[/red] {escape(issue)}")
    for warning in warnings:
        console.print(f"[yellow]WARN:[/yellow] {escape(warning)}")
    if not issues and not warnings:
        console.print("[green]All checks passed.[/green]")
    if issues:
        raise typer.Exit(1)
