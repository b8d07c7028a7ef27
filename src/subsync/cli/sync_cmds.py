"""Sync commands: sync, continue, abort."""

from __future__ import annotations

import warnings

import typer
from rich.console import Console
from rich.markup import escape

from . import app

console = Console()

_STATUS_STYLE = {
    "ok": "green",
    "warning": "yellow",
    "fatal": "red",
    "skipped": "dim",
}


def open_repo(out: Console | None = None):
    """Locate the repo and load its config. Display settings apply to ``out`` as well."""
    from ..core.config import load_config
    from ..core.git import Git, find_git_root

    repo_path = find_git_root()
    if not repo_path:
        console.print("[red]Not in a git repository.[/red]")
        raise typer.Exit(1)
    config = load_config(repo_path)
    for target in (console, out):
        if target is not None:
            apply_display(target, config)
    return repo_path, Git(repo_path), config


def apply_display(target: Console, config: dict) -> None:
    target.no_color = not config.get("display", {}).get("color", True)


def _print_stage(result) -> None:
    from ..sync.pipeline import STAGES

    names = [name for name, _ in STAGES]
    titles = dict(STAGES)
    index = names.index(result.stage) + 1 if result.stage in titles else 0
    style = _STATUS_STYLE.get(result.status.value, "white")
    console.print(f"[{style}][{index}/{len(STAGES)}] {titles.get(result.stage, result.stage)}[/{style}]")
    if result.message:
        console.print(f"  {escape(result.message)}")
    # Fatal hints are printed once, with the failure summary.
    if result.hint and result.status.value != "fatal":
        console.print(f"  {escape(result.hint)}")


def _print_conflict(exc) -> None:
    if exc.in_progress:
        console.print(f"[red]{escape(str(exc))}. Please resolve manually.[/red]")
    else:
        console.print(f"[red]{escape(str(exc))}.[/red]")
        console.print(f"Apply it by hand (git cherry-pick {exc.commit.sha}, with -m 1 for a merge).")
    if exc.remaining:
        console.print(f"  {len(exc.remaining)} more local commit(s) are waiting to be replayed.")
    console.print("After resolving, run: [bold]subsync continue[/bold]")
    if exc.in_progress:
        console.print("  (git cherry-pick --continue works too; then run subsync continue for the rest)")
    console.print(f"To abort: [bold]subsync abort[/bold]  (or: git reset --hard {exc.backup_branch})")
    console.print(f"Backup branch: {exc.backup_branch}")


def run_sync_command(
    dry_run: bool = False,
    remote: str | None = None,
    upstream_branch: str | None = None,
    local_branch: str | None = None,
    path: str | None = None,
    url: str | None = None,
) -> None:
    from ..core.config import SyncSettings
    from ..core.errors import ReplayConflictError, SyncPointAmbiguityWarning
    from ..core.history_filter import FilterRepo
    from ..core.models import SyncOutcome
    from ..core.state import SyncState
    from ..sync.pipeline import run_sync

    repo_path, git, config = open_repo()
    settings = SyncSettings.from_config(
        config,
        remote=remote,
        upstream_branch=upstream_branch,
        local_branch=local_branch,
        path=path,
        url=url,
    )
    state = SyncState.for_git_dir(git.git_dir())

    if dry_run:
        console.print("[yellow]=== DRY RUN MODE ===[/yellow]")
    console.print(f"[bold]Syncing {settings.path} from {settings.upstream_ref} into {settings.local_branch}[/bold]")
    console.print(f"Repository root: {repo_path}")

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", SyncPointAmbiguityWarning)
        report = run_sync(git, FilterRepo(), settings, state, dry_run=dry_run, on_stage=_print_stage)

    if report.new_commits:
        console.print("\n[bold]New commits to sync:[/bold]")
        for commit in report.new_commits:
            console.print(f"  {commit.short_sha} {escape(commit.summary)}")

    if report.classification is not None:
        for commit in report.classification.local_only:
            console.print(f"  Local commit to preserve: {commit.short_sha} {escape(commit.summary)}")

    if report.outcome is SyncOutcome.UP_TO_DATE:
        console.print(f"[green]Already up to date! No new {settings.path} commits in {settings.upstream_ref}.[/green]")
        return

    if report.outcome is SyncOutcome.DRY_RUN:
        console.print("[yellow]Dry run complete. Run without --dry-run to apply changes.[/yellow]")
        return

    if report.outcome is SyncOutcome.SYNCED:
        console.print("\n[green]=== Sync Complete ===[/green]")
        console.print(f"Backup branch: {report.backup_branch}")
        console.print("\nTo push changes:")
        console.print(f"  git push origin {settings.local_branch} --force-with-lease")
        console.print("\nTo undo:")
        console.print(f"  git reset --hard {report.backup_branch}")
        return

    if isinstance(report.error, ReplayConflictError):
        _print_conflict(report.error)
    else:
        console.print(f"[red]Sync failed: {escape(str(report.error))}[/red]")
        hint = getattr(report.error, "hint", None)
        if hint:
            console.print(escape(hint))
    raise typer.Exit(report.exit_code)


@app.command("sync")
def sync(
    dry_run: bool = typer.Option(False, "--dry-run", help="Report what would be synced without changing anything"),
    remote: str | None = typer.Option(None, "--remote", help="Upstream remote name"),
    upstream_branch: str | None = typer.Option(None, "--upstream-branch", help="Upstream branch"),
    local_branch: str | None = typer.Option(None, "--branch", help="Downstream branch"),
    path: str | None = typer.Option(None, "--path", help="Sub-path to extract"),
    url: str | None = typer.Option(None, "--url", help="Clone URL (defaults to the remote's URL)"),
):
    """Rebuild the downstream branch on filtered upstream history and replay local commits."""
    run_sync_command(
        dry_run=dry_run,
        remote=remote,
        upstream_branch=upstream_branch,
        local_branch=local_branch,
        path=path,
        url=url,
    )


@app.command("continue")
def continue_():
    """Resume a replay that stopped on a conflict."""
    from ..core.errors import ReplayConflictError, SubsyncError
    from ..core.state import SyncState
    from ..sync.replay import continue_replay

    _, git, _ = open_repo()
    state = SyncState.for_git_dir(git.git_dir())

    try:
        plan, tip = continue_replay(git, state)
    except ReplayConflictError as e:
        _print_conflict(e)
        raise typer.Exit(1)
    except SubsyncError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        if e.hint:
            console.print(escape(e.hint))
        raise typer.Exit(1)

    console.print("[green]=== Sync Complete ===[/green]")
    console.print(f"Branch {plan.local_branch} now at {tip[:12]}")
    console.print(f"Backup branch: {plan.backup_branch}")


@app.command("abort")
def abort():
    """Abandon a stopped replay and reset to its backup branch."""
    from ..core.errors import SubsyncError
    from ..core.state import SyncState
    from ..sync.replay import abort_replay

    _, git, _ = open_repo()
    state = SyncState.for_git_dir(git.git_dir())

    try:
        backup = abort_replay(git, state)
    except SubsyncError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        if e.hint:
            console.print(escape(e.hint))
        raise typer.Exit(1)

    console.print(f"[yellow]Replay aborted.[/yellow] Reset to {backup}")
