"""CLI interface using Typer."""

import signal
import sys

import typer

app = typer.Typer(name="subsync", help="Re-sync a sub-directory extracted from an upstream repository")


@app.callback(invoke_without_command=True)
def _main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report what a sync would do without changing anything"),
):
    """Runs a full sync when no command is given."""
    from ..core.log_setup import setup_logging

    setup_logging(verbose)
    if ctx.invoked_subcommand is None:
        from .sync_cmds import run_sync_command

        run_sync_command(dry_run=dry_run)


def _handle_sigterm(signum, frame):
    sys.stderr.write("Terminated\n")
    sys.exit(1)


def main() -> None:
    # SystemExit unwinds the stack, so temporary clones are cleaned up on SIGTERM too.
    signal.signal(signal.SIGTERM, _handle_sigterm)
    app()


# Import subcommand modules to register them
from . import sync_cmds  # noqa: F401, E402
from . import status_cmds  # noqa: F401, E402
from . import config_cmds  # noqa: F401, E402
