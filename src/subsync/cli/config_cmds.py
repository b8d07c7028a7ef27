"""Configuration command."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape

from . import app

console = Console()


@app.command()
def config(
    key: str | None = typer.Argument(None, help="Config key (dotted notation, e.g. upstream.remote)"),
    value: str | None = typer.Argument(None, help="Value to set"),
    global_: bool = typer.Option(False, "--global", help="Write to ~/.subsync/config.toml instead of the repo"),
):
    """Get or set configuration."""
    from ..core.config import get_config_value, load_config, save_config
    from ..core.git import find_git_root
    from .sync_cmds import apply_display

    repo_path = find_git_root()
    cfg = load_config(repo_path)
    apply_display(console, cfg)

    if key is None:
        console.print_json(data=cfg)
        return

    if value is None:
        val = get_config_value(cfg, key)
        if val is None:
            console.print(f"[yellow]Key not found:[/yellow] {key}")
        else:
            console.print(f"{key} = {val}", markup=False)
        return

    save_config(None if global_ else repo_path, key, value)
    console.print(f"[green]Set[/green] {key} = {escape(value)}")
