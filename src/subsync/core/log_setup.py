"""Logging setup for the CLI."""

from __future__ import annotations

import logging

from rich.logging import RichHandler


def setup_logging(is_verbose: bool = False) -> None:
    """Route log records through Rich; DEBUG when verbose, WARNING otherwise."""
    log_level = logging.DEBUG if is_verbose else logging.WARNING

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.addHandler(
        RichHandler(
            level=log_level,
            rich_tracebacks=True,
            show_time=is_verbose,
            show_path=is_verbose,
        )
    )
