"""Sync pipeline, filtered-upstream acquisition and commit replay."""

from .filtered import filtered_upstream
from .pipeline import STAGES, run_sync
from .replay import abort_replay, continue_replay, replay

__all__ = [
    "STAGES",
    "run_sync",
    "filtered_upstream",
    "replay",
    "continue_replay",
    "abort_replay",
]
