"""Core building blocks: config, git and filter collaborators, models, classification."""

from .classify import classify_local_commits, find_sync_point
from .config import SyncSettings, get_config_value, load_config, save_config
from .errors import (
    FilterError,
    GitCommandError,
    NetworkError,
    PreconditionError,
    ReplayConflictError,
    SubsyncError,
    SyncPointAmbiguityWarning,
)
from .git import Git, find_git_root
from .history_filter import FilterRepo
from .models import Classification, CommitRecord, SyncOutcome, SyncPoint, SyncReport
from .state import SyncState
