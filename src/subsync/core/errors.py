"""Error taxonomy for sync runs."""

from __future__ import annotations


class SubsyncError(RuntimeError):
    """Base class for fatal sync failures. ``hint`` is a remediation line for the operator."""

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.hint = hint


class PreconditionError(SubsyncError):
    """A required tool, remote, branch or repository state is missing."""


class NetworkError(SubsyncError):
    """Fetching or cloning the upstream failed."""


class FilterError(SubsyncError):
    """git-filter-repo failed on the disposable clone."""


class GitCommandError(SubsyncError):
    def __init__(self, args: list[str], returncode: int, stderr: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or f"exit status {returncode}"
        super().__init__(f"git {' '.join(args)} failed: {detail}")


class ReplayConflictError(SubsyncError):
    """A cherry-pick stopped on a conflict; the working tree is left as git left it."""

    def __init__(self, commit, backup_branch: str, remaining: list | None = None, in_progress: bool = True):
        self.commit = commit
        self.backup_branch = backup_branch
        self.remaining = list(remaining or [])
        self.in_progress = in_progress
        if in_progress:
            message = f"Conflict while cherry-picking {commit.short_sha} ({commit.summary})"
        else:
            message = f"Could not cherry-pick {commit.short_sha} ({commit.summary}); git left no conflict to resolve"
        super().__init__(message, hint=f"git reset --hard {backup_branch}")


class SyncPointAmbiguityWarning(UserWarning):
    """The sync point came from the bounded heuristic and needs manual verification."""
