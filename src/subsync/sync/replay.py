"""Backup, reset and cherry-pick replay of local-only commits."""

from __future__ import annotations

import logging
from datetime import datetime

from ..core.errors import PreconditionError, ReplayConflictError, SubsyncError
from ..core.git import Git
from ..core.models import CommitRecord, ReplayPlan
from ..core.state import SyncState

logger = logging.getLogger(__name__)


def backup_branch_name(git: Git, prefix: str, now: datetime | None = None) -> str:
    """``<prefix>-YYYYmmdd-HHMMSS``, suffixed when a branch of that name already exists."""
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    name = f"{prefix}-{stamp}"
    candidate = name
    n = 1
    while git.rev_parse(f"refs/heads/{candidate}") is not None:
        candidate = f"{name}-{n}"
        n += 1
    return candidate


def replay(
    git: Git,
    state: SyncState,
    target: str,
    commits: list[CommitRecord],
    local_branch: str,
    backup_prefix: str,
    upstream_tip: str | None = None,
) -> tuple[str, str]:
    """Back up HEAD, reset it to ``target`` and cherry-pick ``commits`` oldest-first.

    Returns ``(backup_branch, new_tip)``. Raises :class:`ReplayConflictError`
    with the working tree left mid-cherry-pick when a pick fails.
    """
    backup = backup_branch_name(git, backup_prefix)
    git.create_branch(backup, "HEAD")
    logger.info("Created backup branch %s", backup)

    git.reset_hard(target)

    plan = ReplayPlan(
        backup_branch=backup,
        local_branch=local_branch,
        target=target,
        upstream_tip=upstream_tip,
        pending=list(commits),
    )
    _apply(git, state, plan)
    return backup, git.rev_parse("HEAD") or target


def _apply(git: Git, state: SyncState, plan: ReplayPlan) -> None:
    while plan.pending:
        commit = plan.pending[0]
        logger.info("Cherry-picking %s %s", commit.short_sha, commit.summary)
        if not git.cherry_pick(commit.sha):
            plan.current = commit
            plan.pending = plan.pending[1:]
            state.set_pending_replay(plan)
            raise ReplayConflictError(
                commit, plan.backup_branch, plan.pending, in_progress=git.cherry_pick_in_progress()
            )
        plan.pending.pop(0)


def continue_replay(git: Git, state: SyncState) -> tuple[ReplayPlan, str]:
    """Finish the halted cherry-pick and replay the remaining commits."""
    plan = state.pending_replay
    if plan is None:
        raise PreconditionError("No halted replay to continue", hint="Run: subsync sync")

    _require_branch(git, plan)

    if git.cherry_pick_in_progress():
        if git.unmerged_paths():
            raise ReplayConflictError(plan.current or CommitRecord("", ""), plan.backup_branch, plan.pending)
        if git.has_staged_changes():
            if not git.cherry_pick_continue():
                raise SubsyncError("git cherry-pick --continue failed", hint="Resolve the cherry-pick by hand")
        else:
            logger.info("Resolved cherry-pick is empty, skipping it")
            git.cherry_pick_skip()
    elif plan.current is not None:
        head = git.log("HEAD", limit=1)
        if not head or head[0].summary != plan.current.summary:
            raise PreconditionError(
                f"{plan.current.short_sha} ({plan.current.summary}) was never applied",
                hint=f"Apply it by hand (git cherry-pick {plan.current.sha}) and rerun, or run: subsync abort",
            )

    plan.current = None
    _apply(git, state, plan)
    state.record_sync(plan.upstream_tip, plan.backup_branch, filtered_tip=plan.target)
    return plan, git.rev_parse("HEAD") or plan.target


def abort_replay(git: Git, state: SyncState) -> str:
    """Drop the halted replay and reset to its backup branch. Returns the backup name."""
    plan = state.pending_replay
    if plan is None:
        raise PreconditionError("No halted replay to abort")

    _require_branch(git, plan)

    if git.cherry_pick_in_progress():
        git.cherry_pick_abort()
    git.reset_hard(plan.backup_branch)
    state.set_pending_replay(None)
    logger.info("Reset to %s", plan.backup_branch)
    return plan.backup_branch


def _require_branch(git: Git, plan: ReplayPlan) -> None:
    branch = git.current_branch()
    if branch != plan.local_branch:
        raise PreconditionError(
            f"Expected branch '{plan.local_branch}' to be checked out, found '{branch}'",
            hint=f"git checkout {plan.local_branch}",
        )
