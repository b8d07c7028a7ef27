"""Sync pipeline: one linear run from prerequisite checks to a rewritten branch.

Each stage returns a :class:`StageResult`. A :class:`SubsyncError` raised by a
stage is turned into a fatal result that ends the run; nothing is retried.
The pipeline never exits the process; callers map the returned
:class:`SyncReport` to an exit status.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Callable
from contextlib import ExitStack

from ..core.classify import classify_local_commits, find_sync_point
from ..core.config import SyncSettings
from ..core.errors import (
    PreconditionError,
    ReplayConflictError,
    SubsyncError,
    SyncPointAmbiguityWarning,
)
from ..core.git import Git
from ..core.history_filter import INSTALL_HINT
from ..core.models import (
    CommitRecord,
    StageResult,
    StageStatus,
    SyncOutcome,
    SyncPoint,
    SyncPointMethod,
    SyncReport,
)
from ..core.state import SyncState
from .filtered import filtered_upstream
from .replay import replay

logger = logging.getLogger(__name__)

STAGES = [
    ("prerequisites", "Checking prerequisites"),
    ("fetch", "Fetching upstream"),
    ("sync-point", "Finding sync point"),
    ("new-commits", "Listing new upstream commits"),
    ("classify", "Identifying local commits to preserve"),
    ("filter", "Creating filtered upstream history"),
    ("replay", "Replaying local commits onto upstream"),
]

StageCallback = Callable[[StageResult], None]


def check_prerequisites(
    git: Git,
    filter_tool,
    settings: SyncSettings,
    state: SyncState,
    dry_run: bool = False,
) -> StageResult:
    if not filter_tool.is_available():
        raise PreconditionError("git-filter-repo is not installed", hint=INSTALL_HINT)

    if git.remote_url(settings.remote) is None:
        raise PreconditionError(
            f"Remote '{settings.remote}' not found",
            hint=f"Add with: git remote add {settings.remote} <upstream-url>",
        )

    if state.pending_replay is not None:
        raise PreconditionError(
            "A previous replay stopped on a conflict",
            hint="Resolve it and run 'subsync continue', or run 'subsync abort'",
        )

    if not dry_run:
        branch = git.current_branch()
        if branch != settings.local_branch:
            raise PreconditionError(
                f"Branch '{settings.local_branch}' must be checked out (current: {branch or 'detached HEAD'})",
                hint=f"git checkout {settings.local_branch}",
            )
        if not git.is_clean():
            raise PreconditionError(
                "Working tree has uncommitted changes",
                hint="Commit or stash them before syncing",
            )

    return StageResult("prerequisites", StageStatus.OK, "Prerequisites satisfied")


def fetch_upstream(git: Git, settings: SyncSettings) -> StageResult:
    git.fetch(settings.remote)
    tip = git.rev_parse(settings.upstream_ref)
    if tip is None:
        raise PreconditionError(
            f"Upstream branch '{settings.upstream_ref}' not found after fetch",
            hint="Check upstream.branch in the configuration",
        )
    return StageResult("fetch", StageStatus.OK, f"{settings.upstream_ref} at {tip[:12]}", value=tip)


def resolve_sync_point(
    git: Git,
    settings: SyncSettings,
    state: SyncState,
    upstream_log: list[CommitRecord],
) -> StageResult:
    """Prefer the recorded last-synced commit; fall back to summary matching.

    The recorded commit is only used while the filtered commit that run rebuilt
    the branch on is still contained in the downstream branch.
    """
    recorded = state.last_synced_upstream if settings.use_recorded_state else None
    if recorded:
        sha = git.rev_parse(recorded)
        base = git.rev_parse(state.last_synced_base) if state.last_synced_base else None
        if sha is None or not git.is_ancestor(sha, settings.upstream_ref):
            logger.info("Recorded sync point %s is not in %s; matching by summary", recorded, settings.upstream_ref)
        elif base is None or not git.is_ancestor(base, settings.local_branch):
            logger.info("Last sync is no longer contained in %s; matching by summary", settings.local_branch)
        else:
            commit = git.log(sha, limit=1)[0]
            point = SyncPoint(commit=commit, method=SyncPointMethod.RECORDED)
            return StageResult("sync-point", StageStatus.OK, f"Recorded sync point {commit.short_sha}", value=point)

    local_log = git.log(settings.local_branch, path=settings.path)
    point = find_sync_point(local_log, upstream_log, settings.summary_pattern, settings.fallback_depth)

    if point.is_heuristic:
        message = (
            f"Could not find a matching upstream commit; using the oldest of the last "
            f"{settings.fallback_depth} upstream commits ({point.commit.short_sha}). Verify manually."
        )
        warnings.warn(message, SyncPointAmbiguityWarning, stacklevel=2)
        logger.warning(message)
        return StageResult("sync-point", StageStatus.WARNING, message, value=point)

    return StageResult(
        "sync-point",
        StageStatus.OK,
        f"Last synced upstream commit: {point.commit.short_sha} {point.commit.summary}",
        value=point,
    )


def list_new_commits(git: Git, settings: SyncSettings, point: SyncPoint) -> StageResult:
    commits = git.log(f"{point.commit.sha}..{settings.upstream_ref}", path=settings.path, reverse=True)
    if not commits:
        return StageResult("new-commits", StageStatus.OK, "Already up to date", value=commits)
    return StageResult("new-commits", StageStatus.OK, f"Found {len(commits)} new commit(s) to sync", value=commits)


def classify_stage(git: Git, settings: SyncSettings, upstream_log: list[CommitRecord]) -> StageResult:
    local_log = git.log(
        settings.local_branch,
        path=settings.path if settings.local_scan_path_only else None,
        limit=settings.local_scan_depth,
        no_merges=True,
    )
    classification = classify_local_commits(local_log, (c.summary for c in upstream_log))
    return StageResult(
        "classify",
        StageStatus.OK,
        f"Found {len(classification.local_only)} local commit(s) to preserve",
        value=classification,
    )


class _Run:
    """Drives stages, records their results and notifies the caller."""

    def __init__(self, report: SyncReport, on_stage: StageCallback | None):
        self.report = report
        self.on_stage = on_stage

    def stage(self, name: str, fn, *args, **kwargs):
        try:
            result = fn(*args, **kwargs)
        except SubsyncError as exc:
            result = StageResult(name, StageStatus.FATAL, str(exc), hint=exc.hint)
            self._record(result)
            raise
        self._record(result)
        if result.status is StageStatus.WARNING:
            self.report.warnings.append(result.message)
        return result.value

    def skip(self, name: str, message: str) -> None:
        self._record(StageResult(name, StageStatus.SKIPPED, message))

    def _record(self, result: StageResult) -> None:
        self.report.stages.append(result)
        if self.on_stage is not None:
            self.on_stage(result)


def run_sync(
    git: Git,
    filter_tool,
    settings: SyncSettings,
    state: SyncState,
    dry_run: bool = False,
    on_stage: StageCallback | None = None,
) -> SyncReport:
    report = SyncReport()
    run = _Run(report, on_stage)

    with ExitStack() as stack:
        try:
            run.stage("prerequisites", check_prerequisites, git, filter_tool, settings, state, dry_run)
            run.stage("fetch", fetch_upstream, git, settings)

            upstream_log: list[CommitRecord] = []

            def sync_point_stage() -> StageResult:
                upstream_log.extend(git.log(settings.upstream_ref, path=settings.path))
                return resolve_sync_point(git, settings, state, upstream_log)

            report.sync_point = run.stage("sync-point", sync_point_stage)
            report.new_commits = run.stage("new-commits", list_new_commits, git, settings, report.sync_point)

            if not report.new_commits:
                report.outcome = SyncOutcome.UP_TO_DATE
                return report

            report.classification = run.stage("classify", classify_stage, git, settings, upstream_log)

            if dry_run:
                run.skip("filter", "Dry run: no clone, filter or rewrite")
                run.skip("replay", "Dry run: branch left untouched")
                report.outcome = SyncOutcome.DRY_RUN
                return report

            url = settings.url or git.remote_url(settings.remote)
            upstream = run.stage("filter", _enter_filtered, stack, git, filter_tool, url, settings)
            backup, tip = run.stage(
                "replay",
                _replay_stage,
                git,
                state,
                settings,
                upstream.tip,
                report.classification.local_only,
                upstream.source_tip,
            )
            report.backup_branch = backup
            report.new_tip = tip
            state.record_sync(upstream.source_tip, backup, filtered_tip=upstream.tip)
            report.outcome = SyncOutcome.SYNCED
        except ReplayConflictError as exc:
            report.outcome = SyncOutcome.CONFLICT
            report.backup_branch = exc.backup_branch
            report.error = exc
        except SubsyncError as exc:
            report.outcome = SyncOutcome.FAILED
            report.error = exc

    return report


def _enter_filtered(stack: ExitStack, git: Git, filter_tool, url: str, settings: SyncSettings) -> StageResult:
    upstream = stack.enter_context(
        filtered_upstream(
            git,
            filter_tool,
            url,
            settings.upstream_branch,
            settings.path,
            settings.filtered_remote_name,
        )
    )
    return StageResult("filter", StageStatus.OK, f"Filtered upstream tip {upstream.tip[:12]}", value=upstream)


def _replay_stage(
    git: Git,
    state: SyncState,
    settings: SyncSettings,
    target: str,
    local_only: list[CommitRecord],
    upstream_tip: str,
) -> StageResult:
    backup, tip = replay(
        git,
        state,
        target,
        local_only,
        local_branch=settings.local_branch,
        backup_prefix=settings.backup_prefix,
        upstream_tip=upstream_tip,
    )
    if local_only:
        message = f"Replayed {len(local_only)} local commit(s); backup branch {backup}"
    else:
        message = f"Reset to filtered upstream; backup branch {backup}"
    return StageResult("replay", StageStatus.OK, message, value=(backup, tip))
