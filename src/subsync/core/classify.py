"""Commit classification and sync-point detection over in-memory logs.

All functions here are pure: they take logs as lists of :class:`CommitRecord`
in git's most-recent-first order and never touch the repository.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from .errors import SubsyncError
from .models import Classification, CommitRecord, SyncPoint, SyncPointMethod


def find_sync_point(
    local_log: list[CommitRecord],
    upstream_log: list[CommitRecord],
    summary_pattern: str,
    fallback_depth: int = 50,
) -> SyncPoint:
    """Locate the newest upstream commit already present downstream.

    The newest local commit whose summary matches ``summary_pattern`` is looked
    up by exact summary in ``upstream_log``; the first hit wins. Without a hit,
    the oldest of the newest ``fallback_depth`` upstream commits is returned and
    the point is marked heuristic.

    Two upstream commits sharing a summary are indistinguishable here; the most
    recent one is chosen.
    """
    if not upstream_log:
        raise SubsyncError("Upstream history for the sub-path is empty; nothing to sync against")

    pattern = re.compile(summary_pattern)
    candidate = next((c for c in local_log if pattern.search(c.summary)), None)

    if candidate is not None:
        match = next((u for u in upstream_log if u.summary == candidate.summary), None)
        if match is not None:
            return SyncPoint(commit=match, method=SyncPointMethod.SUMMARY, matched_summary=candidate.summary)

    window = upstream_log[: max(fallback_depth, 1)]
    return SyncPoint(
        commit=window[-1],
        method=SyncPointMethod.HEURISTIC,
        matched_summary=candidate.summary if candidate else None,
    )


def classify_local_commits(
    local_log: list[CommitRecord],
    upstream_summaries: Iterable[str],
) -> Classification:
    """Split ``local_log`` into already-synced and local-only commits.

    A commit is already synced when its summary appears verbatim upstream.
    Both halves come back oldest-first, which is replay order.
    """
    known = set(upstream_summaries)
    result = Classification()
    for commit in reversed(local_log):
        if commit.summary in known:
            result.synced.append(commit)
        else:
            result.local_only.append(commit)
    return result
