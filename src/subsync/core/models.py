"""Transient records derived from git log queries on each run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class CommitRecord:
    sha: str
    summary: str

    @property
    def short_sha(self) -> str:
        return self.sha[:12]

    @classmethod
    def from_log_line(cls, line: str) -> CommitRecord:
        # Format: <sha> <summary>
        sha, _, summary = line.partition(" ")
        return cls(sha=sha.strip(), summary=summary)

    def to_dict(self) -> dict:
        return {"sha": self.sha, "summary": self.summary}

    @classmethod
    def from_dict(cls, data: dict) -> CommitRecord:
        return cls(sha=data["sha"], summary=data.get("summary", ""))


class SyncPointMethod(str, Enum):
    RECORDED = "recorded"
    SUMMARY = "summary"
    HEURISTIC = "heuristic"


@dataclass(frozen=True)
class SyncPoint:
    commit: CommitRecord
    method: SyncPointMethod
    matched_summary: str | None = None

    @property
    def is_heuristic(self) -> bool:
        return self.method is SyncPointMethod.HEURISTIC


@dataclass
class Classification:
    """Partition of the scanned local log, both halves oldest-first."""

    local_only: list[CommitRecord] = field(default_factory=list)
    synced: list[CommitRecord] = field(default_factory=list)


@dataclass(frozen=True)
class FilteredUpstream:
    remote: str
    ref: str
    tip: str
    source_tip: str
    workdir: str


@dataclass
class ReplayPlan:
    """A replay halted on a conflict, persisted so it can be resumed or aborted."""

    backup_branch: str
    local_branch: str
    target: str
    upstream_tip: str | None
    current: CommitRecord | None = None
    pending: list[CommitRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "backup_branch": self.backup_branch,
            "local_branch": self.local_branch,
            "target": self.target,
            "upstream_tip": self.upstream_tip,
            "current": self.current.to_dict() if self.current else None,
            "pending": [c.to_dict() for c in self.pending],
        }

    @classmethod
    def from_dict(cls, data: dict) -> ReplayPlan:
        current = data.get("current")
        return cls(
            backup_branch=data["backup_branch"],
            local_branch=data["local_branch"],
            target=data["target"],
            upstream_tip=data.get("upstream_tip"),
            current=CommitRecord.from_dict(current) if current else None,
            pending=[CommitRecord.from_dict(c) for c in data.get("pending", [])],
        )


class StageStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    FATAL = "fatal"
    SKIPPED = "skipped"


@dataclass
class StageResult:
    stage: str
    status: StageStatus
    message: str = ""
    hint: str | None = None
    value: Any = None


class SyncOutcome(str, Enum):
    UP_TO_DATE = "up_to_date"
    DRY_RUN = "dry_run"
    SYNCED = "synced"
    CONFLICT = "conflict"
    FAILED = "failed"


@dataclass
class SyncReport:
    outcome: SyncOutcome = SyncOutcome.FAILED
    stages: list[StageResult] = field(default_factory=list)
    sync_point: SyncPoint | None = None
    new_commits: list[CommitRecord] = field(default_factory=list)
    classification: Classification | None = None
    backup_branch: str | None = None
    new_tip: str | None = None
    warnings: list[str] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.outcome in (SyncOutcome.UP_TO_DATE, SyncOutcome.DRY_RUN, SyncOutcome.SYNCED)

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1
