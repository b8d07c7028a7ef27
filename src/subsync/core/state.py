"""Durable sync state kept under the repository's git directory."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from .models import ReplayPlan

logger = logging.getLogger(__name__)

STATE_FILENAME = "state.json"


class SyncState:
    """JSON state file at ``<git-dir>/subsync/state.json``.

    Holds the last upstream commit a successful run was built from, the last
    backup branch, and the replay plan of a run halted on a conflict.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.data = self._load()

    @classmethod
    def for_git_dir(cls, git_dir: str | Path) -> SyncState:
        return cls(Path(git_dir) / "subsync" / STATE_FILENAME)

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable state file %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self.data, indent=2) + "\n", encoding="utf-8")

    @property
    def last_synced_upstream(self) -> str | None:
        return self.data.get("last_synced_upstream")

    @property
    def last_synced_at(self) -> str | None:
        return self.data.get("last_synced_at")

    @property
    def last_backup(self) -> str | None:
        return self.data.get("last_backup")

    @property
    def last_synced_base(self) -> str | None:
        """Filtered commit the downstream branch was last rebuilt on."""
        return self.data.get("last_synced_base")

    def record_sync(
        self,
        upstream_tip: str | None,
        backup_branch: str | None,
        filtered_tip: str | None = None,
    ) -> None:
        if upstream_tip:
            self.data["last_synced_upstream"] = upstream_tip
            self.data["last_synced_base"] = filtered_tip
        self.data["last_synced_at"] = datetime.now(timezone.utc).isoformat()
        if backup_branch:
            self.data["last_backup"] = backup_branch
        self.data["pending_replay"] = None
        self.save()

    @property
    def pending_replay(self) -> ReplayPlan | None:
        raw = self.data.get("pending_replay")
        if not raw:
            return None
        try:
            return ReplayPlan.from_dict(raw)
        except (KeyError, TypeError):
            logger.warning("Ignoring malformed pending replay in %s", self.path)
            return None

    def set_pending_replay(self, plan: ReplayPlan | None) -> None:
        self.data["pending_replay"] = plan.to_dict() if plan else None
        if plan:
            self.data["last_backup"] = plan.backup_branch
        self.save()
