"""git-filter-repo collaborator: rewrites a disposable clone down to one sub-path."""

from __future__ import annotations

import logging
import shutil
import subprocess

from .errors import FilterError, PreconditionError

logger = logging.getLogger(__name__)

INSTALL_HINT = "Install with: pip install git-filter-repo"


class FilterRepo:
    executable = "git-filter-repo"

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def filter_path(self, workdir: str, path: str) -> None:
        """Keep only ``path`` in the clone at ``workdir``. Destructive and irreversible."""
        if not self.is_available():
            raise PreconditionError(f"{self.executable} is not installed", hint=INSTALL_HINT)
        logger.debug("%s --path %s --force (cwd=%s)", self.executable, path, workdir)
        result = subprocess.run(
            [self.executable, "--path", path, "--force"],
            cwd=workdir,
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            raise FilterError(f"git-filter-repo failed: {result.stderr.strip() or result.returncode}")
