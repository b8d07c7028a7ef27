"""Disposable filtered clone of the upstream, wired in as a temporary remote."""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..core.errors import FilterError
from ..core.git import Git
from ..core.models import FilteredUpstream

logger = logging.getLogger(__name__)


@contextmanager
def filtered_upstream(
    git: Git,
    filter_tool,
    url: str,
    branch: str,
    path: str,
    remote_name: str,
) -> Iterator[FilteredUpstream]:
    """Clone ``url`` into a temp dir, filter it to ``path`` and fetch it as ``remote_name``.

    The temporary remote and directory are removed on every exit path,
    including KeyboardInterrupt. Objects fetched from it stay in the
    repository, so the yielded ``tip`` remains usable afterwards.
    """
    workdir = tempfile.mkdtemp(prefix="subsync-")
    clone_dir = str(Path(workdir) / "filtered")
    remote_added = False
    try:
        logger.info("Cloning %s (%s) into %s", url, branch, clone_dir)
        git.clone(url, clone_dir, branch)
        source_tip = git.run(["rev-parse", "HEAD"], cwd=clone_dir).stdout.strip()

        logger.info("Filtering clone to %s", path)
        filter_tool.filter_path(clone_dir, path)

        git.add_remote(remote_name, clone_dir)
        remote_added = True
        git.fetch(remote_name)

        ref = f"refs/remotes/{remote_name}/{branch}"
        tip = git.rev_parse(ref)
        if tip is None:
            raise FilterError(f"Filtered history has no branch '{branch}'")

        yield FilteredUpstream(remote=remote_name, ref=ref, tip=tip, source_tip=source_tip, workdir=workdir)
    finally:
        if remote_added:
            git.remove_remote(remote_name)
        shutil.rmtree(workdir, ignore_errors=True)
        logger.debug("Removed temporary clone %s", workdir)
