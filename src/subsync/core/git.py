"""Thin wrapper over the git command line used by every sync stage."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from .errors import GitCommandError, NetworkError, PreconditionError
from .models import CommitRecord

logger = logging.getLogger(__name__)

# Plumbing queries are bounded; fetch, clone and cherry-pick wait as long as git needs.
QUERY_TIMEOUT = 30

_LOG_FORMAT = "--format=%H %s"


def find_git_root(path: str | Path = ".") -> str | None:
    """Find git repo root from given path."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=str(path),
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass
    return None


class Git:
    """Runs git commands against one repository."""

    def __init__(self, repo_path: str | Path):
        self.repo_path = str(repo_path)

    def run(
        self,
        args: list[str],
        check: bool = True,
        timeout: float | None = QUERY_TIMEOUT,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> subprocess.CompletedProcess:
        logger.debug("git %s (cwd=%s)", " ".join(args), cwd or self.repo_path)
        run_env = None
        if env:
            run_env = os.environ.copy()
            run_env.update(env)
        try:
            result = subprocess.run(
                ["git"] + args,
                cwd=cwd or self.repo_path,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=run_env,
            )
        except FileNotFoundError as exc:
            raise PreconditionError("git is not installed", hint="Install git and make sure it is on PATH") from exc
        except subprocess.TimeoutExpired as exc:
            raise GitCommandError(args, -1, f"timed out after {timeout}s") from exc
        if check and result.returncode != 0:
            raise GitCommandError(args, result.returncode, result.stderr)
        return result

    # -- queries -----------------------------------------------------------

    def git_dir(self) -> Path:
        out = self.run(["rev-parse", "--absolute-git-dir"]).stdout.strip()
        return Path(out)

    def current_branch(self) -> str | None:
        result = self.run(["rev-parse", "--abbrev-ref", "HEAD"], check=False)
        if result.returncode != 0:
            return None
        branch = result.stdout.strip()
        return branch if branch != "HEAD" else None

    def rev_parse(self, ref: str) -> str | None:
        result = self.run(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        result = self.run(["merge-base", "--is-ancestor", ancestor, descendant], check=False)
        return result.returncode == 0

    def remote_url(self, name: str) -> str | None:
        result = self.run(["remote", "get-url", name], check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def is_clean(self) -> bool:
        """True when tracked files have no staged or unstaged changes."""
        result = self.run(["status", "--porcelain", "--untracked-files=no"])
        return not result.stdout.strip()

    def log(
        self,
        ref: str,
        path: str | None = None,
        limit: int | None = None,
        reverse: bool = False,
        no_merges: bool = False,
    ) -> list[CommitRecord]:
        """Return (sha, summary) records for ``ref``, most recent first unless ``reverse``."""
        args = ["log", _LOG_FORMAT]
        if no_merges:
            args.append("--no-merges")
        if limit is not None:
            args.append(f"-n{limit}")
        if reverse:
            args.append("--reverse")
        args.append(ref)
        if path:
            args += ["--", path]
        result = self.run(args, timeout=None)
        return [CommitRecord.from_log_line(line) for line in result.stdout.splitlines() if line.strip()]

    def list_branches(self, pattern: str) -> list[dict]:
        """Local branches matching ``pattern``, newest commit first."""
        result = self.run(
            [
                "for-each-ref",
                "--sort=-committerdate",
                "--format=%(refname:short)%09%(objectname)%09%(committerdate:iso8601)",
                f"refs/heads/{pattern}",
            ]
        )
        branches = []
        for line in result.stdout.splitlines():
            parts = line.split("\t")
            if len(parts) == 3:
                branches.append({"name": parts[0], "sha": parts[1], "date": parts[2]})
        return branches

    def cherry_pick_in_progress(self) -> bool:
        return self.rev_parse("CHERRY_PICK_HEAD") is not None

    def unmerged_paths(self) -> list[str]:
        result = self.run(["diff", "--name-only", "--diff-filter=U"])
        return [line for line in result.stdout.splitlines() if line.strip()]

    def has_staged_changes(self) -> bool:
        result = self.run(["diff", "--cached", "--quiet"], check=False)
        return result.returncode != 0

    # -- network -----------------------------------------------------------

    def fetch(self, remote: str) -> None:
        result = self.run(["fetch", remote], check=False, timeout=None)
        if result.returncode != 0:
            raise NetworkError(
                f"Failed to fetch '{remote}': {result.stderr.strip()}",
                hint=f"Check network access and run: git fetch {remote}",
            )

    def clone(self, url: str, dest: str, branch: str) -> None:
        result = self.run(
            ["clone", "--single-branch", "--branch", branch, url, dest],
            check=False,
            timeout=None,
            cwd=str(Path(dest).parent),
        )
        if result.returncode != 0:
            raise NetworkError(f"Failed to clone {url}: {result.stderr.strip()}")

    # -- mutations ---------------------------------------------------------

    def add_remote(self, name: str, url: str) -> None:
        if self.remote_url(name) is None:
            self.run(["remote", "add", name, url])
        else:
            self.run(["remote", "set-url", name, url])

    def remove_remote(self, name: str) -> None:
        self.run(["remote", "remove", name], check=False)

    def create_branch(self, name: str, start: str) -> None:
        self.run(["branch", name, start])

    def reset_hard(self, target: str) -> None:
        self.run(["reset", "--hard", target])

    def cherry_pick(self, sha: str) -> bool:
        """Apply ``sha`` onto HEAD. False means git stopped and left the conflict in place."""
        result = self.run(["cherry-pick", sha], check=False, timeout=None)
        if result.returncode != 0:
            logger.debug("cherry-pick %s stopped: %s", sha, result.stderr.strip())
            return False
        return True

    def cherry_pick_continue(self) -> bool:
        result = self.run(["cherry-pick", "--continue"], check=False, timeout=None, env={"GIT_EDITOR": "true"})
        return result.returncode == 0

    def cherry_pick_skip(self) -> None:
        self.run(["cherry-pick", "--skip"], timeout=None)

    def cherry_pick_abort(self) -> None:
        self.run(["cherry-pick", "--abort"], check=False)
