"""Shared fixtures: real temporary upstream/downstream repos and a fake history filter."""

from __future__ import annotations

import subprocess

import pytest

from subsync.core.config import SyncSettings
from subsync.core.errors import FilterError


def _git(repo, *args) -> str:
    result = subprocess.run(
        ["git", "-C", str(repo), *args],
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


def _init(repo, branch: str) -> None:
    repo.mkdir()
    subprocess.run(["git", "init", "-b", branch, str(repo)], check=True, capture_output=True)
    _git(repo, "config", "user.email", "test@test.com")
    _git(repo, "config", "user.name", "Test")
    _git(repo, "config", "commit.gpgsign", "false")


def _commit_file(repo, relpath: str, content: str, message: str) -> str:
    path = repo / relpath
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    _git(repo, "add", relpath)
    _git(repo, "commit", "-m", message)
    return _git(repo, "rev-parse", "HEAD")


LIB_V1 = "line1\nline2\nline3\n"
LIB_V2 = "line1 fixed X\nline2\nline3\n"
LIB_V3 = "line1 fixed X\nline2\nline3 fixed Y\n"


class RecordingFilter:
    """Stands in for git-filter-repo; the upstream fixture only touches CryptoPkg/ so no rewrite is needed."""

    def __init__(self, available: bool = True, fail: bool = False):
        self.available = available
        self.fail = fail
        self.calls: list[tuple[str, str]] = []

    def is_available(self) -> bool:
        return self.available

    def filter_path(self, workdir: str, path: str) -> None:
        self.calls.append((workdir, path))
        if self.fail:
            raise FilterError("git-filter-repo failed: simulated")


@pytest.fixture
def git():
    """Run a git command in a repo and return stripped stdout."""
    return _git


@pytest.fixture
def commit_file():
    """Factory: write a file, commit it and return the new HEAD sha."""
    return _commit_file


@pytest.fixture
def git_repo(tmp_path):
    """Create a real git repo in a temp directory."""
    repo = tmp_path / "repo"
    _init(repo, "main")
    _git(repo, "commit", "--allow-empty", "-m", "init")
    return repo


@pytest.fixture
def upstream_repo(tmp_path):
    """Upstream with two CryptoPkg commits on master."""
    repo = tmp_path / "upstream"
    _init(repo, "master")
    _commit_file(repo, "CryptoPkg/Lib.c", LIB_V1, "CryptoPkg: initial import")
    _commit_file(repo, "CryptoPkg/Lib.c", LIB_V2, "CryptoPkg: fix X")
    return repo


@pytest.fixture
def downstream_repo(tmp_path, upstream_repo):
    """Downstream mirroring upstream's two commits plus one local-only commit, remote 'edk2' configured."""
    repo = tmp_path / "downstream"
    _init(repo, "main")
    _commit_file(repo, "CryptoPkg/Lib.c", LIB_V1, "CryptoPkg: initial import")
    _commit_file(repo, "CryptoPkg/Lib.c", LIB_V2, "CryptoPkg: fix X")
    _commit_file(repo, "build.sh", "#!/bin/sh\nmake\n", "Add build support")
    _git(repo, "remote", "add", "edk2", str(upstream_repo))
    return repo


@pytest.fixture
def fake_filter():
    return RecordingFilter()


@pytest.fixture
def settings():
    return SyncSettings(
        remote="edk2",
        upstream_branch="master",
        local_branch="main",
        path="CryptoPkg/",
        summary_pattern="^CryptoPkg",
    )


@pytest.fixture
def isolated_global_config(tmp_path, monkeypatch):
    """Isolate global config to temp dir."""
    config_path = tmp_path / "global_subsync" / "config.toml"
    monkeypatch.setattr("subsync.core.config._GLOBAL_CONFIG_PATH", config_path)
    return config_path


@pytest.fixture
def make_filter():
    """Factory for filters that are unavailable or fail."""
    return RecordingFilter
