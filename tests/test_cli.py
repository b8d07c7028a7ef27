"""Tests for CLI commands using Typer's CliRunner."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from subsync.cli import app, config_cmds, status_cmds, sync_cmds
from subsync.core.config import save_config
from subsync.core.errors import PreconditionError, ReplayConflictError
from subsync.core.git import Git
from subsync.core.models import (
    Classification,
    CommitRecord,
    ReplayPlan,
    StageResult,
    StageStatus,
    SyncOutcome,
    SyncPoint,
    SyncPointMethod,
    SyncReport,
)
from subsync.core.state import SyncState

runner = CliRunner()

FIX_X = CommitRecord("a" * 40, "CryptoPkg: fix X")
FIX_Y = CommitRecord("b" * 40, "CryptoPkg: fix Y")
BUILD = CommitRecord("c" * 40, "Add build support")


def _report(outcome: SyncOutcome, **kwargs) -> SyncReport:
    report = SyncReport(
        outcome=outcome,
        sync_point=SyncPoint(FIX_X, SyncPointMethod.SUMMARY),
        new_commits=[FIX_Y],
        classification=Classification(local_only=[BUILD], synced=[FIX_X]),
    )
    for key, value in kwargs.items():
        setattr(report, key, value)
    return report


@pytest.fixture
def in_repo(git_repo, isolated_global_config, monkeypatch):
    monkeypatch.chdir(git_repo)
    with patch("subsync.core.git.find_git_root", return_value=str(git_repo)):
        yield git_repo


class TestNotInRepo:
    @patch("subsync.core.git.find_git_root", return_value=None)
    def test_sync_outside_repo(self, _mock):
        result = runner.invoke(app, ["sync"])
        assert result.exit_code == 1
        assert "Not in a git repository" in result.output

    @patch("subsync.core.git.find_git_root", return_value=None)
    def test_status_outside_repo(self, _mock):
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 1


class TestSyncCommand:
    @patch("subsync.sync.pipeline.run_sync")
    def test_synced(self, mock_run, in_repo):
        mock_run.return_value = _report(
            SyncOutcome.SYNCED, backup_branch="backup-before-sync-20261019-080503", new_tip="d" * 40
        )
        result = runner.invoke(app, ["sync"])

        assert result.exit_code == 0
        assert "=== Sync Complete ===" in result.output
        assert "fix Y" in result.output
        assert "Local commit to preserve" in result.output
        assert "git push origin main --force-with-lease" in result.output
        assert "git reset --hard backup-before-sync-20261019-080503" in result.output

    @patch("subsync.sync.pipeline.run_sync")
    def test_up_to_date(self, mock_run, in_repo):
        mock_run.return_value = _report(SyncOutcome.UP_TO_DATE, new_commits=[], classification=None)
        result = runner.invoke(app, ["sync"])

        assert result.exit_code == 0
        assert "Already up to date!" in result.output

    @patch("subsync.sync.pipeline.run_sync")
    def test_dry_run_flag_is_passed(self, mock_run, in_repo):
        mock_run.return_value = _report(SyncOutcome.DRY_RUN)
        result = runner.invoke(app, ["sync", "--dry-run"])

        assert result.exit_code == 0
        assert "DRY RUN MODE" in result.output
        assert "Dry run complete" in result.output
        assert mock_run.call_args.kwargs["dry_run"] is True

    @patch("subsync.sync.pipeline.run_sync")
    def test_options_override_config(self, mock_run, in_repo):
        mock_run.return_value = _report(SyncOutcome.UP_TO_DATE, new_commits=[])
        args = ["sync", "--remote", "tianocore", "--upstream-branch", "stable", "--branch", "trunk", "--path", "MdePkg/"]
        result = runner.invoke(app, args)

        assert result.exit_code == 0
        settings = mock_run.call_args.args[2]
        assert settings.upstream_ref == "tianocore/stable"
        assert settings.local_branch == "trunk"
        assert settings.path == "MdePkg/"

    @patch("subsync.sync.pipeline.run_sync")
    def test_conflict_exits_nonzero(self, mock_run, in_repo):
        error = ReplayConflictError(BUILD, "backup-before-sync-20261019-080503")
        mock_run.return_value = _report(SyncOutcome.CONFLICT, error=error, backup_branch=error.backup_branch)
        result = runner.invoke(app, ["sync"])

        assert result.exit_code == 1
        assert "subsync continue" in result.output
        assert "subsync abort" in result.output
        assert "backup-before-sync-20261019-080503" in result.output

    @patch("subsync.sync.pipeline.run_sync")
    def test_failure_prints_hint(self, mock_run, in_repo):
        error = PreconditionError("Remote 'edk2' not found", hint="Add with: git remote add edk2 <upstream-url>")
        mock_run.return_value = SyncReport(outcome=SyncOutcome.FAILED, error=error)
        result = runner.invoke(app, ["sync"])

        assert result.exit_code == 1
        assert "Sync failed" in result.output
        assert "git remote add edk2" in result.output

    @patch("subsync.sync.pipeline.run_sync")
    def test_fatal_hint_printed_once(self, mock_run, in_repo):
        hint = "Add with: git remote add edk2 <upstream-url>"
        error = PreconditionError("Remote 'edk2' not found", hint=hint)

        def fake_run(git, filter_tool, settings, state, dry_run=False, on_stage=None):
            on_stage(StageResult("prerequisites", StageStatus.FATAL, str(error), hint=hint))
            return SyncReport(outcome=SyncOutcome.FAILED, stages=[], error=error)

        mock_run.side_effect = fake_run
        result = runner.invoke(app, ["sync"])

        assert result.exit_code == 1
        assert result.output.count("git remote add edk2") == 1

    @patch("subsync.sync.pipeline.run_sync")
    def test_failed_pick_without_conflict(self, mock_run, in_repo):
        error = ReplayConflictError(BUILD, "backup-before-sync-20261019-080503", in_progress=False)
        mock_run.return_value = _report(SyncOutcome.CONFLICT, error=error, backup_branch=error.backup_branch)
        result = runner.invoke(app, ["sync"])

        assert result.exit_code == 1
        assert BUILD.sha in result.output
        assert "Please resolve manually" not in result.output
        assert "cherry-pick --continue works too" not in result.output


class TestDefaultInvocation:
    @patch("subsync.sync.pipeline.run_sync")
    def test_no_command_runs_sync(self, mock_run, in_repo):
        mock_run.return_value = _report(SyncOutcome.UP_TO_DATE, new_commits=[])
        result = runner.invoke(app, [])

        assert result.exit_code == 0
        assert mock_run.called
        assert mock_run.call_args.kwargs["dry_run"] is False

    @patch("subsync.sync.pipeline.run_sync")
    def test_top_level_dry_run(self, mock_run, in_repo):
        mock_run.return_value = _report(SyncOutcome.DRY_RUN)
        result = runner.invoke(app, ["--dry-run"])

        assert result.exit_code == 0
        assert mock_run.call_args.kwargs["dry_run"] is True

    @patch("subsync.sync.pipeline.run_sync")
    def test_subcommand_does_not_trigger_sync(self, mock_run, in_repo):
        result = runner.invoke(app, ["backups"])
        assert result.exit_code == 0
        assert not mock_run.called


class TestContinueAbort:
    def test_continue_without_stopped_replay(self, in_repo):
        result = runner.invoke(app, ["continue"])
        assert result.exit_code == 1
        assert "No halted replay" in result.output

    def test_abort_without_stopped_replay(self, in_repo):
        result = runner.invoke(app, ["abort"])
        assert result.exit_code == 1
        assert "No halted replay" in result.output

    @patch("subsync.sync.replay.continue_replay")
    def test_continue_success(self, mock_continue, in_repo):
        plan = ReplayPlan("backup-before-sync-x", "main", "a" * 40, "b" * 40)
        mock_continue.return_value = (plan, "e" * 40)
        result = runner.invoke(app, ["continue"])

        assert result.exit_code == 0
        assert "=== Sync Complete ===" in result.output
        assert "backup-before-sync-x" in result.output

    @patch("subsync.sync.replay.abort_replay", return_value="backup-before-sync-x")
    def test_abort_success(self, _mock, in_repo):
        result = runner.invoke(app, ["abort"])
        assert result.exit_code == 0
        assert "backup-before-sync-x" in result.output


class TestStatusCommands:
    def test_status_fresh_repo(self, in_repo):
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "never" in result.output

    def test_status_shows_stopped_replay(self, in_repo):
        state = SyncState.for_git_dir(Git(in_repo).git_dir())
        state.set_pending_replay(
            ReplayPlan("backup-before-sync-x", "main", "a" * 40, "b" * 40, current=BUILD, pending=[])
        )
        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "Commits Remaining" in result.output

    def test_backups_empty(self, in_repo):
        result = runner.invoke(app, ["backups"])
        assert result.exit_code == 0
        assert "No backup branches" in result.output

    def test_backups_lists_branches(self, in_repo, git):
        git(in_repo, "branch", "backup-before-sync-20261019-080503")
        git(in_repo, "branch", "unrelated")
        result = runner.invoke(app, ["backups"])

        assert result.exit_code == 0
        assert "backup-before-sync-20261019-080503" in result.output
        assert "unrelated" not in result.output


class TestDoctor:
    @patch("subsync.core.history_filter.FilterRepo.is_available", return_value=False)
    def test_missing_tool_and_remote(self, _mock, in_repo):
        result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 1
        assert "git-filter-repo" in result.output
        assert "Remote 'edk2' not found" in result.output

    @patch("subsync.core.history_filter.FilterRepo.is_available", return_value=True)
    def test_warnings_only(self, _mock, in_repo, git, upstream_repo):
        git(in_repo, "remote", "add", "edk2", str(upstream_repo))
        result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 0
        assert "WARN:" in result.output
        assert "not fetched yet" in result.output

    @patch("subsync.core.history_filter.FilterRepo.is_available", return_value=True)
    def test_all_checks_pass(self, _mock, in_repo, git, upstream_repo):
        git(in_repo, "remote", "add", "edk2", str(upstream_repo))
        git(in_repo, "fetch", "-q", "edk2")
        result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 0
        assert "All checks passed" in result.output


class TestDisplayColor:
    @pytest.fixture
    def colorless(self, in_repo, monkeypatch):
        for console in (sync_cmds.console, status_cmds.console, config_cmds.console):
            monkeypatch.setattr(console, "no_color", False)
        save_config(str(in_repo), "display.color", "false")
        return in_repo

    def test_status_honours_color_setting(self, colorless):
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert status_cmds.console.no_color is True

    def test_config_honours_color_setting(self, colorless):
        result = runner.invoke(app, ["config", "upstream.remote"])
        assert result.exit_code == 0
        assert config_cmds.console.no_color is True
