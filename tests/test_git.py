"""Tests for the git subprocess wrapper."""

import subprocess
from unittest.mock import Mock, call, patch

import pytest

from gitref.exceptions import GitError, GitNotInstalledError
from gitref.git import GitClient


def _completed(stdout=""):
    return Mock(stdout=stdout)


def _failure(args, stderr="fatal: boom"):
    return subprocess.CalledProcessError(128, args, output="", stderr=stderr)


@pytest.fixture
def run():
    with patch("gitref.git.subprocess.run") as mock_run:
        mock_run.return_value = _completed()
        yield mock_run


@pytest.fixture
def git():
    return GitClient()


class TestRun:
    """Tests for command execution and error mapping."""

    def test_returns_stripped_stdout(self, run, git):
        run.return_value = _completed("abc123\n")
        assert git.current_revision("/repo") == "abc123"
        run.assert_called_once_with(
            ["git", "rev-parse", "HEAD"],
            cwd="/repo",
            capture_output=True,
            text=True,
            check=True,
        )

    def test_failure_includes_stderr(self, run, git):
        run.side_effect = _failure(["git", "pull"], stderr="fatal: no remote\n")
        with pytest.raises(GitError) as exc_info:
            git.pull("/repo")
        assert exc_info.value.message == "Failed to pull in /repo\n  fatal: no remote"
        assert exc_info.value.stderr == "fatal: no remote"
        assert exc_info.value.command == ["git", "pull"]

    def test_missing_executable(self, run):
        run.side_effect = FileNotFoundError("git")
        with pytest.raises(GitNotInstalledError):
            GitClient("not-git").current_branch("/repo")


class TestClone:
    """Tests for GitClient.clone."""

    def test_shallow_branch_clone(self, run, git):
        git.clone("https://h/o/r.git", "/dest", branch="dev", depth=1)
        args = run.call_args.args[0]
        assert args == [
            "git",
            "clone",
            "--depth",
            "1",
            "--branch",
            "dev",
            "https://h/o/r.git",
            "/dest",
        ]
        assert run.call_args.kwargs["cwd"] is None

    def test_full_clone(self, run, git):
        git.clone("https://h/o/r.git", "/dest")
        assert run.call_args.args[0] == ["git", "clone", "https://h/o/r.git", "/dest"]

    def test_failure_message(self, run, git):
        run.side_effect = _failure(["git", "clone"], stderr="")
        with pytest.raises(GitError, match="Failed to clone https://h/o/r.git"):
            git.clone("https://h/o/r.git", "/dest")


class TestRemoteUpdates:
    """Tests for GitClient.has_remote_updates."""

    def test_behind_tracking_branch(self, run, git):
        run.side_effect = [_completed(), _completed("main"), _completed("3")]
        assert git.has_remote_updates("/repo") is True
        assert run.call_args.args[0] == [
            "git",
            "rev-list",
            "HEAD..origin/main",
            "--count",
        ]

    def test_up_to_date(self, run, git):
        run.side_effect = [_completed(), _completed("main"), _completed("0")]
        assert git.has_remote_updates("/repo") is False

    def test_falls_back_to_origin_head(self, run, git):
        """Test a missing tracking branch is compared with origin/HEAD."""
        run.side_effect = [
            _completed(),
            _completed("feature"),
            _failure(["git", "rev-list"]),
            _completed("1"),
        ]
        assert git.has_remote_updates("/repo") is True
        assert run.call_args.args[0][2] == "HEAD..origin/HEAD"

    def test_no_comparison_possible(self, run, git):
        run.side_effect = [
            _completed(),
            _completed("main"),
            _failure(["git", "rev-list"]),
            _failure(["git", "rev-list"]),
        ]
        assert git.has_remote_updates("/repo") is False


class TestBranches:
    """Tests for branch related helpers."""

    def test_checkout_widens_fetch_refspec(self, run, git):
        git.checkout("/repo", "dev")
        commands = [c.args[0][1:] for c in run.call_args_list]
        assert commands == [
            ["config", "remote.origin.fetch", "+refs/heads/*:refs/remotes/origin/*"],
            ["fetch", "origin", "dev"],
            ["checkout", "dev"],
        ]

    def test_checkout_failure_has_hint(self, run, git):
        run.side_effect = [_completed(), _failure(["git", "fetch"])]
        with pytest.raises(GitError) as exc_info:
            git.checkout("/repo", "nope")
        assert exc_info.value.message == "Git command failed: git checkout nope"
        assert 'Branch "nope" may not exist' in exc_info.value.hints[0]

    def test_list_remote_branches(self, run, git):
        run.return_value = _completed(
            "  origin/HEAD -> origin/main\n  origin/main\n  origin/dev\n"
        )
        assert git.list_remote_branches("/repo") == ["main", "dev"]

    def test_remote_url(self, run, git):
        run.return_value = _completed("https://h/o/r.git\n")
        assert git.remote_url("/repo") == "https://h/o/r.git"
        assert run.call_args == call(
            ["git", "remote", "get-url", "origin"],
            cwd="/repo",
            capture_output=True,
            text=True,
            check=True,
        )

    def test_is_git_repo(self, run, git):
        assert git.is_git_repo("/repo") is True
        run.side_effect = _failure(["git", "rev-parse"])
        assert git.is_git_repo("/elsewhere") is False
