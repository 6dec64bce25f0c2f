"""Shared fixtures for gitref tests."""

from pathlib import Path
from unittest.mock import Mock

import pytest

from gitref.exceptions import GitError
from gitref.git import GitClient

FIRST_REVISION = "a" * 40
SECOND_REVISION = "b" * 40


@pytest.fixture
def gitref_home(tmp_path, monkeypatch):
    """Point all global gitref state at a temporary directory."""
    home = tmp_path / "gitref-home"
    monkeypatch.setenv("GITREF_HOME", str(home))
    return home


@pytest.fixture
def workspace_root(tmp_path):
    """Create an empty workspace directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def fake_git():
    """Mock git client whose clone writes a small repository to disk.

    ``fake_git.revisions`` maps clone paths to their current revision, so
    tests can simulate upstream changes by editing it.
    """
    git = Mock(spec=GitClient)
    revisions: dict[str, str] = {}

    def clone(url, dest, branch=None, depth=None):
        dest = Path(dest)
        (dest / ".git").mkdir(parents=True)
        (dest / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
        (dest / "README.md").write_text(f"# {url}\n")
        (dest / "src").mkdir()
        (dest / "src" / "lib.py").write_text("VALUE = 1\n")
        revisions[str(dest)] = FIRST_REVISION

    def current_revision(path):
        try:
            return revisions[str(path)]
        except KeyError:
            raise GitError(f"Not a git repository: {path}") from None

    git.clone.side_effect = clone
    git.current_revision.side_effect = current_revision
    git.current_branch.return_value = "main"
    git.has_remote_updates.return_value = False
    git.revisions = revisions
    return git
