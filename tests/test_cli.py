"""Tests for the grf command line interface."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from gitref import __version__
from gitref.cli import main
from gitref.exceptions import GitError

SECOND_REVISION = "b" * 40

WIDGETS_URL = "https://github.com/acme/widgets.git"
DEFAULT_TARGET = ".gitreference/github.com/acme/widgets"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def git_client(fake_git):
    """Make every command use the fake git client."""
    with patch("gitref.cli.GitClient", return_value=fake_git):
        yield fake_git


@pytest.fixture
def cwd(runner, tmp_path, gitref_home, git_client):
    """Run commands from an empty workspace directory."""
    with runner.isolated_filesystem(temp_dir=tmp_path) as path:
        yield Path(path)


def _add(runner, url=WIDGETS_URL):
    result = runner.invoke(main, ["add", url])
    assert result.exit_code == 0, result.output
    return result


def _new_upstream_revision(gitref_home, fake_git):
    clone = gitref_home / "repos" / "github.com" / "acme" / "widgets"
    (clone / "README.md").write_text("# updated\n")
    fake_git.revisions[str(clone)] = SECOND_REVISION


class TestMain:
    """Tests for the command group."""

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert f"grf, version {__version__}" in result.output

    def test_help_lists_commands(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("add", "list", "clean", "load", "unload", "update", "config"):
            assert command in result.output

    def test_verbose(self, runner, cwd):
        result = runner.invoke(main, ["-v", "list"])
        assert result.exit_code == 0


class TestAddCommand:
    """Tests for grf add."""

    def test_add(self, runner, cwd):
        result = _add(runner)
        assert "Repository added successfully!" in result.output
        assert "github.com/acme/widgets" in result.output

    def test_invalid_url(self, runner, cwd, git_client):
        result = runner.invoke(main, ["add", "not-a-url"])
        assert result.exit_code == 1
        assert "Invalid Git URL format" in result.output
        git_client.clone.assert_not_called()

    def test_duplicate(self, runner, cwd):
        _add(runner)
        result = runner.invoke(main, ["add", WIDGETS_URL])
        assert result.exit_code == 1
        assert "Repository already exists: github.com/acme/widgets" in result.output
        assert "grf update" in result.output

    def test_clone_options(self, runner, cwd, git_client):
        """Test --depth and --no-shallow reach the clone call."""
        runner.invoke(main, ["add", WIDGETS_URL, "--depth", "3"])
        assert git_client.clone.call_args.kwargs["depth"] == 3

        runner.invoke(
            main, ["add", "https://github.com/acme/gadgets.git", "--no-shallow"]
        )
        assert git_client.clone.call_args.kwargs["depth"] is None

    def test_clone_failure(self, runner, cwd, git_client):
        git_client.clone.side_effect = GitError("Repository not found upstream")
        result = runner.invoke(main, ["add", WIDGETS_URL])
        assert result.exit_code == 1
        assert "Repository not found upstream" in result.output

    def test_json(self, runner, cwd):
        result = runner.invoke(
            main, ["--json", "add", WIDGETS_URL, "--name", "widgets"]
        )
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["name"] == "widgets"
        assert data["url"] == WIDGETS_URL


class TestListCommand:
    """Tests for grf list."""

    def test_empty(self, runner, cwd):
        result = runner.invoke(main, ["list"])
        assert result.exit_code == 0
        assert "No repositories found." in result.output

    def test_lists_repositories(self, runner, cwd):
        _add(runner)
        result = runner.invoke(main, ["list"])
        assert result.exit_code == 0
        assert "github.com/acme/widgets" in result.output
        assert "Total: 1 repository" in result.output

    def test_json(self, runner, cwd):
        _add(runner)
        _add(runner, "https://github.com/acme/gadgets.git")
        result = runner.invoke(main, ["--json", "list"])
        names = [item["name"] for item in json.loads(result.output)]
        assert names == ["github.com/acme/gadgets", "github.com/acme/widgets"]


class TestCleanCommand:
    """Tests for grf clean."""

    def test_requires_name_or_all(self, runner, cwd):
        result = runner.invoke(main, ["clean"])
        assert result.exit_code == 1
        assert "Specify a repository name or --all" in result.output

    def test_remove_by_short_name(self, runner, cwd, gitref_home):
        _add(runner)
        result = runner.invoke(main, ["clean", "widgets", "--force"])
        assert result.exit_code == 0
        assert "Removed github.com/acme/widgets" in result.output
        assert not (gitref_home / "repos" / "github.com").exists()

    def test_confirmation_declined(self, runner, cwd):
        _add(runner)
        result = runner.invoke(main, ["clean", "widgets"], input="n\n")
        assert "Operation cancelled." in result.output
        assert "github.com/acme/widgets" in runner.invoke(main, ["list"]).output

    def test_not_found(self, runner, cwd):
        result = runner.invoke(main, ["clean", "nothing", "--force"])
        assert result.exit_code == 1
        assert "Repository not found: nothing" in result.output

    def test_ambiguous_prompts_for_choice(self, runner, cwd):
        """Test the user picks one of several matches."""
        _add(runner, "https://github.com/vuejs/core.git")
        _add(runner, "https://gitlab.com/acme/core.git")
        result = runner.invoke(main, ["clean", "core"], input="2\ny\n")
        assert result.exit_code == 0, result.output
        assert "Found 2 entries matching 'core'" in result.output
        assert "Removed gitlab.com/acme/core" in result.output

    def test_ambiguous_with_force_fails(self, runner, cwd):
        _add(runner, "https://github.com/vuejs/core.git")
        _add(runner, "https://gitlab.com/acme/core.git")
        result = runner.invoke(main, ["clean", "core", "--force"])
        assert result.exit_code == 1
        assert "- github.com/vuejs/core" in result.output
        assert "- gitlab.com/acme/core" in result.output

    def test_warns_when_still_loaded(self, runner, cwd):
        _add(runner)
        runner.invoke(main, ["load", "widgets"])
        result = runner.invoke(main, ["clean", "widgets", "--force"])
        assert result.exit_code == 0
        assert "still loaded in 1 location(s)" in result.output
        assert (cwd / DEFAULT_TARGET / "README.md").exists()

    def test_all(self, runner, cwd):
        _add(runner)
        _add(runner, "https://github.com/acme/gadgets.git")
        result = runner.invoke(main, ["clean", "--all", "--force"])
        assert result.exit_code == 0
        assert "Clean Complete" in result.output
        assert "No repositories found." in runner.invoke(main, ["list"]).output


class TestLoadCommand:
    """Tests for grf load."""

    def test_load_url(self, runner, cwd):
        """Test loading a URL that is not cached yet."""
        result = runner.invoke(main, ["load", WIDGETS_URL])
        assert result.exit_code == 0, result.output
        assert "Repository copied successfully!" in result.output
        assert (cwd / DEFAULT_TARGET / "README.md").exists()
        assert ".gitreference/" in (cwd / ".gitignore").read_text()

    def test_load_custom_path_without_ignore(self, runner, cwd):
        _add(runner)
        result = runner.invoke(
            main, ["load", "widgets", "vendor/widgets", "--no-ignore"]
        )
        assert result.exit_code == 0
        assert (cwd / "vendor" / "widgets" / "src" / "lib.py").exists()
        assert not (cwd / ".gitignore").exists()

    def test_subdir(self, runner, cwd):
        _add(runner)
        result = runner.invoke(main, ["load", "widgets", "lib", "--subdir", "src"])
        assert result.exit_code == 0
        assert (cwd / "lib" / "lib.py").exists()

    def test_unknown(self, runner, cwd):
        result = runner.invoke(main, ["load", "nope"])
        assert result.exit_code == 1
        assert "Repository not found: nope" in result.output
        assert "grf add <url>" in result.output

    def test_json(self, runner, cwd):
        _add(runner)
        result = runner.invoke(main, ["--json", "load", "widgets", "vendor/w"])
        data = json.loads(result.output)
        assert data["target_path"] == "vendor/w"
        assert data["working_directory"] == str(cwd.resolve())


class TestUnloadCommand:
    """Tests for grf unload."""

    @pytest.fixture
    def loaded(self, runner, cwd):
        result = runner.invoke(main, ["load", WIDGETS_URL])
        assert result.exit_code == 0, result.output

    def test_requires_argument(self, runner, cwd):
        result = runner.invoke(main, ["unload"])
        assert result.exit_code == 1
        assert "Specify a name, --all, --list or --clean-empty" in result.output

    def test_list_empty(self, runner, cwd):
        result = runner.invoke(main, ["unload", "--list"])
        assert "No loaded reference code." in result.output

    def test_list(self, runner, cwd, loaded):
        result = runner.invoke(main, ["--json", "unload", "--list"])
        records = json.loads(result.output)
        assert [r["target_path"] for r in records] == [DEFAULT_TARGET]

    def test_unload(self, runner, cwd, loaded):
        result = runner.invoke(main, ["unload", "widgets", "--force"])
        assert result.exit_code == 0, result.output
        expected = f"Unloaded github.com/acme/widgets from {DEFAULT_TARGET}"
        assert expected in result.output
        assert not (cwd / ".gitreference").exists()

    def test_confirmation_declined(self, runner, cwd, loaded):
        result = runner.invoke(main, ["unload", "widgets"], input="n\n")
        assert "Operation cancelled." in result.output
        assert (cwd / DEFAULT_TARGET).exists()

    def test_dry_run(self, runner, cwd, loaded):
        result = runner.invoke(main, ["unload", "widgets", "--dry-run"])
        assert result.exit_code == 0
        assert "(Dry run mode, no actual deletion)" in result.output
        assert (cwd / DEFAULT_TARGET).exists()

    def test_not_found(self, runner, cwd, loaded):
        result = runner.invoke(main, ["unload", "nothing", "--force"])
        assert result.exit_code == 1
        assert "No matching reference code found: nothing" in result.output

    def test_all(self, runner, cwd, loaded):
        runner.invoke(main, ["load", "widgets", "vendor/widgets"])
        dry = runner.invoke(main, ["unload", "--all", "--dry-run"])
        assert "Would unload 2 loaded entry(ies):" in dry.output

        result = runner.invoke(main, ["unload", "--all", "--force"])
        assert result.exit_code == 0
        assert "Unload Complete" in result.output
        assert not (cwd / "vendor").exists()
        assert not (cwd / ".gitreference").exists()

    def test_clean_empty(self, runner, cwd):
        (cwd / ".gitreference" / "a" / "b").mkdir(parents=True)
        result = runner.invoke(main, ["unload", "--clean-empty", "--force"])
        assert result.exit_code == 0
        assert "Found 2 empty directories:" in result.output
        assert "Removed 3 empty directories" in result.output
        assert not (cwd / ".gitreference").exists()


class TestUpdateCommand:
    """Tests for grf update."""

    def test_no_repositories(self, runner, cwd):
        result = runner.invoke(main, ["update"])
        assert result.exit_code == 0
        assert "No repositories found." in result.output

    def test_up_to_date(self, runner, cwd):
        _add(runner)
        result = runner.invoke(main, ["update"])
        assert result.exit_code == 0
        assert "github.com/acme/widgets: up-to-date (aaaaaaa)" in result.output
        assert "Update Complete" in result.output

    def test_check(self, runner, cwd, git_client):
        _add(runner)
        git_client.has_remote_updates.return_value = True
        result = runner.invoke(main, ["update", "--check"])
        assert result.exit_code == 0
        assert "updates available" in result.output
        assert "Check Complete" in result.output
        git_client.pull.assert_not_called()

    def test_refresh_error_exits_nonzero(self, runner, cwd, git_client):
        _add(runner)
        git_client.has_remote_updates.side_effect = GitError("network down")
        result = runner.invoke(main, ["update"])
        assert result.exit_code == 1
        assert "github.com/acme/widgets: network down" in result.output

    def test_unknown_name(self, runner, cwd):
        result = runner.invoke(main, ["update", "nothing"])
        assert result.exit_code == 1
        assert "Repository not found: nothing" in result.output

    def test_status(self, runner, cwd, gitref_home, git_client):
        """Test drift is shown per loaded target."""
        runner.invoke(main, ["load", WIDGETS_URL])
        _new_upstream_revision(gitref_home, git_client)
        result = runner.invoke(main, ["--json", "update", "--status"])
        statuses = json.loads(result.output)
        assert statuses[0]["target_path"] == DEFAULT_TARGET
        assert statuses[0]["needs_sync"] is True

    def test_sync_only(self, runner, cwd, gitref_home, git_client):
        runner.invoke(main, ["load", WIDGETS_URL])
        _new_upstream_revision(gitref_home, git_client)

        dry = runner.invoke(main, ["update", "--sync-only", "--dry-run"])
        assert "[Dry run] Would sync:" in dry.output
        assert (cwd / DEFAULT_TARGET / "README.md").read_text() != "# updated\n"

        result = runner.invoke(main, ["update", "--sync-only"])
        assert result.exit_code == 0, result.output
        assert "Synced aaaaaaa -> bbbbbbb" in result.output
        assert (cwd / DEFAULT_TARGET / "README.md").read_text() == "# updated\n"

    def test_update_and_sync(self, runner, cwd, gitref_home, git_client):
        """Test pulling new commits and syncing them in one step."""
        runner.invoke(main, ["load", WIDGETS_URL])
        git_client.has_remote_updates.return_value = True
        git_client.pull.side_effect = lambda path: _new_upstream_revision(
            gitref_home, git_client
        )

        result = runner.invoke(main, ["update", "--sync"])
        assert result.exit_code == 0, result.output
        assert "updated aaaaaaa -> bbbbbbb" in result.output
        assert "Synced aaaaaaa -> bbbbbbb" in result.output
        assert (cwd / DEFAULT_TARGET / "README.md").read_text() == "# updated\n"

    def test_sync_failure_exits_nonzero(self, runner, cwd, gitref_home):
        """Test a record whose cache was removed fails the sync."""
        runner.invoke(main, ["load", WIDGETS_URL])
        runner.invoke(main, ["clean", "widgets", "--force"])
        result = runner.invoke(main, ["update", "--sync-only"])
        assert result.exit_code == 1
        assert "Cached repository not found" in result.output


class TestConfigCommand:
    """Tests for grf config."""

    def test_show_all(self, runner, cwd):
        result = runner.invoke(main, ["config"])
        assert result.exit_code == 0
        assert "shallow_depth" in result.output
        assert "default_branch" in result.output

    def test_set_and_get(self, runner, cwd, gitref_home):
        result = runner.invoke(main, ["config", "shallow_depth", "3"])
        assert result.exit_code == 0
        assert "Set shallow_depth = 3" in result.output
        assert runner.invoke(main, ["config", "shallow_depth"]).output.strip() == "3"
        assert (gitref_home / "config" / "shallow_depth.json").exists()

    def test_invalid_value(self, runner, cwd):
        result = runner.invoke(main, ["config", "shallow_clone", "maybe"])
        assert result.exit_code == 1
        assert "shallow_clone must be true or false" in result.output

    def test_unknown_key(self, runner, cwd):
        result = runner.invoke(main, ["config", "colour"])
        assert result.exit_code == 1
        assert "Unknown configuration key: colour" in result.output

    def test_path(self, runner, cwd, gitref_home):
        result = runner.invoke(main, ["config", "--path"])
        assert result.output.strip() == str(gitref_home / "config")
