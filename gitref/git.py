"""Thin wrapper around the git command line."""

import logging
import subprocess
from pathlib import Path
from typing import Optional, Union

from .exceptions import GitError, GitNotInstalledError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

REMOTE_NAME = "origin"


class GitClient:
    """Runs git subprocesses against local repositories.

    Every method either returns the command's (stripped) stdout or raises
    :class:`GitError`. Network timeouts are left to git itself.
    """

    def __init__(self, executable: str = "git"):
        """Initialize git client.

        Args:
            executable: Name or path of the git binary
        """
        self.executable = executable

    def _run(
        self,
        args: list[str],
        cwd: Optional[PathLike] = None,
        error_message: Optional[str] = None,
    ) -> str:
        """Run a git command and return its stdout.

        Args:
            args: Arguments after the git executable
            cwd: Working directory for the command
            error_message: Message for the raised GitError on failure

        Returns:
            Command output with surrounding whitespace stripped
        """
        command = [self.executable, *args]
        logger.debug(f"Running: {' '.join(command)} (cwd={cwd})")
        try:
            completed = subprocess.run(
                command,
                cwd=str(cwd) if cwd is not None else None,
                capture_output=True,
                text=True,
                check=True,
            )
        except FileNotFoundError as e:
            raise GitNotInstalledError(
                f"Git executable not found: {self.executable}", command=command
            ) from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            message = error_message or f"Git command failed: {' '.join(command)}"
            if stderr:
                message = f"{message}\n  {stderr}"
            raise GitError(message, command=command, stderr=stderr) from e
        return completed.stdout.strip()

    def clone(
        self,
        url: str,
        dest: PathLike,
        branch: Optional[str] = None,
        depth: Optional[int] = None,
    ) -> None:
        """Clone a repository.

        Args:
            url: Remote URL
            dest: Destination directory
            branch: Branch to check out after cloning
            depth: Create a shallow clone with this many commits
        """
        args = ["clone"]
        if depth:
            args += ["--depth", str(depth)]
        if branch:
            args += ["--branch", branch]
        args += [url, str(dest)]
        self._run(
            args,
            error_message=f"Failed to clone {url}",
        )

    def pull(self, path: PathLike) -> None:
        self._run(["pull"], cwd=path, error_message=f"Failed to pull in {path}")

    def fetch(self, path: PathLike) -> None:
        self._run(["fetch"], cwd=path, error_message=f"Failed to fetch in {path}")

    def current_revision(self, path: PathLike) -> str:
        """Get the full SHA of HEAD."""
        return self._run(["rev-parse", "HEAD"], cwd=path)

    def current_branch(self, path: PathLike) -> str:
        return self._run(["rev-parse", "--abbrev-ref", "HEAD"], cwd=path)

    def remote_url(self, path: PathLike) -> str:
        return self._run(["remote", "get-url", REMOTE_NAME], cwd=path)

    def is_git_repo(self, path: PathLike) -> bool:
        try:
            self._run(["rev-parse", "--git-dir"], cwd=path)
        except GitError:
            return False
        return True

    def has_remote_updates(self, path: PathLike) -> bool:
        """Fetch and check whether the remote branch is ahead of HEAD.

        Falls back to ``origin/HEAD`` when the tracking branch is missing,
        and reports no updates if neither comparison works.
        """
        self.fetch(path)
        branch = self.current_branch(path)
        for upstream in (f"{REMOTE_NAME}/{branch}", f"{REMOTE_NAME}/HEAD"):
            try:
                count = self._run(
                    ["rev-list", f"HEAD..{upstream}", "--count"], cwd=path
                )
            except GitError as e:
                logger.debug(f"Cannot compare HEAD with {upstream}: {e}")
                continue
            try:
                return int(count) > 0
            except ValueError:
                return False
        return False

    def checkout(self, path: PathLike, branch: str) -> None:
        """Switch a (possibly shallow) clone to another branch.

        The fetch refspec is widened first so branches not present in a
        shallow single-branch clone can be fetched.
        """
        hint = (
            f'Branch "{branch}" may not exist. '
            "Use 'git branch -r' to list available branches."
        )
        try:
            self._run(
                [
                    "config",
                    f"remote.{REMOTE_NAME}.fetch",
                    f"+refs/heads/*:refs/remotes/{REMOTE_NAME}/*",
                ],
                cwd=path,
            )
            self._run(["fetch", REMOTE_NAME, branch], cwd=path)
            self._run(["checkout", branch], cwd=path)
        except GitNotInstalledError:
            raise
        except GitError as e:
            raise GitError(
                f"Git command failed: git checkout {branch}",
                command=e.command,
                stderr=e.stderr,
                hints=[hint],
            ) from e

    def list_remote_branches(self, path: PathLike) -> list[str]:
        """List remote branch names without the ``origin/`` prefix."""
        output = self._run(["branch", "-r"], cwd=path)
        prefix = f"{REMOTE_NAME}/"
        branches = []
        for line in output.splitlines():
            line = line.strip()
            if not line or "->" in line:
                continue
            branches.append(line[len(prefix) :] if line.startswith(prefix) else line)
        return branches
