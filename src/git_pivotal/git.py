"""Git repository operations."""

import time
from pathlib import Path
from typing import Optional, Tuple

from git import GitCommandError, GitCommandNotFound, InvalidGitRepositoryError, NoSuchPathError, Repo

from git_pivotal.errors import PivotalError
from git_pivotal.logger import get_logger

logger = get_logger("git")


class GitError(PivotalError):
    """Git operation error."""


class CommandFailure(GitError):
    """A git command exited with a non-zero status."""

    def __init__(self, command: str, exit_code: int, stderr: str) -> None:
        """Initialize error.

        Args:
            command: The command line that was run
            exit_code: Process exit status
            stderr: Captured standard error
        """
        super().__init__(f"Command <{command}> failed with status code:{exit_code}.\nstderr:\n{stderr.strip()}")
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr


class CommandTimeout(GitError):
    """A git command did not finish within its time limit."""

    def __init__(self, command: str, timeout: float) -> None:
        super().__init__(f"Command <{command}> did not complete within {timeout:g}s")
        self.command = command
        self.timeout = timeout


class GitRepo:
    """Git repository operations."""

    def __init__(self, path: Path) -> None:
        """Initialize repository."""
        try:
            self.repo: Repo = Repo(path)
            if self.repo.bare:
                raise GitError("Cannot operate on bare repository")
        except (GitCommandError, ValueError, InvalidGitRepositoryError, NoSuchPathError) as err:
            raise GitError(f"Failed to open repository: {err}") from err

    def run(self, *args: str, timeout: Optional[float] = None) -> Tuple[str, str]:
        """Run a git command in the repository.

        Args:
            *args: Arguments following ``git``
            timeout: Seconds after which the command is killed

        Returns:
            A tuple of (stdout, stderr).

        Raises:
            CommandFailure: If the command exits non-zero
            CommandTimeout: If the command was killed after ``timeout``
        """
        command = " ".join(["git", *args])
        logger.debug("run: %s", command)
        started = time.monotonic()
        try:
            status, stdout, stderr = self.repo.git.execute(
                [self.repo.git.GIT_PYTHON_GIT_EXECUTABLE, *args],
                with_extended_output=True,
                with_exceptions=False,
                kill_after_timeout=timeout,
            )
        except GitCommandNotFound as err:
            raise CommandFailure(command, 127, str(err)) from err

        if status != 0:
            if timeout is not None and time.monotonic() - started >= timeout:
                raise CommandTimeout(command, timeout)
            raise CommandFailure(command, status, stderr)
        return stdout, stderr

    def get_config(self, section: str, timeout: Optional[float] = None) -> dict[str, str]:
        """Get all config values under ``section`` keyed by their name within it."""
        try:
            stdout, _ = self.run("config", "--get-regexp", f"^{section}\\.", timeout=timeout)
        except CommandFailure as err:
            # Status 1 means no key matched
            if err.exit_code == 1:
                return {}
            raise

        values: dict[str, str] = {}
        for line in stdout.splitlines():
            words = line.strip().split(None, 1)
            if len(words) != 2:
                continue
            key, value = words
            values[key[len(section) + 1 :]] = value
        return values

    def get_current_branch_name(self) -> str:
        """Get current branch name."""
        stdout, _ = self.run("rev-parse", "--abbrev-ref", "HEAD")
        return stdout.strip()

    def create_branch(self, name: str) -> str:
        """Create a branch from HEAD and switch to it. Returns git's output."""
        stdout, stderr = self.run("checkout", "-b", name)
        return "\n".join(part for part in (stdout.strip(), stderr.strip()) if part)

    def checkout(self, name: str) -> None:
        """Switch to an existing branch."""
        self.run("checkout", name)

    def list_branches(self, pattern: str) -> list[str]:
        """List local branches matching a glob pattern."""
        stdout, _ = self.run("branch", "--list", "--format=%(refname:short)", pattern)
        return [line.strip() for line in stdout.splitlines() if line.strip()]

    def delete_branches(self, names: list[str]) -> None:
        """Delete local branches in a single command."""
        if not names:
            return
        # Always use -D since finished story branches are often unmerged locally
        self.run("branch", "-D", *names)
