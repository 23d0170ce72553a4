"""Git helpers for pplx-agent."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from pplx_agent.security import filter_env_vars

logger = logging.getLogger(__name__)

MAX_DIFF_BYTES = 5 * 1024 * 1024


@dataclass
class GitCommitResult:
    """Result of staging and committing."""

    success: bool
    commit_hash: str | None = None
    files_staged: int = 0
    error: str | None = None


class GitRepo:
    """Thin wrapper over the ``git`` executable, run from the project root.

    Read helpers return an empty string when the root is not a repository or
    git is unavailable.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _run_git(self, *args: str) -> subprocess.CompletedProcess[str]:
        try:
            return subprocess.run(
                ["git", *args],
                cwd=self.root,
                capture_output=True,
                text=True,
                check=False,
                env=filter_env_vars(include_prefixes=["GIT_"]),
            )
        except FileNotFoundError:
            logger.debug("git executable not found")
            return subprocess.CompletedProcess(["git", *args], 127, "", "git not found")

    def is_git_repo(self) -> bool:
        """Check if the root is inside a git work tree."""
        return self._run_git("rev-parse", "--is-inside-work-tree").returncode == 0

    def _output(self, *args: str) -> str:
        result = self._run_git(*args)
        if result.returncode != 0:
            return ""
        return result.stdout

    def status(self) -> str:
        return self._output("status", "--short")

    def diff(self) -> str:
        return self._output("diff")[:MAX_DIFF_BYTES]

    def log(self, count: int = 5) -> str:
        return self._output("log", f"-{count}", "--pretty=format:%h - %s (%cr) <%an>")

    def _stage_all(self) -> int:
        """Stage all changes and return count of staged files."""
        self._run_git("add", "-A")
        result = self._run_git("diff", "--cached", "--name-only")
        return len([f for f in result.stdout.strip().splitlines() if f])

    def commit_all(self, message: str) -> GitCommitResult:
        """Stage everything and commit with ``message``."""
        if not self.status().strip():
            return GitCommitResult(success=True, files_staged=0)
        staged = self._stage_all()
        result = self._run_git("commit", "-m", message)
        if result.returncode != 0:
            error = result.stderr.strip() or "git commit failed"
            logger.warning("git commit failed", extra={"error": error})
            return GitCommitResult(success=False, files_staged=staged, error=error)
        commit_hash = self._output("rev-parse", "--short", "HEAD").strip() or None
        return GitCommitResult(success=True, commit_hash=commit_hash, files_staged=staged)
