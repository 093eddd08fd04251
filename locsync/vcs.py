"""
Optional commit-and-push of translated files.

Mirrors what a CI job does after a sync run: commit as a bot user on the
configured branch, skip the commit when git sees no change, push otherwise.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional, Sequence, Union

from locsync.errors import VcsError


logger = logging.getLogger(__name__)

BOT_NAME = "github-actions[bot]"
BOT_EMAIL = "github-actions[bot]@users.noreply.github.com"
COMMIT_MESSAGE = "chore: Auto-translate JSON files"


class GitCommitter:
    """Stage, commit and push a list of files."""

    def __init__(self, repo_dir: Optional[Union[str, Path]] = None):
        self.repo_dir = Path(repo_dir) if repo_dir else Path.cwd()

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        try:
            proc = subprocess.run(
                ["git", *args],
                cwd=self.repo_dir,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise VcsError("git executable not found") from e
        if check and proc.returncode != 0:
            raise VcsError(f"git {' '.join(args)} failed: {proc.stderr.strip()}")
        return proc

    def commit_and_push(
        self,
        files: Sequence[str],
        branch: str,
        message: str = COMMIT_MESSAGE,
    ) -> bool:
        """Commit ``files`` on ``branch`` and push.

        Returns:
            True if a commit was pushed, False if there was nothing to commit

        Raises:
            VcsError: If any git command fails
        """
        if not files:
            logger.info("Commit requested, but no files were modified.")
            return False

        self._git("config", "user.name", BOT_NAME)
        self._git("config", "user.email", BOT_EMAIL)
        logger.info("Checking out %s", branch)
        self._git("checkout", branch)
        self._git("add", "--", *files)

        if self._git("diff-index", "--quiet", "HEAD", "--", check=False).returncode == 0:
            logger.info("No actual changes detected to commit.")
            return False

        self._git("commit", "-m", message)
        self._git("push")
        logger.info("Committed and pushed %d translated file(s).", len(files))
        return True
