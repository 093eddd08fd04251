"""
Loading source snapshots and enumerating target documents.

- GitRevisionLoader: reads the source file at two revisions with ``git show``
- FileSnapshotLoader: treats two plain files as the two snapshots
- GlobTargetEnumerator: expands the target glob minus the exclusion glob

These are the only places the pipeline touches git history or the file
system layout; the pipeline accepts any object with the same methods.
"""

from __future__ import annotations

import glob
import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Optional, Union

from locsync.errors import DocumentIOError, RevisionNotFound, SyncError
from locsync.tree import JsonTree


logger = logging.getLogger(__name__)


class GitRevisionLoader:
    """Read a JSON file as it was at given git revisions."""

    def __init__(self, repo_dir: Optional[Union[str, Path]] = None):
        self.repo_dir = Path(repo_dir) if repo_dir else Path.cwd()

    def read_revision(self, path: str, revision: str) -> str:
        """Return the raw content of ``path`` at ``revision``.

        Raises:
            RevisionNotFound: If git cannot resolve the revision or the file
            SyncError: If git is not available
        """
        rel = Path(path)
        if rel.is_absolute():
            rel = Path(os.path.relpath(rel, self.repo_dir))
        object_name = f"{revision}:./{rel.as_posix()}"
        try:
            proc = subprocess.run(
                ["git", "show", object_name],
                cwd=self.repo_dir,
                capture_output=True,
                text=True,
                encoding="utf-8",
            )
        except FileNotFoundError as e:
            raise SyncError("git executable not found") from e
        if proc.returncode != 0:
            raise RevisionNotFound(path, revision, proc.stderr.strip())
        return proc.stdout

    def load_revision(self, path: str, revision: str) -> JsonTree:
        content = self.read_revision(path, revision)
        try:
            return JsonTree.loads(content)
        except ValueError as e:
            raise SyncError(f"{path} at {revision} is not valid JSON: {e}") from e

    def load(self, path: str, base: str, head: str) -> tuple[JsonTree, JsonTree]:
        """Return (before, after) snapshots of ``path``."""
        logger.info("Loading %s at %s and %s", path, base, head)
        return self.load_revision(path, base), self.load_revision(path, head)


class FileSnapshotLoader:
    """Two files on disk standing in for two revisions of one document."""

    def load(self, before: Union[str, Path], after: Union[str, Path]) -> tuple[JsonTree, JsonTree]:
        return self._read(before), self._read(after)

    @staticmethod
    def _read(path: Union[str, Path]) -> JsonTree:
        try:
            return JsonTree.load(path)
        except OSError as e:
            raise SyncError(f"Cannot read {path}: {e}") from e
        except ValueError as e:
            raise SyncError(f"{path} is not valid JSON: {e}") from e


class GlobTargetEnumerator:
    """Resolve the target file pattern into a sorted list of files."""

    def __init__(self, root: Optional[Union[str, Path]] = None):
        self.root = str(root) if root else None

    def _glob(self, pattern: str) -> set[str]:
        matches = glob.glob(pattern, root_dir=self.root, recursive=True)
        return {os.path.normpath(m) for m in matches}

    def enumerate(self, pattern: str, exclude: Optional[str] = None) -> list[str]:
        files = self._glob(pattern)
        if exclude:
            excluded = self._glob(exclude)
            if excluded & files:
                logger.debug("Excluding %d file(s) matching %s", len(excluded & files), exclude)
            files -= excluded
        if self.root:
            files = {os.path.join(self.root, f) for f in files}
        return sorted(f for f in files if os.path.isfile(f))


def read_document(path: Union[str, Path]) -> JsonTree:
    """Load a target document; any failure is a DocumentIOError."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise DocumentIOError(f"Cannot read {path}: {e}") from e
    try:
        return JsonTree.loads(text)
    except (ValueError, TypeError) as e:
        raise DocumentIOError(f"{path} is not valid JSON: {e}") from e


def write_document(path: Union[str, Path], tree: JsonTree) -> None:
    """Write ``tree`` to ``path`` through a temporary file in the same directory.

    The temporary file replaces the target in one ``os.replace`` call, so a
    failed write leaves the previous document intact.
    """
    path = Path(path)
    tmp_name = None
    try:
        mode = path.stat().st_mode & 0o777 if path.exists() else None
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False,
        ) as tf:
            tmp_name = tf.name
            tf.write(tree.dumps())
        if mode is not None:
            os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise DocumentIOError(f"Cannot write {path}: {e}") from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
