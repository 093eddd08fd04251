"""
Synchronization pipeline for locsync.

This module orchestrates one run:
1. Load the source file at the base and head revisions
2. Diff the two snapshots into a ChangeSet (once per run)
3. Enumerate target locale files
4. Apply the ChangeSet to every target, translating changed strings
5. Write back the targets that changed
6. Optionally commit and push them

Failure policy:
- Loading or diffing the source is fatal: every target depends on it
- Anything that goes wrong with one target only marks that target ERRORED
- Individual entries fail independently inside PatchApplier

Concurrency:
- Documents are independent units of work. With ``max_workers`` set they
  run on a thread pool of that size, otherwise one after another. Results are
  always reported in target order.
- ``cancel()`` is cooperative: documents already running finish and stay
  written, documents not yet started are reported as cancelled.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from locsync.config import SyncConfig, normalize_locale
from locsync.diff import StructuralDiffer
from locsync.errors import SyncError
from locsync.models import ChangeSet, EntryOutcome, EntryResult
from locsync.patch import PatchApplier
from locsync.sources import GitRevisionLoader, GlobTargetEnumerator, read_document, write_document
from locsync.translate.base import Translator, create_translator
from locsync.vcs import GitCommitter


logger = logging.getLogger(__name__)

# Type alias for progress callbacks
ProgressCallback = Callable[[str, float], None]


class DocumentStatus(Enum):
    SUCCEEDED = "succeeded"
    ERRORED = "errored"


@dataclass
class DocumentResult:
    """Outcome of synchronizing one target file."""
    path: str
    locale: str
    status: DocumentStatus
    entries: list[EntryResult] = field(default_factory=list)
    modified: bool = False
    error: str = ""

    def count(self, outcome: EntryOutcome) -> int:
        return sum(1 for r in self.entries if r.outcome is outcome)

    @property
    def succeeded(self) -> bool:
        return self.status is DocumentStatus.SUCCEEDED

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "locale": self.locale,
            "status": self.status.value,
            "modified": self.modified,
            "error": self.error,
            "applied": self.count(EntryOutcome.APPLIED),
            "skipped": self.count(EntryOutcome.SKIPPED),
            "failed": self.count(EntryOutcome.FAILED),
            "entries": [r.to_dict() for r in self.entries],
        }


@dataclass
class RunResult:
    """Result of a whole synchronization run."""
    changes: ChangeSet
    documents: list[DocumentResult] = field(default_factory=list)
    committed: bool = False
    cancelled: bool = False

    @property
    def modified_files(self) -> list[str]:
        return [d.path for d in self.documents if d.modified]

    @property
    def attempted(self) -> int:
        return len(self.documents)

    @property
    def errored(self) -> list[DocumentResult]:
        return [d for d in self.documents if not d.succeeded]

    @property
    def success(self) -> bool:
        return not self.errored

    def summary(self) -> str:
        return f"Modified {len(self.modified_files)} of {self.attempted} document(s)"

    def to_dict(self) -> dict:
        return {
            "changes": self.changes.to_dict(),
            "documents": [d.to_dict() for d in self.documents],
            "modified_files": self.modified_files,
            "committed": self.committed,
            "cancelled": self.cancelled,
        }


def locale_for_path(path: str) -> str:
    """Locale code of a target file, taken from its containing directory."""
    return normalize_locale(Path(path).parent.name)


class SyncPipeline:
    """Propagates source changes into every target locale file.

    Usage:
        config = SyncConfig.from_env()
        pipeline = SyncPipeline(config)
        result = pipeline.run()
        print(result.summary())

    The translator, loader, enumerator and committer can be injected, which
    is how tests run the whole pipeline without git or network access.
    """

    def __init__(
        self,
        config: SyncConfig,
        translator: Optional[Translator] = None,
        loader=None,
        enumerator=None,
        committer=None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.config = config
        self.translator = translator or create_translator(
            config.translator_backend,
            api_key=config.api_key,
            timeout=config.timeout,
        )
        self.loader = loader or GitRevisionLoader()
        self.enumerator = enumerator or GlobTargetEnumerator()
        self.committer = committer or GitCommitter()
        self.progress_callback = progress_callback or (lambda msg, pct: None)
        self.differ = StructuralDiffer()
        self.applier = PatchApplier(self.translator)
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Stop starting new documents; running ones are allowed to finish."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def compute_changes(self) -> ChangeSet:
        """Load both source snapshots and diff them.

        Raises:
            RevisionNotFound: If the source file is missing at a revision
            SyncError: If a snapshot cannot be parsed
        """
        cfg = self.config
        before, after = self.loader.load(cfg.source_file, cfg.base_rev, cfg.head_rev)
        changes = self.differ.diff(before, after)
        logger.info("Calculated %d difference(s) %s", len(changes), changes.summary())
        logger.debug("Calculated differences: %s", json.dumps(changes.to_dict(), ensure_ascii=False, indent=2))
        return changes

    def run(self) -> RunResult:
        """Run the complete synchronization.

        Returns:
            RunResult with per-document outcomes

        Raises:
            SyncError: On fatal errors (source history, commit step)
        """
        cfg = self.config
        logger.debug("Run configuration: %s", cfg.to_dict())
        self.progress_callback("Calculating differences...", 0.0)
        changes = self.compute_changes()
        if changes.is_empty:
            logger.info("Source file unchanged between %s and %s; nothing to do.", cfg.base_rev, cfg.head_rev)
            self.progress_callback("Complete!", 1.0)
            return RunResult(changes=changes)

        targets = self.enumerator.enumerate(cfg.target_glob, cfg.exclude_glob)
        if not targets:
            logger.warning(
                "No target JSON files found matching %s. No files will be updated.", cfg.target_glob
            )
            self.progress_callback("Complete!", 1.0)
            return RunResult(changes=changes)
        logger.info("Found %d target file(s)", len(targets))

        documents = self.sync_documents(changes, targets)
        result = RunResult(changes=changes, documents=documents, cancelled=self.cancelled)
        logger.info(result.summary())

        if cfg.commit_changes and not result.cancelled:
            result.committed = self.committer.commit_and_push(result.modified_files, cfg.branch)

        self.progress_callback("Complete!", 1.0)
        return result

    def sync_documents(self, changes: ChangeSet, targets: list[str]) -> list[DocumentResult]:
        """Apply ``changes`` to each target, in parallel when a budget is set."""
        total = len(targets)
        workers = self.config.max_workers or 1

        if workers <= 1 or total == 1:
            results = []
            for i, path in enumerate(targets):
                try:
                    results.append(self._run_one(changes, path))
                except KeyboardInterrupt:
                    logger.warning("Interrupted; remaining documents are skipped")
                    self.cancel()
                    results.append(self._cancelled_result(path))
                self.progress_callback(f"Processed {path}", (i + 1) / total)
            return results

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="locsync") as pool:
            futures = [pool.submit(self._run_one, changes, path) for path in targets]
            results = []
            for i, future in enumerate(futures):
                while True:
                    try:
                        results.append(future.result())
                        break
                    except KeyboardInterrupt:
                        logger.warning("Interrupted; waiting for running documents to finish")
                        self.cancel()
                self.progress_callback(f"Processed {targets[i]}", (i + 1) / total)
        return results

    def _cancelled_result(self, path: str) -> DocumentResult:
        return DocumentResult(path, locale_for_path(path), DocumentStatus.ERRORED, error="cancelled")

    def _run_one(self, changes: ChangeSet, path: str) -> DocumentResult:
        if self.cancelled:
            return self._cancelled_result(path)
        locale = locale_for_path(path)
        try:
            return self.sync_document(changes, path, locale)
        except SyncError as e:
            logger.error("Error processing %s: %s", path, e)
            return DocumentResult(path, locale, DocumentStatus.ERRORED, error=str(e))
        except Exception as e:
            logger.exception("Unexpected error processing %s", path)
            return DocumentResult(path, locale, DocumentStatus.ERRORED, error=f"{type(e).__name__}: {e}")

    def sync_document(self, changes: ChangeSet, path: str, locale: str) -> DocumentResult:
        """Apply ``changes`` to one file and write it back if it changed.

        Raises:
            DocumentIOError: If the file cannot be read or written
        """
        cfg = self.config
        logger.info("Applying differences to %s with translation to %s...", path, locale)
        target = read_document(path)
        patch = self.applier.apply(
            target,
            changes,
            locale,
            tags=cfg.non_splitting_tags,
            tier=cfg.tier,
        )
        if patch.changed:
            write_document(path, patch.tree)
        logger.info(
            "%s: %d applied, %d skipped, %d failed%s",
            path, patch.applied, patch.skipped, patch.failed,
            "" if patch.changed else " (unchanged)",
        )
        return DocumentResult(
            path=path,
            locale=locale,
            status=DocumentStatus.SUCCEEDED,
            entries=patch.results,
            modified=patch.changed,
        )
