"""
Error taxonomy for locsync.

Fatal errors stop the whole run (the change set cannot be computed without
both source snapshots). Per-entry and per-document errors are caught by the
patch step and the pipeline and turned into result values instead.

    SyncError
    ├── ConfigError          missing / invalid configuration (fatal)
    ├── RevisionNotFound     source file missing at a revision (fatal)
    ├── TranslationFailure   one leaf could not be translated (per entry)
    ├── StructuralMismatch   target shape cannot take the change (per entry)
    ├── DocumentIOError      reading/writing one target file (per document)
    └── VcsError             commit-and-push step failed
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all locsync errors."""


class ConfigError(SyncError):
    """Required configuration is missing or malformed."""


class RevisionNotFound(SyncError):
    """The source file does not exist at the requested revision."""

    def __init__(self, path: str, revision: str, detail: str = ""):
        self.path = path
        self.revision = revision
        message = f"{path} not found at revision {revision}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class TranslationFailure(SyncError):
    """The translation service could not produce a usable translation."""


class StructuralMismatch(SyncError):
    """An existing value in the target blocks the write at a path."""


class DocumentIOError(SyncError):
    """A target document could not be read or written."""


class VcsError(SyncError):
    """A git command of the commit-and-push step failed."""
