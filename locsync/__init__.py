"""
locsync: keep translated JSON locale files in sync with their source file.

When the source-language file changes between two revisions, locsync computes
the leaf-level differences, machine-translates the changed strings into every
target locale and merges them into the existing locale files, leaving
untouched entries (and their human translations) alone.

License: MIT
"""

__version__ = "0.1.0"

from locsync.config import SyncConfig
from locsync.diff import StructuralDiffer
from locsync.models import ChangeEntry, ChangeKind, ChangeSet
from locsync.patch import PatchApplier
from locsync.pipeline import SyncPipeline
from locsync.tree import JsonPath, JsonTree

__all__ = [
    "ChangeEntry",
    "ChangeKind",
    "ChangeSet",
    "JsonPath",
    "JsonTree",
    "PatchApplier",
    "StructuralDiffer",
    "SyncConfig",
    "SyncPipeline",
]
