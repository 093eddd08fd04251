"""
Core data models for locsync.

This module defines the change-set vocabulary shared by the differ, the
patcher and the pipeline:

- ChangeKind: ADDED, MODIFIED or REMOVED
- ChangeEntry: one leaf-level change at a path
- ChangeSet: the ordered, read-only result of a diff
- EntryOutcome / EntryResult: what happened to one entry in one target

A ChangeSet is computed once per run and handed to every target document, so
it and its entries are immutable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional

from locsync.tree import JsonNode, JsonPath


class ChangeKind(Enum):
    """Kinds of leaf-level changes."""
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class ChangeEntry:
    """A single leaf-level change between two revisions.

    Attributes:
        path: Location of the leaf
        kind: ADDED, MODIFIED or REMOVED
        old_value: Leaf before the change (absent for ADDED)
        new_value: Leaf after the change (absent for REMOVED)
    """
    path: JsonPath
    kind: ChangeKind
    old_value: Optional[JsonNode] = None
    new_value: Optional[JsonNode] = None

    def __post_init__(self):
        if self.kind is ChangeKind.ADDED:
            if self.old_value is not None or self.new_value is None:
                raise ValueError("ADDED entries carry only a new value")
        elif self.kind is ChangeKind.REMOVED:
            if self.new_value is not None or self.old_value is None:
                raise ValueError("REMOVED entries carry only an old value")
        else:
            if self.old_value is None or self.new_value is None:
                raise ValueError("MODIFIED entries carry both values")
            if self.old_value == self.new_value:
                raise ValueError("MODIFIED entries need differing values")
        for node in (self.old_value, self.new_value):
            if node is not None and node.is_container:
                raise ValueError("Change entries only describe leaf values")

    @classmethod
    def added(cls, path: JsonPath, value: JsonNode) -> ChangeEntry:
        return cls(path, ChangeKind.ADDED, new_value=value)

    @classmethod
    def modified(cls, path: JsonPath, old: JsonNode, new: JsonNode) -> ChangeEntry:
        return cls(path, ChangeKind.MODIFIED, old_value=old, new_value=new)

    @classmethod
    def removed(cls, path: JsonPath, value: JsonNode) -> ChangeEntry:
        return cls(path, ChangeKind.REMOVED, old_value=value)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"path": str(self.path), "kind": self.kind.value}
        if self.old_value is not None:
            data["old"] = self.old_value.to_python()
        if self.new_value is not None:
            data["new"] = self.new_value.to_python()
        return data

    def __str__(self) -> str:
        return f"{self.kind.value} {self.path}"


@dataclass(frozen=True)
class ChangeSet:
    """Ordered leaf-level changes produced by one diff.

    ``shrunk_lists`` holds ``(path, length)`` for every list of the old
    revision that lost trailing positions: its length in the new revision, or
    None when the list is gone altogether. Patchers use it to cut target lists
    back to the source length.
    """
    entries: tuple[ChangeEntry, ...] = ()
    shrunk_lists: tuple[tuple[JsonPath, Optional[int]], ...] = ()

    def __iter__(self) -> Iterator[ChangeEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __getitem__(self, index: int) -> ChangeEntry:
        return self.entries[index]

    def __eq__(self, other):
        if isinstance(other, (list, tuple)):
            return list(self.entries) == list(other)
        if isinstance(other, ChangeSet):
            return self.entries == other.entries and self.shrunk_lists == other.shrunk_lists
        return NotImplemented

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def count(self, kind: ChangeKind) -> int:
        return sum(1 for e in self.entries if e.kind is kind)

    def summary(self) -> dict[str, int]:
        return {kind.value: self.count(kind) for kind in ChangeKind}

    def dropped_position(self, path: JsonPath) -> Optional[JsonPath]:
        """Return the outermost list position on ``path`` that the new revision no longer has."""
        lengths = dict(self.shrunk_lists)
        if not lengths:
            return None
        for depth in range(len(path)):
            prefix = JsonPath(path.segments[:depth])
            if prefix not in lengths:
                continue
            index = path.segments[depth]
            if isinstance(index, int) and index >= (lengths[prefix] or 0):
                return prefix.child(index)
        return None

    def to_dict(self) -> list[dict[str, Any]]:
        """JSON-friendly form, used for logging and ``locsync diff --json``."""
        return [e.to_dict() for e in self.entries]


class EntryOutcome(Enum):
    """What the patch step did with one entry."""
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class EntryResult:
    """Outcome of applying one ChangeEntry to one target document."""
    entry: ChangeEntry
    outcome: EntryOutcome
    reason: str = ""
    metadata: dict = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return self.outcome is EntryOutcome.FAILED

    def to_dict(self) -> dict[str, Any]:
        data = {"path": str(self.entry.path), "kind": self.entry.kind.value, "outcome": self.outcome.value}
        if self.reason:
            data["reason"] = self.reason
        return data
