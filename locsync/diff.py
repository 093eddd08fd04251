"""
Structural differ for two revisions of the same JSON document.

The differ walks both trees in lock-step and reports leaf-level changes only.
Container changes show up as the leaf additions/removals they imply.

Ordering (deterministic, so change sets can be logged and compared):
- mapping: keys of ``before`` in their order, then keys new in ``after`` in
  their order
- list: by position; positions present only in ``before`` are reported from
  the highest index down
- removed subtrees list their own list children from the highest index down

The descending order for removals means a patcher that applies entries one by
one never deletes an index that a later entry still points at. Lists that lost
positions are also recorded on the ChangeSet with their new length.

Any change of value kind (string to number, leaf to container, list to
mapping, ...) is reported as REMOVED for the old value or subtree followed by
ADDED for the new one, never as MODIFIED.
"""

from __future__ import annotations

import logging
from typing import Optional

from locsync.models import ChangeEntry, ChangeSet
from locsync.tree import JsonNode, JsonPath, JsonTree, NodeKind


logger = logging.getLogger(__name__)


class StructuralDiffer:
    """Computes a ChangeSet between two snapshots of one document.

    Usage:
        differ = StructuralDiffer()
        changes = differ.diff(before_tree, after_tree)
        for entry in changes:
            print(entry.kind.value, entry.path)
    """

    def diff(self, before: JsonTree, after: JsonTree) -> ChangeSet:
        entries: list[ChangeEntry] = []
        shrunk: dict[JsonPath, Optional[int]] = {}
        self._compare(JsonPath(), before.root, after.root, entries, shrunk)
        changes = ChangeSet(tuple(entries), tuple(shrunk.items()))
        logger.debug("Diff produced %d entries %s", len(changes), changes.summary())
        return changes

    # -- recursion -----------------------------------------------------------

    def _compare(
        self,
        path: JsonPath,
        old: JsonNode,
        new: JsonNode,
        out: list[ChangeEntry],
        shrunk: dict[JsonPath, Optional[int]],
    ) -> None:
        if old.kind is not new.kind:
            self._removed(path, old, out, shrunk)
            self._added(path, new, out)
            return

        if old.is_leaf:
            if old != new:
                out.append(ChangeEntry.modified(path, old, new))
            return

        if old.kind is NodeKind.MAPPING:
            for key in old.keys():
                new_child = new.child(key)
                if new_child is None:
                    self._removed(path.child(key), old.child(key), out, shrunk)
                else:
                    self._compare(path.child(key), old.child(key), new_child, out, shrunk)
            for key in new.keys():
                if old.child(key) is None:
                    self._added(path.child(key), new.child(key), out)
            return

        shared = min(len(old.items), len(new.items))
        for i in range(shared):
            self._compare(path.child(i), old.items[i], new.items[i], out, shrunk)
        if len(old.items) > shared:
            shrunk[path] = shared
        for i in range(len(old.items) - 1, shared - 1, -1):
            self._removed(path.child(i), old.items[i], out, shrunk)
        for i in range(shared, len(new.items)):
            self._added(path.child(i), new.items[i], out)

    def _added(self, path: JsonPath, node: JsonNode, out: list[ChangeEntry]) -> None:
        if node.kind is NodeKind.MAPPING:
            for key, child in node.members:
                self._added(path.child(key), child, out)
        elif node.kind is NodeKind.LIST:
            for i, child in enumerate(node.items):
                self._added(path.child(i), child, out)
        else:
            out.append(ChangeEntry.added(path, node))

    def _removed(
        self,
        path: JsonPath,
        node: JsonNode,
        out: list[ChangeEntry],
        shrunk: dict[JsonPath, Optional[int]],
    ) -> None:
        if node.kind is NodeKind.MAPPING:
            for key, child in node.members:
                self._removed(path.child(key), child, out, shrunk)
        elif node.kind is NodeKind.LIST:
            if node.items:
                shrunk[path] = None
            for i in range(len(node.items) - 1, -1, -1):
                self._removed(path.child(i), node.items[i], out, shrunk)
        else:
            out.append(ChangeEntry.removed(path, node))


def diff(before: JsonTree, after: JsonTree) -> ChangeSet:
    """Convenience wrapper around ``StructuralDiffer().diff``."""
    return StructuralDiffer().diff(before, after)
