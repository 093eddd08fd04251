"""
Applying a ChangeSet to one target locale document.

For each entry, in ChangeSet order:
- REMOVED: delete the value at the path; an absent path is already satisfied
- ADDED / MODIFIED with a string: translate, then write at the path,
  creating missing containers (list for an index segment, mapping for a key)
- ADDED / MODIFIED with any other leaf: write it unchanged

Entries are independent. A TranslationFailure or StructuralMismatch marks that
entry FAILED and leaves the target value at its path untouched; every other
entry still goes through. Re-applying the same ChangeSet to the result changes
nothing structurally.

List bookkeeping: lists are aligned by position, so the target never has
items deleted out of the middle.
- A removal under a position the source list no longer has cuts the target
  list back to that index. Items past the source length go with it, and a
  second pass finds the index absent.
- A removal at a position the source still has is a value replaced in place
  (a kind change). The slot is "vacated": held as null until the new value is
  written into it. Mapping keys are vacated the same way when a later entry
  writes at or below them, so the key keeps its place.
Vacated mapping keys that were never rewritten are deleted at the end of the
pass. Mappings emptied by a removal are pruned, up to but not including the
root or a list item.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from locsync.errors import StructuralMismatch, TranslationFailure
from locsync.models import ChangeEntry, ChangeKind, ChangeSet, EntryOutcome, EntryResult
from locsync.translate.base import Tier, TranslationContext, Translator
from locsync.tree import JsonNode, JsonPath, JsonTree, NodeKind


logger = logging.getLogger(__name__)


@dataclass
class PatchResult:
    """Updated document plus the outcome of every entry, in ChangeSet order."""
    tree: JsonTree
    results: list[EntryResult] = field(default_factory=list)
    changed: bool = False

    def count(self, outcome: EntryOutcome) -> int:
        return sum(1 for r in self.results if r.outcome is outcome)

    @property
    def applied(self) -> int:
        return self.count(EntryOutcome.APPLIED)

    @property
    def skipped(self) -> int:
        return self.count(EntryOutcome.SKIPPED)

    @property
    def failed(self) -> int:
        return self.count(EntryOutcome.FAILED)

    @property
    def failures(self) -> list[EntryResult]:
        return [r for r in self.results if r.failed]


@dataclass
class _PatchState:
    tree: JsonTree
    changes: ChangeSet
    vacated: set[JsonPath] = field(default_factory=set)
    rewritten: set[JsonPath] = field(default_factory=set)

    def __post_init__(self):
        # every path at or above a value the ChangeSet writes
        for entry in self.changes:
            if entry.kind is not ChangeKind.REMOVED:
                segments = entry.path.segments
                self.rewritten.update(JsonPath(segments[:depth]) for depth in range(len(segments) + 1))

    def forget_under(self, path: JsonPath) -> None:
        """Drop vacated markers at or below ``path``."""
        self.vacated = {v for v in self.vacated if not v.startswith(path)}


class PatchApplier:
    """Merges a ChangeSet into target documents.

    Usage:
        applier = PatchApplier(create_translator("deepl"))
        result = applier.apply(target_tree, changes, "FR", tags={"b"})
        write(result.tree)
    """

    def __init__(self, translator: Translator):
        self.translator = translator

    def apply(
        self,
        target: JsonTree,
        changes: ChangeSet,
        target_locale: str,
        tags: Iterable[str] = (),
        tier: Tier = Tier.PAID,
        source_lang: Optional[str] = None,
    ) -> PatchResult:
        """Apply ``changes`` to ``target`` and return a new tree.

        Args:
            target: Target document; it is not modified
            changes: ChangeSet from the source document's history
            target_locale: Normalized locale code for translation
            tags: Non-splitting tag names
            tier: Translation capability tier
            source_lang: Optional source language hint

        Returns:
            PatchResult with the updated tree and per-entry outcomes
        """
        context = TranslationContext(
            target_locale=target_locale,
            non_splitting_tags=frozenset(tags),
            tier=tier,
            source_lang=source_lang,
        )
        state = _PatchState(tree=target, changes=changes)
        results = []

        for entry in changes:
            try:
                if entry.kind is ChangeKind.REMOVED:
                    outcome, reason = self._remove(state, entry.path)
                else:
                    outcome, reason = self._write(state, entry, context)
            except TranslationFailure as e:
                outcome, reason = EntryOutcome.FAILED, f"translation failed: {e}"
            except StructuralMismatch as e:
                outcome, reason = EntryOutcome.FAILED, f"structural mismatch: {e}"

            if outcome is EntryOutcome.FAILED:
                logger.warning("[%s] %s %s: %s", target_locale, entry.kind.value, entry.path, reason)
            else:
                logger.debug("[%s] %s %s: %s", target_locale, entry.kind.value, entry.path, outcome.value)
            results.append(EntryResult(entry, outcome, reason))

        self._release(state)
        return PatchResult(tree=state.tree, results=results, changed=state.tree != target)

    # -- removals ------------------------------------------------------------

    def _remove(self, state: _PatchState, path: JsonPath) -> tuple[EntryOutcome, str]:
        dropped = state.changes.dropped_position(path)
        if dropped is not None:
            return self._cut(state, dropped)
        if path in state.vacated or state.tree.get(path) is None:
            return EntryOutcome.SKIPPED, "already absent"

        state.forget_under(path)
        if path.is_root:
            state.tree = JsonTree(JsonNode.null())
            state.vacated.add(path)
            return EntryOutcome.APPLIED, ""

        parent = state.tree.get(path.parent)
        if parent.kind is NodeKind.LIST or path in state.rewritten:
            state.tree = state.tree.set(path, JsonNode.null())
            state.vacated.add(path)
        else:
            state.tree = state.tree.delete(path)
            self._prune(state, path.parent)
        return EntryOutcome.APPLIED, ""

    def _cut(self, state: _PatchState, position: JsonPath) -> tuple[EntryOutcome, str]:
        """Drop ``position`` and every later item of its list."""
        list_path, index = position.parent, position.last
        node = state.tree.get(list_path)
        if node is None or node.kind is not NodeKind.LIST or len(node) <= index:
            return EntryOutcome.SKIPPED, "already absent"

        state.forget_under(position)
        state.tree = state.tree.set(list_path, JsonNode.list_of(node.items[:index]))
        gone = dict(state.changes.shrunk_lists)[list_path] is None
        if index == 0 and gone and not list_path.is_root:
            state.tree = state.tree.delete(list_path)
            self._prune(state, list_path.parent)
        return EntryOutcome.APPLIED, ""

    def _prune(self, state: _PatchState, path: JsonPath) -> None:
        """Delete emptied mappings from ``path`` upwards."""
        while not path.is_root and isinstance(path.last, str):
            node = state.tree.get(path)
            if node is None or node.kind is not NodeKind.MAPPING or len(node):
                return
            state.tree = state.tree.delete(path)
            path = path.parent

    def _release(self, state: _PatchState) -> None:
        """Delete vacated mapping keys nothing was written to."""
        for path in sorted(state.vacated, key=JsonPath.sort_key, reverse=True):
            if path.is_root or not isinstance(path.last, str):
                continue
            if state.tree.get(path) is not None:
                state.tree = state.tree.delete(path)
                self._prune(state, path.parent)
        state.vacated.clear()

    # -- writes --------------------------------------------------------------

    def _write(
        self,
        state: _PatchState,
        entry: ChangeEntry,
        context: TranslationContext,
    ) -> tuple[EntryOutcome, str]:
        path = entry.path
        tree, opened = self._open_vacated(state, path)

        existing = tree.get(path)
        if existing is not None and existing.is_container and path not in state.vacated:
            raise StructuralMismatch(f"target holds a {existing.kind.value} at {path}")
        # fail on shape problems before spending a translation
        tree.set(path, JsonNode.null())

        value = entry.new_value
        if value.kind is NodeKind.STRING:
            result = self.translator.translate(value.value, context)
            value = JsonNode.string(result.text)

        state.tree = tree.set(path, value)
        state.vacated.difference_update(opened)
        state.forget_under(path)
        return EntryOutcome.APPLIED, ""

    def _open_vacated(self, state: _PatchState, path: JsonPath) -> tuple[JsonTree, list[JsonPath]]:
        """Turn vacated slots above ``path`` back into empty containers."""
        tree = state.tree
        opened = []
        for depth in range(len(path)):
            prefix = JsonPath(path.segments[:depth])
            if prefix in state.vacated:
                tree = tree.set(prefix, JsonNode.empty_for(path.segments[depth]))
                opened.append(prefix)
        return tree, opened


def apply_changes(
    target: JsonTree,
    changes: ChangeSet,
    target_locale: str,
    translator: Translator,
    tags: Iterable[str] = (),
    tier: Tier = Tier.PAID,
) -> PatchResult:
    """Convenience wrapper around ``PatchApplier(translator).apply``."""
    return PatchApplier(translator).apply(target, changes, target_locale, tags=tags, tier=tier)
