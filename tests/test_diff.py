"""
Tests for the structural differ.

Tests cover:
- Leaf-level ADDED / MODIFIED / REMOVED entries
- Deterministic ordering for mappings and lists
- Kind changes, including between two kinds of leaf
- Properties: identical inputs give no entries, equal leaves never appear
"""

import pytest

from locsync.diff import StructuralDiffer, diff
from locsync.models import ChangeEntry, ChangeKind, ChangeSet
from locsync.tree import JsonNode, JsonPath, JsonTree


def tree(data) -> JsonTree:
    return JsonTree.from_python(data)


def p(*segments) -> JsonPath:
    return JsonPath(segments)


def s(value: str) -> JsonNode:
    return JsonNode.string(value)


class TestBasicDiff:
    """Leaf changes in flat and nested mappings."""

    def test_modified_and_added(self):
        before = tree({"title": "Hello"})
        after = tree({"title": "Hello world", "subtitle": "New"})

        changes = diff(before, after)

        assert changes == [
            ChangeEntry.modified(p("title"), s("Hello"), s("Hello world")),
            ChangeEntry.added(p("subtitle"), s("New")),
        ]

    def test_removed(self):
        changes = diff(tree({"a": "x", "b": "y"}), tree({"a": "x"}))
        assert changes == [ChangeEntry.removed(p("b"), s("y"))]

    def test_nested_paths(self):
        before = tree({"menu": {"file": {"open": "Open", "close": "Close"}}})
        after = tree({"menu": {"file": {"open": "Open…", "close": "Close"}}})

        changes = diff(before, after)

        assert len(changes) == 1
        assert changes[0].path == p("menu", "file", "open")
        assert changes[0].kind is ChangeKind.MODIFIED

    def test_added_subtree_expands_to_leaves(self):
        before = tree({"a": "x"})
        after = tree({"a": "x", "dialog": {"ok": "OK", "cancel": "Cancel"}})

        changes = diff(before, after)

        assert [str(e.path) for e in changes] == ["dialog.ok", "dialog.cancel"]
        assert all(e.kind is ChangeKind.ADDED for e in changes)

    def test_removed_subtree_expands_to_leaves(self):
        changes = diff(tree({"dialog": {"ok": "OK", "cancel": "Cancel"}}), tree({}))
        assert [str(e.path) for e in changes] == ["dialog.ok", "dialog.cancel"]
        assert all(e.kind is ChangeKind.REMOVED for e in changes)

    def test_non_string_leaves(self):
        changes = diff(tree({"n": 1, "flag": False, "x": None}), tree({"n": 2, "flag": True, "x": None}))
        assert [str(e.path) for e in changes] == ["n", "flag"]
        assert changes[0].new_value == JsonNode.number(2)

    def test_leaf_kind_change_is_removed_then_added(self):
        changes = diff(tree({"a": 1}), tree({"a": "1"}))
        assert changes == [
            ChangeEntry.removed(p("a"), JsonNode.number(1)),
            ChangeEntry.added(p("a"), s("1")),
        ]

    @pytest.mark.parametrize("old,new", [("1", 1), (1, True), (None, "x"), ("x", None)])
    def test_type_change_is_never_modified(self, old, new):
        changes = diff(tree({"a": old}), tree({"a": new}))
        assert [e.kind for e in changes] == [ChangeKind.REMOVED, ChangeKind.ADDED]

    def test_int_and_float_are_the_same_kind(self):
        assert diff(tree({"a": 1}), tree({"a": 1.0})).is_empty

    def test_empty_containers_produce_no_entries(self):
        assert diff(tree({"a": "x"}), tree({"a": "x", "b": {}, "c": []})).is_empty


class TestOrdering:
    """Deterministic order of entries."""

    def test_mapping_order_before_keys_then_new_keys(self):
        before = tree({"b": "1", "a": "1", "gone": "x"})
        after = tree({"new": "n", "a": "2", "b": "2"})

        changes = diff(before, after)

        assert [(str(e.path), e.kind) for e in changes] == [
            ("b", ChangeKind.MODIFIED),
            ("a", ChangeKind.MODIFIED),
            ("gone", ChangeKind.REMOVED),
            ("new", ChangeKind.ADDED),
        ]

    def test_list_positional(self):
        changes = diff(tree({"l": ["a", "b"]}), tree({"l": ["a", "B", "c"]}))
        assert [(str(e.path), e.kind) for e in changes] == [
            ("l[1]", ChangeKind.MODIFIED),
            ("l[2]", ChangeKind.ADDED),
        ]

    def test_list_shrink_removes_highest_index_first(self):
        changes = diff(tree({"l": ["a", "b", "c", "d"]}), tree({"l": ["a"]}))
        assert [str(e.path) for e in changes] == ["l[3]", "l[2]", "l[1]"]
        assert all(e.kind is ChangeKind.REMOVED for e in changes)

    def test_removed_list_subtree_descending(self):
        changes = diff(tree({"l": [{"k": "a"}, {"k": "b"}]}), tree({}))
        assert [str(e.path) for e in changes] == ["l[1].k", "l[0].k"]

    def test_shrunk_lists_are_recorded(self):
        changes = diff(
            tree({"l": ["a", "b", "c"], "gone": ["x"], "same": ["y"]}),
            tree({"l": ["a"], "same": ["y"]}),
        )
        assert changes.shrunk_lists == ((p("l"), 1), (p("gone"), None))
        assert changes.dropped_position(p("l", 2)) == p("l", 2)
        assert changes.dropped_position(p("l", 0)) is None
        assert changes.dropped_position(p("gone", 0, "k")) == p("gone", 0)

    def test_repeatable(self):
        before = tree({"a": [1, 2, {"x": "y"}], "b": {"c": "d"}})
        after = tree({"a": [1], "b": {"c": "e", "f": "g"}, "h": "i"})
        differ = StructuralDiffer()
        assert differ.diff(before, after) == differ.diff(before, after)


class TestKindChanges:
    """Leaf/container and list/mapping swaps."""

    def test_leaf_to_mapping(self):
        changes = diff(tree({"a": "text"}), tree({"a": {"b": "x"}}))
        assert changes == [
            ChangeEntry.removed(p("a"), s("text")),
            ChangeEntry.added(p("a", "b"), s("x")),
        ]

    def test_list_to_mapping(self):
        changes = diff(tree({"a": ["x"]}), tree({"a": {"0": "x"}}))
        assert [(str(e.path), e.kind) for e in changes] == [
            ("a[0]", ChangeKind.REMOVED),
            ('a.0', ChangeKind.ADDED),
        ]

    def test_mapping_to_leaf(self):
        changes = diff(tree({"a": {"b": "x", "c": "y"}}), tree({"a": None}))
        assert [(str(e.path), e.kind) for e in changes] == [
            ("a.b", ChangeKind.REMOVED),
            ("a.c", ChangeKind.REMOVED),
            ("a", ChangeKind.ADDED),
        ]


class TestProperties:
    """Properties that hold for any pair of documents."""

    DOCUMENTS = [
        {},
        {"a": "x"},
        {"a": {"b": [1, 2, {"c": None}]}, "d": True},
        {"nested": {"deep": {"deeper": ["x", "y", "z"]}}},
        [1, "two", [3]],
        "just a string",
    ]

    @pytest.mark.parametrize("data", DOCUMENTS)
    def test_diff_with_itself_is_empty(self, data):
        assert diff(tree(data), tree(data)) == ChangeSet()

    @pytest.mark.parametrize("before", DOCUMENTS)
    @pytest.mark.parametrize("after", DOCUMENTS)
    def test_equal_leaves_never_reported(self, before, after):
        before_tree, after_tree = tree(before), tree(after)
        changed = {e.path for e in diff(before_tree, after_tree)}
        for path, leaf in before_tree.leaves():
            if after_tree.get(path) == leaf:
                assert path not in changed

    def test_change_set_summary(self):
        changes = diff(tree({"a": "1", "b": "2"}), tree({"a": "x", "c": "3"}))
        assert changes.summary() == {"added": 1, "modified": 1, "removed": 1}
        assert changes.to_dict()[0] == {"path": "a", "kind": "modified", "old": "1", "new": "x"}
