"""
In-memory JSON tree with path-addressed access.

Every JSON value is held as an explicit tagged variant (JsonNode) instead of
raw dicts and lists, so the differ and the patcher recurse over a closed set of
kinds:

- STRING, NUMBER, BOOLEAN, NULL: leaves, payload in ``value``
- LIST: ordered ``items``
- MAPPING: ordered ``members`` as (key, node) pairs, insertion order kept

Nodes and trees are immutable. ``JsonTree.set`` and ``JsonTree.delete`` rebuild
only the nodes along the touched path and return a new tree, so a loaded
snapshot can be shared freely while patched copies are derived from it.

Paths (JsonPath) are tuples of ``str`` keys and ``int`` indices and render as
``a.b[0].c``; keys that would be ambiguous in that notation render quoted,
e.g. ``a["x.y"]``.

Example:
    >>> tree = JsonTree.loads('{"menu": {"items": ["Open", "Close"]}}')
    >>> str(JsonPath(("menu", "items", 1)))
    'menu.items[1]'
    >>> tree.get(JsonPath(("menu", "items", 1))).value
    'Close'
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from locsync.errors import StructuralMismatch


Segment = Union[str, int]


class NodeKind(Enum):
    """Kinds of JSON values."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"
    LIST = "list"
    MAPPING = "mapping"

    @property
    def is_container(self) -> bool:
        return self in (NodeKind.LIST, NodeKind.MAPPING)


def _is_index(segment: Segment) -> bool:
    return isinstance(segment, int) and not isinstance(segment, bool)


# ============================================================================
# Paths
# ============================================================================

_BARE_KEY_FORBIDDEN = set('.[]"')


@dataclass(frozen=True)
class JsonPath:
    """Location of a value inside a JSON tree."""
    segments: tuple[Segment, ...] = ()

    def __post_init__(self):
        for segment in self.segments:
            if not (isinstance(segment, str) or _is_index(segment)):
                raise TypeError(f"Invalid path segment: {segment!r}")

    def child(self, segment: Segment) -> JsonPath:
        return JsonPath(self.segments + (segment,))

    @property
    def parent(self) -> JsonPath:
        if not self.segments:
            raise ValueError("Root path has no parent")
        return JsonPath(self.segments[:-1])

    @property
    def last(self) -> Segment:
        if not self.segments:
            raise ValueError("Root path has no last segment")
        return self.segments[-1]

    @property
    def is_root(self) -> bool:
        return not self.segments

    def startswith(self, other: JsonPath) -> bool:
        return self.segments[:len(other.segments)] == other.segments

    def sort_key(self) -> tuple:
        """Total order over paths mixing keys and indices."""
        return tuple((0, s, "") if _is_index(s) else (1, 0, s) for s in self.segments)

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    def __str__(self) -> str:
        if not self.segments:
            return "$"
        parts = []
        for segment in self.segments:
            if _is_index(segment):
                parts.append(f"[{segment}]")
            elif segment and not (_BARE_KEY_FORBIDDEN & set(segment)) and (parts or segment != "$"):
                parts.append(f".{segment}" if parts else segment)
            else:
                parts.append(f"[{json.dumps(segment, ensure_ascii=False)}]")
        return "".join(parts)


def parse_path(text: str) -> JsonPath:
    """Parse the dot/bracket rendering produced by ``str(JsonPath)``.

    Raises:
        ValueError: If the text is not a valid path rendering
    """
    if text in ("", "$"):
        return JsonPath()

    segments: list[Segment] = []
    decoder = json.JSONDecoder()
    i, n = 0, len(text)
    while i < n:
        c = text[i]
        if c == "[":
            if i + 1 < n and text[i + 1] == '"':
                key, end = decoder.raw_decode(text, i + 1)
                if end >= n or text[end] != "]":
                    raise ValueError(f"Unterminated quoted key in path: {text!r}")
                segments.append(key)
                i = end + 1
            else:
                end = text.find("]", i)
                if end == -1:
                    raise ValueError(f"Unterminated index in path: {text!r}")
                segments.append(int(text[i + 1:end]))
                i = end + 1
        elif c == ".":
            if not segments or i + 1 >= n or text[i + 1] in ".[":
                raise ValueError(f"Misplaced '.' in path: {text!r}")
            i += 1
        else:
            end = i
            while end < n and text[end] not in ".[":
                end += 1
            segments.append(text[i:end])
            i = end
    return JsonPath(tuple(segments))


# ============================================================================
# Nodes
# ============================================================================

@dataclass(frozen=True)
class JsonNode:
    """A JSON value as a tagged variant.

    Attributes:
        kind: Which JSON kind this node is
        value: Payload of a leaf (str, int/float, bool or None)
        items: Children of a LIST
        members: (key, child) pairs of a MAPPING, in insertion order
    """
    kind: NodeKind
    value: Any = None
    items: tuple[JsonNode, ...] = ()
    members: tuple[tuple[str, JsonNode], ...] = ()
    _index: dict = field(default=None, init=False, repr=False, compare=False, hash=False)

    def __post_init__(self):
        if self.kind is NodeKind.MAPPING:
            object.__setattr__(self, "_index", {k: v for k, v in self.members})

    # -- constructors --------------------------------------------------------

    @classmethod
    def string(cls, value: str) -> JsonNode:
        return cls(NodeKind.STRING, value)

    @classmethod
    def number(cls, value: Union[int, float]) -> JsonNode:
        return cls(NodeKind.NUMBER, value)

    @classmethod
    def boolean(cls, value: bool) -> JsonNode:
        return cls(NodeKind.BOOLEAN, value)

    @classmethod
    def null(cls) -> JsonNode:
        return cls(NodeKind.NULL)

    @classmethod
    def list_of(cls, items=()) -> JsonNode:
        return cls(NodeKind.LIST, items=tuple(items))

    @classmethod
    def mapping(cls, members=()) -> JsonNode:
        return cls(NodeKind.MAPPING, members=tuple(members))

    @classmethod
    def empty_for(cls, segment: Segment) -> JsonNode:
        """Empty container able to hold ``segment``: list for indices, mapping for keys."""
        return cls.list_of() if _is_index(segment) else cls.mapping()

    @classmethod
    def from_python(cls, data: Any) -> JsonNode:
        """Convert a value produced by ``json.load`` into a node."""
        if data is None:
            return cls.null()
        if isinstance(data, bool):
            return cls.boolean(data)
        if isinstance(data, (int, float)):
            return cls.number(data)
        if isinstance(data, str):
            return cls.string(data)
        if isinstance(data, (list, tuple)):
            return cls.list_of(cls.from_python(item) for item in data)
        if isinstance(data, dict):
            members = []
            for key, item in data.items():
                if not isinstance(key, str):
                    raise TypeError(f"JSON object keys must be strings, got {key!r}")
                members.append((key, cls.from_python(item)))
            return cls.mapping(members)
        raise TypeError(f"Not a JSON value: {type(data).__name__}")

    # -- inspection ----------------------------------------------------------

    @property
    def is_leaf(self) -> bool:
        return not self.kind.is_container

    @property
    def is_container(self) -> bool:
        return self.kind.is_container

    def keys(self) -> list[str]:
        return [k for k, _ in self.members]

    def child(self, segment: Segment) -> Optional[JsonNode]:
        """Return the child at ``segment`` or None when there is none."""
        if self.kind is NodeKind.MAPPING and isinstance(segment, str):
            return self._index.get(segment)
        if self.kind is NodeKind.LIST and _is_index(segment):
            if 0 <= segment < len(self.items):
                return self.items[segment]
        return None

    def __len__(self) -> int:
        if self.kind is NodeKind.LIST:
            return len(self.items)
        if self.kind is NodeKind.MAPPING:
            return len(self.members)
        return 0

    def to_python(self) -> Any:
        if self.kind is NodeKind.LIST:
            return [item.to_python() for item in self.items]
        if self.kind is NodeKind.MAPPING:
            return {k: v.to_python() for k, v in self.members}
        return self.value

    # -- copy-on-write edits -------------------------------------------------

    def with_child(self, segment: Segment, node: JsonNode) -> JsonNode:
        """Return a copy with ``segment`` set to ``node``.

        Mapping keys are replaced in place or appended. List indices may
        replace an existing item or append at exactly ``len(items)``.

        Raises:
            StructuralMismatch: If this node cannot hold ``segment``
        """
        if self.kind is NodeKind.MAPPING and isinstance(segment, str):
            if segment in self._index:
                members = tuple((k, node if k == segment else v) for k, v in self.members)
            else:
                members = self.members + ((segment, node),)
            return JsonNode.mapping(members)
        if self.kind is NodeKind.LIST and _is_index(segment):
            if 0 <= segment < len(self.items):
                items = self.items[:segment] + (node,) + self.items[segment + 1:]
                return JsonNode.list_of(items)
            if segment == len(self.items):
                return JsonNode.list_of(self.items + (node,))
            raise StructuralMismatch(
                f"index {segment} is past the end of a list of {len(self.items)}"
            )
        raise StructuralMismatch(f"cannot address {segment!r} inside a {self.kind.value}")

    def without_child(self, segment: Segment) -> JsonNode:
        """Return a copy without ``segment`` (list items after it shift down)."""
        if self.child(segment) is None:
            raise KeyError(segment)
        if self.kind is NodeKind.MAPPING:
            return JsonNode.mapping((k, v) for k, v in self.members if k != segment)
        return JsonNode.list_of(self.items[:segment] + self.items[segment + 1:])


# ============================================================================
# Trees
# ============================================================================

@dataclass(frozen=True)
class JsonTree:
    """An immutable JSON document snapshot."""
    root: JsonNode = field(default_factory=JsonNode.mapping)

    @classmethod
    def from_python(cls, data: Any) -> JsonTree:
        return cls(JsonNode.from_python(data))

    @classmethod
    def loads(cls, text: str) -> JsonTree:
        return cls.from_python(json.loads(text))

    @classmethod
    def load(cls, path: Union[str, Path]) -> JsonTree:
        return cls.loads(Path(path).read_text(encoding="utf-8"))

    def to_python(self) -> Any:
        return self.root.to_python()

    def dumps(self, indent: int = 2) -> str:
        """Serialize with non-ASCII kept as-is and a trailing newline."""
        return json.dumps(self.to_python(), indent=indent, ensure_ascii=False) + "\n"

    def get(self, path: JsonPath) -> Optional[JsonNode]:
        """Return the node at ``path`` or None when the path does not exist."""
        node = self.root
        for segment in path:
            node = node.child(segment)
            if node is None:
                return None
        return node

    def contains(self, path: JsonPath) -> bool:
        return self.get(path) is not None

    def set(self, path: JsonPath, node: JsonNode) -> JsonTree:
        """Return a new tree with ``node`` at ``path``.

        Missing intermediate containers are created: a list when the next
        segment is an index, a mapping when it is a key.

        Raises:
            StructuralMismatch: If an existing value on the path cannot hold
                the next segment
        """
        return JsonTree(_set_in(self.root, path.segments, node))

    def delete(self, path: JsonPath) -> JsonTree:
        """Return a new tree without the value at ``path``.

        Raises:
            KeyError: If nothing exists at ``path``
            ValueError: If ``path`` is the root
        """
        if path.is_root:
            raise ValueError("Cannot delete the root of a document")
        return JsonTree(_delete_in(self.root, path.segments, path))

    def leaves(self) -> Iterator[tuple[JsonPath, JsonNode]]:
        """Yield (path, leaf) pairs depth-first, keys in insertion order."""
        stack = [(JsonPath(), self.root)]
        while stack:
            path, node = stack.pop()
            if node.kind is NodeKind.MAPPING:
                stack.extend((path.child(k), v) for k, v in reversed(node.members))
            elif node.kind is NodeKind.LIST:
                stack.extend((path.child(i), v) for i, v in reversed(list(enumerate(node.items))))
            else:
                yield path, node


def _set_in(node: JsonNode, segments: tuple[Segment, ...], value: JsonNode) -> JsonNode:
    if not segments:
        return value
    head, rest = segments[0], segments[1:]
    child = node.child(head)
    if child is None:
        child = JsonNode.empty_for(rest[0]) if rest else value
        if not rest:
            return node.with_child(head, child)
    return node.with_child(head, _set_in(child, rest, value))


def _delete_in(node: JsonNode, segments: tuple[Segment, ...], path: JsonPath) -> JsonNode:
    head, rest = segments[0], segments[1:]
    child = node.child(head)
    if child is None:
        raise KeyError(str(path))
    if not rest:
        return node.without_child(head)
    return node.with_child(head, _delete_in(child, rest, path))
