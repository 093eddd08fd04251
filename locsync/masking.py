"""
Inline tag handling for non-splitting tags.

Translation strings often carry inline markup such as ``<b>``, ``<link>`` or
``<x id="1"/>``. Tags named in the non-splitting tag set must come back from
machine translation verbatim and unbroken.

Two mechanisms are provided:
- scanning: find which non-splitting tags occur and describe their structure
  (open/close sequence), so a translation can be checked afterwards
- masking: replace each non-splitting tag marker with an opaque placeholder
  (e.g. <<TAG_000>>) for backends without native tag handling, and restore
  it after translation; the text between the markers is still translated

Design:
- Placeholders are reversible: the registry keeps the original marker
- Attributes travel inside the placeholder, so they are never translated
- Tags outside the non-splitting set are ignored entirely
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable


@dataclass
class MaskRegistry:
    """Stores mappings between placeholders and original content."""
    mappings: dict[str, str] = field(default_factory=dict)  # placeholder -> original
    counters: dict[str, int] = field(default_factory=dict)  # prefix -> count

    def register(self, prefix: str, original: str) -> str:
        """Register content and return a placeholder."""
        count = self.counters.get(prefix, 0)
        self.counters[prefix] = count + 1
        placeholder = f"<<{prefix}_{count:03d}>>"
        self.mappings[placeholder] = original
        return placeholder

    def restore(self, text: str) -> str:
        """Restore all placeholders in text with original content."""
        result = text
        for placeholder, original in self.mappings.items():
            result = result.replace(placeholder, original)
        return result

    def clear(self) -> None:
        self.mappings.clear()
        self.counters.clear()


# ============================================================================
# Tag scanning
# ============================================================================

# <name attr="x">, </name>, <name/>
TAG_PATTERN = re.compile(r'<(/?)([A-Za-z_][\w:.-]*)((?:\s[^<>]*?)?)(/?)>')

PLACEHOLDER_PATTERN = re.compile(r'<<[A-Z]+_\d{3}>>')


@dataclass(frozen=True)
class TagToken:
    """One occurrence of a tag in a text."""
    name: str
    role: str  # 'open', 'close' or 'empty'
    start: int
    end: int


def normalize_tag_set(tags: Iterable[str] | None) -> frozenset[str]:
    """Build a NonSplittingTagSet from names, ignoring blanks and whitespace."""
    if not tags:
        return frozenset()
    return frozenset(t.strip() for t in tags if t and t.strip())


def find_tags(text: str, tags: Iterable[str]) -> list[TagToken]:
    """Return occurrences of the given tag names, in text order."""
    names = set(tags)
    tokens = []
    for match in TAG_PATTERN.finditer(text):
        closing, name, _, self_closing = match.groups()
        if name not in names:
            continue
        if closing:
            role = "close"
        elif self_closing:
            role = "empty"
        else:
            role = "open"
        tokens.append(TagToken(name, role, match.start(), match.end()))
    return tokens


def contains_tags(text: str, tags: Iterable[str]) -> bool:
    return bool(find_tags(text, tags))


def tag_structure(text: str, tags: Iterable[str]) -> list[tuple[str, str]]:
    """Describe the open/close sequence of non-splitting tags in text.

    Two texts whose structures are equal contain the same tags with the same
    relative nesting, whatever the words around them.

    Example:
        >>> tag_structure("Press <b>Save <i>now</i></b>", {"b", "i"})
        [('open', 'b'), ('open', 'i'), ('close', 'i'), ('close', 'b')]
    """
    return [(t.role, t.name) for t in find_tags(text, tags)]


def validate_tags(source: str, translated: str, tags: Iterable[str]) -> list[str]:
    """Check that a translation kept the non-splitting tags of its source.

    Returns:
        List of problems (empty if the tag structure is intact)
    """
    tags = frozenset(tags)
    expected = tag_structure(source, tags)
    actual = tag_structure(translated, tags)
    if expected == actual:
        return []
    problems = []
    for role, name in sorted(set(expected) | set(actual)):
        want = expected.count((role, name))
        got = actual.count((role, name))
        if want != got:
            problems.append(f"<{'/' if role == 'close' else ''}{name}> expected {want}x, found {got}x")
    if not problems:
        problems.append("non-splitting tags were reordered or re-nested")
    return problems


# ============================================================================
# Masking
# ============================================================================

def mask_tags(text: str, tags: Iterable[str], registry: MaskRegistry) -> str:
    """Replace each non-splitting tag marker with a placeholder.

    Only the markers are masked, so the words between an opening and a
    closing tag still reach the translator.

    Example:
        >>> mask_tags("Click <b>Save</b>", {"b"}, MaskRegistry())
        'Click <<TAG_000>>Save<<TAG_001>>'

    Args:
        text: Source text
        tags: Non-splitting tag names
        registry: MaskRegistry receiving the original markers

    Returns:
        Text with placeholders inserted
    """
    tokens = find_tags(text, tags)
    if not tokens:
        return text
    parts = []
    cursor = 0
    for token in tokens:
        parts.append(text[cursor:token.start])
        parts.append(registry.register("TAG", text[token.start:token.end]))
        cursor = token.end
    parts.append(text[cursor:])
    return "".join(parts)


def unmask_text(text: str, registry: MaskRegistry) -> str:
    return registry.restore(text)


def extract_placeholders(text: str) -> list[str]:
    return PLACEHOLDER_PATTERN.findall(text)


def validate_placeholders(source_masked: str, translated: str) -> list[str]:
    """Check that all placeholders from source appear in translation.

    Returns:
        List of missing placeholders (empty if all present)
    """
    source_placeholders = set(extract_placeholders(source_masked))
    translated_placeholders = set(extract_placeholders(translated))
    return sorted(source_placeholders - translated_placeholders)
