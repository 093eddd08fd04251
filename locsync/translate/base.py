"""
Base translator interface and implementations.

This module defines:
- Translator: abstract interface every backend implements
- DummyTranslator: offline translator for testing (echo or simple transformations)
- CallableTranslator: wraps a plain function, for embedding and tests
- create_translator: factory by backend name

Contract:
- ``translate(text, context)`` returns a TranslationResult or raises
  TranslationFailure; nothing is retried here, retry policy belongs to callers
- The context names the target locale, the non-splitting tags and the
  capability tier (free or paid endpoint)
- Non-splitting tags are protected before the backend sees the text: natively
  when the backend supports tag handling, with placeholders otherwise. The
  translated text must keep the tag structure of the source or the call fails.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from locsync.errors import TranslationFailure
from locsync.masking import (
    MaskRegistry,
    contains_tags,
    mask_tags,
    unmask_text,
    validate_placeholders,
    validate_tags,
)


logger = logging.getLogger(__name__)


class Tier(Enum):
    """Service plan of the translation backend."""
    FREE = "free"
    PAID = "paid"


@dataclass
class TranslationContext:
    """Everything a backend needs besides the text itself.

    Attributes:
        target_locale: Normalized locale code (e.g. "FR", "EN-US", "PT-PT")
        non_splitting_tags: Tag names whose spans must stay intact
        tier: Capability tier selecting endpoint and rate budget
        source_lang: Optional source language (None lets the backend detect it)
    """
    target_locale: str
    non_splitting_tags: frozenset[str] = frozenset()
    tier: Tier = Tier.PAID
    source_lang: Optional[str] = None


@dataclass
class TranslationResult:
    """Result of a translation operation.

    Attributes:
        text: The translated text
        source_text: Original source text
        metadata: Additional info (backend, tag handling mode, ...)
    """
    text: str
    source_text: str
    metadata: dict = field(default_factory=dict)


class Translator(ABC):
    """Abstract base class for all translation backends.

    Subclasses implement ``_translate`` and may set ``supports_tag_handling``
    when the service itself can keep tags unsplit.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the translator name (e.g., 'deepl', 'dummy-upper')."""

    @property
    def supports_tag_handling(self) -> bool:
        """Whether the backend accepts a list of non-splitting tags natively."""
        return False

    @abstractmethod
    def _translate(self, text: str, context: TranslationContext, preserve_tags: bool) -> str:
        """Send one text to the backend and return the translation.

        Args:
            text: Text to translate (already masked for non-native backends)
            context: Target locale, tags and tier
            preserve_tags: True when ``text`` contains non-splitting tags that
                the backend must treat as atomic (native handling only)

        Raises:
            TranslationFailure: On any backend error
        """

    def translate(self, text: str, context: TranslationContext) -> TranslationResult:
        """Translate a single string.

        Args:
            text: Source text
            context: TranslationContext for this call

        Returns:
            TranslationResult with translation and metadata

        Raises:
            TranslationFailure: When the backend fails or the result breaks
                the non-splitting tags
        """
        if not text.strip():
            return TranslationResult(text=text, source_text=text, metadata={"translator": self.name, "skipped": "blank"})

        tags = context.non_splitting_tags
        has_tags = bool(tags) and contains_tags(text, tags)

        if has_tags and not self.supports_tag_handling:
            registry = MaskRegistry()
            masked = mask_tags(text, tags, registry)
            translated = self._translate(masked, context, preserve_tags=False)
            missing = validate_placeholders(masked, translated)
            if missing:
                raise TranslationFailure(
                    f"{self.name} dropped protected tag markers: {', '.join(missing)}"
                )
            translated = unmask_text(translated, registry)
            mode = "masked"
        else:
            translated = self._translate(text, context, preserve_tags=has_tags)
            mode = "native" if has_tags else "none"

        if has_tags:
            problems = validate_tags(text, translated, tags)
            if problems:
                raise TranslationFailure(
                    f"{self.name} broke non-splitting tags: {'; '.join(problems)}"
                )

        return TranslationResult(
            text=translated,
            source_text=text,
            metadata={"translator": self.name, "tag_handling": mode, "locale": context.target_locale},
        )


class DummyTranslator(Translator):
    """A dummy translator for testing and dry runs.

    Modes:
    - 'echo': Return the input unchanged
    - 'upper': Return uppercase version
    - 'prefix': Add a [LOCALE] prefix
    """

    MODES = ("echo", "upper", "prefix")

    def __init__(self, mode: str = "prefix"):
        if mode not in self.MODES:
            raise ValueError(f"Unknown dummy mode {mode!r}, expected one of {', '.join(self.MODES)}")
        self.mode = mode

    @property
    def name(self) -> str:
        return f"dummy-{self.mode}"

    def _translate(self, text: str, context: TranslationContext, preserve_tags: bool) -> str:
        if self.mode == "echo":
            return text
        if self.mode == "upper":
            return text.upper()
        return f"[{context.target_locale}] {text}"


class CallableTranslator(Translator):
    """Adapter turning ``fn(text, target_locale) -> str`` into a Translator.

    Exceptions raised by the function are reported as TranslationFailure.

    Usage:
        translator = CallableTranslator(lambda text, locale: my_service(text, locale))
    """

    def __init__(self, fn: Callable[[str, str], str], name: str = "callable"):
        self.fn = fn
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def _translate(self, text: str, context: TranslationContext, preserve_tags: bool) -> str:
        try:
            return self.fn(text, context.target_locale)
        except TranslationFailure:
            raise
        except Exception as e:
            raise TranslationFailure(f"{self.name} failed: {e}") from e


def create_translator(backend: str, **kwargs) -> Translator:
    """Factory function to create a translator by name.

    Args:
        backend: Translator backend name
        **kwargs: Backend-specific arguments

    Returns:
        Configured Translator instance

    Supported backends and aliases:
        - deepl: DeepL API (free or paid tier chosen per call)
        - dummy, echo, test: offline test translator (``mode`` kwarg)
    """
    backend_lower = backend.lower().replace("_", "-")

    if backend_lower in ("deepl",):
        from locsync.translate.deepl_api import DeepLTranslator
        return DeepLTranslator(
            api_key=kwargs.get("api_key"),
            timeout=kwargs.get("timeout", 30.0),
        )

    elif backend_lower in ("dummy", "echo", "test"):
        mode = kwargs.get("mode", "echo" if backend_lower == "echo" else "prefix")
        return DummyTranslator(mode=mode)

    else:
        raise ValueError(
            f"Unknown translator backend: {backend}. "
            f"Available backends: deepl, dummy"
        )
