"""Translation backends for locsync."""

from locsync.translate.base import (
    CallableTranslator,
    DummyTranslator,
    Tier,
    TranslationContext,
    TranslationResult,
    Translator,
    create_translator,
)

__all__ = [
    "CallableTranslator",
    "DummyTranslator",
    "Tier",
    "TranslationContext",
    "TranslationResult",
    "Translator",
    "create_translator",
]
