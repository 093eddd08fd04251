"""
DeepL backend.

Uses the official ``deepl`` SDK. Non-splitting tags are handled natively with
``tag_handling="xml"`` and ``non_splitting_tags``; the tier picks the endpoint:

- FREE: https://api-free.deepl.com
- PAID: https://api.deepl.com

One SDK client is created lazily per tier and shared by all threads. The SDK's
own network retries are switched off so a failing request surfaces at once;
those SDK settings are process-wide and applied once, see ``configure_sdk``.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

import deepl

from locsync.errors import TranslationFailure
from locsync.keys import get_key
from locsync.translate.base import Tier, TranslationContext, Translator


logger = logging.getLogger(__name__)

SERVER_URLS = {
    Tier.FREE: "https://api-free.deepl.com",
    Tier.PAID: "https://api.deepl.com",
}


_sdk_lock = threading.Lock()
_sdk_configured = False


def configure_sdk(timeout: float) -> None:
    """Switch off SDK retries and set the connection timeout.

    ``deepl.http_client`` settings are module globals shared by every DeepL
    user in the process, so they are applied once, by the first client.
    """
    global _sdk_configured
    with _sdk_lock:
        if _sdk_configured:
            return
        deepl.http_client.max_network_retries = 0
        deepl.http_client.min_connection_timeout = timeout
        _sdk_configured = True
        logger.debug("DeepL SDK configured: no retries, %.1fs connection timeout", timeout)


class DeepLTranslator(Translator):
    """DeepL machine translation.

    Usage:
        translator = DeepLTranslator(api_key="...", timeout=20)
        ctx = TranslationContext("DE", frozenset({"b"}), Tier.FREE)
        translator.translate("Click <b>Save</b>", ctx).text
    """

    def __init__(self, api_key: Optional[str] = None, timeout: float = 30.0):
        self.api_key = api_key or get_key("deepl")
        self.timeout = timeout
        self._clients: dict[Tier, deepl.Translator] = {}
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "deepl"

    @property
    def supports_tag_handling(self) -> bool:
        return True

    def _get_client(self, tier: Tier) -> deepl.Translator:
        with self._lock:
            client = self._clients.get(tier)
            if client is None:
                if not self.api_key:
                    raise TranslationFailure(
                        "DeepL API key missing. Set DEEPL_API_KEY or run: locsync keys set deepl"
                    )
                configure_sdk(self.timeout)
                client = deepl.Translator(self.api_key, server_url=SERVER_URLS[tier])
                self._clients[tier] = client
                logger.debug("Created DeepL client for %s tier", tier.value)
            return client

    def _translate(self, text: str, context: TranslationContext, preserve_tags: bool) -> str:
        client = self._get_client(context.tier)
        kwargs = {"target_lang": context.target_locale.upper()}
        if context.source_lang:
            kwargs["source_lang"] = context.source_lang.upper()
        if preserve_tags:
            kwargs["tag_handling"] = "xml"
            kwargs["non_splitting_tags"] = sorted(context.non_splitting_tags)
        try:
            result = client.translate_text(text, **kwargs)
        except (deepl.DeepLException, ValueError) as e:
            raise TranslationFailure(f"DeepL request failed: {e}") from e
        return result.text
