"""
API key management for locsync.

Keys are looked up in this order:
1. Environment variable (preferred for CI)
2. OS keychain via keyring (local development)
3. Local config file ~/.locsync/keys.json (fallback)

Usage:
    from locsync.keys import KeyManager

    km = KeyManager()
    km.set_key("deepl", "xxxxxxxx-xxxx:fx")
    key = km.get_key("deepl")
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import keyring
from keyring.errors import KeyringError


logger = logging.getLogger(__name__)

# Supported services and their env var names
SERVICES = {
    "deepl": "DEEPL_API_KEY",
}


@dataclass
class KeyInfo:
    """Information about an API key."""
    service: str
    is_set: bool
    source: str  # 'env', 'keyring', 'config', 'none'
    masked_value: str


class KeyManager:
    """Manage API keys.

    Priority order for key retrieval:
    1. Environment variable
    2. OS keychain (via keyring)
    3. Local config file (~/.locsync/keys.json)
    """

    SERVICE_NAME = "locsync"

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir else Path.home() / ".locsync"
        self.config_file = self.config_dir / "keys.json"

    @staticmethod
    def env_var(service: str) -> str:
        return SERVICES.get(service, f"{service.upper()}_API_KEY")

    def _keyring_get(self, service: str) -> Optional[str]:
        try:
            return keyring.get_password(self.SERVICE_NAME, service)
        except KeyringError as e:
            logger.debug("Keyring lookup for %s failed: %s", service, e)
            return None

    def _read_config(self) -> dict:
        if not self.config_file.exists():
            return {}
        try:
            return json.loads(self.config_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable key file %s: %s", self.config_file, e)
            return {}

    def _lookup(self, service: str) -> tuple[Optional[str], str]:
        service = service.lower()
        if env_val := os.getenv(self.env_var(service)):
            return env_val, "env"
        if key := self._keyring_get(service):
            return key, "keyring"
        if key := self._read_config().get(service):
            return key, "config"
        return None, "none"

    def get_key(self, service: str) -> Optional[str]:
        """Get API key for a service, or None if not found."""
        return self._lookup(service)[0]

    def set_key(self, service: str, key: str, use_keyring: bool = True) -> str:
        """Store API key for a service.

        Returns:
            Storage location used ('keyring' or 'config')
        """
        service = service.lower()

        if use_keyring:
            try:
                keyring.set_password(self.SERVICE_NAME, service, key)
                return "keyring"
            except KeyringError as e:
                logger.debug("Keyring unavailable, falling back to config file: %s", e)

        self.config_dir.mkdir(parents=True, exist_ok=True)
        config = self._read_config()
        config[service] = key
        self.config_file.write_text(json.dumps(config, indent=2), encoding="utf-8")
        self.config_file.chmod(0o600)
        return "config"

    def delete_key(self, service: str) -> bool:
        """Delete stored API key for a service (keyring and config file)."""
        service = service.lower()
        deleted = False

        try:
            keyring.delete_password(self.SERVICE_NAME, service)
            deleted = True
        except KeyringError:
            pass

        config = self._read_config()
        if service in config:
            del config[service]
            self.config_file.write_text(json.dumps(config, indent=2), encoding="utf-8")
            deleted = True

        return deleted

    def get_key_info(self, service: str) -> KeyInfo:
        key, source = self._lookup(service)
        return KeyInfo(
            service=service.lower(),
            is_set=key is not None,
            source=source,
            masked_value=self._mask_key(key) if key else "",
        )

    def list_keys(self) -> list[KeyInfo]:
        return [self.get_key_info(service) for service in SERVICES]

    @staticmethod
    def _mask_key(key: str) -> str:
        """Mask a key for display (show first 4 and last 4 chars)."""
        if len(key) <= 12:
            return "*" * len(key)
        return f"{key[:4]}...{key[-4:]}"


def get_key(service: str) -> Optional[str]:
    """Convenience function to get an API key."""
    return KeyManager().get_key(service)
