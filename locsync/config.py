"""
Run configuration and locale normalization.

A SyncConfig is built once (from the environment, from CLI options, or both)
and passed explicitly to the pipeline; nothing reads the environment after
that.

Environment variables (a .env file in the working directory is loaded first):
    SOURCE_JSON_FILE_PATH       source-of-truth JSON file (required)
    TARGET_JSON_GLOB_PATTERN    glob matching the locale files (required)
    EXCLUDE_FROM_TARGET_GLOB    glob of files to leave alone
    BASE_COMMIT_SHA             revision before the change (required)
    HEAD_COMMIT_SHA             revision after the change (required)
    GIT_BRANCH_NAME             branch to commit to
    DEEPL_API_KEY               DeepL credentials
    COMMIT_CHANGES              "true" to commit and push modified files
    IS_DEEPL_FREE_API           "true" for the free DeepL endpoint
    DEEPL_NON_SPLITTING_TAGS    comma-separated tag names
    MAX_CONCURRENT_DOCUMENTS    documents processed in parallel
    TRANSLATION_TIMEOUT         seconds per translation request
    TRANSLATOR_BACKEND          deepl (default) or dummy

Example:
    >>> normalize_locale("en")
    'EN-US'
    >>> normalize_locale("de")
    'DE'
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from locsync.errors import ConfigError
from locsync.masking import normalize_tag_set
from locsync.translate.base import Tier


APP_NAME = "locsync"

DEFAULT_TIMEOUT = 30.0

# Directory names whose bare language code needs a regional variant
LOCALE_OVERRIDES = {
    "EN": "EN-US",
    "PT": "PT-PT",
    "ZH": "ZH",
}


def normalize_locale(code: str) -> str:
    """Map a locale directory name to the code sent to the translator."""
    upper = code.strip().upper()
    return LOCALE_OVERRIDES.get(upper, upper)


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


@dataclass(frozen=True)
class SyncConfig:
    """Configuration for one synchronization run."""
    # Source history
    source_file: str
    target_glob: str
    base_rev: str
    head_rev: str
    exclude_glob: Optional[str] = None

    # Translation
    translator_backend: str = "deepl"
    api_key: Optional[str] = field(default=None, repr=False)
    tier: Tier = Tier.PAID
    non_splitting_tags: frozenset[str] = frozenset()
    timeout: float = DEFAULT_TIMEOUT

    # Fan-out; None or 0 means one document at a time
    max_workers: Optional[int] = None

    # Version control
    commit_changes: bool = False
    branch: Optional[str] = None

    def __post_init__(self):
        missing = [
            name for name in ("source_file", "target_glob", "base_rev", "head_rev")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")
        if self.commit_changes and not self.branch:
            raise ConfigError("commit_changes requires a branch (GIT_BRANCH_NAME)")
        if self.max_workers is not None and self.max_workers < 0:
            raise ConfigError("max_workers must not be negative")
        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        load_dotenv_file: bool = True,
        **overrides,
    ) -> SyncConfig:
        """Build a config from environment variables.

        Args:
            env: Mapping to read instead of ``os.environ``
            load_dotenv_file: Load a .env file into ``os.environ`` first
            **overrides: Field values that win over the environment (None
                values are ignored)

        Raises:
            ConfigError: If required values are missing or malformed
        """
        if env is None:
            if load_dotenv_file:
                load_dotenv(find_dotenv(usecwd=True))
            env = os.environ

        try:
            workers = env.get("MAX_CONCURRENT_DOCUMENTS")
            timeout = env.get("TRANSLATION_TIMEOUT")
            values = dict(
                source_file=env.get("SOURCE_JSON_FILE_PATH", ""),
                target_glob=env.get("TARGET_JSON_GLOB_PATTERN", ""),
                exclude_glob=env.get("EXCLUDE_FROM_TARGET_GLOB") or None,
                base_rev=env.get("BASE_COMMIT_SHA", ""),
                head_rev=env.get("HEAD_COMMIT_SHA", ""),
                branch=env.get("GIT_BRANCH_NAME") or None,
                api_key=env.get("DEEPL_API_KEY") or None,
                commit_changes=_flag(env.get("COMMIT_CHANGES")),
                tier=Tier.FREE if _flag(env.get("IS_DEEPL_FREE_API")) else Tier.PAID,
                non_splitting_tags=parse_tag_list(env.get("DEEPL_NON_SPLITTING_TAGS")),
                max_workers=int(workers) if workers else None,
                timeout=float(timeout) if timeout else DEFAULT_TIMEOUT,
                translator_backend=env.get("TRANSLATOR_BACKEND") or "deepl",
            )
        except ValueError as e:
            raise ConfigError(f"Malformed numeric setting: {e}") from e

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def with_overrides(self, **overrides) -> SyncConfig:
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> dict:
        """Serialize config for logging (credentials left out)."""
        return {
            "source_file": self.source_file,
            "target_glob": self.target_glob,
            "exclude_glob": self.exclude_glob,
            "base_rev": self.base_rev,
            "head_rev": self.head_rev,
            "translator_backend": self.translator_backend,
            "tier": self.tier.value,
            "non_splitting_tags": sorted(self.non_splitting_tags),
            "timeout": self.timeout,
            "max_workers": self.max_workers,
            "commit_changes": self.commit_changes,
            "branch": self.branch,
        }


def parse_tag_list(value: Optional[str]) -> frozenset[str]:
    """Parse a comma-separated tag list such as "b, i,link"."""
    if not value:
        return frozenset()
    return normalize_tag_set(value.split(","))
