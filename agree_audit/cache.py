"""
Content-addressed analysis cache.

Results are keyed by a digest of the normalized contract text plus a
digest of the legally relevant context fields, so re-uploading the same
contract with cosmetic formatting changes returns the stored analysis
instead of paying for another AI call.

Entries are stored as JSON strings in any ``MutableMapping[str, str]``
(a plain dict by default), carry a format version and are evicted
oldest-write-first once the store holds more than ``CACHE_MAX_ENTRIES``.
"""

from __future__ import annotations

import hashlib
import logging
import re
import threading
import time
from typing import Any, Callable, Mapping, MutableMapping, Optional, Union

from pydantic import BaseModel, ValidationError

from agree_audit.exceptions import CacheCorruptionError
from agree_audit.models import FinalAnalysis, UserContext
from config.settings import settings

logger = logging.getLogger(__name__)

_HASH_LENGTH = 16


# =============================================================================
# KEY DERIVATION
# =============================================================================

def normalize_text(text: str) -> str:
    """
    Normalize contract text before hashing.

    Unifies line endings, collapses whitespace runs (including the
    full-width space U+3000), collapses blank lines, trims and case-folds.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[ \t\u3000]+", " ", text)
    text = re.sub(r" ?\n[ \n]*", "\n", text)
    return text.strip().lower()


def _digest(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:_HASH_LENGTH]


def relevant_context_fields(context: Union[UserContext, Mapping[str, Any], None]) -> dict[str, str]:
    """The only context fields that influence the cache key."""
    ctx = UserContext.from_untrusted(context)
    return {
        "userRole": ctx.user_role.value,
        "userEntityType": ctx.user_entity_type.value,
        "counterpartyCapital": ctx.counterparty_capital.value,
    }


def text_hash(text: str) -> str:
    """Digest of the normalized text."""
    return _digest(normalize_text(text or ""))


def context_hash(context: Union[UserContext, Mapping[str, Any], None]) -> str:
    """Digest of the relevant context subset; ``default`` when no context is given."""
    if context is None:
        return "default"
    fields = relevant_context_fields(context)
    return _digest("|".join(f"{k}={v}" for k, v in sorted(fields.items())))


def generate_cache_key(
    text: str,
    context: Union[UserContext, Mapping[str, Any], None] = None,
    prefix: Optional[str] = None,
    version: Optional[str] = None,
) -> str:
    """
    Derive the content address for a text and context.

    Args:
        text: Contract text (normalized internally).
        context: User context or mapping; only role, entity type and
            counterparty capital are used.
        prefix: Key prefix, defaults to ``settings.CACHE_PREFIX``.
        version: Format version, defaults to ``settings.CACHE_VERSION``.

    Returns:
        ``{prefix}{version}_{text_hash}_{context_hash}``
    """
    prefix = settings.CACHE_PREFIX if prefix is None else prefix
    version = settings.CACHE_VERSION if version is None else version
    return f"{prefix}{version}_{text_hash(text)}_{context_hash(context)}"


# =============================================================================
# ENTRIES
# =============================================================================

class _EntryHeader(BaseModel):
    """Version and timestamp, readable even when the result schema changed."""

    version: str
    timestamp: float


class CachedAnalysis(BaseModel):
    """
    One stored analysis.

    Attributes:
        version: Result format version at write time.
        timestamp: Write time (epoch seconds), used for eviction.
        text_hash: Digest of the normalized text.
        context_hash: Digest of the relevant context subset.
        result: The cached analysis.
    """

    version: str
    timestamp: float
    text_hash: str
    context_hash: str
    result: FinalAnalysis


def _load_header(key: str, raw: str) -> _EntryHeader:
    try:
        return _EntryHeader.model_validate_json(raw)
    except ValidationError as e:
        raise CacheCorruptionError(f"Unreadable cache entry: {e.error_count()} error(s)", key=key) from e


def _load_entry(key: str, raw: str) -> CachedAnalysis:
    try:
        return CachedAnalysis.model_validate_json(raw)
    except ValidationError as e:
        raise CacheCorruptionError(f"Unreadable cache entry: {e.error_count()} error(s)", key=key) from e


# =============================================================================
# CACHE
# =============================================================================

class AnalysisCache:
    """
    Bounded, versioned, content-addressed store of final analyses.

    Corrupt or stale entries are deleted and reported as misses; callers
    never see a cache error.

    Example:
        >>> cache = AnalysisCache()
        >>> cache.set(text, context, result)
        >>> cache.get(text, context) == result
        True
    """

    def __init__(
        self,
        store: Optional[MutableMapping[str, str]] = None,
        max_entries: Optional[int] = None,
        version: Optional[str] = None,
        prefix: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the cache.

        Args:
            store: Backing string store; entries of other owners are ignored.
            max_entries: Capacity, defaults to ``settings.CACHE_MAX_ENTRIES``.
            version: Current format version, defaults to ``settings.CACHE_VERSION``.
            prefix: Key prefix, defaults to ``settings.CACHE_PREFIX``.
            clock: Timestamp source for new entries.
        """
        self.store: MutableMapping[str, str] = {} if store is None else store
        self.max_entries = max_entries or settings.CACHE_MAX_ENTRIES
        self.version = version or settings.CACHE_VERSION
        self.prefix = prefix or settings.CACHE_PREFIX
        self._clock = clock
        self._lock = threading.Lock()

    def key_for(self, text: str, context: Union[UserContext, Mapping[str, Any], None]) -> str:
        """Cache key for a text and context under this cache's prefix and version."""
        return generate_cache_key(text, context, prefix=self.prefix, version=self.version)

    def _own_keys(self) -> list[str]:
        return [key for key in list(self.store) if key.startswith(self.prefix)]

    def get(
        self,
        text: str,
        context: Union[UserContext, Mapping[str, Any], None] = None,
    ) -> Optional[FinalAnalysis]:
        """
        Look up a stored analysis.

        Returns:
            The cached FinalAnalysis, or None on a miss, a stale version or
            a corrupt entry (the latter two are deleted).
        """
        key = self.key_for(text, context)
        raw = self.store.get(key)
        if raw is None:
            logger.debug(f"💾 Cache miss: {key[:40]}...")
            return None

        try:
            header = _load_header(key, raw)
            if header.version != self.version:
                logger.debug(f"💾 Stale cache entry (version {header.version}), removing")
                self.store.pop(key, None)
                return None
            entry = _load_entry(key, raw)
        except CacheCorruptionError as e:
            logger.warning(f"💾 Removing corrupt cache entry: {e}")
            self.store.pop(key, None)
            return None

        logger.debug(f"💾 Cache hit: {key[:40]}...")
        return entry.result

    def set(
        self,
        text: str,
        context: Union[UserContext, Mapping[str, Any], None],
        result: FinalAnalysis,
    ) -> str:
        """
        Store an analysis, evicting the oldest entries when over capacity.

        Prune and write happen under one lock, so eviction is decided on a
        consistent snapshot. Overwriting an existing key evicts nothing.

        Returns:
            The key the entry was written under.
        """
        key = self.key_for(text, context)
        entry = CachedAnalysis(
            version=self.version,
            timestamp=self._clock(),
            text_hash=text_hash(text),
            context_hash=context_hash(context),
            result=result,
        )

        with self._lock:
            if key not in self.store:
                self._prune_locked(reserve=1)
            self.store[key] = entry.model_dump_json()

        logger.debug(f"💾 Cached analysis: {key[:40]}...")
        return key

    def prune(self) -> int:
        """
        Remove corrupt entries and evict down to capacity.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            return self._prune_locked(reserve=0)

    def _prune_locked(self, reserve: int) -> int:
        timestamps: list[tuple[float, str]] = []
        removed = 0

        for key in self._own_keys():
            try:
                header = _load_header(key, self.store[key])
            except CacheCorruptionError as e:
                logger.warning(f"💾 Removing corrupt cache entry: {e}")
                del self.store[key]
                removed += 1
                continue
            timestamps.append((header.timestamp, key))

        excess = len(timestamps) - (self.max_entries - reserve)
        if excess > 0:
            timestamps.sort()
            for _, key in timestamps[:excess]:
                del self.store[key]
                logger.debug(f"💾 Pruned old entry: {key[:40]}...")
            removed += excess

        return removed

    def clear(self) -> int:
        """Delete every entry owned by this cache; returns how many."""
        with self._lock:
            keys = self._own_keys()
            for key in keys:
                del self.store[key]
        logger.info(f"💾 Cleared {len(keys)} cache entries")
        return len(keys)

    def __len__(self) -> int:
        return len(self._own_keys())

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.startswith(self.prefix) and key in self.store


__all__ = [
    "normalize_text",
    "relevant_context_fields",
    "text_hash",
    "context_hash",
    "generate_cache_key",
    "CachedAnalysis",
    "AnalysisCache",
]
