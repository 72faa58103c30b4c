"""Validation result cache.

Memoizes node validation results by (node_id, content_hash, judge_version)
on top of a LangGraph cache backend. A cache is created by the caller and
passed explicitly to the scorer, so workflows and tests can run with
isolated or shared caches.

Usage:
    from report_validation.cache import ValidationCache, create_cache_backend

    cache = ValidationCache(create_cache_backend())
    scorer = ConfidenceScorer(judge, cache=cache, config=config)

Configuration via environment variables:
    CACHE_BACKEND=memory     memory (default) or sqlite
    CACHE_PATH=./data/validation_cache.db   SQLite cache file path
    CACHE_TTL=               Optional TTL in seconds (default: no expiry)
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from langgraph.cache.base import BaseCache
from langgraph.cache.memory import InMemoryCache

from report_validation.config import settings as app_settings
from report_validation.config.settings import Settings
from report_validation.state.models import ValidationResult

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "validation"


@dataclass
class CacheStats:
    """Hit/miss counters for one ValidationCache."""

    hits: int = 0
    misses: int = 0
    writes: int = 0
    skipped_writes: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


def create_cache_backend(source: Settings | None = None) -> BaseCache:
    """
    Create the cache backend selected by settings.

    Args:
        source: Settings to read (defaults to the global settings)

    Returns:
        InMemoryCache, or SqliteCache when CACHE_BACKEND=sqlite.
    """
    source = source or app_settings

    if source.cache_backend == "sqlite":
        from langgraph.cache.sqlite import SqliteCache

        cache_path = Path(source.cache_path)
        if not cache_path.parent.exists():
            logger.info(f"Creating cache directory: {cache_path.parent}")
            cache_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Initializing SQLite validation cache at: {cache_path}")
        return SqliteCache(path=str(cache_path))

    return InMemoryCache()


class ValidationCache:
    """Cache of ValidationResults keyed by node id, content hash and judge version.

    Writes are idempotent for a given key, so concurrent writers racing on
    the same key are harmless. Degraded results (any metric whose judge was
    unavailable) are refused, so a transient judge outage is never
    memoized.
    """

    def __init__(self, backend: BaseCache | None = None, ttl: int | None = None):
        self.backend = backend if backend is not None else InMemoryCache()
        self.ttl = ttl
        self.stats = CacheStats()
        self._stats_lock = threading.Lock()

    @staticmethod
    def _full_key(node_id: str, content_hash: str, judge_version: str):
        return ((CACHE_NAMESPACE, judge_version, node_id), content_hash)

    async def get(
        self,
        node_id: str,
        content_hash: str,
        judge_version: str,
    ) -> ValidationResult | None:
        """Return the cached result for the key, or None on a miss."""
        key = self._full_key(node_id, content_hash, judge_version)
        found = await self.backend.aget([key])

        with self._stats_lock:
            if key in found:
                self.stats.hits += 1
            else:
                self.stats.misses += 1

        if key not in found:
            return None

        logger.debug(f"Cache hit for node {node_id} ({content_hash[:8]}, {judge_version})")
        return ValidationResult.model_validate(found[key])

    async def set(self, result: ValidationResult) -> bool:
        """
        Store a result under its own key.

        Args:
            result: Validation result to store

        Returns:
            True if stored, False if the result was degraded and skipped.
        """
        if result.degraded:
            with self._stats_lock:
                self.stats.skipped_writes += 1
            logger.debug(f"Not caching degraded result for node {result.node_id}")
            return False

        key = self._full_key(
            result.node_id,
            result.metadata.content_hash,
            result.metadata.judge_version,
        )
        await self.backend.aset({key: (result.model_dump(mode="json"), self.ttl)})

        with self._stats_lock:
            self.stats.writes += 1
        return True

    async def invalidate(self, node_id: str, judge_version: str) -> None:
        """Drop every cached result for a node under a judge version."""
        await self.backend.aclear([(CACHE_NAMESPACE, judge_version, node_id)])
        logger.debug(f"Invalidated cache for node {node_id} ({judge_version})")

    async def clear(self) -> None:
        """Clear all cached entries."""
        await self.backend.aclear()
        logger.info("Validation cache cleared")

    def get_stats(self) -> dict:
        """Cache statistics as a plain dictionary."""
        return {
            "backend": self.backend.__class__.__name__,
            "hits": self.stats.hits,
            "misses": self.stats.misses,
            "writes": self.stats.writes,
            "skipped_writes": self.stats.skipped_writes,
            "hit_rate": round(self.stats.hit_rate, 3),
        }


__all__ = [
    "CACHE_NAMESPACE",
    "CacheStats",
    "ValidationCache",
    "create_cache_backend",
]
