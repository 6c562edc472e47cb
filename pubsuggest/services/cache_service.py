"""
Two-level disk cache service.

Implements 2-tier caching:
1. Publication records keyed by DOI (long TTL, citation lists change slowly)
2. Search responses keyed by query (short TTL)
"""

import hashlib
from pathlib import Path
from typing import Any, Dict, List, Optional, cast

import diskcache
import structlog
from pydantic import BaseModel, ConfigDict

from pubsuggest.models.config import CacheConfig

logger = structlog.get_logger()


class CacheStats(BaseModel):
    """Cache statistics"""

    model_config = ConfigDict(protected_namespaces=())

    record_cache_size: int = 0
    record_cache_hits: int = 0
    record_cache_misses: int = 0
    search_cache_size: int = 0

    @property
    def record_hit_rate(self) -> float:
        total = self.record_cache_hits + self.record_cache_misses
        if total == 0:
            return 0.0
        return self.record_cache_hits / total


class CacheService:
    """
    Disk cache for publication metadata.

    Provides automatic expiration and statistics tracking.
    Thread-safe and async-compatible.
    """

    def __init__(self, config: CacheConfig):
        """
        Initialize cache service.

        Args:
            config: Cache configuration
        """
        self.config = config
        self.cache_dir = Path(config.cache_dir)

        if not config.enabled:
            logger.info("cache_disabled")
            self.enabled = False
            return

        self.enabled = True
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        self.record_cache = diskcache.Cache(self.cache_dir / "records")
        self.search_cache = diskcache.Cache(self.cache_dir / "search")
        self.record_cache.stats(enable=True)

        logger.info(
            "cache_service_initialized",
            cache_dir=str(self.cache_dir),
            record_ttl_days=config.ttl_record_days,
            search_ttl_hours=config.ttl_search_hours,
        )

    # ==================== Publication Records ====================

    def get_record(self, doi: str) -> Optional[Dict]:
        """
        Get cached publication record.

        Args:
            doi: Normalized DOI

        Returns:
            Cached record dict or None if not cached
        """
        if not self.enabled:
            return None

        try:
            record = cast(Optional[Dict[Any, Any]], self.record_cache.get(doi))
            if record is not None:
                logger.debug("record_cache_hit", doi=doi)
            else:
                logger.debug("record_cache_miss", doi=doi)
            return record
        except Exception as e:
            logger.error("record_cache_error", doi=doi, error=str(e))
            return None

    def set_record(self, doi: str, record: Dict) -> None:
        """
        Cache publication record.

        Args:
            doi: Normalized DOI
            record: Raw record from the publication service
        """
        if not self.enabled:
            return

        try:
            self.record_cache.set(doi, record, expire=self.config.ttl_record_seconds)
            logger.debug("record_cached", doi=doi)
        except Exception as e:
            logger.error("record_cache_set_error", doi=doi, error=str(e))

    # ==================== Search Responses ====================

    def get_search(self, query: str) -> Optional[List[str]]:
        """Get cached DOIs for a bibliographic search."""
        if not self.enabled:
            return None

        try:
            return cast(Optional[List[str]], self.search_cache.get(self.hash_query(query)))
        except Exception as e:
            logger.error("search_cache_error", error=str(e))
            return None

    def set_search(self, query: str, dois: List[str]) -> None:
        """Cache DOIs found for a bibliographic search."""
        if not self.enabled:
            return

        try:
            self.search_cache.set(
                self.hash_query(query), list(dois), expire=self.config.ttl_search_seconds
            )
        except Exception as e:
            logger.error("search_cache_set_error", error=str(e))

    # ==================== Utility Methods ====================

    @staticmethod
    def hash_query(query: str) -> str:
        """
        Generate cache key for a search query.

        Args:
            query: Search query

        Returns:
            SHA256 hash as hex string
        """
        return hashlib.sha256(query.strip().lower().encode()).hexdigest()

    def get_stats(self) -> CacheStats:
        """
        Get cache statistics.

        Returns:
            CacheStats with current statistics
        """
        if not self.enabled:
            return CacheStats()

        try:
            hits, misses = self.record_cache.stats()
            return CacheStats(
                record_cache_size=len(self.record_cache),
                record_cache_hits=hits,
                record_cache_misses=misses,
                search_cache_size=len(self.search_cache),
            )
        except Exception as e:
            logger.error("cache_stats_error", error=str(e))
            return CacheStats()

    def clear_cache(self, cache_type: Optional[str] = None) -> None:
        """
        Clear cache(s).

        Args:
            cache_type: "records", "search", or None for all
        """
        if not self.enabled:
            return

        if cache_type is None or cache_type == "records":
            self.record_cache.clear()
            logger.info("record_cache_cleared")

        if cache_type is None or cache_type == "search":
            self.search_cache.clear()
            logger.info("search_cache_cleared")

    def close(self) -> None:
        if self.enabled:
            self.record_cache.close()
            self.search_cache.close()
