"""
Caching module for simulation runs
Simulations are pure functions of their parameters, so identical requests
are served from an LRU cache keyed by a parameter hash
"""

import hashlib
import json
from typing import Optional
from collections import OrderedDict
import logging
import threading

from dedupsim.models import SimulationParameters, SimulationResult
from dedupsim.types import CacheStatsDict

logger = logging.getLogger(__name__)


def hash_parameters(params: SimulationParameters) -> str:
    """
    Generate a deterministic hash of simulation parameters

    Returns:
        Hexadecimal SHA-256 digest
    """
    params_json = json.dumps(params.model_dump(), sort_keys=True)
    return hashlib.sha256(params_json.encode("utf-8")).hexdigest()


class SimulationCache:
    """
    LRU cache of finished simulations

    Results are immutable once built, so entries are shared, not copied.
    """

    def __init__(self, max_size: int = 50):
        self.max_size = max_size
        self._cache: "OrderedDict[str, SimulationResult]" = OrderedDict()
        self._lock = threading.RLock()
        self._stats = {"hits": 0, "misses": 0, "evictions": 0}

    def get(self, params_hash: str) -> Optional[SimulationResult]:
        with self._lock:
            if params_hash in self._cache:
                self._cache.move_to_end(params_hash)
                self._stats["hits"] += 1
                logger.debug(f"Cache hit for parameters hash: {params_hash[:16]}...")
                return self._cache[params_hash]
            self._stats["misses"] += 1
            logger.debug(f"Cache miss for parameters hash: {params_hash[:16]}...")
            return None

    def put(self, params_hash: str, result: SimulationResult) -> None:
        with self._lock:
            if len(self._cache) >= self.max_size and params_hash not in self._cache:
                oldest_hash, _ = self._cache.popitem(last=False)
                self._stats["evictions"] += 1
                logger.debug(f"Cache eviction: removed parameters hash {oldest_hash[:16]}...")

            self._cache[params_hash] = result
            self._cache.move_to_end(params_hash)
            logger.debug(
                f"Cached parameters hash: {params_hash[:16]}... (cache size: {len(self._cache)})"
            )

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._stats = {"hits": 0, "misses": 0, "evictions": 0}
            logger.info("Cache cleared")

    def get_stats(self) -> CacheStatsDict:
        """
        Get cache statistics

        Returns:
            Dictionary with size, max_size, hits, misses, evictions and
            hit_rate (percentage)
        """
        with self._lock:
            total_requests = self._stats["hits"] + self._stats["misses"]
            hit_rate = (
                (self._stats["hits"] / total_requests * 100)
                if total_requests > 0
                else 0.0
            )
            return {
                "size": len(self._cache),
                "max_size": self.max_size,
                "hits": self._stats["hits"],
                "misses": self._stats["misses"],
                "evictions": self._stats["evictions"],
                "hit_rate": round(hit_rate, 2),
            }


_simulation_cache: Optional[SimulationCache] = None
_cache_lock = threading.Lock()


def get_cache() -> SimulationCache:
    """
    Get the global simulation cache instance

    Returns:
        Global SimulationCache instance
    """
    global _simulation_cache
    if _simulation_cache is None:
        with _cache_lock:
            if _simulation_cache is None:
                from dedupsim.config import get_settings
                config = get_settings()
                _simulation_cache = SimulationCache(max_size=config.cache_max_size)
                logger.info(f"Initialized simulation cache with max_size={config.cache_max_size}")
    return _simulation_cache
