"""
Tests for caching functionality
"""

from dedupsim.models import SimulationParameters
from dedupsim.simulation import simulate
from dedupsim.utils.cache import hash_parameters, SimulationCache, get_cache


def test_hash_parameters_consistency():
    """Test that identical parameters produce identical hashes"""
    params = SimulationParameters(source_size_tib=10.0)
    hash1 = hash_parameters(params)
    hash2 = hash_parameters(SimulationParameters(source_size_tib=10.0))

    assert hash1 == hash2
    assert len(hash1) == 64  # SHA256 produces 64-character hex string


def test_hash_parameters_different():
    """Test that changing any knob changes the hash"""
    base = SimulationParameters(source_size_tib=10.0)
    assert hash_parameters(base) != hash_parameters(
        SimulationParameters(source_size_tib=10.0, cloud_delay_days=6)
    )
    assert hash_parameters(base) != hash_parameters(
        SimulationParameters(source_size_tib=10.5)
    )


def test_cache_put_and_get():
    """Test cached results are returned and counted as hits"""
    cache = SimulationCache(max_size=5)
    params = SimulationParameters(source_size_tib=1.0, simulation_days=10)
    result = simulate(params)
    key = hash_parameters(params)

    assert cache.get(key) is None
    cache.put(key, result)
    assert cache.get(key) is result

    stats = cache.get_stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 50.0


def test_cache_lru_eviction():
    """Test the least recently used entry is evicted first"""
    cache = SimulationCache(max_size=2)
    result = simulate(SimulationParameters(source_size_tib=1.0, simulation_days=5))

    cache.put("a", result)
    cache.put("b", result)
    cache.get("a")
    cache.put("c", result)

    assert cache.get("a") is result
    assert cache.get("b") is None
    assert cache.get("c") is result
    assert cache.get_stats()["evictions"] == 1


def test_cache_clear():
    """Test clearing empties the cache and resets counters"""
    cache = SimulationCache(max_size=2)
    cache.put("a", simulate(SimulationParameters(source_size_tib=1.0, simulation_days=5)))
    cache.get("a")
    cache.clear()

    stats = cache.get_stats()
    assert stats["size"] == 0
    assert stats["hits"] == 0
    assert stats["hit_rate"] == 0.0


def test_get_cache_singleton():
    """Test the global cache is created once"""
    assert get_cache() is get_cache()
