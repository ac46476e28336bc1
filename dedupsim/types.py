"""
Type definitions for the Deduplication Retention Simulator
Provides TypedDict hints for the dictionary payloads passed between layers
"""

from typing import TypedDict, List, Dict, Any


class SeriesDict(TypedDict):
    """
    Per-day series keyed by field name, as exported to CSV/JSON

    ``day`` holds the day index; ``series`` maps each numeric field of
    a daily result to its values in day order.
    """
    day: List[int]
    series: Dict[str, List[Any]]


class ValidationSummaryDict(TypedDict, total=False):
    valid: bool
    simulation_days: int
    backups: int
    retention_cutoffs: Dict[str, int]


class CacheStatsDict(TypedDict):
    size: int
    max_size: int
    hits: int
    misses: int
    evictions: int
    hit_rate: float


class ResultStoreStatsDict(TypedDict):
    size: int
    max_size: int
    results: List[Dict[str, Any]]
