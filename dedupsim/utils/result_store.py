"""
Result store for simulation runs
Keeps finished simulations in memory so they can be exported and compared
"""

import uuid
from typing import Dict, List, Optional
from datetime import datetime, timedelta, timezone
import threading
import logging

from dedupsim.models import SimulationResult
from dedupsim.simulation import SERIES_FIELDS
from dedupsim.types import ResultStoreStatsDict, SeriesDict

logger = logging.getLogger(__name__)

# Daily fields that can be exported or compared, beyond the aggregates
EXPORT_FIELDS = SERIES_FIELDS + ("required_keys", "matched_tier")


class StoredSimulation:
    """
    A finished simulation with an ID and an expiry

    Attributes:
        id: Unique identifier for the run
        result: The simulation output
        created_at: Timestamp when the run was stored
        expires_at: Expiration timestamp
    """

    def __init__(
        self,
        result: SimulationResult,
        result_id: Optional[str] = None,
        ttl_hours: Optional[int] = None,
    ):
        self.id = result_id or str(uuid.uuid4())
        self.result = result
        self.created_at = datetime.now(timezone.utc)

        ttl = ttl_hours if ttl_hours is not None else 24
        self.expires_at = self.created_at + timedelta(hours=ttl)

    def is_expired(self) -> bool:
        return datetime.now(timezone.utc) > self.expires_at

    def to_series(self, fields: Optional[List[str]] = None) -> SeriesDict:
        """
        Flatten the per-day results into one list per field

        Args:
            fields: Optional list of fields to include. If None, includes
                every exportable field. Unknown names are ignored.

        Returns:
            Dictionary with the day index and the selected series
        """
        selected = [f for f in EXPORT_FIELDS if fields is None or f in fields]
        series: Dict[str, list] = {field: [] for field in selected}
        for daily in self.result.days:
            for field in selected:
                if field == "matched_tier":
                    tier = daily.matched_tier
                    series[field].append(tier.size_label if tier else daily.tier_status.value)
                else:
                    series[field].append(getattr(daily, field))

        return {"day": [d.day for d in self.result.days], "series": series}


class ResultStore:
    """
    Thread-safe in-memory store for simulation runs

    Expired runs are removed lazily; when full, the oldest run is evicted.
    """

    def __init__(self, max_size: int = 200, ttl_hours: Optional[int] = None):
        self._store: Dict[str, StoredSimulation] = {}
        self._lock = threading.RLock()
        self.max_size = max_size
        self.ttl_hours = ttl_hours

    def store(self, result: SimulationResult) -> str:
        """
        Store a simulation result

        Returns:
            Result ID
        """
        stored = StoredSimulation(result, ttl_hours=self.ttl_hours)
        with self._lock:
            self._cleanup_expired()

            if len(self._store) >= self.max_size:
                self._evict_oldest()

            self._store[stored.id] = stored
            logger.debug(f"Stored simulation result: {stored.id}")
            return stored.id

    def get(self, result_id: str) -> Optional[StoredSimulation]:
        """
        Retrieve a stored run by ID

        Returns:
            StoredSimulation if found and not expired, None otherwise
        """
        with self._lock:
            stored = self._store.get(result_id)

            if stored is None:
                return None

            if stored.is_expired():
                del self._store[result_id]
                logger.debug(f"Result {result_id} expired and removed")
                return None

            return stored

    def delete(self, result_id: str) -> bool:
        with self._lock:
            if result_id in self._store:
                del self._store[result_id]
                logger.debug(f"Deleted simulation result: {result_id}")
                return True
            return False

    def _cleanup_expired(self) -> None:
        # Caller holds self._lock
        expired_ids = [
            result_id
            for result_id, stored in self._store.items()
            if stored.is_expired()
        ]
        for result_id in expired_ids:
            del self._store[result_id]
            logger.debug(f"Cleaned up expired result: {result_id}")

    def _evict_oldest(self) -> None:
        # Caller holds self._lock
        if not self._store:
            return
        oldest_id = min(self._store, key=lambda rid: self._store[rid].created_at)
        del self._store[oldest_id]
        logger.debug(f"Evicted oldest result: {oldest_id}")

    def get_stats(self) -> ResultStoreStatsDict:
        with self._lock:
            self._cleanup_expired()
            return {
                "size": len(self._store),
                "max_size": self.max_size,
                "results": [
                    {
                        "id": stored.id,
                        "created_at": stored.created_at.isoformat(),
                        "expires_at": stored.expires_at.isoformat(),
                        "simulation_days": stored.result.parameters.simulation_days,
                        "tier_status": stored.result.summary.tier_status.value,
                    }
                    for stored in self._store.values()
                ],
            }


_result_store: Optional[ResultStore] = None
_store_lock = threading.Lock()


def get_result_store() -> ResultStore:
    """
    Get the global result store instance

    Returns:
        ResultStore singleton instance
    """
    global _result_store

    if _result_store is None:
        with _store_lock:
            if _result_store is None:
                from dedupsim.config import get_settings
                config = get_settings()
                _result_store = ResultStore(
                    max_size=config.result_store_max_size,
                    ttl_hours=config.result_store_ttl_hours,
                )
                logger.info(f"Initialized result store with max_size={config.result_store_max_size}")

    return _result_store
