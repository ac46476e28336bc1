"""
Dictionary tier lookup for deduplication index sizing

Maps a deduplication key count to the hardware tier able to hold it and
assesses how full an existing dictionary is.
"""

import bisect
import logging
import math
from fractions import Fraction
from typing import List, Optional, Sequence

from dedupsim.constants import BYTES_PER_KEY, KEY_SCALE
from dedupsim.models import (
    DictionarySizing,
    DictionaryTier,
    DictionaryUsageReport,
    TierStatus,
)

logger = logging.getLogger(__name__)


DICTIONARY_TIERS: List[DictionaryTier] = [
    DictionaryTier(
        min_keys=0, max_keys=2_863_355_222, size_label="64GiB", size_gib=64,
        base_ram_mb=4096, additional_ram_mb=0, shift=19, page_shift=12,
    ),
    DictionaryTier(
        min_keys=2_863_355_223, max_keys=5_726_710_444, size_label="128GiB", size_gib=128,
        base_ram_mb=4096, additional_ram_mb=0, shift=20, page_shift=12,
    ),
    DictionaryTier(
        min_keys=5_726_710_445, max_keys=11_453_420_886, size_label="256GiB", size_gib=256,
        base_ram_mb=8192, additional_ram_mb=0, shift=21, page_shift=12,
    ),
    DictionaryTier(
        min_keys=11_453_420_887, max_keys=22_906_841_772, size_label="384GiB", size_gib=384,
        base_ram_mb=8192, additional_ram_mb=1412, shift=22, page_shift=12,
    ),
    DictionaryTier(
        min_keys=22_906_841_773, max_keys=45_813_683_542, size_label="640GiB", size_gib=640,
        base_ram_mb=16384, additional_ram_mb=2576, shift=23, page_shift=12,
    ),
    DictionaryTier(
        min_keys=45_813_683_543, max_keys=91_627_367_084, size_label="1.52TiB", size_gib=1520,
        base_ram_mb=32768, additional_ram_mb=4880, shift=24, page_shift=12,
    ),
    DictionaryTier(
        min_keys=91_627_367_085, max_keys=183_254_734_166, size_label="2.176TiB", size_gib=2176,
        base_ram_mb=65536, additional_ram_mb=9488, shift=25, page_shift=12,
    ),
    DictionaryTier(
        min_keys=183_254_734_167, max_keys=366_509_468_332, size_label="4.224TiB", size_gib=4224,
        base_ram_mb=65536, additional_ram_mb=18704, shift=26, page_shift=12,
    ),
]


def keys_for_footprint(footprint_tib: float) -> int:
    """
    Convert a deduplicated footprint into a dictionary key count

    Negative footprints (floating-point noise around zero) count as empty.
    Scaling is exact, so footprints far beyond the largest tier still give
    a finite count that resolves to no tier.

    Raises:
        ValueError: If footprint_tib is not finite
    """
    if not math.isfinite(footprint_tib):
        raise ValueError(f"Footprint must be finite, got {footprint_tib}")
    if footprint_tib <= 0:
        return 0
    return math.floor(Fraction(footprint_tib) * KEY_SCALE / BYTES_PER_KEY)


class DictionaryTierLookup:
    """
    Ordered, contiguous key-range table with bisection lookup

    Args:
        tiers: Tiers ordered by ascending ``min_keys``; ranges must be
            contiguous and start at zero
    """

    def __init__(self, tiers: Sequence[DictionaryTier] = DICTIONARY_TIERS):
        self.tiers = list(tiers)
        self._check_contiguous()
        self._min_keys = [tier.min_keys for tier in self.tiers]

    def _check_contiguous(self) -> None:
        if not self.tiers:
            raise ValueError("Dictionary tier table is empty")
        if self.tiers[0].min_keys != 0:
            raise ValueError("Dictionary tier table must start at 0 keys")
        for lower, upper in zip(self.tiers, self.tiers[1:]):
            if upper.min_keys != lower.max_keys + 1:
                raise ValueError(
                    f"Tier {upper.size_label} does not continue {lower.size_label}: "
                    f"{lower.max_keys} -> {upper.min_keys}"
                )

    @property
    def max_keys(self) -> int:
        """Largest key count any tier can hold"""
        return self.tiers[-1].max_keys

    def find(self, num_keys: int) -> Optional[DictionaryTier]:
        """
        Find the tier whose range contains ``num_keys``

        Returns:
            The unique matching tier, or None when the count exceeds the table

        Raises:
            ValueError: If num_keys is negative
        """
        if num_keys < 0:
            raise ValueError(f"Key count cannot be negative, got {num_keys}")
        if num_keys > self.max_keys:
            return None
        index = bisect.bisect_right(self._min_keys, num_keys) - 1
        return self.tiers[index]

    def resolve(self, num_keys: int) -> DictionarySizing:
        """Look up ``num_keys`` and tag the outcome"""
        tier = self.find(num_keys)
        if tier is None:
            logger.debug(f"No dictionary tier holds {num_keys:,} keys")
            return DictionarySizing(
                required_keys=num_keys, status=TierStatus.NO_TIER_AVAILABLE
            )
        return DictionarySizing(
            required_keys=num_keys,
            status=TierStatus.MATCHED,
            tier=tier,
            used_pct=num_keys / tier.max_keys * 100,
        )

    def find_by_size(self, size_gib: float) -> Optional[DictionaryTier]:
        """Smallest tier whose dictionary size is at least ``size_gib``"""
        for tier in self.tiers:
            if size_gib <= tier.size_gib:
                return tier
        return None

    def assess_usage(
        self, dictionary_size_gib: float, used_keys: int
    ) -> DictionaryUsageReport:
        """
        Assess how full an existing dictionary is

        The reported size is rounded up to a whole GiB before the tier is
        chosen, so a 63.2 GiB dictionary file is measured against the
        64GiB tier.

        Args:
            dictionary_size_gib: Observed dictionary file size in GiB
            used_keys: Observed number of keys in use

        Returns:
            DictionaryUsageReport; status is NO_TIER_AVAILABLE when the
            dictionary is larger than every tier
        """
        if dictionary_size_gib <= 0:
            raise ValueError(
                f"Dictionary size must be positive, got {dictionary_size_gib}"
            )
        lookup_size = math.ceil(dictionary_size_gib)
        tier = self.find_by_size(lookup_size)
        required = self.resolve(used_keys)

        if tier is None:
            logger.warning(
                f"No dictionary tier defined for {lookup_size} GiB "
                f"(largest is {self.tiers[-1].size_gib} GiB)"
            )
            return DictionaryUsageReport(
                dictionary_size_gib=dictionary_size_gib,
                lookup_size_gib=lookup_size,
                used_keys=used_keys,
                status=TierStatus.NO_TIER_AVAILABLE,
                required=required,
            )

        return DictionaryUsageReport(
            dictionary_size_gib=dictionary_size_gib,
            lookup_size_gib=lookup_size,
            used_keys=used_keys,
            status=TierStatus.MATCHED,
            tier=tier,
            percent_used=used_keys / tier.max_keys * 100,
            required=required,
        )


_default_lookup: Optional[DictionaryTierLookup] = None


def get_tier_lookup() -> DictionaryTierLookup:
    """Shared lookup over the standard tier table"""
    global _default_lookup
    if _default_lookup is None:
        _default_lookup = DictionaryTierLookup()
    return _default_lookup
