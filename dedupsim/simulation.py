"""
Retention simulation engine
Models daily backups aging through retention tiers, local/cloud placement
and the deduplication dictionary those backups require
"""

from typing import List, Dict, Optional
import logging

import numpy as np

from dedupsim.constants import (
    DAYS_IN_MONTH,
    DAYS_IN_WEEK,
    DAYS_IN_YEAR,
    MONTHLY_SAMPLE_INTERVAL,
    RAMP_UP_DAYS,
    TIER_DAILY,
    TIER_MONTHLY,
    TIER_WEEKLY,
    TIER_YEARLY,
)
from dedupsim.dictionary import DictionaryTierLookup, get_tier_lookup, keys_for_footprint
from dedupsim.exceptions import ParameterValidationError, ValidationError
from dedupsim.models import (
    DailySimulationResult,
    DictionarySizingSample,
    SimulationParameters,
    SimulationResult,
    SimulationSummary,
    SyntheticBackup,
)
from dedupsim.validation import compute_cutoffs, validate_parameters

logger = logging.getLogger(__name__)

SERIES_FIELDS = (
    "retained_backup_count",
    "retained_logical_tib",
    "retained_uncompressed_tib",
    "retained_full_copy_tib",
    "stored_compressed_tib",
    "stored_local_tib",
    "stored_cloud_tib",
    "dedupe_efficiency_post_compression_pct",
    "dedupe_efficiency_pre_compression_pct",
)


def effective_compression(day: int, compression_ratio: float) -> float:
    """
    Compression savings achieved by the backup written on ``day``

    Starts at 0 on day 0 and ramps linearly to the full ratio by
    RAMP_UP_DAYS, then stays constant.
    """
    return compression_ratio * min(1.0, day / RAMP_UP_DAYS)


def efficiency_pct(reference_tib: float, stored_tib: float) -> float:
    """Percentage of ``reference_tib`` not physically stored, within [0, 100]"""
    if reference_tib <= 0:
        return 0.0
    pct = (reference_tib - stored_tib) / reference_tib * 100
    return min(100.0, max(0.0, pct))


class RetentionSimulator:
    """
    Day-by-day deduplication and retention model

    Parameters are validated on construction; the simulation itself is a
    pure function of them, so repeated runs return identical results.
    """

    def __init__(
        self,
        params: SimulationParameters,
        lookup: Optional[DictionaryTierLookup] = None,
        verbose: bool = False,
        max_days: Optional[int] = None,
    ):
        """
        Args:
            params: Simulation parameters
            lookup: Tier table to size the dictionary against (default table if None)
            verbose: Log run progress at INFO instead of DEBUG
            max_days: Override the configured horizon limit

        Raises:
            ParameterValidationError: If any parameter is out of range
        """
        validation = validate_parameters(params, max_days)
        if not validation.valid:
            logger.warning(
                f"Parameter validation failed with {len(validation.errors)} error(s)"
            )
            for i, error in enumerate(validation.errors, 1):
                logger.warning(f"  {i}. [{error.code}] {error.message}")
            raise ParameterValidationError(validation.errors)

        self.params = params
        self.warnings: List[ValidationError] = validation.warnings
        self.cutoffs = compute_cutoffs(params)
        self.lookup = lookup or get_tier_lookup()
        self.verbose = verbose
        self._backups: Optional[List[SyntheticBackup]] = None

        for warning in self.warnings:
            logger.info(f"Validation warning: {warning.message}")

    def _log(self, message: str) -> None:
        logger.log(logging.INFO if self.verbose else logging.DEBUG, message)

    # ------------------------------------------------------------------
    # Backup log
    # ------------------------------------------------------------------

    def build_backup_log(self) -> List[SyntheticBackup]:
        """Create one synthetic backup per simulated day"""
        p = self.params
        daily_delta = p.source_size_tib * p.daily_change_rate
        backups: List[SyntheticBackup] = []
        logical = p.source_size_tib

        for day in range(p.simulation_days):
            if day == 0:
                delta = p.source_size_tib
            else:
                delta = daily_delta
                logical += daily_delta

            kept_fraction = 1.0 - effective_compression(day, p.compression_ratio)
            tiers = {TIER_DAILY}
            if day % DAYS_IN_WEEK == 0:
                tiers.add(TIER_WEEKLY)
            if day % DAYS_IN_MONTH == 0:
                tiers.add(TIER_MONTHLY)
            if day % DAYS_IN_YEAR == 0:
                tiers.add(TIER_YEARLY)

            backups.append(
                SyntheticBackup(
                    day=day,
                    logical_size_tib=logical,
                    delta_size_tib=delta,
                    compressed_delta_tib=delta * kept_fraction,
                    compressed_full_tib=logical * kept_fraction,
                    tiers=frozenset(tiers),
                )
            )

        return backups

    @property
    def backups(self) -> List[SyntheticBackup]:
        """Backup log, built on first access"""
        if self._backups is None:
            self._backups = self.build_backup_log()
        return self._backups

    def is_retained(self, backup: SyntheticBackup, age: int) -> bool:
        """Whether ``backup`` is still held at ``age`` days old"""
        c = self.cutoffs
        if age < 0:
            return False
        if age < c.daily_cut:
            return True
        if age < c.weekly_cut:
            return backup.has_tier(TIER_WEEKLY)
        if age < c.monthly_cut:
            return backup.has_tier(TIER_MONTHLY)
        if age < c.yearly_cut:
            return backup.has_tier(TIER_YEARLY)
        return False

    def is_local(self, backup: SyntheticBackup, age: int) -> bool:
        """
        Whether a retained backup's bytes sit in local storage

        The day-0 baseline never migrates; every other backup moves to
        cloud once it reaches the cloud delay.
        """
        return backup.day == 0 or age < self.params.cloud_delay_days

    # ------------------------------------------------------------------
    # Vectorised retention pass
    # ------------------------------------------------------------------

    def _log_arrays(self) -> Dict[str, np.ndarray]:
        backups = self.backups
        contribution = [
            b.compressed_full_tib if b.day == 0 else b.compressed_delta_tib
            for b in backups
        ]
        return {
            "day": np.array([b.day for b in backups], dtype=np.int64),
            "delta": np.array([b.delta_size_tib for b in backups], dtype=np.float64),
            "full_copy": np.array([b.logical_size_tib for b in backups], dtype=np.float64),
            "contribution": np.array(contribution, dtype=np.float64),
            TIER_WEEKLY: np.array([b.has_tier(TIER_WEEKLY) for b in backups]),
            TIER_MONTHLY: np.array([b.has_tier(TIER_MONTHLY) for b in backups]),
            TIER_YEARLY: np.array([b.has_tier(TIER_YEARLY) for b in backups]),
        }

    def _retention_mask(
        self, ages: np.ndarray, log: Dict[str, np.ndarray], upto: int
    ) -> np.ndarray:
        c = self.cutoffs
        return (
            (ages < c.daily_cut)
            | ((ages >= c.daily_cut) & (ages < c.weekly_cut) & log[TIER_WEEKLY][:upto])
            | ((ages >= c.weekly_cut) & (ages < c.monthly_cut) & log[TIER_MONTHLY][:upto])
            | ((ages >= c.monthly_cut) & (ages < c.yearly_cut) & log[TIER_YEARLY][:upto])
        )

    def _initialize_series(self, n_days: int) -> Dict[str, np.ndarray]:
        series = {field: np.zeros(n_days, dtype=np.float64) for field in SERIES_FIELDS}
        series["retained_backup_count"] = np.zeros(n_days, dtype=np.int64)
        return series

    def _run_retention_pass(self) -> Dict[str, np.ndarray]:
        """Aggregate retained and stored volumes for every simulated day"""
        n_days = self.params.simulation_days
        cloud_delay = self.params.cloud_delay_days
        log = self._log_arrays()
        series = self._initialize_series(n_days)

        for current_day in range(n_days):
            upto = current_day + 1
            ages = current_day - log["day"][:upto]
            keep = self._retention_mask(ages, log, upto)
            local = keep & ((log["day"][:upto] == 0) | (ages < cloud_delay))
            cloud = keep & ~local

            delta = log["delta"][:upto]
            contribution = log["contribution"][:upto]

            retained = float(delta[keep].sum())
            full_copy = float(log["full_copy"][:upto][keep].sum())
            stored_local = float(contribution[local].sum())
            stored_cloud = float(contribution[cloud].sum())
            stored = stored_local + stored_cloud

            series["retained_backup_count"][current_day] = int(keep.sum())
            series["retained_logical_tib"][current_day] = retained
            series["retained_uncompressed_tib"][current_day] = retained
            series["retained_full_copy_tib"][current_day] = full_copy
            series["stored_compressed_tib"][current_day] = stored
            series["stored_local_tib"][current_day] = stored_local
            series["stored_cloud_tib"][current_day] = stored_cloud
            series["dedupe_efficiency_post_compression_pct"][current_day] = efficiency_pct(
                retained, stored
            )
            # Reference is the kept backups' own logical sizes rather than
            # source size times backup count, so dataset growth is included
            series["dedupe_efficiency_pre_compression_pct"][current_day] = efficiency_pct(
                full_copy, retained
            )

        return series

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> SimulationResult:
        """
        Run the simulation

        Returns:
            SimulationResult with the per-day series, the monthly
            dictionary sizing series and the final summary
        """
        p = self.params
        c = self.cutoffs
        self._log("=" * 60)
        self._log("RETENTION SIMULATION START")
        self._log(
            f"Source: {p.source_size_tib} TiB, change rate {p.daily_change_rate:.2%}, "
            f"compression {p.compression_ratio:.0%}, {p.simulation_days} days"
        )
        self._log(
            f"Cutoffs: daily<{c.daily_cut} weekly<{c.weekly_cut} "
            f"monthly<{c.monthly_cut} yearly<{c.yearly_cut}, cloud delay {p.cloud_delay_days}"
        )
        self._log("=" * 60)

        series = self._run_retention_pass()

        days: List[DailySimulationResult] = []
        monthly: List[DictionarySizingSample] = []
        for day in range(p.simulation_days):
            retained = float(series["retained_logical_tib"][day])
            stored = float(series["stored_compressed_tib"][day])
            footprint = retained - stored
            sizing = self.lookup.resolve(keys_for_footprint(footprint))

            days.append(
                DailySimulationResult(
                    day=day,
                    retained_backup_count=int(series["retained_backup_count"][day]),
                    retained_logical_tib=retained,
                    retained_uncompressed_tib=float(series["retained_uncompressed_tib"][day]),
                    retained_full_copy_tib=float(series["retained_full_copy_tib"][day]),
                    stored_compressed_tib=stored,
                    stored_local_tib=float(series["stored_local_tib"][day]),
                    stored_cloud_tib=float(series["stored_cloud_tib"][day]),
                    dedupe_efficiency_post_compression_pct=float(
                        series["dedupe_efficiency_post_compression_pct"][day]
                    ),
                    dedupe_efficiency_pre_compression_pct=float(
                        series["dedupe_efficiency_pre_compression_pct"][day]
                    ),
                    required_keys=sizing.required_keys,
                    matched_tier=sizing.tier,
                    tier_status=sizing.status,
                )
            )

            if day % MONTHLY_SAMPLE_INTERVAL == 0:
                monthly.append(
                    DictionarySizingSample(
                        month=day // MONTHLY_SAMPLE_INTERVAL,
                        day=day,
                        footprint_tib=footprint,
                        required_keys=sizing.required_keys,
                        matched_tier=sizing.tier,
                        tier_status=sizing.status,
                    )
                )

        summary = self._summarize(days)

        self._log("=" * 60)
        self._log("RETENTION SIMULATION COMPLETE")
        self._log(
            f"Stored {summary.total_stored_tib:.2f} TiB "
            f"(local {summary.total_local_tib:.2f}, cloud {summary.total_cloud_tib:.2f}), "
            f"keys {summary.required_keys:,}, "
            f"tier {summary.final_tier.size_label if summary.final_tier else summary.tier_status.value}"
        )
        self._log("=" * 60)

        return SimulationResult(
            parameters=p,
            cutoffs=c,
            days=days,
            monthly=monthly,
            summary=summary,
        )

    def _summarize(self, days: List[DailySimulationResult]) -> SimulationSummary:
        last = days[-1]
        sizing = self.lookup.resolve(last.required_keys)
        return SimulationSummary(
            total_logical_tib=last.retained_logical_tib,
            total_stored_tib=last.stored_compressed_tib,
            total_local_tib=last.stored_local_tib,
            total_cloud_tib=last.stored_cloud_tib,
            total_ingested_tib=sum(b.delta_size_tib for b in self.backups),
            dedupe_efficiency_post_compression_pct=last.dedupe_efficiency_post_compression_pct,
            dedupe_efficiency_pre_compression_pct=last.dedupe_efficiency_pre_compression_pct,
            required_keys=last.required_keys,
            peak_required_keys=max(d.required_keys for d in days),
            final_tier=sizing.tier,
            tier_status=sizing.status,
            used_pct=sizing.used_pct,
        )


def simulate(
    params: SimulationParameters,
    lookup: Optional[DictionaryTierLookup] = None,
    verbose: bool = False,
    max_days: Optional[int] = None,
) -> SimulationResult:
    """
    Run a retention simulation

    Args:
        params: Simulation parameters
        lookup: Tier table to size the dictionary against
        verbose: Log run progress at INFO instead of DEBUG
        max_days: Override the configured horizon limit

    Raises:
        ParameterValidationError: If any parameter is out of range
    """
    return RetentionSimulator(
        params, lookup=lookup, verbose=verbose, max_days=max_days
    ).run()
