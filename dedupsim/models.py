"""
Pydantic models for the Deduplication Retention Simulator
Defines simulation parameters, synthetic backups, dictionary tiers and results
"""

from enum import Enum
from typing import List, Dict, Optional, Any, FrozenSet

from pydantic import BaseModel, ConfigDict, Field

from dedupsim.exceptions import ValidationError


class SimulationParameters(BaseModel):
    """
    Input knobs for one simulation run

    Range checks live in the validation layer so that every offending
    field is reported together instead of failing on the first one.

    Attributes:
        source_size_tib: Initial logical size of the protected dataset
        daily_change_rate: Fraction (0-1) of the source that changes per day
        compression_ratio: Fraction (0-1) of bytes saved once compression ramps up
        daily_retention_days: Days every backup is kept
        weekly_retention_count: Weekly backups kept after the daily window
        monthly_retention_count: Monthly backups kept after the weekly window
        yearly_retention_count: Yearly backups kept after the monthly window
        simulation_days: Number of days to simulate
        cloud_delay_days: Age at which a backup's bytes move to cloud
    """

    model_config = ConfigDict(frozen=True)

    source_size_tib: float = Field(..., description="Initial dataset size in TiB")
    daily_change_rate: float = Field(0.02, description="Daily change rate (0-1)")
    compression_ratio: float = Field(0.5, description="Steady-state compression savings (0-1)")
    daily_retention_days: int = 12
    weekly_retention_count: int = 4
    monthly_retention_count: int = 11
    yearly_retention_count: int = 7
    simulation_days: int = Field(90, description="Days to simulate")
    cloud_delay_days: int = Field(5, description="Days before bytes move to cloud")

    @classmethod
    def from_months(cls, months: int, **kwargs: Any) -> "SimulationParameters":
        """Build parameters for a horizon given in 30-day months"""
        return cls(simulation_days=months * 30, **kwargs)


class SyntheticBackup(BaseModel):
    """One day's synthetic backup, created once per run and never mutated"""

    model_config = ConfigDict(frozen=True)

    day: int
    logical_size_tib: float
    delta_size_tib: float
    compressed_delta_tib: float
    compressed_full_tib: float
    tiers: FrozenSet[str]

    def has_tier(self, tier: str) -> bool:
        return tier in self.tiers


class RetentionCutoffs(BaseModel):
    """Age boundaries (in days) closing each retention tier's window"""

    model_config = ConfigDict(frozen=True)

    daily_cut: int
    weekly_cut: int
    monthly_cut: int
    yearly_cut: int


class DictionaryTier(BaseModel):
    """
    Hardware sizing tier for a deduplication dictionary

    Attributes:
        min_keys: Smallest key count served by this tier (inclusive)
        max_keys: Largest key count served by this tier (inclusive)
        size_label: Dictionary size as displayed, e.g. "256GiB"
        size_gib: Dictionary size in GiB
        base_ram_mb: Base RAM required
        additional_ram_mb: RAM required on top of the base
        shift: Dictionary table capacity exponent
        page_shift: Dictionary page size exponent
    """

    model_config = ConfigDict(frozen=True)

    min_keys: int
    max_keys: int
    size_label: str
    size_gib: int
    base_ram_mb: int
    additional_ram_mb: int
    shift: int
    page_shift: int

    @property
    def total_ram_mb(self) -> int:
        return self.base_ram_mb + self.additional_ram_mb

    def contains(self, num_keys: int) -> bool:
        return self.min_keys <= num_keys <= self.max_keys


class TierStatus(str, Enum):
    """Outcome of resolving a key count against the tier table"""

    MATCHED = "matched"
    NO_TIER_AVAILABLE = "no_tier_available"


class DictionarySizing(BaseModel):
    """
    Tagged result of a tier lookup

    ``tier`` and ``used_pct`` are only set when ``status`` is MATCHED.
    """

    model_config = ConfigDict(frozen=True)

    required_keys: int
    status: TierStatus
    tier: Optional[DictionaryTier] = None
    used_pct: Optional[float] = None

    @property
    def over_capacity(self) -> bool:
        return self.status == TierStatus.NO_TIER_AVAILABLE


class DailySimulationResult(BaseModel):
    """Storage, efficiency and dictionary metrics at the end of one day"""

    day: int
    retained_backup_count: int
    retained_logical_tib: float
    retained_uncompressed_tib: float
    retained_full_copy_tib: float
    stored_compressed_tib: float
    stored_local_tib: float
    stored_cloud_tib: float
    dedupe_efficiency_post_compression_pct: float
    dedupe_efficiency_pre_compression_pct: float
    required_keys: int
    matched_tier: Optional[DictionaryTier] = None
    tier_status: TierStatus


class DictionarySizingSample(BaseModel):
    """Dictionary sizing sampled once per 30-day month"""

    month: int
    day: int
    footprint_tib: float
    required_keys: int
    matched_tier: Optional[DictionaryTier] = None
    tier_status: TierStatus


class SimulationSummary(BaseModel):
    """Final-day totals plus the dictionary sizing they require"""

    total_logical_tib: float
    total_stored_tib: float
    total_local_tib: float
    total_cloud_tib: float
    total_ingested_tib: float
    dedupe_efficiency_post_compression_pct: float
    dedupe_efficiency_pre_compression_pct: float
    required_keys: int
    peak_required_keys: int
    final_tier: Optional[DictionaryTier] = None
    tier_status: TierStatus
    used_pct: Optional[float] = None


class SimulationResult(BaseModel):
    """
    Complete output of one simulation run

    Attributes:
        parameters: Parameters the run was computed from
        cutoffs: Retention windows derived from the parameters
        days: One entry per simulated day
        monthly: Dictionary sizing sampled every 30 days
        summary: Final-day totals
    """

    parameters: SimulationParameters
    cutoffs: RetentionCutoffs
    days: List[DailySimulationResult]
    monthly: List[DictionarySizingSample]
    summary: SimulationSummary


# ============================================================================
# API payloads
# ============================================================================


class SimulationRequest(BaseModel):
    """
    Simulation request payload

    Attributes:
        parameters: Simulation parameters
        verbose: Log the run at INFO level
    """

    parameters: SimulationParameters
    verbose: bool = False


class SimulationResponse(BaseModel):
    """
    Simulation execution result

    Attributes:
        success: Whether simulation completed successfully
        result_id: Identifier for export and comparison
        cached: Whether the result was served from the simulation cache
        result: The simulation output
        warnings: Non-blocking validation findings
    """

    success: bool
    result_id: Optional[str] = None
    cached: bool = False
    result: Optional[SimulationResult] = None
    warnings: List[ValidationError] = []


class ValidationResponse(BaseModel):
    """
    Parameter validation result

    Attributes:
        valid: Whether the parameters are valid
        errors: List of validation errors
        warnings: List of validation warnings
        summary: Derived run shape (if valid)
    """

    valid: bool
    errors: List[ValidationError] = []
    warnings: List[ValidationError] = []
    summary: Optional[Dict[str, Any]] = None


class CompareRequest(BaseModel):
    """
    Request for comparing two stored simulation results

    Attributes:
        result_id_1: Baseline result ID
        result_id_2: Result ID compared against the baseline
        series_fields: Optional list of daily fields to compare (if None, compares all)
    """

    result_id_1: str
    result_id_2: str
    series_fields: Optional[List[str]] = None


class CompareResponse(BaseModel):
    """
    Comparison result between two simulations

    Attributes:
        differences: Mapping of field name to difference metrics
        summary: Summary statistics of differences
    """

    differences: Dict[str, Dict[str, float]]
    summary: Dict[str, Any]


class DictionaryUsageRequest(BaseModel):
    """
    Observed dictionary state to assess

    Attributes:
        dictionary_size_gib: Size of the dictionary file in GiB
        used_keys: Number of keys currently in use
    """

    dictionary_size_gib: float = Field(..., gt=0)
    used_keys: int = Field(..., ge=0)


class DictionaryUsageReport(BaseModel):
    """
    Usage of an existing dictionary against its tier

    Attributes:
        dictionary_size_gib: Size as reported
        lookup_size_gib: Whole-GiB size used to select the tier
        status: Whether a tier with that size exists
        tier: Tier matching the dictionary size
        percent_used: used_keys / tier.max_keys * 100
        required: Tier the used key count alone would need
    """

    dictionary_size_gib: float
    lookup_size_gib: int
    used_keys: int
    status: TierStatus
    tier: Optional[DictionaryTier] = None
    percent_used: Optional[float] = None
    required: DictionarySizing
