"""
Validation layer for simulation parameters
Checks ranges, horizon limits and flags policies that cannot show any effect
"""

import math
from typing import List, Optional

from pydantic import BaseModel

from dedupsim.config import get_settings
from dedupsim.constants import (
    DAYS_IN_MONTH,
    DAYS_IN_WEEK,
    DAYS_IN_YEAR,
    MAX_SIMULATION_DAYS,
    MAX_SOURCE_SIZE_TIB,
)
from dedupsim.exceptions import ValidationError
from dedupsim.models import RetentionCutoffs, SimulationParameters


class ValidationResult(BaseModel):
    """Result of validation"""

    valid: bool
    errors: List[ValidationError]
    warnings: List[ValidationError] = []


RETENTION_FIELDS = (
    "daily_retention_days",
    "weekly_retention_count",
    "monthly_retention_count",
    "yearly_retention_count",
)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def compute_cutoffs(params: SimulationParameters) -> RetentionCutoffs:
    """Derive the age boundary closing each retention tier"""
    daily_cut = params.daily_retention_days
    weekly_cut = daily_cut + params.weekly_retention_count * DAYS_IN_WEEK
    monthly_cut = weekly_cut + params.monthly_retention_count * DAYS_IN_MONTH
    yearly_cut = monthly_cut + params.yearly_retention_count * DAYS_IN_YEAR
    return RetentionCutoffs(
        daily_cut=daily_cut,
        weekly_cut=weekly_cut,
        monthly_cut=monthly_cut,
        yearly_cut=yearly_cut,
    )


# ============================================================================
# Range Validation
# ============================================================================


def validate_source(params: SimulationParameters) -> List[ValidationError]:
    """
    Validate dataset growth inputs

    Rules:
    - 0 < source_size_tib <= MAX_SOURCE_SIZE_TIB
    - daily_change_rate in [0, 1]
    - compression_ratio in [0, 1]
    """
    errors: List[ValidationError] = []

    if not _is_number(params.source_size_tib) or params.source_size_tib <= 0:
        errors.append(
            ValidationError(
                code="invalid_source_size",
                message=f"Source size must be greater than 0 TiB, got {params.source_size_tib}",
                field="source_size_tib",
                suggestion="Set source_size_tib to the protected dataset size (e.g., 10)",
            )
        )
    elif params.source_size_tib > MAX_SOURCE_SIZE_TIB:
        errors.append(
            ValidationError(
                code="invalid_source_size",
                message=f"Source size of {params.source_size_tib} TiB exceeds maximum of {MAX_SOURCE_SIZE_TIB:g} TiB",
                field="source_size_tib",
                suggestion="Express the dataset size in TiB",
                context={"max_source_size_tib": MAX_SOURCE_SIZE_TIB},
            )
        )

    if not _is_number(params.daily_change_rate) or not 0 <= params.daily_change_rate <= 1:
        errors.append(
            ValidationError(
                code="invalid_change_rate",
                message=f"Daily change rate must be a fraction between 0 and 1, got {params.daily_change_rate}",
                field="daily_change_rate",
                suggestion="Express the rate as a fraction, e.g. 0.02 for 2%",
            )
        )

    if not _is_number(params.compression_ratio) or not 0 <= params.compression_ratio <= 1:
        errors.append(
            ValidationError(
                code="invalid_compression_ratio",
                message=f"Compression ratio must be a fraction between 0 and 1, got {params.compression_ratio}",
                field="compression_ratio",
                suggestion="Express savings as a fraction, e.g. 0.5 for 50%",
            )
        )

    return errors


def validate_retention(params: SimulationParameters) -> List[ValidationError]:
    """
    Validate retention policy knobs

    Rules:
    - every retention days/count is a non-negative integer
    - cloud_delay_days is a non-negative integer
    """
    errors: List[ValidationError] = []

    for field in RETENTION_FIELDS:
        value = getattr(params, field)
        if not isinstance(value, int) or value < 0:
            errors.append(
                ValidationError(
                    code="invalid_retention",
                    message=f"{field} must be a non-negative integer, got {value}",
                    field=field,
                    suggestion="Use 0 to disable a retention tier",
                )
            )

    if not isinstance(params.cloud_delay_days, int) or params.cloud_delay_days < 0:
        errors.append(
            ValidationError(
                code="invalid_cloud_delay",
                message=f"Cloud delay must be a non-negative number of days, got {params.cloud_delay_days}",
                field="cloud_delay_days",
                suggestion="Use 0 to move every backup except the baseline to cloud immediately",
            )
        )

    return errors


def validate_horizon(
    params: SimulationParameters, max_days: Optional[int] = None
) -> List[ValidationError]:
    """
    Validate the simulated horizon

    Rules:
    - simulation_days > 0
    - simulation_days <= max_days (settings, capped by MAX_SIMULATION_DAYS)
    """
    errors: List[ValidationError] = []

    if max_days is None:
        max_days = get_settings().max_simulation_days
    max_days = min(max_days, MAX_SIMULATION_DAYS)

    if not isinstance(params.simulation_days, int) or params.simulation_days <= 0:
        errors.append(
            ValidationError(
                code="invalid_simulation_days",
                message=f"Simulation must cover at least one day, got {params.simulation_days}",
                field="simulation_days",
                suggestion="Set simulation_days to a positive value (e.g., 90)",
            )
        )
    elif params.simulation_days > max_days:
        errors.append(
            ValidationError(
                code="too_many_days",
                message=f"Simulation of {params.simulation_days} days exceeds maximum of {max_days:,}",
                field="simulation_days",
                suggestion="Shorten the horizon or raise max_simulation_days",
                context={"max_simulation_days": max_days},
            )
        )

    return errors


# ============================================================================
# Warnings
# ============================================================================


def check_policy_effects(params: SimulationParameters) -> List[ValidationError]:
    """
    Flag policies that are valid but cannot show up in the results

    Only call on parameters that passed validation.
    """
    warnings: List[ValidationError] = []
    cutoffs = compute_cutoffs(params)

    if cutoffs.yearly_cut == 0:
        warnings.append(
            ValidationError(
                code="no_retention",
                message="All retention knobs are 0; no backup is ever retained",
                field="daily_retention_days",
                suggestion="Set at least daily_retention_days",
            )
        )

    # The baseline never migrates and the oldest other backup reaches simulation_days - 2
    if params.cloud_delay_days >= params.simulation_days - 1:
        warnings.append(
            ValidationError(
                code="cloud_delay_beyond_horizon",
                message=(
                    f"Cloud delay of {params.cloud_delay_days} days is not reached within "
                    f"{params.simulation_days} simulated days; cloud storage stays empty"
                ),
                field="cloud_delay_days",
            )
        )

    if cutoffs.yearly_cut > params.simulation_days:
        warnings.append(
            ValidationError(
                code="retention_beyond_horizon",
                message=(
                    f"Longest retention window ({cutoffs.yearly_cut} days) exceeds the "
                    f"{params.simulation_days}-day horizon; steady state is not reached"
                ),
                field="simulation_days",
                context={"longest_retention_days": cutoffs.yearly_cut},
            )
        )

    return warnings


def validate_parameters(
    params: SimulationParameters, max_days: Optional[int] = None
) -> ValidationResult:
    """
    Orchestrate all parameter checks

    Returns:
        ValidationResult with errors and warnings; warnings are only
        computed when there are no errors
    """
    errors: List[ValidationError] = []
    warnings: List[ValidationError] = []

    errors.extend(validate_source(params))
    errors.extend(validate_retention(params))
    errors.extend(validate_horizon(params, max_days))

    if not errors:
        warnings.extend(check_policy_effects(params))

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )
