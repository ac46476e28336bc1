"""
Tests for the retention simulation engine
"""

import pytest
from dedupsim.constants import (
    MAX_SOURCE_SIZE_TIB,
    TIER_DAILY,
    TIER_MONTHLY,
    TIER_WEEKLY,
    TIER_YEARLY,
)
from dedupsim.dictionary import get_tier_lookup, keys_for_footprint
from dedupsim.exceptions import ParameterValidationError, SimulationError
from dedupsim.models import SimulationParameters, TierStatus
from dedupsim.simulation import (
    RetentionSimulator,
    effective_compression,
    efficiency_pct,
    simulate,
)


@pytest.fixture
def reference_params():
    return SimulationParameters(
        source_size_tib=10.0,
        daily_change_rate=0.02,
        compression_ratio=0.5,
        daily_retention_days=12,
        weekly_retention_count=4,
        monthly_retention_count=11,
        yearly_retention_count=7,
        simulation_days=90,
        cloud_delay_days=5,
    )


@pytest.fixture
def reference_result(reference_params):
    return simulate(reference_params)


STRESS_POLICIES = [
    pytest.param({}, id="reference"),
    pytest.param({"cloud_delay_days": 0}, id="immediate-cloud"),
    pytest.param({"compression_ratio": 0.0}, id="no-compression"),
    pytest.param({"compression_ratio": 1.0}, id="full-compression"),
    pytest.param(
        {
            "daily_retention_days": 0,
            "weekly_retention_count": 4,
            "monthly_retention_count": 0,
            "yearly_retention_count": 0,
            "simulation_days": 60,
        },
        id="weekly-only",
    ),
    pytest.param(
        {
            "daily_retention_days": 2,
            "weekly_retention_count": 0,
            "monthly_retention_count": 0,
            "yearly_retention_count": 0,
            "simulation_days": 20,
        },
        id="baseline-ages-out",
    ),
    pytest.param({"daily_change_rate": 0.0}, id="static-source"),
]


@pytest.fixture(params=STRESS_POLICIES)
def policy_result(request, reference_params):
    params = reference_params.model_copy(update=request.param)
    return params, simulate(params)


def _contribution(backup):
    return backup.compressed_full_tib if backup.day == 0 else backup.compressed_delta_tib


def test_effective_compression_ramp():
    """Test compression ramps from 0 to the full ratio over three days"""
    assert effective_compression(0, 0.5) == 0.0
    assert effective_compression(1, 0.5) == pytest.approx(0.1667, abs=1e-4)
    assert effective_compression(2, 0.5) == pytest.approx(1 / 3)
    assert effective_compression(3, 0.5) == 0.5
    assert effective_compression(40, 0.5) == 0.5


def test_efficiency_pct_zero_reference():
    """Test efficiency is 0, not NaN, when nothing is held"""
    assert efficiency_pct(0.0, 0.0) == 0.0
    assert efficiency_pct(10.0, 5.0) == 50.0
    assert efficiency_pct(10.0, 12.0) == 0.0


def test_backup_log_growth(reference_params):
    """Test the first backups carry the source and daily change"""
    backups = RetentionSimulator(reference_params).backups

    assert len(backups) == 90
    assert backups[0].logical_size_tib == 10.0
    assert backups[0].delta_size_tib == 10.0
    assert backups[0].compressed_full_tib == 10.0
    assert backups[1].delta_size_tib == pytest.approx(0.2)
    assert backups[1].logical_size_tib == pytest.approx(10.2)
    assert backups[1].compressed_delta_tib == pytest.approx(0.2 * (1 - 0.5 / 3))
    assert backups[3].compressed_delta_tib == pytest.approx(0.1)

    for backup in backups:
        assert 0 < backup.delta_size_tib <= backup.logical_size_tib


def test_backup_tier_membership():
    """Test weekly, monthly and yearly membership follow the calendar"""
    params = SimulationParameters(source_size_tib=1.0, simulation_days=400)
    backups = RetentionSimulator(params).backups

    assert backups[0].tiers == {TIER_DAILY, TIER_WEEKLY, TIER_MONTHLY, TIER_YEARLY}
    assert backups[1].tiers == {TIER_DAILY}
    assert backups[7].tiers == {TIER_DAILY, TIER_WEEKLY}
    assert backups[30].tiers == {TIER_DAILY, TIER_MONTHLY}
    assert backups[210].tiers == {TIER_DAILY, TIER_WEEKLY, TIER_MONTHLY}
    assert backups[365].tiers == {TIER_DAILY, TIER_YEARLY}


def test_retention_cutoffs(reference_params):
    """Test cutoffs accumulate each tier's window"""
    cutoffs = RetentionSimulator(reference_params).cutoffs
    assert cutoffs.daily_cut == 12
    assert cutoffs.weekly_cut == 40
    assert cutoffs.monthly_cut == 370
    assert cutoffs.yearly_cut == 2925


def test_daily_only_backups_age_out(reference_params, reference_result):
    """Test daily-only backups drop at the daily cutoff while weeklies stay"""
    simulator = RetentionSimulator(reference_params)
    backups = simulator.backups

    assert simulator.is_retained(backups[1], 11)
    assert not simulator.is_retained(backups[1], 12)
    assert simulator.is_retained(backups[0], 12)
    assert simulator.is_retained(backups[7], 39)
    assert not simulator.is_retained(backups[7], 40)

    days = reference_result.days
    assert days[11].retained_backup_count == 12
    assert days[12].retained_backup_count == 13
    assert days[13].retained_backup_count == 13
    assert days[19].retained_backup_count == 14
    assert days[13].retained_logical_tib == pytest.approx(10 + 12 * 0.2)


def test_vectorised_pass_matches_scalar_rules(reference_params, reference_result):
    """Test per-day aggregates agree with the scalar retention/placement rules"""
    simulator = RetentionSimulator(reference_params)
    backups = simulator.backups

    for daily in reference_result.days:
        kept = [b for b in backups if simulator.is_retained(b, daily.day - b.day)]
        local = [b for b in kept if simulator.is_local(b, daily.day - b.day)]

        assert daily.retained_backup_count == len(kept)
        assert daily.retained_logical_tib == pytest.approx(sum(b.delta_size_tib for b in kept))
        assert daily.stored_local_tib == pytest.approx(sum(_contribution(b) for b in local))


def test_local_plus_cloud_equals_stored(policy_result):
    """Test every stored byte is placed exactly once"""
    params, result = policy_result
    simulator = RetentionSimulator(params)
    for daily in result.days:
        kept = [b for b in simulator.backups if simulator.is_retained(b, daily.day - b.day)]
        assert daily.stored_compressed_tib == pytest.approx(sum(_contribution(b) for b in kept))
        assert daily.stored_local_tib + daily.stored_cloud_tib == pytest.approx(
            daily.stored_compressed_tib
        )


def test_cloud_placement_after_delay(reference_result):
    """Test bytes move to cloud once they reach the cloud delay"""
    days = reference_result.days

    assert days[5].stored_cloud_tib == 0.0
    assert days[6].stored_cloud_tib == pytest.approx(0.2 * (1 - 0.5 / 3))
    assert days[6].stored_local_tib == pytest.approx(10 + 0.2 * (2 / 3) + 4 * 0.1)


def test_baseline_never_moves_to_cloud():
    """Test the day-0 full copy stays local even with no cloud delay"""
    params = SimulationParameters(
        source_size_tib=10.0, compression_ratio=0.5, simulation_days=3, cloud_delay_days=0
    )
    days = simulate(params).days

    assert days[0].stored_local_tib == 10.0
    assert days[0].stored_cloud_tib == 0.0
    assert days[1].stored_local_tib == 10.0
    assert days[1].stored_cloud_tib == pytest.approx(0.2 * (1 - 0.5 / 3))


def test_efficiency_bounds(policy_result):
    """Test efficiency percentages stay within [0, 100]"""
    _, result = policy_result
    for daily in result.days:
        assert 0.0 <= daily.dedupe_efficiency_post_compression_pct <= 100.0
        assert 0.0 <= daily.dedupe_efficiency_pre_compression_pct <= 100.0


def test_pre_compression_efficiency_against_full_copies(reference_result):
    """Test pre-compression efficiency measures savings over full copies"""
    days = reference_result.days
    assert days[0].dedupe_efficiency_pre_compression_pct == 0.0
    assert days[0].dedupe_efficiency_post_compression_pct == 0.0
    # Two full copies (10 + 10.2) held as 10 + 0.2 of unique data
    assert days[1].dedupe_efficiency_pre_compression_pct == pytest.approx(10 / 20.2 * 100)


def test_monotonic_within_daily_window(policy_result):
    """Test nothing ages out before the daily retention window closes"""
    params, result = policy_result
    days = result.days
    for day in range(1, min(params.daily_retention_days, params.simulation_days)):
        assert days[day].retained_logical_tib >= days[day - 1].retained_logical_tib - 1e-9
        assert days[day].stored_compressed_tib >= days[day - 1].stored_compressed_tib - 1e-9


def test_simulation_is_deterministic(reference_params):
    """Test identical parameters produce identical results"""
    first = simulate(reference_params)
    second = simulate(reference_params)
    assert first.model_dump() == second.model_dump()


def test_required_keys_follow_footprint(reference_result):
    """Test key counts derive from retained minus stored volume"""
    days = reference_result.days
    assert days[0].required_keys == 0
    assert days[0].matched_tier.size_label == "64GiB"

    for daily in days:
        footprint = daily.retained_logical_tib - daily.stored_compressed_tib
        assert daily.required_keys == keys_for_footprint(footprint)
        assert daily.tier_status == TierStatus.MATCHED


def test_monthly_sizing_series(reference_result):
    """Test dictionary sizing is sampled every 30 days"""
    monthly = reference_result.monthly
    assert [s.day for s in monthly] == [0, 30, 60]
    assert [s.month for s in monthly] == [0, 1, 2]
    assert monthly[1].required_keys == reference_result.days[30].required_keys


def test_summary_uses_last_day(reference_result):
    """Test summary statistics reflect the final day"""
    summary = reference_result.summary
    last = reference_result.days[-1]

    assert summary.total_logical_tib == last.retained_logical_tib
    assert summary.total_stored_tib == last.stored_compressed_tib
    assert summary.total_local_tib + summary.total_cloud_tib == pytest.approx(
        summary.total_stored_tib
    )
    assert summary.total_ingested_tib == pytest.approx(10 + 89 * 0.2)
    assert summary.final_tier.size_label == "64GiB"
    assert summary.used_pct == pytest.approx(
        last.required_keys / summary.final_tier.max_keys * 100
    )
    assert summary.peak_required_keys >= summary.required_keys


def test_over_capacity_is_a_result_state():
    """Test key counts beyond the largest tier are reported, not clamped"""
    params = SimulationParameters(
        source_size_tib=1_000_000.0,
        daily_change_rate=0.02,
        compression_ratio=0.5,
        simulation_days=5,
    )
    result = simulate(params)

    assert result.days[0].tier_status == TierStatus.MATCHED
    assert result.days[4].tier_status == TierStatus.NO_TIER_AVAILABLE
    assert result.days[4].matched_tier is None
    assert result.summary.tier_status == TierStatus.NO_TIER_AVAILABLE
    assert result.summary.final_tier is None
    assert result.summary.used_pct is None


def test_largest_source_size_reports_over_capacity():
    """Test the largest accepted source size sizes to no tier instead of failing"""
    params = SimulationParameters(source_size_tib=MAX_SOURCE_SIZE_TIB, simulation_days=5)
    result = simulate(params)

    assert result.summary.tier_status == TierStatus.NO_TIER_AVAILABLE
    assert result.summary.required_keys > get_tier_lookup().max_keys


def test_simulate_max_days_override():
    """Test callers can raise the configured horizon limit"""
    params = SimulationParameters(source_size_tib=1.0, simulation_days=3651)
    with pytest.raises(ParameterValidationError):
        simulate(params)

    result = simulate(params, max_days=3651)
    assert len(result.days) == 3651


def test_no_retention_holds_nothing():
    """Test a policy retaining nothing yields zeros, not NaN"""
    params = SimulationParameters(
        source_size_tib=10.0,
        daily_retention_days=0,
        weekly_retention_count=0,
        monthly_retention_count=0,
        yearly_retention_count=0,
        simulation_days=10,
    )
    simulator = RetentionSimulator(params)
    result = simulator.run()

    assert any(w.code == "no_retention" for w in simulator.warnings)
    for daily in result.days:
        assert daily.retained_logical_tib == 0.0
        assert daily.stored_compressed_tib == 0.0
        assert daily.dedupe_efficiency_post_compression_pct == 0.0
        assert daily.required_keys == 0


def test_invalid_parameters_fail_before_running():
    """Test invalid parameters raise a validation error naming each field"""
    params = SimulationParameters(
        source_size_tib=-1.0,
        weekly_retention_count=-2,
        simulation_days=0,
    )
    with pytest.raises(ParameterValidationError) as exc_info:
        RetentionSimulator(params)

    error = exc_info.value
    assert isinstance(error, SimulationError)
    assert error.code == "invalid_parameters"
    assert set(error.fields) == {"source_size_tib", "weekly_retention_count", "simulation_days"}


def test_from_months():
    """Test month-based horizons use 30-day months"""
    params = SimulationParameters.from_months(3, source_size_tib=10.0)
    assert params.simulation_days == 90
