"""组合配置计划测试：验证权重归一、锁仓调整、仓位截断与情景分析。"""

from __future__ import annotations

import pytest

from yield_provider.domain.deliverables.portfolio_plan import (
    PortfolioPlanDeliverable,
    bucket_weights,
    rebalance_frequency_days,
    resolve_preferences,
)
from yield_provider.domain.enums import RiskTolerance


def _requirement(**overrides) -> dict:
    payload = {
        "client_agent_id": "agent-1",
        "chain": "base",
        "starting_capital_usd": 10000,
        "risk_tolerance": "balanced",
        "target_horizon_days": 30,
        "preferences": {"allow_leverage": False, "allow_lockups": False, "max_positions": 3},
    }
    payload.update(overrides)
    return payload


@pytest.mark.parametrize("tolerance", list(RiskTolerance))
@pytest.mark.parametrize("allow_lockups", [True, False])
def test_weights_sum_to_one(tolerance: RiskTolerance, allow_lockups: bool) -> None:
    weights = bucket_weights(tolerance, allow_lockups)
    assert weights.core + weights.satellite + weights.experimental == pytest.approx(1.0)


@pytest.mark.parametrize("tolerance", list(RiskTolerance))
def test_disabling_lockups_never_increases_experimental(tolerance: RiskTolerance) -> None:
    """禁止锁仓时实验仓权重不会上升。"""
    assert bucket_weights(tolerance, False).experimental <= bucket_weights(tolerance, True).experimental


def test_lockup_adjustment_splits_freed_weight() -> None:
    weights = bucket_weights(RiskTolerance.balanced, False)
    assert weights.experimental == pytest.approx(0.075)
    assert weights.core == pytest.approx(0.6375)
    assert weights.satellite == pytest.approx(0.2875)


def test_balanced_plan_buckets_and_portfolio_metrics() -> None:
    result = PortfolioPlanDeliverable().build(_requirement())

    assert result["job_name"] == "portfolio_yield_allocation_plan"
    assert result["validation_passed"] is True
    buckets = {bucket["archetype"]: bucket for bucket in result["buckets_view"]}
    assert list(buckets) == ["core", "satellite", "experimental"]
    assert buckets["core"]["bucket_name"] == "Core yield (principal preservation focus)"
    assert buckets["core"]["allocation_usd"] == 6375
    assert buckets["core"]["expected_apy_range_pct"] == {"low": 3.6, "mid": 6, "high": 8.4}
    assert buckets["satellite"]["expected_apy_range_pct"]["mid"] == 12
    assert buckets["experimental"]["expected_apy_range_pct"]["mid"] == 25
    assert [bucket["risk_score"] for bucket in result["buckets_view"]] == [25, 45, 70]

    assert result["estimated_portfolio_apy_mid_pct"] == pytest.approx(9.15, abs=0.051)
    assert result["estimated_portfolio_risk_score"] == 34
    assert sum(result["bucket_weights"].values()) == pytest.approx(1.0)


def test_slots_truncated_to_max_positions() -> None:
    """每个分桶拆成至多两个仓位，总数截断到 max_positions。"""
    result = PortfolioPlanDeliverable().build(_requirement())
    slots = result["position_allocations_view"]
    assert len(slots) == 3
    assert [slot["archetype"] for slot in slots] == ["core", "core", "satellite"]
    assert slots[0]["protocol_hint"] == "SafeLend (stablecoin lending)"
    assert slots[0]["asset_hint"] == "USDC / USDT"
    assert slots[0]["allocation_usd"] == 3187.5
    assert slots[2]["protocol_hint"] == "YieldDex (blue-chip LP / vault)"


@pytest.mark.parametrize("max_positions", [1, 2, 4, 6, 10])
def test_slot_count_never_exceeds_max_positions(max_positions: int) -> None:
    preferences = {"allow_leverage": False, "allow_lockups": True, "max_positions": max_positions}
    result = PortfolioPlanDeliverable().build(_requirement(preferences=preferences))
    assert len(result["position_allocations_view"]) <= max_positions


def test_single_position_uses_one_slot_per_bucket() -> None:
    preferences = {"allow_leverage": False, "allow_lockups": False, "max_positions": 1}
    result = PortfolioPlanDeliverable().build(_requirement(preferences=preferences))
    slots = result["position_allocations_view"]
    assert len(slots) == 1
    assert slots[0]["allocation_usd"] == 6375


def test_chain_factor_scales_bucket_risk() -> None:
    unknown = PortfolioPlanDeliverable().build(_requirement(chain="solana"))
    mainnet = PortfolioPlanDeliverable().build(_requirement(chain="ethereum-mainnet"))
    assert unknown["buckets_view"][0]["risk_score"] == 30
    assert mainnet["buckets_view"][0]["risk_score"] == 20
    assert unknown["buckets_view"][2]["risk_score"] == 84


def test_aggressive_apy_mids() -> None:
    result = PortfolioPlanDeliverable().build(_requirement(risk_tolerance="aggressive"))
    mids = [bucket["expected_apy_range_pct"]["mid"] for bucket in result["buckets_view"]]
    assert mids == [8, 18, 35]


def test_scenario_analysis_scales_with_horizon() -> None:
    result = PortfolioPlanDeliverable().build(_requirement())
    scenario = result["scenario_analysis"]
    assert scenario["horizon_days"] == 30
    assert scenario["base_case_return_pct"] == 0.6
    assert scenario["bull_case_return_pct"] == 1.2
    assert scenario["bear_case_return_pct"] <= scenario["base_case_return_pct"] <= scenario["bull_case_return_pct"]
    assert scenario["commentary"].startswith("Returns are expressed as non-annualized estimates")


@pytest.mark.parametrize(("horizon", "expected"), [(7, 7), (30, 7), (31, 14), (90, 14), (365, 30)])
def test_rebalancing_cadence(horizon: int, expected: int) -> None:
    assert rebalance_frequency_days(horizon) == expected


def test_rebalancing_policy_triggers() -> None:
    result = PortfolioPlanDeliverable().build(_requirement(target_horizon_days=180))
    policy = result["rebalancing_policy"]
    assert policy["suggested_frequency_days"] == 30
    assert len(policy["triggers"]) == 3


def test_zero_capital_has_no_buckets() -> None:
    """资金为 0 时没有分桶，组合 APY 为 0、风险分为 50。"""
    result = PortfolioPlanDeliverable().build(_requirement(starting_capital_usd=0))
    assert result["buckets_view"] == []
    assert result["position_allocations_view"] == []
    assert result["estimated_portfolio_apy_mid_pct"] == 0
    assert result["estimated_portfolio_risk_score"] == 50


def test_preferences_default_per_field() -> None:
    """偏好设置逐字段回退到默认值。"""
    assert resolve_preferences(None) == {"allow_leverage": False, "allow_lockups": False, "max_positions": 3}
    assert resolve_preferences({"allow_lockups": True, "max_positions": "x"}) == {
        "allow_leverage": False,
        "allow_lockups": True,
        "max_positions": 3,
    }

    result = PortfolioPlanDeliverable().build(_requirement(preferences={"max_positions": "x"}))
    assert result["validation_passed"] is False
    assert result["preferences_applied"]["max_positions"] == 3
    assert {error["field"] for error in result["validation_errors"]} == {
        "preferences.allow_leverage",
        "preferences.allow_lockups",
        "preferences.max_positions",
    }


def test_extreme_capital_keeps_allocations() -> None:
    """超大本金下金额放大溢出时不再舍入，权重与分桶照常输出。"""
    result = PortfolioPlanDeliverable().build(_requirement(starting_capital_usd=1e307))
    assert result["validation_passed"] is True
    core = result["buckets_view"][0]
    assert core["archetype"] == "core"
    assert core["allocation_usd"] == pytest.approx(6.375e306)
    assert result["estimated_portfolio_risk_score"] == 34
