"""仓位健康监控测试：验证合成健康分、严重级别、处置建议与组合摘要优先级。"""

from __future__ import annotations

import pytest

from yield_provider.domain.deliverables.position_health import (
    COMMENTARY_BREACH,
    COMMENTARY_CLEAR,
    COMMENTARY_EMPTY,
    COMMENTARY_NEAR,
    OFFSET_HINT,
    PositionHealthDeliverable,
    severity_for,
    synthetic_health_score,
)


def _position(threshold: float, position_id: str = "pos-1") -> dict:
    return {
        "protocol": "SafeLend",
        "pool_address": "0xpool",
        "position_id": position_id,
        "health_threshold": threshold,
    }


def _requirement(positions: list, **overrides) -> dict:
    payload = {
        "client_agent_id": "agent-1",
        "chain": "arbitrum",
        "positions": positions,
        "notify_channel": "telegram:@ops",
        "check_frequency_minutes": 5,
    }
    payload.update(overrides)
    return payload


@pytest.mark.parametrize(("threshold", "score"), [(95, 72), (80, 72), (79, 78), (60, 78), (59, 85), (10, 85)])
def test_synthetic_health_score(threshold: float, score: int) -> None:
    assert synthetic_health_score(threshold) == score


@pytest.mark.parametrize(
    ("score", "threshold", "severity"),
    [(85, 50, "info"), (78, 76, "watch"), (72, 80, "warning"), (72, 95, "critical")],
)
def test_severity_bands(score: int, threshold: int, severity: str) -> None:
    assert severity_for(score, threshold) == severity


def test_threshold_80_breaches() -> None:
    """阈值 80 时合成分为 72 并判定违约。"""
    result = PositionHealthDeliverable().build(_requirement([_position(80)]))
    snapshot = result["positions"][0]

    assert result["job_name"] == "position_health_monitor"
    assert result["validation_passed"] is True
    assert snapshot["synthetic_health_score"] == 72
    assert snapshot["configured_health_threshold"] == 80
    assert snapshot["breach"] is True
    assert snapshot["severity"] == "warning"
    assert snapshot["liquidation_buffer_pct"] == 20
    assert snapshot["chain"] == "arbitrum"
    assert snapshot["issues"] == ["Synthetic breach: health score below configured threshold."]
    assert snapshot["recommended_actions"][0].startswith("Evaluate options: partial deleveraging")
    assert snapshot["recommended_actions"][-1] == OFFSET_HINT


def test_comfortable_position_has_no_issues() -> None:
    result = PositionHealthDeliverable().build(_requirement([_position(50)]))
    snapshot = result["positions"][0]
    assert snapshot["severity"] == "info"
    assert snapshot["breach"] is False
    assert snapshot["issues"] == []
    assert snapshot["liquidation_buffer_pct"] == 30
    assert snapshot["recommended_actions"] == [
        "No immediate action suggested; maintain baseline monitoring.",
        OFFSET_HINT,
    ]


def test_watch_position_counts_as_near_threshold() -> None:
    result = PositionHealthDeliverable().build(_requirement([_position(76)]))
    snapshot = result["positions"][0]
    assert snapshot["severity"] == "watch"
    assert snapshot["issues"] == ["Health score only slightly above threshold."]
    summary = result["portfolio_summary"]
    assert summary["breached_positions"] == 0
    assert summary["near_threshold_positions"] == 1
    assert summary["portfolio_risk_commentary"] == COMMENTARY_NEAR


@pytest.mark.parametrize(
    ("thresholds", "commentary"),
    [
        ([], COMMENTARY_EMPTY),
        ([50], COMMENTARY_CLEAR),
        ([76, 50], COMMENTARY_NEAR),
        ([80, 76, 50], COMMENTARY_BREACH),
    ],
)
def test_commentary_priority(thresholds: list[int], commentary: str) -> None:
    """摘要文案优先级：违约 > 临近阈值 > 全部健康。"""
    positions = [_position(value, f"pos-{index}") for index, value in enumerate(thresholds)]
    result = PositionHealthDeliverable().build(_requirement(positions))
    assert result["portfolio_summary"]["portfolio_risk_commentary"] == commentary
    assert result["portfolio_summary"]["total_positions"] == len(thresholds)


def test_summary_echoes_channel_and_frequency() -> None:
    result = PositionHealthDeliverable().build(_requirement([_position(80), _position(95, "pos-2")]))
    summary = result["portfolio_summary"]
    assert summary["monitoring_channel"] == "telegram:@ops"
    assert summary["monitoring_frequency_minutes"] == 5
    assert summary["breached_positions"] == 2


def test_defaults_when_fields_missing() -> None:
    """缺失频率默认 15 分钟，缺失阈值按 50 处理。"""
    result = PositionHealthDeliverable().build(
        {"positions": [{"protocol": "SafeLend"}], "notify_channel": "email"}
    )
    assert result["validation_passed"] is False
    assert result["chain"] == "unknown"
    assert result["portfolio_summary"]["monitoring_frequency_minutes"] == 15
    snapshot = result["positions"][0]
    assert snapshot["configured_health_threshold"] == 50
    assert snapshot["synthetic_health_score"] == 85
    assert snapshot["position_id"] is None
