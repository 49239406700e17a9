"""仓位健康监控：按配置阈值合成健康分、严重级别与处置建议。"""

from __future__ import annotations

from typing import Any

from yield_provider.domain.deliverables.base import BaseDeliverable
from yield_provider.domain.enums import JobKind
from yield_provider.domain.heuristics import number_or, positive_number_or, string_or
from yield_provider.domain.validation import FieldKind, FieldSpec

DEFAULT_HEALTH_THRESHOLD = 50
DEFAULT_CHECK_FREQUENCY_MINUTES = 15
NEAR_THRESHOLD_MARGIN = 5

OFFSET_HINT = (
    "If using perps/options elsewhere, tag this position as reference and consider offsetting directional risk."
)

# severity -> (issue, recommendation)；issue 为 None 表示无需记录问题。
SEVERITY_GUIDANCE: dict[str, tuple[str | None, str]] = {
    "breach": (
        "Synthetic breach: health score below configured threshold.",
        "Evaluate options: partial deleveraging, collateral top-up, or closing position.",
    ),
    "warning": (
        "Health score is within 10 points of threshold; risk is non-trivial.",
        "Increase monitoring frequency and pre-plan deleveraging triggers.",
    ),
    "watch": (
        "Health score only slightly above threshold.",
        "Define automated alert if health score drops by additional 5–10 points.",
    ),
    "info": (None, "No immediate action suggested; maintain baseline monitoring."),
}

COMMENTARY_EMPTY = "No positions provided; nothing to monitor."
COMMENTARY_BREACH = (
    "One or more positions are synthetically below threshold; define clear deleveraging / unwind playbook."
)
COMMENTARY_NEAR = "Some positions are hovering near risk guardrail; tighten alerting and review sizing."
COMMENTARY_CLEAR = "All positions have comfortable synthetic health margins given the configured thresholds."


def synthetic_health_score(threshold: float) -> int:
    """阈值越严格合成分越低，使高阈值仓位更容易触发告警。"""
    if threshold >= 80:
        return 72
    if threshold >= 60:
        return 78
    return 85


def liquidation_buffer_pct(score: float) -> int:
    if score >= 80:
        return 30
    if score >= 70:
        return 20
    return 10


def severity_for(score: float, threshold: float) -> str:
    if score >= threshold + 10:
        return "info"
    if score >= threshold:
        return "watch"
    if score >= threshold - 10:
        return "warning"
    return "critical"


def build_snapshot(position: dict[str, Any], chain: str) -> dict[str, Any]:
    threshold = number_or(position.get("health_threshold"), DEFAULT_HEALTH_THRESHOLD)
    score = synthetic_health_score(threshold)
    breach = score < threshold
    severity = severity_for(score, threshold)

    # 已违约的仓位（warning / critical）统一使用违约处置文案。
    issue, recommendation = SEVERITY_GUIDANCE["breach" if breach else severity]
    return {
        "protocol": position.get("protocol"),
        "pool_address": position.get("pool_address"),
        "position_id": position.get("position_id"),
        "chain": chain,
        "synthetic_health_score": score,
        "configured_health_threshold": threshold,
        "liquidation_buffer_pct": liquidation_buffer_pct(score),
        "breach": breach,
        "severity": severity,
        "issues": [issue] if issue else [],
        "recommended_actions": [recommendation, OFFSET_HINT],
    }


def portfolio_commentary(total: int, breached: int, near: int) -> str:
    if total == 0:
        return COMMENTARY_EMPTY
    if breached:
        return COMMENTARY_BREACH
    if near:
        return COMMENTARY_NEAR
    return COMMENTARY_CLEAR


class PositionHealthDeliverable(BaseDeliverable):
    """仓位健康监控交付物计算器。"""
    kind = JobKind.position_health_monitor
    name = "Position Health Monitor"
    description = "Synthesize health scores, severities and recommended actions for open positions."
    schema = (
        FieldSpec("client_agent_id", FieldKind.string),
        FieldSpec("chain", FieldKind.string),
        FieldSpec(
            "positions",
            FieldKind.object_array,
            children=(
                FieldSpec("protocol", FieldKind.string),
                FieldSpec("pool_address", FieldKind.string),
                FieldSpec("position_id", FieldKind.string),
                FieldSpec("health_threshold", FieldKind.number),
            ),
        ),
        FieldSpec("notify_channel", FieldKind.string),
        FieldSpec("check_frequency_minutes", FieldKind.number),
    )

    def compute(self, requirement: dict[str, Any]) -> dict[str, Any]:
        chain = string_or(requirement.get("chain"), "unknown")
        positions = requirement.get("positions")
        if not isinstance(positions, list):
            positions = []
        frequency = positive_number_or(requirement.get("check_frequency_minutes"), DEFAULT_CHECK_FREQUENCY_MINUTES)

        snapshots = [build_snapshot(position, chain) for position in positions if isinstance(position, dict)]
        breached = sum(1 for snapshot in snapshots if snapshot["breach"])
        near = sum(
            1
            for snapshot in snapshots
            if not snapshot["breach"]
            and snapshot["synthetic_health_score"] < snapshot["configured_health_threshold"] + NEAR_THRESHOLD_MARGIN
        )

        return {
            "chain": chain,
            "positions": snapshots,
            "portfolio_summary": {
                "total_positions": len(snapshots),
                "breached_positions": breached,
                "near_threshold_positions": near,
                "monitoring_frequency_minutes": frequency,
                "monitoring_channel": requirement.get("notify_channel"),
                "portfolio_risk_commentary": portfolio_commentary(len(snapshots), breached, near),
            },
        }
