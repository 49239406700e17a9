"""组合收益配置计划：按风险偏好划分核心/卫星/实验三桶并拆分为离散仓位。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from yield_provider.domain.deliverables.base import BaseDeliverable
from yield_provider.domain.enums import Archetype, JobKind, RiskTolerance
from yield_provider.domain.heuristics import (
    chain_risk_factor,
    number_or,
    positive_number_or,
    round_half_up,
    string_or,
)
from yield_provider.domain.validation import FieldKind, FieldSpec

DEFAULT_PREFERENCES = {"allow_leverage": False, "allow_lockups": False, "max_positions": 3}
MAX_SLOTS_PER_BUCKET = 2
SCENARIO_MULTIPLIERS = {"bear": 0.2, "base": 0.8, "bull": 1.6}

BUCKET_NAMES = {
    Archetype.core: "Core yield (principal preservation focus)",
    Archetype.satellite: "Satellite directional yield",
    Archetype.experimental: "Experimental / degen bucket",
}
BUCKET_RISK_BASE = {Archetype.core: 25, Archetype.satellite: 45, Archetype.experimental: 70}

EXAMPLE_INSTRUMENTS = {
    Archetype.core: ["Blue-chip stablecoin lending on battle-tested protocol"],
    Archetype.satellite: ["ETH or blue-chip perp / vault", "LP in large-cap DEX pool"],
    Archetype.experimental: ["Long-tail farm with capped sizing", "High incentive LP with strict stop-loss rules"],
}

GUARDRAILS = {
    Archetype.core: [
        "No leverage or only mild leverage (<= 1.3x) if explicitly allowed.",
        "Liquidity depth / TVL must be above internal threshold.",
        "Protocol must have public audits or strong battle-tested history.",
    ],
    Archetype.satellite: [
        "Size each position so that a total loss does not break portfolio risk budget.",
        "Require on-chain activity / volume above minimal threshold.",
        "Monitor funding / rewards for sudden cliffs.",
    ],
    Archetype.experimental: [
        "Treat as \"degen bucket\"; assume potential near-total loss.",
        "Isolate in separate address / sub-account where possible.",
        "Explicitly tag these positions for elevated monitoring frequency.",
    ],
}

SLOT_HINTS = {
    Archetype.core: ("SafeLend (stablecoin lending)", "USDC / USDT"),
    Archetype.satellite: ("YieldDex (blue-chip LP / vault)", "WETH / ETH-USD LP"),
    Archetype.experimental: ("DeFiTurbo (high-incentive farm)", "volatile / long-tail token or LP"),
}

REBALANCING_TRIGGERS = [
    "Any position exceeding its maximum allowed weight by >25%.",
    "Sharp change in yield profile (>50% APY change in short window).",
    "Material protocol risk event (exploit, governance drama, depeg).",
]

SCENARIO_COMMENTARY = (
    "Returns are expressed as non-annualized estimates over the provided horizon, based on synthetic "
    "APY assumptions. Use as planning guidance only."
)


@dataclass(slots=True, frozen=True)
class BucketWeights:
    """三桶权重。"""
    core: float
    satellite: float
    experimental: float

    def as_dict(self) -> dict[Archetype, float]:
        return {
            Archetype.core: self.core,
            Archetype.satellite: self.satellite,
            Archetype.experimental: self.experimental,
        }


_TOLERANCE_WEIGHTS = {
    RiskTolerance.conservative: BucketWeights(0.75, 0.20, 0.05),
    RiskTolerance.balanced: BucketWeights(0.60, 0.25, 0.15),
    RiskTolerance.aggressive: BucketWeights(0.40, 0.35, 0.25),
}


def bucket_weights(tolerance: RiskTolerance, allow_lockups: bool) -> BucketWeights:
    """计算三桶权重：禁止锁仓时实验仓减半，释放的权重平分给核心与卫星，最后归一化。"""
    weights = _TOLERANCE_WEIGHTS[tolerance]
    core, satellite, experimental = weights.core, weights.satellite, weights.experimental
    if not allow_lockups:
        freed = experimental / 2
        experimental -= freed
        core += freed / 2
        satellite += freed / 2
    total = core + satellite + experimental or 1
    return BucketWeights(core / total, satellite / total, experimental / total)


def apy_mid(archetype: Archetype, tolerance: RiskTolerance) -> float:
    aggressive = tolerance == RiskTolerance.aggressive
    if archetype == Archetype.core:
        return {RiskTolerance.conservative: 4, RiskTolerance.balanced: 6, RiskTolerance.aggressive: 8}[tolerance]
    if archetype == Archetype.satellite:
        return 18 if aggressive else 12
    return 35 if aggressive else 25


def resolve_preferences(raw: Any) -> dict[str, Any]:
    """逐字段解析偏好设置，非法或缺失字段回退到默认值。"""
    prefs = raw if isinstance(raw, dict) else {}
    allow_leverage = prefs.get("allow_leverage")
    allow_lockups = prefs.get("allow_lockups")
    return {
        "allow_leverage": allow_leverage if isinstance(allow_leverage, bool) else DEFAULT_PREFERENCES["allow_leverage"],
        "allow_lockups": allow_lockups if isinstance(allow_lockups, bool) else DEFAULT_PREFERENCES["allow_lockups"],
        "max_positions": number_or(prefs.get("max_positions"), DEFAULT_PREFERENCES["max_positions"]),
    }


def build_bucket(
    archetype: Archetype,
    weight: float,
    capital: float,
    tolerance: RiskTolerance,
    chain_factor: float,
) -> dict[str, Any] | None:
    """构建单个分桶视图；分配金额非正时返回 None。"""
    allocation_usd = capital * weight
    if allocation_usd <= 0:
        return None
    mid = apy_mid(archetype, tolerance)
    risk = BUCKET_RISK_BASE[archetype] * chain_factor
    return {
        "bucket_name": BUCKET_NAMES[archetype],
        "archetype": archetype.value,
        "allocation_usd": round_half_up(allocation_usd, 2),
        "allocation_percent": round_half_up(weight * 100, 1),
        "expected_apy_range_pct": {
            "low": round_half_up(mid * 0.6, 1),
            "mid": round_half_up(mid, 1),
            "high": round_half_up(mid * 1.4, 1),
        },
        "risk_score": int(round_half_up(min(95, risk))),
        "example_instruments": list(EXAMPLE_INSTRUMENTS[archetype]),
        "guardrails": list(GUARDRAILS[archetype]),
    }


def split_into_slots(buckets: list[dict[str, Any]], chain: str, capital: float, max_positions: int) -> list[dict[str, Any]]:
    """将每个分桶等额拆成至多两个仓位，再截断到 max_positions。"""
    splits = max(1, min(max_positions, MAX_SLOTS_PER_BUCKET))
    slots: list[dict[str, Any]] = []
    for bucket in buckets:
        archetype = Archetype(bucket["archetype"])
        protocol_hint, asset_hint = SLOT_HINTS[archetype]
        per_slot_usd = bucket["allocation_usd"] / splits
        for _ in range(splits):
            slots.append(
                {
                    "protocol_hint": protocol_hint,
                    "chain": chain,
                    "asset_hint": asset_hint,
                    "bucket_name": bucket["bucket_name"],
                    "archetype": bucket["archetype"],
                    "allocation_usd": round_half_up(per_slot_usd, 2),
                    "allocation_percent_of_portfolio": round_half_up(per_slot_usd / capital * 100, 1),
                    "expected_apy_range_pct": bucket["expected_apy_range_pct"],
                    "risk_score": bucket["risk_score"],
                    "guardrails": bucket["guardrails"],
                }
            )
    return slots[:max_positions]


def rebalance_frequency_days(horizon_days: float) -> int:
    if horizon_days <= 30:
        return 7
    if horizon_days <= 90:
        return 14
    return 30


class PortfolioPlanDeliverable(BaseDeliverable):
    """组合配置计划交付物计算器。"""
    kind = JobKind.portfolio_yield_allocation_plan
    name = "Portfolio Yield Allocation Plan"
    description = "Split starting capital into core / satellite / experimental buckets with slots and scenarios."
    schema = (
        FieldSpec("client_agent_id", FieldKind.string),
        FieldSpec("chain", FieldKind.string),
        FieldSpec("starting_capital_usd", FieldKind.number),
        FieldSpec("risk_tolerance", FieldKind.string),
        FieldSpec("target_horizon_days", FieldKind.number),
        FieldSpec(
            "preferences",
            FieldKind.object,
            children=(
                FieldSpec("allow_leverage", FieldKind.boolean),
                FieldSpec("allow_lockups", FieldKind.boolean),
                FieldSpec("max_positions", FieldKind.number),
            ),
        ),
    )

    def compute(self, requirement: dict[str, Any]) -> dict[str, Any]:
        capital = number_or(requirement.get("starting_capital_usd"), 0)
        chain = string_or(requirement.get("chain"), "unknown")
        tolerance_text = string_or(requirement.get("risk_tolerance"), "balanced")
        tolerance = RiskTolerance.parse(tolerance_text)
        horizon_days = positive_number_or(requirement.get("target_horizon_days"), 30)
        prefs = resolve_preferences(requirement.get("preferences"))

        weights = bucket_weights(tolerance, prefs["allow_lockups"])
        max_positions = max(1, int(round_half_up(prefs["max_positions"])))
        chain_factor = chain_risk_factor(chain)

        buckets = [
            bucket
            for archetype, weight in weights.as_dict().items()
            if (bucket := build_bucket(archetype, weight, capital, tolerance, chain_factor)) is not None
        ]
        slots = split_into_slots(buckets, chain, capital, max_positions)

        # 组合层面的 APY 与风险分按分桶（而非仓位）的资金权重加权。
        portfolio_apy_mid = (
            sum(bucket["expected_apy_range_pct"]["mid"] * (bucket["allocation_usd"] / capital) for bucket in buckets)
            if capital > 0
            else 0.0
        )
        portfolio_risk = (
            int(round_half_up(sum(bucket["risk_score"] * (bucket["allocation_usd"] / capital) for bucket in buckets)))
            if buckets
            else 50
        )

        horizon_fraction = horizon_days / 365
        scenario = {
            f"{name}_case_return_pct": round_half_up(portfolio_apy_mid * multiplier * horizon_fraction, 1)
            for name, multiplier in SCENARIO_MULTIPLIERS.items()
        }

        return {
            "chain": chain,
            "starting_capital_usd": capital,
            "risk_tolerance": tolerance_text,
            "preferences_applied": prefs,
            "estimated_portfolio_apy_mid_pct": round_half_up(portfolio_apy_mid, 1),
            "estimated_portfolio_risk_score": portfolio_risk,
            "bucket_weights": {archetype.value: weight for archetype, weight in weights.as_dict().items()},
            "buckets_view": buckets,
            "position_allocations_view": slots,
            "rebalancing_policy": {
                "suggested_frequency_days": rebalance_frequency_days(horizon_days),
                "triggers": list(REBALANCING_TRIGGERS),
            },
            "scenario_analysis": {
                "horizon_days": horizon_days,
                **scenario,
                "commentary": SCENARIO_COMMENTARY,
            },
        }
