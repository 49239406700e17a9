"""收益扫描与排序：为每个资产合成低/中/高三档收益场所并按效用排序。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from yield_provider.domain.deliverables.base import BaseDeliverable
from yield_provider.domain.enums import AssetType, JobKind, RiskBand, RiskTolerance
from yield_provider.domain.heuristics import (
    chain_risk_factor,
    clamp,
    classify_asset,
    number_or,
    positive_number_or,
    risk_tolerance_bias,
    round_half_up,
    string_list,
    string_or,
)
from yield_provider.domain.validation import FieldKind, FieldSpec

# 各资产分类在 low/medium/high 三档下的基准 APY（%）。
BASE_APY: dict[AssetType, dict[RiskBand, float]] = {
    AssetType.stablecoin: {RiskBand.low: 3, RiskBand.medium: 6, RiskBand.high: 12},
    AssetType.bluechip: {RiskBand.low: 4, RiskBand.medium: 10, RiskBand.high: 20},
    AssetType.lp_token: {RiskBand.low: 8, RiskBand.medium: 20, RiskBand.high: 45},
    AssetType.long_tail: {RiskBand.low: 6, RiskBand.medium: 18, RiskBand.high: 60},
}

BAND_RISK_BASE = {RiskBand.low: 20, RiskBand.medium: 45, RiskBand.high: 70}
SMART_CONTRACT_RISK = {RiskBand.low: 15, RiskBand.medium: 30, RiskBand.high: 45}
LIQUIDITY_RISK_DEEP = {RiskBand.low: 10, RiskBand.medium: 20, RiskBand.high: 30}
LIQUIDITY_RISK_THIN = {RiskBand.low: 20, RiskBand.medium: 35, RiskBand.high: 45}
STABLECOIN_DEPEG_RISK = {RiskBand.low: 5, RiskBand.medium: 15, RiskBand.high: 25}
LONG_TAIL_DEPEG_RISK = {RiskBand.low: 10, RiskBand.medium: 25, RiskBand.high: 40}
IMPERMANENT_LOSS_RISK = {RiskBand.low: 20, RiskBand.medium: 35, RiskBand.high: 50}

MIN_TVL_FLOOR_USD = 50_000

DIVERSIFICATION_COMMENT = (
    "Mix 1–2 core venues (low/medium risk) with tightly sized exposure to a single high-risk farm "
    "if your mandate allows."
)
EMPTY_DIVERSIFICATION_COMMENT = "No venues constructed; check input assets / parameters."


@dataclass(slots=True, frozen=True)
class VenueTemplate:
    """单档收益场所模板。"""
    band: RiskBand
    protocol: str
    description: str


VENUE_TEMPLATES = (
    VenueTemplate(
        band=RiskBand.low,
        protocol="SafeLend",
        description="Conservative lending / borrowing market on battle-tested lending protocol.",
    ),
    VenueTemplate(
        band=RiskBand.medium,
        protocol="YieldDex",
        description="DEX pool or boosted lending vault with moderate incentives.",
    ),
    VenueTemplate(
        band=RiskBand.high,
        protocol="DeFiTurbo",
        description=(
            "High-incentive farm with non-trivial smart-contract and liquidity risk. For degen bucket only."
        ),
    ),
)


@dataclass(slots=True, frozen=True)
class TvlTiers:
    """由最低 TVL 推导出的三级 TVL 档位。"""
    floor: float
    mid: float
    high: float

    @classmethod
    def from_min_tvl(cls, min_tvl: float) -> TvlTiers:
        floor = max(min_tvl, MIN_TVL_FLOOR_USD)
        return cls(floor=floor, mid=floor * 5, high=floor * 25)

    def for_band(self, band: RiskBand) -> float:
        if band == RiskBand.low:
            return self.high
        if band == RiskBand.medium:
            return self.mid
        return self.floor


def venue_type(band: RiskBand, asset_type: AssetType) -> str:
    if band == RiskBand.low:
        return "lending"
    if band == RiskBand.medium:
        return "lp" if asset_type == AssetType.lp_token else "dex_pool"
    return "structured_farm"


def base_risk_score(band: RiskBand, tvl: float, tiers: TvlTiers, chain_factor: float) -> int:
    """档位基准风险分：TVL 越高越低，再乘以链风险系数并截断到 [5, 95]。"""
    score: float = BAND_RISK_BASE[band]
    if tvl >= tiers.high:
        score -= 5
    elif tvl >= tiers.mid:
        score -= 2
    score *= chain_factor
    return int(clamp(round_half_up(score), 5, 95))


def risk_breakdown(band: RiskBand, tvl: float, tiers: TvlTiers, asset_type: AssetType) -> dict[str, int]:
    """按档位与资产分类合成分项风险。"""
    deep_liquidity = tvl >= tiers.high
    breakdown = {
        "smart_contract_risk": SMART_CONTRACT_RISK[band],
        "liquidity_risk": (LIQUIDITY_RISK_DEEP if deep_liquidity else LIQUIDITY_RISK_THIN)[band],
        "depeg_risk": 0,
        "impermanent_loss_risk": 0,
    }
    if asset_type == AssetType.stablecoin:
        breakdown["depeg_risk"] = STABLECOIN_DEPEG_RISK[band]
    elif asset_type == AssetType.lp_token:
        breakdown["impermanent_loss_risk"] = IMPERMANENT_LOSS_RISK[band]
    elif asset_type == AssetType.long_tail:
        breakdown["depeg_risk"] = LONG_TAIL_DEPEG_RISK[band]
    return breakdown


def fit_explanation(tolerance: RiskTolerance, band: RiskBand) -> str:
    if tolerance == RiskTolerance.conservative:
        if band == RiskBand.low:
            return "Aligned with conservative profile; focus on principal preservation and sustainable yield."
        if band == RiskBand.medium:
            return "Borderline fit; could be used as a small satellite allocation if capital is segmented."
        return "Not recommended for conservative profile; risk / reward skew is too aggressive."
    if tolerance == RiskTolerance.aggressive:
        if band == RiskBand.high:
            return "Good fit for degen bucket with tight risk monitoring and sizing discipline."
        return "Core position candidate to anchor portfolio while keeping optionality for higher-risk legs."
    return "Candidate venue for balanced risk; size within overall risk budget and ensure monitoring alerts."


def utility(opportunity: dict[str, Any], tolerance: RiskTolerance) -> float:
    """排序效用：APY 减去风险偏好对应的风险惩罚。"""
    apy = opportunity["estimated_apy"]
    risk = opportunity["risk_score"]
    if tolerance == RiskTolerance.conservative:
        return apy - risk * 0.2
    if tolerance == RiskTolerance.aggressive:
        return apy * 1.3 - risk * 0.1
    return apy - risk * 0.15


def rank_opportunities(opportunities: list[dict[str, Any]], tolerance: RiskTolerance) -> list[dict[str, Any]]:
    """按效用降序排列；sorted 为稳定排序，同分保持插入顺序。"""
    return sorted(opportunities, key=lambda item: utility(item, tolerance), reverse=True)


class YieldScanDeliverable(BaseDeliverable):
    """收益扫描交付物计算器。"""
    kind = JobKind.yield_scan_and_ranking
    name = "Yield Scan & Ranking"
    description = "Synthesize low/medium/high risk venues per asset and rank them by risk-adjusted utility."
    schema = (
        FieldSpec("client_agent_id", FieldKind.string),
        FieldSpec("chain", FieldKind.string),
        FieldSpec("assets", FieldKind.string_array),
        FieldSpec("risk_tolerance", FieldKind.string),
        FieldSpec("min_tvl_usd", FieldKind.number),
        FieldSpec("lookback_hours", FieldKind.number),
    )

    def compute(self, requirement: dict[str, Any]) -> dict[str, Any]:
        chain = string_or(requirement.get("chain"), "unknown")
        assets = string_list(requirement.get("assets"))
        min_tvl = number_or(requirement.get("min_tvl_usd"), 0)
        lookback = positive_number_or(requirement.get("lookback_hours"), 24)
        tolerance_text = string_or(requirement.get("risk_tolerance"), "balanced")
        tolerance = RiskTolerance.parse(tolerance_text)

        bias = risk_tolerance_bias(tolerance)
        chain_factor = chain_risk_factor(chain)
        tiers = TvlTiers.from_min_tvl(min_tvl)

        opportunities: list[dict[str, Any]] = []
        for symbol in assets:
            asset_type = classify_asset(symbol)
            for template in VENUE_TEMPLATES:
                tvl = tiers.for_band(template.band)
                apy = max(0.1, round_half_up(BASE_APY[asset_type][template.band] + bias.apy_boost, 1))
                risk = base_risk_score(template.band, tvl, tiers, chain_factor) + bias.risk_boost
                opportunities.append(
                    {
                        "protocol": template.protocol,
                        "pool_address": f"0x{template.protocol[:6]}{symbol[:4]}Pool...",
                        "chain": chain,
                        "asset": symbol,
                        "asset_type": asset_type.value,
                        "venue_type": venue_type(template.band, asset_type),
                        "risk_band": template.band.value,
                        "estimated_apy": apy,
                        "tvl_usd": tvl,
                        "risk_score": int(clamp(round_half_up(risk), 5, 95)),
                        "risk_breakdown": risk_breakdown(template.band, tvl, tiers, asset_type),
                        "lookback_hours_used": lookback,
                        "qualitative_summary": template.description,
                        "fit_explanation": fit_explanation(tolerance, template.band),
                    }
                )

        ranked = rank_opportunities(opportunities, tolerance)
        best_low_risk = next((item for item in ranked if item["risk_band"] == RiskBand.low.value), None)
        best_max_apy = max(ranked, key=lambda item: item["estimated_apy"], default=None)

        return {
            "chain": chain,
            "assets": assets,
            "risk_tolerance": tolerance_text,
            "min_tvl_usd_applied": min_tvl,
            "opportunities_ranked": ranked,
            "portfolio_hints": {
                "core_yield_candidate": best_low_risk,
                "max_apy_candidate": best_max_apy,
                "diversification_comment": DIVERSIFICATION_COMMENT if opportunities else EMPTY_DIVERSIFICATION_COMMENT,
            },
        }
