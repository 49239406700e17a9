"""静态资源目录：链风险画像、资产画像与收益风险手册的键值查询。"""

from __future__ import annotations

from typing import Any

from yield_provider.domain.enums import Archetype, AssetType, RiskTolerance
from yield_provider.domain.heuristics import (
    CHAIN_RISK_FACTORS,
    UNKNOWN_CHAIN_RISK_FACTOR,
    classify_asset,
    resolve_chain_key,
)

CHAIN_PROFILES: dict[str, dict[str, Any]] = {
    "ethereum-mainnet": {
        "typical_gas_band_usd": "5-25",
        "maturity_score": 95,
        "notes": [
            "Most battle-tested DeFi ecosystem.",
            "High liquidity and blue-chip protocol density.",
            "Gas costs can be elevated during peak congestion.",
        ],
    },
    "base": {
        "typical_gas_band_usd": "0.1-2",
        "maturity_score": 80,
        "notes": [
            "L2 with strong infra backing and growing DeFi footprint.",
            "Lower gas environment ideal for more active strategies.",
            "Ecosystem still evolving; long-tail protocols require extra scrutiny.",
        ],
    },
    "arbitrum": {
        "typical_gas_band_usd": "0.2-3",
        "maturity_score": 85,
        "notes": [
            "Large DeFi ecosystem with multiple major DEXes and lending markets.",
            "Good depth for many large-cap pairs.",
            "Bridge and cross-chain complexity should be considered in risk budget.",
        ],
    },
    "optimism": {
        "typical_gas_band_usd": "0.2-3",
        "maturity_score": 78,
        "notes": [
            "Growing ecosystem with strong incentives in phases.",
            "Protocol set somewhat concentrated vs Ethereum mainnet.",
            "Careful sizing recommended for new/incentivized programs.",
        ],
    },
}

_ASSET_PROFILES: dict[AssetType, dict[str, Any]] = {
    AssetType.stablecoin: {
        "tags": ["usd-pegged", "collateral-candidate"],
        "risk_flags": ["depeg"],
        "summary": "Stablecoin with USD peg; yields often come from lending and low-volatility venues.",
        "typical_venues": ["lending-markets", "stable-stable LPs", "conservative yield vaults"],
        "monitoring_hints": [
            "Track peg stability vs USD on major venues.",
            "Monitor protocol announcements for collateral / backing changes.",
        ],
        "sizing_guidance": (
            "Can be a core portfolio component, but concentration in a single stablecoin should be limited."
        ),
    },
    AssetType.bluechip: {
        "tags": ["volatile", "bluechip", "collateral-candidate"],
        "risk_flags": ["price-volatility"],
        "summary": "Blue-chip asset with deep liquidity; common collateral and LP leg across DeFi ecosystems.",
        "typical_venues": ["lending-markets", "volatile LPs (e.g., ETH-stable)", "perp funding plays"],
        "monitoring_hints": [
            "Track market beta and macro conditions.",
            "Monitor funding and open interest if used with perps.",
        ],
        "sizing_guidance": (
            "Often suitable for larger allocations, but still subject to significant price volatility."
        ),
    },
    AssetType.lp_token: {
        "tags": ["lp", "pool-share", "impermanent-loss"],
        "risk_flags": ["impermanent-loss", "liquidity"],
        "summary": "LP token representing a share of a pool. Yields depend on fees and incentives; exposed to IL.",
        "typical_venues": ["DEX LPs", "yield farms", "aggregator vaults"],
        "monitoring_hints": [
            "Monitor IL vs holding underlying assets.",
            "Track incentives cliffs and gauge changes.",
        ],
        "sizing_guidance": "Cap LP exposure relative to core holdings; size based on IL tolerance and time horizon.",
    },
    AssetType.long_tail: {
        "tags": ["volatile", "idiosyncratic"],
        "risk_flags": ["smart-contract", "liquidity", "tokenomics"],
        "summary": "Long-tail or less-battle-tested asset. Treat allocations as higher risk with capped sizing.",
        "typical_venues": ["experimental vaults", "high-incentive farms"],
        "monitoring_hints": [
            "Track token emissions and unlock schedules.",
            "Monitor liquidity depth across major venues.",
        ],
        "sizing_guidance": "Treat allocations as \"degen bucket\"; assume potential near-total loss in worst case.",
    },
}

_ARCHETYPE_GUARDRAILS: dict[Archetype, list[str]] = {
    Archetype.core: [
        "Prefer battle-tested protocols with audits and long on-chain history.",
        "Avoid leverage or keep it modest (<= 1.3x) unless explicitly mandated.",
        "Ensure TVL and liquidity are comfortably above internal thresholds.",
    ],
    Archetype.satellite: [
        "Limit per-position loss to a tolerable fraction of portfolio risk budget.",
        "Avoid highly experimental contracts without clear security posture.",
        "Require reasonable volume / utilization to avoid liquidity traps.",
    ],
    Archetype.experimental: [
        "Assume potential near-total loss; size accordingly.",
        "Isolate these positions in separate addresses or accounts when possible.",
        "Require explicit monitoring and alerting for each experimental position.",
    ],
}

_TOLERANCE_OVERLAYS: dict[RiskTolerance, list[str]] = {
    RiskTolerance.conservative: [
        "Bias toward capital preservation over headline APY.",
        "Downweight complex multi-hop or leveraged strategies.",
        "Prioritize exit liquidity and operational simplicity.",
    ],
    RiskTolerance.balanced: [
        "Balance stable yield sources with a limited risk budget for high-APY legs.",
        "Avoid \"all or nothing\" positions; focus on diversified risk carriers.",
    ],
    RiskTolerance.aggressive: [
        "Allow higher volatility buckets but enforce hard notional caps.",
        "Expect elevated drawdowns; embed guardrails instead of hard avoidance.",
        "Rotate more quickly out of decaying incentive programs.",
    ],
}

_USE_CASE_HINTS: dict[str, list[str]] = {
    "allocation_planning": [
        "Define explicit bucket sizing (core / satellite / experimental) before choosing protocols.",
        "Make scenario analysis on drawdowns a first-class input to sizing decisions.",
    ],
    "execution": [
        "Avoid over-optimizing for single-transaction gas savings at the expense of clarity.",
        "Prefer deterministic execution order that makes rollback/recovery easier.",
    ],
    "monitoring": [
        "Set alert thresholds well before liquidation or critical health levels.",
        "Bucket alerts by severity so operators are not flooded during volatile periods.",
    ],
}


def get_chain_risk(chain: str) -> dict[str, Any]:
    """查询链风险画像；未收录的链返回高 beta 的默认画像。"""
    key = resolve_chain_key(chain)
    if key is not None:
        return {"chain": chain, "risk_factor": CHAIN_RISK_FACTORS[key], **CHAIN_PROFILES[key]}
    return {
        "chain": chain or "unknown",
        "risk_factor": UNKNOWN_CHAIN_RISK_FACTOR,
        "typical_gas_band_usd": "0.1-10",
        "maturity_score": 60,
        "notes": [
            "Unknown or less-modeled chain; treat as higher beta by default.",
            "Use conservative sizing until battle-tested DeFi primitives emerge.",
        ],
    }


def get_asset_profile(asset: str, chain: str | None = None, detail_level: str | None = None) -> dict[str, Any]:
    """查询资产画像；detail_level=full 时附加场所、监控与仓位建议。"""
    asset_type = classify_asset(asset)
    template = _ASSET_PROFILES[asset_type]
    profile: dict[str, Any] = {
        "asset": asset.upper(),
        "asset_type": asset_type.value,
        "tags": list(template["tags"]),
        "risk_flags": list(template["risk_flags"]),
        "summary": template["summary"],
        "chain_context": chain or None,
    }
    if (detail_level or "summary") == "summary":
        return profile

    chain_context = chain.lower() if chain else None
    profile.update(
        {
            "typical_venues": list(template["typical_venues"]),
            "monitoring_hints": list(template["monitoring_hints"]),
            "sizing_guidance": template["sizing_guidance"],
            "chain_specific_note": (
                f"Profiles are synthetic; always validate actual liquidity and usage for {chain_context}."
                if chain_context
                else "Profiles are synthetic and chain-agnostic; validate per chain before use."
            ),
        }
    )
    return profile


def get_yield_risk_playbook(
    risk_tolerance: str | None,
    archetype: str | None = None,
    use_case: str | None = None,
) -> dict[str, Any]:
    """按风险偏好、分桶原型与使用场景组合护栏建议。"""
    tolerance_text = (risk_tolerance or "balanced").lower()
    archetype_text = (archetype or "core").lower()
    use_case_text = (use_case or "allocation_planning").lower()

    tolerance = RiskTolerance.parse(tolerance_text)
    try:
        arch = Archetype(archetype_text)
    except ValueError:
        # 未知原型按实验仓处理，宁可偏保守地给出最严格的护栏。
        arch = Archetype.experimental

    if arch == Archetype.core:
        rebalancing_days = 30 if tolerance == RiskTolerance.conservative else 21
    elif arch == Archetype.satellite:
        rebalancing_days = 14
    else:
        rebalancing_days = 7

    return {
        "risk_tolerance": tolerance_text,
        "archetype": archetype_text,
        "use_case": use_case_text,
        "guardrails": list(_ARCHETYPE_GUARDRAILS[arch]),
        "overlays": list(_TOLERANCE_OVERLAYS[tolerance]),
        "use_case_hints": list(_USE_CASE_HINTS.get(use_case_text, [])),
        "recommended_rebalancing_days": rebalancing_days,
    }
