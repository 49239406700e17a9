"""执行交易包构建：将期望配置转为带元信息的占位交易描述与批处理计划。"""

from __future__ import annotations

import time
from typing import Any

from yield_provider.domain.deliverables.base import BaseDeliverable
from yield_provider.domain.enums import JobKind
from yield_provider.domain.heuristics import number_or, round_half_up, string_or
from yield_provider.domain.validation import FieldKind, FieldSpec

DEFAULT_SLIPPAGE_BPS = 50
DEFAULT_DEADLINE_SECONDS = 900
GAS_COST_PER_TX_USD = 1.75
SWAP_GAS_LIMIT = 220_000
DEFAULT_GAS_LIMIT = 350_000

OPERATIONAL_RISKS = [
    "Route selection is synthetic; validate routers and paths before signing.",
    "Ensure slippage and deadlines are aligned with current liquidity conditions.",
    "Run a dry-run / simulation on test environment if changing venues or assets.",
]

_SIZE_TIERS = (
    (1_000, "small", "expected_low"),
    (100_000, "medium", "monitor"),
)


def infer_action_type(venue: str, asset_out: str) -> str:
    """按场所名与目标资产推断动作类型，规则按顺序匹配。"""
    venue_text = venue.lower()
    out_text = asset_out.upper()
    if any(marker in venue_text for marker in ("lend", "aave", "compound")):
        return "supply_or_borrow"
    if "lp" in venue_text or "-LP" in out_text or "/" in out_text:
        return "add_liquidity"
    if "vault" in venue_text or "farm" in venue_text:
        return "vault_deposit"
    return "swap"


def size_category(amount: float) -> tuple[str, str]:
    """返回 (规模档位, 价格冲击提示)。"""
    for upper_bound, category, hint in _SIZE_TIERS:
        if amount < upper_bound:
            return category, hint
    return "large", "high_attention"


def build_transaction(
    index: int,
    allocation: dict[str, Any],
    chain: str,
    slippage_bps: float,
    deadline_seconds: float,
) -> dict[str, Any]:
    """构建单笔占位交易描述；to/data 仅为示意值，签名前必须替换。"""
    venue = string_or(allocation.get("venue"), "")
    asset_in = string_or(allocation.get("asset_in"), "")
    asset_out = string_or(allocation.get("asset_out"), "")
    amount_in = number_or(allocation.get("amount_in"), 0)
    action_type = infer_action_type(venue, asset_out)
    category, price_impact_hint = size_category(amount_in)
    return {
        "index": index,
        "description": f"Execute {action_type} from {asset_in} → {asset_out} on {venue}",
        "action_type": action_type,
        "to": f"0xRouterOrProtocol{index:02d}...",
        "data": f"0x{1000 + index:x}deadbeef",
        "value": "0",
        "gas_limit_hint": SWAP_GAS_LIMIT if action_type == "swap" else DEFAULT_GAS_LIMIT,
        "meta": {
            "chain": chain,
            "venue": venue,
            "asset_in": asset_in,
            "asset_out": asset_out,
            "notional_estimate_usd": amount_in,
            "size_category": category,
            "price_impact_hint": price_impact_hint,
            "slippage_bps": slippage_bps,
            "deadline_seconds": deadline_seconds,
        },
    }


def batching_plan(txs: list[dict[str, Any]], prefer_batching: bool) -> dict[str, Any]:
    """生成批处理计划；按场所分组时保持交易在输入中的先后顺序。"""
    if not prefer_batching:
        return {
            "strategy": "sequential_execution",
            "rationale": "Execute in deterministic order for simpler monitoring and rollback reasoning.",
        }
    batches: dict[str, list[int]] = {}
    for tx in txs:
        batches.setdefault(tx["meta"]["venue"], []).append(tx["index"])
    return {
        "strategy": "batch_by_venue",
        "rationale": "Group interactions per venue to reduce overhead and limit nonce management complexity.",
        "tentative_batches": batches,
    }


class ExecutionBundleDeliverable(BaseDeliverable):
    """执行交易包交付物计算器。"""
    kind = JobKind.execution_bundle_builder
    name = "Execution Bundle Builder"
    description = "Turn desired allocations into placeholder transactions with a batching plan."
    schema = (
        FieldSpec("client_agent_id", FieldKind.string),
        FieldSpec("chain", FieldKind.string),
        FieldSpec(
            "desired_allocations",
            FieldKind.object_array,
            children=(
                FieldSpec("asset_in", FieldKind.string),
                FieldSpec("asset_out", FieldKind.string),
                FieldSpec("amount_in", FieldKind.number),
                FieldSpec("venue", FieldKind.string),
            ),
        ),
        FieldSpec("slippage_bps", FieldKind.number, required=False),
        FieldSpec("deadline_seconds", FieldKind.number, required=False),
        FieldSpec("prefer_batching", FieldKind.boolean, required=False),
    )

    def compute(self, requirement: dict[str, Any]) -> dict[str, Any]:
        chain = string_or(requirement.get("chain"), "unknown")
        slippage_bps = number_or(requirement.get("slippage_bps"), DEFAULT_SLIPPAGE_BPS)
        deadline_seconds = number_or(requirement.get("deadline_seconds"), DEFAULT_DEADLINE_SECONDS)
        prefer_batching = requirement.get("prefer_batching")
        if not isinstance(prefer_batching, bool):
            prefer_batching = True

        allocations = requirement.get("desired_allocations")
        if not isinstance(allocations, list):
            allocations = []
        # 非对象元素已由校验器报错，这里跳过但保留原始下标以便对照错误路径。
        txs = [
            build_transaction(index, allocation, chain, slippage_bps, deadline_seconds)
            for index, allocation in enumerate(allocations)
            if isinstance(allocation, dict)
        ]

        return {
            "chain": chain,
            "bundle_id": f"bundle_{chain}_{int(time.time() * 1000)}",
            "slippage_bps_applied": slippage_bps,
            "deadline_seconds_applied": deadline_seconds,
            "prefer_batching": prefer_batching,
            "estimated_gas_cost_usd": round_half_up(len(txs) * GAS_COST_PER_TX_USD, 2),
            "txs": txs,
            "batching_plan": batching_plan(txs, prefer_batching),
            "operational_risks": list(OPERATIONAL_RISKS),
        }
