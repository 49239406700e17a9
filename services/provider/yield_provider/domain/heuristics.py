"""合成启发式工具：资产分类、链风险系数、风险偏好偏移与数值取整。

这里的所有数值都是示意性常量，不来自真实行情或链上数据。交付计算与
资源目录接口共用本模块，保证同一资产/链在两处得到一致的分类与系数。
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from yield_provider.domain.enums import AssetType, RiskTolerance

STABLECOINS = frozenset({"USDC", "USDT", "DAI", "FRAX", "LUSD"})
BLUECHIPS = frozenset({"ETH", "WETH", "WBTC"})

UNKNOWN_CHAIN_RISK_FACTOR = 1.2

CHAIN_RISK_FACTORS: dict[str, float] = {
    "ethereum-mainnet": 0.8,
    "base": 1.0,
    "arbitrum": 1.0,
    "optimism": 1.05,
}

_CHAIN_ALIASES = {
    "ethereum": "ethereum-mainnet",
    "mainnet": "ethereum-mainnet",
}


@dataclass(slots=True, frozen=True)
class ToleranceBias:
    """风险偏好对 APY 与风险分的加性偏移。"""
    apy_boost: float
    risk_boost: float


_TOLERANCE_BIAS = {
    RiskTolerance.conservative: ToleranceBias(apy_boost=-3, risk_boost=-15),
    RiskTolerance.balanced: ToleranceBias(apy_boost=0, risk_boost=0),
    RiskTolerance.aggressive: ToleranceBias(apy_boost=5, risk_boost=10),
}


def now_iso() -> str:
    """返回毫秒精度的 UTC ISO 时间串，统一以 Z 结尾。"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def round_half_up(value: float, digits: int = 0) -> float:
    """四舍五入到指定小数位（0.5 向上），避免内置 round 的银行家舍入。"""
    factor = 10**digits
    scaled = value * factor
    # 放大后溢出（或本身非有限）时原样返回，极大数值已无小数位可舍入。
    if not math.isfinite(scaled):
        return value
    return math.floor(scaled + 0.5) / factor


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def classify_asset(symbol: Any) -> AssetType:
    """按代币符号模式判断资产分类。"""
    text = str(symbol or "").upper()
    if text in STABLECOINS:
        return AssetType.stablecoin
    if text in BLUECHIPS:
        return AssetType.bluechip
    if "-LP" in text or "/" in text:
        return AssetType.lp_token
    return AssetType.long_tail


def resolve_chain_key(chain: Any) -> str | None:
    """将链名归一到目录键；未收录的链返回 None。"""
    key = str(chain or "").strip().lower()
    candidates = (key, key.replace("-one", ""), key.replace("-mainnet", ""), _CHAIN_ALIASES.get(key, ""))
    for candidate in candidates:
        if candidate in CHAIN_RISK_FACTORS:
            return candidate
    return None


def chain_risk_factor(chain: Any) -> float:
    """链风险系数：已收录链取固定 beta，未知链按 1.2 视为更高风险。"""
    key = resolve_chain_key(chain)
    if key is None:
        return UNKNOWN_CHAIN_RISK_FACTOR
    return CHAIN_RISK_FACTORS[key]


def risk_tolerance_bias(risk_tolerance: RiskTolerance) -> ToleranceBias:
    return _TOLERANCE_BIAS[risk_tolerance]


def number_or(value: Any, default: float) -> float:
    """数值字段取值；非有限数值时回退到默认值。"""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return default
    return value


def positive_number_or(value: Any, default: float) -> float:
    """与 number_or 相同，但 0 也视为缺省。"""
    parsed = number_or(value, default)
    return parsed if parsed else default


def string_or(value: Any, default: str) -> str:
    return value if isinstance(value, str) and value else default


def string_list(value: Any) -> list[str]:
    """提取字符串列表，丢弃非字符串元素。"""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def object_list(value: Any) -> list[dict[str, Any]]:
    """提取对象列表，丢弃非对象元素。"""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]
