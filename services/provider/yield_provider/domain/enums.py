"""领域枚举定义：统一作业类型、协议阶段、风险偏好与资产分类取值。"""

from __future__ import annotations

from enum import Enum, IntEnum


class JobKind(str, Enum):
    """可交付作业类型枚举；unknown 用于承接无法识别的作业名。"""
    yield_scan_and_ranking = "yield_scan_and_ranking"
    portfolio_yield_allocation_plan = "portfolio_yield_allocation_plan"
    execution_bundle_builder = "execution_bundle_builder"
    position_health_monitor = "position_health_monitor"
    strategy_backtest_report = "strategy_backtest_report"
    unknown = "unknown"

    @classmethod
    def resolve(cls, name: object) -> JobKind:
        """按作业名解析枚举，未命中时返回 unknown。"""
        if isinstance(name, str):
            try:
                return cls(name)
            except ValueError:
                return cls.unknown
        return cls.unknown


class JobPhase(IntEnum):
    """ACP 协议阶段编号。"""
    request = 0
    negotiation = 1
    transaction = 2
    evaluation = 3
    completed = 4
    rejected = 5
    expired = 6


class MemoStatus(str, Enum):
    """待签名 memo 状态枚举。"""
    pending = "PENDING"
    approved = "APPROVED"
    rejected = "REJECTED"


class RiskTolerance(str, Enum):
    """客户风险偏好枚举。"""
    conservative = "conservative"
    balanced = "balanced"
    aggressive = "aggressive"

    @classmethod
    def parse(cls, value: object) -> RiskTolerance:
        """宽松解析风险偏好，非法取值按 balanced 处理。"""
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.balanced


class RiskBand(str, Enum):
    """收益场所风险档位。"""
    low = "low"
    medium = "medium"
    high = "high"


class AssetType(str, Enum):
    """资产分类枚举。"""
    stablecoin = "stablecoin"
    bluechip = "bluechip"
    lp_token = "lp_token"
    long_tail = "long_tail"


class Archetype(str, Enum):
    """组合分桶原型。"""
    core = "core"
    satellite = "satellite"
    experimental = "experimental"
