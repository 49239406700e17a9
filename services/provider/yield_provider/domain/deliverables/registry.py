"""交付物注册中心：管理各作业类型计算器的注册、查询与描述信息汇总。"""

from __future__ import annotations

from dataclasses import asdict

from yield_provider.domain.deliverables.backtest import BacktestDeliverable
from yield_provider.domain.deliverables.base import BaseDeliverable
from yield_provider.domain.deliverables.execution_bundle import ExecutionBundleDeliverable
from yield_provider.domain.deliverables.portfolio_plan import PortfolioPlanDeliverable
from yield_provider.domain.deliverables.position_health import PositionHealthDeliverable
from yield_provider.domain.deliverables.yield_scan import YieldScanDeliverable
from yield_provider.domain.enums import JobKind


class DeliverableRegistry:
    """交付物注册中心，统一管理可交付的作业类型。"""
    def __init__(self) -> None:
        """__init__ 函数实现业务步骤并返回处理结果。
        返回:
        - 按函数签名返回对应结果；异常场景会抛出业务异常。
        """
        self._deliverables: dict[JobKind, BaseDeliverable] = {}
        self.register(YieldScanDeliverable())
        self.register(PortfolioPlanDeliverable())
        self.register(ExecutionBundleDeliverable())
        self.register(PositionHealthDeliverable())
        self.register(BacktestDeliverable())

    def register(self, deliverable: BaseDeliverable) -> None:
        """注册交付物计算器。
        参数:
        - deliverable: 计算器实例，以其 kind 作为注册键。
        返回:
        - 按函数签名返回对应结果；异常场景会抛出业务异常。
        """
        self._deliverables[deliverable.kind] = deliverable

    def get(self, kind: JobKind | str) -> BaseDeliverable:
        """按作业类型获取计算器。
        参数:
        - kind: 作业类型枚举或作业名。
        返回:
        - 按函数签名返回对应结果；未注册时抛出 KeyError。
        """
        try:
            return self._deliverables[JobKind.resolve(kind.value if isinstance(kind, JobKind) else kind)]
        except KeyError as exc:
            raise KeyError(f"unknown job kind: {kind}") from exc

    def find(self, kind: JobKind) -> BaseDeliverable | None:
        return self._deliverables.get(kind)

    def all(self) -> list[BaseDeliverable]:
        """返回全部已注册计算器。"""
        return list(self._deliverables.values())

    def list_descriptors(self) -> list[dict[str, object]]:
        """返回全部作业类型描述信息。
        返回:
        - 按函数签名返回对应结果；异常场景会抛出业务异常。
        """
        return [asdict(deliverable.descriptor()) for deliverable in self._deliverables.values()]
