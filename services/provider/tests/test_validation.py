"""声明式校验测试：覆盖必填/可选字段、嵌套对象、对象数组路径与错误累积。"""

from __future__ import annotations

import copy
import math
from typing import Any

import pytest

from yield_provider.domain.deliverables.base import BaseDeliverable
from yield_provider.domain.deliverables.execution_bundle import ExecutionBundleDeliverable
from yield_provider.domain.deliverables.portfolio_plan import PortfolioPlanDeliverable
from yield_provider.domain.deliverables.registry import DeliverableRegistry
from yield_provider.domain.deliverables.yield_scan import YieldScanDeliverable
from yield_provider.domain.enums import JobKind
from yield_provider.domain.validation import FieldKind, FieldSpec, is_number, validate


def _yield_scan_payload() -> dict:
    return {
        "client_agent_id": "agent-1",
        "chain": "base",
        "assets": ["USDC", "ETH"],
        "risk_tolerance": "balanced",
        "min_tvl_usd": 100000,
        "lookback_hours": 24,
    }


def _fields(errors) -> list[str]:
    return [error.field for error in errors]


def test_valid_payload_has_no_errors() -> None:
    """合法输入不产生任何错误。"""
    assert validate(_yield_scan_payload(), YieldScanDeliverable.schema) == []


def test_missing_required_field_reports_exactly_one_error() -> None:
    """缺少单个必填字段时只产生一条对应错误。"""
    payload = _yield_scan_payload()
    payload.pop("client_agent_id")
    errors = validate(payload, YieldScanDeliverable.schema)
    assert len(errors) == 1
    assert errors[0].field == "client_agent_id"
    assert errors[0].message == "client_agent_id must be string"


def test_errors_accumulate_in_schema_order() -> None:
    """多个字段错误全部上报，并保持 schema 顺序。"""
    errors = validate({}, YieldScanDeliverable.schema)
    assert _fields(errors) == [
        "client_agent_id",
        "chain",
        "assets",
        "risk_tolerance",
        "min_tvl_usd",
        "lookback_hours",
    ]
    assert errors[2].message == "assets must be array of strings"


def test_non_mapping_payload_validates_as_empty() -> None:
    """非对象载荷按空对象校验。"""
    assert _fields(validate("not-a-dict", YieldScanDeliverable.schema)) == _fields(
        validate({}, YieldScanDeliverable.schema)
    )


def test_string_array_items_must_be_strings() -> None:
    payload = _yield_scan_payload()
    payload["assets"] = ["USDC", 1]
    errors = validate(payload, YieldScanDeliverable.schema)
    assert [error.as_dict() for error in errors] == [{"message": "assets items must be strings", "field": "assets"}]


def test_number_rejects_nan_infinity_and_bool() -> None:
    """NaN、无穷大与布尔值都不算数值。"""
    assert is_number(3) and is_number(2.5)
    assert not is_number(math.nan)
    assert not is_number(math.inf)
    assert not is_number(True)
    assert not is_number("3")

    payload = _yield_scan_payload()
    payload["min_tvl_usd"] = math.nan
    payload["lookback_hours"] = False
    assert _fields(validate(payload, YieldScanDeliverable.schema)) == ["min_tvl_usd", "lookback_hours"]


def test_nested_object_paths_are_dotted() -> None:
    """嵌套对象字段使用点分路径。"""
    payload = {
        "client_agent_id": "agent-1",
        "chain": "base",
        "starting_capital_usd": 10000,
        "risk_tolerance": "balanced",
        "target_horizon_days": 30,
        "preferences": {"allow_leverage": "no", "allow_lockups": False, "max_positions": 3},
    }
    errors = validate(payload, PortfolioPlanDeliverable.schema)
    assert [error.as_dict() for error in errors] == [
        {"message": "preferences.allow_leverage must be boolean", "field": "preferences.allow_leverage"}
    ]


def test_missing_nested_object_reports_single_error() -> None:
    payload = {
        "client_agent_id": "agent-1",
        "chain": "base",
        "starting_capital_usd": 10000,
        "risk_tolerance": "balanced",
        "target_horizon_days": 30,
    }
    errors = validate(payload, PortfolioPlanDeliverable.schema)
    assert [error.as_dict() for error in errors] == [{"message": "preferences must be object", "field": "preferences"}]


def test_object_array_element_paths_use_index() -> None:
    """对象数组元素字段路径形如 name[i].child。"""
    payload = {
        "client_agent_id": "agent-1",
        "chain": "base",
        "desired_allocations": [
            {"asset_in": "USDC", "asset_out": "ETH", "amount_in": 100, "venue": "Uniswap"},
            {"asset_in": "USDC", "asset_out": "ETH", "amount_in": "lots", "venue": "Uniswap"},
            7,
        ],
    }
    errors = validate(payload, ExecutionBundleDeliverable.schema)
    assert [error.as_dict() for error in errors] == [
        {
            "message": "desired_allocations[1].amount_in must be number",
            "field": "desired_allocations[1].amount_in",
        },
        {"message": "desired_allocations[2] must be object", "field": "desired_allocations[2]"},
    ]


def test_optional_fields_checked_only_when_present() -> None:
    """可选字段缺失时不报错，存在但类型错误时附加 when provided。"""
    payload = {
        "client_agent_id": "agent-1",
        "chain": "base",
        "desired_allocations": [],
    }
    assert validate(payload, ExecutionBundleDeliverable.schema) == []

    payload.update({"slippage_bps": "50", "prefer_batching": "yes"})
    errors = validate(payload, ExecutionBundleDeliverable.schema)
    assert [error.message for error in errors] == [
        "slippage_bps must be number when provided",
        "prefer_batching must be boolean when provided",
    ]


def test_field_spec_describe_includes_children() -> None:
    spec = FieldSpec("positions", FieldKind.object_array, children=(FieldSpec("protocol", FieldKind.string),))
    assert spec.describe() == {
        "field": "positions",
        "kind": "object_array",
        "required": True,
        "children": [{"field": "protocol", "kind": "string", "required": True}],
    }


VALID_REQUIREMENTS: dict[JobKind, dict[str, Any]] = {
    JobKind.yield_scan_and_ranking: _yield_scan_payload(),
    JobKind.portfolio_yield_allocation_plan: {
        "client_agent_id": "agent-1",
        "chain": "base",
        "starting_capital_usd": 10000,
        "risk_tolerance": "balanced",
        "target_horizon_days": 30,
        "preferences": {"allow_leverage": False, "allow_lockups": True, "max_positions": 3},
    },
    JobKind.execution_bundle_builder: {
        "client_agent_id": "agent-1",
        "chain": "base",
        "desired_allocations": [
            {"asset_in": "USDC", "asset_out": "aUSDC", "amount_in": 500, "venue": "AaveLend"},
            {"asset_in": "USDC", "asset_out": "ETH", "amount_in": 2500, "venue": "Uniswap"},
        ],
        "slippage_bps": 30,
        "deadline_seconds": 600,
        "prefer_batching": False,
    },
    JobKind.position_health_monitor: {
        "client_agent_id": "agent-1",
        "chain": "arbitrum",
        "positions": [
            {"protocol": "SafeLend", "pool_address": "0xpool", "position_id": "pos-1", "health_threshold": 80},
            {"protocol": "YieldDex", "pool_address": "0xdex", "position_id": "pos-2", "health_threshold": 50},
        ],
        "notify_channel": "telegram:@ops",
        "check_frequency_minutes": 5,
    },
    JobKind.strategy_backtest_report: {
        "client_agent_id": "agent-1",
        "chain": "base",
        "strategy_name": "stablecoin carry",
        "backtest_start_utc": "2025-01-01T00:00:00Z",
        "backtest_end_utc": "2025-01-31T00:00:00Z",
        "initial_capital_usd": 10000,
        "simulated_actions": ["deposit", "harvest"],
    },
}

WRONG_TYPE_VALUES: dict[FieldKind, Any] = {
    FieldKind.string: 123,
    FieldKind.number: "12",
    FieldKind.boolean: "yes",
    FieldKind.array: "x",
    FieldKind.string_array: "USDC",
    FieldKind.object: "x",
    FieldKind.object_array: {"not": "a list"},
}


def _lookup(payload: Any, steps: tuple[Any, ...]) -> Any:
    for step in steps:
        payload = payload[step]
    return payload


def _required_fields(schema, root: dict[str, Any], prefix: str = "", steps: tuple[Any, ...] = ()):
    """展开全部必填字段（含嵌套对象与对象数组最后一个元素的子字段）。"""
    for spec in schema:
        if not spec.required:
            continue
        path = f"{prefix}.{spec.name}" if prefix else spec.name
        field_steps = (*steps, spec.name)
        yield path, field_steps, spec.kind
        if spec.kind == FieldKind.object:
            yield from _required_fields(spec.children, root, path, field_steps)
        elif spec.kind == FieldKind.object_array:
            last = len(_lookup(root, field_steps)) - 1
            yield from _required_fields(spec.children, root, f"{path}[{last}]", (*field_steps, last))


REQUIRED_FIELD_CASES = [
    pytest.param(deliverable, path, steps, kind, id=f"{deliverable.kind.value}:{path}")
    for deliverable in DeliverableRegistry().all()
    for path, steps, kind in _required_fields(deliverable.schema, VALID_REQUIREMENTS[deliverable.kind])
]


def _mutated(kind: JobKind, steps: tuple[Any, ...], value: Any = None, *, drop: bool = False) -> dict[str, Any]:
    payload = copy.deepcopy(VALID_REQUIREMENTS[kind])
    parent = _lookup(payload, steps[:-1])
    if drop:
        del parent[steps[-1]]
    else:
        parent[steps[-1]] = value
    return payload


def test_every_offering_has_a_valid_fixture() -> None:
    assert {deliverable.kind for deliverable in DeliverableRegistry().all()} == set(VALID_REQUIREMENTS)


@pytest.mark.parametrize("deliverable", DeliverableRegistry().all(), ids=lambda item: item.kind.value)
def test_valid_requirement_builds_without_errors(deliverable: BaseDeliverable) -> None:
    """每种作业的合法输入都通过校验。"""
    result = deliverable.build(copy.deepcopy(VALID_REQUIREMENTS[deliverable.kind]))
    assert result["job_name"] == deliverable.kind.value
    assert result["validation_passed"] is True
    assert result["validation_errors"] == []


@pytest.mark.parametrize(("deliverable", "path", "steps", "kind"), REQUIRED_FIELD_CASES)
def test_omitted_required_field_yields_one_error(
    deliverable: BaseDeliverable, path: str, steps: tuple[Any, ...], kind: FieldKind
) -> None:
    """逐个删除必填字段，只产生一条路径对应的错误。"""
    result = deliverable.build(_mutated(deliverable.kind, steps, drop=True))
    assert result["validation_passed"] is False
    assert [error["field"] for error in result["validation_errors"]] == [path]


@pytest.mark.parametrize(("deliverable", "path", "steps", "kind"), REQUIRED_FIELD_CASES)
def test_mistyped_required_field_yields_one_error(
    deliverable: BaseDeliverable, path: str, steps: tuple[Any, ...], kind: FieldKind
) -> None:
    """逐个把必填字段改成错误类型，只产生一条路径对应的错误。"""
    result = deliverable.build(_mutated(deliverable.kind, steps, WRONG_TYPE_VALUES[kind]))
    assert result["validation_passed"] is False
    errors = result["validation_errors"]
    assert [error["field"] for error in errors] == [path]
    assert errors[0]["message"].startswith(f"{path} must be ")
