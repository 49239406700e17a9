"""作业路由与注册中心测试：验证分派、最小交付物与元数据解析。"""

from __future__ import annotations

import pytest

from yield_provider.domain.deliverables.registry import DeliverableRegistry
from yield_provider.domain.deliverables.router import UNKNOWN_JOB_MESSAGE, JobRouter, fallback_deliverable
from yield_provider.domain.enums import JobKind
from yield_provider.domain.models import JobMetadata, PhaseEvent


def _router() -> JobRouter:
    return JobRouter(DeliverableRegistry())


def test_registry_lists_five_offerings() -> None:
    descriptors = DeliverableRegistry().list_descriptors()
    assert [item["code"] for item in descriptors] == [
        "yield_scan_and_ranking",
        "portfolio_yield_allocation_plan",
        "execution_bundle_builder",
        "position_health_monitor",
        "strategy_backtest_report",
    ]
    scan = descriptors[0]
    assert scan["version"] == "1.0.0"
    assert {"field": "assets", "kind": "string_array", "required": True} in scan["input_schema"]


def test_registry_get_accepts_name_or_enum() -> None:
    registry = DeliverableRegistry()
    assert registry.get("strategy_backtest_report").kind == JobKind.strategy_backtest_report
    assert registry.get(JobKind.position_health_monitor).kind == JobKind.position_health_monitor
    assert registry.find(JobKind.unknown) is None
    with pytest.raises(KeyError, match="unknown job kind"):
        registry.get("moon_shot")


def test_missing_metadata_yields_unknown_deliverable() -> None:
    """缺失元数据时返回 unknown 最小交付物。"""
    result = _router().route(None)
    assert result["job_name"] == "unknown"
    assert result["validation_passed"] is False
    assert result["validation_errors"] == [{"message": "Missing job metadata", "field": "metadata"}]
    assert result["timestamp_utc"].endswith("Z")


def test_unknown_kind_yields_guidance_message() -> None:
    result = _router().route(JobMetadata(kind="moon_shot", requirement={"chain": "base"}))
    assert result["job_name"] == "unknown"
    assert result["message"] == UNKNOWN_JOB_MESSAGE
    assert result["validation_errors"] == [
        {"message": "No handler implemented for job name: moon_shot", "field": "job_name"}
    ]


def test_known_kind_is_dispatched() -> None:
    metadata = JobMetadata(
        kind="position_health_monitor",
        requirement={
            "client_agent_id": "agent-1",
            "chain": "base",
            "positions": [],
            "notify_channel": "email",
            "check_frequency_minutes": 10,
        },
    )
    result = _router().route(metadata)
    assert result["job_name"] == "position_health_monitor"
    assert result["validation_passed"] is True
    assert result["portfolio_summary"]["monitoring_frequency_minutes"] == 10


def test_fallback_deliverable_reports_exception() -> None:
    result = fallback_deliverable(RuntimeError("boom"))
    assert result["job_name"] == "unknown"
    assert result["validation_passed"] is False
    assert result["validation_errors"] == [
        {"message": "Delivery failed internally", "field": "internal"},
        {"message": "boom", "field": "exception"},
    ]


def test_metadata_from_payload_and_content() -> None:
    """结构化内容优先，序列化 content 尽力解析，缺少作业名视为无元数据。"""
    metadata = JobMetadata.from_payload({"name": "yield_scan_and_ranking", "requirement": {"chain": "base"}})
    assert metadata == JobMetadata(kind="yield_scan_and_ranking", requirement={"chain": "base"})
    assert metadata.job_kind == JobKind.yield_scan_and_ranking

    assert JobMetadata.from_payload({"name": "x", "requirement": "oops"}).requirement == {}
    assert JobMetadata.from_payload({"requirement": {}}) is None
    assert JobMetadata.from_payload("yield_scan_and_ranking") is None

    parsed = JobMetadata.from_content('{"name": "strategy_backtest_report", "requirement": {"chain": "base"}}')
    assert parsed is not None
    assert parsed.job_kind == JobKind.strategy_backtest_report
    assert JobMetadata.from_content("{not json") is None
    assert JobMetadata.from_content(None) is None
    assert parsed.to_payload() == {"name": "strategy_backtest_report", "requirement": {"chain": "base"}}


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(1, 1), (3.0, 3), (1.5, None), (True, None), ("1", None), (None, None)],
)
def test_phase_event_next_phase_accepts_integral_numbers(raw, expected) -> None:
    """nextPhase 允许整数或整值浮点，其余取值视为缺失。"""
    event = PhaseEvent.from_wire({"status": "PENDING", "nextPhase": raw})
    assert event is not None
    assert event.next_phase == expected
