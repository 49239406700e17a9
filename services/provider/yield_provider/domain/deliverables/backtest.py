"""策略回测报告：由回测区间、动作复杂度与策略名关键词合成收益、回撤与权益曲线。"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from yield_provider.domain.deliverables.base import BaseDeliverable
from yield_provider.domain.enums import JobKind
from yield_provider.domain.heuristics import clamp, number_or, round_half_up, string_list, string_or
from yield_provider.domain.validation import FieldKind, FieldSpec

DEFAULT_HORIZON_DAYS = 30
RISK_FREE_RATE_PCT = 5
EQUITY_CURVE_FRACTIONS = (0, 0.25, 0.5, 0.75, 1)
EDGE_KEYWORDS = ("delta-neutral", "market-neutral")
DRAG_KEYWORDS = ("degen", "leveraged")
SYNTHETIC_EDGE = 0.02
SYNTHETIC_DRAG = 0.05

KEY_EVENTS = [
    "Synthetic backtest: replace with real historical series when wiring to production data.",
    "No liquidation modeling included; this should be layered on top for leveraged strategies.",
]


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def resolve_window(start_text: Any, end_text: Any) -> tuple[datetime, datetime, int]:
    """解析回测区间；任一端无法解析时以当前时间为终点回退 30 天。"""
    start = _parse_timestamp(start_text)
    end = _parse_timestamp(end_text)
    if start is None or end is None:
        end = datetime.now(timezone.utc)
        return end - timedelta(days=DEFAULT_HORIZON_DAYS), end, DEFAULT_HORIZON_DAYS
    span_days = (end - start).total_seconds() / 86_400
    return start, end, max(1, int(round_half_up(span_days)))


def complexity_factor(action_count: int) -> float:
    return clamp(action_count / 10, 0.5, 3)


def base_annual_return(factor: float) -> float:
    if factor <= 0.8:
        return 0.08
    if factor <= 1.5:
        return 0.18
    return 0.30


def _matches(text: str, keywords: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def equity_curve(start: datetime, end: datetime, capital: float, period_return: float) -> list[dict[str, Any]]:
    """在区间的 0/25/50/75/100% 处线性插值权益。"""
    span = end - start
    return [
        {
            "timestamp_utc": _iso(start + span * fraction),
            "equity_usd": round_half_up(capital * (1 + period_return * fraction), 2),
        }
        for fraction in EQUITY_CURVE_FRACTIONS
    ]


class BacktestDeliverable(BaseDeliverable):
    """策略回测报告交付物计算器。"""
    kind = JobKind.strategy_backtest_report
    name = "Strategy Backtest Report"
    description = "Synthesize returns, drawdown, volatility and an equity curve for a named strategy."
    schema = (
        FieldSpec("client_agent_id", FieldKind.string),
        FieldSpec("chain", FieldKind.string),
        FieldSpec("strategy_name", FieldKind.string),
        FieldSpec("backtest_start_utc", FieldKind.string),
        FieldSpec("backtest_end_utc", FieldKind.string),
        FieldSpec("initial_capital_usd", FieldKind.number),
        FieldSpec("simulated_actions", FieldKind.string_array),
    )

    def compute(self, requirement: dict[str, Any]) -> dict[str, Any]:
        chain = string_or(requirement.get("chain"), "unknown")
        strategy_name = string_or(requirement.get("strategy_name"), "unknown")
        capital = number_or(requirement.get("initial_capital_usd"), 0)
        actions = string_list(requirement.get("simulated_actions"))

        start, end, days = resolve_window(requirement.get("backtest_start_utc"), requirement.get("backtest_end_utc"))
        factor = complexity_factor(len(actions))
        base_return = base_annual_return(factor)
        edge = SYNTHETIC_EDGE if _matches(strategy_name, EDGE_KEYWORDS) else 0.0
        drag = SYNTHETIC_DRAG if _matches(strategy_name, DRAG_KEYWORDS) else 0.0

        net_annual = base_return + edge - drag
        period_return = net_annual * days / 365
        ending_equity = capital * (1 + period_return)
        drag_penalty = 10 if drag > 0 else 0
        max_drawdown = min(60, max(8, 25 * factor + drag_penalty))
        volatility = min(80, max(12, 30 * factor + drag_penalty))

        total_return = (ending_equity - capital) / capital * 100 if capital > 0 else 0.0
        annualized = period_return * (365 / days) * 100
        sharpe = (annualized - RISK_FREE_RATE_PCT) / volatility if volatility > 0 else 0.0

        outcome = (
            "Synthetic results show profitable behavior over the backtest window, but with non-trivial drawdown risk."
            if total_return >= 0
            else "Synthetic results show underperformance; consider whether the edge is structural or path-dependent."
        )

        return {
            "chain": chain,
            "strategy_name": strategy_name,
            "total_return_pct": round_half_up(total_return, 1),
            "annualized_return_pct": round_half_up(annualized, 1),
            "max_drawdown_pct": round_half_up(max_drawdown, 1),
            "volatility_pct": round_half_up(volatility, 1),
            "sharpe_ratio_estimate": round_half_up(sharpe, 2),
            "trade_count": max(1, len(actions) * 3),
            "best_day_return_pct": round_half_up(volatility / 4, 2),
            "worst_day_return_pct": round_half_up(-volatility / 3, 2),
            "equity_curve": equity_curve(start, end, capital, period_return),
            "parameter_echo": {
                "horizon_days": days,
                "simulated_action_count": len(actions),
                "complexity_factor_used": factor,
                "assumptions": {
                    "base_annual_return_pct": round_half_up(base_return * 100, 2),
                    "synthetic_edge_pct": round_half_up(edge * 100, 2),
                    "synthetic_drag_pct": round_half_up(drag * 100, 2),
                },
            },
            "risk_commentary": [
                outcome,
                f"Max drawdown is modeled at ~{max_drawdown:.1f}% with volatility ~{volatility:.1f}%. "
                "This implies that realized PnL can deviate substantially from average return.",
                "Use this backtest as a sanity check on position sizing and risk budget, "
                "not as a guarantee of forward returns.",
            ],
            "key_events": list(KEY_EVENTS),
        }
