"""Aggregate tool results into summaries, insights and metrics.

Handles partial failures and deduplicates insights and recommendations
gathered across tools.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, Iterable, List

from pydantic import BaseModel, Field

from .contracts import StepResult, ToolExecutionResult


class AggregateMetrics(BaseModel):
    total_tools: int = 0
    successful_tools: int = 0
    failed_tools: int = 0
    cached_tools: int = 0
    total_duration_ms: int = 0
    average_duration_ms: int = 0


class AggregatedResult(BaseModel):
    summary: str = ""
    insights: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    data: Dict[str, Any] = Field(default_factory=dict)
    metrics: AggregateMetrics = Field(default_factory=AggregateMetrics)


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


def _unique(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(values))


def aggregate_tool_results(
    tool_results: Mapping[str, ToolExecutionResult], include_summary: bool = True
) -> AggregatedResult:
    """Fold a map of tool results into one :class:`AggregatedResult`."""
    metrics = AggregateMetrics()
    insights: List[str] = []
    recommendations: List[str] = []
    data: Dict[str, Any] = {}

    for key, result in tool_results.items():
        metrics.total_tools += 1
        if not result.success:
            metrics.failed_tools += 1
            continue
        metrics.successful_tools += 1
        if result.cached:
            metrics.cached_tools += 1
        metrics.total_duration_ms += result.duration_ms
        if isinstance(result.data, Mapping):
            insights.extend(_as_list(result.data.get("insights")))
            recommendations.extend(_as_list(result.data.get("recommendations")))
        data[key] = result.data

    if metrics.total_tools:
        metrics.average_duration_ms = round(metrics.total_duration_ms / metrics.total_tools)

    summary = ""
    if include_summary:
        summary = (
            f"Executed {metrics.total_tools} tools: {metrics.successful_tools} successful, "
            f"{metrics.failed_tools} failed. "
        )
        if metrics.cached_tools:
            rate = round(metrics.cached_tools / metrics.total_tools * 100)
            summary += f"Cache hit rate: {rate}%. "
        summary += f"Average execution time: {metrics.average_duration_ms}ms."

    return AggregatedResult(
        summary=summary,
        insights=_unique(insights),
        recommendations=_unique(recommendations),
        data=data,
        metrics=metrics,
    )


def merge_step_results(step_results: Iterable[StepResult]) -> AggregatedResult:
    """Aggregate across steps, keying each tool as ``step_id:result_key``."""
    merged: Dict[str, ToolExecutionResult] = {}
    for step in step_results:
        for key, result in step.tool_results.items():
            merged[f"{step.step_id}:{key}"] = result
    return aggregate_tool_results(merged)


def extract_key_metrics(aggregated: AggregatedResult) -> Dict[str, int]:
    m = aggregated.metrics
    return {
        "total_tools": m.total_tools,
        "success_rate": round(m.successful_tools / m.total_tools * 100) if m.total_tools else 0,
        "cache_hit_rate": round(m.cached_tools / m.total_tools * 100) if m.total_tools else 0,
        "average_duration_ms": m.average_duration_ms,
        "total_duration_ms": m.total_duration_ms,
    }


def format_aggregated_results(aggregated: AggregatedResult, limit: int = 5) -> str:
    """Render a markdown report."""
    lines: List[str] = []
    if aggregated.summary:
        lines.extend([aggregated.summary, ""])

    if aggregated.insights:
        lines.append("**Key Insights:**")
        lines.extend(f"{i}. {text}" for i, text in enumerate(aggregated.insights[:limit], 1))
        lines.append("")

    if aggregated.recommendations:
        lines.append("**Recommendations:**")
        lines.extend(
            f"{i}. {text}" for i, text in enumerate(aggregated.recommendations[:limit], 1)
        )
        lines.append("")

    metrics = extract_key_metrics(aggregated)
    lines.append("**Performance:**")
    lines.append(f"- Success Rate: {metrics['success_rate']}%")
    lines.append(f"- Cache Hit Rate: {metrics['cache_hit_rate']}%")
    lines.append(f"- Total Duration: {metrics['total_duration_ms']}ms")
    lines.append(f"- Average Tool Duration: {metrics['average_duration_ms']}ms")
    return "\n".join(lines)
