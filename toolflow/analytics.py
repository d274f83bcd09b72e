"""Tool and workflow execution metrics.

Tracks execution times, cache hit rates and success/failure rates. The
in-memory store resets with the process; a persistent sink only needs to
implement :class:`AnalyticsSink`.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Protocol

from pydantic import BaseModel, Field

from .contracts import ToolExecutionResult, utcnow


class AnalyticsSink(Protocol):
    """Write-only metrics interface used by the engine."""

    def record_tool(
        self, name: str, duration_ms: int, success: bool, cached: bool = False
    ) -> None:
        """Record one tool invocation."""

    def record_workflow(
        self,
        workflow_id: str,
        duration_ms: int,
        success: bool,
        tool_results: Mapping[str, ToolExecutionResult],
    ) -> None:
        """Record one finished workflow run."""


class NullAnalytics:
    """Sink that discards everything."""

    def record_tool(self, name, duration_ms, success, cached=False) -> None:
        pass

    def record_workflow(self, workflow_id, duration_ms, success, tool_results) -> None:
        pass


class ToolMetrics(BaseModel):
    tool_name: str
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    total_duration_ms: int = 0
    average_duration_ms: int = 0
    min_duration_ms: Optional[int] = None
    max_duration_ms: int = 0
    cache_hits: int = 0
    cache_hit_rate: int = 0
    last_executed: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        if not self.total_executions:
            return 0.0
        return self.successful_executions / self.total_executions

    def record(self, duration_ms: int, success: bool, cached: bool) -> None:
        self.total_executions += 1
        if success:
            self.successful_executions += 1
        else:
            self.failed_executions += 1
        if cached:
            self.cache_hits += 1
        self.total_duration_ms += duration_ms
        self.average_duration_ms = round(self.total_duration_ms / self.total_executions)
        self.min_duration_ms = (
            duration_ms
            if self.min_duration_ms is None
            else min(self.min_duration_ms, duration_ms)
        )
        self.max_duration_ms = max(self.max_duration_ms, duration_ms)
        self.cache_hit_rate = round(self.cache_hits / self.total_executions * 100)
        self.last_executed = utcnow()


class WorkflowMetrics(BaseModel):
    workflow_id: str
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    average_duration_ms: int = 0
    tool_metrics: Dict[str, ToolMetrics] = Field(default_factory=dict)


class SummaryStats(BaseModel):
    total_tools: int
    total_executions: int
    average_success_rate: int
    average_cache_hit_rate: int
    average_duration_ms: int


class InMemoryAnalytics:
    """Thread-safe in-process analytics store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tools: Dict[str, ToolMetrics] = {}
        self._workflows: Dict[str, WorkflowMetrics] = {}

    def record_tool(
        self, name: str, duration_ms: int, success: bool, cached: bool = False
    ) -> None:
        with self._lock:
            metrics = self._tools.setdefault(name, ToolMetrics(tool_name=name))
            metrics.record(duration_ms, success, cached)

    def record_workflow(
        self,
        workflow_id: str,
        duration_ms: int,
        success: bool,
        tool_results: Mapping[str, ToolExecutionResult],
    ) -> None:
        with self._lock:
            metrics = self._workflows.setdefault(
                workflow_id, WorkflowMetrics(workflow_id=workflow_id)
            )
            metrics.total_executions += 1
            if success:
                metrics.successful_executions += 1
            else:
                metrics.failed_executions += 1
            total = metrics.average_duration_ms * (metrics.total_executions - 1) + duration_ms
            metrics.average_duration_ms = round(total / metrics.total_executions)

            # per-workflow breakdown only; global tool metrics come from record_tool
            for result in tool_results.values():
                tool = metrics.tool_metrics.setdefault(
                    result.tool_name, ToolMetrics(tool_name=result.tool_name)
                )
                tool.record(result.duration_ms, result.success, result.cached)

    # ------------------------------------------------------------------
    def tool_metrics(self, name: str) -> Optional[ToolMetrics]:
        with self._lock:
            metrics = self._tools.get(name)
            return metrics.model_copy() if metrics else None

    def all_tool_metrics(self) -> List[ToolMetrics]:
        with self._lock:
            return [m.model_copy() for m in self._tools.values()]

    def workflow_metrics(self, workflow_id: str) -> Optional[WorkflowMetrics]:
        with self._lock:
            metrics = self._workflows.get(workflow_id)
            return metrics.model_copy(deep=True) if metrics else None

    def top_performing_tools(self, limit: int = 10) -> List[ToolMetrics]:
        return sorted(
            self.all_tool_metrics(), key=lambda m: m.success_rate, reverse=True
        )[:limit]

    def slowest_tools(self, limit: int = 10) -> List[ToolMetrics]:
        return sorted(
            self.all_tool_metrics(), key=lambda m: m.average_duration_ms, reverse=True
        )[:limit]

    def best_cached_tools(self, limit: int = 10, min_executions: int = 5) -> List[ToolMetrics]:
        eligible = [m for m in self.all_tool_metrics() if m.total_executions >= min_executions]
        return sorted(eligible, key=lambda m: m.cache_hit_rate, reverse=True)[:limit]

    def summary(self) -> SummaryStats:
        metrics = self.all_tool_metrics()
        count = len(metrics)
        if not count:
            return SummaryStats(
                total_tools=0,
                total_executions=0,
                average_success_rate=0,
                average_cache_hit_rate=0,
                average_duration_ms=0,
            )
        return SummaryStats(
            total_tools=count,
            total_executions=sum(m.total_executions for m in metrics),
            average_success_rate=round(sum(m.success_rate * 100 for m in metrics) / count),
            average_cache_hit_rate=round(sum(m.cache_hit_rate for m in metrics) / count),
            average_duration_ms=round(sum(m.average_duration_ms for m in metrics) / count),
        )
