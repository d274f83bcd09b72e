from toolflow.analytics import InMemoryAnalytics, NullAnalytics
from toolflow.contracts import ToolExecutionResult


def test_tool_metrics_accumulate():
    analytics = InMemoryAnalytics()
    analytics.record_tool("search", 100, True)
    analytics.record_tool("search", 300, False)
    analytics.record_tool("search", 20, True, cached=True)

    metrics = analytics.tool_metrics("search")
    assert metrics.total_executions == 3
    assert metrics.successful_executions == 2
    assert metrics.failed_executions == 1
    assert metrics.average_duration_ms == 140
    assert metrics.min_duration_ms == 20
    assert metrics.max_duration_ms == 300
    assert metrics.cache_hits == 1
    assert metrics.cache_hit_rate == 33
    assert metrics.last_executed is not None
    assert analytics.tool_metrics("unknown") is None


def test_rankings():
    analytics = InMemoryAnalytics()
    analytics.record_tool("fast", 10, True)
    analytics.record_tool("slow", 500, True)
    analytics.record_tool("flaky", 50, False)
    for _ in range(5):
        analytics.record_tool("cached", 1, True, cached=True)

    assert analytics.slowest_tools(limit=1)[0].tool_name == "slow"
    assert analytics.top_performing_tools()[-1].tool_name == "flaky"
    assert [m.tool_name for m in analytics.best_cached_tools()] == ["cached"]

    summary = analytics.summary()
    assert summary.total_tools == 4
    assert summary.total_executions == 8
    assert summary.average_success_rate == 75


def test_workflow_metrics_do_not_double_count_tools():
    analytics = InMemoryAnalytics()
    analytics.record_tool("search", 100, True)
    analytics.record_workflow(
        "wf",
        150,
        True,
        {"a:search": ToolExecutionResult(tool_name="search", success=True, duration_ms=100)},
    )
    analytics.record_workflow("wf", 50, False, {})

    assert analytics.tool_metrics("search").total_executions == 1
    workflow = analytics.workflow_metrics("wf")
    assert workflow.total_executions == 2
    assert workflow.successful_executions == 1
    assert workflow.failed_executions == 1
    assert workflow.average_duration_ms == 100
    assert workflow.tool_metrics["search"].total_executions == 1


def test_empty_summary_and_null_sink():
    assert InMemoryAnalytics().summary().total_tools == 0
    sink = NullAnalytics()
    sink.record_tool("x", 1, True)
    sink.record_workflow("wf", 1, True, {})
