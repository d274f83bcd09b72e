from toolflow.aggregation import (
    aggregate_tool_results,
    extract_key_metrics,
    format_aggregated_results,
    merge_step_results,
)
from toolflow.contracts import StepResult, ToolExecutionResult


def _results():
    return {
        "overview": ToolExecutionResult(
            tool_name="overview",
            success=True,
            duration_ms=100,
            data={"insights": ["Traffic is up"], "recommendations": "Add FAQ schema"},
        ),
        "keywords": ToolExecutionResult(
            tool_name="keywords",
            success=True,
            cached=True,
            duration_ms=20,
            data={"insights": ["Traffic is up", "Long tail grows"]},
        ),
        "backlinks": ToolExecutionResult(tool_name="backlinks", success=False, error="quota"),
    }


def test_aggregate_handles_partial_failure():
    aggregated = aggregate_tool_results(_results())

    assert aggregated.metrics.total_tools == 3
    assert aggregated.metrics.successful_tools == 2
    assert aggregated.metrics.failed_tools == 1
    assert aggregated.metrics.cached_tools == 1
    assert aggregated.metrics.total_duration_ms == 120
    assert aggregated.metrics.average_duration_ms == 40
    assert aggregated.insights == ["Traffic is up", "Long tail grows"]
    assert aggregated.recommendations == ["Add FAQ schema"]
    assert set(aggregated.data) == {"overview", "keywords"}
    assert aggregated.summary == (
        "Executed 3 tools: 2 successful, 1 failed. "
        "Cache hit rate: 33%. Average execution time: 40ms."
    )


def test_aggregate_without_summary():
    assert aggregate_tool_results({}, include_summary=False).summary == ""


def test_merge_and_format():
    step = StepResult(step_id="discovery", tool_results=_results())
    aggregated = merge_step_results([step])
    assert "discovery:overview" in aggregated.data

    metrics = extract_key_metrics(aggregated)
    assert metrics["success_rate"] == 67
    assert metrics["cache_hit_rate"] == 33

    report = format_aggregated_results(aggregated, limit=1)
    assert "**Key Insights:**\n1. Traffic is up" in report
    assert "Long tail grows" not in report
    assert "**Recommendations:**" in report
    assert "- Success Rate: 67%" in report
