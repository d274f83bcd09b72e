"""Simple example running a three-step workflow with local tools."""

import asyncio
import logging

from toolflow import (
    InMemoryAnalytics,
    LocalToolGateway,
    Workflow,
    WorkflowEngine,
    WorkflowRegistry,
    WorkflowStep,
    WorkflowTool,
)
from toolflow.aggregation import format_aggregated_results, merge_step_results

gateway = LocalToolGateway(timeout=10)


@gateway.tool()
async def domain_overview(domain):
    await asyncio.sleep(0.1)
    return {"domain": domain, "organic_traffic": 42000, "insights": ["Traffic grew 12% this quarter"]}


@gateway.tool()
async def competitors(domain):
    await asyncio.sleep(0.1)
    return {"competitors": ["rival.com", "other.io"]}


@gateway.tool()
def keyword_gap(domain, competitors):
    return {
        "missing_keywords": [f"{c} alternative" for c in competitors],
        "recommendations": ["Publish comparison pages"],
    }


COMPETITOR_ANALYSIS = Workflow(
    id="competitor-analysis",
    name="Competitor Analysis",
    steps=[
        WorkflowStep(
            id="discover",
            name="Discover",
            parallel=True,
            tools=[
                WorkflowTool(name="domain_overview", params={"domain": "{{domain}}"}, required=True),
                WorkflowTool(name="competitors", params={"domain": "{{domain}}"}),
            ],
        ),
        WorkflowStep(
            id="gap",
            name="Keyword gap",
            dependencies=["discover"],
            tools=[
                WorkflowTool(
                    name="keyword_gap",
                    params={"domain": "{{domain}}", "competitors": "{{competitors}}"},
                )
            ],
        ),
    ],
)


async def main():
    """Run the workflow and print progress and a summary."""
    logging.basicConfig(level=logging.INFO)
    analytics = InMemoryAnalytics()
    engine = WorkflowEngine(WorkflowRegistry([COMPETITOR_ANALYSIS]), gateway, analytics=analytics)

    def on_progress(update):
        print(f"[{update.progress.percentage:3d}%] {update.type} {update.step_id or ''} {update.tool_name or ''}")

    execution = await engine.execute_workflow(
        "competitor-analysis",
        user_query="Analyze competitors for example.com in Canada",
        on_progress=on_progress,
    )

    print(f"Execution {execution.id}: {execution.status.value}")
    print(format_aggregated_results(merge_step_results(execution.step_results)))
    print(analytics.summary())


if __name__ == "__main__":
    asyncio.run(main())
