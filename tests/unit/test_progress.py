import pytest

from toolflow import Workflow, WorkflowEngine, WorkflowRegistry, WorkflowStep, WorkflowTool
from toolflow.progress import ProgressCounter, ProgressReporter


def test_counter_percentage():
    assert ProgressCounter.of(1, 3).percentage == 33
    assert ProgressCounter.of(0, 0).percentage == 100


@pytest.mark.asyncio
async def test_reporter_supports_sync_and_async_callbacks():
    received = []

    async def async_callback(update):
        received.append(("async", update.type))

    await ProgressReporter(async_callback, execution_id="ex").emit("step_start", 0, 2, step_id="a")
    await ProgressReporter(lambda u: received.append(("sync", u.type))).emit("tool_start", 0, 1)
    await ProgressReporter().emit("tool_start", 0, 1)

    assert received == [("async", "step_start"), ("sync", "tool_start")]


@pytest.mark.asyncio
async def test_engine_streams_tool_and_workflow_events(gateway):
    gateway.returns("ok", {"value": 1})
    gateway.fails("bad", "quota exceeded")
    workflow = Workflow(
        id="wf",
        name="Stream",
        steps=[
            WorkflowStep(
                id="a", name="A", tools=[WorkflowTool(name="ok"), WorkflowTool(name="bad")]
            )
        ],
    )
    updates = []
    engine = WorkflowEngine(WorkflowRegistry([workflow]), gateway)
    execution = await engine.execute(workflow, on_progress=updates.append)

    assert [u.type for u in updates] == [
        "step_start",
        "tool_start",
        "tool_complete",
        "tool_start",
        "tool_error",
        "step_complete",
        "workflow_complete",
    ]
    assert all(u.execution_id == execution.id for u in updates)
    assert updates[2].data == {"value": 1}
    assert updates[4].error == "quota exceeded"
    assert updates[4].progress.percentage == 100
    assert updates[-1].data == {"status": "completed"}
