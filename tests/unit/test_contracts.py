"""Tests for workflow contracts."""

from datetime import timedelta

import pytest

from toolflow.contracts import (
    ExecutionStatus,
    StepResult,
    StepStatus,
    ToolExecutionResult,
    Workflow,
    WorkflowExecution,
    WorkflowStep,
    WorkflowTool,
)
from toolflow.exceptions import DependencyUnmet
from toolflow.executor import result_keys
from toolflow.gate import DependencyGate


def test_step_status_moves_forward_only():
    result = StepResult(step_id="a")
    result.transition(StepStatus.RUNNING)
    result.transition(StepStatus.COMPLETED)
    assert result.status.is_terminal

    with pytest.raises(ValueError):
        result.transition(StepStatus.RUNNING)
    with pytest.raises(ValueError):
        result.transition(StepStatus.FAILED)


def test_pending_can_only_start_or_skip():
    skipped = StepResult(step_id="a")
    skipped.transition("skipped")
    assert skipped.status == StepStatus.SKIPPED

    with pytest.raises(ValueError):
        StepResult(step_id="b").transition(StepStatus.COMPLETED)


def test_failed_tools_filters_by_required():
    result = StepResult(
        step_id="a",
        tool_results={
            "one": ToolExecutionResult(tool_name="one", success=False, required=True),
            "two": ToolExecutionResult(tool_name="two", success=False),
            "three": ToolExecutionResult(tool_name="three", success=True, required=True),
        },
    )
    assert result.failed_tools() == ["one", "two"]
    assert result.failed_tools(required=True) == ["one"]
    assert result.failed_tools(required=False) == ["two"]


def test_workflow_definitions_are_frozen():
    workflow = Workflow(id="wf", name="W", steps=[WorkflowStep(id="a", name="A")])
    with pytest.raises(Exception):
        workflow.name = "changed"
    assert workflow.step("a").name == "A"
    assert workflow.step("zzz") is None
    assert workflow.step_index("a") == 0
    with pytest.raises(KeyError):
        workflow.step_index("zzz")


def test_result_keys_suffix_duplicates():
    tools = [
        WorkflowTool(name="search"),
        WorkflowTool(name="search"),
        WorkflowTool(name="rank", alias="ranking"),
        WorkflowTool(name="search"),
    ]
    assert result_keys(tools) == ["search", "search#2", "ranking", "search#3"]


def test_execution_json_round_trip_and_duration():
    execution = WorkflowExecution(workflow_id="wf", user_id="u")
    execution.step_results.append(StepResult(step_id="a", status=StepStatus.COMPLETED))
    execution.ended_at = execution.started_at + timedelta(milliseconds=250)
    execution.status = ExecutionStatus.COMPLETED

    restored = WorkflowExecution.from_json(execution.to_json())
    assert restored.id == execution.id
    assert restored.duration_ms == 250
    assert restored.last_completed_step().step_id == "a"
    assert restored.result_for("a").status == StepStatus.COMPLETED


def test_dependency_gate():
    gate = DependencyGate()
    ledger = WorkflowExecution(workflow_id="wf")
    ledger.step_results = [
        StepResult(step_id="a", status=StepStatus.COMPLETED),
        StepResult(step_id="b", status=StepStatus.SKIPPED),
    ]
    assert gate.ready(WorkflowStep(id="c", name="C", dependencies=["a"]), ledger)
    assert gate.ready(WorkflowStep(id="c", name="C"), ledger)

    step = WorkflowStep(id="d", name="D", dependencies=["a", "b", "x"])
    assert gate.unmet(step, ledger) == ["b", "x"]
    with pytest.raises(DependencyUnmet) as exc_info:
        gate.check(step, ledger)
    assert exc_info.value.missing == ["b", "x"]
