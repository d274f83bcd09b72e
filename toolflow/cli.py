"""Command line interface for running and inspecting toolflow workflows."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

import typer

from toolflow import WorkflowEngine, WorkflowRegistry, get_gateway, get_store
from toolflow.aggregation import format_aggregated_results, merge_step_results
from toolflow.config import ToolflowConfig, load_config
from toolflow.constants import DEFAULT_EXECUTION_LIST_LIMIT
from toolflow.contracts import WorkflowExecution
from toolflow.exceptions import RecoveryError, WorkflowNotFound
from toolflow.gateway import ToolGateway, load_local_gateway

app = typer.Typer(help="CLI for toolflow workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for defining and running workflows")
execution_app = typer.Typer(help="Commands for inspecting stored executions")

app.add_typer(workflow_app, name="workflow")
app.add_typer(execution_app, name="execution")

DEFINITIONS_HELP = "YAML file or directory holding workflow definitions"
TOOLS_HELP = "Python file defining a LocalToolGateway named 'gateway'"


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """toolflow CLI entry point."""
    config = load_config()
    logging.basicConfig(level=logging.DEBUG if verbose else config.log_level.upper())


def _parse_params(values: Optional[List[str]]) -> Optional[Dict[str, object]]:
    if not values:
        return None
    params: Dict[str, object] = {}
    for item in values:
        if "=" not in item:
            raise typer.BadParameter(f"Expected key=value, got '{item}'", param_hint="--param")
        key, raw = item.split("=", 1)
        try:
            params[key.strip()] = json.loads(raw)
        except json.JSONDecodeError:
            params[key.strip()] = raw
    return params


def _load_registry(definitions: Path) -> WorkflowRegistry:
    if not definitions.exists():
        typer.secho(f"Definitions not found: {definitions}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    try:
        return WorkflowRegistry.from_path(definitions)
    except ValueError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _echo_execution(execution: WorkflowExecution) -> None:
    typer.echo(f"Execution {execution.id}: {execution.status.value}")
    typer.echo(f"Workflow: {execution.workflow_id}")
    if execution.error_message:
        typer.echo(f"Error: {execution.error_message}")
    for step in execution.step_results:
        timing = f" ({step.duration_ms}ms)" if step.duration_ms is not None else ""
        typer.echo(f"- {step.step_id}: {step.status.value}{timing}")
        for key, result in step.tool_results.items():
            marker = "ok" if result.success else f"failed: {result.error}"
            cached = " [cached]" if result.cached else ""
            typer.echo(f"    {key}: {marker}{cached}")


def _load_gateway(tools: Optional[Path], config: ToolflowConfig) -> ToolGateway:
    if tools is None:
        return get_gateway(config=config)
    try:
        return load_local_gateway(tools)
    except (OSError, ValueError) as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


async def _run_with_engine(definitions: Path, tools: Optional[Path], coro_factory):
    registry = _load_registry(definitions)
    config = load_config()
    gateway = _load_gateway(tools, config)
    engine = WorkflowEngine(registry, gateway, store=get_store(config=config), config=config)
    try:
        return await coro_factory(engine)
    finally:
        await gateway.aclose()


@workflow_app.command("list")
def workflow_list(
    definitions: Path = typer.Option(Path("workflows"), help=DEFINITIONS_HELP),
) -> None:
    """
    List workflow definitions with their steps.

    Example:
        toolflow workflow list --definitions ./workflows
        # Output: competitor-analysis - Competitor Analysis (4 steps)
    """
    registry = _load_registry(definitions)
    workflows = registry.list()
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        typer.echo(f"{wf.id} - {wf.name} ({len(wf.steps)} steps)")


@workflow_app.command("run")
def workflow_run(
    workflow_id: str,
    definitions: Path = typer.Option(Path("workflows"), help=DEFINITIONS_HELP),
    tools: Optional[Path] = typer.Option(None, help=TOOLS_HELP),
    query: str = typer.Option("", "--query", "-q", help="Free-text request"),
    param: Optional[List[str]] = typer.Option(
        None, "--param", "-p", help="Workflow parameter as key=value (repeatable)"
    ),
    user: Optional[str] = typer.Option(None, help="User id recorded on the execution"),
    summary: bool = typer.Option(True, help="Print an aggregated result summary"),
) -> None:
    """
    Run a workflow through the configured tool gateway.

    Parameters given with --param win; otherwise they are extracted from --query.

    Example:
        toolflow workflow run competitor-analysis -q 'Analyze example.com for "running shoes"'
    """
    params = _parse_params(param)
    try:
        execution = asyncio.run(
            _run_with_engine(
                definitions,
                tools,
                lambda engine: engine.execute_workflow(
                    workflow_id, user_query=query, user_id=user, parameters=params
                ),
            )
        )
    except WorkflowNotFound as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    _echo_execution(execution)
    if summary:
        typer.echo("")
        typer.echo(format_aggregated_results(merge_step_results(execution.step_results)))


@execution_app.command("list")
def execution_list(
    user: Optional[str] = typer.Option(None, help="Only show executions for this user"),
    limit: int = typer.Option(DEFAULT_EXECUTION_LIST_LIMIT, help="Maximum number of executions"),
) -> None:
    """
    List stored executions, newest first.

    Example:
        toolflow execution list
        # Output: 3f2c...    competitor-analysis    completed
    """
    store = get_store()
    executions = asyncio.run(store.list_executions(user_id=user, limit=limit))
    if not executions:
        typer.echo("No executions found")
        return
    for ex in executions:
        typer.echo(f"{ex.id}\t{ex.workflow_id}\t{ex.status.value}")


@execution_app.command("show")
def execution_show(execution_id: str) -> None:
    """Show per-step and per-tool status for one execution."""
    store = get_store()
    execution = asyncio.run(store.load_execution(execution_id))
    if execution is None:
        typer.echo("Execution not found")
        raise typer.Exit(code=1)
    _echo_execution(execution)


@execution_app.command("checkpoints")
def execution_checkpoints(execution_id: str) -> None:
    """List checkpoints recorded for an execution, oldest first."""
    store = get_store()
    checkpoints = asyncio.run(store.list_checkpoints(execution_id))
    if not checkpoints:
        typer.echo("No checkpoints found")
        return
    for cp in checkpoints:
        typer.echo(
            f"{cp.sequence}\t{cp.step_id}\t{cp.checkpoint_type.value}\t{cp.created_at.isoformat()}"
        )


@execution_app.command("recover")
def execution_recover(
    execution_id: str,
    definitions: Path = typer.Option(Path("workflows"), help=DEFINITIONS_HELP),
    tools: Optional[Path] = typer.Option(None, help=TOOLS_HELP),
) -> None:
    """
    Resume a failed or paused execution after its last completed step.

    Example:
        toolflow execution recover 3f2c... --definitions ./workflows --tools ./tools.py
    """
    try:
        execution = asyncio.run(
            _run_with_engine(definitions, tools, lambda engine: engine.resume(execution_id))
        )
    except (RecoveryError, WorkflowNotFound) as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Resumed from {execution_id}")
    _echo_execution(execution)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
