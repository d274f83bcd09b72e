import pytest

from toolflow.config import ToolflowConfig
from toolflow.contracts import CheckpointType, ExecutionStatus, WorkflowExecution
from toolflow.persistence import InMemoryCheckpointStore, SQLiteCheckpointStore, get_store


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryCheckpointStore()
    else:
        store = SQLiteCheckpointStore(tmp_path / "checkpoints.db")
        yield store
        store.close()


@pytest.mark.asyncio
async def test_checkpoints_are_ordered_and_latest_wins(store):
    first = await store.save_checkpoint("ex-1", "a", CheckpointType.STEP_START, {"n": 1})
    second = await store.save_checkpoint("ex-1", "a", CheckpointType.STEP_COMPLETE, {"n": 2})
    await store.save_checkpoint("ex-2", "z", CheckpointType.STEP_START, {"other": True})

    assert second.sequence > first.sequence
    assert await store.resume_from_checkpoint("ex-1") == {"n": 2}
    assert await store.resume_from_checkpoint("unknown") is None

    checkpoints = await store.list_checkpoints("ex-1")
    assert [c.checkpoint_type for c in checkpoints] == [
        CheckpointType.STEP_START,
        CheckpointType.STEP_COMPLETE,
    ]
    assert all(c.execution_id == "ex-1" for c in checkpoints)


@pytest.mark.asyncio
async def test_checkpoint_data_is_a_snapshot(store):
    data = {"items": [1]}
    await store.save_checkpoint("ex-1", "a", CheckpointType.STEP_COMPLETE, data)
    data["items"].append(2)
    assert await store.resume_from_checkpoint("ex-1") == {"items": [1]}


@pytest.mark.asyncio
async def test_save_execution_upserts(store):
    execution = WorkflowExecution(workflow_id="wf", user_id="alice")
    await store.save_execution(execution)
    execution.status = ExecutionStatus.COMPLETED
    await store.save_execution(execution)

    loaded = await store.load_execution(execution.id)
    assert loaded.status == ExecutionStatus.COMPLETED
    assert loaded.user_id == "alice"
    assert len(await store.list_executions()) == 1
    assert await store.load_execution("missing") is None


@pytest.mark.asyncio
async def test_list_executions_filters_by_user(store):
    await store.save_execution(WorkflowExecution(workflow_id="wf", user_id="alice"))
    await store.save_execution(WorkflowExecution(workflow_id="wf", user_id="bob"))
    await store.save_execution(WorkflowExecution(workflow_id="wf", user_id="alice"))

    assert len(await store.list_executions(user_id="alice")) == 2
    assert len(await store.list_executions(limit=1)) == 1


@pytest.mark.asyncio
async def test_sqlite_store_survives_reopen(tmp_path):
    path = tmp_path / "checkpoints.db"
    store = SQLiteCheckpointStore(path)
    execution = WorkflowExecution(workflow_id="wf")
    await store.save_execution(execution)
    await store.save_checkpoint(execution.id, "a", CheckpointType.STEP_COMPLETE, {"ok": True})
    store.close()

    reopened = SQLiteCheckpointStore(path)
    assert (await reopened.load_execution(execution.id)).workflow_id == "wf"
    assert await reopened.resume_from_checkpoint(execution.id) == {"ok": True}
    reopened.close()


def test_get_store_selects_backend(tmp_path, monkeypatch):
    monkeypatch.delenv("TOOLFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    assert isinstance(get_store(config=ToolflowConfig()), InMemoryCheckpointStore)

    store = get_store(f"sqlite://{tmp_path / 'wf.db'}", config=ToolflowConfig())
    assert isinstance(store, SQLiteCheckpointStore)
    store.close()

    with pytest.raises(ValueError):
        get_store("mysql://nope", config=ToolflowConfig())


def test_get_store_reads_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("TOOLFLOW_DATABASE_URL", f"sqlite://{tmp_path / 'env.db'}")
    store = get_store(config=ToolflowConfig())
    assert isinstance(store, SQLiteCheckpointStore)
    store.close()
