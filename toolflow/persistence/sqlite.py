"""SQLite implementation of the checkpoint store."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..constants import DEFAULT_EXECUTION_LIST_LIMIT
from ..contracts import Checkpoint, CheckpointType, WorkflowExecution
from ..exceptions import PersistenceError
from .store import CheckpointStore


class SQLiteCheckpointStore(CheckpointStore):
    """Persist checkpoints and ledgers using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._write_lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS executions (
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                user_id TEXT,
                status TEXT NOT NULL,
                started_at TEXT NOT NULL,
                ledger TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS checkpoints (
                sequence INTEGER PRIMARY KEY AUTOINCREMENT,
                execution_id TEXT NOT NULL,
                step_id TEXT NOT NULL,
                checkpoint_type TEXT NOT NULL,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_checkpoints_execution ON checkpoints (execution_id)"
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        with self._write_lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()
            return cur.lastrowid

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    async def _run(self, fn, *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as e:
            raise PersistenceError(f"SQLite store error: {e}") from e

    @staticmethod
    def _row_to_checkpoint(row: sqlite3.Row) -> Checkpoint:
        return Checkpoint(
            execution_id=row["execution_id"],
            step_id=row["step_id"],
            checkpoint_type=CheckpointType(row["checkpoint_type"]),
            data=json.loads(row["data"]),
            sequence=row["sequence"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # ------------------------------------------------------------------
    # Store API
    async def save_checkpoint(
        self,
        execution_id: str,
        step_id: str,
        checkpoint_type: CheckpointType,
        data: Dict[str, Any],
    ) -> Checkpoint:
        checkpoint = Checkpoint(
            execution_id=execution_id,
            step_id=step_id,
            checkpoint_type=checkpoint_type,
            data=data,
        )
        try:
            payload = json.dumps(data)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Checkpoint data is not JSON serialisable: {e}") from e
        sequence = await self._run(
            self._execute,
            "INSERT INTO checkpoints (execution_id, step_id, checkpoint_type, data, created_at) VALUES (?, ?, ?, ?, ?)",
            execution_id,
            step_id,
            CheckpointType(checkpoint_type).value,
            payload,
            checkpoint.created_at.isoformat(),
        )
        checkpoint.sequence = sequence
        return checkpoint

    async def save_execution(self, execution: WorkflowExecution) -> None:
        await self._run(
            self._execute,
            """
            INSERT INTO executions (id, workflow_id, user_id, status, started_at, ledger)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                status = excluded.status,
                ledger = excluded.ledger
            """,
            execution.id,
            execution.workflow_id,
            execution.user_id,
            execution.status.value,
            execution.started_at.isoformat(),
            execution.to_json(),
        )

    async def load_execution(self, execution_id: str) -> WorkflowExecution | None:
        row = await self._run(
            self._fetchone, "SELECT ledger FROM executions WHERE id = ?", execution_id
        )
        if not row:
            return None
        return WorkflowExecution.from_json(row["ledger"])

    async def resume_from_checkpoint(self, execution_id: str) -> Dict[str, Any] | None:
        row = await self._run(
            self._fetchone,
            "SELECT data FROM checkpoints WHERE execution_id = ? ORDER BY sequence DESC LIMIT 1",
            execution_id,
        )
        if not row:
            return None
        return json.loads(row["data"])

    async def list_checkpoints(self, execution_id: str) -> List[Checkpoint]:
        rows = await self._run(
            self._fetchall,
            "SELECT sequence, execution_id, step_id, checkpoint_type, data, created_at FROM checkpoints WHERE execution_id = ? ORDER BY sequence",
            execution_id,
        )
        return [self._row_to_checkpoint(r) for r in rows]

    async def list_executions(
        self, user_id: Optional[str] = None, limit: int = DEFAULT_EXECUTION_LIST_LIMIT
    ) -> List[WorkflowExecution]:
        if user_id is None:
            rows = await self._run(
                self._fetchall,
                "SELECT ledger FROM executions ORDER BY started_at DESC LIMIT ?",
                limit,
            )
        else:
            rows = await self._run(
                self._fetchall,
                "SELECT ledger FROM executions WHERE user_id = ? ORDER BY started_at DESC LIMIT ?",
                user_id,
                limit,
            )
        return [WorkflowExecution.from_json(r["ledger"]) for r in rows]

    def close(self) -> None:
        self._conn.close()
