"""Scheduling of recurring workflow runs."""

from __future__ import annotations

import asyncio
import calendar
import logging
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .contracts import WorkflowExecution, utcnow

if TYPE_CHECKING:
    from .engine import WorkflowEngine

logger = logging.getLogger(__name__)


class ScheduleType(str, Enum):
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CRON = "cron"


class WorkflowSchedule(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: Optional[str] = None
    workflow_id: str
    schedule_type: ScheduleType
    schedule_config: Dict[str, Any] = Field(default_factory=dict)
    workflow_params: Dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True
    last_run_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None
    run_count: int = 0


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _at(base: datetime, config: Dict[str, Any]) -> datetime:
    return base.replace(
        hour=int(config.get("hour", 0)),
        minute=int(config.get("minute", 0)),
        second=0,
        microsecond=0,
    )


def calculate_next_run(
    schedule_type: ScheduleType, config: Dict[str, Any], now: Optional[datetime] = None
) -> Optional[datetime]:
    """Next run time for a schedule, or ``None`` when there is none.

    ``weekly`` uses ``day_of_week`` with Monday as 0. ``cron`` expressions
    are not evaluated and always return ``None``.
    """
    now = _as_utc(now or utcnow())
    schedule_type = ScheduleType(schedule_type)

    if schedule_type == ScheduleType.ONCE:
        run_at = config.get("run_at")
        if run_at is None:
            return None
        if not isinstance(run_at, datetime):
            run_at = datetime.fromisoformat(run_at)
        return _as_utc(run_at)
    if schedule_type == ScheduleType.DAILY:
        return _at(now + timedelta(days=1), config)
    if schedule_type == ScheduleType.WEEKLY:
        day_of_week = int(config.get("day_of_week", 0))
        days_until = (day_of_week - now.weekday()) % 7 or 7
        return _at(now + timedelta(days=days_until), config)
    if schedule_type == ScheduleType.MONTHLY:
        year = now.year + (1 if now.month == 12 else 0)
        month = 1 if now.month == 12 else now.month + 1
        day = min(int(config.get("day", 1)), calendar.monthrange(year, month)[1])
        return _at(now.replace(year=year, month=month, day=day), config)
    return None


class WorkflowScheduler:
    """In-process schedule table."""

    def __init__(self) -> None:
        self._schedules: Dict[str, WorkflowSchedule] = {}
        self._lock = asyncio.Lock()

    async def create_schedule(
        self,
        workflow_id: str,
        schedule_type: ScheduleType,
        schedule_config: Optional[Dict[str, Any]] = None,
        workflow_params: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> WorkflowSchedule:
        config = schedule_config or {}
        schedule = WorkflowSchedule(
            user_id=user_id,
            workflow_id=workflow_id,
            schedule_type=schedule_type,
            schedule_config=config,
            workflow_params=workflow_params or {},
            next_run_at=calculate_next_run(schedule_type, config, now),
        )
        async with self._lock:
            self._schedules[schedule.id] = schedule
        return schedule

    async def get_schedule(self, schedule_id: str) -> Optional[WorkflowSchedule]:
        return self._schedules.get(schedule_id)

    async def get_due_schedules(self, now: Optional[datetime] = None) -> List[WorkflowSchedule]:
        now = _as_utc(now or utcnow())
        return [
            s
            for s in self._schedules.values()
            if s.enabled and s.next_run_at is not None and s.next_run_at <= now
        ]

    async def mark_schedule_executed(
        self, schedule_id: str, now: Optional[datetime] = None
    ) -> None:
        now = _as_utc(now or utcnow())
        async with self._lock:
            schedule = self._schedules.get(schedule_id)
            if schedule is None:
                return
            schedule.last_run_at = now
            schedule.run_count += 1
            if schedule.schedule_type == ScheduleType.ONCE:
                schedule.next_run_at = None
            else:
                schedule.next_run_at = calculate_next_run(
                    schedule.schedule_type, schedule.schedule_config, now
                )

    async def disable_schedule(self, schedule_id: str) -> None:
        async with self._lock:
            schedule = self._schedules.get(schedule_id)
            if schedule is not None:
                schedule.enabled = False

    async def run_due(
        self, engine: "WorkflowEngine", now: Optional[datetime] = None
    ) -> List[WorkflowExecution]:
        """Execute every due schedule once and advance it."""
        executions: List[WorkflowExecution] = []
        for schedule in await self.get_due_schedules(now):
            params = dict(schedule.workflow_params)
            user_query = params.pop("user_query", "")
            logger.info(f"Running scheduled workflow {schedule.workflow_id} ({schedule.id})")
            try:
                execution = await engine.execute_workflow(
                    schedule.workflow_id,
                    user_query=user_query,
                    user_id=schedule.user_id,
                    parameters=params,
                )
            except Exception as e:
                logger.error(f"Scheduled run {schedule.id} failed: {e}")
                continue
            finally:
                await self.mark_schedule_executed(schedule.id, now)
            executions.append(execution)
        return executions
