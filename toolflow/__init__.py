"""toolflow: checkpointed multi-step tool workflow orchestration."""

from .analytics import InMemoryAnalytics, NullAnalytics
from .cache import ResultCache
from .contracts import (
    ExecutionStatus,
    RequiredToolPolicy,
    StepResult,
    StepStatus,
    ToolExecutionResult,
    Workflow,
    WorkflowContext,
    WorkflowExecution,
    WorkflowStep,
    WorkflowTool,
)
from .engine import WorkflowEngine
from .gateway import LocalToolGateway, ToolGateway, get_gateway
from .persistence import get_store
from .registry import WorkflowRegistry

__version__ = "0.1.0"
__all__ = [
    "ExecutionStatus",
    "InMemoryAnalytics",
    "LocalToolGateway",
    "NullAnalytics",
    "RequiredToolPolicy",
    "ResultCache",
    "StepResult",
    "StepStatus",
    "ToolExecutionResult",
    "ToolGateway",
    "Workflow",
    "WorkflowContext",
    "WorkflowEngine",
    "WorkflowExecution",
    "WorkflowRegistry",
    "WorkflowStep",
    "WorkflowTool",
    "get_gateway",
    "get_store",
]
