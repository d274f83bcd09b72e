"""Dependency gating between workflow steps."""

from __future__ import annotations

from typing import List

from .contracts import StepStatus, WorkflowExecution, WorkflowStep
from .exceptions import DependencyUnmet


class DependencyGate:
    """Decide whether a step may run given the ledger so far.

    Steps are never reordered or deferred: a step that is not ready when its
    turn comes is skipped.
    """

    def unmet(self, step: WorkflowStep, ledger: WorkflowExecution) -> List[str]:
        missing = []
        for dep_id in step.dependencies:
            result = ledger.result_for(dep_id)
            if result is None or result.status != StepStatus.COMPLETED:
                missing.append(dep_id)
        return missing

    def ready(self, step: WorkflowStep, ledger: WorkflowExecution) -> bool:
        return not self.unmet(step, ledger)

    def check(self, step: WorkflowStep, ledger: WorkflowExecution) -> None:
        missing = self.unmet(step, ledger)
        if missing:
            raise DependencyUnmet(step.id, missing)
