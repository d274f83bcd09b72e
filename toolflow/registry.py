"""Workflow definition lookup.

Definitions are static configuration. They are registered in code or loaded
from YAML files and handed to the engine explicitly.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol

import yaml
from pydantic import ValidationError

from .contracts import Workflow

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


class WorkflowLookup(Protocol):
    """Anything that resolves a workflow id to its definition."""

    def get(self, workflow_id: str) -> Optional[Workflow]:
        """Return the workflow or ``None``."""


class WorkflowRegistry:
    """In-memory collection of workflow definitions."""

    def __init__(self, workflows: Iterable[Workflow] = ()) -> None:
        self._workflows: Dict[str, Workflow] = {}
        for workflow in workflows:
            self.register(workflow)

    def register(self, workflow: Workflow) -> None:
        if workflow.id in self._workflows:
            raise ValueError(f"Workflow '{workflow.id}' is already registered")
        self._workflows[workflow.id] = workflow

    def get(self, workflow_id: str) -> Optional[Workflow]:
        return self._workflows.get(workflow_id)

    def list(self) -> List[Workflow]:
        return list(self._workflows.values())

    def by_category(self, category: str) -> List[Workflow]:
        return [w for w in self._workflows.values() if w.category == category]

    def __contains__(self, workflow_id: object) -> bool:
        return workflow_id in self._workflows

    def __len__(self) -> int:
        return len(self._workflows)

    # ------------------------------------------------------------------
    def load_file(self, path: str | Path) -> List[Workflow]:
        """Register every workflow defined in a YAML file.

        The file holds either one workflow mapping or a ``workflows`` list.
        """
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        entries = data.get("workflows", [data]) if isinstance(data, dict) else data
        if not isinstance(entries, list):
            raise ValueError(f"{path}: expected a workflow mapping or a 'workflows' list")

        loaded = []
        for entry in entries:
            try:
                workflow = Workflow.model_validate(entry)
            except ValidationError as e:
                raise ValueError(f"{path}: invalid workflow definition: {e}") from e
            self.register(workflow)
            loaded.append(workflow)
        logger.debug(f"Loaded {len(loaded)} workflow(s) from {path}")
        return loaded

    def load_directory(self, directory: str | Path) -> List[Workflow]:
        loaded: List[Workflow] = []
        for path in sorted(Path(directory).iterdir()):
            if path.is_file() and path.suffix in YAML_SUFFIXES:
                loaded.extend(self.load_file(path))
        return loaded

    @classmethod
    def from_path(cls, path: str | Path) -> "WorkflowRegistry":
        registry = cls()
        path = Path(path)
        if path.is_dir():
            registry.load_directory(path)
        else:
            registry.load_file(path)
        return registry
