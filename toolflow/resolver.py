"""Parameter resolution against prior tool outputs."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Dict, Iterable, Optional

from .constants import DUPLICATE_RESULT_SEPARATOR, USER_QUERY_KEY
from .contracts import ToolExecutionResult
from .params import LiteralParam, ReferenceParam, compile_params

logger = logging.getLogger(__name__)


class _Missing:
    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return "MISSING"


MISSING: Any = _Missing()


def lookup(tree: Any, path: Sequence[str]) -> Any:
    """Walk ``path`` through nested mappings and lists.

    Returns ``MISSING`` when any segment cannot be followed.
    """
    if not path:
        return tree
    head, rest = path[0], path[1:]
    if isinstance(tree, Mapping):
        if head not in tree:
            return MISSING
        return lookup(tree[head], rest)
    if isinstance(tree, Sequence) and not isinstance(tree, (str, bytes)):
        if not head.isdigit():
            return MISSING
        index = int(head)
        if index >= len(tree):
            return MISSING
        return lookup(tree[index], rest)
    return MISSING


def _add_results(
    context: Dict[str, Any], results: Mapping[str, ToolExecutionResult]
) -> None:
    for key, result in results.items():
        if not result.success:
            continue
        context[key] = result.data
        base_key = key.split(DUPLICATE_RESULT_SEPARATOR, 1)[0]
        context.setdefault(base_key, result.data)
        context.setdefault(result.tool_name, result.data)
        if isinstance(result.data, Mapping):
            context.update(result.data)


def build_context(
    user_query: str = "",
    parameters: Optional[Mapping[str, Any]] = None,
    step_results: Iterable[Mapping[str, ToolExecutionResult]] = (),
    local_results: Optional[Mapping[str, ToolExecutionResult]] = None,
) -> Dict[str, Any]:
    """Flatten the user query and prior tool outputs into one lookup table.

    Later entries win: initial parameters, then completed steps in order,
    then the running step's own earlier tools.
    """
    context: Dict[str, Any] = {USER_QUERY_KEY: user_query}
    if parameters:
        context.update(parameters)
    for results in step_results:
        _add_results(context, results)
    if local_results:
        _add_results(context, local_results)
    return context


class ParameterResolver:
    """Substitute ``{{placeholder}}`` values in tool parameter templates."""

    def resolve_reference(self, ref: ReferenceParam, context: Mapping[str, Any]) -> Any:
        if ref.identifier in context:
            return context[ref.identifier]
        value = lookup(context, ref.path)
        if value is MISSING:
            logger.warning(f"Variable not found: {ref.identifier}")
            return ref.raw
        return value

    def resolve(
        self, template: Mapping[str, Any], context: Mapping[str, Any]
    ) -> Dict[str, Any]:
        if not isinstance(template, Mapping):
            raise TypeError(
                f"Tool parameters must be a mapping, got {type(template).__name__}"
            )
        resolved: Dict[str, Any] = {}
        for key, param in compile_params(template).items():
            if isinstance(param, LiteralParam):
                resolved[key] = param.value
            else:
                resolved[key] = self.resolve_reference(param, context)
        return resolved
