"""Typed tool parameter values.

Workflow authors write parameter templates as plain mappings. A value that is
exactly ``{{identifier}}`` or ``{{identifier.path}}`` refers to an earlier
result; everything else is a literal. Templates are classified once, when the
workflow is defined, instead of on every string comparison at run time.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

_PLACEHOLDER = re.compile(r"^\{\{\s*([^{}\s]+)\s*\}\}$")


class LiteralParam(BaseModel):
    """Parameter value passed to the tool unchanged."""

    model_config = ConfigDict(frozen=True)

    value: Any = None


class ReferenceParam(BaseModel):
    """Parameter value looked up in the resolver context."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    raw: str

    @property
    def path(self) -> Tuple[str, ...]:
        return tuple(self.identifier.split("."))


ParamValue = Union[LiteralParam, ReferenceParam]


def parse_reference(value: Any) -> Optional[ReferenceParam]:
    """Return a :class:`ReferenceParam` if ``value`` is a placeholder token."""
    if not isinstance(value, str):
        return None
    match = _PLACEHOLDER.match(value.strip())
    if match is None:
        return None
    return ReferenceParam(identifier=match.group(1), raw=value)


def compile_param(value: Any) -> ParamValue:
    if isinstance(value, (LiteralParam, ReferenceParam)):
        return value
    return parse_reference(value) or LiteralParam(value=value)


def compile_params(template: Mapping[str, Any]) -> Dict[str, ParamValue]:
    """Classify each top-level template value as literal or reference."""
    return {key: compile_param(value) for key, value in template.items()}
