"""Tests for placeholder resolution."""

import pytest

from toolflow.contracts import ToolExecutionResult
from toolflow.params import LiteralParam, ReferenceParam, compile_params, parse_reference
from toolflow.resolver import MISSING, ParameterResolver, build_context, lookup


def ok(name, data):
    return ToolExecutionResult(tool_name=name, success=True, data=data)


def test_parse_reference_only_matches_whole_token():
    ref = parse_reference("{{ domain }}")
    assert ref == ReferenceParam(identifier="domain", raw="{{ domain }}")
    assert ref.path == ("domain",)
    assert parse_reference("site:{{domain}}") is None
    assert parse_reference("{{a}}{{b}}") is None
    assert parse_reference(42) is None


def test_compile_params_classifies_values():
    compiled = compile_params({"q": "{{userQuery}}", "limit": 10, "nested": {"a": "{{x}}"}})
    assert isinstance(compiled["q"], ReferenceParam)
    assert compiled["limit"] == LiteralParam(value=10)
    # only top-level values are templates
    assert compiled["nested"] == LiteralParam(value={"a": "{{x}}"})


def test_lookup_walks_mappings_and_lists():
    tree = {"a": {"items": [{"id": 1}, {"id": 2}]}}
    assert lookup(tree, ("a", "items", "1", "id")) == 2
    assert lookup(tree, ("a", "items", "5")) is MISSING
    assert lookup(tree, ("a", "items", "first")) is MISSING
    assert lookup(tree, ("a", "missing")) is MISSING
    assert lookup("text", ("0",)) is MISSING


def test_build_context_order_and_spread():
    context = build_context(
        "find shoes",
        {"domain": "param.com", "keyword": "shoes"},
        [{"overview": ok("overview", {"domain": "result.com", "rank": 4})}],
        {"local": ok("local", "value")},
    )
    assert context["userQuery"] == "find shoes"
    assert context["overview"] == {"domain": "result.com", "rank": 4}
    # spread result fields win over earlier parameters
    assert context["domain"] == "result.com"
    assert context["rank"] == 4
    assert context["keyword"] == "shoes"
    assert context["local"] == "value"


def test_build_context_ignores_failed_results():
    failed = ToolExecutionResult(tool_name="broken", success=False, error="boom", data={"x": 1})
    context = build_context(step_results=[{"broken": failed}])
    assert "broken" not in context
    assert "x" not in context


def test_build_context_duplicate_keys_expose_base_and_tool_name():
    context = build_context(
        step_results=[
            {
                "lookup": ok("lookup", "first"),
                "lookup#2": ok("lookup", "second"),
                "aliased": ok("search", "third"),
            }
        ]
    )
    assert context["lookup"] == "first"
    assert context["lookup#2"] == "second"
    assert context["aliased"] == "third"
    assert context["search"] == "third"


def test_resolve_substitutes_whole_values():
    resolver = ParameterResolver()
    context = {"userQuery": "q", "overview": {"rank": 3}, "items": [1, 2]}
    resolved = resolver.resolve(
        {
            "query": "{{userQuery}}",
            "data": "{{overview}}",
            "rank": "{{overview.rank}}",
            "items": "{{items}}",
            "limit": 5,
            "text": "prefix {{userQuery}}",
        },
        context,
    )
    assert resolved == {
        "query": "q",
        "data": {"rank": 3},
        "rank": 3,
        "items": [1, 2],
        "limit": 5,
        "text": "prefix {{userQuery}}",
    }


def test_resolve_prefers_literal_dotted_key():
    resolver = ParameterResolver()
    context = {"a.b": "flat", "a": {"b": "nested"}}
    assert resolver.resolve({"v": "{{a.b}}"}, context) == {"v": "flat"}


def test_missing_reference_keeps_placeholder(caplog):
    resolver = ParameterResolver()
    with caplog.at_level("WARNING"):
        resolved = resolver.resolve({"v": "{{unknown}}"}, {})
    assert resolved == {"v": "{{unknown}}"}
    assert "Variable not found: unknown" in caplog.text


def test_resolve_rejects_non_mapping_template():
    with pytest.raises(TypeError):
        ParameterResolver().resolve(["{{x}}"], {})
