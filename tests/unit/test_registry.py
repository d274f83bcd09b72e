import pytest

from toolflow import Workflow, WorkflowRegistry

SINGLE = """
id: site-audit
name: Site Audit
category: technical
steps:
  - id: crawl
    name: Crawl
    tools:
      - name: crawl_site
        params:
          url: "{{url}}"
        required: true
  - id: report
    name: Report
    dependencies: [crawl]
    tools:
      - name: summarize
        params:
          pages: "{{crawl_site}}"
"""

MULTI = """
workflows:
  - id: one
    name: One
    steps: []
  - id: two
    name: Two
    category: technical
    steps: []
"""


def test_load_single_workflow_file(tmp_path):
    path = tmp_path / "audit.yaml"
    path.write_text(SINGLE)

    registry = WorkflowRegistry.from_path(path)
    workflow = registry.get("site-audit")

    assert "site-audit" in registry
    assert len(registry) == 1
    assert workflow.steps[0].tools[0].required is True
    assert workflow.steps[1].dependencies == ["crawl"]
    assert workflow.steps[1].tools[0].params == {"pages": "{{crawl_site}}"}


def test_load_directory(tmp_path):
    (tmp_path / "audit.yml").write_text(SINGLE)
    (tmp_path / "more.yaml").write_text(MULTI)
    (tmp_path / "notes.txt").write_text("ignored")

    registry = WorkflowRegistry.from_path(tmp_path)

    assert [w.id for w in registry.list()] == ["site-audit", "one", "two"]
    assert {w.id for w in registry.by_category("technical")} == {"site-audit", "two"}


def test_duplicate_ids_are_rejected():
    registry = WorkflowRegistry([Workflow(id="wf", name="First")])
    with pytest.raises(ValueError):
        registry.register(Workflow(id="wf", name="Second"))


def test_invalid_definition(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("workflows:\n  - name: Missing id\n")
    with pytest.raises(ValueError, match="invalid workflow definition"):
        WorkflowRegistry.from_path(path)
