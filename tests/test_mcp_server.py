"""Tests for the MCP tool functions, called directly."""

from __future__ import annotations

import pytest

import mcp_server
from amplify_health import config


@pytest.fixture(autouse=True)
def fresh_sessions(monkeypatch):
    monkeypatch.setattr(mcp_server, "_sessions", {})
    monkeypatch.setattr(config, "READONLY_MODE", False)


def test_build_optimization_report(make_project, amplify_yml):
    root = make_project({"package.json": {"name": "app"}, "package-lock.json": "{}", "amplify.yml": amplify_yml})
    out = mcp_server.run_build_optimization(root)
    assert out["success"]
    assert out["report"]["findings"][0]["category"] == "runtime"
    assert 0 <= out["report"]["score"] <= 100


def test_missing_project_is_an_error_not_an_exception(tmp_path):
    out = mcp_server.analyze_node_version(str(tmp_path / "missing"))
    assert out["success"] is False
    assert "does not exist" in out["error"]


def test_apply_remediation_returns_new_report(make_project):
    root = make_project({"amplify.yml": "version: 1\nfrontend:\n  phases: {}\n"})
    out = mcp_server.apply_remediation(root, "add_cache_section", {}, panel="optimization")
    assert out["success"]
    assert out["result"]["changed"] is True
    assert out["report"]["generation"] == 1


def test_readonly_blocks_mutations(make_project, monkeypatch):
    monkeypatch.setattr(config, "READONLY_MODE", True)
    root = make_project({"amplify.yml": "version: 1\n"})
    out = mcp_server.apply_remediation(root, "replace_tabs")
    assert out["success"] is False
    assert "read-only" in out["error"]
    assert mcp_server.amplify_start_build("d1", "main")["success"] is False


def test_unknown_action_and_panel(make_project):
    root = make_project({})
    assert mcp_server.apply_remediation(root, "nope")["success"] is False
    assert mcp_server.apply_remediation(root, "replace_tabs", panel="nope")["success"] is False


def test_list_remediations():
    out = mcp_server.list_remediations()
    assert any(a["actionId"] == "create_nvmrc" for a in out["actions"])
