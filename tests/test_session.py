"""Tests for AnalysisSession."""

from __future__ import annotations

import os
import threading

import pytest

from amplify_health import panels
from amplify_health.engine import Engine
from amplify_health.errors import RemediationError, SnapshotError
from amplify_health.models import Finding, Status
from amplify_health.registry import Check, CheckRegistry
from amplify_health.remediation import RemediationDispatcher
from amplify_health.session import AnalysisSession


def _session(root, engine=None, terminal=None, history_limit=20):
    return AnalysisSession(
        root,
        engine or panels.optimization_engine(),
        RemediationDispatcher(root, terminal=terminal),
        history_limit=history_limit,
        probes=False,
    )


def test_each_analysis_bumps_generation(make_project, amplify_yml):
    session = _session(make_project({"amplify.yml": amplify_yml}))
    first = session.analyze()
    second = session.analyze()
    assert (first.generation, second.generation) == (1, 2)
    assert session.latest is second


def test_history_is_bounded(make_project):
    session = _session(make_project({}), history_limit=2)
    for _ in range(3):
        session.analyze()
    assert [g for g, _ in session.history()] == [2, 3]


def test_file_fix_returns_fresh_report(make_project):
    yml = "version: 1\nfrontend:\n  phases:\n    build:\n      commands:\n        - npm run build\n"
    session = _session(make_project({"amplify.yml": yml}))
    before = session.analyze()
    assert before.finding("cache-amplify-yml").status is Status.FAIL

    result, after = session.apply("add_cache_section")
    assert result.changed
    assert after.generation == before.generation + 1
    assert after.finding("cache-amplify-yml").status is Status.PASS


def test_shell_fix_is_pending_without_report(make_project, fake_terminal):
    session = _session(make_project({}), terminal=fake_terminal)
    result, report = session.apply("npm_dedupe")
    assert result.pending
    assert report is None
    assert session.generation == 0
    assert fake_terminal.calls[0][0] == "npm dedupe"


def test_apply_refused_while_analysis_runs(make_project):
    started = threading.Event()
    release = threading.Event()

    def slow(snapshot):
        started.set()
        release.wait(5)
        return [Finding(id="build-slow", category="build", name="slow", status=Status.PASS, message="ok")]

    root = make_project({"amplify.yml": "version: 1\n"})
    session = _session(root, engine=Engine(CheckRegistry([Check("build-slow", "build", slow)])))
    worker = threading.Thread(target=session.analyze)
    worker.start()
    try:
        assert started.wait(5)
        with pytest.raises(RemediationError):
            session.apply("replace_tabs")
    finally:
        release.set()
        worker.join(5)
    assert not session.analyzing


def test_apply_refused_while_another_check_set_analyzes_same_root(make_project):
    started = threading.Event()
    release = threading.Event()

    def slow(snapshot):
        started.set()
        release.wait(5)
        return []

    root = make_project({"amplify.yml": "version: 1\nfrontend:\n\tphases: {}\n"})
    analyzing = _session(root, engine=Engine(CheckRegistry([Check("build-slow", "build", slow)])))
    predeploy = _session(root + "/", engine=panels.predeploy_engine())
    worker = threading.Thread(target=analyzing.analyze)
    worker.start()
    try:
        assert started.wait(5)
        assert predeploy.analyzing
        with pytest.raises(RemediationError):
            predeploy.apply("replace_tabs")
    finally:
        release.set()
        worker.join(5)
    with open(os.path.join(root, "amplify.yml")) as f:
        assert "\t" in f.read()


def test_missing_root_is_fatal_to_the_run(tmp_path):
    session = _session(str(tmp_path / "gone"))
    with pytest.raises(SnapshotError):
        session.analyze()
