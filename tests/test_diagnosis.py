"""Tests for the amplify-monitor CLI wrapper."""

from __future__ import annotations

import json
import subprocess

import pytest

from amplify_health import diagnosis
from amplify_health.diagnosis import AmplifyMonitorCli
from amplify_health.errors import CliError


class FakeRun:
    """Stands in for subprocess.run and records argv."""

    def __init__(self, stdout="[]", stderr="", returncode=0, raises=None):
        self.stdout, self.stderr, self.returncode, self.raises = stdout, stderr, returncode, raises
        self.argv = None

    def __call__(self, argv, **kwargs):
        self.argv = argv
        if self.raises:
            raise self.raises
        return subprocess.CompletedProcess(argv, self.returncode, self.stdout, self.stderr)


@pytest.fixture
def fake_run(monkeypatch):
    def _install(**kwargs):
        fake = FakeRun(**kwargs)
        monkeypatch.setattr(diagnosis.subprocess, "run", fake)
        return fake
    return _install


def test_arguments_and_json_output(fake_run):
    fake = fake_run(stdout=json.dumps([{"appId": "d1", "name": "web"}]))
    apps = AmplifyMonitorCli("amplify-monitor").list_apps(region="eu-west-1", profile="dev")
    assert apps == [{"appId": "d1", "name": "web"}]
    assert fake.argv == ["amplify-monitor", "--format", "json", "--profile", "dev", "--region", "eu-west-1", "apps"]


def test_all_regions_only_without_region(fake_run):
    fake = fake_run()
    AmplifyMonitorCli("cli").list_apps()
    assert fake.argv[-2:] == ["apps", "--all-regions"]


def test_diagnose_with_job_id(fake_run):
    fake = fake_run(stdout='{"issues": []}')
    AmplifyMonitorCli("cli").diagnose("d1", "main", job_id="7")
    assert fake.argv[3:] == ["diagnose", "--app-id", "d1", "--branch", "main", "--job-id", "7"]


def test_missing_binary(fake_run):
    fake_run(raises=FileNotFoundError())
    with pytest.raises(CliError, match="CLI not found"):
        AmplifyMonitorCli("/nowhere/amplify-monitor").list_branches("d1")


def test_nonzero_exit_surfaces_stderr(fake_run):
    fake_run(returncode=1, stderr="AccessDenied: not authorized\n")
    with pytest.raises(CliError, match="AccessDenied"):
        AmplifyMonitorCli("cli").list_jobs("d1", "main")


def test_invalid_json(fake_run):
    fake_run(stdout="not json")
    with pytest.raises(CliError):
        AmplifyMonitorCli("cli").get_env_variables("d1", "main")


def test_timeout(fake_run):
    fake_run(raises=subprocess.TimeoutExpired(cmd="cli", timeout=1))
    with pytest.raises(CliError, match="timed out"):
        AmplifyMonitorCli("cli", timeout=1).start_build("d1", "main")


def test_latest_failed_swallows_cli_errors(fake_run):
    fake_run(returncode=1, stderr="no failed jobs")
    assert AmplifyMonitorCli("cli").get_latest_failed("d1", "main") is None
