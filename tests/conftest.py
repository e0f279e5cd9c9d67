"""Shared test fixtures for amplify_health tests."""

from __future__ import annotations

import json
import os
import tempfile
from typing import Callable, Dict, List, Tuple, Union

import pytest

from amplify_health.config import CompatibilityTable
from amplify_health.snapshot import ProjectSnapshot, read_snapshot

FileTree = Dict[str, Union[str, bytes, dict]]


def write_tree(root: str, files: FileTree) -> None:
    """Write files under root. dict values are dumped as JSON; a trailing "/" makes a directory."""
    for relative, content in files.items():
        path = os.path.join(root, relative)
        if relative.endswith("/"):
            os.makedirs(path, exist_ok=True)
            continue
        os.makedirs(os.path.dirname(path), exist_ok=True)
        if isinstance(content, dict):
            content = json.dumps(content, indent=2)
        mode = "wb" if isinstance(content, bytes) else "w"
        with open(path, mode) as f:
            f.write(content)


@pytest.fixture
def make_project(tmp_path) -> Callable[[FileTree], str]:
    """Build a project tree in a temp directory and return its root."""
    def _make(files: FileTree) -> str:
        root = tempfile.mkdtemp(prefix="project-", dir=str(tmp_path))
        write_tree(root, files)
        return root
    return _make


@pytest.fixture
def snapshot_of(make_project) -> Callable[[FileTree], ProjectSnapshot]:
    """Snapshot of a fresh project tree, without git/node subprocesses."""
    def _snap(files: FileTree) -> ProjectSnapshot:
        return read_snapshot(make_project(files), probes=False)
    return _snap


class FakeTerminal:
    """Records shell remediation commands instead of running them."""

    def __init__(self):
        self.calls: List[Tuple[str, str]] = []

    def __call__(self, command: str, cwd: str) -> None:
        self.calls.append((command, cwd))


@pytest.fixture
def fake_terminal() -> FakeTerminal:
    return FakeTerminal()


@pytest.fixture
def table() -> CompatibilityTable:
    return CompatibilityTable(
        lts=["18", "20", "22"],
        current=["23", "24"],
        deprecated=["14", "16"],
        experimental=["25"],
        default="18",
        recommended="20",
    )


VALID_AMPLIFY_YML = """version: 1
frontend:
  phases:
    preBuild:
      commands:
        - nvm use 20
        - npm ci
    build:
      commands:
        - npm run build
  artifacts:
    baseDirectory: build
    files:
      - '**/*'
  cache:
    paths:
      - node_modules/**/*
"""


@pytest.fixture
def amplify_yml() -> str:
    return VALID_AMPLIFY_YML
