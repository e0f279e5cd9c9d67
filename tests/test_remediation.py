"""Tests for remediation actions."""

from __future__ import annotations

import os

import pytest
import yaml

from amplify_health.checks.build import parse_tsconfig
from amplify_health.errors import RemediationError
from amplify_health.remediation import ActionId, ActionKind, RemediationDispatcher, amplify_yml_template


def _read(root, name):
    with open(os.path.join(root, name)) as f:
        return f.read()


NO_CACHE_YML = """version: 1
frontend:
  phases:
    preBuild:
      commands:
        - npm install
    build:
      commands:
        - npm run build
"""

# (action, params, starting files, file to compare)
IDEMPOTENT_CASES = [
    ("create_nvmrc", {"version": "20"}, {}, ".nvmrc"),
    ("create_amplify_yml", {"base_directory": ".next"}, {}, "amplify.yml"),
    ("add_nvm_to_amplify_yml", {}, {"amplify.yml": NO_CACHE_YML}, "amplify.yml"),
    ("set_amplify_node_version", {"version": "22"}, {"amplify.yml": NO_CACHE_YML}, "amplify.yml"),
    ("add_cache_section", {}, {"amplify.yml": NO_CACHE_YML}, "amplify.yml"),
    ("add_next_cache", {}, {"amplify.yml": NO_CACHE_YML}, "amplify.yml"),
    ("replace_npm_install_with_ci", {}, {"amplify.yml": NO_CACHE_YML}, "amplify.yml"),
    ("enable_skip_lib_check", {}, {"tsconfig.json": '{\n  "compilerOptions": {\n    "strict": true\n  }\n}\n'},
     "tsconfig.json"),
    ("replace_tabs", {}, {"amplify.yml": "version: 1\nfrontend:\n\tphases: {}\n"}, "amplify.yml"),
    ("add_version_header", {}, {"amplify.yml": "frontend:\n  phases: {}\n"}, "amplify.yml"),
    ("ignore_env_files", {}, {".gitignore": "node_modules"}, ".gitignore"),
]


@pytest.mark.parametrize("action,params,files,target", IDEMPOTENT_CASES, ids=[c[0] for c in IDEMPOTENT_CASES])
def test_file_actions_are_idempotent(make_project, fake_terminal, action, params, files, target):
    root = make_project(files)
    dispatcher = RemediationDispatcher(root, terminal=fake_terminal)
    first = dispatcher.apply(action, params)
    once = _read(root, target)
    second = dispatcher.apply(action, params)
    assert first.changed
    assert not second.changed
    assert _read(root, target) == once
    assert fake_terminal.calls == []


def test_add_cache_section_nests_under_frontend(make_project):
    root = make_project({"amplify.yml": NO_CACHE_YML})
    RemediationDispatcher(root).apply("add_cache_section")
    data = yaml.safe_load(_read(root, "amplify.yml"))
    assert data["frontend"]["cache"]["paths"] == ["node_modules/**/*"]


def test_add_cache_section_follows_four_space_indent(make_project):
    yml = "version: 1\nfrontend:\n    phases:\n        build:\n            commands:\n                - npm run build\n"
    root = make_project({"amplify.yml": yml})
    RemediationDispatcher(root).apply("add_cache_section")
    content = _read(root, "amplify.yml")
    assert "\n    cache:\n        paths:\n            - node_modules/**/*\n" in content
    data = yaml.safe_load(content)
    assert data["frontend"]["cache"]["paths"] == ["node_modules/**/*"]
    assert data["frontend"]["phases"]["build"]["commands"] == ["npm run build"]


def test_add_next_cache_extends_existing_paths(make_project):
    root = make_project({"amplify.yml": amplify_yml_template("20")})
    RemediationDispatcher(root).apply("add_next_cache")
    data = yaml.safe_load(_read(root, "amplify.yml"))
    assert data["frontend"]["cache"]["paths"] == [".next/cache/**/*", "node_modules/**/*"]


def test_set_node_version_replaces_pin(make_project):
    root = make_project({"amplify.yml": amplify_yml_template("16")})
    RemediationDispatcher(root).apply("set_amplify_node_version", {"version": "20"})
    content = _read(root, "amplify.yml")
    assert "nvm use 20" in content and "nvm use 16" not in content


def test_set_node_version_creates_missing_file(make_project):
    root = make_project({})
    result = RemediationDispatcher(root).apply("set_amplify_node_version", {"version": "22"})
    assert result.kind is ActionKind.REGEX_REPLACE
    assert "nvm use 22" in _read(root, "amplify.yml")


def test_add_nvm_inserts_under_prebuild(make_project):
    root = make_project({"amplify.yml": NO_CACHE_YML})
    RemediationDispatcher(root).apply("add_nvm_to_amplify_yml")
    commands = yaml.safe_load(_read(root, "amplify.yml"))["frontend"]["phases"]["preBuild"]["commands"]
    assert commands == ["nvm use", "npm install"]


def test_npm_install_flags_left_alone(make_project):
    root = make_project({"amplify.yml": "commands:\n  - npm install\n  - npm install --legacy-peer-deps\n"})
    RemediationDispatcher(root).apply("replace_npm_install_with_ci")
    assert _read(root, "amplify.yml") == "commands:\n  - npm ci\n  - npm install --legacy-peer-deps\n"


def test_skip_lib_check_result_still_parses(make_project):
    root = make_project({"tsconfig.json": '{"compilerOptions": {"skipLibCheck": false}}'})
    RemediationDispatcher(root).apply("enable_skip_lib_check")
    assert parse_tsconfig(_read(root, "tsconfig.json"))["compilerOptions"]["skipLibCheck"] is True


def test_create_amplify_yml_never_overwrites(make_project):
    root = make_project({"amplify.yml": "version: 1\n"})
    result = RemediationDispatcher(root).apply("create_amplify_yml")
    assert not result.changed
    assert _read(root, "amplify.yml") == "version: 1\n"


def test_create_amplify_yml_auto_defers_to_nvmrc(make_project):
    root = make_project({})
    RemediationDispatcher(root).apply("create_amplify_yml", {"node_version": "auto"})
    commands = yaml.safe_load(_read(root, "amplify.yml"))["frontend"]["phases"]["preBuild"]["commands"]
    assert commands[0] == "nvm use"


def test_missing_target_is_an_error(make_project):
    root = make_project({})
    with pytest.raises(RemediationError) as exc:
        RemediationDispatcher(root).apply("add_cache_section")
    assert exc.value.action_id == "add_cache_section"


def test_unknown_action(make_project):
    with pytest.raises(RemediationError):
        RemediationDispatcher(make_project({})).apply("format_disk")


def test_shell_actions_are_handed_to_terminal(make_project, fake_terminal):
    root = make_project({})
    dispatcher = RemediationDispatcher(root, terminal=fake_terminal)
    result = dispatcher.apply("remove_lock_files", {"keep": "package-lock.json", "files": ["pnpm-lock.yaml"]})
    assert result.pending and not result.changed
    assert result.kind is ActionKind.RUN_SHELL
    assert fake_terminal.calls == [("rm -f pnpm-lock.yaml", os.path.realpath(root))]

    dispatcher.apply("install_dependencies", {"manager": "yarn"})
    dispatcher.apply("git_commit_all")
    assert [c for c, _ in fake_terminal.calls[1:]] == ["yarn", "git add -A && git commit -m 'Pre-deploy commit'"]


def test_remove_lock_files_refuses_other_files(make_project, fake_terminal):
    dispatcher = RemediationDispatcher(make_project({}), terminal=fake_terminal)
    with pytest.raises(RemediationError):
        dispatcher.apply("remove_lock_files", {"files": ["package.json"]})
    assert fake_terminal.calls == []


def test_terminal_failure_is_a_remediation_error(make_project):
    def broken(command, cwd):
        raise OSError("no shell")

    with pytest.raises(RemediationError):
        RemediationDispatcher(make_project({}), terminal=broken).apply("git_push")


def test_symlinked_target_outside_root_is_refused(make_project, tmp_path):
    outside = tmp_path / "outside.yml"
    outside.write_text("version: 1\n")
    root = make_project({})
    os.symlink(str(outside), os.path.join(root, "amplify.yml"))
    with pytest.raises(RemediationError):
        RemediationDispatcher(root).apply("replace_tabs")
    assert outside.read_text() == "version: 1\n"


def test_catalogue_covers_every_action():
    entries = RemediationDispatcher.catalogue()
    assert {e["actionId"] for e in entries} == {a.value for a in ActionId}
    assert RemediationDispatcher.kind_of("git_push") is ActionKind.RUN_SHELL
    assert RemediationDispatcher.kind_of("add_version_header") is ActionKind.REGEX_REPLACE
    assert RemediationDispatcher.kind_of("nope") is None
