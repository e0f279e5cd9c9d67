"""Remediation actions referenced by findings, dispatched by action id.

Every action belongs to one operation kind. File actions are pure text
transforms `(current_content, params) -> new_content` and are idempotent:
each checks for its marker before inserting. Shell actions are handed to a
terminal callable and not awaited; the caller re-runs analysis when the
command has finished.
"""
from __future__ import annotations

import logging
import os
import re
import shlex
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import yaml

from amplify_health.errors import RemediationError
from amplify_health.snapshot import LOCK_FILES

logger = logging.getLogger(__name__)

DEFAULT_NODE_VERSION = "20"


class ActionKind(str, Enum):
    WRITE_FILE = "write-file"
    APPEND_TO_FILE = "append-to-file"
    REGEX_REPLACE = "regex-replace"
    RUN_SHELL = "run-shell-async"


class ActionId(str, Enum):
    CREATE_NVMRC = "create_nvmrc"
    CREATE_AMPLIFY_YML = "create_amplify_yml"
    ADD_NVM_TO_AMPLIFY_YML = "add_nvm_to_amplify_yml"
    SET_AMPLIFY_NODE_VERSION = "set_amplify_node_version"
    ADD_CACHE_SECTION = "add_cache_section"
    ADD_NODE_MODULES_CACHE = "add_node_modules_cache"
    ADD_NEXT_CACHE = "add_next_cache"
    REPLACE_NPM_INSTALL_WITH_CI = "replace_npm_install_with_ci"
    ENABLE_SKIP_LIB_CHECK = "enable_skip_lib_check"
    REPLACE_TABS = "replace_tabs"
    ADD_VERSION_HEADER = "add_version_header"
    IGNORE_ENV_FILES = "ignore_env_files"
    INSTALL_PACKAGE_LOCK_ONLY = "install_package_lock_only"
    INSTALL_DEPENDENCIES = "install_dependencies"
    REMOVE_LOCK_FILES = "remove_lock_files"
    GIT_COMMIT_ALL = "git_commit_all"
    GIT_PUSH = "git_push"
    NPM_DEDUPE = "npm_dedupe"
    RUN_LINT = "run_lint"


@dataclass(frozen=True)
class RemediationResult:
    action_id: str
    kind: ActionKind
    changed: bool  # a file was written
    pending: bool  # a shell command was started and not awaited
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actionId": self.action_id, "kind": self.kind.value, "changed": self.changed,
            "pending": self.pending, "message": self.message,
        }


Terminal = Callable[[str, str], None]


def spawn_detached(command: str, cwd: str) -> None:
    """Start `command` in its own session and return immediately."""
    subprocess.Popen(
        command, shell=True, cwd=cwd,
        stdin=subprocess.DEVNULL, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
        start_new_session=True,
    )


# --- amplify.yml text transforms ---------------------------------------------

_NVM_ANY_RE = re.compile(r"nvm\s+(use|install)\b")
_NVM_PINNED_RE = re.compile(r"nvm\s+(?:use|install)\s+\d+")
_PREBUILD_COMMANDS_RE = re.compile(r"(preBuild:[ \t]*\n([ \t]*)commands:[ \t]*\n)")
_PHASES_RE = re.compile(r"(^([ \t]*)phases:[ \t]*\n)", re.MULTILINE)
_CACHE_PATHS_RE = re.compile(r"(cache:[ \t]*\n([ \t]*)paths:[ \t]*\n)")
_NPM_INSTALL_RE = re.compile(r"npm install(?![ \t]+[-\w])")
_SKIP_LIB_TRUE_RE = re.compile(r'"skipLibCheck"\s*:\s*true')
_SKIP_LIB_FALSE_RE = re.compile(r'"skipLibCheck"\s*:\s*false')
_COMPILER_OPTIONS_RE = re.compile(r'"compilerOptions"\s*:\s*\{')


def amplify_yml_template(node_version: str, base_directory: str = "build") -> str:
    """Build spec written when a project has none. node_version "auto" defers to .nvmrc."""
    nvm_command = "nvm use" if node_version == "auto" else f"nvm use {node_version}"
    cache_paths = "      - node_modules/**/*\n"
    if base_directory == ".next":
        cache_paths += "      - .next/cache/**/*\n"
    return (
        "version: 1\n"
        "frontend:\n"
        "  phases:\n"
        "    preBuild:\n"
        "      commands:\n"
        f"        - {nvm_command}\n"
        "        - npm ci\n"
        "    build:\n"
        "      commands:\n"
        "        - npm run build\n"
        "  artifacts:\n"
        f"    baseDirectory: {base_directory}\n"
        "    files:\n"
        "      - '**/*'\n"
        "  cache:\n"
        "    paths:\n"
        f"{cache_paths}"
    )


def _insert_prebuild_command(content: str, command: str, action: str) -> str:
    match = _PREBUILD_COMMANDS_RE.search(content)
    if match:
        indent = match.group(2) + "  "
        return content[:match.end()] + f"{indent}- {command}\n" + content[match.end():]
    match = _PHASES_RE.search(content)
    if match:
        indent = match.group(2) + "  "
        block = f"{indent}preBuild:\n{indent}  commands:\n{indent}    - {command}\n"
        return content[:match.end()] + block + content[match.end():]
    raise RemediationError(action, "amplify.yml has no phases section to add a preBuild command to")


def _require(current: Optional[str], action: str, target: str) -> str:
    if current is None:
        raise RemediationError(action, f"{target} does not exist")
    return current


def _version_param(params: Dict[str, Any], key: str) -> str:
    version = str(params.get(key) or params.get("node_version") or "").strip()
    if not version:
        raise RemediationError("version", f"missing '{key}' parameter")
    return version


def create_nvmrc(current: Optional[str], params: Dict[str, Any]) -> str:
    return _version_param(params, "version") + "\n"


def create_amplify_yml(current: Optional[str], params: Dict[str, Any]) -> str:
    if current is not None:
        return current
    return amplify_yml_template(
        _version_param(params, "node_version"),
        str(params.get("base_directory") or "build"),
    )


def add_nvm_to_amplify_yml(current: Optional[str], params: Dict[str, Any]) -> str:
    content = _require(current, ActionId.ADD_NVM_TO_AMPLIFY_YML.value, "amplify.yml")
    if _NVM_ANY_RE.search(content):
        return content
    return _insert_prebuild_command(content, "nvm use", ActionId.ADD_NVM_TO_AMPLIFY_YML.value)


def set_amplify_node_version(current: Optional[str], params: Dict[str, Any]) -> str:
    version = _version_param(params, "version")
    if current is None:
        return amplify_yml_template(version, str(params.get("base_directory") or "build"))
    if _NVM_PINNED_RE.search(current):
        return _NVM_PINNED_RE.sub(f"nvm use {version}", current, count=1)
    return _insert_prebuild_command(current, f"nvm use {version}", ActionId.SET_AMPLIFY_NODE_VERSION.value)


def _child_indent(content: str, key: str) -> str:
    """Indent of the first child under a top-level `key:`, two spaces if there is none."""
    lines = content.splitlines()
    for i, line in enumerate(lines):
        if line.rstrip() != f"{key}:":
            continue
        for child in lines[i + 1:]:
            stripped = child.strip()
            if not stripped or stripped.startswith("#"):
                continue
            width = len(child) - len(child.lstrip(" "))
            return " " * width if width else "  "
        break
    return "  "


def _append_cache_block(content: str, paths: List[str]) -> str:
    """Append a cache block under `frontend:` when it is the last top-level key, else at top level."""
    try:
        parsed = yaml.safe_load(content)
    except yaml.YAMLError:
        parsed = None
    nested = isinstance(parsed, dict) and parsed and list(parsed)[-1] == "frontend"
    step = _child_indent(content, "frontend")
    indent = step if nested else ""
    block = f"{indent}cache:\n{indent}{step}paths:\n" + "".join(f"{indent}{step}{step}- {p}\n" for p in paths)
    return content.rstrip("\n") + "\n" + block


def add_cache_section(current: Optional[str], params: Dict[str, Any]) -> str:
    content = _require(current, ActionId.ADD_CACHE_SECTION.value, "amplify.yml")
    if "cache:" in content:
        return content
    return _append_cache_block(content, ["node_modules/**/*"])


def _insert_cache_path(content: str, path: str) -> Optional[str]:
    match = _CACHE_PATHS_RE.search(content)
    if not match:
        return None
    indent = match.group(2) + "  "
    return content[:match.end()] + f"{indent}- {path}\n" + content[match.end():]


def add_node_modules_cache(current: Optional[str], params: Dict[str, Any]) -> str:
    action = ActionId.ADD_NODE_MODULES_CACHE.value
    content = _require(current, action, "amplify.yml")
    if "node_modules" in content:
        return content
    updated = _insert_cache_path(content, "node_modules/**/*")
    if updated is None:
        raise RemediationError(action, "amplify.yml has no cache paths section")
    return updated


def add_next_cache(current: Optional[str], params: Dict[str, Any]) -> str:
    action = ActionId.ADD_NEXT_CACHE.value
    content = _require(current, action, "amplify.yml")
    if ".next/cache" in content:
        return content
    updated = _insert_cache_path(content, ".next/cache/**/*")
    if updated is not None:
        return updated
    if "cache:" in content:
        raise RemediationError(action, "amplify.yml has a cache section without paths")
    return _append_cache_block(content, ["node_modules/**/*", ".next/cache/**/*"])


def replace_npm_install_with_ci(current: Optional[str], params: Dict[str, Any]) -> str:
    content = _require(current, ActionId.REPLACE_NPM_INSTALL_WITH_CI.value, "amplify.yml")
    return _NPM_INSTALL_RE.sub("npm ci", content)


def enable_skip_lib_check(current: Optional[str], params: Dict[str, Any]) -> str:
    action = ActionId.ENABLE_SKIP_LIB_CHECK.value
    content = _require(current, action, "tsconfig.json")
    if _SKIP_LIB_TRUE_RE.search(content):
        return content
    if _SKIP_LIB_FALSE_RE.search(content):
        return _SKIP_LIB_FALSE_RE.sub('"skipLibCheck": true', content, count=1)
    match = _COMPILER_OPTIONS_RE.search(content)
    if not match:
        raise RemediationError(action, "tsconfig.json has no compilerOptions")
    return content[:match.end()] + '\n    "skipLibCheck": true,' + content[match.end():]


def replace_tabs(current: Optional[str], params: Dict[str, Any]) -> str:
    return _require(current, ActionId.REPLACE_TABS.value, "amplify.yml").replace("\t", "  ")


def add_version_header(current: Optional[str], params: Dict[str, Any]) -> str:
    content = _require(current, ActionId.ADD_VERSION_HEADER.value, "amplify.yml")
    if "version:" in content:
        return content
    return "version: 1\n" + content


def ignore_env_files(current: Optional[str], params: Dict[str, Any]) -> str:
    content = current or ""
    if any(line.strip().startswith(".env") for line in content.splitlines()):
        return content
    if content and not content.endswith("\n"):
        content += "\n"
    return content + "\n# local env files\n.env\n.env.*\n!.env.example\n"


FileTransform = Callable[[Optional[str], Dict[str, Any]], str]

# action -> (kind, file relative to the project root, transform)
FILE_ACTIONS: Dict[ActionId, tuple] = {
    ActionId.CREATE_NVMRC: (ActionKind.WRITE_FILE, ".nvmrc", create_nvmrc),
    ActionId.CREATE_AMPLIFY_YML: (ActionKind.WRITE_FILE, "amplify.yml", create_amplify_yml),
    ActionId.ADD_NVM_TO_AMPLIFY_YML: (ActionKind.REGEX_REPLACE, "amplify.yml", add_nvm_to_amplify_yml),
    ActionId.SET_AMPLIFY_NODE_VERSION: (ActionKind.REGEX_REPLACE, "amplify.yml", set_amplify_node_version),
    ActionId.ADD_CACHE_SECTION: (ActionKind.APPEND_TO_FILE, "amplify.yml", add_cache_section),
    ActionId.ADD_NODE_MODULES_CACHE: (ActionKind.REGEX_REPLACE, "amplify.yml", add_node_modules_cache),
    ActionId.ADD_NEXT_CACHE: (ActionKind.REGEX_REPLACE, "amplify.yml", add_next_cache),
    ActionId.REPLACE_NPM_INSTALL_WITH_CI: (ActionKind.REGEX_REPLACE, "amplify.yml", replace_npm_install_with_ci),
    ActionId.ENABLE_SKIP_LIB_CHECK: (ActionKind.REGEX_REPLACE, "tsconfig.json", enable_skip_lib_check),
    ActionId.REPLACE_TABS: (ActionKind.REGEX_REPLACE, "amplify.yml", replace_tabs),
    ActionId.ADD_VERSION_HEADER: (ActionKind.REGEX_REPLACE, "amplify.yml", add_version_header),
    ActionId.IGNORE_ENV_FILES: (ActionKind.APPEND_TO_FILE, ".gitignore", ignore_env_files),
}

_INSTALL_COMMANDS = {"npm": "npm ci", "pnpm": "pnpm install", "yarn": "yarn"}


def shell_command(action: ActionId, params: Dict[str, Any]) -> str:
    """The command line a shell action runs in the project root."""
    if action is ActionId.INSTALL_PACKAGE_LOCK_ONLY:
        return "npm install --package-lock-only"
    if action is ActionId.INSTALL_DEPENDENCIES:
        manager = params.get("manager", "npm")
        if manager not in _INSTALL_COMMANDS:
            raise RemediationError(action.value, f"unknown package manager {manager!r}")
        return _INSTALL_COMMANDS[manager]
    if action is ActionId.REMOVE_LOCK_FILES:
        files = params.get("files") or []
        if not files or any(f not in LOCK_FILES for f in files):
            raise RemediationError(action.value, f"files must be a non-empty subset of {', '.join(LOCK_FILES)}")
        return "rm -f " + " ".join(shlex.quote(f) for f in files)
    if action is ActionId.GIT_COMMIT_ALL:
        message = params.get("message") or "Pre-deploy commit"
        return f"git add -A && git commit -m {shlex.quote(message)}"
    if action is ActionId.GIT_PUSH:
        return "git push"
    if action is ActionId.NPM_DEDUPE:
        return "npm dedupe"
    if action is ActionId.RUN_LINT:
        return "npm run lint"
    raise RemediationError(action.value, "not a shell action")


class RemediationDispatcher:
    """Apply remediation actions inside one project root."""

    def __init__(self, root: str, terminal: Terminal = None, node_version: str = DEFAULT_NODE_VERSION):
        self.root = os.path.realpath(root)
        self.terminal = terminal or spawn_detached
        self.node_version = node_version

    def _target(self, action: str, relative: str) -> str:
        path = os.path.realpath(os.path.join(self.root, relative))
        if os.path.commonpath([self.root, path]) != self.root:
            raise RemediationError(action, f"{relative} resolves outside the project root")
        return path

    def _apply_file(self, action: ActionId, params: Dict[str, Any]) -> RemediationResult:
        kind, relative, transform = FILE_ACTIONS[action]
        path = self._target(action.value, relative)
        try:
            with open(path, "r", encoding="utf-8") as f:
                current = f.read()
        except FileNotFoundError:
            current = None
        except OSError as e:
            raise RemediationError(action.value, f"cannot read {relative}: {e}") from e

        merged = {"node_version": self.node_version}
        merged.update(params)
        try:
            updated = transform(current, merged)
        except RemediationError as e:
            if e.action_id == action.value:
                raise
            raise RemediationError(action.value, e.message) from e

        if updated == current:
            return RemediationResult(action.value, kind, changed=False, pending=False,
                                     message=f"{relative} already up to date")
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(updated)
        except OSError as e:
            raise RemediationError(action.value, f"cannot write {relative}: {e}") from e
        logger.info("remediation %s updated %s", action.value, path)
        return RemediationResult(action.value, kind, changed=True, pending=False,
                                 message=f"Updated {relative}")

    def _apply_shell(self, action: ActionId, params: Dict[str, Any]) -> RemediationResult:
        command = shell_command(action, params)
        try:
            self.terminal(command, self.root)
        except OSError as e:
            raise RemediationError(action.value, f"cannot start `{command}`: {e}") from e
        logger.info("remediation %s started `%s` in %s", action.value, command, self.root)
        return RemediationResult(
            action.value, ActionKind.RUN_SHELL, changed=False, pending=True,
            message=f"Started `{command}`. Re-run the analysis once it has finished.",
        )

    def apply(self, action_id: str, params: Dict[str, Any] = None) -> RemediationResult:
        """Run one action.

        Raises:
            RemediationError: unknown action, bad params, or a read/write/spawn failure.
        """
        try:
            action = ActionId(action_id)
        except ValueError:
            raise RemediationError(str(action_id), "unknown remediation action") from None
        params = dict(params or {})
        if action in FILE_ACTIONS:
            return self._apply_file(action, params)
        return self._apply_shell(action, params)

    @staticmethod
    def kind_of(action_id: str) -> Optional[ActionKind]:
        try:
            action = ActionId(action_id)
        except ValueError:
            return None
        return FILE_ACTIONS[action][0] if action in FILE_ACTIONS else ActionKind.RUN_SHELL

    @staticmethod
    def catalogue() -> List[Dict[str, str]]:
        entries = []
        for action in ActionId:
            if action in FILE_ACTIONS:
                kind, relative, _ = FILE_ACTIONS[action]
                entries.append({"actionId": action.value, "kind": kind.value, "target": relative})
            else:
                entries.append({"actionId": action.value, "kind": ActionKind.RUN_SHELL.value, "target": "shell"})
        return entries
