"""Read-only, point-in-time view of a project directory.

`read_snapshot` is the only place the engine touches the project's files and
runs `git`/`node`. A facet that cannot be read is recorded as None; only a
missing root aborts the read.
"""
from __future__ import annotations

import json
import logging
import os
import subprocess
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from amplify_health import config
from amplify_health.errors import SnapshotError

logger = logging.getLogger(__name__)

LOCK_FILES = ("package-lock.json", "pnpm-lock.yaml", "yarn.lock")
ENV_FILES = (".env", ".env.local", ".env.development", ".env.production")
ESLINT_CONFIGS = (
    ".eslintrc", ".eslintrc.js", ".eslintrc.json", ".eslintrc.yml",
    "eslint.config.js", "eslint.config.mjs",
)
NEXT_CONFIGS = ("next.config.mjs", "next.config.js")
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp")
LARGE_IMAGE_BYTES = 500 * 1024
MAX_WALK_DEPTH = 3


@dataclass(frozen=True)
class ProbeResult:
    ok: bool
    stdout: str = ""
    stderr: str = ""
    error: Optional[str] = None  # set when the process could not run or timed out
    returncode: Optional[int] = None


def run_probe(args, cwd: str, timeout: float = None) -> ProbeResult:
    """Run an external tool with a timeout. Never raises."""
    timeout = timeout or config.PROBE_TIMEOUT
    try:
        proc = subprocess.run(
            args, cwd=cwd, capture_output=True, text=True, timeout=timeout,
        )
    except FileNotFoundError:
        return ProbeResult(ok=False, error=f"{args[0]} not found")
    except subprocess.TimeoutExpired:
        return ProbeResult(ok=False, error=f"{' '.join(args)} timed out after {timeout:g}s")
    except OSError as e:
        return ProbeResult(ok=False, error=f"{args[0]} could not run: {e}")
    return ProbeResult(
        ok=proc.returncode == 0,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
        returncode=proc.returncode,
    )


@dataclass(frozen=True)
class GitStatus:
    is_repo: bool = False
    dirty: Tuple[str, ...] = ()
    branch: Optional[str] = None
    local_commit: Optional[str] = None
    remote_commit: Optional[str] = None  # None when no upstream is tracked
    error: Optional[str] = None


@dataclass(frozen=True)
class ProjectSnapshot:
    root: str
    manifest: Optional[Dict[str, Any]] = None
    manifest_error: Optional[str] = None
    lock_files: Tuple[str, ...] = ()
    package_lock_bytes: Optional[int] = None
    amplify_yml: Optional[str] = None
    nvmrc: Optional[str] = None
    node_version_file: Optional[str] = None
    dockerfile: Optional[str] = None
    tsconfig: Optional[str] = None
    eslint_configs: Tuple[str, ...] = ()
    next_config: Optional[str] = None
    gitignore: Optional[str] = None
    env_files: Tuple[str, ...] = ()
    env_example: Optional[str] = None
    has_node_modules: bool = False
    has_public_dir: bool = False
    large_images: Tuple[str, ...] = ()
    local_node_version: Optional[str] = None
    git: GitStatus = field(default_factory=GitStatus)

    @property
    def has_manifest(self) -> bool:
        return self.manifest is not None

    @property
    def scripts(self) -> Dict[str, str]:
        scripts = (self.manifest or {}).get("scripts") or {}
        return scripts if isinstance(scripts, dict) else {}

    @property
    def dependencies(self) -> Dict[str, str]:
        deps = (self.manifest or {}).get("dependencies") or {}
        return deps if isinstance(deps, dict) else {}

    @property
    def dev_dependencies(self) -> Dict[str, str]:
        deps = (self.manifest or {}).get("devDependencies") or {}
        return deps if isinstance(deps, dict) else {}

    @property
    def all_dependencies(self) -> Dict[str, str]:
        merged = dict(self.dependencies)
        merged.update(self.dev_dependencies)
        return merged

    @property
    def engines_node(self) -> Optional[str]:
        engines = (self.manifest or {}).get("engines") or {}
        node = engines.get("node") if isinstance(engines, dict) else None
        return str(node) if node else None

    @property
    def is_nextjs(self) -> bool:
        return self.next_config is not None

    def path(self, relative: str) -> str:
        return os.path.join(self.root, relative)


def _read_text(path: str) -> Optional[str]:
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return f.read()
    except OSError:
        return None


def _read_manifest(root: str) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    text = _read_text(os.path.join(root, "package.json"))
    if text is None:
        return None, None
    try:
        data = json.loads(text)
    except ValueError as e:
        return None, f"package.json is not valid JSON: {e}"
    if not isinstance(data, dict):
        return None, "package.json is not a JSON object"
    return data, None


def _find_large_images(public_dir: str) -> Tuple[str, ...]:
    found = []

    def walk(current: str, depth: int) -> None:
        if depth > MAX_WALK_DEPTH:
            return
        try:
            with os.scandir(current) as it:
                for entry in it:
                    if entry.is_dir(follow_symlinks=False):
                        walk(entry.path, depth + 1)
                    elif entry.name.lower().endswith(IMAGE_EXTENSIONS):
                        try:
                            if entry.stat().st_size > LARGE_IMAGE_BYTES:
                                found.append(os.path.relpath(entry.path, public_dir))
                        except OSError:
                            continue
        except OSError:
            pass  # unreadable directory

    if os.path.isdir(public_dir):
        walk(public_dir, 0)
    return tuple(sorted(found))


def read_local_node_version(cwd: str, timeout: float = None) -> Optional[str]:
    result = run_probe(["node", "--version"], cwd, timeout)
    if not result.ok:
        return None
    return result.stdout.strip().lstrip("v") or None


def read_git_status(root: str, timeout: float = None) -> GitStatus:
    status = run_probe(["git", "status", "--porcelain"], root, timeout)
    if not status.ok:
        return GitStatus(is_repo=False, error=status.error or status.stderr.strip() or "git status failed")
    dirty = tuple(line for line in status.stdout.splitlines() if line.strip())
    branch = run_probe(["git", "rev-parse", "--abbrev-ref", "HEAD"], root, timeout)
    local = run_probe(["git", "rev-parse", "HEAD"], root, timeout)
    remote = run_probe(["git", "rev-parse", "@{u}"], root, timeout)
    return GitStatus(
        is_repo=True,
        dirty=dirty,
        branch=branch.stdout.strip() if branch.ok else None,
        local_commit=local.stdout.strip() if local.ok else None,
        remote_commit=remote.stdout.strip() if remote.ok else None,
    )


def read_snapshot(root: str, probe_timeout: float = None, probes: bool = True) -> ProjectSnapshot:
    """Materialize a ProjectSnapshot for `root`.

    Args:
        root: Project directory.
        probe_timeout: Seconds allowed for each `git`/`node` subprocess.
        probes: When False, skip subprocesses (git status and local Node stay empty).

    Raises:
        SnapshotError: root does not exist or is not a directory.
    """
    root = os.path.abspath(root)
    if not os.path.isdir(root):
        raise SnapshotError(f"Project root does not exist or is not a directory: {root}")

    def exists(name: str) -> bool:
        return os.path.exists(os.path.join(root, name))

    manifest, manifest_error = _read_manifest(root)
    lock_files = tuple(name for name in LOCK_FILES if exists(name))
    try:
        package_lock_bytes = os.path.getsize(os.path.join(root, "package-lock.json"))
    except OSError:
        package_lock_bytes = None

    next_config = None
    for name in NEXT_CONFIGS:
        next_config = _read_text(os.path.join(root, name))
        if next_config is not None:
            break

    nvmrc = _read_text(os.path.join(root, ".nvmrc"))
    node_version_file = _read_text(os.path.join(root, ".node-version"))

    snapshot = ProjectSnapshot(
        root=root,
        manifest=manifest,
        manifest_error=manifest_error,
        lock_files=lock_files,
        package_lock_bytes=package_lock_bytes,
        amplify_yml=_read_text(os.path.join(root, "amplify.yml")),
        nvmrc=nvmrc.strip() if nvmrc is not None else None,
        node_version_file=node_version_file.strip() if node_version_file is not None else None,
        dockerfile=_read_text(os.path.join(root, "Dockerfile")),
        tsconfig=_read_text(os.path.join(root, "tsconfig.json")),
        eslint_configs=tuple(name for name in ESLINT_CONFIGS if exists(name)),
        next_config=next_config,
        gitignore=_read_text(os.path.join(root, ".gitignore")),
        env_files=tuple(name for name in ENV_FILES if exists(name)),
        env_example=_read_text(os.path.join(root, ".env.example")),
        has_node_modules=os.path.isdir(os.path.join(root, "node_modules")),
        has_public_dir=os.path.isdir(os.path.join(root, "public")),
        large_images=_find_large_images(os.path.join(root, "public")),
        local_node_version=read_local_node_version(root, probe_timeout) if probes else None,
        git=read_git_status(root, probe_timeout) if probes else GitStatus(error="probes disabled"),
    )
    logger.debug("snapshot of %s: manifest=%s lock_files=%s", root, manifest is not None, lock_files)
    return snapshot
