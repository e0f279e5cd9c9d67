"""Dependency checks: manifest, lock files, installs and version pins."""
from __future__ import annotations

import re
from typing import List, Optional

from amplify_health.models import Finding, Impact, RemediationRef, Status
from amplify_health.snapshot import ProjectSnapshot

CATEGORY = "dependencies"

NPM_LOCK = "package-lock.json"
PNPM_LOCK = "pnpm-lock.yaml"
YARN_LOCK = "yarn.lock"

HEAVY_DEV_DEPS = ("@storybook/react", "cypress", "playwright", "jest", "@testing-library/react")
LARGE_LOCK_BYTES = 5 * 1024 * 1024

_NVM_USE_RE = re.compile(r"nvm use (\d+)")
_DIGITS_RE = re.compile(r"(\d+)")


def check_package_json(snapshot: ProjectSnapshot) -> List[Finding]:
    if snapshot.manifest_error:
        return [Finding(
            id="deps-package-json", category=CATEGORY, name="package.json Invalid", status=Status.FAIL,
            blocking=True, message=snapshot.manifest_error, impact=Impact.HIGH,
        )]
    if not snapshot.has_manifest:
        return [Finding(
            id="deps-package-json", category=CATEGORY, name="package.json", status=Status.SKIP,
            message="No package.json found - not a Node.js project.", impact=Impact.LOW,
        )]
    return []


def lockfile_remediation(lock_files) -> Optional[RemediationRef]:
    """Tie-break for conflicting lock files: keep npm's lock when exactly two are present.

    Three lock files, or pnpm vs yarn without an npm lock, are left to the user.
    """
    present = list(lock_files)
    if len(present) != 2 or NPM_LOCK not in present:
        return None
    return RemediationRef(
        action_id="remove_lock_files",
        params={"keep": NPM_LOCK, "files": [f for f in present if f != NPM_LOCK]},
    )


def check_lockfile(snapshot: ProjectSnapshot) -> List[Finding]:
    if not snapshot.has_manifest:
        return []
    locks = snapshot.lock_files
    if not locks:
        return [Finding(
            id="deps-lockfile", category=CATEGORY, name="Lock File Missing", status=Status.FAIL, blocking=True,
            message="No lock file found. Dependencies may resolve differently in CI and builds are slower.",
            impact=Impact.HIGH, remediation=RemediationRef(action_id="install_package_lock_only"),
        )]
    if len(locks) > 1:
        return [Finding(
            id="deps-lockfile", category=CATEGORY, name="Multiple Lock Files", status=Status.FAIL, blocking=True,
            message=f"Found {', '.join(locks)}. This will cause build failures!",
            details=list(locks), impact=Impact.HIGH, remediation=lockfile_remediation(locks),
        )]
    return [Finding(
        id="deps-lockfile", category=CATEGORY, name="Lock File", status=Status.PASS,
        message=f"Single lock file present ({locks[0]}).", impact=Impact.HIGH,
    )]


def _package_manager(snapshot: ProjectSnapshot) -> str:
    if PNPM_LOCK in snapshot.lock_files:
        return "pnpm"
    if YARN_LOCK in snapshot.lock_files:
        return "yarn"
    return "npm"


def check_node_modules(snapshot: ProjectSnapshot) -> List[Finding]:
    if not snapshot.has_manifest or snapshot.has_node_modules:
        return []
    return [Finding(
        id="deps-node-modules", category=CATEGORY, name="Dependencies Not Installed", status=Status.WARN,
        message="node_modules not found locally. Run install to test the build locally first.",
        impact=Impact.LOW,
        remediation=RemediationRef(action_id="install_dependencies", params={"manager": _package_manager(snapshot)}),
    )]


def check_react_versions(snapshot: ProjectSnapshot) -> List[Finding]:
    deps = snapshot.all_dependencies
    if "react" not in deps or "react-dom" not in deps:
        return []
    react = re.sub(r"[\^~]", "", str(deps["react"]))
    react_dom = re.sub(r"[\^~]", "", str(deps["react-dom"]))
    if react == react_dom:
        return []
    return [Finding(
        id="deps-react-mismatch", category=CATEGORY, name="React Version Mismatch", status=Status.FAIL,
        blocking=True, message=f"react@{react} and react-dom@{react_dom} versions don't match!",
        impact=Impact.HIGH,
    )]


def check_engines_vs_ci(snapshot: ProjectSnapshot) -> List[Finding]:
    engine = snapshot.engines_node
    if not engine or not snapshot.amplify_yml:
        return []
    nvm = _NVM_USE_RE.search(snapshot.amplify_yml)
    engine_major = _DIGITS_RE.search(engine)
    if not nvm or not engine_major or engine_major.group(1) == nvm.group(1):
        return []
    return [Finding(
        id="deps-node-engine", category=CATEGORY, name="Node Version Mismatch", status=Status.WARN,
        message=f"package.json engines.node={engine}, but amplify.yml uses Node {nvm.group(1)}.",
        impact=Impact.MEDIUM,
    )]


def check_npm_ci(snapshot: ProjectSnapshot) -> List[Finding]:
    content = snapshot.amplify_yml
    if not content or NPM_LOCK not in snapshot.lock_files:
        return []
    if "npm install" not in content or "npm ci" in content:
        return []
    return [Finding(
        id="dep-npm-ci", category=CATEGORY, name="Use npm ci Instead of npm install", status=Status.WARN,
        message="npm ci is faster than npm install for CI environments (uses the lock file directly).",
        impact=Impact.MEDIUM, remediation=RemediationRef(action_id="replace_npm_install_with_ci"),
        docs_url="https://docs.npmjs.com/cli/v9/commands/npm-ci",
    )]


def check_heavy_dev_dependencies(snapshot: ProjectSnapshot) -> List[Finding]:
    heavy = [dep for dep in snapshot.dev_dependencies if any(h in dep for h in HEAVY_DEV_DEPS)]
    if not heavy:
        return []
    return [Finding(
        id="dep-heavy-dev", category=CATEGORY, name="Heavy Dev Dependencies", status=Status.INFO,
        message=(
            f"Found {len(heavy)} heavy dev dependencies ({', '.join(heavy[:3])}). "
            "Consider skipping them in the build if they are not needed."
        ),
        details=heavy, impact=Impact.MEDIUM,
        docs_url="https://docs.aws.amazon.com/amplify/latest/userguide/build-settings.html",
    )]


def check_lock_size(snapshot: ProjectSnapshot) -> List[Finding]:
    size = snapshot.package_lock_bytes
    if size is None or size <= LARGE_LOCK_BYTES:
        return []
    return [Finding(
        id="dep-lock-size", category=CATEGORY, name="Large Lock File", status=Status.WARN,
        message=(
            f"package-lock.json is {size / (1024 * 1024):.1f}MB. "
            "Consider running npm dedupe to reduce duplicate packages."
        ),
        impact=Impact.MEDIUM, remediation=RemediationRef(action_id="npm_dedupe"),
    )]
