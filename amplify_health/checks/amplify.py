"""amplify.yml checks (category "config"): presence, syntax, phases and script references."""
from __future__ import annotations

import re
from typing import Any, List, Optional

import yaml

from amplify_health.models import Finding, Impact, RemediationRef, Status
from amplify_health.snapshot import ProjectSnapshot

CATEGORY = "config"

BUILD_SETTINGS_DOCS = "https://docs.aws.amazon.com/amplify/latest/userguide/build-settings.html"
PHASE_KEYS = ("frontend", "backend", "applications")

_NPM_RUN_RE = re.compile(r"npm run ([\w:.-]+)")


def detect_base_directory(snapshot: ProjectSnapshot) -> str:
    """Artifacts directory for a generated amplify.yml: .next, dist (vite) or build."""
    if "next" in snapshot.dependencies:
        return ".next"
    if "vite" in snapshot.all_dependencies:
        return "dist"
    return "build"


def create_amplify_yml_ref(snapshot: ProjectSnapshot) -> RemediationRef:
    return RemediationRef(
        action_id="create_amplify_yml",
        params={"base_directory": detect_base_directory(snapshot)},
    )


def _parse(content: str) -> Optional[Any]:
    try:
        return yaml.safe_load(content)
    except yaml.YAMLError:
        return None


def check_amplify_yml(snapshot: ProjectSnapshot) -> List[Finding]:
    if snapshot.amplify_yml is None:
        return [Finding(
            id="amplify-yml", category=CATEGORY, name="amplify.yml Missing", status=Status.WARN,
            message="No amplify.yml found. Amplify will use auto-detection which may not work correctly.",
            impact=Impact.MEDIUM, remediation=create_amplify_yml_ref(snapshot), docs_url=BUILD_SETTINGS_DOCS,
        )]
    return [Finding(
        id="amplify-yml", category=CATEGORY, name="amplify.yml", status=Status.PASS,
        message="amplify.yml is present.", impact=Impact.MEDIUM,
    )]


def check_amplify_syntax(snapshot: ProjectSnapshot) -> List[Finding]:
    content = snapshot.amplify_yml
    if content is None:
        return []
    if "\t" in content:
        return [Finding(
            id="amplify-yml-syntax", category=CATEGORY, name="amplify.yml Has Tabs", status=Status.FAIL,
            blocking=True, message="amplify.yml contains tabs. YAML requires spaces for indentation!",
            impact=Impact.HIGH, remediation=RemediationRef(action_id="replace_tabs"),
        )]
    try:
        yaml.safe_load(content)
    except yaml.YAMLError as e:
        return [Finding(
            id="amplify-yml-syntax", category=CATEGORY, name="amplify.yml Invalid", status=Status.FAIL,
            blocking=True, message="amplify.yml is not valid YAML.", details=[str(e)], impact=Impact.HIGH,
        )]
    return []


def check_amplify_version(snapshot: ProjectSnapshot) -> List[Finding]:
    content = snapshot.amplify_yml
    if content is None or "version:" in content:
        return []
    return [Finding(
        id="amplify-version", category=CATEGORY, name="Version Missing", status=Status.WARN,
        message='amplify.yml should start with "version: 1".', impact=Impact.LOW,
        remediation=RemediationRef(action_id="add_version_header"),
    )]


def check_amplify_phase(snapshot: ProjectSnapshot) -> List[Finding]:
    content = snapshot.amplify_yml
    if content is None:
        return []
    parsed = _parse(content)
    if isinstance(parsed, dict):
        has_phase = any(key in parsed for key in PHASE_KEYS)
    else:
        has_phase = any(f"{key}:" in content for key in PHASE_KEYS)
    if has_phase:
        return []
    return [Finding(
        id="amplify-phase", category=CATEGORY, name="No Build Phase", status=Status.FAIL, blocking=True,
        message="amplify.yml has no frontend: or backend: section.", impact=Impact.HIGH,
        docs_url=BUILD_SETTINGS_DOCS,
    )]


def check_amplify_scripts(snapshot: ProjectSnapshot) -> List[Finding]:
    content = snapshot.amplify_yml
    if content is None or not snapshot.has_manifest:
        return []
    referenced = []
    for name in _NPM_RUN_RE.findall(content):
        if name not in referenced:
            referenced.append(name)
    if not referenced:
        return []
    missing = [name for name in referenced if name not in snapshot.scripts]
    if missing:
        return [Finding(
            id="amplify-scripts", category=CATEGORY, name="Missing npm Scripts", status=Status.FAIL,
            blocking=True, message=f"amplify.yml references undefined scripts: {', '.join(missing)}",
            details=missing, impact=Impact.HIGH,
        )]
    return [Finding(
        id="amplify-scripts", category=CATEGORY, name="npm Scripts", status=Status.PASS,
        message=f"All scripts referenced by amplify.yml exist ({', '.join(referenced)}).", impact=Impact.HIGH,
    )]


def check_nextjs_artifacts(snapshot: ProjectSnapshot) -> List[Finding]:
    content = snapshot.amplify_yml
    if content is None or not snapshot.is_nextjs or "artifacts:" not in content:
        return []
    if ".next" in content or "standalone" in content:
        return []
    return [Finding(
        id="amplify-nextjs", category=CATEGORY, name="Next.js Artifacts", status=Status.WARN,
        message='For Next.js SSR, artifacts baseDirectory should be ".next" or use standalone output.',
        impact=Impact.MEDIUM,
    )]


# Build-speed view of the same file.

def check_config_amplify_yml(snapshot: ProjectSnapshot) -> List[Finding]:
    if snapshot.amplify_yml is None:
        return [Finding(
            id="config-amplify-yml", category=CATEGORY, name="Create amplify.yml", status=Status.FAIL,
            message="No amplify.yml found. Create one to customize build settings and enable caching.",
            impact=Impact.HIGH, remediation=create_amplify_yml_ref(snapshot), docs_url=BUILD_SETTINGS_DOCS,
        )]
    return [Finding(
        id="config-amplify-yml", category=CATEGORY, name="amplify.yml Configuration", status=Status.PASS,
        message="amplify.yml is configured.", impact=Impact.HIGH,
    )]


def check_config_artifacts(snapshot: ProjectSnapshot) -> List[Finding]:
    content = snapshot.amplify_yml
    if content is None or "artifacts:" in content:
        return []
    return [Finding(
        id="config-artifacts", category=CATEGORY, name="Configure Artifacts", status=Status.WARN,
        message="No artifacts configuration. Specify baseDirectory and files to deploy only what's needed.",
        impact=Impact.MEDIUM, docs_url=BUILD_SETTINGS_DOCS + "#artifacts",
    )]


def check_config_env_vars(snapshot: ProjectSnapshot) -> List[Finding]:
    content = snapshot.amplify_yml
    if content is None or "$" not in content or "env:" in content:
        return []
    return [Finding(
        id="config-env-vars", category=CATEGORY, name="Environment Variables Section", status=Status.INFO,
        message="Consider using the env section in amplify.yml to set build-time environment variables.",
        impact=Impact.LOW,
    )]


def check_config_prebuild(snapshot: ProjectSnapshot) -> List[Finding]:
    content = snapshot.amplify_yml
    if content is None or "preBuild:" in content:
        return []
    return [Finding(
        id="config-prebuild", category=CATEGORY, name="Add preBuild Phase", status=Status.INFO,
        message="Consider adding preBuild phase for setup tasks like nvm use, to keep build phase clean.",
        impact=Impact.LOW,
    )]
