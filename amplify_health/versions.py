"""Node.js version resolution across the files that can pin it.

The resolver is pure: `resolve()` maps a list of VersionSource to a
Resolution without I/O. `collect_version_sources()` pulls the sources out of
a snapshot and `version_findings()` turns a resolution into findings.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from amplify_health.config import CompatibilityTable
from amplify_health.models import Finding, Impact, RemediationRef, Status, VersionSource
from amplify_health.snapshot import ProjectSnapshot

ORIGIN_CI = "ci"
ORIGIN_CI_ENV = "ci-env"
ORIGIN_NVMRC = "nvmrc"
ORIGIN_NODE_VERSION = "node-version"
ORIGIN_MANIFEST = "manifest"
ORIGIN_DOCKERFILE = "dockerfile"
ORIGIN_LOCAL = "local"

# Authority order. The Dockerfile is informative only and the local runtime never decides.
DEFAULT_PRIORITY: Tuple[str, ...] = (ORIGIN_CI, ORIGIN_CI_ENV, ORIGIN_NVMRC, ORIGIN_NODE_VERSION, ORIGIN_MANIFEST)

_ORIGIN_LABELS = {
    ORIGIN_CI: "amplify.yml (nvm)",
    ORIGIN_CI_ENV: "amplify.yml (NODE_VERSION)",
    ORIGIN_NVMRC: ".nvmrc",
    ORIGIN_NODE_VERSION: ".node-version",
    ORIGIN_MANIFEST: "package.json (engines.node)",
    ORIGIN_DOCKERFILE: "Dockerfile",
    ORIGIN_LOCAL: "Local Node.js",
}

_NVM_RE = re.compile(r"nvm\s+(use|install)\s+(\d+)")
_NODE_VERSION_ENV_RE = re.compile(r"NODE_VERSION[:\s]+[\"']?(\d+)[\"']?")
_DOCKER_FROM_RE = re.compile(r"FROM\s+node:(\d+)", re.IGNORECASE)
_DIGITS_RE = re.compile(r"\d+")

CATEGORY = "runtime"


class Compatibility(str, Enum):
    LTS = "lts"
    CURRENT = "current"
    DEPRECATED = "deprecated"
    EXPERIMENTAL = "experimental"
    UNSUPPORTED = "unsupported"

    @property
    def supported(self) -> bool:
        return self in (Compatibility.LTS, Compatibility.CURRENT)


@dataclass(frozen=True)
class Resolution:
    resolved: Optional[str]  # raw value of the winning source
    origin: Optional[str]
    major: str  # normalized major the classification was computed on
    conflicts: Tuple[str, ...]
    classification: Compatibility
    local_version: Optional[str] = None
    local_mismatch: bool = False

    @property
    def has_conflict(self) -> bool:
        return bool(self.conflicts)

    @property
    def specified(self) -> bool:
        return self.resolved is not None


def label(origin: str) -> str:
    return _ORIGIN_LABELS.get(origin, origin)


class VersionResolver:
    """Resolve the authoritative Node.js major from conflicting sources."""

    def __init__(self, table: CompatibilityTable = None, priority: Sequence[str] = DEFAULT_PRIORITY):
        self.table = table or CompatibilityTable()
        self.priority = tuple(priority)

    def normalize(self, value: str) -> str:
        """">=18.0.0" -> "18", "18.x" -> "18", "lts/*" -> recommended; unparsable stays as is."""
        if "lts" in value.lower():
            return self.table.recommended
        match = _DIGITS_RE.search(value)
        return match.group(0) if match else value

    def classify(self, major: str) -> Compatibility:
        if major in self.table.lts:
            return Compatibility.LTS
        if major in self.table.current:
            return Compatibility.CURRENT
        if major in self.table.deprecated:
            return Compatibility.DEPRECATED
        if major in self.table.experimental:
            return Compatibility.EXPERIMENTAL
        return Compatibility.UNSUPPORTED

    def resolve(self, sources: Sequence[VersionSource]) -> Resolution:
        valued = [s for s in sources if s.raw_value]
        winner = None
        for origin in self.priority:
            winner = next((s for s in valued if s.origin == origin), None)
            if winner:
                break

        declared = [s for s in valued if s.origin != ORIGIN_LOCAL]
        conflicts: List[str] = []
        majors = {self.normalize(s.raw_value) for s in declared}
        if len(majors) > 1:
            listed = ", ".join(f"{label(s.origin)} ({self.normalize(s.raw_value)})" for s in declared)
            conflicts.append(f"Multiple Node versions specified: {listed}")

        resolved = winner.raw_value if winner else None
        major = self.normalize(resolved) if resolved else self.table.default

        local = next((s.raw_value for s in valued if s.origin == ORIGIN_LOCAL), None)
        local_mismatch = bool(local and resolved and self.normalize(local) != major)

        return Resolution(
            resolved=resolved,
            origin=winner.origin if winner else None,
            major=major,
            conflicts=tuple(conflicts),
            classification=self.classify(major),
            local_version=local,
            local_mismatch=local_mismatch,
        )


def _line_of(text: str, needle: str) -> Optional[int]:
    for i, line in enumerate(text.splitlines(), start=1):
        if needle in line:
            return i
    return None


def collect_version_sources(snapshot: ProjectSnapshot) -> List[VersionSource]:
    """One VersionSource per origin that has something to say."""
    sources: List[VersionSource] = []
    if snapshot.engines_node:
        sources.append(VersionSource(origin=ORIGIN_MANIFEST, raw_value=snapshot.engines_node, file="package.json"))
    if snapshot.nvmrc is not None:
        sources.append(VersionSource(origin=ORIGIN_NVMRC, raw_value=snapshot.nvmrc or None, file=".nvmrc"))
    if snapshot.node_version_file is not None:
        sources.append(VersionSource(
            origin=ORIGIN_NODE_VERSION, raw_value=snapshot.node_version_file or None, file=".node-version",
        ))
    if snapshot.amplify_yml:
        text = snapshot.amplify_yml
        for origin, pattern in ((ORIGIN_CI, _NVM_RE), (ORIGIN_CI_ENV, _NODE_VERSION_ENV_RE)):
            match = pattern.search(text)
            if match:
                sources.append(VersionSource(
                    origin=origin,
                    raw_value=match.group(match.lastindex),
                    file="amplify.yml",
                    line=_line_of(text, match.group(0)),
                ))
    if snapshot.dockerfile:
        match = _DOCKER_FROM_RE.search(snapshot.dockerfile)
        if match:
            sources.append(VersionSource(
                origin=ORIGIN_DOCKERFILE, raw_value=match.group(1), file="Dockerfile",
                line=_line_of(snapshot.dockerfile, match.group(0)),
            ))
    sources.append(VersionSource(origin=ORIGIN_LOCAL, raw_value=snapshot.local_node_version))
    return sources


def _nvmrc_fix(version: str) -> RemediationRef:
    return RemediationRef(action_id="create_nvmrc", params={"version": version})


def version_findings(
    resolution: Resolution,
    table: CompatibilityTable,
    sources: Sequence[VersionSource],
    amplify_yml_present: bool,
) -> List[Finding]:
    """Findings describing a resolution, in a fixed order."""
    findings: List[Finding] = []
    major = resolution.major
    recommended = table.recommended

    if not resolution.specified:
        findings.append(Finding(
            id="node-version-unspecified",
            category=CATEGORY,
            name="No Node version specified",
            status=Status.WARN,
            message=(
                f"Amplify will use Node {table.default} by default. "
                "Consider specifying a version for consistent builds."
            ),
            impact=Impact.MEDIUM,
            remediation=_nvmrc_fix(recommended),
        ))

    for conflict in resolution.conflicts:
        findings.append(Finding(
            id="node-version-conflict",
            category=CATEGORY,
            name="Version conflict detected",
            status=Status.FAIL,
            message=conflict,
            details=[f"{label(s.origin)}: {s.raw_value}" for s in sources if s.raw_value and s.origin != ORIGIN_LOCAL],
            impact=Impact.HIGH,
            remediation=RemediationRef(action_id="set_amplify_node_version", params={"version": major}),
        ))

    if resolution.local_mismatch:
        findings.append(Finding(
            id="node-version-local-mismatch",
            category=CATEGORY,
            name="Local Node differs from Amplify build",
            status=Status.WARN,
            message=(
                f"Local Node ({resolution.local_version}) differs from the Amplify build (Node {major}). "
                "Builds that pass locally may fail in Amplify."
            ),
            impact=Impact.LOW,
        ))

    cls = resolution.classification
    if cls is Compatibility.DEPRECATED:
        compat = Finding(
            id="node-version-compat", category=CATEGORY, name=f"Node {major} is deprecated",
            status=Status.WARN,
            message=f"Node {major} will be removed from Amplify soon. Upgrade to Node {recommended} LTS.",
            impact=Impact.HIGH, remediation=_nvmrc_fix(recommended),
        )
    elif cls is Compatibility.EXPERIMENTAL:
        compat = Finding(
            id="node-version-compat", category=CATEGORY, name=f"Node {major} is experimental",
            status=Status.WARN,
            message=f"Node {major} may have limited support. Consider Node {recommended} LTS for production.",
            impact=Impact.MEDIUM,
        )
    elif cls is Compatibility.UNSUPPORTED:
        compat = Finding(
            id="node-version-compat", category=CATEGORY, name=f"Node {major} is not supported",
            status=Status.FAIL, blocking=True,
            message=(
                f"Amplify does not support Node {major}. Supported versions: "
                f"{', '.join(table.lts)} (LTS), {', '.join(table.current)} (Current)."
            ),
            impact=Impact.HIGH, remediation=_nvmrc_fix(recommended),
        )
    else:
        kind = "LTS" if cls is Compatibility.LTS else "Current"
        compat = Finding(
            id="node-version-compat", category=CATEGORY, name=f"Node {major} is supported",
            status=Status.PASS, message=f"Node {major} is a supported {kind} release on Amplify.",
            impact=Impact.HIGH,
        )
    findings.append(compat)

    has_nvmrc = any(s.origin == ORIGIN_NVMRC and s.raw_value for s in sources)
    ci_pins = any(s.origin in (ORIGIN_CI, ORIGIN_CI_ENV) and s.raw_value for s in sources)
    if has_nvmrc and not ci_pins:
        if amplify_yml_present:
            fix = RemediationRef(action_id="add_nvm_to_amplify_yml")
            message = "Your .nvmrc exists but amplify.yml doesn't reference it."
        else:
            fix = RemediationRef(action_id="create_amplify_yml", params={"node_version": "auto"})
            message = "Amplify needs explicit configuration (amplify.yml with `nvm use`) to use your .nvmrc file."
        findings.append(Finding(
            id="node-version-nvmrc-unused",
            category=CATEGORY,
            name="amplify.yml does not use .nvmrc",
            status=Status.INFO,
            message=message,
            impact=Impact.LOW,
            remediation=fix,
        ))

    if cls.supported and not resolution.has_conflict and resolution.specified:
        findings.append(Finding(
            id="node-version-consistent",
            category=CATEGORY,
            name="Node version configuration looks good",
            status=Status.PASS,
            message=f"Node {major} is fully supported and consistently configured.",
            impact=Impact.LOW,
        ))
    return findings


def analyze_versions(snapshot: ProjectSnapshot, resolver: VersionResolver) -> Tuple[Resolution, List[Finding]]:
    sources = collect_version_sources(snapshot)
    resolution = resolver.resolve(sources)
    findings = version_findings(resolution, resolver.table, sources, snapshot.amplify_yml is not None)
    return resolution, findings
