"""Build checks: build script, TypeScript, ESLint and build-speed settings."""
from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

from amplify_health import config
from amplify_health.config import CompatibilityTable
from amplify_health.models import Finding, Impact, RemediationRef, Status
from amplify_health.snapshot import ProjectSnapshot, run_probe

CATEGORY = "build"

_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_SOURCEMAPS_RE = re.compile(r"productionBrowserSourceMaps\s*:\s*true")
_NVM_USE_RE = re.compile(r"nvm use (\d+)")


def strip_json_comments(text: str) -> str:
    """Drop // and /* */ comments outside string literals."""
    out = []
    i, n = 0, len(text)
    in_string = False
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
        elif ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = n if end == -1 else end + 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def parse_tsconfig(text: str) -> Dict[str, Any]:
    """Parse tsconfig.json, tolerating comments and trailing commas. Raises ValueError."""
    stripped = _TRAILING_COMMA_RE.sub(r"\1", strip_json_comments(text))
    data = json.loads(stripped)
    if not isinstance(data, dict):
        raise ValueError("tsconfig.json is not a JSON object")
    return data


def check_build_script(snapshot: ProjectSnapshot) -> List[Finding]:
    if not snapshot.has_manifest:
        return []
    script = snapshot.scripts.get("build")
    if not script:
        return [Finding(
            id="build-script", category=CATEGORY, name="Build Script Missing", status=Status.FAIL, blocking=True,
            message='No "build" script in package.json. Amplify needs this to build your app.',
            impact=Impact.HIGH,
        )]
    return [Finding(
        id="build-script", category=CATEGORY, name="Build Script", status=Status.PASS,
        message=f'Build script: "{script}"', details=[script], impact=Impact.HIGH,
    )]


def check_tsconfig(snapshot: ProjectSnapshot) -> List[Finding]:
    if snapshot.tsconfig is None:
        return []
    try:
        parse_tsconfig(snapshot.tsconfig)
    except ValueError as e:
        return [Finding(
            id="build-tsconfig", category=CATEGORY, name="TypeScript Config Invalid", status=Status.FAIL,
            blocking=True, message="tsconfig.json has syntax errors!", details=[str(e)], impact=Impact.HIGH,
        )]
    return [Finding(
        id="build-tsconfig", category=CATEGORY, name="TypeScript Config", status=Status.PASS,
        message="tsconfig.json is valid JSON.", impact=Impact.MEDIUM,
    )]


def check_typescript_compile(snapshot: ProjectSnapshot) -> List[Finding]:
    """Run `npx tsc --noEmit`. Tool problems degrade to Skip, compiler errors are a Fail."""
    if snapshot.tsconfig is None:
        return []
    result = run_probe(["npx", "tsc", "--noEmit"], snapshot.root, config.PROBE_TIMEOUT)
    if result.error:
        return [Finding(
            id="build-typescript", category=CATEGORY, name="TypeScript Compilation", status=Status.SKIP,
            message=f"TypeScript check skipped: {result.error}.", impact=Impact.LOW,
        )]
    if result.ok:
        return [Finding(
            id="build-typescript", category=CATEGORY, name="TypeScript Compilation", status=Status.PASS,
            message="No TypeScript errors found.", impact=Impact.HIGH,
        )]
    output = result.stdout + "\n" + result.stderr
    errors = [line.strip() for line in output.splitlines() if "error TS" in line]
    if not errors:
        return [Finding(
            id="build-typescript", category=CATEGORY, name="TypeScript Compilation", status=Status.SKIP,
            message=f"tsc exited with code {result.returncode} but reported no TypeScript errors.",
            details=[line for line in output.strip().splitlines()[:5]], impact=Impact.LOW,
        )]
    return [Finding(
        id="build-typescript", category=CATEGORY, name="TypeScript Errors", status=Status.FAIL, blocking=True,
        message=f"{len(errors)} TypeScript error(s) found.", details=errors[:5], impact=Impact.HIGH,
    )]


def check_eslint(snapshot: ProjectSnapshot) -> List[Finding]:
    if not snapshot.eslint_configs or "lint" not in snapshot.scripts:
        return []
    return [Finding(
        id="build-eslint", category=CATEGORY, name="ESLint Configured", status=Status.INFO,
        message='ESLint is configured. Run "npm run lint" to check for issues.',
        details=list(snapshot.eslint_configs), impact=Impact.LOW,
        remediation=RemediationRef(action_id="run_lint"),
    )]


def check_sourcemaps(snapshot: ProjectSnapshot) -> List[Finding]:
    if not snapshot.next_config or not _SOURCEMAPS_RE.search(snapshot.next_config):
        return []
    return [Finding(
        id="build-sourcemaps", category=CATEGORY, name="Production Source Maps Enabled", status=Status.WARN,
        message="Production source maps increase build time and bundle size. Disable unless needed for debugging.",
        impact=Impact.MEDIUM,
        docs_url="https://nextjs.org/docs/app/api-reference/next-config-js/productionBrowserSourceMaps",
    )]


def check_skip_lib_check(snapshot: ProjectSnapshot) -> List[Finding]:
    if snapshot.tsconfig is None:
        return []
    try:
        tsconfig = parse_tsconfig(snapshot.tsconfig)
    except ValueError:
        return []  # reported by check_tsconfig
    options = tsconfig.get("compilerOptions") or {}
    if isinstance(options, dict) and options.get("skipLibCheck") is True:
        return [Finding(
            id="build-skip-lib-check", category=CATEGORY, name="TypeScript skipLibCheck", status=Status.PASS,
            message="skipLibCheck is enabled for faster TypeScript builds.", impact=Impact.MEDIUM,
        )]
    return [Finding(
        id="build-skip-lib-check", category=CATEGORY, name="Enable skipLibCheck", status=Status.WARN,
        message="Setting skipLibCheck: true in tsconfig.json can speed up TypeScript compilation by 20-30%.",
        impact=Impact.MEDIUM, remediation=RemediationRef(action_id="enable_skip_lib_check"),
    )]


def check_parallel_commands(snapshot: ProjectSnapshot) -> List[Finding]:
    content = snapshot.amplify_yml
    if not content:
        return []
    if any(token in content for token in ("&&", "concurrently", "npm-run-all")):
        return []
    return [Finding(
        id="build-parallel", category=CATEGORY, name="Consider Parallel Commands", status=Status.INFO,
        message="Use && or tools like concurrently to run independent build steps in parallel.",
        impact=Impact.MEDIUM,
    )]


def _int_or_none(value: str) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def make_ci_node_version_check(table: CompatibilityTable):
    """Build the `nvm use N` performance check against the table's oldest LTS and recommended release."""
    lts = [v for v in (_int_or_none(x) for x in table.lts) if v is not None]
    minimum = min(lts) if lts else 18
    recommended = _int_or_none(table.recommended) or 20

    def check_ci_node_version(snapshot: ProjectSnapshot) -> List[Finding]:
        if not snapshot.amplify_yml:
            return []
        match = _NVM_USE_RE.search(snapshot.amplify_yml)
        if not match:
            return []
        version = int(match.group(1))
        upgrade = RemediationRef(action_id="set_amplify_node_version", params={"version": str(recommended)})
        if version < minimum:
            return [Finding(
                id="build-node-version", category=CATEGORY, name="Upgrade Node.js Version", status=Status.WARN,
                message=f"Using Node.js {version}. Node {minimum}+ has faster startup and better performance.",
                impact=Impact.MEDIUM, remediation=upgrade,
            )]
        if version < recommended:
            return [Finding(
                id="build-node-version", category=CATEGORY, name="Node.js Version", status=Status.INFO,
                message=f"Using Node.js {version}. Consider Node {recommended} LTS for best performance.",
                impact=Impact.LOW, remediation=upgrade,
            )]
        return [Finding(
            id="build-node-version", category=CATEGORY, name="Node.js Version", status=Status.PASS,
            message=f"Using Node.js {version} - great choice!", impact=Impact.MEDIUM,
        )]

    return check_ci_node_version
