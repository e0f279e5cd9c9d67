"""Environment checks: .env hygiene and hardcoded secrets."""
from __future__ import annotations

import os
import re
from typing import List

from amplify_health.models import Finding, Impact, RemediationRef, Status
from amplify_health.snapshot import ProjectSnapshot

CATEGORY = "env"

SCAN_EXTENSIONS = (".js", ".ts", ".jsx", ".tsx", ".mjs")
SKIP_DIRS = frozenset(("node_modules", ".git", ".next", "dist", "build", "out", ".amplify"))
MAX_SCAN_DEPTH = 3
MAX_SCAN_FILES = 50

SECRET_PATTERNS = (
    re.compile(r"""(?:api[_-]?key|apikey)\s*[:=]\s*['"][a-zA-Z0-9]{20,}['"]""", re.IGNORECASE),
    re.compile(r"""(?:secret|password|token)\s*[:=]\s*['"][^'"]{10,}['"]""", re.IGNORECASE),
    re.compile(r"AKIA[0-9A-Z]{16}"),
)


def check_env_ignored(snapshot: ProjectSnapshot) -> List[Finding]:
    if not snapshot.env_files:
        return []
    gitignore = snapshot.gitignore or ""
    if ".env" in gitignore:
        return [Finding(
            id="env-gitignore", category=CATEGORY, name="Environment Files Ignored", status=Status.PASS,
            message=".env files are listed in .gitignore.", impact=Impact.HIGH,
        )]
    return [Finding(
        id="env-gitignore", category=CATEGORY, name="Env Files Not Ignored", status=Status.WARN,
        message=".env files found but not in .gitignore. Secrets may be committed!",
        details=list(snapshot.env_files), impact=Impact.HIGH,
        remediation=RemediationRef(action_id="ignore_env_files"),
    )]


def check_env_required(snapshot: ProjectSnapshot) -> List[Finding]:
    if snapshot.env_example is None:
        return []
    names = [
        line.split("=", 1)[0].strip()
        for line in snapshot.env_example.splitlines()
        if "=" in line and not line.lstrip().startswith("#")
    ]
    if not names:
        return []
    return [Finding(
        id="env-required", category=CATEGORY, name="Required Env Variables", status=Status.INFO,
        message=f"{len(names)} env var(s) defined in .env.example. Ensure they're set in the Amplify Console.",
        details=names[:10], impact=Impact.LOW,
    )]


def _source_files(root: str):
    """Yield up to MAX_SCAN_FILES source files, depth-limited, skipping build output and dot-dirs."""
    count = 0
    for current, dirs, files in os.walk(root):
        depth = 0 if current == root else os.path.relpath(current, root).count(os.sep) + 1
        if depth >= MAX_SCAN_DEPTH:
            dirs[:] = []
        else:
            dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRS and not d.startswith("."))
        for name in sorted(files):
            if not name.endswith(SCAN_EXTENSIONS):
                continue
            yield os.path.join(current, name)
            count += 1
            if count >= MAX_SCAN_FILES:
                return


def check_secrets(snapshot: ProjectSnapshot) -> List[Finding]:
    suspicious = []
    for path in _source_files(snapshot.root):
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                content = f.read()
        except OSError:
            continue
        if any(pattern.search(content) for pattern in SECRET_PATTERNS):
            suspicious.append(os.path.relpath(path, snapshot.root))
    if suspicious:
        return [Finding(
            id="env-hardcoded", category=CATEGORY, name="Possible Hardcoded Secrets", status=Status.WARN,
            message=f"Found potential secrets in {len(suspicious)} file(s). Use environment variables instead.",
            details=suspicious[:5], impact=Impact.HIGH,
        )]
    return [Finding(
        id="env-hardcoded", category=CATEGORY, name="No Hardcoded Secrets", status=Status.PASS,
        message="No obvious hardcoded secrets detected.", impact=Impact.HIGH,
    )]
