"""Git sync checks: Amplify builds from the remote branch, not the working tree."""
from __future__ import annotations

from typing import List

from amplify_health.models import Finding, Impact, RemediationRef, Status
from amplify_health.snapshot import ProjectSnapshot

CATEGORY = "git"


def check_uncommitted(snapshot: ProjectSnapshot) -> List[Finding]:
    git = snapshot.git
    if not git.is_repo:
        return [Finding(
            id="git-uncommitted", category=CATEGORY, name="Git Repository", status=Status.SKIP,
            message="Not a git repository or git not installed.",
            details=[git.error] if git.error else [], impact=Impact.LOW,
        )]
    if git.dirty:
        return [Finding(
            id="git-uncommitted", category=CATEGORY, name="Uncommitted Changes", status=Status.WARN,
            message=f"{len(git.dirty)} file(s) with uncommitted changes. Amplify deploys from your remote branch.",
            details=list(git.dirty[:5]), impact=Impact.MEDIUM,
            remediation=RemediationRef(action_id="git_commit_all"),
        )]
    return [Finding(
        id="git-uncommitted", category=CATEGORY, name="Git Status Clean", status=Status.PASS,
        message="All changes are committed.", impact=Impact.MEDIUM,
    )]


def check_unpushed(snapshot: ProjectSnapshot) -> List[Finding]:
    git = snapshot.git
    if not git.is_repo:
        return []
    if not git.local_commit or not git.remote_commit:
        # No upstream: divergence cannot be proven either way.
        return [Finding(
            id="git-unpushed", category=CATEGORY, name="Remote Tracking", status=Status.WARN,
            message="Could not verify remote sync. Ensure your branch is pushed.", impact=Impact.MEDIUM,
        )]
    if git.local_commit != git.remote_commit:
        branch = git.branch or "HEAD"
        return [Finding(
            id="git-unpushed", category=CATEGORY, name="Unpushed Commits", status=Status.FAIL, blocking=True,
            message=f"Local branch {branch} differs from its upstream. Push before deploying!",
            details=[f"local {git.local_commit[:12]}", f"remote {git.remote_commit[:12]}"],
            impact=Impact.HIGH, remediation=RemediationRef(action_id="git_push"),
        )]
    return [Finding(
        id="git-unpushed", category=CATEGORY, name="Branch Synced", status=Status.PASS,
        message="Local and remote branches are in sync.", impact=Impact.HIGH,
    )]
