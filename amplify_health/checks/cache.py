"""Build cache checks against amplify.yml."""
from __future__ import annotations

from typing import List

from amplify_health.models import Finding, Impact, RemediationRef, Status
from amplify_health.snapshot import ProjectSnapshot

CATEGORY = "cache"


def check_cache_section(snapshot: ProjectSnapshot) -> List[Finding]:
    content = snapshot.amplify_yml
    if content is None:
        return []
    if "cache:" not in content:
        return [Finding(
            id="cache-amplify-yml", category=CATEGORY, name="Enable Amplify Build Cache", status=Status.FAIL,
            message="No cache configuration found in amplify.yml. Adding cache paths can speed up builds by 30-50%.",
            impact=Impact.HIGH, remediation=RemediationRef(action_id="add_cache_section"),
            docs_url="https://docs.aws.amazon.com/amplify/latest/userguide/build-settings.html#build-cache",
        )]
    return [Finding(
        id="cache-amplify-yml", category=CATEGORY, name="Amplify Build Cache", status=Status.PASS,
        message="Cache configuration is present in amplify.yml.", impact=Impact.HIGH,
    )]


def check_node_modules_cached(snapshot: ProjectSnapshot) -> List[Finding]:
    content = snapshot.amplify_yml
    if content is None or "cache:" not in content or "node_modules" in content:
        return []
    return [Finding(
        id="cache-node-modules", category=CATEGORY, name="Cache node_modules", status=Status.WARN,
        message="Consider adding node_modules to cache paths for faster dependency installation.",
        impact=Impact.HIGH, remediation=RemediationRef(action_id="add_node_modules_cache"),
    )]


def check_next_cache(snapshot: ProjectSnapshot) -> List[Finding]:
    content = snapshot.amplify_yml
    if content is None or not snapshot.is_nextjs or ".next/cache" in content:
        return []
    return [Finding(
        id="cache-nextjs", category=CATEGORY, name="Cache Next.js Build Cache", status=Status.WARN,
        message="Add .next/cache to amplify.yml cache paths. Next.js incremental builds can be 60% faster.",
        impact=Impact.HIGH, remediation=RemediationRef(action_id="add_next_cache"),
        docs_url="https://nextjs.org/docs/pages/building-your-application/deploying/ci-build-caching",
    )]
