"""Engine: run the resolver and every registered check against one snapshot -> Report."""
from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Dict, List, Optional

from amplify_health import config
from amplify_health.models import CATEGORY_ORDER, Finding, Impact, Report, Status
from amplify_health.registry import Check, CheckRegistry
from amplify_health.report import build_report
from amplify_health.snapshot import ProjectSnapshot
from amplify_health.versions import VersionResolver, analyze_versions

logger = logging.getLogger(__name__)

# How often queued checks are looked at again before a worker picks them up.
QUEUE_POLL = 0.05


def skip_finding(check: Check, reason: str) -> Finding:
    """Finding recorded in place of a check that could not run."""
    return Finding(
        id=check.check_id,
        category=check.category,
        name=check.check_id,
        status=Status.SKIP,
        message=f"{check.check_id} could not run: {reason}",
        impact=Impact.LOW,
    )


def _run_one(check: Check, snapshot: ProjectSnapshot) -> List[Finding]:
    try:
        findings = check.fn(snapshot)
    except Exception as e:
        logger.warning("check %s raised %s: %s", check.check_id, type(e).__name__, e)
        return [skip_finding(check, f"{type(e).__name__}: {e}")]
    if findings is None:
        return []
    if not isinstance(findings, list) or not all(isinstance(f, Finding) for f in findings):
        logger.warning("check %s returned %r instead of a list of findings", check.check_id, type(findings))
        return [skip_finding(check, "returned an invalid result")]
    return findings


class Engine:
    """One parameterized engine; each panel is a different registry/resolver pair."""

    def __init__(
        self,
        registry: CheckRegistry = None,
        resolver: Optional[VersionResolver] = None,
        max_workers: int = None,
        name: str = "analysis",
    ):
        self.registry = registry or CheckRegistry()
        self.resolver = resolver
        self.max_workers = max_workers or config.MAX_WORKERS
        self.name = name

    def _ordered_checks(self) -> List[Check]:
        rank = {category: i for i, category in enumerate(CATEGORY_ORDER)}
        indexed = list(enumerate(self.registry.checks()))
        indexed.sort(key=lambda pair: (rank[pair[1].category], pair[0]))
        return [check for _, check in indexed]

    def _run_checks(self, checks: List[Check], snapshot: ProjectSnapshot) -> Dict[str, List[Finding]]:
        results: Dict[str, List[Finding]] = {}
        if not checks:
            return results
        workers = max(1, min(self.max_workers, len(checks)))
        # Each check's timeout runs from the moment a worker picks it up.
        started: Dict[str, float] = {}

        def run(check: Check) -> List[Finding]:
            started[check.check_id] = time.monotonic()
            return _run_one(check, snapshot)

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"{self.name}-check")
        try:
            pending = {executor.submit(run, check): check for check in checks}
            abandoned = set()  # timed out but still holding a worker
            while pending:
                now = time.monotonic()
                waits = [
                    started[c.check_id] + c.effective_timeout() - now if c.check_id in started else QUEUE_POLL
                    for c in pending.values()
                ]
                done, _ = wait(set(pending) | abandoned, timeout=max(0.0, min(waits)), return_when=FIRST_COMPLETED)
                abandoned -= done
                for future in done & pending.keys():
                    check = pending.pop(future)
                    results[check.check_id] = future.result()

                now = time.monotonic()
                for future, check in list(pending.items()):
                    start = started.get(check.check_id)
                    if start is None or now - start < check.effective_timeout():
                        continue
                    logger.warning("check %s timed out after %ss", check.check_id, check.effective_timeout())
                    results[check.check_id] = [
                        skip_finding(check, f"timed out after {check.effective_timeout():g}s")
                    ]
                    del pending[future]
                    abandoned.add(future)

                if pending and len(abandoned) >= workers and not any(c.check_id in started for c in pending.values()):
                    for check in pending.values():
                        logger.warning("check %s never started; every worker is held by a timed-out check", check.check_id)
                        results[check.check_id] = [skip_finding(check, "no free worker, earlier checks timed out")]
                    pending.clear()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return results

    def run_analysis(self, snapshot: ProjectSnapshot, generation: int = 0) -> Report:
        """Run the resolver (synchronously) and all checks; findings grouped in category order."""
        t0 = time.time()
        findings: List[Finding] = []
        if self.resolver is not None:
            try:
                _, version_results = analyze_versions(snapshot, self.resolver)
                findings.extend(version_results)
            except Exception as e:
                logger.warning("version resolution failed: %s", e)
                findings.append(Finding(
                    id="node-version", category="runtime", name="Node version", status=Status.SKIP,
                    message=f"Node version resolution could not run: {e}", impact=Impact.LOW,
                ))

        checks = self._ordered_checks()
        results = self._run_checks(checks, snapshot)
        for check in checks:
            findings.extend(results.get(check.check_id, []))

        report = build_report(findings, generation=generation)
        logger.info(
            "[timing] %s | run_analysis: %.2fs | checks=%d findings=%d score=%d can_proceed=%s",
            self.name, time.time() - t0, len(checks), len(findings), report.score, report.can_proceed,
        )
        return report
