"""Aggregate findings into summary counts, a 0-100 score and a proceed/block verdict."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List

from amplify_health.models import Finding, Impact, Report, Status, Summary

# Minutes a non-passing finding is estimated to cost per build, by impact.
_SAVINGS_MINUTES = {Impact.HIGH: 2.0, Impact.MEDIUM: 1.0, Impact.LOW: 0.5}


def summarize(findings: Iterable[Finding]) -> Summary:
    """Count findings by status. Info findings count as warnings."""
    passed = warnings = failed = skipped = 0
    for f in findings:
        if f.status is Status.PASS:
            passed += 1
        elif f.status is Status.FAIL:
            failed += 1
        elif f.status is Status.SKIP:
            skipped += 1
        else:
            warnings += 1
    return Summary(passed=passed, warnings=warnings, failed=failed, skipped=skipped)


def compute_score(summary: Summary) -> int:
    """100 * passed / total rounded half up, where total excludes skipped findings; 100 when empty."""
    total = summary.passed + summary.warnings + summary.failed
    if total == 0:
        return 100
    return int(100 * summary.passed / total + 0.5)


def can_proceed(findings: Iterable[Finding]) -> bool:
    return not any(f.status is Status.FAIL and f.blocking for f in findings)


def estimate_savings(findings: Iterable[Finding]) -> str:
    minutes = sum(
        _SAVINGS_MINUTES[f.impact] for f in findings if f.status in (Status.WARN, Status.FAIL)
    )
    if minutes <= 0:
        return "Already optimized"
    return f"~{minutes:g} min per build"


def build_report(findings: List[Finding], generation: int = 0) -> Report:
    """Build a Report wholesale from an ordered list of findings."""
    summary = summarize(findings)
    return Report(
        findings=list(findings),
        summary=summary,
        score=compute_score(summary),
        can_proceed=can_proceed(findings),
        generated_at=datetime.now(timezone.utc),
        estimated_savings=estimate_savings(findings),
        fixable=[f.id for f in findings if f.remediation is not None and f.status is not Status.PASS],
        generation=generation,
    )
