"""Check registry: checks grouped by category, kept in registration order."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from amplify_health import config
from amplify_health.models import CATEGORY_ORDER, Finding
from amplify_health.snapshot import ProjectSnapshot

CheckFn = Callable[[ProjectSnapshot], List[Finding]]


@dataclass(frozen=True)
class Check:
    check_id: str
    category: str
    fn: CheckFn
    timeout: Optional[float] = None  # seconds; None uses AMPLIFY_HEALTH_CHECK_TIMEOUT

    def effective_timeout(self) -> float:
        return self.timeout if self.timeout is not None else config.CHECK_TIMEOUT


class CheckRegistry:
    """Ordered set of checks. One instance per check set, not a module global."""

    def __init__(self, checks: Iterable[Check] = ()):
        self._checks: Dict[str, Check] = {}
        for check in checks:
            self.add(check)

    def add(self, check: Check) -> Check:
        if check.category not in CATEGORY_ORDER:
            raise ValueError(f"unknown category {check.category!r} for check {check.check_id}")
        if check.check_id in self._checks:
            raise ValueError(f"check {check.check_id} already registered")
        self._checks[check.check_id] = check
        return check

    def register(self, check_id: str, category: str, timeout: float = None):
        """Decorator form of add()."""
        def decorator(fn: CheckFn) -> CheckFn:
            self.add(Check(check_id, category, fn, timeout))
            return fn
        return decorator

    def get(self, check_id: str) -> Optional[Check]:
        return self._checks.get(check_id)

    def checks(self) -> List[Check]:
        return list(self._checks.values())

    def by_category(self, category: str) -> List[Check]:
        return [c for c in self._checks.values() if c.category == category]

    def __len__(self) -> int:
        return len(self._checks)

    def __iter__(self):
        return iter(self.checks())
