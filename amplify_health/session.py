"""Caller-owned analysis state for one project and one engine."""
from __future__ import annotations

import logging
import os
import threading
from collections import deque
from typing import Any, Dict, List, Optional, Tuple

from amplify_health import config
from amplify_health.engine import Engine
from amplify_health.errors import RemediationError
from amplify_health.models import Report
from amplify_health.remediation import ActionKind, RemediationDispatcher, RemediationResult
from amplify_health.snapshot import read_snapshot

logger = logging.getLogger(__name__)

_root_locks: Dict[str, threading.Lock] = {}
_root_locks_guard = threading.Lock()


def root_lock(root: str) -> threading.Lock:
    """The lock shared by every session on `root`, keyed by its real path."""
    key = os.path.realpath(root)
    with _root_locks_guard:
        return _root_locks.setdefault(key, threading.Lock())


class AnalysisSession:
    """Serializes analysis runs and gates remediation on them.

    Each `analyze()` reads a fresh snapshot; runs never overlap and each one
    bumps `generation`. Remediation is refused while any session on the same
    root is analyzing.
    """

    def __init__(
        self,
        root: str,
        engine: Engine,
        dispatcher: RemediationDispatcher = None,
        history_limit: int = 20,
        probes: bool = True,
        lock: threading.Lock = None,
    ):
        self.root = root
        self.engine = engine
        self.dispatcher = dispatcher or RemediationDispatcher(root)
        self.probes = probes
        self.generation = 0
        self._lock = lock if lock is not None else root_lock(root)
        self._history: deque = deque(maxlen=history_limit)

    @property
    def latest(self) -> Optional[Report]:
        return self._history[-1][1] if self._history else None

    def history(self) -> List[Tuple[int, Report]]:
        return list(self._history)

    @property
    def analyzing(self) -> bool:
        return self._lock.locked()

    def analyze(self) -> Report:
        """Read a fresh snapshot and run the engine. Raises SnapshotError if the root is gone."""
        with self._lock:
            self.generation += 1
            snapshot = read_snapshot(self.root, config.PROBE_TIMEOUT, probes=self.probes)
            report = self.engine.run_analysis(snapshot, generation=self.generation)
            self._history.append((self.generation, report))
            return report

    def apply(self, action_id: str, params: Dict[str, Any] = None) -> Tuple[RemediationResult, Optional[Report]]:
        """Apply a remediation. File changes are followed by a fresh analysis; shell actions are not.

        A re-analysis started before a shell action finishes may still see the old files.
        """
        if not self._lock.acquire(blocking=False):
            raise RemediationError(str(action_id), "an analysis is in progress; retry when it completes")
        try:
            result = self.dispatcher.apply(action_id, params)
        finally:
            self._lock.release()
        if result.kind is ActionKind.RUN_SHELL:
            logger.info("remediation %s pending; analysis not re-run", action_id)
            return result, None
        return result, self.analyze()
