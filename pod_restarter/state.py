import time
from typing import Any, Dict, List, Optional

from pod_restarter.models import IterationReport

HISTORY_LIMIT = 100


class ReconcileSession:
    """Per-process reconciliation state: the iteration counter and running totals"""

    def __init__(self, started_at: Optional[float] = None):
        self.iteration = 0
        self.started_at = started_at if started_at is not None else time.time()
        self.history: List[IterationReport] = []
        self._totals: Dict[str, int] = {}

    def advance(self):
        self.iteration += 1

    def record(self, report: IterationReport):
        self.history.append(report)
        if len(self.history) > HISTORY_LIMIT:
            self.history = self.history[-HISTORY_LIMIT:]

        for key in ('events_matched', 'candidates', 'deleted', 'dry_run',
                    'already_gone', 'delete_failed', 'errored'):
            self._bump(key, getattr(report, key))
        for reason, count in report.rejected.items():
            self._bump(f"rejected_{reason.value}", count)
        if report.fetch_failed:
            self._bump('fetch_failures', 1)

    def _bump(self, key: str, count: int):
        self._totals[key] = self._totals.get(key, 0) + count

    def total(self, key: str) -> int:
        return self._totals.get(key, 0)

    def summary(self) -> Dict[str, Any]:
        return {
            'iterations': self.iteration,
            'uptime_seconds': int(time.time() - self.started_at),
            'totals': dict(self._totals),
        }
