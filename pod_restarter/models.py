"""
Data model for the pod restarter.

Flattened views of the Kubernetes objects the reconciler reasons about,
plus the enums and reports that flow between its stages.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class PodPhase(Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


class HealthState(Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class RejectReason(Enum):
    """Why a candidate Pod was not deleted"""
    GONE = "gone"
    FETCH_FAILED = "fetch_failed"
    NO_OWNER = "no_owner"
    ALREADY_DELETING = "already_deleting"
    ALREADY_HEALTHY = "already_healthy"


class RemediationOutcome(Enum):
    DELETED = "deleted"
    DRY_RUN = "dry_run"
    ALREADY_GONE = "already_gone"
    FAILED = "failed"


@dataclass(frozen=True)
class PodEvent:
    """An Event whose involved object is a Pod"""
    uid: str
    pod_name: str
    pod_namespace: str
    resource_version: str
    reason: str
    event_type: str
    message: str
    first_timestamp: Optional[datetime] = None
    last_timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class ContainerTermination:
    exit_code: int
    reason: Optional[str] = None


@dataclass(frozen=True)
class ContainerStatus:
    name: str
    terminated: Optional[ContainerTermination] = None


@dataclass(frozen=True)
class OwnerReference:
    kind: str
    name: str
    uid: str = ""


@dataclass(frozen=True)
class PodDetails:
    """Snapshot of a single Pod, read fresh for every validation"""
    uid: str
    name: str
    namespace: str
    resource_version: str
    phase: PodPhase
    owner_references: List[OwnerReference] = field(default_factory=list)
    container_statuses: List[ContainerStatus] = field(default_factory=list)
    creation_timestamp: Optional[datetime] = None
    deletion_timestamp: Optional[datetime] = None

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def has_owner(self) -> bool:
        return len(self.owner_references) > 0

    @property
    def is_deleting(self) -> bool:
        return self.deletion_timestamp is not None


@dataclass
class IterationReport:
    """Counts produced by one reconciliation pass"""
    iteration: int
    events_matched: int = 0
    candidates: int = 0
    deleted: int = 0
    dry_run: int = 0
    already_gone: int = 0
    delete_failed: int = 0
    errored: int = 0
    rejected: Dict[RejectReason, int] = field(default_factory=dict)
    fetch_failed: bool = False
    duration: float = 0.0

    def record_rejection(self, reason: RejectReason):
        self.rejected[reason] = self.rejected.get(reason, 0) + 1

    def record_outcome(self, outcome: RemediationOutcome):
        if outcome == RemediationOutcome.DELETED:
            self.deleted += 1
        elif outcome == RemediationOutcome.DRY_RUN:
            self.dry_run += 1
        elif outcome == RemediationOutcome.ALREADY_GONE:
            self.already_gone += 1
        else:
            self.delete_failed += 1

    def as_dict(self) -> Dict[str, Any]:
        return {
            'iteration': self.iteration,
            'events_matched': self.events_matched,
            'candidates': self.candidates,
            'deleted': self.deleted,
            'dry_run': self.dry_run,
            'already_gone': self.already_gone,
            'delete_failed': self.delete_failed,
            'errored': self.errored,
            'rejected': {r.value: n for r, n in self.rejected.items()},
            'fetch_failed': self.fetch_failed,
            'duration': round(self.duration, 3),
        }
