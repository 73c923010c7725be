import logging
import time
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from pod_restarter.models import HealthState, PodDetails, PodEvent, PodPhase
from pod_restarter.k8s_client import pod_event_from_api

logger = logging.getLogger(__name__)

COMPLETED = "Completed"


@contextmanager
def time_track(name: str):
    """Log how long the wrapped block took"""
    start = time.monotonic()
    try:
        yield
    finally:
        logger.debug(f"{name} ran in {time.monotonic() - start:.3f}s")


def match_events(events: Iterable, reason: str, message: str) -> List[PodEvent]:
    """Keep Pod Events whose reason equals `reason` and whose message contains `message`"""
    matched = []
    for event in events:
        obj = event.involved_object
        if obj is not None and obj.kind not in (None, "Pod"):
            continue
        if event.reason == reason and message in (event.message or ""):
            matched.append(pod_event_from_api(event))
    return matched


def remove_older_events(events: List[PodEvent], iteration: int, polling_interval: float,
                        now: Optional[datetime] = None) -> List[PodEvent]:
    """Drop events last seen before the previous poll window.

    The first iteration looks at everything the cluster still retains.
    """
    if iteration == 0:
        return events
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=polling_interval)
    latest = []
    for event in events:
        if event.last_timestamp is None or event.last_timestamp < cutoff:
            continue
        latest.append(event)
    return latest


def unique_pods(events: Iterable[PodEvent]) -> Dict[str, str]:
    """Reduce events to a Pod name -> namespace map, one entry per Pod UID"""
    pods: Dict[str, str] = {}
    seen_uids = set()
    for event in events:
        if event.uid in seen_uids:
            continue
        pods[event.pod_name] = event.pod_namespace
        seen_uids.add(event.uid)
    return pods


def discover_candidates(kube, cfg, iteration: int, now: Optional[datetime] = None):
    """Return (matched event count, candidate map) for one iteration.

    FetchError from the Event list propagates to the caller.
    """
    with time_track("discover_candidates"):
        raw = kube.list_events(cfg.namespace)
        events = match_events(raw, cfg.reason, cfg.message)
        events = remove_older_events(events, iteration, cfg.polling_interval, now=now)
        logger.info(f"There is a total of {len(events)} Events with Reason: {cfg.reason}")

        candidates = unique_pods(events)
        logger.info(f"There is a total of {len(candidates)} Pods with Reason: {cfg.reason}")
    return len(events), candidates


def classify_pod_health(pod: PodDetails) -> HealthState:
    """Classify a Pod snapshot as healthy or unhealthy from its phase and containers"""
    phase = pod.phase
    if phase in (PodPhase.PENDING, PodPhase.FAILED, PodPhase.UNKNOWN):
        logger.debug(f"Pod is in a {phase.value} state: {pod.key}")
        return HealthState.UNHEALTHY
    if phase == PodPhase.SUCCEEDED:
        logger.debug(f"Pod is in a {phase.value} state: {pod.key}")
        return HealthState.HEALTHY
    if phase == PodPhase.RUNNING:
        if not pod.container_statuses:
            logger.info(f"Pod is in a Running state but reports no container statuses: {pod.key}")
            return HealthState.HEALTHY
        for container in pod.container_statuses:
            terminated = container.terminated
            if terminated is None:
                continue
            if terminated.reason == COMPLETED and terminated.exit_code == 0:
                continue
            logger.debug(
                f"Pod is in a Running state and container {container.name} terminated "
                f"({terminated.reason}, exit code {terminated.exit_code}): {pod.key}"
            )
            return HealthState.UNHEALTHY
        logger.debug(f"Pod is in a Running state and is healthy: {pod.key}")
        return HealthState.HEALTHY
    raise ValueError(f"Unhandled pod phase {phase!r} for {pod.key}")
