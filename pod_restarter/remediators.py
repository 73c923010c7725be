import logging

from pod_restarter.k8s_client import DeleteError, FetchError, PodNotFoundError
from pod_restarter.models import RemediationOutcome

logger = logging.getLogger(__name__)


class PodRemediator:
    """Deletes validated Pods so their controller can recreate them"""

    def __init__(self, kube, dry_run: bool = False):
        self.kube = kube
        self.dry_run = dry_run

    def remediate(self, name: str, namespace: str) -> RemediationOutcome:
        self._log_evidence(name, namespace)

        if self.dry_run:
            logger.info(f"[DRY-RUN]: Would have deleted Pod: {namespace}/{name}")
            return RemediationOutcome.DRY_RUN

        try:
            self.kube.delete_pod(name, namespace)
        except PodNotFoundError:
            logger.info(f"Pod {namespace}/{name} disappeared before it could be deleted")
            return RemediationOutcome.ALREADY_GONE
        except DeleteError as e:
            logger.error(f"Failed to delete Pod {namespace}/{name}: {e}")
            return RemediationOutcome.FAILED

        logger.info(f"DELETED Pod {namespace}/{name}")
        return RemediationOutcome.DELETED

    def _log_evidence(self, name: str, namespace: str):
        """Log the Pod's recent Events at debug level"""
        if not logger.isEnabledFor(logging.DEBUG):
            return
        try:
            events = self.kube.get_pod_events(name, namespace)
        except FetchError as e:
            logger.debug(f"No evidence available for {namespace}/{name}: {e}")
            return
        for event in events:
            logger.debug(
                f"{namespace}/{name} [{event.event_type}] {event.reason}: {event.message} "
                f"(last seen {event.last_timestamp})"
            )
