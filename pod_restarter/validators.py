import logging
from typing import Optional

from pod_restarter.detectors import classify_pod_health
from pod_restarter.k8s_client import FetchError, PodNotFoundError
from pod_restarter.models import HealthState, RejectReason

logger = logging.getLogger(__name__)


def pod_checks(kube, name: str, namespace: str) -> Optional[RejectReason]:
    """Decide whether a candidate Pod may be deleted.

    Runs, in order and stopping at the first failure:
    1. the Pod still exists
    2. the Pod has an owner/controller
    3. the Pod is not already being deleted
    4. the Pod is not healthy

    Returns None when the Pod is eligible for deletion, otherwise the
    RejectReason of the failing check.
    """
    try:
        pod = kube.get_pod(name, namespace)
    except PodNotFoundError:
        logger.info(f"Pod {namespace}/{name} does not exist anymore")
        return RejectReason.GONE
    except FetchError as e:
        logger.error(f"Could not read Pod {namespace}/{name}: {e}")
        return RejectReason.FETCH_FAILED

    if not pod.has_owner:
        logger.info(f"Pod does not have owner/controller: {pod.key}")
        return RejectReason.NO_OWNER

    if pod.is_deleting:
        logger.info(f"Pod has already been scheduled to be deleted: {pod.key} ({pod.deletion_timestamp})")
        return RejectReason.ALREADY_DELETING

    if classify_pod_health(pod) == HealthState.HEALTHY:
        logger.info(f"Pod is in a Healthy State: {pod.key}")
        return RejectReason.ALREADY_HEALTHY

    logger.info(f"Pod is in a {pod.phase.value} state and is eligible for deletion: {pod.key}")
    return None
