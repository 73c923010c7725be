"""
Thin accessor over the Kubernetes core API.

Every cluster call the reconciler makes goes through KubeClient, which
translates ApiException and transport failures into the small error
taxonomy below and flattens API objects into pod_restarter.models.
"""

import logging
from typing import List, Optional

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from pod_restarter.models import (
    ContainerStatus,
    ContainerTermination,
    OwnerReference,
    PodDetails,
    PodEvent,
    PodPhase,
)

logger = logging.getLogger(__name__)

ALL_NAMESPACES = ""
DEFAULT_REQUEST_TIMEOUT = 30  # seconds


class ClusterError(Exception):
    """Base class for cluster access failures"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ClusterAuthError(ClusterError):
    """Credentials could not be loaded or the client could not be built"""


class FetchError(ClusterError):
    """A read (list events, get pod) failed"""


class PodNotFoundError(ClusterError):
    """The Pod does not exist (HTTP 404)"""


class DeleteError(ClusterError):
    """A delete failed for a reason other than not-found"""


def _status_of(exc: Exception) -> Optional[int]:
    return getattr(exc, 'status', None)


def _scope(namespace: str) -> str:
    return namespace if namespace else "all namespaces"


def parse_phase(value: Optional[str], pod_key: str = "") -> PodPhase:
    """Map a status.phase string onto PodPhase; unrecognized values become UNKNOWN"""
    try:
        return PodPhase(value)
    except ValueError:
        logger.warning(f"Pod {pod_key} reports unrecognized phase {value!r}, treating it as Unknown")
        return PodPhase.UNKNOWN


def pod_event_from_api(event) -> PodEvent:
    """Flatten a CoreV1Event into a PodEvent"""
    obj = event.involved_object
    last_seen = event.last_timestamp or event.event_time or event.first_timestamp
    return PodEvent(
        uid=obj.uid or "",
        pod_name=obj.name or "",
        pod_namespace=obj.namespace or "",
        resource_version=obj.resource_version or "",
        reason=event.reason or "",
        event_type=event.type or "",
        message=event.message or "",
        first_timestamp=event.first_timestamp,
        last_timestamp=last_seen,
    )


def _container_status_from_api(status) -> ContainerStatus:
    terminated = None
    if status.state and status.state.terminated:
        t = status.state.terminated
        terminated = ContainerTermination(exit_code=t.exit_code, reason=t.reason)
    return ContainerStatus(name=status.name, terminated=terminated)


def pod_details_from_api(pod) -> PodDetails:
    """Flatten a V1Pod into a PodDetails snapshot"""
    meta = pod.metadata
    status = pod.status
    key = f"{meta.namespace}/{meta.name}"
    owners = [
        OwnerReference(kind=o.kind, name=o.name, uid=o.uid or "")
        for o in (meta.owner_references or [])
    ]
    containers = [
        _container_status_from_api(c)
        for c in ((status.container_statuses if status else None) or [])
    ]
    return PodDetails(
        uid=meta.uid or "",
        name=meta.name,
        namespace=meta.namespace,
        resource_version=meta.resource_version or "",
        phase=parse_phase(status.phase if status else None, key),
        owner_references=owners,
        container_statuses=containers,
        creation_timestamp=meta.creation_timestamp,
        deletion_timestamp=meta.deletion_timestamp,
    )


class KubeClient:
    """Read/write accessor for Events and Pods"""

    def __init__(self, core_v1=None, request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.v1 = core_v1 if core_v1 is not None else client.CoreV1Api()
        self.request_timeout = request_timeout

    @classmethod
    def connect(cls, kubeconfig: Optional[str] = None, context: Optional[str] = None,
                request_timeout: float = DEFAULT_REQUEST_TIMEOUT) -> "KubeClient":
        """Load in-cluster credentials, falling back to a kubeconfig file"""
        try:
            config.load_incluster_config()
            logger.info("Running from INSIDE the cluster")
        except ConfigException:
            try:
                config.load_kube_config(config_file=kubeconfig, context=context)
            except (ConfigException, OSError) as e:
                raise ClusterAuthError(f"The kubeconfig cannot be loaded: {e}") from e
            logger.info(f"Running from OUTSIDE the cluster (kubeconfig: {kubeconfig or 'default'})")
        return cls(client.CoreV1Api(), request_timeout=request_timeout)

    def list_events(self, namespace: str = ALL_NAMESPACES) -> list:
        """Return the raw CoreV1Event items visible in the namespace scope"""
        try:
            if namespace == ALL_NAMESPACES:
                events = self.v1.list_event_for_all_namespaces(
                    _request_timeout=self.request_timeout)
            else:
                events = self.v1.list_namespaced_event(
                    namespace, _request_timeout=self.request_timeout)
        except (ApiException, urllib3.exceptions.HTTPError) as e:
            raise FetchError(
                f"Could not get Events in {_scope(namespace)}: {e}", _status_of(e)
            ) from e
        return events.items or []

    def get_pod_events(self, name: str, namespace: str) -> List[PodEvent]:
        """Return every Event recorded against one Pod"""
        try:
            events = self.v1.list_namespaced_event(
                namespace,
                field_selector=f"involvedObject.name={name}",
                _request_timeout=self.request_timeout,
            )
        except (ApiException, urllib3.exceptions.HTTPError) as e:
            raise FetchError(
                f"Could not go through Pod's Events: {namespace}/{name}: {e}", _status_of(e)
            ) from e
        return [pod_event_from_api(item) for item in (events.items or [])]

    def list_pods(self, namespace: str = ALL_NAMESPACES) -> List[PodDetails]:
        try:
            if namespace == ALL_NAMESPACES:
                pods = self.v1.list_pod_for_all_namespaces(
                    _request_timeout=self.request_timeout)
            else:
                pods = self.v1.list_namespaced_pod(
                    namespace, _request_timeout=self.request_timeout)
        except (ApiException, urllib3.exceptions.HTTPError) as e:
            raise FetchError(
                f"Could not get a list of Pods in {_scope(namespace)}: {e}", _status_of(e)
            ) from e
        return [pod_details_from_api(p) for p in (pods.items or [])]

    def get_pod(self, name: str, namespace: str) -> PodDetails:
        """Read a fresh snapshot of one Pod"""
        try:
            pod = self.v1.read_namespaced_pod(
                name=name, namespace=namespace, _request_timeout=self.request_timeout)
        except ApiException as e:
            if e.status == 404:
                raise PodNotFoundError(
                    f"Pod {namespace}/{name} does not exist anymore", 404) from e
            raise FetchError(f"Error getting pod {namespace}/{name}: {e.reason}", e.status) from e
        except urllib3.exceptions.HTTPError as e:
            raise FetchError(f"Pod {namespace}/{name} has a problem: {e}") from e
        return pod_details_from_api(pod)

    def delete_pod(self, name: str, namespace: str):
        try:
            self.v1.delete_namespaced_pod(
                name=name, namespace=namespace, _request_timeout=self.request_timeout)
        except ApiException as e:
            if e.status == 404:
                raise PodNotFoundError(
                    f"Pod {namespace}/{name} does not exist anymore", 404) from e
            raise DeleteError(f"Error deleting pod {namespace}/{name}: {e.reason}", e.status) from e
        except urllib3.exceptions.HTTPError as e:
            raise DeleteError(f"Error deleting pod {namespace}/{name}: {e}") from e
