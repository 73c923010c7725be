from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from kubernetes.client import (
    CoreV1Event,
    V1ContainerState,
    V1ContainerStateRunning,
    V1ContainerStateTerminated,
    V1ContainerStateWaiting,
    V1ContainerStatus,
    V1ObjectMeta,
    V1ObjectReference,
    V1OwnerReference,
    V1Pod,
    V1PodStatus,
)

from pod_restarter.config import ReconcilerConfig
from pod_restarter.k8s_client import KubeClient, PodNotFoundError, pod_details_from_api

SANDBOX_REASON = "FailedCreatePodSandBox"
SANDBOX_MESSAGE = (
    "Failed to create pod sandbox: rpc error: code = Unknown desc = failed to setup network "
    "for sandbox: container veth name provided (eth0) already exists"
)
VETH_SUBSTRING = "container veth name provided (eth0) already exists"


def utcnow():
    return datetime.now(timezone.utc)


def make_event(pod_name="foo", namespace="default", uid="u1", reason=SANDBOX_REASON,
               message=SANDBOX_MESSAGE, event_type="Warning", kind="Pod",
               last_seen=None, first_seen=None, event_time=None):
    last_seen = last_seen if last_seen is not None else utcnow()
    return CoreV1Event(
        metadata=V1ObjectMeta(name=f"{pod_name}.17a2b3c4", namespace=namespace),
        involved_object=V1ObjectReference(
            kind=kind, name=pod_name, namespace=namespace, uid=uid,
            api_version="v1", resource_version="100",
        ),
        reason=reason,
        message=message,
        type=event_type,
        count=1,
        first_timestamp=first_seen or last_seen,
        last_timestamp=last_seen,
        event_time=event_time,
    )


def running_container(name="app"):
    return V1ContainerStatus(
        name=name, image="nginx", image_id="", ready=True, restart_count=0,
        state=V1ContainerState(running=V1ContainerStateRunning(started_at=utcnow())),
    )


def waiting_container(name="app", reason="ContainerCreating"):
    return V1ContainerStatus(
        name=name, image="nginx", image_id="", ready=False, restart_count=0,
        state=V1ContainerState(waiting=V1ContainerStateWaiting(reason=reason)),
    )


def terminated_container(name="app", reason="Completed", exit_code=0):
    return V1ContainerStatus(
        name=name, image="nginx", image_id="", ready=False, restart_count=0,
        state=V1ContainerState(
            terminated=V1ContainerStateTerminated(reason=reason, exit_code=exit_code)),
    )


def replicaset_owner(name="foo-6d4b75cb6d"):
    return V1OwnerReference(api_version="apps/v1", kind="ReplicaSet", name=name, uid="rs-1",
                            controller=True)


def make_pod(name="foo", namespace="default", uid="u1", phase="Pending", owners=None,
             containers=None, deleting=False):
    return V1Pod(
        metadata=V1ObjectMeta(
            name=name,
            namespace=namespace,
            uid=uid,
            resource_version="100",
            owner_references=[replicaset_owner()] if owners is None else owners,
            creation_timestamp=utcnow() - timedelta(minutes=2),
            deletion_timestamp=utcnow() if deleting else None,
        ),
        status=V1PodStatus(phase=phase, container_statuses=containers),
    )


def make_details(**kwargs):
    return pod_details_from_api(make_pod(**kwargs))


class FakeCluster:
    """In-memory stand-in for the cluster behind a MagicMock KubeClient"""

    def __init__(self):
        self.events = []
        self.pods = {}
        self.kube = MagicMock(spec=KubeClient)
        self.kube.list_events.side_effect = lambda namespace="": [
            e for e in self.events
            if not namespace or e.involved_object.namespace == namespace
        ]
        self.kube.get_pod.side_effect = self._get_pod
        self.kube.delete_pod.side_effect = self._delete_pod
        self.kube.get_pod_events.return_value = []

    def add_pod(self, pod):
        self.pods[(pod.metadata.namespace, pod.metadata.name)] = pod

    def _get_pod(self, name, namespace):
        try:
            return pod_details_from_api(self.pods[(namespace, name)])
        except KeyError:
            raise PodNotFoundError(f"Pod {namespace}/{name} does not exist anymore", 404)

    def _delete_pod(self, name, namespace):
        if self.pods.pop((namespace, name), None) is None:
            raise PodNotFoundError(f"Pod {namespace}/{name} does not exist anymore", 404)


@pytest.fixture
def cluster():
    return FakeCluster()


@pytest.fixture
def cfg():
    return ReconcilerConfig(
        reason=SANDBOX_REASON,
        message=VETH_SUBSTRING,
        namespace="",
        polling_interval=30,
        grace_period=5,
        dry_run=False,
    )
