"""Polling helpers that wait for cluster objects to reach a wanted state.

The cluster is reached through a small client interface (``Cluster``) whose
objects are plain manifest dictionaries; IP pools are read through an
``IPAMReader``.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from datetime import timedelta
from typing import Any, Protocol, Union

from wbe2ekit.poolconsistency import IPPool

Manifest = Mapping[str, Any]
Duration = Union[float, int, timedelta]
StatefulSetPredicate = Callable[[Manifest, int], bool]

UNNAMED_NETWORK = ""
DEFAULT_POLL_INTERVAL = 1.0


class NotFoundError(LookupError):
    """Raised when a requested object does not exist."""


class PoolNotInitializedError(LookupError):
    """Raised when an IP pool has not been created yet."""


class WaitTimeoutError(TimeoutError):
    """Raised when a condition is not met before the time limit."""


class PodPhaseError(RuntimeError):
    """Raised when a pod reaches a terminal phase instead of running."""


class Cluster(Protocol):
    """The read operations the waiters need from a cluster client."""

    def get_pod(self, namespace: str, name: str) -> Manifest: ...

    def list_pods(self, namespace: str, selector: str) -> Sequence[Manifest]: ...

    def get_replica_set(self, namespace: str, name: str) -> Manifest: ...

    def get_stateful_set(self, namespace: str, name: str) -> Manifest: ...

    def get_node_slice_pool(self, namespace: str, name: str) -> Manifest: ...

    def list_nodes(self) -> Sequence[Manifest]: ...


class IPAMReader(Protocol):
    """Reads IP pools by range, network name and, for node slices, node."""

    def get_ip_pool(
        self, ip_range: str, network_name: str, node_name: str = ""
    ) -> IPPool: ...


def _seconds(duration: Duration) -> float:
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    return float(duration)


def _field(obj: Manifest | None, *path: str, default: Any = None) -> Any:
    current: Any = obj
    for key in path:
        if not isinstance(current, Mapping):
            return default
        current = current.get(key)
    return default if current is None else current


def poll_until(
    condition: Callable[[], bool],
    timeout: Duration,
    interval: Duration = DEFAULT_POLL_INTERVAL,
) -> None:
    """Call ``condition`` now and then every ``interval`` until it is true.

    Exceptions raised by ``condition`` end the wait and propagate.
    """
    limit = _seconds(timeout)
    step = _seconds(interval)
    deadline = time.monotonic() + limit
    while True:
        if condition():
            return
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise WaitTimeoutError(f"condition not met within {limit} seconds")
        time.sleep(min(step, remaining))


def list_pods(cluster: Cluster, namespace: str, selector: str) -> list[Manifest]:
    """Return the pods in ``namespace`` matching the label selector."""
    return list(cluster.list_pods(namespace, selector))


def _is_pod_running(cluster: Cluster, namespace: str, pod_name: str) -> bool:
    pod = cluster.get_pod(namespace, pod_name)
    phase = _field(pod, "status", "phase", default="")
    if phase == "Running":
        return True
    if phase == "Failed":
        raise PodPhaseError("pod failed")
    if phase == "Succeeded":
        raise PodPhaseError("pod succeeded")
    return False


def wait_for_pod_ready(
    cluster: Cluster, namespace: str, pod_name: str, timeout: Duration
) -> None:
    """Wait for the pod to be running; a terminal phase is an error."""
    poll_until(lambda: _is_pod_running(cluster, namespace, pod_name), timeout)


def _is_pod_gone(cluster: Cluster, namespace: str, pod_name: str) -> bool:
    try:
        cluster.get_pod(namespace, pod_name)
    except NotFoundError:
        return True
    return False


def wait_for_pod_to_disappear(
    cluster: Cluster, namespace: str, pod_name: str, timeout: Duration
) -> None:
    """Wait until the pod can no longer be found."""
    poll_until(lambda: _is_pod_gone(cluster, namespace, pod_name), timeout)


def wait_for_pod_by_selector(
    cluster: Cluster, namespace: str, selector: str, timeout: Duration
) -> None:
    """Wait for every pod matching ``selector`` to be running."""
    for pod in list_pods(cluster, namespace, selector):
        wait_for_pod_ready(cluster, namespace, _field(pod, "metadata", "name"), timeout)


def _is_replica_set_synchronized(replica_set: Manifest, pods: Sequence[Manifest]) -> bool:
    wanted = _field(replica_set, "spec", "replicas", default=0)
    ready = _field(replica_set, "status", "readyReplicas", default=0)
    return ready == wanted and len(pods) == wanted


def wait_for_replica_set_steady_state(
    cluster: Cluster,
    namespace: str,
    label: str,
    replica_set: Manifest,
    timeout: Duration,
) -> None:
    """Wait until ready replicas and matching pods both equal the spec."""
    name = _field(replica_set, "metadata", "name")

    def steady() -> bool:
        pods = list_pods(cluster, namespace, label)
        current = cluster.get_replica_set(namespace, name)
        return _is_replica_set_synchronized(current, pods)

    poll_until(steady, timeout)


def wait_for_replica_set_to_disappear(
    cluster: Cluster, namespace: str, rs_name: str, timeout: Duration
) -> None:
    """Wait until the replica set can no longer be found."""

    def gone() -> bool:
        try:
            cluster.get_replica_set(namespace, rs_name)
        except NotFoundError:
            return True
        return False

    poll_until(gone, timeout)


def wait_for_stateful_set_gone(
    cluster: Cluster,
    namespace: str,
    service_name: str,
    label_selector: str,
    timeout: Duration,
) -> None:
    """Wait until the stateful set has no replicas and its pods are gone."""

    def gone() -> bool:
        try:
            stateful_set: Manifest = cluster.get_stateful_set(namespace, service_name)
        except NotFoundError:
            stateful_set = {}
        pods = cluster.list_pods(namespace, label_selector)
        empty = _field(stateful_set, "status", "currentReplicas", default=0) == 0
        return empty and len(pods) == 0

    poll_until(gone, timeout)


def wait_for_stateful_set_condition(
    cluster: Cluster,
    namespace: str,
    service_name: str,
    expected_replicas: int,
    timeout: Duration,
    predicate: StatefulSetPredicate,
) -> None:
    """Wait until ``predicate`` holds for the stateful set."""

    def complies() -> bool:
        stateful_set = cluster.get_stateful_set(namespace, service_name)
        return predicate(stateful_set, expected_replicas)

    poll_until(complies, timeout)


def is_stateful_set_ready_predicate(stateful_set: Manifest, expected_replicas: int) -> bool:
    """True when exactly the expected number of replicas is ready."""
    return _field(stateful_set, "status", "readyReplicas", default=0) == expected_replicas


def is_stateful_set_degraded_predicate(
    stateful_set: Manifest, expected_replicas: int
) -> bool:
    """True when fewer replicas than expected are ready."""
    return _field(stateful_set, "status", "readyReplicas", default=0) < expected_replicas


def get_node_subnet(
    cluster: Cluster, node_name: str, slice_name: str, namespace: str
) -> str:
    """Return the slice range a node slice pool assigned to ``node_name``."""
    node_slice = cluster.get_node_slice_pool(namespace, slice_name)
    for allocation in _field(node_slice, "status", "allocations", default=[]):
        if allocation.get("nodeName") == node_name:
            return allocation.get("sliceRange", "")
    raise NotFoundError("slice range not found for node")


def wait_for_node_slice_ready(
    cluster: Cluster, namespace: str, node_slice_name: str, timeout: Duration
) -> None:
    """Wait until the node slice pool exists."""

    def ready() -> bool:
        try:
            cluster.get_node_slice_pool(namespace, node_slice_name)
        except NotFoundError:
            return False
        return True

    poll_until(ready, timeout)


def wait_for_zero_ip_pool_allocations(
    ipam: IPAMReader, ip_pool_cidr: str, timeout: Duration
) -> None:
    """Wait until the unnamed-network pool for the range has no allocations."""

    def empty() -> bool:
        try:
            pool = ipam.get_ip_pool(ip_pool_cidr, UNNAMED_NETWORK)
        except PoolNotInitializedError:
            return True
        return len(pool.allocations()) == 0

    poll_until(empty, timeout)


def wait_for_zero_ip_pool_allocations_across_node_slices(
    cluster: Cluster,
    ipam: IPAMReader,
    ip_pool_cidr: str,
    network_name: str,
    timeout: Duration,
) -> None:
    """Wait until the pools of every node hold no allocations."""

    def empty() -> bool:
        for node in cluster.list_nodes():
            node_name = _field(node, "metadata", "name", default="")
            try:
                pool = ipam.get_ip_pool(ip_pool_cidr, network_name, node_name)
            except PoolNotInitializedError:
                continue
            if pool.allocations():
                return False
        return True

    poll_until(empty, timeout)