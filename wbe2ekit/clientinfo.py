"""High-level cluster operations used by the end-to-end scenarios."""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from wbe2ekit.entities import (
    pod_network_selection_elements,
    pod_object,
    replica_set_object,
    replica_set_query,
    stateful_set_spec,
)
from wbe2ekit.waiters import (
    Cluster,
    NotFoundError,
    is_stateful_set_ready_predicate,
    wait_for_node_slice_ready,
    wait_for_pod_by_selector,
    wait_for_pod_ready,
    wait_for_pod_to_disappear,
    wait_for_replica_set_to_disappear,
    wait_for_stateful_set_condition,
    wait_for_stateful_set_gone,
)

Manifest = Mapping[str, Any]

CREATE_TIMEOUT = 10.0
DELETE_TIMEOUT = 2 * CREATE_TIMEOUT
RS_CREATE_TIMEOUT = 600.0
NODE_SLICE_CREATE_TIMEOUT = 5.0
POD_CREATE_TIMEOUT = 10.0
POD_DELETE_TIMEOUT = 20.0
RS_DELETE_TIMEOUT = 2 * RS_CREATE_TIMEOUT
STATEFUL_SET_CREATE_TIMEOUT = 60 * CREATE_TIMEOUT
STATEFUL_SET_DELETE_TIMEOUT = 6 * DELETE_TIMEOUT

# Delete at once and keep the owner until its pods are gone.
FOREGROUND_IMMEDIATE_DELETE: dict[str, Any] = {
    "gracePeriodSeconds": 0,
    "propagationPolicy": "Foreground",
}


class ClusterClient(Cluster, Protocol):
    """The read and write operations the scenarios need from a cluster."""

    def create_pod(self, namespace: str, pod: Manifest) -> Manifest: ...

    def delete_pod(self, namespace: str, name: str) -> None: ...

    def create_replica_set(self, namespace: str, replica_set: Manifest) -> Manifest: ...

    def update_replica_set(self, namespace: str, replica_set: Manifest) -> Manifest: ...

    def delete_replica_set(self, namespace: str, name: str) -> None: ...

    def create_stateful_set(self, namespace: str, stateful_set: Manifest) -> Manifest: ...

    def update_stateful_set(self, namespace: str, stateful_set: Manifest) -> Manifest: ...

    def delete_stateful_set(
        self, namespace: str, name: str, options: Mapping[str, Any]
    ) -> None: ...

    def create_net_attach_def(self, namespace: str, net_attach_def: Manifest) -> Manifest: ...

    def delete_net_attach_def(self, namespace: str, name: str) -> None: ...


def _meta(obj: Manifest, key: str) -> Any:
    return (obj.get("metadata") or {}).get(key, "")


@dataclass
class ClientInfo:
    """Provisions and tears down the objects a scenario uses."""

    cluster: ClusterClient

    def get_node_slice_pool(self, name: str, namespace: str) -> Manifest:
        """Wait for the node slice pool to exist and return it."""
        wait_for_node_slice_ready(
            self.cluster, namespace, name, NODE_SLICE_CREATE_TIMEOUT
        )
        return self.cluster.get_node_slice_pool(namespace, name)

    def add_net_attach_def(self, net_attach_def: Manifest) -> Manifest:
        """Create a network attachment definition in its own namespace."""
        return self.cluster.create_net_attach_def(
            _meta(net_attach_def, "namespace"), net_attach_def
        )

    def del_net_attach_def(self, net_attach_def: Manifest) -> None:
        """Delete a network attachment definition."""
        self.cluster.delete_net_attach_def(
            _meta(net_attach_def, "namespace"), _meta(net_attach_def, "name")
        )

    def node_slice_deleted(self, name: str, namespace: str) -> None:
        """Raise unless the node slice pool is gone."""
        try:
            self.cluster.get_node_slice_pool(namespace, name)
        except NotFoundError:
            return
        except Exception as exc:
            raise RuntimeError("expected not found nodeslice") from exc
        raise RuntimeError("expected not found nodeslice")

    def provision_pod(
        self,
        pod_name: str,
        namespace: str,
        labels: Mapping[str, str] | None,
        annotations: Mapping[str, str] | None,
    ) -> Manifest:
        """Create a pod, wait for it to run and return its current state."""
        manifest = pod_object(pod_name, namespace, labels, annotations)
        created = self.cluster.create_pod(namespace, manifest)
        created_ns, created_name = _meta(created, "namespace"), _meta(created, "name")
        wait_for_pod_ready(self.cluster, created_ns, created_name, POD_CREATE_TIMEOUT)
        return self.cluster.get_pod(created_ns, created_name)

    def delete_pod(self, pod: Manifest) -> None:
        """Delete a pod and wait for it to disappear."""
        namespace, name = _meta(pod, "namespace"), _meta(pod, "name")
        self.cluster.delete_pod(namespace, name)
        wait_for_pod_to_disappear(self.cluster, namespace, name, POD_DELETE_TIMEOUT)

    def provision_replica_set(
        self,
        rs_name: str,
        namespace: str,
        replica_count: int,
        labels: Mapping[str, str] | None,
        annotations: Mapping[str, str] | None,
    ) -> Manifest:
        """Create a replica set, wait for its pods and return its state."""
        created = self.cluster.create_replica_set(
            namespace,
            replica_set_object(replica_count, rs_name, namespace, labels, annotations),
        )
        wait_for_pod_by_selector(
            self.cluster, namespace, replica_set_query(rs_name), RS_CREATE_TIMEOUT
        )
        return self.cluster.get_replica_set(namespace, _meta(created, "name"))

    def update_replica_set(self, replica_set: Manifest) -> Manifest:
        """Replace a replica set with the given manifest."""
        return self.cluster.update_replica_set(_meta(replica_set, "namespace"), replica_set)

    def delete_replica_set(self, replica_set: Manifest) -> None:
        """Delete a replica set and wait for it to disappear."""
        namespace, name = _meta(replica_set, "namespace"), _meta(replica_set, "name")
        self.cluster.delete_replica_set(namespace, name)
        wait_for_replica_set_to_disappear(self.cluster, namespace, name, RS_DELETE_TIMEOUT)

    def provision_stateful_set(
        self,
        stateful_set_name: str,
        namespace: str,
        service_name: str,
        replicas: int,
        *network_names: str,
    ) -> Manifest:
        """Create a stateful set attached to the networks and wait until ready."""
        created = self.cluster.create_stateful_set(
            namespace,
            stateful_set_spec(
                stateful_set_name,
                namespace,
                service_name,
                replicas,
                pod_network_selection_elements(*network_names),
            ),
        )
        wait_for_stateful_set_condition(
            self.cluster,
            namespace,
            service_name,
            replicas,
            STATEFUL_SET_CREATE_TIMEOUT,
            is_stateful_set_ready_predicate,
        )
        return created

    def delete_stateful_set(
        self, namespace: str, service_name: str, label_selector: str
    ) -> None:
        """Delete a stateful set at once and wait for it and its pods to go."""
        self.cluster.delete_stateful_set(
            namespace, service_name, dict(FOREGROUND_IMMEDIATE_DELETE)
        )
        wait_for_stateful_set_gone(
            self.cluster,
            namespace,
            service_name,
            label_selector,
            STATEFUL_SET_DELETE_TIMEOUT,
        )

    def scale_stateful_set(
        self, stateful_set_name: str, namespace: str, delta_instance: int
    ) -> None:
        """Change the replica count of a stateful set by ``delta_instance``."""
        stateful_set = copy.deepcopy(
            dict(self.cluster.get_stateful_set(namespace, stateful_set_name))
        )
        spec = stateful_set.setdefault("spec", {})
        spec["replicas"] = int(spec.get("replicas") or 0) + int(delta_instance)
        self.cluster.update_stateful_set(namespace, stateful_set)