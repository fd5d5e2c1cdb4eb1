"""Builders for the Kubernetes objects used by the end-to-end scenarios.

Objects are plain manifest dictionaries, ready to be serialised to JSON or
handed to an API client.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

TEST_IMAGE = "quay.io/dougbtv/alpine:latest"
NETWORK_ATTACHMENT_ANNOT = "k8s.v1.cni.cncf.io/networks"
SAMPLE_POD_NAME = "samplepod"

Manifest = dict[str, Any]


def _container_command() -> list[str]:
    return ["/bin/ash", "-c", "trap : TERM INT; sleep infinity & wait"]


def _pod_spec(container_name: str) -> Manifest:
    return {
        "containers": [
            {
                "name": container_name,
                "command": _container_command(),
                "image": TEST_IMAGE,
            }
        ]
    }


def _object_meta(**fields: Any) -> Manifest:
    """Build object metadata, leaving out unset fields and copying mappings."""
    meta: Manifest = {}
    for key, value in fields.items():
        if value is None:
            continue
        meta[key] = dict(value) if isinstance(value, Mapping) else value
    return meta


def _pod_meta(
    pod_name: str,
    namespace: str,
    labels: Mapping[str, str] | None,
    annotations: Mapping[str, str] | None,
) -> Manifest:
    return _object_meta(
        name=pod_name, namespace=namespace, labels=labels, annotations=annotations
    )


def pod_object(
    pod_name: str,
    namespace: str,
    labels: Mapping[str, str] | None,
    annotations: Mapping[str, str] | None,
) -> Manifest:
    """Return a single-container sleeping pod."""
    return {
        "metadata": _pod_meta(pod_name, namespace, labels, annotations),
        "spec": _pod_spec(SAMPLE_POD_NAME),
    }


def stateful_set_spec(
    stateful_set_name: str,
    namespace: str,
    service_name: str,
    replica_number: int,
    annotations: Mapping[str, str] | None,
) -> Manifest:
    """Return a stateful set whose pods start in parallel."""
    web_app_labels = {"app": service_name}
    return {
        "metadata": {"name": service_name},
        "spec": {
            "replicas": int(replica_number),
            "selector": {"matchLabels": dict(web_app_labels)},
            "template": {
                "metadata": _pod_meta(
                    stateful_set_name, namespace, web_app_labels, annotations
                ),
                "spec": _pod_spec(stateful_set_name),
            },
            "serviceName": service_name,
            "podManagementPolicy": "Parallel",
        },
    }


def replica_set_object(
    replica_count: int,
    rs_name: str,
    namespace: str,
    labels: Mapping[str, str] | None,
    annotations: Mapping[str, str] | None,
) -> Manifest:
    """Return a replica set of sleeping pods selected by ``labels``."""
    return {
        "apiVersion": "v1",
        "kind": "ReplicaSet",
        "metadata": _object_meta(name=rs_name, namespace=namespace, labels=labels),
        "spec": {
            "replicas": int(replica_count),
            "selector": _object_meta(matchLabels=labels),
            "template": {
                "metadata": _object_meta(
                    labels=labels, annotations=annotations, namespace=namespace
                ),
                "spec": _pod_spec(SAMPLE_POD_NAME),
            },
        },
    }


def replica_set_query(rs_name: str) -> str:
    """Return the label selector matching the pods of a replica set."""
    return "tier=" + rs_name


def pod_network_selection_elements(*network_names: str) -> dict[str, str]:
    """Return the annotations attaching a pod to the given networks."""
    return {NETWORK_ATTACHMENT_ANNOT: ",".join(network_names)}