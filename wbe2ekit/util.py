"""Scenario helpers: network definitions, range checks and pool validation."""

from __future__ import annotations

import ipaddress
import json
import os
from collections.abc import Mapping, Sequence
from typing import Any

from wbe2ekit.clientinfo import ClientInfo
from wbe2ekit.entities import (
    pod_network_selection_elements,
    replica_set_object,
    replica_set_query,
)
from wbe2ekit.waiters import (
    IPAMReader,
    get_node_subnet,
    wait_for_replica_set_steady_state,
    wait_for_zero_ip_pool_allocations,
    wait_for_zero_ip_pool_allocations_across_node_slices,
)

Manifest = Mapping[str, Any]

CREATE_POD_TIMEOUT = 10.0
RS_STEADY_TIMEOUT = 1200.0
ZERO_IP_POOL_TIMEOUT = 120.0


class ValidationError(Exception):
    """Raised when the cluster state does not match what a scenario expects."""


def allocation_for_pod_ref(pod_ref: str, ip_pool: Manifest) -> Manifest | None:
    """Return the first allocation of the pool that belongs to ``pod_ref``."""
    allocations = (ip_pool.get("spec") or {}).get("allocations") or {}
    return next(
        (a for a in allocations.values() if a.get("podRef") == pod_ref), None
    )


def cluster_config(environ: Mapping[str, str] | None = None) -> str:
    """Return the kubeconfig path named by ``KUBECONFIG``."""
    env = os.environ if environ is None else environ
    try:
        path = env["KUBECONFIG"]
    except KeyError:
        raise ValidationError(
            "must provide the path to the kubeconfig via the `KUBECONFIG` env variable"
        ) from None
    if not os.path.isfile(path):
        raise FileNotFoundError(path)
    return path


def pod_tier_label(pod_tier: str) -> dict[str, str]:
    """Return the ``tier`` label for a pod."""
    return {"tier": pod_tier}


def validate_node_slice_pool_slices_created_and_nodes_assigned(
    nodeslice_name: str,
    node_slice_namespace: str,
    expected_subnets: int,
    client_info: ClientInfo,
) -> None:
    """Check the slice count, that slices are unique, and every node has one."""
    node_slice = client_info.get_node_slice_pool(nodeslice_name, node_slice_namespace)
    allocations = (node_slice.get("status") or {}).get("allocations") or []
    if len(allocations) != expected_subnets:
        raise ValidationError(
            f"expected allocations {expected_subnets} but got allocations {len(allocations)}"
        )
    ranges: set[str] = set()
    nodes: set[str] = set()
    for allocation in allocations:
        slice_range = allocation.get("sliceRange", "")
        node_name = allocation.get("nodeName", "")
        if slice_range in ranges:
            raise ValidationError(f"error allocation has duplication in subnet {slice_range}")
        if node_name and node_name in nodes:
            raise ValidationError(f"error allocation has duplication in nodes {node_name}")
        ranges.add(slice_range)
        nodes.add(node_name)
    for node in client_info.cluster.list_nodes():
        name = (node.get("metadata") or {}).get("name", "")
        if name not in nodes:
            raise ValidationError(f"node not assigned to slice {name}")


def check_zero_ip_pool_allocations_and_replicas(
    client_info: ClientInfo,
    ipam: IPAMReader,
    rs_name: str,
    namespace: str,
    ip_pool_cidr: str,
    *network_names: str,
) -> None:
    """Scale the replica set to zero, then wait for the pools to empty.

    ``ipam`` must also carry ``node_slice_size`` and ``network_name``.
    """
    replica_set = client_info.update_replica_set(
        replica_set_object(
            0,
            rs_name,
            namespace,
            pod_tier_label(rs_name),
            pod_network_selection_elements(*network_names),
        )
    )
    wait_for_replica_set_steady_state(
        client_info.cluster,
        namespace,
        replica_set_query(rs_name),
        replica_set,
        RS_STEADY_TIMEOUT,
    )
    if not ipam.node_slice_size:
        wait_for_zero_ip_pool_allocations(ipam, ip_pool_cidr, ZERO_IP_POOL_TIMEOUT)
    else:
        wait_for_zero_ip_pool_allocations_across_node_slices(
            client_info.cluster,
            ipam,
            ip_pool_cidr,
            ipam.network_name,
            ZERO_IP_POOL_TIMEOUT,
        )


def generate_net_attach_def_spec(name: str, namespace: str, config: str) -> dict[str, Any]:
    """Return a network attachment definition holding ``config``."""
    return {
        "apiVersion": "v1",
        "kind": "NetworkAttachmentDefinition",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"config": config},
    }


def _macvlan_config(ipam: dict[str, Any]) -> str:
    config = {
        "cniVersion": "0.3.0",
        "disableCheck": True,
        "plugins": [
            {
                "type": "macvlan",
                "master": "eth0",
                "mode": "bridge",
                "ipam": ipam,
            }
        ],
    }
    return json.dumps(config, indent=4)


def _base_ipam(ip_range: str) -> dict[str, Any]:
    return {
        "type": "whereabouts",
        "leader_lease_duration": 1500,
        "leader_renew_deadline": 1000,
        "leader_retry_period": 500,
        "range": ip_range,
    }


def macvlan_network_with_whereabouts_ipam_network(
    network_name: str,
    namespace_name: str,
    ip_range: str,
    ip_ranges: Sequence[str],
    pool_name: str,
    enable_overlapping_ranges: bool,
) -> dict[str, Any]:
    """Return a macvlan network using whereabouts IPAM over the ranges."""
    ipam = _base_ipam(ip_range)
    ipam.update(
        {
            "ipRanges": json.loads(create_ip_ranges(ip_ranges)),
            "log_level": "debug",
            "log_file": "/tmp/wb",
            "network_name": pool_name,
            "enable_overlapping_ranges": bool(enable_overlapping_ranges),
        }
    )
    return generate_net_attach_def_spec(network_name, namespace_name, _macvlan_config(ipam))


def macvlan_network_with_node_slice(
    network_name: str,
    namespace_name: str,
    ip_range: str,
    pool_name: str,
    slice_size: str,
) -> dict[str, Any]:
    """Return a macvlan network whose range is sliced per node."""
    ipam = _base_ipam(ip_range)
    ipam.update(
        {
            "log_level": "debug",
            "log_file": "/tmp/wb",
            "network_name": pool_name,
            "node_slice_size": slice_size,
        }
    )
    return generate_net_attach_def_spec(network_name, namespace_name, _macvlan_config(ipam))


def in_node_range(
    client_info: ClientInfo, node_name: str, slice_name: str, namespace: str, ip: str
) -> None:
    """Raise unless ``ip`` lies in the slice assigned to ``node_name``."""
    cidr = get_node_subnet(client_info.cluster, node_name, slice_name, namespace)
    in_range(cidr, ip)


def in_range(cidr: str, ip: str) -> None:
    """Raise ``ValidationError`` unless ``ip`` lies within ``cidr``."""
    network = ipaddress.ip_network(cidr, strict=False)
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        address = None
    if address is not None and address in network:
        return
    raise ValidationError(f"ip [{ip}] is NOT in range {cidr}")


def create_ip_ranges(ranges: Sequence[str]) -> str:
    """Return the JSON list of ``{"range": ...}`` objects for the ranges."""
    return "[" + ",".join(f'{{"range": "{r}"}}' for r in ranges) + "]"