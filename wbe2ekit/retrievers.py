"""Read the secondary-interface addresses a pod was given."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

NETWORK_STATUS_ANNOT = "k8s.v1.cni.cncf.io/network-status"


class RetrievalError(Exception):
    """Raised when a pod's network status cannot yield the requested IPs."""


def _network_statuses(pod: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    annotations = (pod.get("metadata") or {}).get("annotations") or {}
    try:
        raw = annotations[NETWORK_STATUS_ANNOT]
    except KeyError:
        raise RetrievalError(
            "the pod must feature the `networks-status` annotation"
        ) from None
    try:
        statuses = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise RetrievalError(f"invalid network status annotation: {exc}") from exc
    if statuses is None:
        return []
    if not isinstance(statuses, list) or not all(
        isinstance(s, Mapping) for s in statuses
    ):
        raise RetrievalError("network status annotation is not a list of objects")
    return statuses


def secondary_iface_ip_value(pod: Mapping[str, Any], if_name: str) -> list[str]:
    """Return the IPs of the pod interface named ``if_name``."""
    status = next(
        (s for s in _network_statuses(pod) if s.get("interface") == if_name), None
    )
    if status is None:
        raise RetrievalError("the pod does not have the requested secondary interface")
    ips = status.get("ips") or []
    if not ips:
        raise RetrievalError("the pod does not have IPs for its secondary interfaces")
    return list(ips)