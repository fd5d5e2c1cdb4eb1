"""Compare IP pool allocations with the addresses live pods actually hold."""

from __future__ import annotations

import ipaddress
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, Union, runtime_checkable

from wbe2ekit.retrievers import RetrievalError, secondary_iface_ip_value

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

SECONDARY_INTERFACE = "net1"


@dataclass
class IPReservation:
    """One address reserved in a pool."""

    ip: IPAddress | str | None = None
    container_id: str = ""
    pod_ref: str = ""
    if_name: str = ""
    is_allocated: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.ip, str):
            self.ip = ipaddress.ip_address(self.ip)

    @property
    def ip_text(self) -> str:
        return "<nil>" if self.ip is None else str(self.ip)


@runtime_checkable
class IPPool(Protocol):
    """Anything that can list its reservations."""

    def allocations(self) -> Sequence[IPReservation]: ...


class StaticPool:
    """An IP pool holding a fixed list of reservations."""

    def __init__(self, *reservations: IPReservation) -> None:
        self._reservations = list(reservations)

    def allocations(self) -> list[IPReservation]:
        return list(self._reservations)


Pod = Mapping[str, Any]


def _pod_ip(pod: Pod) -> str:
    return secondary_iface_ip_value(pod, SECONDARY_INTERFACE)[-1]


def _live_pod_ips(pods: Iterable[Pod]) -> set[str]:
    live = set()
    for pod in pods:
        try:
            live.add(_pod_ip(pod))
        except RetrievalError:
            continue
    return live


def _missing(pods: Iterable[Pod], reservations: Iterator[IPReservation]) -> list[str]:
    reserved = {r.ip_text for r in reservations}
    missing = []
    for pod in pods:
        try:
            pod_ip = _pod_ip(pod)
        except RetrievalError:
            return []
        if pod_ip not in reserved:
            missing.append(pod_ip)
    return missing


def _stale(pods: Iterable[Pod], reservations: Iterator[IPReservation]) -> list[str]:
    live = _live_pod_ips(pods)
    return [r.ip_text for r in reservations if r.ip_text not in live]


@dataclass
class Checker:
    """Checks a single pool against a list of pods."""

    ip_pool: IPPool
    pods: Sequence[Pod]

    def missing_ips(self) -> list[str]:
        """Pod addresses that have no reservation in the pool."""
        return _missing(self.pods, iter(self.ip_pool.allocations()))

    def stale_ips(self) -> list[str]:
        """Reserved addresses that no pod holds."""
        return _stale(self.pods, iter(self.ip_pool.allocations()))


@dataclass
class NodeSliceChecker:
    """Checks the pools of every node slice against a list of pods."""

    ip_pools: Sequence[IPPool]
    pods: Sequence[Pod]

    def _reservations(self) -> Iterator[IPReservation]:
        for pool in self.ip_pools:
            yield from pool.allocations()

    def missing_ips(self) -> list[str]:
        """Pod addresses that have no reservation in any pool."""
        return _missing(self.pods, self._reservations())

    def stale_ips(self) -> list[str]:
        """Reserved addresses, across all pools, that no pod holds."""
        return _stale(self.pods, self._reservations())