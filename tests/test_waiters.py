from datetime import timedelta

import pytest

from wbe2ekit.poolconsistency import IPReservation, StaticPool
from wbe2ekit.waiters import (
    NotFoundError,
    PodPhaseError,
    PoolNotInitializedError,
    WaitTimeoutError,
    get_node_subnet,
    is_stateful_set_degraded_predicate,
    is_stateful_set_ready_predicate,
    list_pods,
    poll_until,
    wait_for_node_slice_ready,
    wait_for_pod_by_selector,
    wait_for_pod_ready,
    wait_for_pod_to_disappear,
    wait_for_replica_set_steady_state,
    wait_for_replica_set_to_disappear,
    wait_for_stateful_set_condition,
    wait_for_stateful_set_gone,
    wait_for_zero_ip_pool_allocations,
    wait_for_zero_ip_pool_allocations_across_node_slices,
)


def _matches(labels, selector):
    if not selector:
        return True
    for term in selector.split(","):
        key, _, value = term.partition("=")
        if labels.get(key) != value:
            return False
    return True


class FakeCluster:
    def __init__(self):
        self.pods = {}
        self.replica_sets = {}
        self.stateful_sets = {}
        self.node_slice_pools = {}
        self.nodes = []

    def add_pod(self, namespace, name, phase="Running", labels=None):
        self.pods[(namespace, name)] = {
            "metadata": {"name": name, "namespace": namespace, "labels": labels or {}},
            "status": {"phase": phase},
        }

    def _get(self, store, namespace, name):
        try:
            return store[(namespace, name)]
        except KeyError:
            raise NotFoundError(name) from None

    def get_pod(self, namespace, name):
        return self._get(self.pods, namespace, name)

    def list_pods(self, namespace, selector):
        return [
            pod
            for (ns, _), pod in self.pods.items()
            if ns == namespace and _matches(pod["metadata"]["labels"], selector)
        ]

    def get_replica_set(self, namespace, name):
        return self._get(self.replica_sets, namespace, name)

    def get_stateful_set(self, namespace, name):
        return self._get(self.stateful_sets, namespace, name)

    def get_node_slice_pool(self, namespace, name):
        return self._get(self.node_slice_pools, namespace, name)

    def list_nodes(self):
        return list(self.nodes)


class FakeIPAM:
    def __init__(self, pools=None):
        self.pools = pools or {}
        self.calls = []

    def get_ip_pool(self, ip_range, network_name, node_name=""):
        self.calls.append((ip_range, network_name, node_name))
        try:
            return self.pools[(ip_range, network_name, node_name)]
        except KeyError:
            raise PoolNotInitializedError("k8s pool initialized") from None


@pytest.fixture
def cluster():
    return FakeCluster()


def test_poll_until_returns_once_condition_holds():
    calls = []

    def condition():
        calls.append(1)
        return len(calls) >= 3

    assert poll_until(condition, timeout=5, interval=0.001) is None
    assert len(calls) == 3


def test_poll_until_times_out_after_immediate_check():
    calls = []

    def condition():
        calls.append(1)
        return False

    with pytest.raises(WaitTimeoutError):
        poll_until(condition, timeout=0, interval=0.001)
    assert len(calls) == 1


def test_poll_until_accepts_timedelta():
    with pytest.raises(WaitTimeoutError):
        poll_until(lambda: False, timedelta(milliseconds=10), timedelta(milliseconds=2))


def test_poll_until_propagates_condition_errors():
    def condition():
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        poll_until(condition, timeout=5, interval=0.001)


def test_list_pods_filters_by_selector(cluster):
    cluster.add_pod("default", "a", labels={"tier": "rs"})
    cluster.add_pod("default", "b", labels={"tier": "other"})
    cluster.add_pod("other", "c", labels={"tier": "rs"})
    names = [p["metadata"]["name"] for p in list_pods(cluster, "default", "tier=rs")]
    assert names == ["a"]


def test_wait_for_pod_ready_running(cluster):
    cluster.add_pod("default", "p", phase="Running")
    assert wait_for_pod_ready(cluster, "default", "p", 0) is None


@pytest.mark.parametrize(
    "phase, message", [("Failed", "pod failed"), ("Succeeded", "pod succeeded")]
)
def test_wait_for_pod_ready_terminal_phases(cluster, phase, message):
    cluster.add_pod("default", "p", phase=phase)
    with pytest.raises(PodPhaseError, match=message):
        wait_for_pod_ready(cluster, "default", "p", 5)


def test_wait_for_pod_ready_pending_times_out(cluster):
    cluster.add_pod("default", "p", phase="Pending")
    with pytest.raises(WaitTimeoutError):
        wait_for_pod_ready(cluster, "default", "p", 0)


def test_wait_for_pod_ready_missing_pod(cluster):
    with pytest.raises(NotFoundError):
        wait_for_pod_ready(cluster, "default", "ghost", 5)


def test_wait_for_pod_to_disappear(cluster):
    assert wait_for_pod_to_disappear(cluster, "default", "ghost", 0) is None
    cluster.add_pod("default", "p")
    with pytest.raises(WaitTimeoutError):
        wait_for_pod_to_disappear(cluster, "default", "p", 0)


def test_wait_for_pod_by_selector(cluster):
    assert wait_for_pod_by_selector(cluster, "default", "tier=rs", 0) is None
    cluster.add_pod("default", "a", labels={"tier": "rs"})
    cluster.add_pod("default", "b", phase="Pending", labels={"tier": "other"})
    assert wait_for_pod_by_selector(cluster, "default", "tier=rs", 0) is None
    cluster.add_pod("default", "c", phase="Pending", labels={"tier": "rs"})
    with pytest.raises(WaitTimeoutError):
        wait_for_pod_by_selector(cluster, "default", "tier=rs", 0)


def _replica_set(ready, replicas=2):
    return {
        "metadata": {"name": "rs", "namespace": "default"},
        "spec": {"replicas": replicas},
        "status": {"readyReplicas": ready},
    }


def test_replica_set_steady_state(cluster):
    rs = _replica_set(ready=2)
    cluster.replica_sets[("default", "rs")] = rs
    cluster.add_pod("default", "a", labels={"tier": "rs"})
    cluster.add_pod("default", "b", labels={"tier": "rs"})
    assert wait_for_replica_set_steady_state(cluster, "default", "tier=rs", rs, 0) is None


def test_replica_set_not_ready_times_out(cluster):
    rs = _replica_set(ready=1)
    cluster.replica_sets[("default", "rs")] = rs
    cluster.add_pod("default", "a", labels={"tier": "rs"})
    cluster.add_pod("default", "b", labels={"tier": "rs"})
    with pytest.raises(WaitTimeoutError):
        wait_for_replica_set_steady_state(cluster, "default", "tier=rs", rs, 0)


def test_replica_set_too_many_pods_times_out(cluster):
    rs = _replica_set(ready=0, replicas=0)
    cluster.replica_sets[("default", "rs")] = rs
    cluster.add_pod("default", "a", phase="Terminating", labels={"tier": "rs"})
    with pytest.raises(WaitTimeoutError):
        wait_for_replica_set_steady_state(cluster, "default", "tier=rs", rs, 0)


def test_replica_set_to_disappear(cluster):
    assert wait_for_replica_set_to_disappear(cluster, "default", "rs", 0) is None
    cluster.replica_sets[("default", "rs")] = _replica_set(ready=0)
    with pytest.raises(WaitTimeoutError):
        wait_for_replica_set_to_disappear(cluster, "default", "rs", 0)


def test_stateful_set_gone_when_missing_and_no_pods(cluster):
    assert wait_for_stateful_set_gone(cluster, "default", "web", "app=web", 0) is None


def test_stateful_set_gone_with_zero_current_replicas(cluster):
    cluster.stateful_sets[("default", "web")] = {"status": {"currentReplicas": 0}}
    assert wait_for_stateful_set_gone(cluster, "default", "web", "app=web", 0) is None


def test_stateful_set_not_gone_while_pods_remain(cluster):
    cluster.add_pod("default", "web-0", labels={"app": "web"})
    with pytest.raises(WaitTimeoutError):
        wait_for_stateful_set_gone(cluster, "default", "web", "app=web", 0)


def test_stateful_set_not_gone_with_replicas(cluster):
    cluster.stateful_sets[("default", "web")] = {"status": {"currentReplicas": 3}}
    with pytest.raises(WaitTimeoutError):
        wait_for_stateful_set_gone(cluster, "default", "web", "app=web", 0)


def test_stateful_set_predicates():
    ready = {"status": {"readyReplicas": 20}}
    assert is_stateful_set_ready_predicate(ready, 20) is True
    assert is_stateful_set_ready_predicate(ready, 21) is False
    assert is_stateful_set_degraded_predicate(ready, 21) is True
    assert is_stateful_set_degraded_predicate(ready, 20) is False
    assert is_stateful_set_ready_predicate({}, 0) is True


def test_wait_for_stateful_set_condition(cluster):
    cluster.stateful_sets[("default", "web")] = {"status": {"readyReplicas": 2}}
    assert (
        wait_for_stateful_set_condition(
            cluster, "default", "web", 2, 0, is_stateful_set_ready_predicate
        )
        is None
    )
    with pytest.raises(WaitTimeoutError):
        wait_for_stateful_set_condition(
            cluster, "default", "web", 3, 0, is_stateful_set_ready_predicate
        )


def test_wait_for_stateful_set_condition_missing(cluster):
    with pytest.raises(NotFoundError):
        wait_for_stateful_set_condition(
            cluster, "default", "web", 2, 5, is_stateful_set_ready_predicate
        )


def test_get_node_subnet(cluster):
    cluster.node_slice_pools[("kube-system", "net1")] = {
        "status": {
            "allocations": [
                {"nodeName": "worker1", "sliceRange": "10.0.0.0/20"},
                {"nodeName": "worker2", "sliceRange": "10.0.16.0/20"},
            ]
        }
    }
    assert get_node_subnet(cluster, "worker2", "net1", "kube-system") == "10.0.16.0/20"
    with pytest.raises(NotFoundError, match="slice range not found for node"):
        get_node_subnet(cluster, "worker9", "net1", "kube-system")


def test_wait_for_node_slice_ready(cluster):
    with pytest.raises(WaitTimeoutError):
        wait_for_node_slice_ready(cluster, "kube-system", "net1", 0)
    cluster.node_slice_pools[("kube-system", "net1")] = {"status": {}}
    assert wait_for_node_slice_ready(cluster, "kube-system", "net1", 0) is None


def test_zero_ip_pool_allocations():
    ipam = FakeIPAM({("10.10.0.0/16", "", ""): StaticPool()})
    assert wait_for_zero_ip_pool_allocations(ipam, "10.10.0.0/16", 0) is None
    assert ipam.calls == [("10.10.0.0/16", "", "")]


def test_zero_ip_pool_allocations_times_out_with_allocations():
    pool = StaticPool(IPReservation(ip="10.10.0.1", pod_ref="default/p"))
    ipam = FakeIPAM({("10.10.0.0/16", "", ""): pool})
    with pytest.raises(WaitTimeoutError):
        wait_for_zero_ip_pool_allocations(ipam, "10.10.0.0/16", 0)


def test_zero_ip_pool_allocations_uninitialized_pool():
    ipam = FakeIPAM()
    assert wait_for_zero_ip_pool_allocations(ipam, "10.10.0.0/16", 0) is None
    assert len(ipam.calls) == 1


def test_zero_allocations_across_node_slices(cluster):
    cluster.nodes = [{"metadata": {"name": "worker1"}}, {"metadata": {"name": "worker2"}}]
    ipam = FakeIPAM({("10.0.0.0/8", "net1", "worker1"): StaticPool()})
    assert (
        wait_for_zero_ip_pool_allocations_across_node_slices(
            cluster, ipam, "10.0.0.0/8", "net1", 0
        )
        is None
    )
    assert ipam.calls == [
        ("10.0.0.0/8", "net1", "worker1"),
        ("10.0.0.0/8", "net1", "worker2"),
    ]


def test_allocations_across_node_slices_time_out(cluster):
    cluster.nodes = [{"metadata": {"name": "worker1"}}, {"metadata": {"name": "worker2"}}]
    busy = StaticPool(IPReservation(ip="10.0.16.1"))
    ipam = FakeIPAM(
        {
            ("10.0.0.0/8", "net1", "worker1"): StaticPool(),
            ("10.0.0.0/8", "net1", "worker2"): busy,
        }
    )
    with pytest.raises(WaitTimeoutError):
        wait_for_zero_ip_pool_allocations_across_node_slices(
            cluster, ipam, "10.0.0.0/8", "net1", 0
        )