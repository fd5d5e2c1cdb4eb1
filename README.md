# wbe2ekit

Building blocks for end-to-end tests of a Kubernetes IP address management
plugin. It builds manifests as plain dictionaries, waits for a cluster to
settle, and checks that IP pools agree with the pods that are running.

The package has no pure-Python dependencies.

## Install

```
pip install wbe2ekit
pip install "wbe2ekit[test]"   # adds pytest, to run the test suite
```

## What the package does not do

It contains no Kubernetes API client and no command-line program. Every
function that touches a cluster takes an object you supply (see "Supplying a
cluster" below) and calls its methods; the package itself never opens a
connection, reads a kubeconfig's contents or allocates addresses.

## Modules

### `wbe2ekit.entities`

Manifest builders returning dictionaries:

- `pod_object(pod_name, namespace, labels, annotations)` – a pod with one
  sleeping container named `samplepod`.
- `replica_set_object(replica_count, rs_name, namespace, labels, annotations)`
  – a replica set selected by `labels`.
- `stateful_set_spec(stateful_set_name, namespace, service_name, replica_number, annotations)`
  – a stateful set named after the service, labelled `app=<service_name>`,
  with parallel pod management.
- `replica_set_query(rs_name)` – the selector `tier=<rs_name>`.
- `pod_network_selection_elements(*network_names)` – the
  `k8s.v1.cni.cncf.io/networks` annotation joining the names with commas.

### `wbe2ekit.retrievers`

`secondary_iface_ip_value(pod, if_name)` reads the
`k8s.v1.cni.cncf.io/network-status` annotation of a pod dictionary (a JSON
list of objects with `interface` and `ips`) and returns the IPs of the named
interface. It raises `RetrievalError` when the annotation is missing or
malformed, the interface is absent, or the interface has no IPs.

### `wbe2ekit.testenvironment`

`Configuration.from_env(environ=None)` reads `KUBECONFIG`,
`NUMBER_OF_COMPUTE_NODES`, `FILL_PERCENT_CAPACITY` and
`NUMBER_OF_THRASH_ITER` (defaults `${HOME}/.kube/config`, 2, 50 and 1) from
the mapping given, or from `os.environ`. A value that is not an integer
raises `ValueError`. `max_replicas(all_pods)` returns
`(nodes * 110 - len(all_pods)) * fill_percent / 100`, truncated toward zero.

### `wbe2ekit.poolconsistency`

- `IPReservation(ip, container_id, pod_ref, if_name, is_allocated)` – one
  reserved address; a string `ip` is parsed with `ipaddress`.
- `IPPool` – a protocol: anything with an `allocations()` method.
- `StaticPool(*reservations)` – a pool holding a fixed set of reservations.
- `Checker(ip_pool, pods)` and `NodeSliceChecker(ip_pools, pods)` – compare
  one pool, or all pools of a node slice, with the pods' `net1` addresses
  (the last IP of that interface). `missing_ips()` lists pod IPs that no
  reservation holds; it returns an empty list as soon as a pod's IPs cannot
  be read. `stale_ips()` lists reserved IPs that no pod holds, skipping pods
  whose IPs cannot be read.

### `wbe2ekit.waiters`

`poll_until(condition, timeout, interval=1.0)` calls `condition` at once and
then every `interval` seconds (numbers or `timedelta`) until it returns true,
raising `WaitTimeoutError` when time runs out. Exceptions from `condition`
end the wait.

Built on it: `wait_for_pod_ready` (raises `PodPhaseError` if the pod fails or
succeeds), `wait_for_pod_to_disappear`, `wait_for_pod_by_selector`,
`wait_for_replica_set_steady_state`, `wait_for_replica_set_to_disappear`,
`wait_for_stateful_set_gone`, `wait_for_stateful_set_condition`,
`wait_for_node_slice_ready`, `wait_for_zero_ip_pool_allocations` and
`wait_for_zero_ip_pool_allocations_across_node_slices`. Also `list_pods`,
`get_node_subnet` (raises `NotFoundError` when the node has no slice), and
the predicates `is_stateful_set_ready_predicate` and
`is_stateful_set_degraded_predicate`.

### `wbe2ekit.clientinfo`

`ClientInfo(cluster)` provisions and tears down scenario objects, waiting for
each to settle: `provision_pod`, `delete_pod`, `provision_replica_set`,
`update_replica_set`, `delete_replica_set`, `provision_stateful_set`,
`delete_stateful_set` (immediate, foreground deletion), `scale_stateful_set`,
`add_net_attach_def`, `del_net_attach_def`, `get_node_slice_pool` and
`node_slice_deleted` (raises `RuntimeError` if the pool still exists).

### `wbe2ekit.util`

- `macvlan_network_with_whereabouts_ipam_network(...)`,
  `macvlan_network_with_node_slice(...)` and
  `generate_net_attach_def_spec(name, namespace, config)` build network
  attachment definitions; `create_ip_ranges(ranges)` renders the
  `[{"range": ...}]` JSON list.
- `in_range(cidr, ip)` and `in_node_range(client_info, node_name, slice_name, namespace, ip)`
  raise `ValidationError` when the IP lies outside the range.
- `validate_node_slice_pool_slices_created_and_nodes_assigned(...)` checks the
  slice count, that slices and nodes are not repeated, and that every node
  has a slice.
- `check_zero_ip_pool_allocations_and_replicas(client_info, ipam, rs_name, namespace, ip_pool_cidr, *network_names)`
  scales the replica set to zero and waits for the pools to empty; `ipam`
  must also have `node_slice_size` and `network_name` attributes.
- `cluster_config(environ=None)` returns the path in `KUBECONFIG`, raising
  `ValidationError` if unset and `FileNotFoundError` if the file is missing.
- `pod_tier_label(pod_tier)` and `allocation_for_pod_ref(pod_ref, ip_pool)`.

## Supplying a cluster

The waiters need an object with `get_pod`, `list_pods`, `get_replica_set`,
`get_stateful_set`, `get_node_slice_pool` and `list_nodes`; a getter raises
`wbe2ekit.waiters.NotFoundError` when the object does not exist.
`ClientInfo` additionally needs `create_pod`, `delete_pod`,
`create_replica_set`, `update_replica_set`, `delete_replica_set`,
`create_stateful_set`, `update_stateful_set`, `delete_stateful_set`,
`create_net_attach_def` and `delete_net_attach_def`. IP pools are read through
an object with `get_ip_pool(ip_range, network_name, node_name="")` that raises
`PoolNotInitializedError` for a pool not yet created.

## Example

```python
import json

from wbe2ekit.poolconsistency import Checker, IPReservation, StaticPool
from wbe2ekit.util import in_range, macvlan_network_with_whereabouts_ipam_network

pool = StaticPool(IPReservation(ip="192.168.200.2"))
status = [{"name": "net1", "interface": "net1", "ips": ["192.168.200.2"]}]
pod = {"metadata": {"annotations": {
    "k8s.v1.cni.cncf.io/network-status": json.dumps(status)}}}

checker = Checker(pool, [pod])
print(checker.missing_ips(), checker.stale_ips())  # [] []

nad = macvlan_network_with_whereabouts_ipam_network(
    "wa-nad", "default", "10.10.0.0/16", [], "", True
)
in_range("10.10.0.0/16", "10.10.3.4")  # raises ValidationError if outside
```

## Running the tests

```
pytest
```