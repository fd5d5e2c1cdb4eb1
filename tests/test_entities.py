from wbe2ekit.entities import (
    NETWORK_ATTACHMENT_ANNOT,
    TEST_IMAGE,
    pod_network_selection_elements,
    pod_object,
    replica_set_object,
    replica_set_query,
    stateful_set_spec,
)

COMMAND = ["/bin/ash", "-c", "trap : TERM INT; sleep infinity & wait"]


def test_pod_object_metadata_and_container():
    labels = {"tier": "web"}
    annotations = {"a": "b"}
    pod = pod_object("mypod", "ns", labels, annotations)
    assert pod["metadata"] == {
        "name": "mypod",
        "namespace": "ns",
        "labels": labels,
        "annotations": annotations,
    }
    container = pod["spec"]["containers"][0]
    assert container["name"] == "samplepod"
    assert container["image"] == TEST_IMAGE
    assert container["command"] == COMMAND


def test_pod_object_copies_labels():
    labels = {"tier": "web"}
    pod = pod_object("mypod", "ns", labels, None)
    labels["tier"] = "changed"
    assert pod["metadata"]["labels"] == {"tier": "web"}
    assert "annotations" not in pod["metadata"]


def test_stateful_set_spec():
    annotations = pod_network_selection_elements("net1")
    sts = stateful_set_spec("statefulthingy", "default", "web", 20, annotations)
    assert sts["metadata"] == {"name": "web"}
    spec = sts["spec"]
    assert spec["replicas"] == 20
    assert spec["selector"] == {"matchLabels": {"app": "web"}}
    assert spec["serviceName"] == "web"
    assert spec["podManagementPolicy"] == "Parallel"
    template = spec["template"]
    assert template["metadata"]["name"] == "statefulthingy"
    assert template["metadata"]["labels"] == {"app": "web"}
    assert template["metadata"]["annotations"] == annotations
    assert template["spec"]["containers"][0]["name"] == "statefulthingy"


def test_replica_set_object():
    labels = {"tier": "rs"}
    annotations = pod_network_selection_elements("wa-nad")
    rs = replica_set_object(3, "rs", "default", labels, annotations)
    assert rs["kind"] == "ReplicaSet"
    assert rs["apiVersion"] == "v1"
    assert rs["metadata"] == {"name": "rs", "namespace": "default", "labels": labels}
    assert rs["spec"]["replicas"] == 3
    assert rs["spec"]["selector"] == {"matchLabels": labels}
    template = rs["spec"]["template"]
    assert template["metadata"] == {
        "labels": labels,
        "annotations": annotations,
        "namespace": "default",
    }
    assert template["spec"]["containers"][0]["name"] == "samplepod"
    assert template["spec"]["containers"][0]["image"] == TEST_IMAGE


def test_replica_set_query():
    assert replica_set_query("whereabouts-scale-test") == "tier=whereabouts-scale-test"


def test_pod_network_selection_elements_joins_names():
    result = pod_network_selection_elements("a", "b", "c")
    assert result == {NETWORK_ATTACHMENT_ANNOT: "a,b,c"}


def test_pod_network_selection_elements_empty():
    assert pod_network_selection_elements() == {NETWORK_ATTACHMENT_ANNOT: ""}