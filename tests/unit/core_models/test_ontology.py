import pytest
from pydantic import ValidationError

from core_models import (
    CONNECTION, CONNECTION_ENDPOINT, DATA_FILE, ENDPOINT, EDGE_TOPOLOGY, REQUIRED_TYPE_NAMES,
    Edge, EndpointRef, Node, canonical_name, derive_file_type,
)
from core_utils.ids import derive_edge_guid


@pytest.mark.parametrize("name,expected", [
    ("report.csv", "csv"),
    ("archive.tar.gz", "gz"),
    ("a.b", "b"),
    ("README", None),
    (".bashrc", None),
    ("data.", None),
    ("ab", None),
    ("x.", None),
])
def test_file_type_from_base_name(name, expected):
    assert derive_file_type(name) == expected


def test_canonical_names_per_type():
    assert canonical_name("/d/a.csv", DATA_FILE) == "/d/a.csv"
    assert canonical_name("/d/a.csv", CONNECTION) == "/d/a.csv-connection"
    assert canonical_name("/d/a.csv", ENDPOINT) == "/d/a.csv-endpoint"
    with pytest.raises(ValueError):
        canonical_name("/d/a.csv", "Folder")


def test_connection_is_always_end1():
    assert {end1 for end1, _ in EDGE_TOPOLOGY.values()} == {CONNECTION}
    assert set(EDGE_TOPOLOGY) <= set(REQUIRED_TYPE_NAMES)


def _ref(guid, type_name):
    return EndpointRef(guid=guid, type_name=type_name)


def test_edge_guid_must_match_its_ends():
    guid = derive_edge_guid("Q09O", CONNECTION_ENDPOINT, "RU5E")
    edge = Edge(guid=guid, type_name=CONNECTION_ENDPOINT, type_id="t",
                end1=_ref("Q09O", CONNECTION), end2=_ref("RU5E", ENDPOINT))
    assert edge.version == 1
    with pytest.raises(ValidationError):
        Edge(guid="bogus", type_name=CONNECTION_ENDPOINT, type_id="t",
             end1=_ref("Q09O", CONNECTION), end2=_ref("RU5E", ENDPOINT))


def test_node_is_frozen_and_keeps_property_order():
    node = Node(guid="g", type_name=DATA_FILE, type_id="t",
                properties={"name": "a.csv", "qualifiedName": "/d/a.csv", "fileType": "csv"})
    assert list(node.properties) == ["name", "qualifiedName", "fileType"]
    assert node.model_dump(mode="json")["provenance"] == "LOCAL"
    with pytest.raises(ValidationError):
        node.version = 2
