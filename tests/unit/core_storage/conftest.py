import pytest

from core_models import CONNECTION, CONNECTION_TO_ASSET, DATA_FILE, Edge, Node
from core_utils.ids import derive_edge_guid, derive_guid


def _node(path, type_name=DATA_FILE, home="outer", **props):
    return Node(guid=derive_guid(path), type_name=type_name, type_id=f"type-{type_name}",
                properties={"name": path.rsplit("/", 1)[-1], "qualifiedName": path, **props},
                home_collection_id=home)


@pytest.fixture
def make_node():
    return _node


@pytest.fixture
def file_pair():
    """A DataFile, its Connection, and the ConnectionToAsset edge between them."""
    data_file = _node("/d/a.csv")
    connection = _node("/d/a.csv-connection", CONNECTION)
    edge = Edge(
        guid=derive_edge_guid(connection.guid, CONNECTION_TO_ASSET, data_file.guid),
        type_name=CONNECTION_TO_ASSET, type_id="type-ConnectionToAsset",
        end1=connection.ref(), end2=data_file.ref(), home_collection_id="outer",
    )
    return data_file, connection, edge
