import threading

import pytest
from arango.exceptions import ArangoClientError

from core_storage import StoreError, StoreErrorKind
from core_storage.arangodb import ArangoGraphStore


class FakeCollection:
    def __init__(self):
        self.docs = {}

    def get(self, key):
        return self.docs.get(key)

    def has(self, key):
        return key in self.docs

    def insert(self, doc, overwrite=False):
        assert overwrite
        self.docs[doc["_key"]] = dict(doc)


class FakeAQL:
    def __init__(self, db):
        self.db = db
        self.calls = []

    def execute(self, query, bind_vars=None):
        self.calls.append((query, bind_vars))
        col = self.db.collection(bind_vars["@col"])
        if "tid" in bind_vars:
            return iter(d for d in col.docs.values() if d["type_id"] == bind_vars["tid"])
        return iter(d for d in col.docs.values() if bind_vars["nid"] in (d["_from"], d["_to"]))


class FakeDB:
    def __init__(self):
        self.cols = {"nodes": FakeCollection(), "edges": FakeCollection()}
        self.aql = FakeAQL(self)

    def collection(self, name):
        return self.cols[name]


@pytest.fixture
def db():
    return FakeDB()


@pytest.fixture
def arango(db):
    return ArangoGraphStore(client=db, max_retries=0)


def test_node_round_trip_strips_internals(arango, db, file_pair):
    data_file, _, _ = file_pair
    assert arango.upsert_node(data_file) is True
    assert arango.upsert_node(data_file) is False
    key = data_file.guid.rstrip("=")
    assert "_key" in db.cols["nodes"].docs[key]
    assert arango.get_node(data_file.guid) == data_file
    assert arango.is_node_known(data_file.guid)


def test_edge_links_node_documents(arango, db, file_pair):
    data_file, connection, edge = file_pair
    with pytest.raises(StoreError) as ei:
        arango.upsert_edge(edge)
    assert ei.value.kind is StoreErrorKind.not_found
    arango.upsert_node(data_file)
    arango.upsert_node(connection)
    assert arango.upsert_edge(edge) is True
    doc = db.cols["edges"].docs[edge.guid.rstrip("=")]
    assert doc["_from"] == f"nodes/{connection.guid.rstrip('=')}"
    assert arango.get_edge(edge.guid) == edge
    assert arango.get_edges_for_node(data_file.guid) == [edge]


def test_foreign_home_is_a_conflict(arango, make_node):
    arango.upsert_node(make_node("/d/a.csv", home="elsewhere"))
    with pytest.raises(StoreError) as ei:
        arango.upsert_node(make_node("/d/a.csv", home="outer"))
    assert ei.value.kind is StoreErrorKind.conflict


def test_find_nodes_builds_bound_query(arango, db, make_node):
    arango.upsert_node(make_node("/d/a.csv"))
    found = arango.find_nodes_by_type("type-DataFile", filters={"qualifiedName": "/d/a.csv"}, limit=5)
    assert [n.properties["name"] for n in found] == ["a.csv"]
    query, bind = db.aql.calls[-1]
    assert "LIMIT @limit" in query and bind["limit"] == 5
    assert bind["k0"] == "qualifiedName" and bind["v0"] == "/d/a.csv"
    with pytest.raises(StoreError):
        arango.find_nodes_by_type("type-DataFile", limit=-1)


def test_missing_records_are_not_found(arango):
    with pytest.raises(StoreError) as ei:
        arango.get_node("bm9wZQ==")
    assert ei.value.kind is StoreErrorKind.not_found
    with pytest.raises(StoreError):
        arango.get_edges_for_node("bm9wZQ==")


def test_driver_errors_translate_to_unavailable(arango, db, monkeypatch):
    def broken(key):
        raise ArangoClientError("connection reset by peer")

    monkeypatch.setattr(db.cols["nodes"], "get", broken)
    with pytest.raises(StoreError) as ei:
        arango.get_node("YQ==")
    assert ei.value.kind is StoreErrorKind.unavailable


def test_unreachable_server_is_unavailable():
    store = ArangoGraphStore(url="http://arangodb.invalid:8529", max_retries=0)
    assert store.ready() is False
    with pytest.raises(StoreError) as ei:
        store.is_node_known("YQ==")
    assert ei.value.kind is StoreErrorKind.unavailable


def test_retry_backoff_stops_when_cancelled(db, monkeypatch):
    cancel = threading.Event()
    store = ArangoGraphStore(client=db, max_retries=5, cancel=cancel)
    calls = []

    def broken(key):
        calls.append(key)
        cancel.set()
        raise ArangoClientError("connection reset by peer")

    monkeypatch.setattr(db.cols["nodes"], "get", broken)
    with pytest.raises(StoreError) as ei:
        store.get_node("YQ==")
    assert ei.value.kind is StoreErrorKind.unavailable
    # cancelled during the first backoff, so no second attempt
    assert len(calls) == 1


def test_retry_recovers_after_transient_error(db, monkeypatch):
    store = ArangoGraphStore(client=db, max_retries=2, cancel=threading.Event())
    real_has = db.cols["nodes"].has
    failures = [ArangoClientError("connection reset by peer")]

    def flaky(key):
        if failures:
            raise failures.pop()
        return real_has(key)

    monkeypatch.setattr(db.cols["nodes"], "has", flaky)
    assert store.is_node_known("YQ==") is False
