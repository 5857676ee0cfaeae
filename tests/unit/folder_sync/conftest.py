from __future__ import annotations

import threading
from types import MappingProxyType
from typing import List

import pytest

from core_config import Settings
from core_storage import DualTierStore, InMemoryGraphStore
from folder_sync.catalog import DEFAULT_TYPES, StaticSchemaProvider
from folder_sync.pipeline import GraphSynthesizer

COLLECTION_ID = "test-collection"


class RecordingSink:
    """EventSink that remembers every batch; ``fail_on`` names files to refuse."""

    def __init__(self, fail_on: tuple = (), raise_on: tuple = ()) -> None:
        self.batches: List = []
        self.fail_on = fail_on
        self.raise_on = raise_on

    def publish_batch(self, source_name, source_collection_id, server_name, server_type, org_name, graph):
        name = graph.nodes[0].properties["name"]
        if name in self.raise_on:
            raise RuntimeError(f"sink down for {name}")
        if name in self.fail_on:
            return False
        self.batches.append((source_name, source_collection_id, server_name, server_type, org_name, graph))
        return True


@pytest.fixture
def sync_dir(tmp_path):
    d = tmp_path / "landing"
    d.mkdir()
    (d / "report.csv").write_text("a,b\n1,2\n", encoding="utf-8")
    (d / "README").write_text("hello\n", encoding="utf-8")
    (d / "nested").mkdir()
    return d


@pytest.fixture
def types():
    return MappingProxyType(dict(DEFAULT_TYPES))


@pytest.fixture
def synthesizer(types):
    return GraphSynthesizer(types, collection_id=COLLECTION_ID)


@pytest.fixture
def store():
    return DualTierStore(COLLECTION_ID, "test", embedded_stores=[InMemoryGraphStore()])


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def provider():
    return StaticSchemaProvider()


@pytest.fixture
def settings(sync_dir):
    return Settings(
        FOLDER_SYNC_DIRECTORY=str(sync_dir),
        FOLDER_SYNC_POLL_INTERVAL=0.05,
        FOLDER_SYNC_TYPE_RETRY_MAX=2,
        FOLDER_SYNC_TYPE_RETRY_BACKOFF=0,
        FOLDER_SYNC_COLLECTION_ID=COLLECTION_ID,
        FOLDER_SYNC_PERSISTENT_FAILURE_THRESHOLD=2,
    )


def wait_for(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
    """Poll *predicate* until true or *timeout* seconds pass."""
    done = threading.Event()
    waited = 0.0
    while waited < timeout:
        if predicate():
            return True
        done.wait(interval)
        waited += interval
    return predicate()


@pytest.fixture
def sink_cls():
    return RecordingSink


@pytest.fixture(name="wait_for")
def wait_for_fixture():
    return wait_for
