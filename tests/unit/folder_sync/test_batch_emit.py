import pytest

from core_models import CONNECTION_TO_ASSET, DATA_FILE
from folder_sync.errors import SyncError
from folder_sync.pipeline import BatchEventEmitter


def _emitter(sink):
    return BatchEventEmitter(sink, source_name="FolderSyncEventMapper", collection_id="test-collection",
                             server_name="srv", server_type="FolderGraphRepository", org_name="org")


def test_one_batch_per_data_file_in_order(synthesizer, sync_dir, sink):
    scan = synthesizer.scan(str(sync_dir))
    summary = _emitter(sink).emit_all(scan)

    assert summary.published == 2 and summary.failed == 0
    assert [b[5].nodes[0].guid for b in sink.batches] == list(scan.data_file_guids)
    source, collection, server, server_type, org, graph = sink.batches[0]
    assert (source, collection, server, server_type, org) == (
        "FolderSyncEventMapper", "test-collection", "srv", "FolderGraphRepository", "org")
    assert graph.node_count == 4 and len(graph.edges) == 3


def test_build_batch_walks_from_data_file(synthesizer, sync_dir, sink):
    scan = synthesizer.scan(str(sync_dir))
    graph = _emitter(sink).build_batch(scan.data_file_guids[1], scan)
    assert graph.nodes[0].type_name == DATA_FILE
    assert graph.edges[0].type_name == CONNECTION_TO_ASSET
    assert set(graph.nodes) <= set(scan.nodes)


def test_batch_without_connection_is_just_the_file(synthesizer, sync_dir, sink):
    scan = synthesizer.scan(str(sync_dir))
    data_file = scan.data_file_guids[0]
    trimmed = scan.model_copy(update={
        "edges": tuple(e for e in scan.edges if e.end2.guid != data_file),
    })
    graph = _emitter(sink).build_batch(data_file, trimmed)
    assert graph.node_count == 1 and graph.edges == ()


def test_unknown_data_file_guid(synthesizer, sync_dir, sink):
    scan = synthesizer.scan(str(sync_dir))
    with pytest.raises(SyncError):
        _emitter(sink).build_batch("bm9wZQ==", scan)


def test_sink_failures_do_not_stop_iteration(synthesizer, sync_dir, sink_cls):
    scan = synthesizer.scan(str(sync_dir))
    sink = sink_cls(fail_on=("README",))
    summary = _emitter(sink).emit_all(scan)
    assert summary.published == 1 and summary.failed == 1
    assert summary.failures[0]["data_file_guid"] == scan.data_file_guids[0]
    assert [b[5].nodes[0].properties["name"] for b in sink.batches] == ["report.csv"]


def test_sink_exception_is_contained(synthesizer, sync_dir, sink_cls):
    scan = synthesizer.scan(str(sync_dir))
    sink = sink_cls(raise_on=("report.csv",))
    summary = _emitter(sink).emit_all(scan)
    assert summary.failed == 1
    assert "RuntimeError" in summary.failures[0]["reason"]
    assert summary.attempted == 2
