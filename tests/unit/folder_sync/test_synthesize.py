import os
import sys

import pytest

from core_logging.error_codes import ErrorCode
from core_models import (
    CONNECTION,
    CONNECTION_TO_ASSET,
    CONNECTOR_TYPE,
    DATA_FILE,
    ENDPOINT,
    TypeDescriptor,
)
from core_utils.ids import derive_edge_guid, derive_guid
from folder_sync.errors import SyncError
from folder_sync.pipeline import GraphSynthesizer


def test_report_csv_yields_four_nodes_three_edges(synthesizer, sync_dir):
    path = os.path.realpath(sync_dir / "report.csv")
    graph = synthesizer.build_file_graph(str(sync_dir / "report.csv"))

    assert [n.type_name for n in graph.nodes] == [DATA_FILE, CONNECTION, CONNECTOR_TYPE, ENDPOINT]
    assert len(graph.edges) == 3

    data_file, connection, connector_type, endpoint = graph.nodes
    assert data_file.guid == derive_guid(path)
    assert connection.guid == derive_guid(path + "-connection")
    assert connector_type.guid == derive_guid(path + "-connectortype")
    assert endpoint.guid == derive_guid(path + "-endpoint")

    assert data_file.properties == {"name": "report.csv", "qualifiedName": path, "fileType": "csv"}
    assert connection.properties["name"] == "report.csv-connection"
    assert endpoint.properties["protocol"] == "file"
    assert endpoint.properties["networkAddress"] == path
    assert all(n.version == 1 for n in graph.nodes)


def test_edges_point_from_connection(synthesizer, sync_dir):
    graph = synthesizer.build_file_graph(str(sync_dir / "report.csv"))
    data_file, connection = graph.nodes[0], graph.nodes[1]

    to_asset = graph.edges[0]
    assert to_asset.type_name == CONNECTION_TO_ASSET
    assert to_asset.end1.guid == connection.guid
    assert to_asset.end2.guid == data_file.guid
    assert to_asset.guid == derive_edge_guid(connection.guid, CONNECTION_TO_ASSET, data_file.guid)
    assert {e.end1.guid for e in graph.edges} == {connection.guid}


def test_readme_has_no_file_type(synthesizer, sync_dir):
    graph = synthesizer.build_file_graph(str(sync_dir / "README"))
    assert "fileType" not in graph.nodes[0].properties


def test_qualified_name_prefix_applies_to_every_node(types, sync_dir):
    synth = GraphSynthesizer(types, qualified_name_prefix="fs::", collection_id="c1")
    graph = synth.build_file_graph(str(sync_dir / "report.csv"))
    assert all(n.properties["qualifiedName"].startswith("fs::") for n in graph.nodes)
    # the prefix never reaches the guid
    assert graph.nodes[0].guid == derive_guid(os.path.realpath(sync_dir / "report.csv"))


def test_scan_skips_subdirectories_and_sorts(synthesizer, sync_dir):
    (sync_dir / "a.txt").write_text("x", encoding="utf-8")
    result = synthesizer.scan(str(sync_dir))

    names = [n.properties["name"] for n in result.nodes if n.type_name == DATA_FILE]
    assert names == ["README", "a.txt", "report.csv"]
    assert result.skipped == ("nested",)
    assert result.file_count == 3
    assert len(result.nodes) == 12
    assert len(result.edges) == 9


def test_two_scans_of_unchanged_directory_are_identical(synthesizer, sync_dir):
    first = synthesizer.scan(str(sync_dir))
    second = synthesizer.scan(str(sync_dir))
    assert first.model_dump(mode="json") == second.model_dump(mode="json")


def test_snapshot_etag_changes_with_contents(synthesizer, sync_dir):
    before = synthesizer.scan(str(sync_dir)).snapshot_etag
    (sync_dir / "new.json").write_text("{}", encoding="utf-8")
    after = synthesizer.scan(str(sync_dir)).snapshot_etag
    assert before != after


def test_empty_directory(synthesizer, tmp_path):
    result = synthesizer.scan(str(tmp_path))
    assert result.nodes == () and result.edges == () and result.file_count == 0


def test_missing_directory(synthesizer, tmp_path):
    with pytest.raises(SyncError) as ei:
        synthesizer.scan(str(tmp_path / "nope"))
    assert ei.value.kind is ErrorCode.directory_not_found
    assert ei.value.path.endswith("nope")


def test_file_instead_of_directory(synthesizer, sync_dir):
    with pytest.raises(SyncError) as ei:
        synthesizer.scan(str(sync_dir / "report.csv"))
    assert ei.value.kind is ErrorCode.not_a_directory


def test_missing_type_is_a_type_error(sync_dir):
    partial = {DATA_FILE: TypeDescriptor(name=DATA_FILE, id="t-df")}
    synth = GraphSynthesizer(partial, collection_id="c1")
    with pytest.raises(SyncError) as ei:
        synth.build_file_graph(str(sync_dir / "report.csv"))
    assert ei.value.kind is ErrorCode.type_error
    assert ei.value.type_name == CONNECTION


def test_nodes_carry_type_id_and_home_collection(synthesizer, types, sync_dir):
    graph = synthesizer.build_file_graph(str(sync_dir / "report.csv"))
    for node in graph.nodes:
        assert node.type_id == types[node.type_name].id
        assert node.home_collection_id == "test-collection"


def _write_undecodable(directory) -> bool:
    raw = os.path.join(os.fsencode(str(directory)), b"bad\xff.csv")
    try:
        with open(raw, "wb") as fh:
            fh.write(b"x")
    except OSError:
        return False
    return True


@pytest.mark.skipif(sys.platform != "linux", reason="needs a filesystem that stores raw bytes")
def test_undecodable_name_is_skipped_not_fatal(synthesizer, sync_dir):
    if not _write_undecodable(sync_dir):
        pytest.skip("filesystem rejects non-UTF-8 names")
    result = synthesizer.scan(str(sync_dir))

    names = [n.properties["name"] for n in result.nodes if n.type_name == DATA_FILE]
    assert names == ["README", "report.csv"]
    assert result.skipped == ("bad\\xff.csv", "nested")
    # the directory tag still covers the files that were synthesized
    assert result.snapshot_etag


def test_symlink_alias_collapses_to_one_data_file(synthesizer, sync_dir):
    d = sync_dir.resolve()
    (d / "alias.csv").symlink_to(d / "report.csv")
    result = synthesizer.scan(str(d))

    data_files = [n for n in result.nodes if n.type_name == DATA_FILE]
    assert [n.properties["name"] for n in data_files] == ["README", "report.csv"]
    assert len(result.data_file_guids) == len(set(result.data_file_guids)) == 2
    assert len({n.guid for n in result.nodes}) == len(result.nodes) == 8
    assert result.skipped == ("alias.csv", "nested")


def test_symlinks_to_one_outside_target_keep_first_name(synthesizer, tmp_path):
    target = tmp_path / "elsewhere.csv"
    target.write_text("a\n", encoding="utf-8")
    d = tmp_path / "links"
    d.mkdir()
    (d / "b.csv").symlink_to(target)
    (d / "a.csv").symlink_to(target)
    result = synthesizer.scan(str(d))

    assert result.file_count == 1
    assert result.nodes[0].properties["name"] == "a.csv"
    assert result.skipped == ("b.csv",)
