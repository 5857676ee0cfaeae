from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, Field

from core_config.constants import EVENT_SOURCE_NAME
from core_logging import get_logger, log_stage, record_error
from core_logging.error_codes import ErrorCode
from core_metrics import counter as _metric_counter
from core_models import (
    CONNECTION_CONNECTOR_TYPE,
    CONNECTION_ENDPOINT,
    CONNECTION_TO_ASSET,
    Edge,
    InstanceGraph,
    Node,
    ScanResult,
)

from ..errors import SyncError
from ..sinks import EventSink

logger = get_logger("folder_sync.emit")


class EmitSummary(BaseModel):
    published: int = 0
    failed: int = 0
    failures: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.published + self.failed


class _Index:
    """Lookups over one scan result, built once per emission pass."""

    def __init__(self, scan_result: ScanResult) -> None:
        self.nodes: Dict[str, Node] = {n.guid: n for n in scan_result.nodes}
        self.by_end1: Dict[str, List[Edge]] = {}
        self.by_end2: Dict[str, List[Edge]] = {}
        for e in scan_result.edges:
            self.by_end1.setdefault(e.end1.guid, []).append(e)
            self.by_end2.setdefault(e.end2.guid, []).append(e)


def _walk(index: _Index, data_file_guid: str) -> InstanceGraph:
    data_file = index.nodes.get(data_file_guid)
    if data_file is None:
        raise SyncError(ErrorCode.invalid_parameter, "build_batch",
                        f"no DataFile {data_file_guid!r} in this scan")
    nodes: List[Node] = [data_file]
    edges: List[Edge] = []
    for to_asset in index.by_end2.get(data_file_guid, ()):
        if to_asset.type_name != CONNECTION_TO_ASSET:
            continue
        connection = index.nodes.get(to_asset.end1.guid)
        if connection is None:
            continue
        nodes.append(connection)
        edges.append(to_asset)
        for type_name in (CONNECTION_CONNECTOR_TYPE, CONNECTION_ENDPOINT):
            for edge in index.by_end1.get(connection.guid, ()):
                if edge.type_name != type_name:
                    continue
                target = index.nodes.get(edge.end2.guid)
                if target is not None:
                    nodes.append(target)
                    edges.append(edge)
        break
    return InstanceGraph(nodes=tuple(nodes), edges=tuple(edges))


class BatchEventEmitter:
    """
    Publishes one batch per DataFile: the file, its Connection (reached
    backwards over ConnectionToAsset) and whatever the Connection points at.
    A sink that fails or refuses a batch does not stop the remaining ones.
    """

    def __init__(
        self,
        sink: EventSink,
        *,
        source_name: str = EVENT_SOURCE_NAME,
        collection_id: str,
        server_name: str,
        server_type: str,
        org_name: str = "",
    ) -> None:
        self.sink = sink
        self.source_name = source_name
        self.collection_id = collection_id
        self.server_name = server_name
        self.server_type = server_type
        self.org_name = org_name

    def build_batch(self, data_file_guid: str, scan_result: ScanResult) -> InstanceGraph:
        return _walk(_Index(scan_result), data_file_guid)

    def emit_all(self, scan_result: ScanResult) -> EmitSummary:
        summary = EmitSummary()
        index = _Index(scan_result)
        for guid in scan_result.data_file_guids:
            graph = _walk(index, guid)
            try:
                acked = self.sink.publish_batch(
                    self.source_name, self.collection_id, self.server_name,
                    self.server_type, self.org_name, graph,
                )
                reason = None if acked else "sink did not acknowledge the batch"
            except Exception as exc:  # any sink failure is contained to this batch
                reason = f"{type(exc).__name__}: {exc}"
            if reason is None:
                summary.published += 1
                _metric_counter("folder_sync_batches_total", outcome="published")
                continue
            summary.failed += 1
            summary.failures.append({"data_file_guid": guid, "reason": reason})
            _metric_counter("folder_sync_batches_total", outcome="failed")
            record_error(
                ErrorCode.emission_failed,
                where="emit_all",
                message=reason,
                logger=logger,
                stage="emit",
                data_file_guid=guid,
                snapshot_etag=scan_result.snapshot_etag,
            )
        log_stage(logger, "emit", "batches_emitted",
                  published=summary.published, failed=summary.failed,
                  snapshot_etag=scan_result.snapshot_etag)
        return summary


__all__ = ["BatchEventEmitter", "EmitSummary"]
