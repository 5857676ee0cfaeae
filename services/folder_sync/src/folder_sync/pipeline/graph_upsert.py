from __future__ import annotations

from typing import Any, Dict, List

from core_logging import get_logger, log_stage, record_error, trace_span
from core_logging.error_codes import ErrorCode
from core_metrics import counter as _metric_counter
from core_models import ScanResult
from core_storage import DualTierStore, StoreError, StoreErrorKind

logger = get_logger("folder_sync.upsert")

_ERROR_CODE_FOR_KIND = {
    StoreErrorKind.conflict: ErrorCode.storage_conflict,
    StoreErrorKind.invalid: ErrorCode.invalid_parameter,
    StoreErrorKind.not_found: ErrorCode.invalid_parameter,
}


def _reject(kind: str, record, exc: StoreError, errors: List[Dict[str, Any]], snapshot_etag: str) -> None:
    errors.append({
        "kind": kind,
        "guid": record.guid,
        "type_name": record.type_name,
        "error_kind": exc.kind.value,
        "reason": exc.message,
    })
    record_error(
        _ERROR_CODE_FOR_KIND.get(exc.kind, ErrorCode.internal),
        where=exc.operation,
        message=exc.message,
        logger=logger,
        level="WARNING",
        stage="upsert",
        guid=record.guid,
        type_name=record.type_name,
        snapshot_etag=snapshot_etag,
    )
    _metric_counter("folder_sync_upserts_total", kind=kind, outcome="rejected")


def upsert_graph(store: DualTierStore, scan_result: ScanResult) -> Dict[str, Any]:
    """
    Write every synthesized record as a reference copy, nodes first so that
    each edge finds its ends.

    One record's rejection (conflict / invalid / not_found) is recorded and
    its siblings still get written.  ``unavailable`` means the backend is gone:
    nothing further can succeed, so the error propagates to the cycle.
    """
    etag = scan_result.snapshot_etag
    summary: Dict[str, Any] = {
        "nodes": {"written": 0, "created": 0, "rejected": 0},
        "edges": {"written": 0, "created": 0, "rejected": 0},
        "errors": [],
    }
    with trace_span("upsert.graph", logger=logger, stage="upsert", snapshot_etag=etag) as span:
        for kind, records, write in (
            ("nodes", scan_result.nodes, store.upsert_node),
            ("edges", scan_result.edges, store.upsert_edge),
        ):
            bucket = summary[kind]
            for record in records:
                try:
                    created = write(record)
                except StoreError as exc:
                    if exc.kind is StoreErrorKind.unavailable:
                        log_stage(logger, "upsert", "upsert_aborted",
                                  guid=record.guid, error=exc.message,
                                  written_nodes=summary["nodes"]["written"],
                                  written_edges=summary["edges"]["written"])
                        raise
                    bucket["rejected"] += 1
                    _reject(kind, record, exc, summary["errors"], etag)
                    continue
                bucket["written"] += 1
                if created:
                    bucket["created"] += 1
                _metric_counter("folder_sync_upserts_total", kind=kind, outcome="written")
        span.set_attribute("nodes_written", summary["nodes"]["written"])
        span.set_attribute("edges_written", summary["edges"]["written"])
        span.set_attribute("rejected", summary["nodes"]["rejected"] + summary["edges"]["rejected"])
    return summary


__all__ = ["upsert_graph"]
