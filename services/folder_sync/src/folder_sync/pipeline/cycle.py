from __future__ import annotations

import time
from typing import Any, Callable, Dict, Mapping, Optional

from core_logging import (
    bind_cycle_id,
    emit_cycle_summary,
    get_logger,
    log_stage,
    record_error,
    set_snapshot_etag,
    unbind_cycle_id,
)
from core_logging.error_codes import ErrorCode
from core_metrics import counter as _metric_counter, record_latency_ms
from core_models import REQUIRED_TYPE_NAMES, TypeDescriptor
from core_storage import DualTierStore, StoreError
from core_utils.fingerprints import graph_fp
from core_utils.ids import generate_cycle_id

from ..catalog.type_catalog import TypeCatalog
from ..errors import SyncError
from .batch_emit import BatchEventEmitter
from .graph_upsert import upsert_graph
from .synthesize import GraphSynthesizer

logger = get_logger("folder_sync.cycle")

CycleSummary = Dict[str, Any]
SynthesizerFactory = Callable[[Mapping[str, TypeDescriptor]], GraphSynthesizer]


class SyncCycle:
    """
    One pass of resolve → synthesize → upsert → emit over ``directory``.

    Resolution or scan failures abandon the cycle before anything is
    written.  Every failure leaves this method as a ``SyncError``; a backend
    outage during upsert surfaces as ``storage_unavailable``.
    """

    def __init__(
        self,
        catalog: TypeCatalog,
        synthesizer_factory: SynthesizerFactory,
        store: DualTierStore,
        emitter: BatchEventEmitter,
        directory: str,
    ) -> None:
        self.catalog = catalog
        self.synthesizer_factory = synthesizer_factory
        self.store = store
        self.emitter = emitter
        self.directory = directory
        self._last_graph_fp: Optional[str] = None

    def _fail(self, err: SyncError, summary: CycleSummary, t0: float) -> SyncError:
        record_error(
            err.kind, where=err.operation, message=err.message, logger=logger,
            stage="cycle", path=err.path, type_name=err.type_name,
            cycle=summary["cycle"], directory=self.directory,
        )
        summary["outcome"] = "failed"
        summary["error"] = err.to_dict()
        summary["latency_ms"] = round(record_latency_ms("folder_sync_cycle", t0), 3)
        _metric_counter("folder_sync_cycles_total", outcome="failed")
        return err

    def run(self, seq: Optional[int] = None) -> CycleSummary:
        cycle_id = generate_cycle_id(seq)
        token = bind_cycle_id(cycle_id)
        t0 = time.perf_counter()
        summary: CycleSummary = {
            "cycle_id": cycle_id,
            "cycle": seq,
            "directory": self.directory,
            "outcome": "started",
        }
        try:
            log_stage(logger, "cycle", "cycle_started", cycle=seq, directory=self.directory)
            try:
                types = self.catalog.resolve_all(REQUIRED_TYPE_NAMES)
                scan = self.synthesizer_factory(types).scan(self.directory)
            except SyncError as err:
                raise self._fail(err, summary, t0)
            except Exception as exc:
                err = SyncError(
                    ErrorCode.internal, "scan", f"{type(exc).__name__}: {exc}",
                    path=self.directory, context={"error_type": type(exc).__name__},
                )
                raise self._fail(err, summary, t0) from exc
            set_snapshot_etag(scan.snapshot_etag)
            summary["snapshot_etag"] = scan.snapshot_etag
            summary["files"] = scan.file_count
            summary["skipped"] = len(scan.skipped)
            fp = graph_fp(
                (n.model_dump(mode="json") for n in scan.nodes),
                (e.model_dump(mode="json") for e in scan.edges),
            )
            summary["graph_fp"] = fp
            summary["graph_changed"] = fp != self._last_graph_fp
            self._last_graph_fp = fp

            try:
                summary["upsert"] = upsert_graph(self.store, scan)
            except StoreError as exc:
                err = SyncError(
                    ErrorCode.storage_unavailable, "upsert_graph", exc.message,
                    context=exc.to_dict(),
                )
                raise self._fail(err, summary, t0) from exc

            summary["emit"] = self.emitter.emit_all(scan).model_dump()
            summary["outcome"] = "ok"
            summary["latency_ms"] = round(record_latency_ms("folder_sync_cycle", t0), 3)
            _metric_counter("folder_sync_cycles_total", outcome="ok")
            log_stage(
                logger, "cycle", "cycle_completed",
                cycle=seq, files=scan.file_count,
                nodes_written=summary["upsert"]["nodes"]["written"],
                edges_written=summary["upsert"]["edges"]["written"],
                batches_published=summary["emit"]["published"],
                latency_ms=summary["latency_ms"],
            )
            return summary
        finally:
            emit_cycle_summary(logger, cycle=seq, outcome=summary["outcome"],
                               directory=self.directory)
            unbind_cycle_id(token)


__all__ = ["SyncCycle", "CycleSummary", "SynthesizerFactory"]
