from .synthesize import GraphSynthesizer
from .graph_upsert import upsert_graph
from .batch_emit import BatchEventEmitter, EmitSummary
from .cycle import SyncCycle, CycleSummary

__all__ = ["GraphSynthesizer", "upsert_graph", "BatchEventEmitter", "EmitSummary", "SyncCycle", "CycleSummary"]
