from .ids import derive_guid, derive_edge_guid, decode_guid, generate_cycle_id, generate_request_id
from .fingerprints import canonical_json, sha256_hex, graph_fp
from .snapshot import compute_snapshot_etag_for_entries
from .backoff import compute_backoff_delay_ms, interruptible_sleep
from . import jsonx

__all__ = [
    "derive_guid", "derive_edge_guid", "decode_guid",
    "generate_cycle_id", "generate_request_id",
    "canonical_json", "sha256_hex", "graph_fp",
    "compute_snapshot_etag_for_entries",
    "compute_backoff_delay_ms", "interruptible_sleep",
    "jsonx",
]
