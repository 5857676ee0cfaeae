import hashlib
import orjson
from typing import Any, Union

# ensure fully stable encoding: sort keys + drop microseconds
_OPTS = orjson.OPT_SORT_KEYS | orjson.OPT_OMIT_MICROSECONDS

__all__ = [
    "canonical_json",
    "sha256_hex",
    "ensure_sha256_prefix",
    "graph_fp",
]

def canonical_json(obj: Any) -> bytes:
    """
    Serialize `obj` to canonical JSON bytes:
    - keys sorted
    - no microseconds in timestamps
    - compact representation
    """
    return orjson.dumps(obj, option=_OPTS)

def sha256_hex(data: Union[str, bytes, bytearray, memoryview]) -> str:
    """Return hex SHA-256 digest. Accepts str and bytes-like; strings are UTF-8 encoded."""
    if isinstance(data, str):
        b = data.encode("utf-8")
    elif isinstance(data, (bytearray, memoryview)):
        b = bytes(data)
    elif isinstance(data, bytes):
        b = data
    else:
        raise TypeError(f"sha256_hex expects str or bytes-like, got {type(data).__name__}")
    return hashlib.sha256(b).hexdigest()

def ensure_sha256_prefix(value: str) -> str:
    """Ensure the fingerprint string has the ``sha256:`` prefix without recomputation."""
    if isinstance(value, str) and value.startswith("sha256:"):
        return value
    return "sha256:" + value

def graph_fp(nodes: Any, edges: Any) -> str:
    """Deterministic fingerprint over already-ordered node and edge payloads.

    Order is significant: two scans of the same directory produce the same
    order, so equal fingerprints mean byte-identical graphs.
    """
    payload = {"nodes": list(nodes or []), "edges": list(edges or [])}
    return ensure_sha256_prefix(sha256_hex(canonical_json(payload)))
