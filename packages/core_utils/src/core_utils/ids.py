import base64, uuid
from typing import Optional

__all__ = [
    "derive_guid",
    "decode_guid",
    "derive_edge_guid",
    "generate_cycle_id",
    "generate_request_id",
]

EDGE_GUID_SEPARATOR = "::"

def derive_guid(canonical_name: str) -> str:
    """
    Deterministic GUID for a canonical name: URL-safe base64 of its UTF-8
    bytes, padding kept.  Distinct names always give distinct GUIDs because
    the encoding is reversible (see ``decode_guid``).
    """
    if not isinstance(canonical_name, str) or not canonical_name:
        raise ValueError("canonical name must be a non-empty string")
    return base64.urlsafe_b64encode(canonical_name.encode("utf-8")).decode("ascii")

def decode_guid(guid: str) -> str:
    """Inverse of ``derive_guid``; raises ValueError on malformed input."""
    try:
        return base64.urlsafe_b64decode(guid.encode("ascii")).decode("utf-8")
    except (UnicodeError, ValueError) as exc:
        raise ValueError(f"not a derived guid: {guid!r}") from exc

def derive_edge_guid(end1_guid: str, type_name: str, end2_guid: str) -> str:
    """GUID of a relationship: ``derive_guid(end1 + '::' + type + '::' + end2)``."""
    return derive_guid(EDGE_GUID_SEPARATOR.join((end1_guid, type_name, end2_guid)))

def generate_cycle_id(seq: Optional[int] = None) -> str:
    """
    Non-deterministic id for one polling cycle, for log correlation only.
    ``seq`` (the scheduler's cycle counter) is prefixed when given.
    """
    rnd = uuid.uuid4().hex[:12]
    return f"c{seq}-{rnd}" if seq is not None else rnd

def generate_request_id() -> str:
    """Non-deterministic 16-hex id for logging/health/exception paths."""
    return uuid.uuid4().hex[:16]
