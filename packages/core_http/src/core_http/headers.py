"""
Canonical HTTP header names used by folder-sync clients and the read API.
"""
from typing import Final

X_CYCLE_ID: Final[str]          = "X-Cycle-Id"
X_SOURCE_NAME: Final[str]       = "X-Source-Name"
X_COLLECTION_ID: Final[str]     = "X-Collection-Id"
X_REQUEST_ID: Final[str]        = "X-Request-Id"
RESPONSE_SNAPSHOT_ETAG: Final[str] = "x-snapshot-etag"

__all__ = [
    "X_CYCLE_ID", "X_SOURCE_NAME", "X_COLLECTION_ID", "X_REQUEST_ID", "RESPONSE_SNAPSHOT_ETAG",
]
