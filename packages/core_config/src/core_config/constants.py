import os

# Polling cadence between sync cycles (seconds)
DEFAULT_POLL_INTERVAL_S = float(os.getenv("FOLDER_SYNC_POLL_INTERVAL", "5"))

# Type resolution: attempts before a cycle gives up, and the wait between them
DEFAULT_TYPE_RETRY_MAX = int(os.getenv("FOLDER_SYNC_TYPE_RETRY_MAX", "10"))
DEFAULT_TYPE_RETRY_BACKOFF_S = float(os.getenv("FOLDER_SYNC_TYPE_RETRY_BACKOFF", "1.0"))

# Consecutive identical failures before the operator is signalled
DEFAULT_PERSISTENT_FAILURE_THRESHOLD = int(os.getenv("FOLDER_SYNC_PERSISTENT_FAILURE_THRESHOLD", "5"))

# Identity of the collection this process publishes under
DEFAULT_COLLECTION_ID = os.getenv("FOLDER_SYNC_COLLECTION_ID", "folder-sync-collection")
EMBEDDED_SUFFIX = "-embedded"

# Source name stamped on every published batch
EVENT_SOURCE_NAME = "FolderSyncEventMapper"
DEFAULT_USER_ID = "OMAGServer"

# Outbound HTTP (schema provider, event sink)
HTTP_TIMEOUT_S = float(os.getenv("FOLDER_SYNC_HTTP_TIMEOUT", "2.0"))

# Arango storage
STORAGE_MAX_RETRIES = int(os.getenv("STORAGE_MAX_RETRIES", "3"))
STORAGE_RETRY_BASE_MS = int(os.getenv("STORAGE_RETRY_BASE_MS", "50"))
STORAGE_RETRY_JITTER_MS = int(os.getenv("STORAGE_RETRY_JITTER_MS", "200"))

# Service port for /healthz, /readyz, /metrics and the read API
HEALTH_PORT = int(os.getenv("FOLDER_SYNC_PORT", "8085"))

__all__ = [
    "DEFAULT_POLL_INTERVAL_S",
    "DEFAULT_TYPE_RETRY_MAX",
    "DEFAULT_TYPE_RETRY_BACKOFF_S",
    "DEFAULT_PERSISTENT_FAILURE_THRESHOLD",
    "DEFAULT_COLLECTION_ID",
    "EMBEDDED_SUFFIX",
    "EVENT_SOURCE_NAME",
    "DEFAULT_USER_ID",
    "HTTP_TIMEOUT_S",
    "STORAGE_MAX_RETRIES",
    "STORAGE_RETRY_BASE_MS",
    "STORAGE_RETRY_JITTER_MS",
    "HEALTH_PORT",
]
