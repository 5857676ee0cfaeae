"""
folder_sync – keeps a metadata graph in step with the files of one folder.

The service layer: type resolution, graph synthesis, reference-copy upserts
into the dual-tier store, batched event emission and the polling worker.
"""

from .errors import SyncError
from .connector import FolderSyncConnector
from .watcher import PollingScheduler, SchedulerState

__all__ = ["SyncError", "FolderSyncConnector", "PollingScheduler", "SchedulerState"]
