from __future__ import annotations

import os
import threading
from typing import Any, Dict, List, Mapping, Optional

from core_config import Settings, get_settings
from core_config.constants import EVENT_SOURCE_NAME
from core_logging import get_logger, log_stage, record_error
from core_logging.error_codes import ErrorCode
from core_models import TypeDescriptor
from core_storage import DualTierStore, EmbeddedStore, build_dual_tier_store

from .catalog import HttpSchemaProvider, SchemaProvider, StaticSchemaProvider, TypeCatalog
from .errors import SyncError
from .pipeline import BatchEventEmitter, GraphSynthesizer, SyncCycle
from .sinks import EventSink, HttpEventSink, LoggingEventSink
from .watcher import PersistentFailureCallback, PollingScheduler

logger = get_logger("folder_sync.connector")


class FolderSyncConnector:
    """
    Wires settings into the running pieces: the dual-tier store, the type
    catalog, the synthesizer, the event emitter and the polling scheduler.

    The store and scheduler are built lazily under one lock and reused
    across ``stop()`` / ``start()``.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        schema_provider: Optional[SchemaProvider] = None,
        embedded_store: Optional[EmbeddedStore] = None,
        sink: Optional[EventSink] = None,
        on_persistent_failure: Optional[PersistentFailureCallback] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._schema_provider = schema_provider
        self._embedded_store = embedded_store
        self._sink = sink
        self._on_persistent_failure = on_persistent_failure
        self._lock = threading.RLock()
        # shared by the scheduler sleep, the type catalog backoff and store retries
        self._cancel = threading.Event()
        self._store: Optional[DualTierStore] = None
        self._scheduler: Optional[PollingScheduler] = None
        # HTTP collaborators built here (not injected); closed by close()
        self._owned: List[Any] = []

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    @property
    def directory(self) -> Optional[str]:
        return self.settings.sync_directory

    def validate_directory(self) -> str:
        directory = self.settings.sync_directory
        if not directory:
            err = SyncError(ErrorCode.config_invalid, "start",
                            "no folder configured (FOLDER_SYNC_DIRECTORY)")
        elif not os.path.exists(directory):
            err = SyncError(ErrorCode.directory_not_found, "start",
                            "configured folder does not exist", path=directory)
        elif not os.path.isdir(directory):
            err = SyncError(ErrorCode.not_a_directory, "start",
                            "configured folder is not a directory", path=directory)
        else:
            return directory
        record_error(err.kind, where=err.operation, message=err.message, logger=logger,
                     stage="connector", path=err.path)
        raise err

    def _build_schema_provider(self) -> SchemaProvider:
        if self._schema_provider is not None:
            return self._schema_provider
        if self.settings.schema_provider_url:
            provider = HttpSchemaProvider(self.settings.schema_provider_url,
                                          timeout_s=self.settings.http_timeout_seconds)
            self._owned.append(provider)
            return provider
        return StaticSchemaProvider()

    def _build_sink(self) -> EventSink:
        if self._sink is not None:
            return self._sink
        if self.settings.event_sink_url:
            sink = HttpEventSink(self.settings.event_sink_url,
                                 timeout_s=self.settings.http_timeout_seconds)
            self._owned.append(sink)
            return sink
        return LoggingEventSink()

    # ------------------------------------------------------------------
    # Lazily built collaborators
    # ------------------------------------------------------------------
    def get_store(self) -> DualTierStore:
        with self._lock:
            if self._store is None:
                self._store = build_dual_tier_store(self.settings, embedded=self._embedded_store,
                                                    cancel=self._cancel)
            return self._store

    def get_scheduler(self) -> PollingScheduler:
        with self._lock:
            if self._scheduler is None:
                self._scheduler = self._build_scheduler(self.validate_directory())
            return self._scheduler

    def _build_scheduler(self, directory: str) -> PollingScheduler:
        cfg = self.settings
        cancel = self._cancel
        catalog = TypeCatalog(
            self._build_schema_provider(),
            max_retries=cfg.type_retry_max,
            backoff_seconds=cfg.type_retry_backoff_seconds,
            cancel=cancel,
        )

        def _synthesizer(types: Mapping[str, TypeDescriptor]) -> GraphSynthesizer:
            return GraphSynthesizer(
                types,
                qualified_name_prefix=cfg.qualified_name_prefix,
                collection_id=cfg.collection_id,
            )

        emitter = BatchEventEmitter(
            self._build_sink(),
            source_name=EVENT_SOURCE_NAME,
            collection_id=cfg.collection_id,
            server_name=cfg.server_name,
            server_type=cfg.server_type,
            org_name=cfg.org_name,
        )
        cycle = SyncCycle(catalog, _synthesizer, self.get_store(), emitter, directory)
        return PollingScheduler(
            cycle,
            poll_interval=cfg.poll_interval_seconds,
            persistent_failure_threshold=cfg.persistent_failure_threshold,
            stop_on_persistent_failure=cfg.stop_on_persistent_failure,
            on_persistent_failure=self._on_persistent_failure,
            cancel=cancel,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        cfg = self.settings
        log_stage(logger, "connector", "connector_starting",
                  collection_id=cfg.collection_id, server_name=cfg.server_name,
                  user_id=cfg.user_id)
        with self._lock:
            directory = self.validate_directory()
            log_stage(logger, "connector", "connecting_to_folder", directory=directory)
            store = self.get_store()
            scheduler = self.get_scheduler()
            log_stage(logger, "connector", "event_mapper_starting",
                      source_name=EVENT_SOURCE_NAME, collection_id=cfg.collection_id)
            scheduler.start()
        log_stage(logger, "connector", "connector_started",
                  directory=directory, collection_id=store.collection_id,
                  embedded_collection_id=store.embedded_collection_id,
                  backend=store.describe()["backend"])

    def stop(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            scheduler = self._scheduler
        if scheduler is not None:
            scheduler.stop(timeout)
        log_stage(logger, "connector", "event_mapper_shutdown", source_name=EVENT_SOURCE_NAME)
        log_stage(logger, "connector", "connector_shutdown", collection_id=self.settings.collection_id)

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop polling and release the HTTP clients; a later start() rebuilds them."""
        self.stop(timeout)
        with self._lock:
            owned, self._owned = self._owned, []
            self._scheduler = None
            self._cancel.clear()
        for resource in owned:
            resource.close()
        log_stage(logger, "connector", "connector_closed", released=len(owned))

    def run_once(self) -> Dict[str, Any]:
        return self.get_scheduler().run_once()

    def status(self) -> Dict[str, Any]:
        with self._lock:
            scheduler, store = self._scheduler, self._store
        return {
            "scheduler": scheduler.status() if scheduler is not None else {"state": "STOPPED", "cycles": 0},
            "store": store.describe() if store is not None else None,
        }


__all__ = ["FolderSyncConnector"]
