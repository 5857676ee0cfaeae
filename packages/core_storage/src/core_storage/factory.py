from __future__ import annotations

import threading
from typing import Optional

from core_config import Settings, get_settings

from .base import EmbeddedStore
from .dual_tier import DualTierStore
from .errors import StoreConfigError


def build_embedded_store(
    settings: Optional[Settings] = None,
    *,
    cancel: Optional[threading.Event] = None,
) -> EmbeddedStore:
    """
    Instantiate the embedded backend named by ``FOLDER_SYNC_EMBEDDED_STORE``.
    ``cancel`` interrupts the Arango retry backoff.
    """
    cfg = settings or get_settings()
    if cfg.embedded_store == "memory":
        from .memory import InMemoryGraphStore
        return InMemoryGraphStore()
    if cfg.embedded_store == "arango":
        from .arangodb import ArangoGraphStore
        return ArangoGraphStore(
            url=cfg.arango_url,
            root_user=cfg.arango_username,
            root_password=cfg.arango_password,
            db_name=cfg.arango_db,
            graph_name=cfg.arango_graph_name,
            lazy=True,
            cancel=cancel,
        )
    raise StoreConfigError(f"unknown embedded store {cfg.embedded_store!r}")


def build_dual_tier_store(
    settings: Optional[Settings] = None,
    *,
    embedded: Optional[EmbeddedStore] = None,
    cancel: Optional[threading.Event] = None,
) -> DualTierStore:
    cfg = settings or get_settings()
    return DualTierStore(
        cfg.collection_id,
        cfg.collection_name,
        embedded_stores=[embedded if embedded is not None else build_embedded_store(cfg, cancel=cancel)],
        embedded_collection_id=cfg.embedded_collection_id,
    )


__all__ = ["build_embedded_store", "build_dual_tier_store"]
