from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from core_config.constants import EMBEDDED_SUFFIX
from core_logging import get_logger, log_stage
from core_models import Edge, Node

from .base import EmbeddedStore
from .errors import StoreConfigError

logger = get_logger("core_storage.dual_tier")


class DualTierStore:
    """
    Outer store with its own collection identity, delegating every read and
    write to exactly one embedded store.

    Calls are forwarded unchanged and the embedded store's errors propagate
    untouched.  Records come back exactly as the embedded store returns them:
    identity fields (``home_collection_id``) are not rewritten to the outer id.
    """

    def __init__(
        self,
        collection_id: str,
        collection_name: Optional[str] = None,
        *,
        embedded_stores: Sequence[EmbeddedStore],
        embedded_collection_id: Optional[str] = None,
    ) -> None:
        if not collection_id:
            raise StoreConfigError("outer collection id is required")
        stores = list(embedded_stores or ())
        if len(stores) != 1:
            raise StoreConfigError(
                f"exactly one embedded store must be attached, got {len(stores)}"
            )
        self.collection_id = collection_id
        self.collection_name = collection_name or collection_id
        self.embedded_collection_id = embedded_collection_id or f"{collection_id}{EMBEDDED_SUFFIX}"
        self.embedded_collection_name = f"{self.collection_name}{EMBEDDED_SUFFIX}"
        if self.embedded_collection_id == self.collection_id:
            raise StoreConfigError("embedded collection id must differ from the outer id")
        self._embedded = stores[0]
        self._embedded.bind_identity(self.embedded_collection_id, self.embedded_collection_name)
        log_stage(
            logger, "storage", "dual_tier_attached",
            collection_id=self.collection_id,
            embedded_collection_id=self.embedded_collection_id,
            backend=getattr(self._embedded, "backend", type(self._embedded).__name__),
        )

    @property
    def embedded(self) -> EmbeddedStore:
        return self._embedded

    def ready(self) -> bool:
        return bool(self._embedded.ready())

    def describe(self) -> Dict[str, Any]:
        return {
            "collection_id": self.collection_id,
            "collection_name": self.collection_name,
            "embedded_collection_id": self.embedded_collection_id,
            "embedded_collection_name": self.embedded_collection_name,
            "backend": getattr(self._embedded, "backend", type(self._embedded).__name__),
        }

    # ── reads ──────────────────────────────────────────────────────────────
    def get_node(self, guid: str) -> Node:
        return self._embedded.get_node(guid)

    def is_node_known(self, guid: str) -> bool:
        return self._embedded.is_node_known(guid)

    def find_nodes_by_type(
        self,
        type_id: str,
        *,
        filters: Optional[Mapping[str, str]] = None,
        limit: Optional[int] = None,
    ) -> List[Node]:
        return self._embedded.find_nodes_by_type(type_id, filters=filters, limit=limit)

    def get_edges_for_node(self, node_guid: str, edge_type_id: Optional[str] = None) -> List[Edge]:
        return self._embedded.get_edges_for_node(node_guid, edge_type_id)

    def get_edge(self, guid: str) -> Edge:
        return self._embedded.get_edge(guid)

    def is_edge_known(self, guid: str) -> bool:
        return self._embedded.is_edge_known(guid)

    # ── reference-copy writes ──────────────────────────────────────────────
    def upsert_node(self, node: Node) -> bool:
        return self._embedded.upsert_node(node)

    def upsert_edge(self, edge: Edge) -> bool:
        return self._embedded.upsert_edge(edge)


__all__ = ["DualTierStore"]
