from __future__ import annotations

import threading
from typing import Dict, List, Mapping, Optional

from core_logging import get_logger, log_stage
from core_models import Edge, Node

from .errors import StoreError, StoreErrorKind

logger = get_logger("core_storage.memory")


class InMemoryGraphStore:
    """Process-local embedded store.

    Holds reference copies keyed by guid behind a single lock.  A record
    already held for a different home collection, or under a different type,
    is a conflict; edges require both ends to be present.
    """

    backend = "memory"

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._nodes: Dict[str, Node] = {}
        self._edges: Dict[str, Edge] = {}
        # node guid → edge guids touching it (either end)
        self._adjacent: Dict[str, set[str]] = {}
        self.collection_id: Optional[str] = None
        self.collection_name: Optional[str] = None

    def bind_identity(self, collection_id: str, collection_name: Optional[str] = None) -> None:
        with self._lock:
            self.collection_id = collection_id
            self.collection_name = collection_name

    def ready(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_node(self, guid: str) -> Node:
        with self._lock:
            node = self._nodes.get(guid)
        if node is None:
            raise StoreError(StoreErrorKind.not_found, "get_node", f"node {guid!r} is not known", guid=guid)
        return node

    def is_node_known(self, guid: str) -> bool:
        with self._lock:
            return guid in self._nodes

    def find_nodes_by_type(
        self,
        type_id: str,
        *,
        filters: Optional[Mapping[str, str]] = None,
        limit: Optional[int] = None,
    ) -> List[Node]:
        if limit is not None and limit < 0:
            raise StoreError(StoreErrorKind.invalid, "find_nodes_by_type", f"negative limit {limit}")
        with self._lock:
            candidates = [n for n in self._nodes.values() if n.type_id == type_id]
        if filters:
            candidates = [
                n for n in candidates
                if all(n.properties.get(k) == v for k, v in filters.items())
            ]
        candidates.sort(key=lambda n: n.guid)
        return candidates[:limit] if limit is not None else candidates

    def get_edges_for_node(self, node_guid: str, edge_type_id: Optional[str] = None) -> List[Edge]:
        with self._lock:
            if node_guid not in self._nodes:
                raise StoreError(
                    StoreErrorKind.not_found, "get_edges_for_node",
                    f"node {node_guid!r} is not known", guid=node_guid,
                )
            edges = [self._edges[g] for g in self._adjacent.get(node_guid, ())]
        if edge_type_id is not None:
            edges = [e for e in edges if e.type_id == edge_type_id]
        edges.sort(key=lambda e: e.guid)
        return edges

    def get_edge(self, guid: str) -> Edge:
        with self._lock:
            edge = self._edges.get(guid)
        if edge is None:
            raise StoreError(StoreErrorKind.not_found, "get_edge", f"edge {guid!r} is not known", guid=guid)
        return edge

    def is_edge_known(self, guid: str) -> bool:
        with self._lock:
            return guid in self._edges

    # ------------------------------------------------------------------
    # Reference-copy writes
    # ------------------------------------------------------------------
    def upsert_node(self, node: Node) -> bool:
        """Save *node*; returns True when created, False when refreshed."""
        with self._lock:
            existing = self._nodes.get(node.guid)
            if existing is not None:
                self._check_compatible(existing, node, "upsert_node")
            self._nodes[node.guid] = node
            self._adjacent.setdefault(node.guid, set())
        if existing is None:
            log_stage(logger, "storage", "node_created", guid=node.guid, type_name=node.type_name)
        return existing is None

    def upsert_edge(self, edge: Edge) -> bool:
        """Save *edge*; both ends must already be stored."""
        with self._lock:
            for end in (edge.end1, edge.end2):
                if end.guid not in self._nodes:
                    raise StoreError(
                        StoreErrorKind.not_found, "upsert_edge",
                        f"edge {edge.type_name} references unknown node {end.guid!r}",
                        guid=edge.guid,
                    )
            existing = self._edges.get(edge.guid)
            if existing is not None:
                self._check_compatible(existing, edge, "upsert_edge")
            self._edges[edge.guid] = edge
            self._adjacent.setdefault(edge.end1.guid, set()).add(edge.guid)
            self._adjacent.setdefault(edge.end2.guid, set()).add(edge.guid)
        return existing is None

    @staticmethod
    def _check_compatible(existing: Node | Edge, incoming: Node | Edge, operation: str) -> None:
        if existing.type_name != incoming.type_name:
            raise StoreError(
                StoreErrorKind.conflict, operation,
                f"{incoming.guid!r} already stored as {existing.type_name}, not {incoming.type_name}",
                guid=incoming.guid,
            )
        if existing.home_collection_id != incoming.home_collection_id:
            raise StoreError(
                StoreErrorKind.conflict, operation,
                f"{incoming.guid!r} is homed in {existing.home_collection_id!r}",
                guid=incoming.guid,
            )

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"nodes": len(self._nodes), "edges": len(self._edges)}


__all__ = ["InMemoryGraphStore"]
