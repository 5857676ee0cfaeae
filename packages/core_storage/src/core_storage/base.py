from __future__ import annotations
from typing import List, Mapping, Optional, Protocol, runtime_checkable

from core_models import Edge, Node


@runtime_checkable
class EmbeddedStore(Protocol):
    """
    Query contract every embedded backend satisfies.

    Reads raise ``StoreError(not_found)`` for unknown guids; writes are
    reference-copy upserts keyed on the record guid.  Every method may raise
    ``StoreError(unavailable)`` when the backend cannot be reached.
    """

    backend: str
    collection_id: Optional[str]

    def bind_identity(self, collection_id: str, collection_name: Optional[str] = None) -> None: ...

    def ready(self) -> bool: ...

    def get_node(self, guid: str) -> Node: ...

    def is_node_known(self, guid: str) -> bool: ...

    def find_nodes_by_type(
        self,
        type_id: str,
        *,
        filters: Optional[Mapping[str, str]] = None,
        limit: Optional[int] = None,
    ) -> List[Node]: ...

    def get_edges_for_node(self, node_guid: str, edge_type_id: Optional[str] = None) -> List[Edge]: ...

    def get_edge(self, guid: str) -> Edge: ...

    def is_edge_known(self, guid: str) -> bool: ...

    def upsert_node(self, node: Node) -> bool: ...

    def upsert_edge(self, edge: Edge) -> bool: ...


__all__ = ["EmbeddedStore"]
