from __future__ import annotations
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core_utils.ids import derive_edge_guid


class Provenance(str, Enum):
    LOCAL = "LOCAL"
    REFERENCE = "REFERENCE"


class Status(str, Enum):
    ACTIVE = "ACTIVE"


class TypeDescriptor(BaseModel):
    name: str
    id: str
    model_config = ConfigDict(frozen=True, extra="forbid")


class EndpointRef(BaseModel):
    """Non-owning pointer to one end of an edge."""
    guid: str
    type_name: str
    model_config = ConfigDict(frozen=True, extra="forbid")


class Node(BaseModel):
    guid: str
    type_name: str
    type_id: str
    # Insertion order is part of the value: two scans must serialize identically.
    properties: Dict[str, str] = Field(default_factory=dict)
    provenance: Provenance = Provenance.LOCAL
    status: Status = Status.ACTIVE
    version: int = 1
    home_collection_id: Optional[str] = None
    model_config = ConfigDict(frozen=True, extra="forbid")

    def ref(self) -> EndpointRef:
        return EndpointRef(guid=self.guid, type_name=self.type_name)


class Edge(BaseModel):
    guid: str
    type_name: str
    type_id: str
    end1: EndpointRef
    end2: EndpointRef
    provenance: Provenance = Provenance.LOCAL
    status: Status = Status.ACTIVE
    version: int = 1
    home_collection_id: Optional[str] = None
    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def _guid_matches_ends(self):
        expected = derive_edge_guid(self.end1.guid, self.type_name, self.end2.guid)
        if self.guid != expected:
            raise ValueError(f"edge guid does not match its ends: {self.guid!r} != {expected!r}")
        return self


class InstanceGraph(BaseModel):
    """One batch: a DataFile and the nodes/edges reachable from it."""
    nodes: Tuple[Node, ...] = ()
    edges: Tuple[Edge, ...] = ()
    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class ScanResult(BaseModel):
    """Everything synthesized from one directory snapshot, in scan order."""
    directory: str
    snapshot_etag: str
    nodes: Tuple[Node, ...] = ()
    edges: Tuple[Edge, ...] = ()
    data_file_guids: Tuple[str, ...] = ()
    skipped: Tuple[str, ...] = ()
    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def file_count(self) -> int:
        return len(self.data_file_guids)


__all__ = [
    "Provenance", "Status",
    "TypeDescriptor", "EndpointRef", "Node", "Edge",
    "InstanceGraph", "ScanResult",
]
