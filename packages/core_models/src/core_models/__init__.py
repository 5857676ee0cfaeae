"""
core_models — canonical exports

Re-exports the ontology vocabulary and the graph value types so every
package shares a single definition of what a synthesized node/edge is.
"""

from .ontology import (
    NodeTypeName, EdgeTypeName,
    DATA_FILE, CONNECTION, CONNECTOR_TYPE, ENDPOINT,
    CONNECTION_TO_ASSET, CONNECTION_CONNECTOR_TYPE, CONNECTION_ENDPOINT,
    NODE_TYPES, EDGE_TYPES, REQUIRED_TYPE_NAMES, EDGE_TOPOLOGY,
    ENDPOINT_PROTOCOL, canonical_name, derive_file_type,
)
from .models import (
    Provenance, Status,
    TypeDescriptor, EndpointRef, Node, Edge,
    InstanceGraph, ScanResult,
)

__all__ = [
    "NodeTypeName", "EdgeTypeName",
    "DATA_FILE", "CONNECTION", "CONNECTOR_TYPE", "ENDPOINT",
    "CONNECTION_TO_ASSET", "CONNECTION_CONNECTOR_TYPE", "CONNECTION_ENDPOINT",
    "NODE_TYPES", "EDGE_TYPES", "REQUIRED_TYPE_NAMES", "EDGE_TOPOLOGY",
    "ENDPOINT_PROTOCOL", "canonical_name", "derive_file_type",
    "Provenance", "Status",
    "TypeDescriptor", "EndpointRef", "Node", "Edge",
    "InstanceGraph", "ScanResult",
]
