from __future__ import annotations
from typing import Dict, Literal, Tuple

# ── Type names (as registered with the schema provider) ───────────────────────
NodeTypeName = Literal["DataFile", "Connection", "ConnectorType", "Endpoint"]
EdgeTypeName = Literal["ConnectionToAsset", "ConnectionConnectorType", "ConnectionEndpoint"]

DATA_FILE: NodeTypeName = "DataFile"
CONNECTION: NodeTypeName = "Connection"
CONNECTOR_TYPE: NodeTypeName = "ConnectorType"
ENDPOINT: NodeTypeName = "Endpoint"

CONNECTION_TO_ASSET: EdgeTypeName = "ConnectionToAsset"
CONNECTION_CONNECTOR_TYPE: EdgeTypeName = "ConnectionConnectorType"
CONNECTION_ENDPOINT: EdgeTypeName = "ConnectionEndpoint"

# DataFile's supertype chain; the provider must know all of them before a
# DataFile can be published.
DATA_FILE_SUPERTYPES: Tuple[str, ...] = ("DataStore", "Asset", "Referenceable", "OpenMetadataRoot")

NODE_TYPES: Tuple[NodeTypeName, ...] = (DATA_FILE, CONNECTION, CONNECTOR_TYPE, ENDPOINT)
EDGE_TYPES: Tuple[EdgeTypeName, ...] = (CONNECTION_TO_ASSET, CONNECTION_CONNECTOR_TYPE, CONNECTION_ENDPOINT)

# Ordered so logs and retries report types deterministically.
REQUIRED_TYPE_NAMES: Tuple[str, ...] = DATA_FILE_SUPERTYPES + NODE_TYPES + (
    CONNECTION_ENDPOINT,
    CONNECTION_CONNECTOR_TYPE,
    CONNECTION_TO_ASSET,
)

# ── Canonical-name suffixes per synthesized node type ────────────────────────
CANONICAL_SUFFIX: Dict[str, str] = {
    DATA_FILE: "",
    CONNECTION: "-connection",
    CONNECTOR_TYPE: "-connectortype",
    ENDPOINT: "-endpoint",
}

# ── Edge topology: type → (end1 type, end2 type) ─────────────────────────────
# end1 is always the Connection; ConnectionToAsset points at the asset.
EDGE_TOPOLOGY: Dict[str, Tuple[str, str]] = {
    CONNECTION_TO_ASSET: (CONNECTION, DATA_FILE),
    CONNECTION_CONNECTOR_TYPE: (CONNECTION, CONNECTOR_TYPE),
    CONNECTION_ENDPOINT: (CONNECTION, ENDPOINT),
}

ENDPOINT_PROTOCOL = "file"

def canonical_name(canonical_path: str, type_name: str) -> str:
    """Canonical name of the *type_name* node synthesized for *canonical_path*."""
    try:
        return canonical_path + CANONICAL_SUFFIX[type_name]
    except KeyError:
        raise ValueError(f"no canonical name for type {type_name!r}") from None

def derive_file_type(base_name: str) -> str | None:
    """
    Extension of *base_name*: the text after the last '.', provided the name
    is longer than two characters and that dot is neither first nor last.
    ``report.csv`` → ``csv``; ``README``, ``.bashrc`` and ``data.`` → None.
    """
    if len(base_name) <= 2:
        return None
    idx = base_name.rfind(".")
    if idx <= 0 or idx == len(base_name) - 1:
        return None
    return base_name[idx + 1:]
