from __future__ import annotations

import os
from typing import Dict, List, Mapping, Optional, Tuple

from core_logging import get_logger, log_stage, trace_span
from core_logging.error_codes import ErrorCode
from core_models import (
    CONNECTION_CONNECTOR_TYPE,
    CONNECTION_ENDPOINT,
    CONNECTION_TO_ASSET,
    DATA_FILE,
    EDGE_TOPOLOGY,
    ENDPOINT,
    ENDPOINT_PROTOCOL,
    Edge,
    InstanceGraph,
    NODE_TYPES,
    Node,
    Provenance,
    ScanResult,
    TypeDescriptor,
    canonical_name,
    derive_file_type,
)
from core_utils.ids import derive_edge_guid, derive_guid
from core_utils.snapshot import compute_snapshot_etag_for_entries

from ..errors import SyncError

logger = get_logger("folder_sync.synthesize")

# Edge emission order within one file's subgraph
_EDGE_ORDER: Tuple[str, ...] = (CONNECTION_TO_ASSET, CONNECTION_CONNECTOR_TYPE, CONNECTION_ENDPOINT)


def _translate_os_error(exc: OSError, operation: str, path: str) -> SyncError:
    if isinstance(exc, FileNotFoundError):
        kind = ErrorCode.directory_not_found
    elif isinstance(exc, NotADirectoryError):
        kind = ErrorCode.not_a_directory
    elif isinstance(exc, PermissionError):
        kind = ErrorCode.access_denied
    else:
        kind = ErrorCode.io_error
    return SyncError(kind, operation, f"{type(exc).__name__}: {exc}", path=path)


def _printable(name: str) -> str:
    """Name with undecodable bytes shown as ``\\xNN`` escapes."""
    return os.fsencode(name).decode("utf-8", "backslashreplace")


def _is_utf8(name: str) -> bool:
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


class GraphSynthesizer:
    """
    Turns the regular files directly under a directory into instance graphs.

    Everything is a pure function of (canonical path, base name, resolved
    types): GUIDs come from canonical names and ``version`` is fixed, so an
    unchanged directory always synthesizes byte-identical output.
    """

    def __init__(
        self,
        catalog: Mapping[str, TypeDescriptor],
        *,
        qualified_name_prefix: str = "",
        collection_id: Optional[str] = None,
        provenance: Provenance = Provenance.LOCAL,
    ) -> None:
        self.catalog = catalog
        self.qualified_name_prefix = qualified_name_prefix or ""
        self.collection_id = collection_id
        self.provenance = provenance

    # ------------------------------------------------------------------
    # Per-file subgraph
    # ------------------------------------------------------------------
    def _descriptor(self, type_name: str, path: str) -> TypeDescriptor:
        desc = self.catalog.get(type_name)
        if desc is None:
            raise SyncError(
                ErrorCode.type_error, "synthesize",
                f"type {type_name!r} is not in the resolved catalog",
                path=path, type_name=type_name,
            )
        return desc

    def _node(self, type_name: str, cpath: str, properties: Dict[str, str]) -> Node:
        desc = self._descriptor(type_name, cpath)
        return Node(
            guid=derive_guid(canonical_name(cpath, type_name)),
            type_name=type_name,
            type_id=desc.id,
            properties=properties,
            provenance=self.provenance,
            home_collection_id=self.collection_id,
        )

    def _edge(self, type_name: str, by_type: Dict[str, Node], cpath: str) -> Edge:
        desc = self._descriptor(type_name, cpath)
        end1_type, end2_type = EDGE_TOPOLOGY[type_name]
        end1, end2 = by_type[end1_type], by_type[end2_type]
        return Edge(
            guid=derive_edge_guid(end1.guid, type_name, end2.guid),
            type_name=type_name,
            type_id=desc.id,
            end1=end1.ref(),
            end2=end2.ref(),
            provenance=self.provenance,
            home_collection_id=self.collection_id,
        )

    def _properties(self, type_name: str, cpath: str, base_name: str) -> Dict[str, str]:
        qualified = self.qualified_name_prefix + canonical_name(cpath, type_name)
        if type_name == DATA_FILE:
            props = {"name": base_name, "qualifiedName": qualified}
            file_type = derive_file_type(base_name)
            if file_type is not None:
                props["fileType"] = file_type
            return props
        props = {"name": canonical_name(base_name, type_name), "qualifiedName": qualified}
        if type_name == ENDPOINT:
            props["protocol"] = ENDPOINT_PROTOCOL
            props["networkAddress"] = cpath
        return props

    def graph_for(self, canonical_path: str, base_name: str) -> InstanceGraph:
        """Subgraph of one file given its already-canonicalized path."""
        by_type: Dict[str, Node] = {}
        for type_name in NODE_TYPES:
            by_type[type_name] = self._node(
                type_name, canonical_path, self._properties(type_name, canonical_path, base_name)
            )
        edges = tuple(self._edge(t, by_type, canonical_path) for t in _EDGE_ORDER)
        return InstanceGraph(nodes=tuple(by_type[t] for t in NODE_TYPES), edges=edges)

    def build_file_graph(self, path: str) -> InstanceGraph:
        try:
            cpath = os.path.realpath(path)
        except OSError as exc:
            raise _translate_os_error(exc, "canonicalize", path) from exc
        if not _is_utf8(cpath):
            raise SyncError(ErrorCode.io_error, "canonicalize",
                            "file name is not valid UTF-8", path=_printable(cpath))
        return self.graph_for(cpath, os.path.basename(path))

    # ------------------------------------------------------------------
    # Directory scan
    # ------------------------------------------------------------------
    def _list_files(self, directory: str) -> Tuple[List[Tuple[str, str]], List[str]]:
        """Sorted ``(base_name, path)`` of regular files, plus skipped entry names."""
        if not os.path.exists(directory):
            raise SyncError(ErrorCode.directory_not_found, "scan",
                            "directory does not exist", path=directory)
        if not os.path.isdir(directory):
            raise SyncError(ErrorCode.not_a_directory, "scan",
                            "path is not a directory", path=directory)
        files: List[Tuple[str, str]] = []
        skipped: List[str] = []
        try:
            with os.scandir(directory) as it:
                for entry in it:
                    try:
                        regular = entry.is_file()
                    except OSError as exc:
                        raise _translate_os_error(exc, "scan", entry.path) from exc
                    if not regular:
                        skipped.append(_printable(entry.name))
                    elif not _is_utf8(entry.name):
                        log_stage(logger, "synthesize", "entry_skipped",
                                  directory=directory, entry=_printable(entry.name),
                                  reason="undecodable_name")
                        skipped.append(_printable(entry.name))
                    else:
                        files.append((entry.name, entry.path))
        except OSError as exc:
            raise _translate_os_error(exc, "scan", directory) from exc
        files.sort(key=lambda f: f[0])
        skipped.sort()
        return files, skipped

    def _canonicalize(self, directory: str, files: List[Tuple[str, str]],
                      skipped: List[str]) -> List[Tuple[str, str]]:
        """
        ``(base_name, canonical_path)`` per distinct file, sorted by name.

        Entries resolving to the same canonical path (symlink aliases) collapse
        to one: the entry that is the file itself wins, else the first name.
        """
        owners: Dict[str, str] = {}
        for base_name, path in files:
            try:
                cpath = os.path.realpath(path)
            except OSError as exc:
                raise _translate_os_error(exc, "canonicalize", path) from exc
            if not _is_utf8(cpath):
                log_stage(logger, "synthesize", "entry_skipped",
                          directory=directory, entry=base_name,
                          canonical_path=_printable(cpath), reason="undecodable_name")
                skipped.append(base_name)
                continue
            held = owners.get(cpath)
            if held is None:
                owners[cpath] = base_name
                continue
            if os.path.abspath(path) == cpath:
                owners[cpath], base_name = base_name, held
            log_stage(logger, "synthesize", "entry_skipped",
                      directory=directory, entry=base_name,
                      alias_of=owners[cpath], reason="alias")
            skipped.append(base_name)
        chosen = [(name, cpath) for cpath, name in owners.items()]
        chosen.sort(key=lambda f: f[0])
        return chosen

    def scan(self, directory: str) -> ScanResult:
        with trace_span("synthesize.scan", logger=logger, stage="synthesize", directory=directory) as span:
            files, skipped = self._list_files(directory)
            entries = self._canonicalize(directory, files, skipped)

            nodes: List[Node] = []
            edges: List[Edge] = []
            data_files: List[str] = []
            canonical: List[str] = []
            for base_name, cpath in entries:
                graph = self.graph_for(cpath, base_name)
                nodes.extend(graph.nodes)
                edges.extend(graph.edges)
                data_files.append(graph.nodes[0].guid)
                canonical.append(cpath)

            skipped.sort()
            if skipped:
                log_stage(logger, "synthesize", "entries_skipped",
                          directory=directory, skipped_count=len(skipped))
            etag = compute_snapshot_etag_for_entries(canonical)
            span.set_attribute("file_count", len(data_files))
            span.set_attribute("snapshot_etag", etag)
            return ScanResult(
                directory=directory,
                snapshot_etag=etag,
                nodes=tuple(nodes),
                edges=tuple(edges),
                data_file_guids=tuple(data_files),
                skipped=tuple(skipped),
            )


__all__ = ["GraphSynthesizer"]
