import hashlib
import re
import socket
import threading
import time
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse

from arango import ArangoClient
from arango.exceptions import ArangoError, ArangoServerError

import core_metrics
from core_config import get_settings
from core_config.constants import STORAGE_MAX_RETRIES, STORAGE_RETRY_BASE_MS, STORAGE_RETRY_JITTER_MS
from core_logging import get_logger, log_stage, trace_span
from core_models import Edge, Node
from core_utils.backoff import compute_backoff_delay_ms, interruptible_sleep

from .errors import StoreError, StoreErrorKind


logger = get_logger("core_storage")

_DOC_INTERNALS = ("_key", "_id", "_rev", "_from", "_to")


class ArangoGraphStore:
    """Embedded store backed by an ArangoDB named graph.

    Nodes live in the ``nodes`` document collection and edges in the ``edges``
    edge collection, keyed by the (unpadded) guid.  The connection is opened
    lazily; when the server cannot be reached every call raises
    ``StoreError(unavailable)``.
    """

    backend = "arango"

    # ------------------------------------------------------------
    # Construction & connection
    # ------------------------------------------------------------

    def __init__(
        self,
        url: str | None = None,
        root_user: str | None = None,
        root_password: str | None = None,
        db_name: str | None = None,
        graph_name: str | None = None,
        nodes_col: str = "nodes",
        edges_col: str = "edges",
        *,
        client: object | None = None,
        lazy: bool = True,
        max_retries: int = STORAGE_MAX_RETRIES,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        cfg = get_settings()
        self._url = url or cfg.arango_url
        self._root_user = root_user or cfg.arango_root_user
        self._root_password = root_password if root_password is not None else cfg.arango_root_password
        self._db_name = db_name or cfg.arango_db
        self._graph_name = graph_name or cfg.arango_graph_name
        self._client = client  # injected database stub for tests
        self.nodes_col, self.edges_col = nodes_col, edges_col
        self._max_retries = max(0, int(max_retries))
        # retry backoff waits on this; setting it abandons the retry with the last error
        self._cancel = cancel
        self.db: Optional[Any] = None
        self.graph: Optional[Any] = None
        self.collection_id: Optional[str] = None
        self.collection_name: Optional[str] = None
        if not lazy:
            self._connect()

    def bind_identity(self, collection_id: str, collection_name: Optional[str] = None) -> None:
        self.collection_id = collection_id
        self.collection_name = collection_name

    def _probe(self) -> None:
        """Fail fast (DNS, then a 50 ms TCP handshake) when ArangoDB is unreachable."""
        parsed = urlparse(self._url)
        host = parsed.hostname or self._url
        port = parsed.port or 8529
        try:
            socket.getaddrinfo(host, None)
        except socket.gaierror:
            raise StoreError(StoreErrorKind.unavailable, "connect", f"ArangoDB host '{host}' not resolvable") from None
        try:
            sock = socket.create_connection((host, port), timeout=0.05)
            sock.close()
        except OSError:
            raise StoreError(StoreErrorKind.unavailable, "connect", f"ArangoDB {host}:{port} unreachable") from None

    def _connect(self) -> Any:
        if self.db is not None:
            return self.db
        if self._client is not None:
            self.db = self._client
            return self.db
        self._probe()
        t0 = time.perf_counter()
        try:
            client = ArangoClient(hosts=self._url)
            sys_db = client.db("_system", username=self._root_user, password=self._root_password)
            if not sys_db.has_database(self._db_name):
                sys_db.create_database(self._db_name)
            db = client.db(self._db_name, username=self._root_user, password=self._root_password)
            graph = (
                db.graph(self._graph_name)
                if db.has_graph(self._graph_name)
                else db.create_graph(self._graph_name)
            )
            for name in (self.nodes_col, self.edges_col):
                if not db.has_collection(name):
                    db.create_collection(name, edge=(name == self.edges_col))
            if not graph.has_edge_definition(self.edges_col):
                graph.create_edge_definition(
                    edge_collection=self.edges_col,
                    from_vertex_collections=[self.nodes_col],
                    to_vertex_collections=[self.nodes_col],
                )
        except (ArangoError, OSError) as exc:
            logger.error("ArangoDB unavailable: %s", exc)
            raise StoreError(StoreErrorKind.unavailable, "connect", f"ArangoDB unavailable: {exc}") from exc
        finally:
            core_metrics.histogram_ms(
                "arangodb_connection_latency_ms",
                (time.perf_counter() - t0) * 1_000,
            )
        self.db, self.graph = db, graph
        log_stage(logger, "storage", "arango_connected",
                  db=self._db_name, graph=self._graph_name, collection_id=self.collection_id)
        return self.db

    def ready(self) -> bool:
        """Return True when a database connection is (or can be) established."""
        try:
            self._connect()
        except StoreError:
            return False
        return True

    # ------------------------------------------------------------
    # Key & document helpers
    # ------------------------------------------------------------

    _ILLEGAL_CHARS = re.compile(r"[^A-Za-z0-9_\-:\.]")

    def _safe_key(self, guid: str) -> str:
        # Padding is implied by length, so dropping '=' keeps keys unique.
        cleaned = self._ILLEGAL_CHARS.sub("_", guid.rstrip("="))
        if len(cleaned.encode()) <= 254:
            return cleaned
        digest = hashlib.sha1(cleaned.encode()).hexdigest()[:8]
        return f"{cleaned[:245]}_{digest}"

    def _node_id(self, guid: str) -> str:
        return f"{self.nodes_col}/{self._safe_key(guid)}"

    @staticmethod
    def _strip(doc: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in doc.items() if k not in _DOC_INTERNALS}

    @staticmethod
    def _cursor_to_list(cursor: Any) -> List[Dict[str, Any]]:
        try:
            return list(cursor)
        except TypeError:
            pass
        for attr in ("results", "_result"):
            obj = getattr(cursor, attr, None)
            if isinstance(obj, (list, tuple)):
                return list(obj)
        return []

    def _translate(self, exc: Exception, operation: str, guid: Optional[str] = None) -> StoreError:
        if isinstance(exc, StoreError):
            return exc
        if isinstance(exc, ArangoServerError):
            code = int(getattr(exc, "http_code", 0) or 0)
            if code == 409:
                kind = StoreErrorKind.conflict
            elif code == 404:
                kind = StoreErrorKind.not_found
            elif code == 400:
                kind = StoreErrorKind.invalid
            else:
                kind = StoreErrorKind.unavailable
        else:
            kind = StoreErrorKind.unavailable
        return StoreError(kind, operation, str(exc) or exc.__class__.__name__, guid=guid)

    def _with_retry(self, operation: str, guid: Optional[str], fn):
        attempt = 0
        while True:
            try:
                db = self._connect()
                return fn(db)
            except (ArangoError, OSError, StoreError) as exc:
                err = self._translate(exc, operation, guid)
                if not err.retryable or attempt >= self._max_retries:
                    if err is exc:
                        raise
                    raise err from exc
                attempt += 1
                delay_ms = compute_backoff_delay_ms(
                    attempt, base_ms=STORAGE_RETRY_BASE_MS, jitter_ms=STORAGE_RETRY_JITTER_MS, cap_ms=2000
                )
                log_stage(logger, "storage", "arango_retry",
                          operation=operation, attempt=attempt, delay_ms=delay_ms, guid=guid)
                if not interruptible_sleep(delay_ms / 1000.0, self._cancel):
                    log_stage(logger, "storage", "arango_retry_cancelled",
                              operation=operation, attempt=attempt, guid=guid)
                    if err is exc:
                        raise
                    raise err from exc

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------

    def get_node(self, guid: str) -> Node:
        doc = self._with_retry("get_node", guid,
                               lambda db: db.collection(self.nodes_col).get(self._safe_key(guid)))
        if not doc:
            raise StoreError(StoreErrorKind.not_found, "get_node", f"node {guid!r} is not known", guid=guid)
        return Node.model_validate(self._strip(doc))

    def is_node_known(self, guid: str) -> bool:
        return bool(self._with_retry("is_node_known", guid,
                                     lambda db: db.collection(self.nodes_col).has(self._safe_key(guid))))

    def find_nodes_by_type(
        self,
        type_id: str,
        *,
        filters: Optional[Mapping[str, str]] = None,
        limit: Optional[int] = None,
    ) -> List[Node]:
        if limit is not None and limit < 0:
            raise StoreError(StoreErrorKind.invalid, "find_nodes_by_type", f"negative limit {limit}")
        bind: Dict[str, Any] = {"@col": self.nodes_col, "tid": type_id}
        clauses = ["d.type_id == @tid"]
        for i, (k, v) in enumerate(sorted((filters or {}).items())):
            clauses.append(f"d.properties[@k{i}] == @v{i}")
            bind[f"k{i}"], bind[f"v{i}"] = k, v
        aql = f"FOR d IN @@col FILTER {' AND '.join(clauses)} SORT d.guid"
        if limit is not None:
            aql += " LIMIT @limit"
            bind["limit"] = int(limit)
        aql += " RETURN d"
        with trace_span("storage.arango.find_nodes_by_type", logger=logger, stage="storage"):
            docs = self._with_retry("find_nodes_by_type", None,
                                    lambda db: self._cursor_to_list(db.aql.execute(aql, bind_vars=bind)))
        return [Node.model_validate(self._strip(d)) for d in docs]

    def get_edges_for_node(self, node_guid: str, edge_type_id: Optional[str] = None) -> List[Edge]:
        if not self.is_node_known(node_guid):
            raise StoreError(StoreErrorKind.not_found, "get_edges_for_node",
                             f"node {node_guid!r} is not known", guid=node_guid)
        aql = """
        FOR e IN @@col
          FILTER (e._from == @nid OR e._to == @nid)
          FILTER @etid == null OR e.type_id == @etid
          SORT e.guid
          RETURN e
        """
        bind = {"@col": self.edges_col, "nid": self._node_id(node_guid), "etid": edge_type_id}
        docs = self._with_retry("get_edges_for_node", node_guid,
                                lambda db: self._cursor_to_list(db.aql.execute(aql, bind_vars=bind)))
        return [Edge.model_validate(self._strip(d)) for d in docs]

    def get_edge(self, guid: str) -> Edge:
        doc = self._with_retry("get_edge", guid,
                               lambda db: db.collection(self.edges_col).get(self._safe_key(guid)))
        if not doc:
            raise StoreError(StoreErrorKind.not_found, "get_edge", f"edge {guid!r} is not known", guid=guid)
        return Edge.model_validate(self._strip(doc))

    def is_edge_known(self, guid: str) -> bool:
        return bool(self._with_retry("is_edge_known", guid,
                                     lambda db: db.collection(self.edges_col).has(self._safe_key(guid))))

    # ------------------------------------------------------------
    # Reference-copy writes
    # ------------------------------------------------------------

    def _check_existing(self, existing: Optional[Dict[str, Any]], record: Node | Edge, operation: str) -> None:
        if not existing:
            return
        if existing.get("type_name") != record.type_name or existing.get("home_collection_id") != record.home_collection_id:
            raise StoreError(
                StoreErrorKind.conflict, operation,
                f"{record.guid!r} already stored as {existing.get('type_name')} "
                f"homed in {existing.get('home_collection_id')!r}",
                guid=record.guid,
            )

    def upsert_node(self, node: Node) -> bool:
        """Insert-or-replace *node*; returns True when the document was created."""
        key = self._safe_key(node.guid)
        doc = {"_key": key, **node.model_dump(mode="json")}

        def _write(db):
            col = db.collection(self.nodes_col)
            existing = col.get(key)
            self._check_existing(existing, node, "upsert_node")
            col.insert(doc, overwrite=True)
            return existing is None

        return self._with_retry("upsert_node", node.guid, _write)

    def upsert_edge(self, edge: Edge) -> bool:
        """Insert-or-replace *edge*; both end nodes must already exist."""
        key = self._safe_key(edge.guid)
        doc = {
            "_key": key,
            "_from": self._node_id(edge.end1.guid),
            "_to": self._node_id(edge.end2.guid),
            **edge.model_dump(mode="json"),
        }

        def _write(db):
            nodes = db.collection(self.nodes_col)
            for end in (edge.end1, edge.end2):
                if not nodes.has(self._safe_key(end.guid)):
                    raise StoreError(
                        StoreErrorKind.not_found, "upsert_edge",
                        f"edge {edge.type_name} references unknown node {end.guid!r}",
                        guid=edge.guid,
                    )
            col = db.collection(self.edges_col)
            existing = col.get(key)
            self._check_existing(existing, edge, "upsert_edge")
            col.insert(doc, overwrite=True)
            return existing is None

        return self._with_retry("upsert_edge", edge.guid, _write)


__all__ = ["ArangoGraphStore"]
