from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse

from core_config import get_settings
from core_http.errors import attach_standard_error_handlers, error_envelope
from core_http.headers import RESPONSE_SNAPSHOT_ETAG, X_REQUEST_ID
from core_logging import get_logger, log_once_process, log_stage
from core_logging.error_codes import ErrorCode
from core_metrics import render_latest
from core_utils.health import attach_health_routes
from core_utils.ids import generate_request_id

from .connector import FolderSyncConnector
from .errors import SyncError

logger = get_logger("folder_sync")

# SyncError kinds that mean "the service cannot answer right now"
_UNAVAILABLE_KINDS = {ErrorCode.storage_unavailable, ErrorCode.types_unavailable}


def _snapshot_etag(connector: FolderSyncConnector) -> Optional[str]:
    last = (connector.status()["scheduler"] or {}).get("last_summary") or {}
    return last.get("snapshot_etag")


def create_app(connector: Optional[FolderSyncConnector] = None, *, autostart: Optional[bool] = None) -> FastAPI:
    """
    Build the read API over one connector.  With ``autostart`` (default:
    ``FOLDER_SYNC_AUTOSTART``) the lifespan starts polling and stops it on
    shutdown.
    """
    conn = connector or FolderSyncConnector(get_settings())
    start_polling = conn.settings.autostart if autostart is None else autostart

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        log_once_process(logger, "folder_sync_config", event="effective_config",
                         stage="connector",
                         directory=conn.settings.sync_directory,
                         collection_id=conn.settings.collection_id,
                         embedded_store=conn.settings.embedded_store,
                         poll_interval=conn.settings.poll_interval_seconds,
                         autostart=start_polling)
        if start_polling:
            conn.start()
        try:
            yield
        finally:
            if connector is None:
                conn.close()
            elif start_polling:
                conn.stop()

    app = FastAPI(title="Folder Graph Sync", version="0.1.0", lifespan=_lifespan)
    app.state.connector = conn
    attach_standard_error_handlers(app, service="folder_sync")

    @app.exception_handler(SyncError)
    async def _sync_exc_handler(request: Request, exc: SyncError):
        req_id = request.headers.get(X_REQUEST_ID) or generate_request_id()
        status = 503 if exc.kind in _UNAVAILABLE_KINDS or exc.persistent else 500
        return JSONResponse(status_code=status,
                            content=error_envelope(exc.kind.value, exc.message, req_id, details=exc.to_dict()))

    def _readiness() -> Dict[str, Any]:
        status = conn.status()
        sched = status["scheduler"]
        store_ok = conn.get_store().ready()
        started = sched.get("state") in ("STARTING", "RUNNING")
        if start_polling and not sched.get("last_summary") and sched.get("last_error") is None:
            state = "starting"
        elif store_ok and sched.get("last_error") is None:
            state = "ready"
        else:
            state = "degraded"
        return {
            "status": state,
            "ready": state == "ready",
            "polling": started,
            "scheduler": {k: sched.get(k) for k in ("state", "cycles", "consecutive_failures", "last_error")},
            "snapshot_etag": _snapshot_etag(conn),
            "storage_ok": store_ok,
            "request_id": generate_request_id(),
        }

    attach_health_routes(app, checks={"readiness": _readiness})

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        payload, content_type = render_latest()
        return Response(content=payload, media_type=content_type)

    def _stamp(response: Response) -> None:
        etag = _snapshot_etag(conn)
        if etag:
            response.headers[RESPONSE_SNAPSHOT_ETAG] = etag

    @app.get("/v1/collection")
    def collection(response: Response) -> Dict[str, Any]:
        _stamp(response)
        return {**conn.get_store().describe(), "status": conn.status()["scheduler"]}

    @app.get("/v1/nodes/{guid}")
    def get_node(guid: str, response: Response) -> Dict[str, Any]:
        _stamp(response)
        return conn.get_store().get_node(guid).model_dump(mode="json")

    @app.get("/v1/nodes")
    def find_nodes(
        response: Response,
        type_id: str = Query(..., min_length=1),
        limit: Optional[int] = Query(None),
        qualified_name: Optional[str] = Query(None, alias="qualifiedName"),
    ) -> Dict[str, Any]:
        _stamp(response)
        filters = {"qualifiedName": qualified_name} if qualified_name else None
        nodes = conn.get_store().find_nodes_by_type(type_id, filters=filters, limit=limit)
        log_stage(logger, "api", "nodes_listed", type_id=type_id, count=len(nodes))
        return {"count": len(nodes), "nodes": [n.model_dump(mode="json") for n in nodes]}

    @app.get("/v1/nodes/{guid}/edges")
    def node_edges(guid: str, response: Response, edge_type_id: Optional[str] = Query(None)) -> Dict[str, Any]:
        _stamp(response)
        edges = conn.get_store().get_edges_for_node(guid, edge_type_id)
        return {"count": len(edges), "edges": [e.model_dump(mode="json") for e in edges]}

    @app.get("/v1/edges/{guid}")
    def get_edge(guid: str, response: Response) -> Dict[str, Any]:
        _stamp(response)
        return conn.get_store().get_edge(guid).model_dump(mode="json")

    return app


app = create_app()

__all__ = ["create_app", "app"]
