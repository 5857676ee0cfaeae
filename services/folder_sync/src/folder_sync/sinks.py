from __future__ import annotations

from typing import Any, Dict, Optional, Protocol, runtime_checkable

import httpx

from core_config.constants import HTTP_TIMEOUT_S
from core_http import inject_headers, make_sync_client
from core_http.headers import X_COLLECTION_ID, X_SOURCE_NAME
from core_logging import get_logger, log_stage
from core_models import InstanceGraph
from core_utils import jsonx

logger = get_logger("folder_sync.sinks")


@runtime_checkable
class EventSink(Protocol):
    """Receives one batched instance graph; returns True on acknowledgement."""

    def publish_batch(
        self,
        source_name: str,
        source_collection_id: str,
        server_name: str,
        server_type: str,
        org_name: str,
        graph: InstanceGraph,
    ) -> bool: ...


def batch_envelope(
    source_name: str,
    source_collection_id: str,
    server_name: str,
    server_type: str,
    org_name: str,
    graph: InstanceGraph,
) -> Dict[str, Any]:
    return {
        "eventType": "BATCH_INSTANCES_EVENT",
        "sourceName": source_name,
        "originatorMetadataCollectionId": source_collection_id,
        "originatorServerName": server_name,
        "originatorServerType": server_type,
        "originatorOrganizationName": org_name,
        "instances": graph.to_payload(),
    }


class LoggingEventSink:
    """Publishes by writing one structured line per batch."""

    def __init__(self) -> None:
        self.published = 0

    def publish_batch(self, source_name, source_collection_id, server_name, server_type, org_name, graph) -> bool:
        self.published += 1
        log_stage(
            logger, "emit", "batch_published",
            source_name=source_name,
            collection_id=source_collection_id,
            server_name=server_name,
            server_type=server_type,
            org_name=org_name,
            node_guids=[n.guid for n in graph.nodes],
            edge_count=len(graph.edges),
        )
        return True


class HttpEventSink:
    """POSTs the JSON envelope to ``url``; any 2xx answer is an ack."""

    def __init__(
        self,
        url: str,
        *,
        timeout_s: float = HTTP_TIMEOUT_S,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.url = url
        self._client = make_sync_client(timeout_s=timeout_s, transport=transport)

    def publish_batch(self, source_name, source_collection_id, server_name, server_type, org_name, graph) -> bool:
        body = jsonx.dumpb(batch_envelope(source_name, source_collection_id, server_name,
                                          server_type, org_name, graph))
        headers = inject_headers({
            "content-type": "application/json",
            X_SOURCE_NAME: source_name,
            X_COLLECTION_ID: source_collection_id,
        })
        resp = self._client.post(self.url, content=body, headers=headers)
        if 200 <= resp.status_code < 300:
            return True
        log_stage(logger, "emit", "batch_rejected", status=resp.status_code, url=self.url)
        return False

    def close(self) -> None:
        self._client.close()


__all__ = ["EventSink", "LoggingEventSink", "HttpEventSink", "batch_envelope"]
