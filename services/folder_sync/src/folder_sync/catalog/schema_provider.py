from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional, Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from core_config.constants import HTTP_TIMEOUT_S
from core_http import inject_headers, make_sync_client
from core_logging import get_logger, log_stage
from core_models import REQUIRED_TYPE_NAMES, TypeDescriptor

logger = get_logger("folder_sync.catalog")


@runtime_checkable
class SchemaProvider(Protocol):
    """Looks up a registered type by name; ``None`` means "not registered (yet)"."""

    def resolve_type_by_name(self, name: str) -> Optional[TypeDescriptor]: ...


def _default_type_id(name: str) -> str:
    return f"folder-sync-type-{name.lower()}"


DEFAULT_TYPES: Mapping[str, TypeDescriptor] = MappingProxyType(
    {name: TypeDescriptor(name=name, id=_default_type_id(name)) for name in REQUIRED_TYPE_NAMES}
)


class StaticSchemaProvider:
    """In-process catalog. Defaults to one stable id per required type."""

    def __init__(self, types: Optional[Mapping[str, TypeDescriptor]] = None) -> None:
        self._types = dict(DEFAULT_TYPES if types is None else types)

    def resolve_type_by_name(self, name: str) -> Optional[TypeDescriptor]:
        return self._types.get(name)

    def register(self, descriptor: TypeDescriptor) -> None:
        self._types[descriptor.name] = descriptor

    def names(self) -> list[str]:
        return sorted(self._types)


class HttpSchemaProvider:
    """
    Remote type registry: ``GET {base_url}/types/name/{name}``.

    200 with ``{"name", "id"}`` is a descriptor, 404 is "not registered".
    Transport failures, other statuses and malformed bodies are logged and
    also reported as ``None`` so the caller's retry loop decides what to do.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = HTTP_TIMEOUT_S,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = make_sync_client(self.base_url, timeout_s=timeout_s, transport=transport)

    def resolve_type_by_name(self, name: str) -> Optional[TypeDescriptor]:
        try:
            resp = self._client.get(f"/types/name/{quote(name, safe='')}", headers=inject_headers())
        except httpx.HTTPError as exc:
            log_stage(logger, "catalog", "schema_request_failed",
                      type_name=name, error=str(exc), base_url=self.base_url)
            return None
        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            log_stage(logger, "catalog", "schema_request_failed",
                      type_name=name, status=resp.status_code, base_url=self.base_url)
            return None
        try:
            body = resp.json()
            return TypeDescriptor(name=str(body.get("name") or name), id=str(body["id"]))
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            log_stage(logger, "catalog", "schema_response_invalid",
                      type_name=name, error=str(exc), base_url=self.base_url)
            return None

    def close(self) -> None:
        self._client.close()


__all__ = ["SchemaProvider", "StaticSchemaProvider", "HttpSchemaProvider", "DEFAULT_TYPES"]
