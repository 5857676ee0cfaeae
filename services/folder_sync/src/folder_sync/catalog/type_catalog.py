from __future__ import annotations

import threading
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from core_config.constants import DEFAULT_TYPE_RETRY_BACKOFF_S, DEFAULT_TYPE_RETRY_MAX
from core_logging import get_logger, log_stage
from core_logging.error_codes import ErrorCode
from core_metrics import counter as _metric_counter
from core_models import REQUIRED_TYPE_NAMES, TypeDescriptor
from core_utils.backoff import interruptible_sleep

from ..errors import SyncError
from .schema_provider import SchemaProvider

logger = get_logger("folder_sync.catalog")


class TypeCatalog:
    """
    Resolves the full set of required type descriptors, all or nothing.

    A snapshot is only published once every name resolved in the same
    attempt; between attempts the catalog waits on ``cancel`` so a stopping
    worker is never stuck in type resolution.
    """

    def __init__(
        self,
        provider: SchemaProvider,
        *,
        max_retries: int = DEFAULT_TYPE_RETRY_MAX,
        backoff_seconds: float = DEFAULT_TYPE_RETRY_BACKOFF_S,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self.provider = provider
        self.max_retries = int(max_retries)
        self.backoff_seconds = max(0.0, float(backoff_seconds))
        self.cancel = cancel
        self._snapshot: Optional[Mapping[str, TypeDescriptor]] = None

    @property
    def snapshot(self) -> Optional[Mapping[str, TypeDescriptor]]:
        """Last complete mapping published by ``resolve_all`` (None before the first)."""
        return self._snapshot

    def _attempt(self, names: List[str]) -> Dict[str, TypeDescriptor]:
        found: Dict[str, TypeDescriptor] = {}
        for name in names:
            try:
                desc = self.provider.resolve_type_by_name(name)
            except Exception as exc:  # provider failure counts as "not found" this attempt
                log_stage(logger, "catalog", "type_lookup_failed",
                          type_name=name, error=str(exc), error_type=type(exc).__name__)
                continue
            if desc is not None:
                found[name] = desc
        return found

    def resolve_all(self, required_names: Iterable[str] = REQUIRED_TYPE_NAMES) -> Mapping[str, TypeDescriptor]:
        names = list(dict.fromkeys(required_names))
        retries = 0
        while True:
            found = self._attempt(names)
            if len(found) == len(names):
                for name in names:
                    log_stage(logger, "catalog", "found_type", type_name=name, type_id=found[name].id)
                log_stage(logger, "catalog", "acquired_all_types",
                          required_count=len(names), retry_count=retries)
                self._snapshot = MappingProxyType({n: found[n] for n in names})
                return self._snapshot

            missing = [n for n in names if n not in found]
            log_stage(logger, "catalog", "acquiring_types_loop",
                      found_count=len(found), required_count=len(names),
                      retry_count=retries, missing=missing)
            retries += 1
            _metric_counter("folder_sync_type_resolution_retries_total")
            if retries >= self.max_retries:
                raise SyncError(
                    ErrorCode.types_unavailable, "resolve_all",
                    f"{len(missing)} of {len(names)} types not available after {retries} attempts: "
                    + ", ".join(missing),
                    type_name=missing[0],
                    context={"missing": missing, "retry_count": retries},
                )
            if not interruptible_sleep(self.backoff_seconds, self.cancel):
                log_stage(logger, "catalog", "acquiring_types_loop_interrupted",
                          found_count=len(found), retry_count=retries)
                raise SyncError(
                    ErrorCode.cancelled, "resolve_all",
                    "type resolution interrupted by shutdown",
                    context={"missing": missing, "retry_count": retries},
                )


__all__ = ["TypeCatalog"]
