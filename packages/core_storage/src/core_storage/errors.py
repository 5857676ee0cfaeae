from __future__ import annotations
from enum import Enum
from typing import Any, Dict, Optional


class StoreErrorKind(str, Enum):
    conflict = "conflict"        # record exists with an incompatible owner/type
    not_found = "not_found"      # guid unknown to the store
    invalid = "invalid"          # malformed record or parameter
    unavailable = "unavailable"  # backend unreachable / not connected


class StoreError(Exception):
    """Embedded-store failure. The dual-tier façade passes it through unchanged."""

    def __init__(
        self,
        kind: StoreErrorKind,
        operation: str,
        message: str,
        *,
        guid: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.kind = StoreErrorKind(kind)
        self.operation = operation
        self.message = message
        self.guid = guid

    @property
    def retryable(self) -> bool:
        return self.kind is StoreErrorKind.unavailable

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind.value, "operation": self.operation, "message": self.message}
        if self.guid is not None:
            out["guid"] = self.guid
        return out

    def __repr__(self) -> str:
        return f"StoreError(kind={self.kind.value!r}, operation={self.operation!r}, message={self.message!r})"


class StoreConfigError(ValueError):
    """Startup-time misconfiguration of the store layering."""


__all__ = ["StoreErrorKind", "StoreError", "StoreConfigError"]
