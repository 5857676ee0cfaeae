from __future__ import annotations

from typing import Any, Dict, Optional

from core_logging.error_codes import ErrorCode, PERSISTENT_KINDS


class SyncError(Exception):
    """
    The synchronizer's single failure type.

    ``kind`` says what went wrong, ``operation`` says where; ``path`` and
    ``type_name`` identify the offending directory entry or schema type.
    """

    def __init__(
        self,
        kind: ErrorCode,
        operation: str,
        message: str,
        *,
        path: Optional[str] = None,
        type_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.kind = ErrorCode(kind)
        self.operation = operation
        self.message = message
        self.path = path
        self.type_name = type_name
        self.context = dict(context or {})

    @property
    def persistent(self) -> bool:
        """True when retrying next cycle cannot help without operator action."""
        return self.kind in PERSISTENT_KINDS

    @property
    def signature(self) -> tuple:
        """Identity used to decide whether two failures are 'the same'."""
        return (self.kind.value, self.operation, self.path, self.type_name)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "kind": self.kind.value,
            "operation": self.operation,
            "message": self.message,
        }
        if self.path is not None:
            out["path"] = self.path
        if self.type_name is not None:
            out["type_name"] = self.type_name
        if self.context:
            out["context"] = self.context
        return out

    def __str__(self) -> str:
        where = f" [{self.path}]" if self.path else (f" [{self.type_name}]" if self.type_name else "")
        return f"{self.kind.value} in {self.operation}{where}: {self.message}"


__all__ = ["SyncError", "ErrorCode"]
