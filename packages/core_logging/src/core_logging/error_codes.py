from enum import Enum

class ErrorCode(str, Enum):
    """
    Canonical error kinds for the folder synchronizer.
    Carried by ``SyncError.kind`` and emitted as ``error_code`` in logs.
    """
    config_invalid       = "config_invalid"
    directory_not_found  = "directory_not_found"
    not_a_directory      = "not_a_directory"
    access_denied        = "access_denied"
    io_error             = "io_error"
    types_unavailable    = "types_unavailable"
    type_error           = "type_error"
    emission_failed      = "emission_failed"
    already_running      = "already_running"
    cancelled            = "cancelled"
    storage_unavailable  = "storage_unavailable"
    storage_conflict     = "storage_conflict"
    invalid_parameter    = "invalid_parameter"
    internal             = "internal"

# Kinds that will not clear up by retrying on the next cycle.
PERSISTENT_KINDS = frozenset({
    ErrorCode.config_invalid,
    ErrorCode.directory_not_found,
    ErrorCode.not_a_directory,
    ErrorCode.access_denied,
    ErrorCode.types_unavailable,
    ErrorCode.storage_unavailable,
})

__all__ = ["ErrorCode", "PERSISTENT_KINDS"]
