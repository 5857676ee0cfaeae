from .logger import (
    get_logger,
    log_stage,
    set_snapshot_etag,
    bind_cycle_id,
    unbind_cycle_id,
    current_cycle_id,
    log_once_process,
    emit_cycle_summary,
    reset_cycle_summary,
    cycle_errors,
    record_error,
    trace_span,
)

__all__ = [
    "get_logger",
    "log_stage",
    "set_snapshot_etag",
    "bind_cycle_id",
    "unbind_cycle_id",
    "current_cycle_id",
    "trace_span",
    "log_once_process",
    "emit_cycle_summary",
    "reset_cycle_summary",
    "cycle_errors",
    "record_error",
]
