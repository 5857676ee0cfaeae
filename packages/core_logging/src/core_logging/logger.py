import logging, sys, orjson, os
from typing import Any, Optional, Dict, Iterable, List, Tuple
import time
import inspect
import functools
import contextvars
import threading

# ────────────────────────────────────────────────────────────
# Cycle-level aggregation & summary emission
# ────────────────────────────────────────────────────────────
class _CycleAgg:
    __slots__ = ("events", "timers", "last", "errors")
    def __init__(self) -> None:
        self.events: dict[str, dict[str, int]] = {}
        self.timers: dict[str, list[float]] = {}
        self.last: dict[str, Any] = {}
        self.errors: list[dict[str, Any]] = []

_MAX_CRUMBS = 200

_CYCLE_AGG: contextvars.ContextVar[Optional[_CycleAgg]] = contextvars.ContextVar("CYCLE_AGG", default=None)

def _get_cycle_agg() -> _CycleAgg:
    agg = _CYCLE_AGG.get()
    if agg is None:
        agg = _CycleAgg()
        _CYCLE_AGG.set(agg)
    return agg

def _should_summarize() -> bool:
    # LOG_EMIT_MODE=summary folds breadcrumbs into one line per cycle
    return (os.getenv("LOG_EMIT_MODE", "verbose").lower() in ("summary", "summarize", "compact"))

def _is_error_like(event: str, extras: Dict[str, Any]) -> bool:
    ev = (event or "").lower()
    if "error" in extras or extras.get("level") == "ERROR":
        return True
    for k in ("error", "failed", "exception", "interrupted", "unavailable", "persistent_failure"):
        if k in ev:
            return True
    return False

def _always_emit(stage: str, event: str) -> bool:
    # Lifecycle lines stay visible in summary mode
    return stage in ("connector", "scheduler")

def _iter_latencies_ms(extras: Dict[str, Any]) -> Iterable[float]:
    v = extras.get("latency_ms")
    if isinstance(v, (int, float)):
        yield float(v)

def _agg_note(stage: str, event: str, extras: Dict[str, Any]) -> None:
    agg = _get_cycle_agg()
    st = agg.events.setdefault(stage, {})
    st[event] = st.get(event, 0) + 1
    for v in _iter_latencies_ms(extras):
        agg.timers.setdefault(stage, []).append(v)
    for k in ("cycle_id", "snapshot_etag", "directory", "collection_id"):
        v = extras.get(k)
        if isinstance(v, str) and v:
            agg.last[k] = v
    if _is_error_like(event, extras) and len(agg.errors) < _MAX_CRUMBS:
        agg.errors.append({
            "stage": stage,
            "event": event,
            "attrs": {k: v for k, v in extras.items() if k not in ("message", "event")},
        })

def emit_cycle_summary(logger: logging.Logger, **extras: Any) -> None:
    """Emit one compact summary line for the current cycle and reset the aggregator."""
    agg = _CYCLE_AGG.get()
    if not agg:
        return
    timers = {}
    for stage, vals in agg.timers.items():
        if not vals:
            continue
        srt = sorted(vals)
        n = len(srt)
        timers[stage] = {
            "count": n,
            "sum_ms": round(sum(srt), 3),
            "p50_ms": round(float(srt[int(0.5 * (n - 1))]), 3),
            "max_ms": round(max(srt), 3),
        }
    payload = {
        "stage": "summary",
        "counts": {k: sum(v.values()) for k, v in agg.events.items()},
        "events": agg.events,
        "timers": timers,
        **agg.last,
        "error_count": len(agg.errors),
        **extras,
    }
    cid = current_cycle_id()
    if cid and not payload.get("cycle_id"):
        payload["cycle_id"] = cid
    logger.info("cycle_summary", extra=_sanitize_extra(payload))
    _CYCLE_AGG.set(None)

def reset_cycle_summary() -> None:
    _CYCLE_AGG.set(None)

# ────────────────────────────────────────────────────────────
# Error helpers (single-line ERRORs + cycle rollup)
# ────────────────────────────────────────────────────────────
def record_error(
    code: str,
    *,
    where: str,
    message: str,
    logger: logging.Logger,
    action: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
    level: str = "ERROR",
    **extras: Any,
) -> None:
    """
    Emit one normalized ERROR line *and* stash a structured crumb for the
    cycle summary. Safe to call from any failure path.
    """
    agg = _get_cycle_agg()
    crumb = {
        "code": str(getattr(code, "value", code)),
        "where": str(where),
        "message": str(message),
        **({"action": action} if action else {}),
        **({"context": context} if isinstance(context, dict) else {}),
    }
    if len(agg.errors) < _MAX_CRUMBS:
        agg.errors.append(crumb)
    lvl = (level or "ERROR").upper()
    levelno = getattr(logging, lvl, logging.ERROR)
    payload = {
        "stage": extras.pop("stage", None) or "error",
        "error_code": crumb["code"],
        "error_message": message,
        "where": where,
        **({"action": action} if action else {}),
        **({"context": context} if isinstance(context, dict) else {}),
        **extras,
    }
    logger.log(levelno, "error", extra=_sanitize_extra(payload))

def cycle_errors() -> List[Dict[str, Any]]:
    """Return the error crumbs collected for the current cycle (normalized)."""
    agg = _CYCLE_AGG.get()
    return _normalize_error_crumbs(agg.errors if agg else [])[1]

def _normalize_error_crumbs(crumbs: List[Dict[str, Any]]) -> Tuple[int, List[Dict[str, Any]]]:
    out: List[Dict[str, Any]] = []
    for c in (crumbs or []):
        if "code" in c and "where" in c and "message" in c:
            out.append({k: v for k, v in c.items() if v is not None})
            continue
        ev = c.get("event")
        attrs = c.get("attrs") or {}
        code = str(attrs.get("error_code") or str(ev or "generic").lower())
        msg = str(attrs.get("error_message") or attrs.get("error") or ev or "error")
        out.append({"code": code, "where": c.get("stage") or "unknown", "message": msg})
    return (len(out), out)

# ────────────────────────────────────────────────────────────
# Cycle id / snapshot binding
# ────────────────────────────────────────────────────────────
# Every record emitted while a cycle runs carries `cycle_id` (and the
# directory `snapshot_etag` once the scan has computed it).

_CYCLE_ID: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("_CYCLE_ID", default=None)
_SNAPSHOT_ETAG: Optional[str] = None
_SNAPSHOT_LOCK = threading.Lock()

def bind_cycle_id(cycle_id: Optional[str]) -> contextvars.Token:
    """Bind the current cycle id into the local context for log injection."""
    return _CYCLE_ID.set(cycle_id)

def unbind_cycle_id(token: contextvars.Token) -> None:
    """Restore the cycle id that was bound before ``bind_cycle_id`` returned *token*."""
    _CYCLE_ID.reset(token)

def current_cycle_id() -> Optional[str]:
    return _CYCLE_ID.get()

def set_snapshot_etag(value: Optional[str]) -> None:
    """
    Bind *value* as the current ``snapshot_etag``.
    Passing ``None`` clears the binding.
    """
    global _SNAPSHOT_ETAG
    with _SNAPSHOT_LOCK:
        _SNAPSHOT_ETAG = value


class _SnapshotFilter(logging.Filter):
    """Inject the globally-configured ``snapshot_etag`` (if any)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if _SNAPSHOT_ETAG is not None and getattr(record, "snapshot_etag", None) is None:
            record.snapshot_etag = _SNAPSHOT_ETAG
        return True

class _CycleIdFilter(logging.Filter):
    """Inject the bound cycle_id (if any) into LogRecords that lack it."""
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "cycle_id", None) is None:
            cid = _CYCLE_ID.get()
            if cid:
                record.cycle_id = cid
        return True

# Reserved LogRecord attributes we must not overwrite
_RESERVED: set[str] = {
    "name", "msg", "args", "levelname", "levelno",
    "pathname", "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message", "asctime",
    "taskName",
}

# Top-level fields of the log envelope; everything else nests under ``meta``
_TOP_LEVEL: set[str] = {
    "ts",
    "level",
    "service",
    "stage",
    "latency_ms",
    "cycle_id",
    "snapshot_etag",
    "collection_id",
    "directory",
    "message",
    "error_code",
    "where",
}

def _default(obj):
    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="ignore")
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    return str(obj)

class JsonFormatter(logging.Formatter):
    """Emit one orjson-encoded line per record.

    Envelope keys stay top-level; everything else is nested under ``meta``.
    """

    def format(self, record: logging.LogRecord) -> str:
        base: Dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(getattr(record, "created", time.time()))),
            "level": record.levelname,
            "service": os.getenv("SERVICE_NAME", record.name),
            "event": record.getMessage(),
        }
        meta: Dict[str, Any] = {}
        for key, val in record.__dict__.items():
            if key in _RESERVED:
                continue
            if key in _TOP_LEVEL:
                base[key] = val
            else:
                meta[key] = val

        msg_extra = record.__dict__.get("message_extra", None)
        if msg_extra is not None:
            base["message"] = msg_extra
            meta.pop("message_extra", None)
        if record.exc_info:
            meta["exc_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None
            meta["exc_text"] = self.formatException(record.exc_info)
        if meta:
            base["meta"] = meta

        return orjson.dumps(base, default=_default).decode("utf-8")

class StructuredLogger(logging.Logger):
    """
    A `logging.Logger` that accepts arbitrary keyword arguments
    (``logger.info("msg", stage="scan")``) and merges them into ``extra``.
    """

    def _log(                                   # noqa: PLR0913 – keep signature
        self,
        level: int,
        msg: str,
        args,
        exc_info=None,
        extra: Dict[str, Any] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **kwargs: Any,
    ) -> None:
        if kwargs:
            extra = {**(extra or {}), **kwargs}
        extra = _sanitize_extra(extra)
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel,
        )


class DynamicStdoutHandler(logging.StreamHandler):
    """
    Ensures every *emit* writes to **the current** `sys.stdout`, so
    ``redirect_stdout`` in tests captures lines from loggers created earlier.
    """

    def emit(self, record: logging.LogRecord) -> None:  # noqa: D401
        self.setStream(sys.stdout)
        super().emit(record)


logging.setLoggerClass(StructuredLogger)


def get_logger(name: str = "folder_sync", level: str | None = None) -> logging.Logger:
    logger = logging.getLogger(name)
    is_service_root = "." not in name  # only top-level names own handlers

    if is_service_root:
        if not logger.handlers:
            handler = DynamicStdoutHandler()
            handler.setFormatter(JsonFormatter())
            logger.addHandler(handler)
        logger.propagate = False
    else:
        # Leaf loggers bubble to the service root
        if logger.handlers:
            for h in list(logger.handlers):
                logger.removeHandler(h)
        logger.propagate = True
        root_name = name.split(".", 1)[0]
        if not logging.getLogger(root_name).handlers:
            get_logger(root_name, level)

    logger.setLevel(level or os.getenv("SERVICE_LOG_LEVEL", "INFO"))
    # Filters run on the logger the call was made on, so every logger gets them.
    if not any(isinstance(f, _SnapshotFilter) for f in getattr(logger, "filters", [])):
        logger.addFilter(_SnapshotFilter())
    if not any(isinstance(f, _CycleIdFilter) for f in getattr(logger, "filters", [])):
        logger.addFilter(_CycleIdFilter())
    if is_service_root:
        log_once_process(logger, key=f"log_config:{name}",
                         event="log.emit_config",
                         mode=os.getenv("LOG_EMIT_MODE", "verbose"))
    return logger

def _emit_stage_log(logger: logging.Logger, stage: str, event: str, **extras: Any):
    payload = {"stage": stage, **extras}
    _agg_note(stage, event, payload)
    if _should_summarize() and not _always_emit(stage, event) and not _is_error_like(event, payload):
        return
    level = logging.WARNING if _is_error_like(event, payload) else logging.INFO
    logger.log(level, event, extra=_sanitize_extra(payload))

# ---------------------------------------------------------------------------#
# log_stage – imperative **and** decorator utility                           #
# ---------------------------------------------------------------------------#
def log_stage(logger: logging.Logger, stage: str, event: str, **fixed: Any):
    """
    *Imperative*  →  log_stage(logger, "scan", "files_listed", count=3)
    *Decorator*   →  @log_stage(logger, "scan", "scan_dir")
                     def scan(...):
                         ...
    Also exposes ``.ctx`` so it can be used as a context-manager just like
    ``trace_span``.
    """
    _emit_stage_log(logger, stage, event, **fixed)

    from contextlib import contextmanager

    def _decorator(fn):
        @functools.wraps(fn)
        def _w(*a, **kw):
            t0 = time.perf_counter()
            try:
                return fn(*a, **kw)
            finally:
                _emit_stage_log(
                    logger, stage, f"{event}.done",
                    latency_ms=(time.perf_counter() - t0) * 1000,
                    **fixed,
                )
        return _w

    @contextmanager
    def _ctx(**dynamic):
        _emit_stage_log(logger, stage, f"{event}.start", **(fixed | dynamic))
        t0 = time.perf_counter()
        try:
            yield
        finally:
            _emit_stage_log(
                logger, stage, f"{event}.done",
                latency_ms=(time.perf_counter() - t0) * 1000,
                **(fixed | dynamic),
            )

    _decorator.ctx = _ctx
    return _decorator

# ────────── Unified decorator **and** ctx-manager span helper ─────────────
class _TraceSpan:
    def __init__(self, name: str, logger: logging.Logger, **fixed):
        self._name, self._fixed, self._logger = name, fixed, logger
        self._attrs: Dict[str, Any] = {}

    def __enter__(self):
        self._t0 = time.perf_counter()
        stage_value = self._fixed.get("stage", self._name)
        extras = {k: v for k, v in self._fixed.items() if k != "stage"}
        log_stage(self._logger, stage_value, f"{self._name}.start", **extras)
        return self

    def __exit__(self, exc_type, exc, tb):
        extras = {k: v for k, v in self._fixed.items() if k != "stage"}
        if exc_type is not None:
            extras["error_type"] = exc_type.__name__
        log_stage(
            self._logger,
            self._fixed.get("stage", self._name),
            f"{self._name}.end",
            latency_ms=round((time.perf_counter() - self._t0) * 1_000, 3),
            **self._attrs,
            **extras,
        )
        return False

    def set_attribute(self, key: str, value: Any) -> None:
        """Attach an attribute that is reported on the ``.end`` line."""
        self._attrs[str(key)] = value

    def __call__(self, fn):
        sig = inspect.signature(fn)

        def _wrapped(*args, **kwargs):
            with _TraceSpan(self._name, self._logger, **self._fixed):
                return fn(*args, **kwargs)

        functools.update_wrapper(_wrapped, fn)
        _wrapped.__signature__ = sig
        return _wrapped


def trace_span(name: str, *, logger: logging.Logger | None = None, **fixed):
    """
    `logger` is optional; when omitted we fall back to the service-level logger
    so call-sites stay boiler-plate free.
    """
    return _TraceSpan(name, logger or get_logger("folder_sync"), **fixed)

def _sanitize_extra(extra: Dict[str, Any] | None) -> Dict[str, Any]:
    """
    Remove/rename keys in `extra` that would collide with LogRecord attributes.
    - `message` is remapped to `message_extra` to preserve content.
    - all other collisions are namespaced as `meta_<key>`.
    """
    if not extra:
        return {}
    safe: Dict[str, Any] = {}
    for k, v in extra.items():
        lk = str(k)
        if lk == "meta" and isinstance(v, dict):
            for mk, mv in v.items():
                mk_norm = str(mk)
                if mk_norm in _RESERVED:
                    safe[f"meta_{mk_norm}"] = mv
                else:
                    safe[mk_norm] = mv
            continue

        if lk in _RESERVED:
            if lk == "message":
                safe["message_extra"] = v
            else:
                safe[f"meta_{lk}"] = v
        else:
            safe[lk] = v
    return safe

# ---------------------------------------------------------------------------#
# log_once_process – emit a line only once per process key                   #
# ---------------------------------------------------------------------------#
_ONCE_KEYS: set[str] = set()
_ONCE_LOCK = threading.Lock()
def log_once_process(logger: logging.Logger, key: str, *, level: int = logging.INFO, event: str, **kwargs: Any) -> None:
    """
    Emit a structured log exactly once per *key* for the lifetime of the process.
    Useful for one-shot diagnostics (e.g., effective configuration).
    """
    with _ONCE_LOCK:
        if key in _ONCE_KEYS:
            return
        _ONCE_KEYS.add(key)
    logger.log(level, event, extra=_sanitize_extra(kwargs))
