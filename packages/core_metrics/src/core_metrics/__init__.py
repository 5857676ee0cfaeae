"""
core_metrics – tiny helpers so the sync service can record counters,
histograms and gauges without threading Prometheus objects through every
call-site.  Metrics land in the in-process ``prometheus_client`` registry and
are exposed by the service at ``/metrics``.
"""

from __future__ import annotations

import threading
import time as _time
from typing import Any, Dict, Tuple

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY as _PROM_REGISTRY,
    Counter as _pCounter,
    Gauge as _pGauge,
    Histogram as _pHistogram,
    generate_latest,
)

_Key = Tuple[str, Tuple[str, ...]]

_P_COUNTERS: Dict[_Key, _pCounter] = {}
_P_HISTOS: Dict[_Key, _pHistogram] = {}
_P_GAUGES: Dict[_Key, _pGauge] = {}
_LOCK = threading.Lock()

# Latency buckets in milliseconds (a directory scan is usually sub-second).
_MS_BUCKETS = (1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000, float("inf"))


def _labels(attrs: Dict[str, Any]) -> Tuple[Tuple[str, ...], Dict[str, str]]:
    names = tuple(sorted(attrs))
    return names, {k: str(attrs[k]) for k in names}


def _get_or_create(cache: Dict[_Key, Any], factory, name: str, names: Tuple[str, ...], **kw: Any):
    key = (name, names)
    with _LOCK:
        metric = cache.get(key)
        if metric is None:
            existing = _PROM_REGISTRY._names_to_collectors.get(name)  # type: ignore[attr-defined]
            metric = existing if existing is not None else factory(name, f"{name}", labelnames=names, **kw)
            cache[key] = metric
    return metric


# --------------------------------------------------------------------------- #
# Public helpers                                                              #
# --------------------------------------------------------------------------- #
def counter(name: str, inc: int | float = 1, **attrs: Any) -> None:
    """
    Increment *name* by *inc* (default 1).  Keyword attributes become
    Prometheus labels; a metric must always be called with the same label set.
    """
    names, values = _labels(attrs)
    pc = _get_or_create(_P_COUNTERS, _pCounter, name, names)
    (pc.labels(**values) if names else pc).inc(inc)


def histogram(name: str, value: float, **attrs: Any) -> None:
    """Record *value* in histogram *name*."""
    names, values = _labels(attrs)
    ph = _get_or_create(_P_HISTOS, _pHistogram, name, names, buckets=_MS_BUCKETS)
    (ph.labels(**values) if names else ph).observe(value)


def histogram_ms(name: str, elapsed_ms: float, **attrs: Any) -> None:
    """Shortcut: record *elapsed_ms* (milliseconds) in histogram *name*."""
    histogram(name, elapsed_ms, **attrs)


def gauge(name: str, value: float, **attrs: Any) -> None:
    """Set Prometheus **Gauge** *name* to *value*."""
    names, values = _labels(attrs)
    g = _get_or_create(_P_GAUGES, _pGauge, name, names)
    (g.labels(**values) if names else g).set(value)


def record_latency_ms(metric_base: str, t0: float, **attrs: Any) -> float:
    """
    Record elapsed time since *t0* (``time.perf_counter``) as
      • histogram:  {metric_base}_latency_ms
      • gauge:      {metric_base}_latency_ms_latest
    Returns the measured latency in ms.
    """
    dt_ms = (_time.perf_counter() - t0) * 1000.0
    histogram_ms(f"{metric_base}_latency_ms", dt_ms, **attrs)
    gauge(f"{metric_base}_latency_ms_latest", dt_ms)
    return dt_ms


def render_latest() -> tuple[bytes, str]:
    """Return the Prometheus exposition payload and its content type."""
    return generate_latest(_PROM_REGISTRY), CONTENT_TYPE_LATEST


__all__ = ["counter", "histogram", "histogram_ms", "gauge", "record_latency_ms", "render_latest"]
