from typing import Dict, Optional

import httpx

from core_config.constants import HTTP_TIMEOUT_S
from core_logging import current_cycle_id

from .headers import X_CYCLE_ID

def inject_headers(headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Merge caller headers with process context (the bound cycle id).
    Never mutates the input dict.
    """
    base: Dict[str, str] = {}
    cid = current_cycle_id()
    if cid:
        base[X_CYCLE_ID] = cid
    if headers:
        base.update(headers)
    return base

def build_timeout(seconds: float) -> httpx.Timeout:
    # Separate connect/read/write/pool timeouts; read dominates
    connect = min(0.5, max(0.1, seconds * 0.3))
    read    = max(0.1, seconds)
    write   = min(seconds, 1.0)
    pool    = min(seconds, 1.0)
    return httpx.Timeout(connect=connect, read=read, write=write, pool=pool)

def make_sync_client(
    base_url: str = "",
    *,
    timeout_s: float = HTTP_TIMEOUT_S,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """Dedicated client for one upstream; ``transport`` lets tests plug in ``httpx.MockTransport``."""
    kw = {"transport": transport} if transport is not None else {}
    return httpx.Client(base_url=base_url.rstrip("/"), timeout=build_timeout(timeout_s), **kw)

__all__ = ["inject_headers", "build_timeout", "make_sync_client"]
