"""Utility routines for retry and wait policies.

Centralizes the jittered retry delay used by storage writes and the
cancellable waits used by the polling worker and type resolution.
"""

from __future__ import annotations
import os
import threading
import time
from typing import Literal, Optional

__all__ = ["compute_backoff_delay_ms", "interruptible_sleep"]

def _rand_u8() -> int:
    """Small helper to avoid importing random; uses os.urandom."""
    return int.from_bytes(os.urandom(1), "big")

def compute_backoff_delay_ms(
    attempt: int,
    *,
    base_ms: int,
    jitter_ms: int,
    cap_ms: int | None = None,
    mode: Literal["exp_equal_jitter", "exp_full_jitter", "fixed"] = "exp_equal_jitter",
) -> int:
    """Compute a retry backoff (milliseconds).

    Modes:
      - exp_equal_jitter: (base * 2**(n-1)) + uniform(0, jitter)
      - exp_full_jitter:  uniform(0, (base * 2**(n-1)) + jitter)
      - fixed:            base (jitter ignored)
    """
    if attempt < 1:
        attempt = 1
    if mode == "fixed":
        delay = base_ms
    else:
        exp = base_ms * (2 ** (attempt - 1))
        if mode == "exp_equal_jitter":
            delay = exp + (_rand_u8() % max(1, jitter_ms))
        else:
            span = exp + max(1, jitter_ms)
            delay = int((_rand_u8() / 255.0) * span)
    if cap_ms is not None:
        delay = min(delay, cap_ms)
    return max(0, int(delay))

def interruptible_sleep(seconds: float, cancel: Optional[threading.Event] = None) -> bool:
    """
    Wait up to *seconds*.  Returns True when the full wait elapsed and False
    when *cancel* was set before (or during) the wait.
    """
    if cancel is None:
        if seconds > 0:
            time.sleep(seconds)
        return True
    if cancel.is_set():
        return False
    return not cancel.wait(timeout=max(0.0, seconds))
