import threading
import time

from core_utils import compute_backoff_delay_ms, interruptible_sleep


def test_equal_jitter_grows_and_caps():
    assert 100 <= compute_backoff_delay_ms(1, base_ms=100, jitter_ms=50) < 150
    assert 400 <= compute_backoff_delay_ms(3, base_ms=100, jitter_ms=50) < 450
    assert compute_backoff_delay_ms(10, base_ms=100, jitter_ms=50, cap_ms=2000) == 2000


def test_fixed_mode_ignores_attempt():
    assert compute_backoff_delay_ms(7, base_ms=25, jitter_ms=500, mode="fixed") == 25


def test_interruptible_sleep_completes():
    assert interruptible_sleep(0.0, threading.Event()) is True
    assert interruptible_sleep(0.0) is True


def test_interruptible_sleep_returns_early_on_cancel():
    cancel = threading.Event()
    threading.Timer(0.05, cancel.set).start()
    t0 = time.perf_counter()
    assert interruptible_sleep(30, cancel) is False
    assert time.perf_counter() - t0 < 5


def test_already_cancelled_does_not_wait():
    cancel = threading.Event()
    cancel.set()
    assert interruptible_sleep(30, cancel) is False
