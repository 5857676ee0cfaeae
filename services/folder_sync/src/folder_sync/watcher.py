from __future__ import annotations

import threading
from enum import Enum
from typing import Any, Callable, Dict, Optional

from core_config.constants import DEFAULT_PERSISTENT_FAILURE_THRESHOLD, DEFAULT_POLL_INTERVAL_S
from core_logging import get_logger, log_stage, record_error
from core_logging.error_codes import ErrorCode
from core_metrics import gauge as _metric_gauge
from core_utils.backoff import interruptible_sleep

from .errors import SyncError
from .pipeline.cycle import CycleSummary, SyncCycle

logger = get_logger("folder_sync.watcher")

PersistentFailureCallback = Callable[[SyncError, int], None]


class SchedulerState(str, Enum):
    STOPPED = "STOPPED"
    STARTING = "STARTING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"


class PollingScheduler:
    """
    Runs ``cycle`` on a daemon thread every ``poll_interval`` seconds.

    Cycles never overlap: the worker and ``run_once`` share one cycle lock.
    The interval sleep waits on ``cancel``, which is also the event the type
    catalog backs off on, so ``stop()`` interrupts either wait promptly.

    Failures that cannot heal on their own (see ``SyncError.persistent``)
    are counted while they repeat identically; at ``persistent_failure_threshold``
    the operator callback fires once for that streak.
    """

    def __init__(
        self,
        cycle: SyncCycle,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL_S,
        persistent_failure_threshold: int = DEFAULT_PERSISTENT_FAILURE_THRESHOLD,
        stop_on_persistent_failure: bool = False,
        on_persistent_failure: Optional[PersistentFailureCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.cycle = cycle
        self.poll_interval = max(0.0, float(poll_interval))
        self.persistent_failure_threshold = max(1, int(persistent_failure_threshold))
        self.stop_on_persistent_failure = bool(stop_on_persistent_failure)
        self.on_persistent_failure = on_persistent_failure
        self.cancel = cancel if cancel is not None else threading.Event()

        self._lock = threading.RLock()
        self._cycle_lock = threading.Lock()
        self._state = SchedulerState.STOPPED
        self._thread: Optional[threading.Thread] = None

        self._cycles = 0
        self._last_summary: Optional[CycleSummary] = None
        self._last_error: Optional[SyncError] = None
        self._failure_signature: Optional[tuple] = None
        self._consecutive_failures = 0
        self._signalled = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def state(self) -> SchedulerState:
        with self._lock:
            return self._state

    def _set_state(self, state: SchedulerState) -> None:
        self._state = state
        _metric_gauge("folder_sync_scheduler_running", 1 if state is SchedulerState.RUNNING else 0)

    def start(self) -> None:
        with self._lock:
            if self._state is not SchedulerState.STOPPED:
                raise SyncError(ErrorCode.already_running, "start",
                                f"scheduler is {self._state.value}")
            self._set_state(SchedulerState.STARTING)
            self.cancel.clear()
            self._thread = threading.Thread(target=self._loop, name="folder-sync-poller", daemon=True)
            log_stage(logger, "scheduler", "poll_loop_starting",
                      directory=self.cycle.directory, poll_interval=self.poll_interval)
            self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Signal the worker and wait for it; True once the scheduler is STOPPED."""
        with self._lock:
            thread = self._thread
            if self._state is SchedulerState.STOPPED and thread is None:
                log_stage(logger, "scheduler", "polling_thread_already_stopped")
                return True
            self._set_state(SchedulerState.STOPPING)
            self.cancel.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        with self._lock:
            # a start() that slipped in after the join owns self._thread now
            current = self._thread
            if current is None or (current is thread and not thread.is_alive()):
                self._thread = None
                self._set_state(SchedulerState.STOPPED)
            return self._state is SchedulerState.STOPPED

    def _loop(self) -> None:
        with self._lock:
            if self._state is SchedulerState.STARTING:
                self._set_state(SchedulerState.RUNNING)
        try:
            while not self.cancel.is_set():
                try:
                    self._execute()
                except SyncError as err:
                    # already logged by the cycle and counted by _record_failure
                    if err.kind is ErrorCode.cancelled:
                        break
                except Exception as exc:  # keep polling; the next cycle may succeed
                    record_error(
                        ErrorCode.internal, where="poll_loop", message=str(exc), logger=logger,
                        stage="scheduler", audit_event="poll_loop_got_an_exception",
                        error_type=type(exc).__name__, cycle=self._cycles,
                    )
                    with self._lock:
                        self._reset_streak()
                if self.cancel.is_set():
                    break
                log_stage(logger, "scheduler", "poll_loop_pre_wait",
                          cycle=self._cycles, poll_interval=self.poll_interval)
                if not interruptible_sleep(self.poll_interval, self.cancel):
                    log_stage(logger, "scheduler", "poll_loop_interrupted", cycle=self._cycles)
                    break
                log_stage(logger, "scheduler", "poll_loop_post_wait", cycle=self._cycles)
        finally:
            with self._lock:
                if self._thread is threading.current_thread():
                    self._thread = None
                    self._set_state(SchedulerState.STOPPED)
            log_stage(logger, "scheduler", "poll_loop_exited", cycles=self._cycles)

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------
    def run_once(self) -> CycleSummary:
        """One synchronous cycle with the same failure accounting as the worker."""
        return self._execute()

    def _execute(self) -> CycleSummary:
        with self._cycle_lock:
            with self._lock:
                self._cycles += 1
                seq = self._cycles
            try:
                summary = self.cycle.run(seq=seq)
            except SyncError as err:
                self._record_failure(err, seq)
                raise
            with self._lock:
                self._last_summary = summary
                self._last_error = None
                self._reset_streak()
            return summary

    def _reset_streak(self) -> None:
        self._failure_signature = None
        self._consecutive_failures = 0
        self._signalled = False

    def _record_failure(self, err: SyncError, seq: int) -> None:
        if err.kind is ErrorCode.cancelled:
            return
        with self._lock:
            self._last_error = err
            if not err.persistent:
                self._reset_streak()
                return
            if err.signature == self._failure_signature:
                self._consecutive_failures += 1
            else:
                self._failure_signature = err.signature
                self._consecutive_failures = 1
                self._signalled = False
            count = self._consecutive_failures
            fire = count >= self.persistent_failure_threshold and not self._signalled
            if fire:
                self._signalled = True
        log_stage(logger, "scheduler", "cycle_failed",
                  cycle=seq, error_code=err.kind.value, consecutive_failures=count)
        if not fire:
            return
        record_error(
            err.kind, where=err.operation, message=err.message, logger=logger,
            action="persistent_failure", stage="scheduler",
            consecutive_failures=count, path=err.path, type_name=err.type_name,
        )
        if self.on_persistent_failure is not None:
            try:
                self.on_persistent_failure(err, count)
            except Exception as exc:  # a broken callback must not kill the worker
                record_error(ErrorCode.internal, where="on_persistent_failure", message=str(exc),
                             logger=logger, stage="scheduler", error_type=type(exc).__name__)
        if self.stop_on_persistent_failure:
            with self._lock:
                if self._state is not SchedulerState.STOPPED:
                    self._set_state(SchedulerState.STOPPING)
                self.cancel.set()

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "state": self._state.value,
                "cycles": self._cycles,
                "directory": self.cycle.directory,
                "poll_interval": self.poll_interval,
                "consecutive_failures": self._consecutive_failures,
                "last_error": self._last_error.to_dict() if self._last_error else None,
                "last_summary": self._last_summary,
            }


__all__ = ["PollingScheduler", "SchedulerState", "PersistentFailureCallback"]
