from __future__ import annotations

from threading import Event, Lock, Thread, current_thread

from .errors import ManifestError
from .models import UpdateOutcome
from .reconciler import Reconciler


class RunInProgress(Exception):
    pass


class RuntimeState:
    """Serializes runs for invokers that can overlap (API trigger, scheduler)."""

    def __init__(self, reconciler: Reconciler) -> None:
        self.reconciler = reconciler
        self.lock = Lock()
        self._run_lock = Lock()
        self.last_outcome: UpdateOutcome | None = None
        self.last_error: str | None = None

    @property
    def running(self) -> bool:
        return self._run_lock.locked()

    def run_once(self) -> UpdateOutcome:
        """Run the reconciler unless a run is already active.

        Overlapping triggers are rejected rather than queued; the next
        trigger starts from scratch anyway.
        """
        if not self._run_lock.acquire(blocking=False):
            raise RunInProgress("A reconciliation run is already in progress.")
        try:
            outcome = self.reconciler.run()
        except ManifestError as e:
            with self.lock:
                self.last_error = f"{type(e).__name__}: {e}"
            raise
        finally:
            self._run_lock.release()

        with self.lock:
            self.last_outcome = outcome
            self.last_error = None
        return outcome

    def snapshot(self) -> tuple[UpdateOutcome | None, str | None]:
        with self.lock:
            return self.last_outcome, self.last_error


class Scheduler:
    """Runs the reconciler every ``interval_s`` seconds in a daemon thread."""

    def __init__(self, runtime: RuntimeState, interval_s: int):
        self.runtime = runtime
        self.interval_s = max(1, int(interval_s))
        self._stop = Event()
        self._thr: Thread | None = None

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop.clear()
        self._thr = Thread(target=self._loop, daemon=True)
        self._thr.start()

    def stop(self, timeout_s: float = 30.0) -> None:
        """Signal the loop and wait (bounded) for an in-flight run to finish."""
        self._stop.set()
        thr = self._thr
        if thr and thr.is_alive() and thr is not current_thread():
            thr.join(timeout_s)

    def _loop(self) -> None:
        log = self.runtime.reconciler.event_log
        log.log_event("INFO", f"Scheduler started (every {self.interval_s}s)")
        while not self._stop.is_set():
            try:
                self.runtime.run_once()
            except RunInProgress:
                # a manual run got there first
                log.log_event("INFO", "Scheduled run skipped: previous run still active")
            except Exception as e:
                log.log_event("ERROR", f"Scheduled run failed: {type(e).__name__}: {e}")
            self._stop.wait(self.interval_s)
