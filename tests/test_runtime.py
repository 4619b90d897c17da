import threading

import pytest

from itr.models import ReconcileConfig
from itr.reconciler import Reconciler
from itr.runtime import RunInProgress, RuntimeState, Scheduler


def _runtime(path, registry, log):
    cfg = ReconcileConfig(repository="nginx", manifest_path=path, fallback_version="1.23.1")
    return RuntimeState(Reconciler(cfg, registry, event_log=log))


def test_run_once_records_last_outcome(write_manifest_file, hub_tags, quiet_log):
    rt = _runtime(write_manifest_file("image: nginx:1.21\n"), hub_tags(["1.22"]), quiet_log)

    outcome = rt.run_once()

    assert rt.snapshot() == (outcome, None)
    assert rt.running is False


def test_run_once_rejects_overlap(write_manifest_file, hub_tags, quiet_log):
    rt = _runtime(write_manifest_file("image: nginx:1.21\n"), hub_tags(["1.22"]), quiet_log)
    rt._run_lock.acquire()
    try:
        assert rt.running is True
        with pytest.raises(RunInProgress):
            rt.run_once()
    finally:
        rt._run_lock.release()


def test_scheduler_runs_periodically(write_manifest_file, hub_tags, quiet_log):
    rt = _runtime(write_manifest_file("image: nginx:1.21\n"), hub_tags(["1.22"]), quiet_log)
    done = threading.Event()
    original = rt.run_once

    def run_and_signal():
        try:
            return original()
        finally:
            done.set()

    rt.run_once = run_and_signal
    sched = Scheduler(rt, interval_s=60)
    sched.start()
    try:
        assert done.wait(5)
    finally:
        sched.stop()

    assert rt.snapshot()[0].selected_version == "1.22"


def test_scheduler_stop_waits_for_thread(write_manifest_file, hub_tags, quiet_log):
    rt = _runtime(write_manifest_file("image: nginx:1.21\n"), hub_tags(["1.22"]), quiet_log)
    sched = Scheduler(rt, interval_s=60)
    sched.start()
    thr = sched._thr

    sched.stop(timeout_s=5)

    assert not thr.is_alive()
